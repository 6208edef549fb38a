"""Expected model output shapes, one closed variant per extraction family.

Every family payload is a pydantic model with camelCase aliases matching the
JSON the prompts ask for. Each model also declares which of its sections
become ``ExtractedItem`` rows; the same declaration drives permissive
harvesting when a response only survives fallback parsing.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from onboarding.extraction.types import LEGACY_FAMILY_KEY, ExtractedItem, ExtractionFamily, parse_family

DEFAULT_ITEM_CONFIDENCE = 0.7
_EVIDENCE_KEYS = frozenset({"quote", "confidence", "sourceSpeaker", "sourceTimestamp", "sourceLocator"})


class _Shape(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class _Evidence(_Shape):
    quote: str
    confidence: float = Field(default=DEFAULT_ITEM_CONFIDENCE, ge=0.0, le=1.0)
    source_speaker: str | None = None
    source_timestamp: float | None = None
    source_locator: str | None = None


class Stakeholder(_Evidence):
    name: str
    role: str
    email: str | None = None
    is_decision_maker: bool | None = None


class BusinessContext(_Evidence):
    problem: str
    current_cost: str | None = None
    target_cost: str | None = None
    monthly_volume: float | None = None
    peak_periods: str | None = None
    success_metrics: str | None = None
    de_name: str | None = None


class Kpi(_Evidence):
    name: str
    target_value: str
    unit: str | None = None
    measurement_method: str | None = None
    owner: str | None = None
    alert_threshold: str | None = None
    frequency: str | None = None


class DecisionTreeEntry(_Evidence):
    question_type: str
    volume_percent: float
    automation_feasibility: Literal["full", "partial", "never"]
    action: str
    escalate: bool
    reason: str | None = None


class ProcessStep(_Evidence):
    step: str
    order: int


class CaseType(_Evidence):
    type: str
    volume_percent: float | None = None
    complexity: Literal["LOW", "MEDIUM", "HIGH"]
    automatable: bool
    automation_feasibility: Literal["full", "partial", "never"] | None = None


class Channel(_Evidence):
    type: Literal["EMAIL", "WEB_FORM", "API", "PORTAL", "OTHER"]
    volume_percent: float | None = None
    current_sla: str | None = Field(default=None, alias="currentSLA")
    target_sla: str | None = Field(default=None, alias="targetSLA")
    rules: str | None = None


class EscalationRule(_Evidence):
    trigger_condition: str
    action: str
    target_team: str | None = None
    sla_minutes: float | None = None


class ScopeItem(_Evidence):
    statement: str
    classification: Literal["IN_SCOPE", "OUT_OF_SCOPE", "AMBIGUOUS"]
    skill: str | None = None
    conditions: str | None = None
    timestamp_start: float | None = None
    timestamp_end: float | None = None


class Scenario(_Evidence):
    title: str
    description: str
    steps: list[str]
    expected_outcome: str
    exceptions: list[str] | None = None
    timestamp_start: float | None = None
    timestamp_end: float | None = None


class Skill(_Evidence):
    name: str
    type: Literal["ANSWER", "ROUTE", "APPROVE_REJECT", "REQUEST_INFO", "NOTIFY", "OTHER"]
    description: str
    knowledge_source: str | None = None
    phase: int


class BrandTone(_Evidence):
    tone: str
    formality: Literal["FORMAL", "INFORMAL"]
    language: list[str]
    empathy_level: str


class GuardrailEntry(_Evidence):
    item: str
    reason: str


class Guardrails(_Shape):
    never: list[GuardrailEntry] = Field(default_factory=list)
    always: list[GuardrailEntry] = Field(default_factory=list)
    financial_limits: str | None = None
    legal_restrictions: str | None = None


class Integration(_Evidence):
    system_name: str
    purpose: str
    access_type: Literal["READ", "WRITE", "READ_WRITE"]
    data_fields: list[str]
    technical_contact: str | None = None
    api_available: bool | None = None
    fallback_behavior: str | None = None
    retry_strategy: str | None = None
    data_freshness: str | None = None


class SecurityRequirement(_Evidence):
    requirement: str
    type: str


class MonitoringMetric(_Evidence):
    name: str
    target: str
    perspective: Literal["user_experience", "operational", "knowledge_quality", "financial"]
    frequency: str
    owner: str
    alert_threshold: str
    action_trigger: str


class OpenItem(_Evidence):
    item: str
    owner: str


class Decision(_Evidence):
    decision: str
    approved_by: str


class Risk(_Evidence):
    risk: str
    mitigation: str


class Approval(_Evidence):
    stakeholder: str
    status: str
    conditions: str | None = None


class LaunchCriterion(_Evidence):
    criterion: str
    phase: Literal["soft_launch", "full_launch", "hypercare"]
    owner: str
    soft_target: str | None = None
    full_target: str | None = None


class PersonaTrait(_Evidence):
    name: str
    description: str
    example_phrase: str


class ToneRule(_Evidence):
    rule: str
    category: Literal["reading_level", "formality", "sentence_structure", "vocabulary", "other"]
    examples: str | None = None


class DoAndDont(_Evidence):
    wrong: str
    right: str
    category: str | None = None


class OpeningMessage(_Evidence):
    greeting: str
    ai_disclaimer: str


class DialogueMessage(_Shape):
    speaker: Literal["user", "de"]
    text: str


class ExampleDialogue(_Evidence):
    scenario: str
    category: Literal["happy_path", "clarification", "edge_case", "angry_customer", "complex"]
    messages: list[DialogueMessage]


class EscalationScript(_Evidence):
    context: Literal["office_hours", "after_hours", "unknown_topic", "emotional", "other"]
    label: str
    script: str
    includes_context: bool


class FeedbackMechanism(_Evidence):
    methods: list[str]
    improvement_cycle: str


@dataclass(frozen=True, slots=True)
class ItemSection:
    """Where in a family payload to find entries of one item type.

    ``path`` uses the JSON (camelCase) keys.
    """

    path: tuple[str, ...]
    item_type: str
    content_key: str
    category: str | None = None
    category_key: str | None = None


class FamilyPayload(_Shape):
    """Fields shared by every family. Models self-report problems here."""

    family_key: ClassVar[str]
    item_sections: ClassVar[tuple[ItemSection, ...]] = ()

    transcript: str | None = None
    error: str | None = None
    note: str | None = None
    warnings: list[str] = Field(default_factory=list)

    def to_items(self) -> list[ExtractedItem]:
        return harvest_items(self.model_dump(mode="json", by_alias=True, exclude_none=True), self.item_sections)


_STAKEHOLDERS = ItemSection(("stakeholders",), "STAKEHOLDER", "name", category_key="role")
_KPIS = ItemSection(("kpis",), "KPI_TARGET", "name")
_ESCALATION_RULES = ItemSection(("escalationRules",), "ESCALATION_TRIGGER", "triggerCondition")
_SCOPE_ITEMS = ItemSection(("scopeItems",), "SCOPE_ITEM", "statement", category_key="classification")
_INTEGRATIONS = ItemSection(("integrations",), "SYSTEM_INTEGRATION", "systemName", category_key="accessType")
_BRAND_TONE = ItemSection(("brandTone",), "BRAND_TONE", "tone", category_key="formality")
_GUARDRAILS_NEVER = ItemSection(("guardrails", "never"), "GUARDRAIL_NEVER", "item", category="never")
_GUARDRAILS_ALWAYS = ItemSection(("guardrails", "always"), "GUARDRAIL_ALWAYS", "item", category="always")


class KickoffExtraction(FamilyPayload):
    family_key: ClassVar[str] = ExtractionFamily.KICKOFF.value
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        ItemSection(("businessContext",), "BUSINESS_CONTEXT", "problem"),
        _KPIS,
        _STAKEHOLDERS,
        ItemSection(("decisionTree",), "DECISION_TREE_BRANCH", "questionType", category_key="automationFeasibility"),
    )

    business_context: BusinessContext | None = None
    kpis: list[Kpi] = Field(default_factory=list)
    stakeholders: list[Stakeholder] = Field(default_factory=list)
    decision_tree: list[DecisionTreeEntry] = Field(default_factory=list)


class ProcessExtraction(FamilyPayload):
    family_key: ClassVar[str] = ExtractionFamily.PROCESS.value
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        ItemSection(("processSteps",), "HAPPY_PATH_STEP", "step"),
        ItemSection(("caseTypes",), "CASE_TYPE", "type", category_key="complexity"),
        ItemSection(("channels",), "CHANNEL", "type"),
        _ESCALATION_RULES,
        _SCOPE_ITEMS,
    )

    process_steps: list[ProcessStep] = Field(default_factory=list)
    case_types: list[CaseType] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)
    escalation_rules: list[EscalationRule] = Field(default_factory=list)
    scope_items: list[ScopeItem] = Field(default_factory=list)


class SkillsGuardrailsExtraction(FamilyPayload):
    family_key: ClassVar[str] = ExtractionFamily.SKILLS_GUARDRAILS.value
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        ItemSection(("skills",), "SKILL", "name", category_key="type"),
        _BRAND_TONE,
        _GUARDRAILS_NEVER,
        _GUARDRAILS_ALWAYS,
    )

    skills: list[Skill] = Field(default_factory=list)
    brand_tone: BrandTone | None = None
    guardrails: Guardrails | None = None


class TechnicalExtraction(FamilyPayload):
    family_key: ClassVar[str] = ExtractionFamily.TECHNICAL.value
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        _INTEGRATIONS,
        ItemSection(("securityRequirements",), "SECURITY_REQUIREMENT", "requirement", category_key="type"),
        ItemSection(("monitoringMetrics",), "MONITORING_METRIC", "name", category_key="perspective"),
    )

    integrations: list[Integration] = Field(default_factory=list)
    security_requirements: list[SecurityRequirement] = Field(default_factory=list)
    monitoring_metrics: list[MonitoringMetric] = Field(default_factory=list)


class SignoffExtraction(FamilyPayload):
    family_key: ClassVar[str] = ExtractionFamily.SIGNOFF.value
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        ItemSection(("openItems",), "OPEN_ITEM", "item"),
        ItemSection(("decisions",), "DECISION", "decision"),
        ItemSection(("risks",), "RISK", "risk"),
        ItemSection(("approvals",), "APPROVAL", "stakeholder", category_key="status"),
        ItemSection(("launchCriteria",), "LAUNCH_CRITERION", "criterion", category_key="phase"),
    )

    open_items: list[OpenItem] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    risks: list[Risk] = Field(default_factory=list)
    approvals: list[Approval] = Field(default_factory=list)
    launch_criteria: list[LaunchCriterion] = Field(default_factory=list)


class PersonaExtraction(FamilyPayload):
    family_key: ClassVar[str] = ExtractionFamily.PERSONA.value
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        ItemSection(("personaTraits",), "PERSONA_TRAIT", "name"),
        ItemSection(("toneRules",), "TONE_RULE", "rule", category_key="category"),
        ItemSection(("dosAndDonts",), "DOS_AND_DONTS", "right", category_key="category"),
        ItemSection(("openingMessage",), "OPENING_MESSAGE", "greeting"),
        ItemSection(("exampleDialogues",), "EXAMPLE_DIALOGUE", "scenario", category_key="category"),
        ItemSection(("escalationScripts",), "ESCALATION_SCRIPT", "script", category_key="context"),
        ItemSection(("feedbackMechanism",), "FEEDBACK_MECHANISM", "improvementCycle"),
        _ESCALATION_RULES,
        _GUARDRAILS_NEVER,
        _GUARDRAILS_ALWAYS,
        _BRAND_TONE,
    )

    persona_traits: list[PersonaTrait] = Field(default_factory=list)
    tone_rules: list[ToneRule] = Field(default_factory=list)
    dos_and_donts: list[DoAndDont] = Field(default_factory=list)
    opening_message: OpeningMessage | None = None
    example_dialogues: list[ExampleDialogue] = Field(default_factory=list)
    escalation_scripts: list[EscalationScript] = Field(default_factory=list)
    feedback_mechanism: FeedbackMechanism | None = None
    escalation_rules: list[EscalationRule] = Field(default_factory=list)
    guardrails: Guardrails | None = None
    brand_tone: BrandTone | None = None


class LegacyExtraction(FamilyPayload):
    """Shape used when the family key is not recognized."""

    family_key: ClassVar[str] = LEGACY_FAMILY_KEY
    item_sections: ClassVar[tuple[ItemSection, ...]] = (
        _SCOPE_ITEMS,
        ItemSection(("scenarios",), "SCENARIO", "title"),
        _KPIS,
        _INTEGRATIONS,
        _ESCALATION_RULES,
    )

    scope_items: list[ScopeItem] = Field(default_factory=list)
    scenarios: list[Scenario] = Field(default_factory=list)
    kpis: list[Kpi] = Field(default_factory=list)
    integrations: list[Integration] = Field(default_factory=list)
    escalation_rules: list[EscalationRule] = Field(default_factory=list)


FAMILY_SCHEMAS: dict[str, type[FamilyPayload]] = {
    schema.family_key: schema
    for schema in (
        KickoffExtraction,
        ProcessExtraction,
        SkillsGuardrailsExtraction,
        TechnicalExtraction,
        SignoffExtraction,
        PersonaExtraction,
        LegacyExtraction,
    )
}


def schema_for_family(key: str | ExtractionFamily | None) -> type[FamilyPayload]:
    """Return the family's schema, or the legacy shape for unknown keys."""

    family = parse_family(key)
    if family is None:
        return LegacyExtraction
    return FAMILY_SCHEMAS[family.value]


def harvest_items(payload: Mapping[str, Any], sections: Sequence[ItemSection]) -> list[ExtractedItem]:
    """Build items from a JSON-shaped payload without enforcing any schema.

    Entries that are not objects or have no usable content are skipped.
    Confidence values are clamped to [0, 1].
    """

    items: list[ExtractedItem] = []
    for section in sections:
        value = _resolve_path(payload, section.path)
        if isinstance(value, Mapping):
            entries: list[Any] = [value]
        elif isinstance(value, list):
            entries = value
        else:
            continue
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            content = entry.get(section.content_key)
            if not isinstance(content, str) or not content.strip():
                continue
            category = section.category
            if category is None and section.category_key:
                raw_category = entry.get(section.category_key)
                if isinstance(raw_category, str) and raw_category.strip():
                    category = raw_category.strip()
            items.append(
                ExtractedItem(
                    type=section.item_type,
                    content=content.strip(),
                    confidence=_coerce_confidence(entry.get("confidence")),
                    category=category,
                    structured_data={
                        str(key): val for key, val in entry.items() if key not in _EVIDENCE_KEYS and val is not None
                    },
                    source_quote=_optional_text(entry.get("quote")),
                    source_speaker=_optional_text(entry.get("sourceSpeaker")),
                    source_timestamp=_optional_number(entry.get("sourceTimestamp", entry.get("timestampStart"))),
                    source_locator=_optional_text(entry.get("sourceLocator")),
                )
            )
    return items


def _resolve_path(payload: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    current: Any = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return DEFAULT_ITEM_CONFIDENCE
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return DEFAULT_ITEM_CONFIDENCE
    if math.isnan(parsed):
        return DEFAULT_ITEM_CONFIDENCE
    return max(0.0, min(1.0, parsed))


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and not math.isnan(float(value)):
        return float(value)
    return None
