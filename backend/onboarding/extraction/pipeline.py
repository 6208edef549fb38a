"""Extraction orchestration: prompt, model call, validation, recovery, tracking."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any

from onboarding.extraction.assembler import build_prompt
from onboarding.extraction.clients import GenerativeClient, ProviderResponse
from onboarding.extraction.confidence import CONFIDENCE_THRESHOLD, filter_by_confidence
from onboarding.extraction.errors import ProviderError, ResponseParseError, classify_provider_error
from onboarding.extraction.prompt_resolver import PromptResolver
from onboarding.extraction.sanitizer import sanitize_prompt_content
from onboarding.extraction.schemas import FamilyPayload, harvest_items, schema_for_family
from onboarding.extraction.types import (
    CONTENT_TYPES,
    ExtractedItem,
    ExtractionFamily,
    ExtractionRequest,
    ExtractionResult,
)
from onboarding.extraction.validator import recover_json_object, validate_response
from onboarding.services.operation_tracker import OperationRecord, OperationTracker

logger = logging.getLogger(__name__)

_MEDIA_CONTENT_TYPES = frozenset({"audio", "video", "document"})


class ExtractionPipeline:
    """Turn one piece of session content into a typed ``ExtractionResult``.

    Raises ``ProviderError`` when the model call fails and
    ``ResponseParseError`` when the response holds no JSON at all. Responses
    that hold JSON but miss the family schema are recovered permissively and
    returned with ``validated=False``.
    """

    def __init__(
        self,
        client: GenerativeClient,
        resolver: PromptResolver,
        tracker: OperationTracker | None = None,
        *,
        default_temperature: float = 0.2,
        default_max_tokens: int = 16384,
        confidence_threshold: float = CONFIDENCE_THRESHOLD,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._tracker = tracker
        self._default_temperature = default_temperature
        self._default_max_tokens = default_max_tokens
        self._confidence_threshold = confidence_threshold

    @property
    def provider(self) -> str:
        return self._client.provider

    def run(self, request: ExtractionRequest) -> ExtractionResult:
        return self.extract(request.content, request.content_type, request.family, mime_type=request.mime_type)

    def extract(
        self,
        content: bytes | str,
        content_type: str,
        family: str | ExtractionFamily | None,
        *,
        mime_type: str | None = None,
    ) -> ExtractionResult:
        if content_type not in CONTENT_TYPES:
            raise ValueError(f"Unsupported content type: {content_type}")

        media: bytes | None = None
        sanitized: str | None = None
        if isinstance(content, bytes) and content_type in _MEDIA_CONTENT_TYPES:
            media = content
        else:
            text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
            sanitized = sanitize_prompt_content(text, content_label=f"{content_type} content")

        assembled = build_prompt(self._resolver, family, sanitized, content_type)
        resolved = assembled.resolved
        schema = schema_for_family(resolved.family)
        model = resolved.model or self._client.model
        mode = "document" if content_type == "document" else "extract"
        pipeline_name = f"{self._client.provider}-{mode}-{resolved.family}"
        metadata: dict[str, Any] = {
            "family": resolved.family,
            "content_type": content_type,
            "mime_type": mime_type,
            "prompt_tier": resolved.tier,
            "template_id": resolved.template_id,
            "template_version": resolved.version,
            "fallback_parsing": False,
        }

        started = perf_counter()
        try:
            response = self._client.generate(
                assembled.text,
                media=media,
                mime_type=mime_type,
                model=model,
                temperature=resolved.temperature if resolved.temperature is not None else self._default_temperature,
                max_tokens=resolved.max_tokens or self._default_max_tokens,
            )
        except Exception as exc:
            latency_ms = _elapsed_ms(started)
            classified = classify_provider_error(exc, self._client.display_name)
            self._record(
                OperationRecord(
                    pipeline_name=pipeline_name,
                    model=model,
                    latency_ms=latency_ms,
                    success=False,
                    error_message=classified.user_message,
                    metadata={**metadata, "error_category": classified.category.value},
                )
            )
            if self._tracker is not None:
                self._tracker.record_error(
                    classified.user_message,
                    feature_id="extraction",
                    endpoint=pipeline_name,
                    metadata={"category": classified.category.value, "retryable": classified.retryable},
                )
            logger.warning(
                "extraction.provider_failed pipeline=%s category=%s retryable=%s latency_ms=%d",
                pipeline_name,
                classified.category.value,
                classified.retryable,
                latency_ms,
            )
            raise ProviderError(
                classified.user_message,
                retryable=classified.retryable,
                category=classified.category,
            ) from None

        latency_ms = _elapsed_ms(started)
        result = self._interpret(response, schema, pipeline_name, metadata, latency_ms)
        result.content_type = content_type
        result.prompt_tier = resolved.tier
        result.prompt_template_id = resolved.template_id

        self._record(
            OperationRecord(
                pipeline_name=pipeline_name,
                model=result.model,
                input_tokens=result.input_tokens,
                output_tokens=result.output_tokens,
                latency_ms=latency_ms,
                success=True,
                metadata={
                    **metadata,
                    "fallback_parsing": not result.validated,
                    "item_count": len(result.items),
                    "dropped_item_count": result.dropped_item_count,
                },
            )
        )
        logger.info(
            (
                "extraction.completed pipeline=%s model=%s validated=%s items=%d dropped=%d "
                "input_tokens=%d output_tokens=%d latency_ms=%d prompt_tier=%s"
            ),
            pipeline_name,
            result.model,
            result.validated,
            len(result.items),
            result.dropped_item_count,
            result.input_tokens,
            result.output_tokens,
            latency_ms,
            resolved.tier,
        )
        return result

    def _interpret(
        self,
        response: ProviderResponse,
        schema: type[FamilyPayload],
        pipeline_name: str,
        metadata: dict[str, Any],
        latency_ms: int,
    ) -> ExtractionResult:
        outcome = validate_response(response.text, schema)
        if outcome.ok:
            payload = outcome.payload
            return self._build_result(
                response,
                schema,
                payload=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
                items=payload.to_items(),
                validated=True,
                model_error=payload.error,
                model_warnings=list(payload.warnings),
                latency_ms=latency_ms,
                pipeline_name=pipeline_name,
            )

        recovered = recover_json_object(response.text) if outcome.json_found else None
        if recovered is None:
            message = f"Failed to parse extraction result: {outcome.reason}"
            self._record(
                OperationRecord(
                    pipeline_name=pipeline_name,
                    model=response.model,
                    input_tokens=response.input_tokens,
                    output_tokens=response.output_tokens,
                    latency_ms=latency_ms,
                    success=False,
                    error_message=message,
                    metadata=metadata,
                )
            )
            logger.warning("extraction.no_json pipeline=%s reason=%s", pipeline_name, outcome.reason)
            raise ResponseParseError(message)

        logger.warning(
            "extraction.fallback_parsing pipeline=%s reason=%s",
            pipeline_name,
            outcome.reason[:500],
        )
        raw_warnings = recovered.get("warnings")
        return self._build_result(
            response,
            schema,
            payload=recovered,
            items=harvest_items(recovered, schema.item_sections),
            validated=False,
            model_error=recovered.get("error") if isinstance(recovered.get("error"), str) else None,
            model_warnings=[str(w) for w in raw_warnings] if isinstance(raw_warnings, list) else [],
            latency_ms=latency_ms,
            pipeline_name=pipeline_name,
        )

    def _build_result(
        self,
        response: ProviderResponse,
        schema: type[FamilyPayload],
        *,
        payload: dict[str, Any],
        items: list[ExtractedItem],
        validated: bool,
        model_error: str | None,
        model_warnings: list[str],
        latency_ms: int,
        pipeline_name: str,
    ) -> ExtractionResult:
        kept, dropped = filter_by_confidence(items, self._confidence_threshold)
        return ExtractionResult(
            family=schema.family_key,
            content_type="",
            payload=payload,
            items=kept,
            validated=validated,
            dropped_item_count=dropped,
            model=response.model,
            pipeline_name=pipeline_name,
            input_tokens=max(0, int(response.input_tokens or 0)),
            output_tokens=max(0, int(response.output_tokens or 0)),
            latency_ms=latency_ms,
            model_error=model_error,
            model_warnings=model_warnings,
        )

    def _record(self, record: OperationRecord) -> None:
        if self._tracker is not None:
            self._tracker.record_operation(record)


def _elapsed_ms(started: float) -> int:
    return int(round((perf_counter() - started) * 1000.0))
