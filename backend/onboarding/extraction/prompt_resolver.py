"""Two-tier prompt resolution: stored templates first, compiled-in defaults second."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from onboarding.extraction.prompt_library import get_default_prompt
from onboarding.extraction.types import LEGACY_FAMILY_KEY, ExtractionFamily, parse_family
from onboarding.models import PromptTemplate

logger = logging.getLogger(__name__)

PromptTier = Literal["dynamic", "static", "legacy"]


@dataclass(frozen=True, slots=True)
class StoredTemplate:
    id: int
    family: str
    version: int
    prompt: str
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class ResolvedPrompt:
    """Template text plus the tier that served it."""

    family: str
    text: str
    tier: PromptTier
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    template_id: int | None = None
    version: int | None = None


class TemplateStore(Protocol):
    def find_active_template(self, family: str) -> StoredTemplate | None:
        """Return the highest-version active template for ``family``, if any."""


class SqlTemplateStore:
    """Reads ``prompt_templates`` through a short-lived session per lookup."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def find_active_template(self, family: str) -> StoredTemplate | None:
        with self._session_factory() as db:
            row = db.scalar(
                select(PromptTemplate)
                .where(PromptTemplate.family == family, PromptTemplate.is_active.is_(True))
                .order_by(PromptTemplate.version.desc())
                .limit(1)
            )
            if row is None:
                return None
            return StoredTemplate(
                id=row.id,
                family=row.family,
                version=row.version,
                prompt=row.prompt,
                model=row.model,
                temperature=row.temperature,
                max_tokens=row.max_tokens,
            )


class PromptResolver:
    """Resolve a family key to instruction text. Never raises for unknown keys.

    Stored lookups are cached per family until ``invalidate`` is called.
    """

    def __init__(self, store: TemplateStore | None = None) -> None:
        self._store = store
        self._cache: dict[str, ResolvedPrompt] = {}
        self._lock = threading.Lock()

    def resolve(self, family_key: str | ExtractionFamily | None) -> ResolvedPrompt:
        family = parse_family(family_key)
        if family is None:
            logger.warning("prompt_resolver.unknown_family family=%s tier=legacy", family_key)
            return ResolvedPrompt(family=LEGACY_FAMILY_KEY, text=get_default_prompt(LEGACY_FAMILY_KEY), tier="legacy")

        with self._lock:
            cached = self._cache.get(family.value)
        if cached is not None:
            return cached

        resolved, cacheable = self._resolve_dynamic(family.value)
        if resolved is None:
            resolved = ResolvedPrompt(family=family.value, text=get_default_prompt(family.value), tier="static")
        if cacheable:
            with self._lock:
                self._cache[family.value] = resolved
        return resolved

    def invalidate(self, family_key: str | None = None) -> None:
        with self._lock:
            if family_key is None:
                self._cache.clear()
            else:
                self._cache.pop(family_key, None)

    def _resolve_dynamic(self, family: str) -> tuple[ResolvedPrompt | None, bool]:
        # A failed store read is not cached so the next call retries it.
        if self._store is None:
            return None, True
        try:
            stored = self._store.find_active_template(family)
        except Exception:
            logger.exception("prompt_resolver.store_failed family=%s tier=static", family)
            return None, False
        if stored is None or not stored.prompt.strip():
            logger.info("prompt_resolver.no_stored_template family=%s tier=static", family)
            return None, True
        return ResolvedPrompt(
            family=family,
            text=stored.prompt,
            tier="dynamic",
            model=stored.model,
            temperature=stored.temperature,
            max_tokens=stored.max_tokens,
            template_id=stored.id,
            version=stored.version,
        )
