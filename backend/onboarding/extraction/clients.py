"""Generative model clients over stdlib HTTP, plus media type helpers."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from onboarding.config import Settings, get_settings
from onboarding.extraction.errors import ExtractionError, ProviderCallError

_MIME_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
    "wav": "audio/wav",
    "webm": "audio/webm",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def mime_type_for_filename(filename: str) -> str:
    suffix = PurePath(filename or "").suffix.lower().lstrip(".")
    return _MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


def content_type_for_mime(mime_type: str | None) -> str:
    """Map a MIME type to the pipeline's content type."""

    mime = (mime_type or "").lower()
    if mime.startswith("audio/"):
        return "audio"
    if mime.startswith("video/"):
        return "video"
    if mime.startswith("text/"):
        return "transcript"
    return "document"


@dataclass(slots=True)
class ProviderResponse:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class GenerativeClient(Protocol):
    """Protocol for pluggable model clients used by the pipeline."""

    provider: str
    display_name: str
    model: str

    def generate(
        self,
        prompt: str,
        *,
        media: bytes | None = None,
        mime_type: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ProviderResponse:
        """Send one prompt, with optional inline media, and return the raw text."""


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: int, label: str) -> dict[str, Any]:
    req = urllib_request.Request(
        url=url,
        data=json.dumps(payload).encode("utf-8"),
        method="POST",
        headers={"Content-Type": "application/json", **headers},
    )
    try:
        with urllib_request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except urllib_error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise ProviderCallError(f"{label} HTTP {exc.code}: {detail}") from exc
    except urllib_error.URLError as exc:
        raise ProviderCallError(f"{label} request failed: {exc.reason}") from exc
    except TimeoutError as exc:
        raise ProviderCallError(f"{label} request timed out after {timeout}s") from exc
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProviderCallError(f"{label} returned a non-JSON HTTP body") from exc
    if not isinstance(decoded, dict):
        raise ProviderCallError(f"{label} returned an unexpected HTTP body")
    return decoded


def _token_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))


@dataclass(slots=True)
class GeminiClient:
    """Gemini ``generateContent`` client. Media travels as base64 inline data."""

    api_key: str
    model: str
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: int = 300
    provider: str = "gemini"
    display_name: str = "Gemini"

    def generate(
        self,
        prompt: str,
        *,
        media: bytes | None = None,
        mime_type: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ProviderResponse:
        model_name = model or self.model
        parts: list[dict[str, Any]] = []
        if media is not None:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": mime_type or DEFAULT_MIME_TYPE,
                        "data": base64.b64encode(media).decode("ascii"),
                    }
                }
            )
        parts.append({"text": prompt})
        generation_config: dict[str, Any] = {}
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_tokens is not None:
            generation_config["maxOutputTokens"] = max_tokens
        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if generation_config:
            payload["generationConfig"] = generation_config

        url = f"{self.base_url.rstrip('/')}/models/{urllib_parse.quote(model_name)}:generateContent"
        decoded = _post_json(url, payload, {"x-goog-api-key": self.api_key}, self.timeout_seconds, "Gemini")

        candidates = decoded.get("candidates") or []
        if not candidates:
            feedback = decoded.get("promptFeedback") or {}
            raise ProviderCallError(f"Gemini returned no candidates: {feedback.get('blockReason', 'unknown reason')}")
        content = candidates[0].get("content") or {}
        text = "".join(
            part.get("text", "") for part in content.get("parts") or [] if isinstance(part, dict)
        )
        usage = decoded.get("usageMetadata") or {}
        return ProviderResponse(
            text=text,
            model=str(decoded.get("modelVersion") or model_name),
            input_tokens=_token_count(usage.get("promptTokenCount")),
            output_tokens=_token_count(usage.get("candidatesTokenCount")),
        )


@dataclass(slots=True)
class AnthropicClient:
    """Anthropic Messages client. Accepts text and PDF documents only."""

    api_key: str
    model: str
    base_url: str = "https://api.anthropic.com"
    timeout_seconds: int = 300
    default_max_tokens: int = 16384
    api_version: str = "2023-06-01"
    provider: str = "anthropic"
    display_name: str = "Claude"

    def generate(
        self,
        prompt: str,
        *,
        media: bytes | None = None,
        mime_type: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ProviderResponse:
        model_name = model or self.model
        blocks: list[dict[str, Any]] = []
        if media is not None:
            if mime_type != "application/pdf":
                raise ProviderCallError(f"Claude does not accept {mime_type or DEFAULT_MIME_TYPE} attachments")
            blocks.append(
                {
                    "type": "document",
                    "source": {
                        "type": "base64",
                        "media_type": mime_type,
                        "data": base64.b64encode(media).decode("ascii"),
                    },
                }
            )
        blocks.append({"type": "text", "text": prompt})
        payload: dict[str, Any] = {
            "model": model_name,
            "max_tokens": max_tokens or self.default_max_tokens,
            "messages": [{"role": "user", "content": blocks}],
        }
        if temperature is not None:
            payload["temperature"] = temperature

        url = f"{self.base_url.rstrip('/')}/v1/messages"
        decoded = _post_json(
            url,
            payload,
            {"x-api-key": self.api_key, "anthropic-version": self.api_version},
            self.timeout_seconds,
            "Claude",
        )
        text = "".join(
            block.get("text", "")
            for block in decoded.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = decoded.get("usage") or {}
        return ProviderResponse(
            text=text,
            model=str(decoded.get("model") or model_name),
            input_tokens=_token_count(usage.get("input_tokens")),
            output_tokens=_token_count(usage.get("output_tokens")),
        )


def build_client_from_settings(settings: Settings | None = None) -> GenerativeClient:
    settings = settings or get_settings()
    if settings.extraction_provider == "anthropic":
        if not settings.anthropic_api_key:
            raise ExtractionError("ANTHROPIC_API_KEY is not configured")
        return AnthropicClient(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
            default_max_tokens=settings.default_max_tokens,
        )
    if not settings.gemini_api_key:
        raise ExtractionError("GEMINI_API_KEY is not configured")
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )
