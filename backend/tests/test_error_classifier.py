"""Unit tests for provider error classification."""

from __future__ import annotations

import re
import unittest

from onboarding.extraction.errors import ErrorCategory, ProviderCallError, classify_provider_error, sanitize_error_message

_URL_OR_KEY = re.compile(r"https?://|api[_-]?key\s*[=:]|key=|token=", re.IGNORECASE)


class ClassifyProviderErrorTests(unittest.TestCase):
    def test_rate_limit_is_retryable_and_credential_free(self) -> None:
        error = ProviderCallError(
            "Gemini HTTP 429: quota exceeded for https://generativelanguage.googleapis.com/v1beta?key=AIzaSECRET"
        )

        classified = classify_provider_error(error, "Gemini")

        self.assertTrue(classified.retryable)
        self.assertEqual(classified.category, ErrorCategory.RATE_LIMIT)
        self.assertIn("Gemini", classified.user_message)
        self.assertIsNone(_URL_OR_KEY.search(classified.user_message))
        self.assertNotIn("AIzaSECRET", classified.user_message)

    def test_priority_order_prefers_rate_limit_over_auth(self) -> None:
        classified = classify_provider_error(RuntimeError("403 quota exhausted"))

        self.assertEqual(classified.category, ErrorCategory.RATE_LIMIT)

    def test_authentication_is_not_retryable(self) -> None:
        classified = classify_provider_error(RuntimeError("HTTP 401 Unauthorized: invalid api key"))

        self.assertFalse(classified.retryable)
        self.assertEqual(classified.category, ErrorCategory.AUTHENTICATION)

    def test_timeout_and_unavailable_are_retryable(self) -> None:
        timeout = classify_provider_error(TimeoutError("The read operation timed out"))
        deadline = classify_provider_error(RuntimeError("DEADLINE_EXCEEDED"))
        unavailable = classify_provider_error(RuntimeError("HTTP 503: Service Unavailable"))

        self.assertEqual(timeout.category, ErrorCategory.TIMEOUT)
        self.assertEqual(deadline.category, ErrorCategory.TIMEOUT)
        self.assertTrue(timeout.retryable)
        self.assertEqual(unavailable.category, ErrorCategory.UNAVAILABLE)
        self.assertTrue(unavailable.retryable)

    def test_status_codes_inside_larger_numbers_do_not_match(self) -> None:
        classified = classify_provider_error(ProviderCallError("Claude HTTP 400: max_tokens 1500 exceeds limit"), "Claude")

        self.assertFalse(classified.retryable)
        self.assertEqual(classified.category, ErrorCategory.UNCLASSIFIED)
        self.assertIn("1500", classified.user_message)

    def test_token_count_containing_429_is_not_a_rate_limit(self) -> None:
        classified = classify_provider_error(ProviderCallError("HTTP 400: prompt is 14290 tokens"))

        self.assertEqual(classified.category, ErrorCategory.UNCLASSIFIED)

    def test_bad_gateway_is_retryable(self) -> None:
        classified = classify_provider_error(ProviderCallError("Gemini HTTP 502: upstream reset"))

        self.assertEqual(classified.category, ErrorCategory.UNAVAILABLE)
        self.assertTrue(classified.retryable)

    def test_matching_is_case_insensitive(self) -> None:
        self.assertEqual(classify_provider_error(RuntimeError("RATE LIMIT hit")).category, ErrorCategory.RATE_LIMIT)

    def test_unclassified_message_is_redacted_and_truncated(self) -> None:
        raw = "weird failure api_key=sk-live-123 at https://internal.example.com/path " + "x" * 400

        classified = classify_provider_error(ValueError(raw), "Claude")

        self.assertFalse(classified.retryable)
        self.assertEqual(classified.category, ErrorCategory.UNCLASSIFIED)
        self.assertTrue(classified.user_message.startswith("Claude processing error: "))
        self.assertNotIn("sk-live-123", classified.user_message)
        self.assertNotIn("internal.example.com", classified.user_message)
        detail = classified.user_message.removeprefix("Claude processing error: ")
        self.assertEqual(len(detail), 200)
        self.assertTrue(detail.endswith("..."))

    def test_non_exception_values_get_generic_message(self) -> None:
        for value in ("429 as a plain string", None, {"code": 500}):
            classified = classify_provider_error(value)
            self.assertFalse(classified.retryable)
            self.assertEqual(classified.category, ErrorCategory.UNCLASSIFIED)
            self.assertIn("unexpected error", classified.user_message)

    def test_sanitize_keeps_short_messages(self) -> None:
        self.assertEqual(sanitize_error_message("bad input"), "bad input")
        self.assertEqual(sanitize_error_message(""), "")


if __name__ == "__main__":
    unittest.main()
