"""Tests for weighted completeness scoring and the handover workflow."""

from __future__ import annotations

import unittest

from onboarding.services.completeness import SectionConfig, compute_completeness, is_filled
from onboarding.services.handover import (
    SALES_HANDOVER_SECTIONS,
    HandoverTransitionError,
    can_submit,
    handover_completeness,
    transition_handover,
)

_FULL_CONTEXT = {
    "dealSummary": "Two-year automation deal",
    "clientMotivation": "Reduce backlog",
    "contractType": "Subscription",
    "contractValue": "EUR 120k",
    "salesOwner": "Jan",
}
_FULL_NOTES = {
    "clientPreferences": ["Dutch first"],
    "internalNotes": "Pilot with one team",
    "promisedCapabilities": [{"capability": "Address changes"}],
    "knownConstraints": ["No write access to billing"],
}


def _profile(**overrides) -> dict:  # noqa: ANN003
    profile = {
        "context": {key: "" for key in _FULL_CONTEXT},
        "specialNotes": {"clientPreferences": [], "internalNotes": "", "promisedCapabilities": [], "knownConstraints": []},
        "stakeholders": [],
        "deadlines": [],
        "watchOuts": [],
    }
    profile.update(overrides)
    return profile


class CompletenessTests(unittest.TestCase):
    def test_three_of_five_weighted_sections_filled(self) -> None:
        profile = _profile(
            context=_FULL_CONTEXT,
            specialNotes=_FULL_NOTES,
            stakeholders=[{"name": "Anna", "role": "Sponsor"}],
        )

        report = handover_completeness(profile)

        self.assertEqual([section.weight for section in SALES_HANDOVER_SECTIONS], [30, 30, 20, 10, 10])
        self.assertEqual(report.score, 80)

    def test_partial_sections_round_half_up(self) -> None:
        sections = [SectionConfig("a", 1, ("x", "y")), SectionConfig("b", 1, ("x", "y", "z", "w"))]

        report = compute_completeness({"a": {"x": "1"}, "b": {"x": "1"}}, sections)

        # (0.5 + 0.25) / 2 = 37.5
        self.assertEqual(report.score, 38)

    def test_empty_profile_scores_zero(self) -> None:
        self.assertEqual(handover_completeness(None).score, 0)
        self.assertEqual(handover_completeness(_profile()).score, 0)
        self.assertEqual(compute_completeness({"a": "x"}, []).score, 0)

    def test_scores_are_integers_in_range(self) -> None:
        profile = _profile(
            context=_FULL_CONTEXT,
            specialNotes=_FULL_NOTES,
            stakeholders=[{"name": "Anna"}],
            deadlines=[{"date": "2026-11-01"}],
            watchOuts=[{"description": "Tight deadline"}],
        )

        report = handover_completeness(profile)

        self.assertIsInstance(report.score, int)
        self.assertEqual(report.score, 100)

    def test_whitespace_and_nested_empties_do_not_count(self) -> None:
        self.assertFalse(is_filled("   "))
        self.assertFalse(is_filled([{"name": ""}]))
        self.assertTrue(is_filled(0))
        self.assertTrue(is_filled(False))


class HandoverTransitionTests(unittest.TestCase):
    def test_submit_blocked_below_gate(self) -> None:
        profile = _profile(context=_FULL_CONTEXT, stakeholders=[{"name": "Anna"}])  # 50

        self.assertFalse(can_submit(profile, gate=60))
        with self.assertRaises(HandoverTransitionError) as ctx:
            transition_handover(profile, "draft", "submit", gate=60)
        self.assertIn("50%", str(ctx.exception))

    def test_submit_allowed_at_gate_from_draft_or_changes_requested(self) -> None:
        profile = _profile(context=_FULL_CONTEXT, specialNotes=_FULL_NOTES)  # 60

        self.assertEqual(transition_handover(profile, "draft", "submit", gate=60).status, "submitted")
        self.assertEqual(transition_handover(profile, "changes_requested", "submit", gate=60).status, "submitted")
        self.assertEqual(transition_handover(profile, None, "submit", gate=60).previous_status, "draft")

    def test_review_actions_need_submitted_state(self) -> None:
        accepted = transition_handover(_profile(), "submitted", "accept", reviewer="Sophie", comment="Looks good")
        self.assertEqual(accepted.status, "accepted")
        self.assertEqual(accepted.reviewed_by, "Sophie")
        self.assertEqual(accepted.review_comment, "Looks good")

        changes = transition_handover(_profile(), "submitted", "request_changes")
        self.assertEqual(changes.status, "changes_requested")
        self.assertEqual(changes.review_comment, "")

        for status in ("draft", "accepted", "changes_requested"):
            with self.assertRaises(HandoverTransitionError):
                transition_handover(_profile(), status, "accept")

    def test_cannot_resubmit_submitted_handover(self) -> None:
        profile = _profile(context=_FULL_CONTEXT, specialNotes=_FULL_NOTES, stakeholders=[{"name": "Anna"}])

        with self.assertRaises(HandoverTransitionError):
            transition_handover(profile, "submitted", "submit", gate=60)

    def test_unknown_action_is_rejected(self) -> None:
        with self.assertRaises(HandoverTransitionError):
            transition_handover(_profile(), "draft", "archive")


if __name__ == "__main__":
    unittest.main()
