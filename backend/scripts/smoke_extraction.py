"""Run a real extraction call against a short demo kickoff transcript.

Nothing is written to the database.

Usage (from repo root):
    python backend/scripts/smoke_extraction.py [family]

Usage (from backend/):
    python scripts/smoke_extraction.py [family]
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from onboarding.config import get_settings
from onboarding.extraction.clients import build_client_from_settings
from onboarding.extraction.pipeline import ExtractionPipeline
from onboarding.extraction.prompt_resolver import PromptResolver

_DEMO_TRANSCRIPT = """\
[00:00:12] Marieke de Vries (Head of Customer Service): Thanks for joining. We get about 4,000 address
change requests a month, and January is always the peak because of moves around the new year.
[00:01:05] Marieke de Vries: Right now every request takes an agent roughly eight minutes. We want the
digital employee, we are calling her Eva, to handle the simple ones end to end.
[00:02:40] Tom Bakker (IT Lead, tom.bakker@example.com): Eva would read from and write to the CRM. The
billing system is read-only for her.
[00:03:15] Marieke de Vries: Success for us is 60 percent automation within three months, and customer
satisfaction must stay above 8.
[00:04:02] Marieke de Vries: Anything involving a deceased customer always goes to a human.
"""


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    family = sys.argv[1] if len(sys.argv) > 1 else "kickoff"
    settings = get_settings()
    pipeline = ExtractionPipeline(
        build_client_from_settings(settings),
        PromptResolver(),
        default_temperature=settings.default_temperature,
        default_max_tokens=settings.default_max_tokens,
    )
    result = pipeline.extract(_DEMO_TRANSCRIPT, "transcript", family)
    print(
        json.dumps(
            {
                "family": result.family,
                "pipeline_name": result.pipeline_name,
                "model": result.model,
                "validated": result.validated,
                "prompt_tier": result.prompt_tier,
                "input_tokens": result.input_tokens,
                "output_tokens": result.output_tokens,
                "latency_ms": result.latency_ms,
                "dropped_item_count": result.dropped_item_count,
                "model_error": result.model_error,
                "model_warnings": result.model_warnings,
                "items": [asdict(item) for item in result.items],
            },
            indent=2,
            ensure_ascii=False,
        )
    )


if __name__ == "__main__":
    main()
