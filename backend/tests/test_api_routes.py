"""HTTP surface tests with an in-memory database and stub provider client."""

from __future__ import annotations

import json
import unittest
from unittest import mock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from onboarding.db.dependencies import get_db
from onboarding.extraction.clients import ProviderResponse
from onboarding.extraction.errors import ProviderCallError
from onboarding.extraction.pipeline import ExtractionPipeline
from onboarding.extraction.prompt_resolver import PromptResolver, SqlTemplateStore
from onboarding.main import app
from onboarding.models import ExtractedItemRecord, LLMOperation
from onboarding.models.base import Base
from onboarding.routers.extraction import get_extraction_pipeline
from onboarding.services.extraction import get_prompt_resolver
from onboarding.services.operation_tracker import EventBuffer, OperationRecord, OperationTracker, SqlOperationStore


class _ScriptedClient:
    provider = "anthropic"
    display_name = "Claude"
    model = "stub-claude"

    def __init__(self) -> None:
        self.text = "{}"
        self.error: Exception | None = None
        self.prompts: list[str] = []

    def generate(self, prompt, *, media=None, mime_type=None, model=None, temperature=None, max_tokens=None):  # noqa: ANN001
        _ = media, mime_type, temperature, max_tokens
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return ProviderResponse(text=self.text, model=model or self.model, input_tokens=50, output_tokens=20)


class ApiRouteTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)
        self.resolver = PromptResolver(SqlTemplateStore(self.SessionLocal))
        self.tracker = OperationTracker(SqlOperationStore(self.SessionLocal), EventBuffer(max_size=1))
        self.client_stub = _ScriptedClient()
        pipeline = ExtractionPipeline(self.client_stub, self.resolver, self.tracker)

        def _get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_extraction_pipeline] = lambda: pipeline
        app.dependency_overrides[get_prompt_resolver] = lambda: self.resolver
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_extract_persists_items_with_review_status(self) -> None:
        self.client_stub.text = json.dumps(
            {
                "integrations": [
                    {
                        "systemName": "Salesforce",
                        "purpose": "Case data",
                        "accessType": "READ_WRITE",
                        "dataFields": ["caseId"],
                        "quote": "we use Salesforce",
                        "confidence": 0.92,
                    },
                    {
                        "systemName": "SAP",
                        "purpose": "Billing",
                        "accessType": "READ",
                        "dataFields": [],
                        "quote": "SAP maybe",
                        "confidence": 0.6,
                    },
                ]
            }
        )

        response = self.client.post(
            "/sessions/sess-1/extract",
            json={"content": "Tom: we use Salesforce", "session_phase": 4},
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["family"], "technical")
        self.assertEqual(data["pipeline_name"], "anthropic-extract-technical")
        self.assertTrue(data["validated"])
        self.assertEqual(data["items_created"], 2)
        self.assertEqual([item["status"] for item in data["items"]], ["APPROVED", "PENDING"])
        with self.SessionLocal() as db:
            rows = list(db.scalars(select(ExtractedItemRecord)).all())
        self.assertEqual({row.session_id for row in rows}, {"sess-1"})
        self.assertEqual({row.category for row in rows}, {"READ_WRITE", "READ"})

    def test_fallback_items_are_pending_and_unvalidated(self) -> None:
        self.client_stub.text = '{"risks": [{"risk": "Data quality", "confidence": 0.95}]}'

        data = self.client.post("/sessions/s/extract", json={"content": "text", "family": "signoff"}).json()["data"]

        self.assertTrue(data["fallback"])
        self.assertEqual(data["items"][0]["status"], "PENDING")
        self.assertFalse(data["items"][0]["validated"])

    def test_provider_errors_map_to_gateway_statuses(self) -> None:
        self.client_stub.error = ProviderCallError("HTTP 503 overloaded")
        retryable = self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})
        self.assertEqual(retryable.status_code, 503)
        self.assertIn("temporarily unavailable", retryable.json()["detail"])

        self.client_stub.error = ProviderCallError("HTTP 401 unauthorized")
        fatal = self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})
        self.assertEqual(fatal.status_code, 502)

    def test_unparseable_response_is_bad_gateway(self) -> None:
        self.client_stub.text = "no json here"

        response = self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})

        self.assertEqual(response.status_code, 502)

    def test_upload_uses_filename_mime_type(self) -> None:
        self.client_stub.text = '{"openItems": []}'

        response = self.client.post(
            "/sessions/s/extract/upload?family=signoff",
            files={"file": ("minutes.pdf", b"%PDF-1.7 minutes", "application/octet-stream")},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["content_type"], "document")
        self.assertEqual(response.json()["data"]["pipeline_name"], "anthropic-document-signoff")

    def test_stored_template_is_used_after_activation(self) -> None:
        self.client_stub.text = '{"kpis": []}'
        self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})

        created = self.client.post(
            "/prompt-templates",
            json={"family": "kickoff", "name": "Shorter kickoff", "prompt": "Custom kickoff for the {{content_noun}}"},
        )
        self.assertEqual(created.status_code, 201)
        template = created.json()["data"]
        self.assertEqual(template["version"], 1)
        self.assertFalse(template["is_active"])

        activated = self.client.post(f"/prompt-templates/{template['id']}/activate")
        self.assertTrue(activated.json()["data"]["is_active"])

        data = self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"}).json()["data"]
        self.assertEqual(data["prompt_tier"], "dynamic")
        self.assertTrue(self.client_stub.prompts[-1].startswith("Custom kickoff for the transcript"))

        second = self.client.post(
            "/prompt-templates",
            json={"family": "kickoff", "name": "v2", "prompt": "Second", "activate": True},
        ).json()["data"]
        listed = self.client.get("/prompt-templates", params={"family": "kickoff"}).json()["data"]
        self.assertEqual([(t["version"], t["is_active"]) for t in listed], [(2, True), (1, False)])
        self.assertEqual(second["version"], 2)

    def test_template_for_unknown_family_is_rejected(self) -> None:
        response = self.client.post("/prompt-templates", json={"family": "brainstorm", "name": "x", "prompt": "y"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.client.post("/prompt-templates/999/activate").status_code, 404)

    def test_observatory_lists_operations_stats_and_errors(self) -> None:
        self.client_stub.text = '{"kpis": []}'
        self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})
        self.client_stub.error = ProviderCallError("request timed out")
        self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})
        self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})

        operations = self.client.get("/observatory/operations").json()["data"]
        self.assertEqual(len(operations), 3)
        failed = self.client.get("/observatory/operations", params={"success": False}).json()["data"]
        self.assertEqual(len(failed), 2)

        stats = self.client.get("/observatory/pipelines").json()["data"]
        self.assertEqual(stats[0]["pipeline_name"], "anthropic-extract-kickoff")
        self.assertEqual((stats[0]["calls"], stats[0]["failures"]), (3, 2))
        self.assertEqual(stats[0]["input_tokens"], 50)

        errors = self.client.get("/observatory/errors").json()["data"]
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0]["count"], 2)

        resolved = self.client.patch(f"/observatory/errors/{errors[0]['id']}", json={"status": "RESOLVED"})
        self.assertEqual(resolved.json()["data"]["status"], "RESOLVED")
        self.client.post("/sessions/s/extract", json={"content": "text", "family": "kickoff"})
        self.assertEqual(len(self.client.get("/observatory/errors", params={"status": "NEW"}).json()["data"]), 1)
        self.assertEqual(self.client.patch("/observatory/errors/999", json={}).status_code, 404)
        self.assertEqual(self.client.get("/observatory/errors", params={"status": "closed"}).status_code, 422)

    def test_handover_completeness_and_transitions(self) -> None:
        profile = {
            "context": {
                "dealSummary": "Deal",
                "clientMotivation": "Backlog",
                "contractType": "SaaS",
                "contractValue": "100k",
                "salesOwner": "Jan",
            },
            "stakeholders": [{"name": "Anna"}],
        }

        completeness = self.client.post("/handover/completeness", json={"profile": profile}).json()["data"]
        self.assertEqual(completeness["score"], 50)
        self.assertFalse(completeness["can_submit"])

        blocked = self.client.post(
            "/handover/transition",
            json={"action": "submit", "current_status": "draft", "profile": profile},
        )
        self.assertEqual(blocked.status_code, 409)

        profile["specialNotes"] = {"internalNotes": "Pilot", "clientPreferences": ["Dutch"]}
        submitted = self.client.post(
            "/handover/transition",
            json={"action": "submit", "current_status": "changes_requested", "profile": profile},
        )
        self.assertEqual(submitted.status_code, 200)
        self.assertEqual(submitted.json()["data"]["status"], "submitted")
        self.assertEqual(submitted.json()["data"]["completeness"]["score"], 65)

        accepted = self.client.post(
            "/handover/transition",
            json={"action": "accept", "current_status": "submitted", "reviewer": "Sophie"},
        ).json()["data"]
        self.assertEqual((accepted["status"], accepted["reviewed_by"]), ("accepted", "Sophie"))


class LifespanTests(unittest.TestCase):
    def test_buffered_operations_are_flushed_on_shutdown(self) -> None:
        engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
        tracker = OperationTracker(SqlOperationStore(SessionLocal), EventBuffer(max_size=50))

        with mock.patch("onboarding.main.get_operation_tracker", return_value=tracker):
            with TestClient(app) as client:
                tracker.record_operation(OperationRecord(pipeline_name="gemini-extract-kickoff", model="m"))
                self.assertEqual(client.get("/health").status_code, 200)
                self.assertEqual(tracker.pending, 1)

        self.assertEqual(tracker.pending, 0)
        with SessionLocal() as db:
            self.assertEqual(len(db.scalars(select(LLMOperation)).all()), 1)
        Base.metadata.drop_all(engine)
        engine.dispose()


if __name__ == "__main__":
    unittest.main()
