"""
HTTP-level tests for the scheduler, webhook and message endpoints.
"""
import json
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from ftrmsg.api import deps
from ftrmsg.core.auth import get_current_profile
from ftrmsg.core.config import settings
from ftrmsg.core.errors import (
    FreeTierExhausted,
    PaymentRecordError,
    SagaFailed,
    SelectionError,
    ValidationError,
)
from ftrmsg.core.stripe_signature import StripeSignatureVerifier
from ftrmsg.main import app
from ftrmsg.schemas.payment import WebhookAck
from ftrmsg.services.delivery_service import BatchResult, BatchSkipped

CRON_SECRET = "cron-test-secret"
WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", CRON_SECRET)
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def cron_headers():
    return {"x-cron-secret": CRON_SECRET}


def override(dependency, service):
    app.dependency_overrides[dependency] = lambda: service
    return service


class TestDeliveryEndpoints:
    """Test cases for /v1/delivery."""

    def test_run_requires_secret(self, client):
        service = override(deps.get_delivery_service, MagicMock(run_batch=AsyncMock()))

        response = client.post("/v1/delivery/run")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        service.run_batch.assert_not_called()

    def test_run_rejects_wrong_secret(self, client):
        override(deps.get_delivery_service, MagicMock(run_batch=AsyncMock()))

        response = client.post("/v1/delivery/run", headers={"x-cron-secret": "guess"})

        assert response.status_code == 401

    def test_run_returns_counts(self, client, cron_headers):
        result = BatchResult(processed=3, delivered=2, failed=1)
        override(deps.get_delivery_service, MagicMock(run_batch=AsyncMock(return_value=result)))

        response = client.post("/v1/delivery/run", headers=cron_headers)

        assert response.status_code == 200
        assert response.json() == {"processed": 3, "delivered": 2, "failed": 1, "stoppedEarly": False}

    def test_run_skipped_when_locked(self, client, cron_headers):
        override(deps.get_delivery_service, MagicMock(run_batch=AsyncMock(return_value=BatchSkipped())))

        response = client.post("/v1/delivery/run", headers=cron_headers)

        assert response.status_code == 200
        assert response.json() == {"skipped": True, "reason": "concurrent execution"}

    def test_run_failure_is_500(self, client, cron_headers):
        override(
            deps.get_delivery_service,
            MagicMock(run_batch=AsyncMock(side_effect=SelectionError("Failed to query messages")))
        )

        response = client.post("/v1/delivery/run", headers=cron_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_status(self, client, cron_headers):
        status = {
            "lock_held": False,
            "locked_at": None,
            "due_pending": 4,
            "batch_size": 30,
            "timeout_seconds": 45.0,
        }
        override(deps.get_delivery_service, MagicMock(get_status=AsyncMock(return_value=status)))

        response = client.get("/v1/delivery/status", headers=cron_headers)

        assert response.status_code == 200
        assert response.json()["due_pending"] == 4


class TestMaintenanceEndpoints:
    """Test cases for /v1/maintenance."""

    def test_cleanup_logs(self, client, cron_headers):
        override(deps.get_retention_service, MagicMock(cleanup_delivery_logs=AsyncMock(return_value=12)))

        response = client.post("/v1/maintenance/cleanup-logs", headers=cron_headers)

        assert response.status_code == 200
        assert response.json() == {"deleted": 12}

    def test_reconcile(self, client, cron_headers):
        override(deps.get_reconciliation_service, MagicMock(reconcile=AsyncMock(return_value=2)))

        response = client.post("/v1/maintenance/reconcile", headers=cron_headers)

        assert response.json() == {"repaired": 2}

    def test_cleanup_requires_secret(self, client):
        override(deps.get_retention_service, MagicMock(cleanup_delivery_logs=AsyncMock()))

        assert client.post("/v1/maintenance/cleanup-logs").status_code == 401


class TestStripeWebhookEndpoint:
    """Test cases for /v1/webhooks/stripe."""

    def signed(self, event, secret=WEBHOOK_SECRET):
        payload = json.dumps(event)
        return payload, {
            "Stripe-Signature": StripeSignatureVerifier.build_header(payload, secret),
            "Content-Type": "application/json",
        }

    def test_valid_event(self, client):
        service = override(
            deps.get_payment_webhook_service,
            MagicMock(handle_event=AsyncMock(return_value=WebhookAck(status="completed")))
        )
        event = {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {}}}
        payload, headers = self.signed(event)

        response = client.post("/v1/webhooks/stripe", content=payload, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "completed"}
        service.handle_event.assert_awaited_once_with(event)

    def test_bad_signature_rejected_before_processing(self, client):
        service = override(deps.get_payment_webhook_service, MagicMock(handle_event=AsyncMock()))
        payload, headers = self.signed({"id": "evt_1"}, secret="whsec_other")

        response = client.post("/v1/webhooks/stripe", content=payload, headers=headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid signature"}
        service.handle_event.assert_not_called()

    def test_missing_signature(self, client):
        override(deps.get_payment_webhook_service, MagicMock(handle_event=AsyncMock()))

        response = client.post("/v1/webhooks/stripe", content="{}")

        assert response.status_code == 400

    def test_missing_user_id_is_400(self, client):
        override(
            deps.get_payment_webhook_service,
            MagicMock(handle_event=AsyncMock(side_effect=ValidationError("Missing userId in metadata")))
        )
        payload, headers = self.signed({"type": "checkout.session.completed"})

        response = client.post("/v1/webhooks/stripe", content=payload, headers=headers)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing userId in metadata"}

    def test_record_failure_is_500_for_retry(self, client):
        override(
            deps.get_payment_webhook_service,
            MagicMock(handle_event=AsyncMock(side_effect=PaymentRecordError("Failed to record payment")))
        )
        payload, headers = self.signed({"type": "checkout.session.completed"})

        response = client.post("/v1/webhooks/stripe", content=payload, headers=headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to record payment"}


class TestMessageEndpoints:
    """Test cases for /v1/messages."""

    @pytest.fixture
    def signed_in(self, free_profile):
        app.dependency_overrides[get_current_profile] = lambda: free_profile
        return free_profile

    def body(self):
        return {
            "message_text": "See you next year",
            "scheduled_date": "2099-01-01",
            "delivery_email": "me@example.com",
        }

    def test_create_message(self, client, signed_in, sample_message):
        sample_message.user_id = signed_in.id
        override(deps.get_message_service, MagicMock(create_message=AsyncMock(return_value=sample_message)))

        response = client.post("/v1/messages/", json=self.body())

        assert response.status_code == 201
        assert response.json()["id"] == str(sample_message.id)
        assert response.json()["status"] == "pending"

    def test_invalid_email_rejected_by_schema(self, client, signed_in):
        service = override(deps.get_message_service, MagicMock(create_message=AsyncMock()))
        body = {**self.body(), "delivery_email": "nobody"}

        response = client.post("/v1/messages/", json=body)

        assert response.status_code == 422
        service.create_message.assert_not_called()

    def test_free_tier_exhausted_is_403(self, client, signed_in):
        override(
            deps.get_message_service,
            MagicMock(create_message=AsyncMock(side_effect=FreeTierExhausted("already used")))
        )

        response = client.post("/v1/messages/", json=self.body())

        assert response.status_code == 403
        assert response.json()["error"] == "already used"

    def test_lost_free_message_race_is_403(self, client, signed_in):
        cause = FreeTierExhausted("already used")
        override(
            deps.get_message_service,
            MagicMock(create_message=AsyncMock(
                side_effect=SagaFailed("create_message failed", step="consume_free_message", cause=cause)
            ))
        )

        response = client.post("/v1/messages/", json=self.body())

        assert response.status_code == 403

    def test_rolled_back_create_is_500(self, client, signed_in):
        override(
            deps.get_message_service,
            MagicMock(create_message=AsyncMock(
                side_effect=SagaFailed("create_message failed", step="apply_storage_delta", cause=Exception("x"))
            ))
        )

        response = client.post("/v1/messages/", json=self.body())

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_cancel_missing_message_is_404(self, client, signed_in, sample_message):
        override(
            deps.get_message_service,
            MagicMock(cancel_message=AsyncMock(side_effect=ValidationError("Message not found or cannot be cancelled")))
        )

        response = client.delete(f"/v1/messages/{sample_message.id}")

        assert response.status_code == 404

    def test_upload_video(self, client, pro_profile):
        app.dependency_overrides[get_current_profile] = lambda: pro_profile
        path = f"{pro_profile.id}/clip.mp4"
        override(deps.get_message_service, MagicMock(upload_video=AsyncMock(return_value=path)))

        response = client.post(
            "/v1/messages/videos",
            files={"file": ("clip.mp4", b"\x00" * 64, "video/mp4")},
        )

        assert response.status_code == 201
        assert response.json() == {"video_storage_path": path, "video_size_bytes": 64}

    def test_requires_bearer_token(self, client):
        response = client.get("/v1/messages/")

        assert response.status_code in (401, 403)


class TestHealthEndpoints:
    """Test cases for /v1/health."""

    @pytest.fixture
    def db_session(self):
        from ftrmsg.core.database import get_async_session

        session = AsyncMock()
        session.execute = AsyncMock(return_value=MagicMock(scalars=MagicMock(
            return_value=MagicMock(first=MagicMock(return_value=None))
        )))
        app.dependency_overrides[get_async_session] = lambda: session
        return session

    def test_basic(self, client):
        response = client.get("/v1/health/")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_redis_down_is_degraded(self, client, db_session, monkeypatch):
        from ftrmsg.core.redis_client import redis_client

        monkeypatch.setattr(redis_client, "ping", AsyncMock(side_effect=ConnectionError("refused")))

        response = client.get("/v1/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["checks"]["batch_lock"] == {"held": False}

    def test_detailed_database_down_is_503(self, client, db_session, monkeypatch):
        from ftrmsg.core.redis_client import redis_client

        monkeypatch.setattr(redis_client, "ping", AsyncMock(return_value=True))
        db_session.execute.side_effect = Exception("connection refused")

        response = client.get("/v1/health/detailed")

        assert response.status_code == 503
        assert response.json()["checks"]["database"]["status"] == "unhealthy"
