"""
Unit tests for webhook signatures, the scheduler secret and bearer tokens.
"""
import time
import pytest
from fastapi import HTTPException
from jose import jwt

from ftrmsg.core.auth import AuthService
from ftrmsg.core.config import settings
from ftrmsg.core.cron_auth import is_valid_cron_secret
from ftrmsg.core.errors import SignatureVerificationError
from ftrmsg.core.stripe_signature import StripeSignatureVerifier


class TestStripeSignatureVerifier:
    """Test cases for StripeSignatureVerifier."""

    payload = '{"id": "evt_1", "type": "checkout.session.completed"}'
    secret = "whsec_test"

    def test_compute_signature_is_hex_sha256(self):
        signature = StripeSignatureVerifier.compute_signature(self.payload, "1640995200", self.secret)

        assert len(signature) == 64
        assert signature == StripeSignatureVerifier.compute_signature(self.payload, "1640995200", self.secret)

    def test_signature_depends_on_timestamp_and_secret(self):
        base = StripeSignatureVerifier.compute_signature(self.payload, "1640995200", self.secret)

        assert base != StripeSignatureVerifier.compute_signature(self.payload, "1640995201", self.secret)
        assert base != StripeSignatureVerifier.compute_signature(self.payload, "1640995200", "whsec_other")

    def test_verify_valid_header(self):
        header = StripeSignatureVerifier.build_header(self.payload, self.secret)

        assert StripeSignatureVerifier.verify_signature(self.payload, header, self.secret)

    def test_any_matching_candidate_is_accepted(self):
        """Stripe sends several v1 values while a secret is being rolled."""
        ts = str(int(time.time()))
        good = StripeSignatureVerifier.compute_signature(self.payload, ts, self.secret)
        header = f"t={ts},v1={'0' * 64},v1={good},v0=legacy"

        assert StripeSignatureVerifier.verify_signature(self.payload, header, self.secret)

    def test_tampered_payload_rejected(self):
        header = StripeSignatureVerifier.build_header(self.payload, self.secret)

        with pytest.raises(SignatureVerificationError, match="No signatures found"):
            StripeSignatureVerifier.verify_signature(self.payload + " ", header, self.secret)

    def test_old_timestamp_rejected(self):
        header = StripeSignatureVerifier.build_header(self.payload, self.secret, timestamp=int(time.time()) - 600)

        with pytest.raises(SignatureVerificationError, match="tolerance"):
            StripeSignatureVerifier.verify_signature(self.payload, header, self.secret, tolerance_seconds=300)

    def test_malformed_header_rejected(self):
        with pytest.raises(SignatureVerificationError, match="Unable to extract"):
            StripeSignatureVerifier.verify_signature(self.payload, "garbage", self.secret)

    def test_unset_secret_fails_closed(self):
        header = StripeSignatureVerifier.build_header(self.payload, "")

        with pytest.raises(SignatureVerificationError, match="not configured"):
            StripeSignatureVerifier.verify_signature(self.payload, header, "")


class TestCronSecret:
    """Test cases for the scheduler shared secret."""

    def test_matching_secret(self):
        assert is_valid_cron_secret("s3cret", expected="s3cret")

    def test_wrong_or_missing_secret(self):
        assert not is_valid_cron_secret("guess", expected="s3cret")
        assert not is_valid_cron_secret(None, expected="s3cret")
        assert not is_valid_cron_secret("", expected="s3cret")

    def test_unset_secret_rejects_everyone(self):
        assert not is_valid_cron_secret("", expected="")
        assert not is_valid_cron_secret("anything", expected="")


class TestAuthService:
    """Test cases for bearer token verification."""

    def token(self, **claims):
        payload = {"sub": "3f1c2f9e-6a0b-4f3e-9d55-0c6f7f1a2b3c", "aud": settings.JWT_AUDIENCE, **claims}
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    def test_valid_token(self):
        payload = AuthService.verify_token(self.token())

        assert payload["sub"] == "3f1c2f9e-6a0b-4f3e-9d55-0c6f7f1a2b3c"

    def test_expired_token(self):
        with pytest.raises(HTTPException) as exc_info:
            AuthService.verify_token(self.token(exp=int(time.time()) - 60))

        assert exc_info.value.status_code == 401

    def test_wrong_audience(self):
        with pytest.raises(HTTPException):
            AuthService.verify_token(self.token(aud="someone-else"))
