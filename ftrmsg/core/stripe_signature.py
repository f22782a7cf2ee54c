import hmac
import hashlib
import time
import json
from typing import Dict, Any, List, Optional, Tuple
from fastapi import HTTPException, status, Request

from .config import settings
from .errors import SignatureVerificationError
from .logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"
SIGNATURE_SCHEME = "v1"


class StripeSignatureVerifier:
    """Stripe webhook signature verification (HMAC-SHA256 over `t.payload`)."""

    @staticmethod
    def compute_signature(payload: str, timestamp: str, secret: str) -> str:
        """
        Compute the hex HMAC-SHA256 digest Stripe places in the v1 field.

        Args:
            payload: Raw request body
            timestamp: Unix timestamp as string (the `t` field)
            secret: Endpoint signing secret (whsec_...)
        """
        signed_payload = f"{timestamp}.{payload}"
        return hmac.new(
            secret.encode('utf-8'),
            signed_payload.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    @staticmethod
    def build_header(payload: str, secret: str, timestamp: Optional[int] = None) -> str:
        """Build a Stripe-Signature header value, used by tests and scripts."""
        ts = str(int(time.time()) if timestamp is None else timestamp)
        signature = StripeSignatureVerifier.compute_signature(payload, ts, secret)
        return f"t={ts},{SIGNATURE_SCHEME}={signature}"

    @staticmethod
    def parse_header(header: str) -> Tuple[str, List[str]]:
        """Split a header into its timestamp and candidate v1 signatures."""
        timestamp = None
        signatures = []
        for item in header.split(","):
            key, sep, value = item.strip().partition("=")
            if not sep:
                continue
            if key == "t":
                timestamp = value
            elif key == SIGNATURE_SCHEME:
                signatures.append(value)

        if not timestamp or not signatures:
            raise SignatureVerificationError("Unable to extract timestamp and signatures from header")
        return timestamp, signatures

    @staticmethod
    def verify_signature(
        payload: str,
        signature_header: str,
        secret: str,
        tolerance_seconds: int = 300
    ) -> bool:
        """
        Verify a webhook signature with timestamp tolerance.

        Raises:
            SignatureVerificationError: If verification fails for any reason
        """
        if not secret:
            # Fail closed when the endpoint secret is not configured
            raise SignatureVerificationError("Webhook signing secret is not configured")

        timestamp, signatures = StripeSignatureVerifier.parse_header(signature_header)

        try:
            webhook_timestamp = int(timestamp)
        except (ValueError, TypeError):
            raise SignatureVerificationError("Invalid timestamp format")

        age_seconds = int(time.time()) - webhook_timestamp
        if tolerance_seconds and abs(age_seconds) > tolerance_seconds:
            logger.warning(
                "Webhook timestamp outside tolerance",
                age_seconds=age_seconds,
                tolerance_seconds=tolerance_seconds
            )
            raise SignatureVerificationError("Timestamp outside the tolerance zone")

        expected = StripeSignatureVerifier.compute_signature(payload, timestamp, secret)

        # Constant-time comparison against every candidate
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            logger.warning(
                "Webhook signature verification failed",
                received_prefix=signatures[0][:12] + "..."
            )
            raise SignatureVerificationError("No signatures found matching the expected signature")

        return True


async def verify_stripe_signature(request: Request) -> Dict[str, Any]:
    """
    FastAPI dependency verifying a Stripe event before any state is touched.

    Returns:
        Parsed event as dict

    Raises:
        HTTPException(400): missing header, bad signature or malformed body
    """
    signature_header = request.headers.get(SIGNATURE_HEADER)
    if not signature_header:
        logger.warning("Missing Stripe-Signature header")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    body = await request.body()
    payload_str = body.decode('utf-8')

    try:
        StripeSignatureVerifier.verify_signature(
            payload=payload_str,
            signature_header=signature_header,
            secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance_seconds=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        )
    except SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature"
        )

    try:
        event = json.loads(payload_str)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON payload: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    if not isinstance(event, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    logger.info(
        "Webhook signature verified and payload parsed",
        event_id=event.get("id"),
        event_type=event.get("type"),
        payload_size=len(payload_str)
    )
    return event
