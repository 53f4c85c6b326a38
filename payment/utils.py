# payment/utils.py
import hashlib
import hmac
import time


class SignatureVerificationError(Exception):
    pass


def parse_signature_header(sig_header):
    """Split a ``t=<ts>,v1=<sig>[,v1=<sig>]`` header into (timestamp, [signatures])"""
    timestamp = None
    signatures = []
    for item in sig_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


def compute_signature(payload, secret, timestamp):
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(bytes(secret, "utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_stripe_signature(payload, sig_header, secret, tolerance=300, now=None):
    """
    Verify a Stripe webhook signature.

    The signature is an HMAC-SHA256 of "<timestamp>.<raw body>" keyed with the
    endpoint signing secret. Raises SignatureVerificationError on any mismatch
    or when the timestamp is older/newer than ``tolerance`` seconds.
    """
    if not sig_header:
        raise SignatureVerificationError("Missing Stripe-Signature header")
    if not secret:
        raise SignatureVerificationError("Webhook signing secret is not configured")

    timestamp, signatures = parse_signature_header(sig_header)
    if not timestamp or not signatures:
        raise SignatureVerificationError("Malformed Stripe-Signature header")

    try:
        signed_at = int(timestamp)
    except ValueError:
        raise SignatureVerificationError("Invalid signature timestamp")

    expected = compute_signature(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, signature) for signature in signatures):
        raise SignatureVerificationError("No signature matches the payload")

    now = time.time() if now is None else now
    if tolerance and abs(now - signed_at) > tolerance:
        raise SignatureVerificationError("Signature timestamp outside the tolerance zone")

    return True
