import hmac
import hashlib
import json
from datetime import timezone

PAYLOAD_FIELDS = ("event_type", "note_id", "summary", "actor", "agent_id", "timestamp")

def to_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def build_payload(event) -> str:
    """
    Serialize a domain event to the canonical JSON body that gets signed.
    
    Keys are sorted and separators are compact so a receiver re-serializing
    the same fields reproduces the exact bytes. The timestamp is always
    written in UTC with an explicit offset; naive values are taken as UTC.
    
    Args:
        event: A DomainEvent
        
    Returns:
        Canonical JSON string
    """
    body = {field: getattr(event, field) for field in PAYLOAD_FIELDS}
    body["timestamp"] = to_utc(event.timestamp).isoformat()
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

def generate_signature(secret: str, payload: str) -> str:
    """
    Generate a signature for the webhook payload.
    
    Args:
        secret: The webhook secret
        payload: The JSON payload as a string
        
    Returns:
        Hex-encoded HMAC-SHA256 signature
    """
    signature = hmac.new(
        key=secret.encode('utf-8'),
        msg=payload.encode('utf-8'),
        digestmod=hashlib.sha256
    ).hexdigest()
    
    return signature

def signature_header(secret: str, payload: str) -> str:
    return f"sha256={generate_signature(secret, payload)}"

def verify_signature(payload: str, secret: str, signature: str) -> bool:
    """
    Verify that a signature matches the expected value.
    
    Accepts the bare hex digest or the "sha256=<hex>" header form.
    
    Args:
        payload: The raw payload as a string
        secret: The webhook secret
        signature: The provided signature to verify
        
    Returns:
        Boolean indicating if signature is valid
    """
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected_signature = generate_signature(secret, payload)
    return hmac.compare_digest(expected_signature, signature)
