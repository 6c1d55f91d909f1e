"""
Security utilities: response headers, input sanitization, payment-return detection.
"""
import re

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(self)",
}

MAX_TRANSCRIPT_LENGTH = 20000

_CHECKOUT_SESSION_RE = re.compile(r"^cs_[A-Za-z0-9_]{1,250}$")


# ── Input sanitization ──

def sanitize_text(text: str, max_length: int = MAX_TRANSCRIPT_LENGTH) -> str:
    """Strip control characters and enforce length limit."""
    if not text:
        return ""
    text = text[:max_length]
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", text)
    return text.strip()


# ── Payment return ──

def valid_session_id(session_id: str) -> bool:
    """Checkout session ids look like cs_test_a1B2... / cs_live_..."""
    return bool(session_id) and bool(_CHECKOUT_SESSION_RE.match(session_id.strip()))


def is_payment_return(query) -> bool:
    """True when the query string carries the payment-success marker."""
    if not query:
        return False
    if valid_session_id(query.get("session_id") or ""):
        return True
    return (query.get("payment") or "").strip().lower() == "success"
