import re

_WHATSAPP_PREFIX = "whatsapp:"
_NON_DIAL_CHARS = re.compile(r"[^\d+]")


def normalize_identity(identity: str) -> str:
    """Reduce a transport address to its canonical form.

    ``"whatsapp:+54 9 11 2345-6789"`` and ``"+5491123456789"`` map to the
    same value, so every delivery path for one phone shares one session.
    """
    value = identity.strip()
    if value.lower().startswith(_WHATSAPP_PREFIX):
        value = value[len(_WHATSAPP_PREFIX):]
    normalized = _NON_DIAL_CHARS.sub("", value)
    if not normalized.strip("+"):
        raise ValueError(f"Identity has no dialable digits: {identity!r}")
    return normalized


def session_key(identity: str) -> str:
    return f"wa:session:{normalize_identity(identity)}"


def seen_key(message_id: str) -> str:
    return f"wa:seen:{message_id}"
