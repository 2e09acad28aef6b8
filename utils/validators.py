from typing import Optional
from urllib.parse import urlparse

SIGNATURE_LIMIT = 160


def clean_message(value) -> Optional[str]:
    """
    Returns the trimmed text of a chat message, or None when the payload
    is not a string or is blank after trimming.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    return text


def truncate_signature(value, limit: int = SIGNATURE_LIMIT) -> str:
    """Bounds a client-supplied descriptor (User-Agent) to `limit` characters."""
    if not value:
        return ""
    return str(value)[:limit]


def is_data_url(value, prefix: str) -> bool:
    return isinstance(value, str) and value.startswith(prefix)


def validate_server_uri(uri: str) -> bool:
    """
    Accepts ws:// and wss:// URIs with a host part.
    """
    if not uri:
        return False
    parsed = urlparse(uri)
    return parsed.scheme in ("ws", "wss") and bool(parsed.hostname)
