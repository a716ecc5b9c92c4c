"""Expo push token recognition."""

import re
from typing import Any, Optional

_EXPO_TOKEN_RE = re.compile(r"Expo(?:nent)?PushToken\[[^\]]+\]")
_UUID_TOKEN_RE = re.compile(
    r"[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}", re.IGNORECASE
)


def is_expo_push_token(token: Any) -> bool:
    """Return True if ``token`` is an Expo push token.

    Two forms are accepted: ``ExpoPushToken[...]`` / ``ExponentPushToken[...]``
    and a bare 8-4-4-4-12 device UUID. FCM registration ids and raw APNs
    device tokens are rejected.
    """
    if not isinstance(token, str) or not token:
        return False
    return bool(_EXPO_TOKEN_RE.fullmatch(token) or _UUID_TOKEN_RE.fullmatch(token))


def extract_push_token(message: Optional[str]) -> Optional[str]:
    """Find the push token quoted in a service error message, if any."""
    if not message:
        return None
    if "PushToken[" in message:
        match = _EXPO_TOKEN_RE.search(message)
    else:
        match = _UUID_TOKEN_RE.search(message)
    return match.group(0) if match else None
