"""Push notification data model.

``Notification`` is immutable: every ``to`` / ``with_*`` call validates
its input and returns a new instance, so an invalid recipient or field
fails where it is set, never at dispatch time.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Iterable, Mapping, Optional, Union

from expo_push.push.config import NotificationPriority
from expo_push.push.errors import InvalidArgument, PushTokenInvalid
from expo_push.push.tokens import is_expo_push_token

# Python field name -> wire name, where they differ.
_WIRE_NAMES = {
    "channel_id": "channelId",
    "category_id": "categoryId",
    "mutable_content": "mutableContent",
}


def _optional_str(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise InvalidArgument(f"{name} must be a string or None")
    return str(value)


def _optional_int(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{name} must be numeric or None")


def _normalize_sound(value: Any) -> Union[str, dict, None]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        return _optional_str("sound", value)

    sound: dict[str, Any] = {"critical": bool(value.get("critical"))}
    name = value.get("name")
    if name is not None:
        sound["name"] = str(name)
    volume = value.get("volume")
    if volume is not None:
        try:
            sound["volume"] = float(volume)
        except (TypeError, ValueError):
            raise InvalidArgument("sound volume must be numeric")
    return sound


def _normalize_priority(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, NotificationPriority):
        return value.value
    try:
        return NotificationPriority(str(value)).value
    except ValueError:
        raise InvalidArgument("priority must be default, normal, or high")


@dataclass(frozen=True)
class Notification:
    """A push message plus the tokens it should be delivered to.

    Example:
        notification = (
            Notification()
            .to(["ExponentPushToken[abc]", "ExponentPushToken[def]"])
            .with_title("Order shipped")
            .with_body("Your order is on its way")
            .with_data({"order_id": 42})
        )
    """

    recipients: tuple[str, ...] = ()
    title: Optional[str] = None
    subtitle: Optional[str] = None
    body: Optional[str] = None
    data: Optional[dict] = None
    sound: Union[str, dict, None] = None
    ttl: Optional[int] = None
    expiration: Optional[int] = None
    priority: Optional[str] = None
    badge: Optional[int] = None
    channel_id: Optional[str] = None
    category_id: Optional[str] = None
    mutable_content: Optional[bool] = None

    def __post_init__(self):
        recipients = self.recipients
        if isinstance(recipients, str):
            recipients = (recipients,)
        recipients = tuple(recipients)
        for token in recipients:
            if not is_expo_push_token(token):
                raise PushTokenInvalid(token)
        object.__setattr__(self, "recipients", recipients)

        if self.data is not None:
            if not isinstance(self.data, Mapping):
                raise InvalidArgument("data must be a mapping or None")
            object.__setattr__(self, "data", dict(self.data))

        for name in ("title", "subtitle", "body", "channel_id", "category_id"):
            object.__setattr__(self, name, _optional_str(name, getattr(self, name)))
        for name in ("ttl", "expiration", "badge"):
            object.__setattr__(self, name, _optional_int(name, getattr(self, name)))

        object.__setattr__(self, "sound", _normalize_sound(self.sound))
        object.__setattr__(self, "priority", _normalize_priority(self.priority))
        if self.mutable_content is not None and not isinstance(self.mutable_content, bool):
            raise InvalidArgument("mutable_content must be True, False or None")

    # ── Recipients ──────────────────────────────────────────────────

    def to(self, recipients: Union[str, Iterable[str]]) -> "Notification":
        """Add one token or an iterable of tokens."""
        if isinstance(recipients, str):
            recipients = [recipients]
        try:
            added = tuple(recipients)
        except TypeError:
            raise InvalidArgument(
                "to must be a single Expo Push Token, or an iterable of Expo Push Tokens"
            )
        return replace(self, recipients=self.recipients + added)

    def add_recipient(self, token: str) -> "Notification":
        return self.to([token])

    def prepare(self, targets: Iterable[str]) -> "Notification":
        """Copy of this notification addressed to ``targets`` only."""
        return replace(self, recipients=tuple(targets))

    @property
    def count(self) -> int:
        return len(self.recipients)

    # ── Payload fields ──────────────────────────────────────────────

    def with_title(self, value: Optional[str]) -> "Notification":
        return replace(self, title=value)

    def with_subtitle(self, value: Optional[str]) -> "Notification":
        """iOS only."""
        return replace(self, subtitle=value)

    def with_body(self, value: Optional[str]) -> "Notification":
        return replace(self, body=value)

    def with_data(self, value: Optional[Mapping[str, Any]]) -> "Notification":
        """JSON object delivered to the app; keep it under about 4KiB."""
        return replace(self, data=value)

    def with_sound(self, value: Union[str, Mapping[str, Any], None]) -> "Notification":
        """``"default"``, a custom sound name, or ``{critical, name, volume}``."""
        return replace(self, sound=value)

    def with_ttl(self, value: Optional[int]) -> "Notification":
        """Seconds the message may be held for redelivery. Takes precedence over expiration."""
        return replace(self, ttl=value)

    def with_expiration(self, value: Optional[int]) -> "Notification":
        """Unix timestamp after which the message is dropped."""
        return replace(self, expiration=value)

    def with_priority(self, value: Union[str, NotificationPriority, None]) -> "Notification":
        return replace(self, priority=value)

    def with_badge(self, value: Optional[int]) -> "Notification":
        """iOS badge count; 0 clears it."""
        return replace(self, badge=value)

    def with_channel_id(self, value: Optional[str]) -> "Notification":
        """Android notification channel."""
        return replace(self, channel_id=value)

    def with_category_id(self, value: Optional[str]) -> "Notification":
        return replace(self, category_id=value)

    def with_mutable_content(self, value: Optional[bool]) -> "Notification":
        return replace(self, mutable_content=value)

    # ── Serialization ───────────────────────────────────────────────

    def as_payload(self) -> dict:
        """Wire representation; unset fields are omitted."""
        payload: dict[str, Any] = {"to": list(self.recipients)}
        for f in fields(self):
            if f.name == "recipients":
                continue
            value = getattr(self, f.name)
            if value is not None:
                payload[_WIRE_NAMES.get(f.name, f.name)] = value
        return payload
