"""Data models for Truelist API responses."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .errors import DecodeError

STATES = ("valid", "invalid", "risky", "unknown")


def _as_bool(data: Dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DecodeError(f"failed to parse response: {key!r} is not a boolean")
    return value


def _as_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"failed to parse response: {key!r} is not a string")
    return value


@dataclass(frozen=True)
class ValidationResult:
    email: str
    state: str  # valid / invalid / risky / unknown
    sub_state: str
    free_email: bool
    role: bool  # role-based mailbox such as admin@
    disposable: bool
    suggestion: Optional[str] = None

    @property
    def category(self) -> str:
        """Lower-cased state, used for tallying."""
        return self.state.lower()

    @classmethod
    def from_payload(cls, data: Any, fallback_email: str = "") -> "ValidationResult":
        """Build a result from a decoded verify response.

        The service does not always echo the address back, so an empty
        ``email`` is replaced by ``fallback_email``.
        """
        if not isinstance(data, dict):
            raise DecodeError("failed to parse response: expected a JSON object")
        suggestion = _as_str(data, "suggestion") or None
        return cls(
            email=_as_str(data, "email") or fallback_email,
            state=_as_str(data, "state"),
            sub_state=_as_str(data, "sub_state"),
            free_email=_as_bool(data, "free_email"),
            role=_as_bool(data, "role"),
            disposable=_as_bool(data, "disposable"),
            suggestion=suggestion,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        if out["suggestion"] is None:
            del out["suggestion"]
        return out


@dataclass(frozen=True)
class AccountInfo:
    email: str
    plan: str
    credits: int  # remaining validation quota

    @classmethod
    def from_payload(cls, data: Any) -> "AccountInfo":
        if not isinstance(data, dict):
            raise DecodeError("failed to parse response: expected a JSON object")
        credits = data.get("credits", 0)
        if credits is None:
            credits = 0
        if isinstance(credits, bool) or not isinstance(credits, int):
            raise DecodeError("failed to parse response: 'credits' is not an integer")
        return cls(
            email=_as_str(data, "email"),
            plan=_as_str(data, "plan"),
            credits=credits,
        )
