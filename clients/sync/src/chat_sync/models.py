"""Wire records exchanged with the chat gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


def _require_id(payload: Mapping[str, Any], kind: str) -> str:
    if not isinstance(payload, Mapping):
        raise ValueError(f"{kind} payload must be an object")
    raw_id = payload.get("_id")
    if raw_id is None or str(raw_id) == "":
        raise ValueError(f"{kind} payload is missing _id")
    return str(raw_id)


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class Identity:
    """An authenticated user or a roster entry."""

    id: str
    full_name: str = ""
    email: Optional[str] = None
    profile_pic: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Identity":
        return cls(
            id=_require_id(payload, "identity"),
            full_name=str(payload.get("fullName") or ""),
            email=_optional_str(payload, "email"),
            profile_pic=_optional_str(payload, "profilePic"),
            created_at=_optional_str(payload, "createdAt"),
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"_id": self.id, "fullName": self.full_name}
        if self.email is not None:
            payload["email"] = self.email
        if self.profile_pic is not None:
            payload["profilePic"] = self.profile_pic
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        return payload


@dataclass(frozen=True)
class Message:
    """An immutable chat message; ``image`` is an attachment reference."""

    id: str
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None
    text: Optional[str] = None
    image: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Message":
        return cls(
            id=_require_id(payload, "message"),
            sender_id=_optional_str(payload, "senderId"),
            receiver_id=_optional_str(payload, "receiverId"),
            text=_optional_str(payload, "text"),
            image=_optional_str(payload, "image"),
            created_at=_optional_str(payload, "createdAt"),
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"_id": self.id}
        for key, value in (
            ("senderId", self.sender_id),
            ("receiverId", self.receiver_id),
            ("text", self.text),
            ("image", self.image),
            ("createdAt", self.created_at),
        ):
            if value is not None:
                payload[key] = value
        return payload
