import base64
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

DISTANT_PAST = datetime.min.replace(tzinfo=timezone.utc)
NEW_CHAT_PREVIEW = "New Chat"


def generate_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    text: str
    is_from_user: bool
    timestamp: datetime = Field(default_factory=utc_now)
    image: bytes | None = None

    @field_validator("image", mode="before")
    @classmethod
    def _decode_image(cls, value):
        # Stored sessions carry image bytes as base64 text.
        if isinstance(value, str):
            return base64.b64decode(value, validate=True)
        return value

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_serializer("image", when_used="json")
    def _encode_image(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @property
    def role(self) -> str:
        return "user" if self.is_from_user else "assistant"


class ChatSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    messages: list[Message] = Field(default_factory=list)

    @property
    def last_modified(self) -> datetime:
        if not self.messages:
            return DISTANT_PAST
        return self.messages[-1].timestamp

    @property
    def preview_text(self) -> str:
        if not self.messages:
            return NEW_CHAT_PREVIEW
        return self.messages[0].text
