from typing import List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, AnyHttpUrl, ConfigDict, Field, TypeAdapter, ValidationInfo, field_validator

from hubsub.models.subscription import SubscriptionState

_http_url = TypeAdapter(AnyHttpUrl)


class SubscriptionBase(BaseModel):
    feed_url: str
    hub_url: str
    expected_receive_period_in_days: int = Field(1, gt=0)

    @field_validator("feed_url", "hub_url")
    @classmethod
    def must_be_http_url(cls, value: str) -> str:
        # Validate, but keep the caller's spelling: push Link headers are
        # matched against these strings verbatim.
        _http_url.validate_python(value)
        return value

class SubscriptionCreate(SubscriptionBase):
    secret: str = Field(..., min_length=1)

class SubscriptionUpdate(BaseModel):
    # feed_url, hub_url and secret are fixed for the subscription's lifetime
    model_config = ConfigDict(extra="forbid")

    expected_receive_period_in_days: Optional[int] = Field(None, gt=0)

class SubscriptionOut(SubscriptionBase):
    id: UUID
    state: SubscriptionState
    lease_expiry: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class EventOut(BaseModel):
    id: UUID
    subscription_id: UUID
    source: str
    format: Optional[str] = None
    raw: str
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator("raw", mode="before")
    @classmethod
    def decode_raw(cls, value, info: ValidationInfo):
        if isinstance(value, (bytes, bytearray)):
            return decode_payload(bytes(value), info.data.get("format"))
        return value


def charset_of(content_type: Optional[str]) -> Optional[str]:
    for part in (content_type or "").split(";")[1:]:
        key, _, value = part.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"')
    return None


def decode_payload(raw: bytes, content_type: Optional[str]) -> str:
    """Text view of a stored body; the bytes themselves are kept untouched."""
    try:
        return raw.decode(charset_of(content_type) or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")

class LogOut(BaseModel):
    id: UUID
    subscription_id: UUID
    timestamp: datetime
    level: str
    message: str

    class Config:
        from_attributes = True

class HealthResponse(BaseModel):
    subscription_id: UUID
    working: bool
    renewal_overdue: bool
    state: SubscriptionState
    lease_expiry: Optional[datetime] = None
    last_event_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    recent_errors: List[LogOut] = []

class RenewResponse(BaseModel):
    subscription_id: UUID
    action: str

class UnsubscribeResponse(BaseModel):
    subscription_id: UUID
    action: str
    accepted: bool
