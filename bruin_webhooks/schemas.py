from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from .models import utcnow

KNOWN_EVENT_TYPES = [
    "note_created",
    "note_updated",
    "note_deleted",
    "note_trashed",
    "note_restored",
    "note_pinned",
    "state_changed",
]

# Event type carried by manual test deliveries
TEST_EVENT_TYPE = "webhook_test"

class WebhookBase(BaseModel):
    url: str
    event_types: List[str] = Field(default_factory=list)

class WebhookCreate(WebhookBase):
    secret: str

class WebhookUpdate(BaseModel):
    url: Optional[str] = None
    event_types: Optional[List[str]] = None
    is_active: Optional[bool] = None

class Webhook(WebhookBase):
    """Listing form of a subscription. The secret is never echoed back."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    is_active: bool
    created_at: datetime
    last_triggered_at: Optional[datetime] = None
    failure_count: int

class DomainEvent(BaseModel):
    # Unknown event types are accepted for forward compatibility
    event_type: str
    note_id: Optional[str] = None
    summary: str = ""
    actor: Literal["user", "agent"] = "user"
    agent_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

class EventAccepted(BaseModel):
    message: str
    matched: int

class DeliveryResult(BaseModel):
    success: bool
    payload: str
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None

class WebhookLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    webhook_id: str
    event_type: str
    success: bool
    status_code: Optional[int] = None
    timestamp: datetime
    payload: str
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    attempt: int
