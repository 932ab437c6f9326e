import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()

def utcnow():
    """Naive UTC timestamp, the form SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def new_id():
    return str(uuid.uuid4())

class Webhook(Base):
    __tablename__ = "webhooks"
    
    # Surrogate key; preserves insertion order for listings
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, index=True, default=new_id)
    url = Column(String, nullable=False)
    secret = Column(String, nullable=False)
    event_types = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_triggered_at = Column(DateTime, nullable=True)
    failure_count = Column(Integer, nullable=False, default=0)

    def matches(self, event_type):
        """Empty event_types subscribes to every event type."""
        return self.is_active and (not self.event_types or event_type in self.event_types)

class WebhookLog(Base):
    __tablename__ = "webhook_logs"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    # Not a foreign key: logs outlive the webhook they belong to
    webhook_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    success = Column(Boolean, nullable=False)
    status_code = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    payload = Column(Text, nullable=False)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    attempt = Column(Integer, nullable=False)
