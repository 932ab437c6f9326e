from datetime import timedelta
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.sql import desc

from . import models, schemas
from .exceptions import ValidationError, WebhookNotFound
from .utils.logging import WebhookLogger

_http_url = TypeAdapter(HttpUrl)

def _validate_url(url):
    if not url or not url.strip():
        raise ValidationError("url is required")
    try:
        _http_url.validate_python(url.strip())
    except PydanticValidationError:
        raise ValidationError(f"url must be an absolute http(s) URL: {url!r}")
    return url.strip()

def _validate_secret(secret):
    if not secret or not secret.strip():
        raise ValidationError("secret is required")
    return secret

def _normalize_event_types(event_types):
    normalized = []
    for event_type in event_types or []:
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValidationError("event types must be non-empty strings")
        if event_type != event_type.strip():
            raise ValidationError(f"event type has surrounding whitespace: {event_type!r}")
        if event_type not in normalized:
            normalized.append(event_type)
    return normalized

# Subscription registry
def create_webhook(db: Session, webhook: schemas.WebhookCreate):
    db_webhook = models.Webhook(
        url=_validate_url(webhook.url),
        secret=_validate_secret(webhook.secret),
        event_types=_normalize_event_types(webhook.event_types),
        is_active=True,
        failure_count=0,
        last_triggered_at=None,
    )
    db.add(db_webhook)
    db.commit()
    db.refresh(db_webhook)
    WebhookLogger.webhook_created(db_webhook.id, db_webhook.url, db_webhook.event_types)
    return db_webhook

def get_webhook(db: Session, webhook_id: str):
    db_webhook = db.query(models.Webhook).filter(models.Webhook.id == webhook_id).first()
    if db_webhook is None:
        raise WebhookNotFound(webhook_id)
    return db_webhook

def get_webhooks(db: Session):
    return db.query(models.Webhook).order_by(models.Webhook.pk).all()

def update_webhook(db: Session, webhook_id: str, webhook: schemas.WebhookUpdate):
    db_webhook = get_webhook(db, webhook_id)

    update_data = webhook.model_dump(exclude_unset=True)
    if update_data.get("url") is not None:
        db_webhook.url = _validate_url(update_data["url"])
    if update_data.get("event_types") is not None:
        db_webhook.event_types = _normalize_event_types(update_data["event_types"])
    if update_data.get("is_active") is not None:
        db_webhook.is_active = update_data["is_active"]

    db.commit()
    db.refresh(db_webhook)
    WebhookLogger.webhook_updated(db_webhook.id)
    return db_webhook

def set_webhook_active(db: Session, webhook_id: str, active: bool):
    db_webhook = get_webhook(db, webhook_id)
    if db_webhook.is_active != active:
        db_webhook.is_active = active
        db.commit()
        db.refresh(db_webhook)
        WebhookLogger.webhook_toggled(db_webhook.id, active)
    return db_webhook

def delete_webhook(db: Session, webhook_id: str):
    db_webhook = get_webhook(db, webhook_id)
    db.delete(db_webhook)
    db.commit()
    WebhookLogger.webhook_deleted(webhook_id)
    return db_webhook

def record_attempt(db: Session, webhook_id: str, success: bool, at, reset_failures: bool = True,
                   commit: bool = True):
    """Apply one attempt's outcome to the webhook's counters.

    Done as a single UPDATE so concurrent attempts against the same
    webhook never lose an increment. Returns False if the webhook no
    longer exists.
    """
    values = {"last_triggered_at": at}
    if not success:
        values["failure_count"] = models.Webhook.failure_count + 1
    elif reset_failures:
        values["failure_count"] = 0

    result = db.execute(
        update(models.Webhook)
        .where(models.Webhook.id == webhook_id)
        .values(**values)
    )
    if commit:
        db.commit()
    return result.rowcount > 0

# Delivery log store
def append_log(db: Session, webhook_id: str, event_type: str, attempt: int,
               result: schemas.DeliveryResult, at, commit: bool = True):
    db_log = models.WebhookLog(
        webhook_id=webhook_id,
        event_type=event_type,
        success=result.success,
        status_code=result.status_code,
        timestamp=at,
        payload=result.payload,
        response_body=result.response_body,
        error_message=result.error_message,
        attempt=attempt,
    )
    db.add(db_log)
    if commit:
        db.commit()
        db.refresh(db_log)
    else:
        db.flush()
    return db_log

def log_attempt(db: Session, webhook_id: str, event_type: str, attempt: int,
                result: schemas.DeliveryResult, at, reset_failures: bool = True):
    """Append the log entry and apply the counter update in one transaction.

    Either both land or neither does.
    """
    try:
        db_log = append_log(db, webhook_id, event_type, attempt, result, at, commit=False)
        record_attempt(db, webhook_id, result.success, at, reset_failures=reset_failures, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_log)
    return db_log

def get_webhook_logs(db: Session, webhook_id: str, limit: int = 50):
    return db.query(models.WebhookLog).filter(
        models.WebhookLog.webhook_id == webhook_id
    ).order_by(desc(models.WebhookLog.timestamp), desc(models.WebhookLog.id)).limit(limit).all()

def delete_old_logs(db: Session, hours: int = 72):
    """Delete log entries older than specified hours"""
    cutoff_time = models.utcnow() - timedelta(hours=hours)
    
    deleted = db.query(models.WebhookLog).filter(
        models.WebhookLog.timestamp < cutoff_time
    ).delete()
    
    db.commit()
    return deleted
