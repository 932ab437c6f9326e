import logging
import json

# Configure logger
logger = logging.getLogger("webhook_service")
logger.setLevel(logging.INFO)

# Handler
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)

def log_delivery_attempt(webhook_id, event_type, attempt_number, status_code, success, error=None, at=None):
    """Log a webhook delivery attempt."""
    log_data = {
        "timestamp": at.isoformat() if at else None,
        "webhook_id": str(webhook_id),
        "event_type": event_type,
        "attempt": attempt_number,
        "status_code": status_code,
        "success": success
    }
    
    if error:
        log_data["error"] = str(error)
    
    if success:
        logger.info(f"Webhook delivery succeeded: {json.dumps(log_data)}")
    else:
        logger.warning(f"Webhook delivery failed: {json.dumps(log_data)}")

class WebhookLogger:
    """Helper class for webhook logging"""
    
    @staticmethod
    def webhook_created(webhook_id, url: str, event_types):
        events = ",".join(event_types) if event_types else "*"
        logger.info(f"Webhook registered: id={webhook_id}, url={url}, events={events}")
    
    @staticmethod
    def webhook_updated(webhook_id):
        logger.info(f"Webhook updated: id={webhook_id}")
    
    @staticmethod
    def webhook_toggled(webhook_id, active: bool):
        logger.info(f"Webhook {'activated' if active else 'deactivated'}: id={webhook_id}")
    
    @staticmethod
    def webhook_deleted(webhook_id):
        logger.info(f"Webhook deleted: id={webhook_id}")
    
    @staticmethod
    def event_received(event_type: str, matched: int):
        logger.info(f"Event received: type={event_type}, matched={matched}")
    
    @staticmethod
    def sequence_exhausted(error):
        logger.error(f"Retries exhausted: {error}")
