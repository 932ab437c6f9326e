class WebhookError(Exception):
    """Base class for webhook dispatcher errors."""


class ValidationError(WebhookError):
    """Malformed registration or update input. Never retried."""


class WebhookNotFound(WebhookError):
    def __init__(self, webhook_id):
        super().__init__(f"Webhook {webhook_id} not found")
        self.webhook_id = webhook_id


class TransportError(WebhookError):
    """Network-level failure: DNS, refused connection, timeout."""


class HttpStatusError(WebhookError):
    """A response was received but its status is outside 2xx."""

    def __init__(self, status_code, response_body=None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.response_body = response_body


class RetryExhausted(WebhookError):
    """Terminal state of a delivery sequence; only ever logged."""

    def __init__(self, webhook_id, event_type, attempts):
        super().__init__(
            f"Delivery of {event_type} to webhook {webhook_id} failed after {attempts} attempts"
        )
        self.webhook_id = webhook_id
        self.event_type = event_type
        self.attempts = attempts
