import logging
from collections import namedtuple

import requests

from ..config import SIGNATURE_HEADER, TIMEOUT_SECONDS
from ..exceptions import HttpStatusError, TransportError
from ..schemas import DeliveryResult
from ..utils.security import build_payload, signature_header

logger = logging.getLogger("delivery")

# Longest response body kept on a log entry
MAX_RESPONSE_BODY = 1000

# Detached copy of the fields a delivery needs, safe to hand across threads
Target = namedtuple("Target", ["id", "url", "secret"])

def target_for(webhook):
    return Target(id=webhook.id, url=webhook.url, secret=webhook.secret)

class DeliveryExecutor:
    """Performs exactly one signed HTTP POST and classifies the outcome.

    The executor never retries, writes logs or touches counters; that is
    the retry controller's job. Pass ``session`` to swap the transport;
    without one each attempt goes through ``requests.post``, so pool threads
    never share a connection pool.
    """

    def __init__(self, session=None, timeout=TIMEOUT_SECONDS, header_name=SIGNATURE_HEADER):
        self.session = session
        self.timeout = timeout
        self.header_name = header_name

    def deliver(self, target, event, attempt=1):
        payload = build_payload(event)
        headers = {
            "Content-Type": "application/json",
            self.header_name: signature_header(target.secret, payload),
            "X-Bruin-Event": event.event_type,
            "X-Bruin-Webhook-ID": str(target.id),
        }

        try:
            post = self.session.post if self.session is not None else requests.post
            response = post(
                target.url,
                data=payload.encode("utf-8"),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            error = TransportError(str(e) or e.__class__.__name__)
            logger.debug(f"Attempt {attempt} to {target.url} raised {error!r}")
            return DeliveryResult(success=False, payload=payload, error_message=str(error))

        response_body = response.text[:MAX_RESPONSE_BODY] if response.text else None

        if 200 <= response.status_code < 300:
            return DeliveryResult(
                success=True,
                payload=payload,
                status_code=response.status_code,
                response_body=response_body,
            )

        error = HttpStatusError(response.status_code, response_body)
        return DeliveryResult(
            success=False,
            payload=payload,
            status_code=error.status_code,
            response_body=error.response_body,
            error_message=str(error),
        )
