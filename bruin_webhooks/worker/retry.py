import enum
import logging

from sqlalchemy.exc import SQLAlchemyError

from .. import crud, schemas
from ..config import FAILURE_RESET_POLICY, MAX_ATTEMPTS, RETRY_INTERVALS
from ..exceptions import RetryExhausted
from ..models import utcnow
from ..utils.logging import WebhookLogger, log_delivery_attempt
from .delivery import target_for

logger = logging.getLogger("retry")

class SequenceState(enum.Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED_FAILED = "exhausted_failed"

class DeliverySequence:
    """One (event, webhook) delivery sequence: attempts 1..max_attempts."""

    def __init__(self, target, event):
        self.target = target
        self.event = event
        self.attempt = 1
        self.failures = 0
        self.state = SequenceState.ATTEMPTING

    @property
    def done(self):
        return self.state is not SequenceState.ATTEMPTING

    def __repr__(self):
        return (f"<DeliverySequence webhook={self.target.id} event={self.event.event_type} "
                f"attempt={self.attempt} state={self.state.value}>")

class RetryPolicy:
    def __init__(self, max_attempts=MAX_ATTEMPTS, intervals=None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.intervals = list(RETRY_INTERVALS if intervals is None else intervals)

    def delay(self, attempt):
        """Seconds to wait after failed attempt ``attempt`` before the next one."""
        if not self.intervals:
            return 0.0
        return self.intervals[min(attempt - 1, len(self.intervals) - 1)]

class RetryController:
    """Drives delivery sequences one attempt at a time.

    Every attempt, success or failure, appends exactly one log entry and
    makes exactly one counter update on the webhook.
    """

    def __init__(self, executor, session_factory, policy=None,
                 reset_policy=FAILURE_RESET_POLICY, clock=utcnow):
        if reset_policy not in ("any_success", "same_sequence"):
            raise ValueError(f"Unknown failure reset policy: {reset_policy}")
        self.executor = executor
        self.session_factory = session_factory
        self.policy = policy or RetryPolicy()
        self.reset_policy = reset_policy
        self.clock = clock

    def step(self, sequence):
        """Run the current attempt of ``sequence`` and advance its state."""
        if sequence.done:
            raise ValueError(f"{sequence!r} has already finished")

        at = self.clock()
        result = self.executor.deliver(sequence.target, sequence.event, sequence.attempt)
        try:
            self._record(sequence.target.id, sequence.event.event_type, sequence.attempt, result, at,
                         reset_failures=self._resets(sequence, result))
            succeeded = result.success
        except SQLAlchemyError:
            # Nothing was written for this attempt; retry it like a failed delivery
            logger.exception(f"Could not record attempt {sequence.attempt} for webhook {sequence.target.id}")
            succeeded = False
        if not succeeded:
            sequence.failures += 1

        if succeeded:
            sequence.state = SequenceState.SUCCEEDED
        elif sequence.attempt >= self.policy.max_attempts:
            sequence.state = SequenceState.EXHAUSTED_FAILED
            WebhookLogger.sequence_exhausted(
                RetryExhausted(sequence.target.id, sequence.event.event_type, sequence.attempt)
            )
        else:
            sequence.attempt += 1
        return sequence.state

    def next_delay(self, sequence):
        return self.policy.delay(sequence.attempt - 1)

    def test_delivery(self, webhook_id):
        """Single user-initiated attempt, bypassing retry, filter and active flag."""
        db = self.session_factory()
        try:
            target = target_for(crud.get_webhook(db, webhook_id))
        finally:
            db.close()

        event = schemas.DomainEvent(
            event_type=schemas.TEST_EVENT_TYPE,
            summary="Test delivery",
            actor="user",
        )
        sequence = DeliverySequence(target, event)
        at = self.clock()
        result = self.executor.deliver(target, event, 1)
        if not result.success:
            sequence.failures += 1
        return self._record(target.id, event.event_type, 1, result, at,
                            reset_failures=self._resets(sequence, result))

    def _resets(self, sequence, result):
        if not result.success:
            return False
        if self.reset_policy == "any_success":
            return True
        return sequence.failures > 0

    def _record(self, webhook_id, event_type, attempt, result, at, reset_failures):
        db = self.session_factory()
        try:
            db_log = crud.log_attempt(db, webhook_id, event_type, attempt, result, at,
                                      reset_failures=reset_failures)
            entry = schemas.WebhookLogEntry.model_validate(db_log)
        finally:
            db.close()

        log_delivery_attempt(
            webhook_id=webhook_id,
            event_type=event_type,
            attempt_number=attempt,
            status_code=result.status_code,
            success=result.success,
            error=result.error_message,
            at=at,
        )
        return entry
