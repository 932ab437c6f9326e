import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from .. import crud
from ..config import MAX_WORKERS
from ..utils.logging import WebhookLogger
from .delivery import target_for
from .retry import DeliverySequence

logger = logging.getLogger("dispatcher")

class Dispatcher:
    """Fans domain events out to matching webhooks.

    Each (event, webhook) pair becomes an independent delivery sequence.
    Attempts run on a bounded thread pool; retries wait on a scheduler
    thread rather than holding a pool slot, so a failing endpoint never
    delays anyone else.
    """

    def __init__(self, session_factory, controller, max_workers=MAX_WORKERS):
        self.session_factory = session_factory
        self.controller = controller
        self.max_workers = max_workers
        self.pool = None
        self.scheduler_thread = None
        self.stop_event = threading.Event()
        self.scheduled_tasks = []  # heap of (due_time, seq_no, sequence)
        self._seq_no = itertools.count()
        self._cond = threading.Condition()
        self._outstanding = 0

    @property
    def running(self):
        return self.scheduler_thread is not None and self.scheduler_thread.is_alive()

    def start(self):
        """Start the delivery pool and retry scheduler"""
        if self.running:
            logger.info("Dispatcher is already running")
            return

        logger.info(f"Starting dispatcher with {self.max_workers} delivery workers")
        self.stop_event.clear()
        self.pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="webhook-delivery")
        self.scheduler_thread = threading.Thread(target=self.scheduler_loop, name="webhook-retry-scheduler")
        self.scheduler_thread.daemon = True
        self.scheduler_thread.start()

    def stop(self, timeout=5.0):
        """Stop the dispatcher. Retries not yet due are dropped."""
        if not self.running:
            return
        logger.info("Stopping dispatcher...")
        with self._cond:
            self.stop_event.set()
            dropped = len(self.scheduled_tasks)
            self.scheduled_tasks.clear()
            self._outstanding -= dropped
            self._cond.notify_all()
        if dropped:
            logger.warning(f"Dropped {dropped} scheduled retries on shutdown")
        self.scheduler_thread.join(timeout=timeout)
        self.pool.shutdown(wait=True)
        logger.info("Dispatcher stopped")

    def on_event(self, event):
        """Start a delivery sequence for every active webhook matching ``event``.

        Returns the number of sequences started without waiting on any of them.
        """
        if not self.running:
            raise RuntimeError("Dispatcher is not running")

        db = self.session_factory()
        try:
            targets = [target_for(webhook) for webhook in crud.get_webhooks(db)
                       if webhook.matches(event.event_type)]
        finally:
            db.close()

        WebhookLogger.event_received(event.event_type, len(targets))
        for target in targets:
            with self._cond:
                self._outstanding += 1
            self._submit(DeliverySequence(target, event))
        return len(targets)

    def _submit(self, sequence):
        try:
            self.pool.submit(self.process_task, sequence)
        except RuntimeError:
            # Pool already shut down
            logger.warning(f"Dispatcher stopped, dropping {sequence!r}")
            self._finish()

    def process_task(self, sequence):
        """Run one attempt of a sequence and schedule whatever comes next"""
        try:
            self.controller.step(sequence)
        except Exception:
            logger.exception(f"Error processing {sequence!r}")
            self._finish()
            return

        if sequence.done:
            self._finish()
        else:
            self.schedule_task(sequence, self.controller.next_delay(sequence))

    def schedule_task(self, sequence, delay_seconds):
        """Schedule the next attempt of a sequence to run after a delay"""
        if delay_seconds <= 0:
            self._submit(sequence)
            return
        logger.info(f"Scheduling attempt {sequence.attempt} for webhook {sequence.target.id} "
                    f"in {delay_seconds} seconds")
        with self._cond:
            if self.stop_event.is_set():
                self._outstanding -= 1
                self._cond.notify_all()
                return
            heapq.heappush(self.scheduled_tasks, (time.monotonic() + delay_seconds, next(self._seq_no), sequence))
            self._cond.notify_all()

    def scheduler_loop(self):
        """Hand retries to the pool once they are due"""
        logger.info("Retry scheduler started")
        while True:
            with self._cond:
                if self.stop_event.is_set():
                    break
                now = time.monotonic()
                due = []
                while self.scheduled_tasks and self.scheduled_tasks[0][0] <= now:
                    due.append(heapq.heappop(self.scheduled_tasks)[2])
                if not due:
                    timeout = self.scheduled_tasks[0][0] - now if self.scheduled_tasks else None
                    self._cond.wait(timeout=timeout)
                    continue
            for sequence in due:
                self._submit(sequence)

    def _finish(self):
        with self._cond:
            self._outstanding -= 1
            self._cond.notify_all()

    def wait_idle(self, timeout=None):
        """Block until every started sequence has finished. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._outstanding <= 0, timeout=timeout)

    def status(self):
        """Check dispatcher status"""
        with self._cond:
            return {
                "running": self.running,
                "max_workers": self.max_workers,
                "outstanding_sequences": self._outstanding,
                "scheduled_retries": len(self.scheduled_tasks),
            }

    def attach(self, bus):
        bus.subscribe(self.on_event)
