from __future__ import annotations
"""Best-effort notification dispatch.

Lifecycle code calls NotificationDispatcher.notify(), which only puts an event
on an in-process queue. A worker thread (or an explicit drain()) hands events
to a sink that stores them. Delivery failures are logged and dropped; they
never reach the code that triggered the notification, and nothing is retried.
"""
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from relayfix.models.notification import Notification
from relayfix.models.repair_status import RepairStatus

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True)
class NotificationEvent:
    recipient_id: str
    title: str
    body: str
    type: str = 'info'
    related_id: Optional[str] = None


class DatabaseNotificationSink:
    """Persist notifications using a session from session_factory.

    The factory is the app's scoped_session, so the worker thread gets its own
    session. The worker calls release() after each delivery to drop it.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def __call__(self, event: NotificationEvent):
        session = self.session_factory()
        try:
            session.add(Notification(
                recipient_id=event.recipient_id,
                title=event.title,
                body=event.body,
                type=event.type,
                related_id=event.related_id,
                is_read=False,
            ))
            session.commit()
        except Exception:
            session.rollback()
            raise

    def release(self):
        remove = getattr(self.session_factory, 'remove', None)
        if remove is not None:
            remove()


class NotificationDispatcher:
    def __init__(self, sink, maxsize: int = 1000):
        self.sink = sink
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._worker: Optional[threading.Thread] = None

    def notify(self, recipient_id, title: str, body: str, type: str = 'info', related_id=None) -> bool:
        """Enqueue one notification. Never raises; returns False if it was dropped."""
        if not recipient_id:
            return False
        if type not in Notification.TYPES:
            type = 'info'
        event = NotificationEvent(str(recipient_id), title, body, type,
                                  str(related_id) if related_id is not None else None)
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.error('Notification queue full; dropped %r for %s', title, recipient_id)
            return False
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _deliver(self, event: NotificationEvent):
        try:
            self.sink(event)
        except Exception:
            logger.exception('Notification delivery to %s failed', event.recipient_id)

    def _release(self):
        # Worker thread only; drain() runs in the caller's thread and keeps its session
        release = getattr(self.sink, 'release', None)
        if release is None:
            return
        try:
            release()
        except Exception:
            logger.exception('Releasing notification sink resources failed')

    def drain(self) -> int:
        """Deliver everything queued right now in the calling thread."""
        delivered = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            try:
                if event is _STOP:
                    continue
                self._deliver(event)
                delivered += 1
            finally:
                self._queue.task_done()

    def _run(self):
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self._deliver(event)
                self._release()
            finally:
                self._queue.task_done()

    def start(self):
        if self._worker and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name='notification-worker', daemon=True)
        self._worker.start()

    def stop(self, timeout: float = 5.0):
        if not self._worker:
            return
        self._queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None


# Client-facing wording per status reached
_STATUS_MESSAGES = {
    RepairStatus.RECEIVED: ('Device received', 'Your device was dropped off at the relay point.', 'success'),
    RepairStatus.DIAGNOSED: ('Diagnosis available', 'A technician has diagnosed your device.', 'info'),
    RepairStatus.IN_REPAIR: ('Repair started', 'Your device is being repaired.', 'info'),
    RepairStatus.REPAIRED: ('Repair finished', 'Your device has been repaired.', 'success'),
    RepairStatus.READY_FOR_PICKUP: ('Ready for pickup', 'Your device is waiting for you at the relay point.', 'success'),
    RepairStatus.DELIVERED: ('Device collected', 'Your device has been handed back to you.', 'success'),
    RepairStatus.CANCELLED: ('Repair cancelled', 'Your repair request was cancelled.', 'warning'),
}


def notify_transition(dispatcher: NotificationDispatcher, repair, status: str, relay_point_id=None):
    """Fan out one transition: the client always, the relay point when involved."""
    title, body, kind = _STATUS_MESSAGES.get(status, ('Repair updated', f'Repair status is now {status}.', 'info'))
    dispatcher.notify(repair.client_id, title, body, kind, repair.id)
    if relay_point_id:
        dispatcher.notify(relay_point_id, f'Repair #{repair.id}: {title}', f'Status changed to {status}.', 'info', repair.id)

__all__ = ['NotificationEvent', 'DatabaseNotificationSink', 'NotificationDispatcher', 'notify_transition']
