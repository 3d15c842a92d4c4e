import logging
import queue
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Type, Union
from fishfinder.domain.events import Event

EventKey = Union[Type[Event], str]
Topic = Tuple[str, Optional[str]]

_CLOSED = object()

DEFAULT_STREAM_SIZE = 1000

def _kind_of(event_type: EventKey) -> str:
    return event_type if isinstance(event_type, str) else event_type.kind

class Subscription:
    """Handle returned by EventBus.subscribe."""

    def __init__(self, bus: "EventBus", topic: Topic, callback: Callable[[Any], None]):
        self._bus = bus
        self.topic = topic
        self.callback = callback
        self.active = True

    def cancel(self):
        self._bus.unsubscribe(self)

class EventBus:
    """A simple synchronous event bus for decoupled communication.

    Topics are ``(kind, entity_id)`` pairs; subscribing with ``entity_id=None``
    receives the kind for every entity. Callbacks run on the publishing thread,
    in subscription order, and events on one topic arrive in publish order.
    Nothing is buffered or replayed, and there is no ordering across topics.
    """

    def __init__(self):
        self._subscribers: Dict[Topic, List[Subscription]] = {}
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)

    def subscribe(self, event_type: EventKey, callback: Callable[[Any], None], entity_id: Optional[str] = None) -> Subscription:
        """Subscribes a callback to an event kind, optionally for one entity."""
        topic = (_kind_of(event_type), entity_id)
        subscription = Subscription(self, topic, callback)
        with self._lock:
            if topic not in self._subscribers:
                self._subscribers[topic] = []
            self._subscribers[topic].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        """Detaches a subscription. Calling it twice is harmless."""
        with self._lock:
            subscription.active = False
            subscribers = self._subscribers.get(subscription.topic)
            if subscribers and subscription in subscribers:
                subscribers.remove(subscription)
                if not subscribers:
                    del self._subscribers[subscription.topic]

    def publish(self, event: Event):
        """Publishes an event to all interested subscribers."""
        with self._lock:
            targets = list(self._subscribers.get((event.kind, event.entity_id), ()))
            targets.extend(self._subscribers.get((event.kind, None), ()))
        for subscription in targets:
            if not subscription.active:
                continue
            try:
                subscription.callback(event)
            except Exception as e:
                self.logger.exception(f"Subscriber for {event.topic} failed: {e}")

    def listen(
        self,
        event_types: Iterable[EventKey],
        entity_id: Optional[str] = None,
        maxsize: int = DEFAULT_STREAM_SIZE
    ) -> "EventStream":
        """Opens a queue-backed stream of the given kinds for another thread to consume."""
        return EventStream(self, event_types, entity_id, maxsize=maxsize)

    def subscriber_count(self, event_type: Optional[EventKey] = None, entity_id: Optional[str] = None) -> int:
        with self._lock:
            if event_type is None:
                return sum(len(subs) for subs in self._subscribers.values())
            return len(self._subscribers.get((_kind_of(event_type), entity_id), ()))

class EventStream:
    """Subscription that queues events instead of calling back.

    Meant for observers living on their own thread (e.g. a streaming HTTP
    client). Iterating blocks until the next event and stops once the stream
    is closed.

    At most ``maxsize`` events are buffered (0 means unbounded). When the
    reader falls behind, new events are dropped and counted in ``dropped``;
    publishers never block on a slow reader.
    """

    def __init__(
        self,
        bus: EventBus,
        event_types: Iterable[EventKey],
        entity_id: Optional[str] = None,
        maxsize: int = DEFAULT_STREAM_SIZE
    ):
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self.logger = logging.getLogger(__name__)
        self.dropped = 0
        self.closed = False
        self._subscriptions = [bus.subscribe(t, self._offer, entity_id) for t in event_types]

    def _offer(self, event: Event):
        if self.closed:
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            if self.dropped == 1:
                self.logger.warning(
                    f"Event stream full ({self._queue.maxsize}), dropping {event.topic} until the reader catches up"
                )

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Next event, or None on timeout or once closed."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            return None
        return item

    def drain(self) -> List[Event]:
        """All events queued so far, without blocking."""
        events = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                break
            events.append(item)
        return events

    def close(self):
        if self.closed:
            return
        self.closed = True
        for subscription in self._subscriptions:
            subscription.cancel()
        # The close marker must fit even when the buffer is full
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def __iter__(self) -> Iterator[Event]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return
            yield item

    def __enter__(self) -> "EventStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
