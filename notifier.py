"""Real-time fan-out of notifications to connected WebSocket clients."""

from dataclasses import asdict, is_dataclass
import json
import logging
import threading
from typing import Any, Protocol

logger = logging.getLogger('medifind.notifier')


class Subscriber(Protocol):
    """Anything with a send() taking a text frame (e.g. a flask-sock socket)."""

    def send(self, data: str) -> None:
        ...


class Broadcaster:
    """
    Delivers every message to every currently connected subscriber.

    Delivery is fire-and-forget: nothing is queued for clients that connect
    later, and a subscriber whose send fails is dropped.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.subscribers: list[Subscriber] = []

    @property
    def subscriber_count(self) -> int:
        with self.lock:
            return len(self.subscribers)

    def subscribe(self, subscriber: Subscriber):
        """Start delivering broadcasts to subscriber."""

        with self.lock:
            self.subscribers.append(subscriber)
            count = len(self.subscribers)
        logger.info('Client connected for real-time alerts (%d connected)',
                    count)

    def unsubscribe(self, subscriber: Subscriber):
        """Stop delivering to subscriber; no-op if it is already gone."""

        with self.lock:
            if subscriber not in self.subscribers:
                return
            self.subscribers.remove(subscriber)
            count = len(self.subscribers)
        logger.info('Client disconnected (%d connected)', count)

    def serve(self, ws):
        """
        Subscribe ws for the life of the connection.

        Incoming frames are only logged. Returns or raises when the client
        goes away (flask-sock surfaces that as ConnectionClosed); ws is
        unsubscribed either way.
        """

        self.subscribe(ws)
        try:
            while True:
                logger.debug('Received: %s', ws.receive())
        finally:
            self.unsubscribe(ws)

    def broadcast(self, payload: Any) -> int:
        """
        Send payload (a dataclass or JSON-serializable object) to every
        subscriber.

        Returns:
            How many subscribers it was handed to.
        """

        if is_dataclass(payload):
            payload = asdict(payload)
        data = json.dumps(payload)

        with self.lock:
            subscribers = list(self.subscribers)

        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber.send(data)
                delivered += 1
            except Exception:  # pylint: disable=broad-except
                logger.warning('Dropping subscriber after failed send',
                               exc_info=True)
                self.unsubscribe(subscriber)
        return delivered
