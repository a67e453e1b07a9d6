"""
Progress events for a pipeline run.

The coordinator emits one event per stage transition. Listeners (UI layers,
the CLI printer, tests) receive them in order; when an Azure Service Bus
sender is configured, each event is also forwarded as a JSON message so
other processes can follow the scan.
"""

import json
import threading
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime, UTC
from enum import Enum
from typing import Callable, Optional
from loguru import logger


class Stage(str, Enum):
    PERMISSION = "permission"
    CAPTURE = "capture"
    UPLOAD = "upload"
    TRACK = "track"
    EXTRACT = "extract"


class StageState(str, Enum):
    STARTED = "started"
    PROGRESS = "progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ProgressEvent:
    """
    Event published on every stage transition of a pipeline run.
    """

    stage: str
    state: str
    session_id: Optional[str] = None
    job_id: Optional[str] = None
    detail: Optional[str] = None
    event_type: str = "ScanProgress"
    timestamp: Optional[str] = None

    def __post_init__(self):
        """Set timestamp if not provided"""
        if isinstance(self.stage, Enum):
            self.stage = self.stage.value
        if isinstance(self.state, Enum):
            self.state = self.state.value
        if self.timestamp is None:
            self.timestamp = datetime.now(UTC).isoformat()

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


Listener = Callable[[ProgressEvent], None]


class ProgressPublisher:
    """
    Fans progress events out to in-process listeners and, optionally, to
    Azure Service Bus.

    Usage:
        publisher = ProgressPublisher()
        publisher.subscribe(lambda event: print(event.stage, event.state))

        # Also forward to a Service Bus queue
        from azure.servicebus import ServiceBusClient
        client = ServiceBusClient.from_connection_string(conn_str)
        sender = client.get_queue_sender(queue_name="scan-progress")
        publisher = ProgressPublisher(service_bus_sender=sender)
    """

    def __init__(self, service_bus_sender: Optional[object] = None, history_limit: int = 1000):
        self.service_bus_sender = service_bus_sender
        self._listeners: list[Listener] = []
        # Oldest events drop off once the limit is reached
        self._history: deque[ProgressEvent] = deque(maxlen=history_limit)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def history(self) -> list[ProgressEvent]:
        with self._lock:
            return list(self._history)

    def events_for(self, session_id: str) -> list[ProgressEvent]:
        with self._lock:
            return [e for e in self._history if e.session_id == session_id]

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            self._history.append(event)
            listeners = list(self._listeners)

        logger.debug(
            "Progress event",
            stage=event.stage,
            state=event.state,
            session_id=event.session_id,
            job_id=event.job_id,
        )
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning("Progress listener failed", stage=event.stage, state=event.state, error=str(e))

        if self.service_bus_sender is not None:
            self._forward(event)

    def _forward(self, event: ProgressEvent) -> None:
        from azure.servicebus import ServiceBusMessage

        message = ServiceBusMessage(event.to_json(), content_type="application/json")
        try:
            self.service_bus_sender.send_messages(message)
        except Exception as e:
            # Progress forwarding must not fail the scan itself
            logger.warning("Failed to forward progress event", stage=event.stage, state=event.state, error=str(e))
