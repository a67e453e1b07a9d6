"""
Tests for progress event publishing.

Verifies that stage transitions reach in-process listeners in order and are
forwarded to Azure Service Bus when a sender is configured.
"""

import json
import pytest
from unittest.mock import Mock
from docscan.services.events.progress import ProgressEvent, ProgressPublisher, Stage, StageState


@pytest.fixture
def mock_service_bus_sender():
    """Create a mock Service Bus sender matching Azure SDK interface"""
    return Mock()


@pytest.fixture
def publisher(mock_service_bus_sender):
    """Create ProgressPublisher with mocked Service Bus sender"""
    return ProgressPublisher(service_bus_sender=mock_service_bus_sender)


def test_progress_event_structure():
    """Test that ProgressEvent stores enum values as plain strings"""
    event = ProgressEvent(stage=Stage.UPLOAD, state=StageState.STARTED, session_id="s-1")

    assert event.stage == "upload"
    assert event.state == "started"
    assert event.session_id == "s-1"
    assert event.job_id is None
    assert event.event_type == "ScanProgress"
    assert event.timestamp is not None


def test_event_to_json():
    event = ProgressEvent(stage=Stage.TRACK, state=StageState.PROGRESS, job_id="job-1", detail="queued")

    data = json.loads(event.to_json())

    assert data["stage"] == "track"
    assert data["state"] == "progress"
    assert data["job_id"] == "job-1"
    assert data["detail"] == "queued"


def test_publish_forwards_to_service_bus(publisher, mock_service_bus_sender):
    """Test that a published event is sent as a Service Bus message"""
    publisher.publish(ProgressEvent(stage=Stage.CAPTURE, state=StageState.SUCCEEDED, session_id="abc"))

    assert mock_service_bus_sender.send_messages.called
    message = mock_service_bus_sender.send_messages.call_args[0][0]
    assert "abc" in str(message)
    assert "ScanProgress" in str(message)


def test_service_bus_failure_does_not_raise(publisher, mock_service_bus_sender):
    """Forwarding errors are logged; the publisher keeps working"""
    mock_service_bus_sender.send_messages.side_effect = Exception("Service Bus unavailable")
    received = []
    publisher.subscribe(received.append)

    publisher.publish(ProgressEvent(stage=Stage.UPLOAD, state=StageState.FAILED))

    assert len(received) == 1
    assert len(publisher.history) == 1


def test_publisher_without_sender():
    """Publisher works without Service Bus (local development)"""
    publisher = ProgressPublisher(service_bus_sender=None)
    publisher.publish(ProgressEvent(stage=Stage.PERMISSION, state=StageState.STARTED))

    assert publisher.history[0].stage == "permission"


def test_listeners_receive_events_in_order():
    publisher = ProgressPublisher()
    received = []
    publisher.subscribe(lambda e: received.append(e.state))

    for state in (StageState.STARTED, StageState.PROGRESS, StageState.SUCCEEDED):
        publisher.publish(ProgressEvent(stage=Stage.TRACK, state=state))

    assert received == ["started", "progress", "succeeded"]


def test_unsubscribe_stops_delivery():
    publisher = ProgressPublisher()
    received = []
    unsubscribe = publisher.subscribe(received.append)

    publisher.publish(ProgressEvent(stage=Stage.TRACK, state=StageState.STARTED))
    unsubscribe()
    unsubscribe()
    publisher.publish(ProgressEvent(stage=Stage.TRACK, state=StageState.SUCCEEDED))

    assert len(received) == 1
    assert len(publisher.history) == 2


def test_events_for_filters_by_session():
    publisher = ProgressPublisher()
    publisher.publish(ProgressEvent(stage=Stage.UPLOAD, state=StageState.STARTED, session_id="a"))
    publisher.publish(ProgressEvent(stage=Stage.UPLOAD, state=StageState.STARTED, session_id="b"))
    publisher.publish(ProgressEvent(stage=Stage.UPLOAD, state=StageState.SUCCEEDED, session_id="a"))

    assert [e.state for e in publisher.events_for("a")] == ["started", "succeeded"]


def test_failing_listener_does_not_stop_delivery():
    publisher = ProgressPublisher()
    received = []

    def broken(event):
        raise RuntimeError("listener exploded")

    publisher.subscribe(broken)
    publisher.subscribe(received.append)

    publisher.publish(ProgressEvent(stage=Stage.UPLOAD, state=StageState.STARTED))

    assert len(received) == 1
    assert len(publisher.history) == 1


def test_history_keeps_only_the_most_recent_events():
    publisher = ProgressPublisher(history_limit=3)

    for i in range(10):
        publisher.publish(ProgressEvent(stage=Stage.TRACK, state=StageState.PROGRESS, detail=str(i)))

    assert [e.detail for e in publisher.history] == ["7", "8", "9"]
