from __future__ import annotations

import json
import socket
import time

import pytest

from screengaze.errors import FrameFailure
from screengaze.event_bus import SocketEventBus, build_gaze_event, encode_event
from screengaze.pipeline import FrameResult, process_frame
from screengaze.screen_mapper import GazePoint
from screengaze.tracking import TrackingContext, TrackingState
from tests.helpers import make_pose

POINT = GazePoint(normalized_x=1.25, normalized_y=0.5, pixel_x=2400.0, pixel_y=540.0)


def test_target_event_is_unclamped():
    event = build_gaze_event(FrameResult(state=TrackingState.TRACKING, gaze_point=POINT), 1234)
    assert event == {
        "source": "gaze",
        "timestamp": 1234,
        "state": "tracking",
        "intent": "gaze_target",
        "payload": {"x_norm": 1.25, "y_norm": 0.5, "target_x": 2400.0, "target_y": 540.0},
    }


def test_held_point_event():
    result = FrameResult(
        state=TrackingState.LOST,
        gaze_point=POINT,
        held=True,
        failure=FrameFailure.NO_DETECTION,
    )
    event = build_gaze_event(result, 0)
    assert event["intent"] == "gaze_hold"
    assert event["state"] == "lost"


def test_noop_event_reports_reason():
    event = build_gaze_event(
        FrameResult(state=TrackingState.ACQUIRING, failure=FrameFailure.NO_INTERSECTION), 5
    )
    assert event["intent"] == "noop"
    assert event["payload"] == {"reason": "no_intersection"}


def test_expired_grace_is_reported_with_frame_failure(unit_config, viewport):
    ctx = TrackingContext()
    process_frame(make_pose(), unit_config, ctx, viewport)
    for _ in range(unit_config.grace_frames):
        held = process_frame(None, unit_config, ctx, viewport)
        assert build_gaze_event(held, 0)["intent"] == "gaze_hold"
    expired = process_frame(None, unit_config, ctx, viewport)
    event = build_gaze_event(expired, 7)
    assert event["state"] == "lost"
    assert event["intent"] == "noop"
    assert event["payload"] == {"reason": "grace_expired", "failure": "no_detection"}


def test_noop_without_failure_falls_back_to_state():
    event = build_gaze_event(FrameResult(state=TrackingState.IDLE), 0)
    assert event["payload"] == {"reason": "idle"}


def test_encoded_event_is_one_compact_line():
    data = encode_event({"source": "gaze", "payload": {"x_norm": 0.5}})
    assert data == b'{"source":"gaze","payload":{"x_norm":0.5}}\n'


def test_event_is_json_serializable():
    event = build_gaze_event(FrameResult(state=TrackingState.TRACKING, gaze_point=POINT), 1)
    assert json.loads(json.dumps(event)) == event


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_bus_broadcasts_newline_delimited_json():
    bus = SocketEventBus(host="127.0.0.1", port=0)
    bus.start()
    try:
        host, port = bus.address
        with socket.create_connection((host, port), timeout=3.0) as client:
            assert _wait_for(lambda: bus.client_count == 1)
            bus.publish(FrameResult(state=TrackingState.TRACKING, gaze_point=POINT), 42)
            reader = client.makefile("r", encoding="utf-8")
            line = reader.readline()
        message = json.loads(line)
        assert message["intent"] == "gaze_target"
        assert message["timestamp"] == 42
        assert message["payload"]["target_x"] == pytest.approx(2400.0)
    finally:
        bus.stop()
    assert bus.address is None


def test_broadcast_before_start_is_ignored():
    bus = SocketEventBus(port=0)
    bus.broadcast({"source": "gaze"})
    assert bus.client_count == 0
    assert bus.broadcast({"source": "gaze"}) == 0
    assert not bus.running


def test_bus_as_context_manager_counts_deliveries():
    with SocketEventBus(port=0) as bus:
        assert bus.running
        host, port = bus.address
        with socket.create_connection((host, port), timeout=3.0) as first, socket.create_connection(
            (host, port), timeout=3.0
        ) as second:
            assert _wait_for(lambda: bus.client_count == 2)
            assert bus.broadcast({"source": "gaze", "intent": "noop"}) == 2
            for client in (first, second):
                line = client.makefile("r", encoding="utf-8").readline()
                assert json.loads(line)["intent"] == "noop"
    assert not bus.running
    assert bus.address is None
    assert bus.client_count == 0
