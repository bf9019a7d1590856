#!/usr/bin/env python3

from __future__ import annotations

import json
import socket
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from screengaze.pipeline import FrameResult
from screengaze.tracking import TrackingState


def build_gaze_event(result: FrameResult, timestamp_ms: int) -> Dict[str, Any]:
    """Wire form of one frame result.

    Coordinates are passed through unclamped; off-screen values are the
    consumer's to clamp. A Lost frame with nothing to show means the grace
    period ran out, and is reported as ``grace_expired`` together with the
    frame's own failure.
    """
    event: Dict[str, Any] = {
        "source": "gaze",
        "timestamp": int(timestamp_ms),
        "state": result.state.value,
    }
    point = result.gaze_point
    if point is None:
        event["intent"] = "noop"
        if result.state is TrackingState.LOST:
            payload: Dict[str, Any] = {"reason": "grace_expired"}
            if result.failure is not None:
                payload["failure"] = result.failure.value
        elif result.failure is not None:
            payload = {"reason": result.failure.value}
        else:
            payload = {"reason": result.state.value}
        event["payload"] = payload
        return event

    event["intent"] = "gaze_hold" if result.held else "gaze_target"
    event["payload"] = {
        "x_norm": point.normalized_x,
        "y_norm": point.normalized_y,
        "target_x": point.pixel_x,
        "target_y": point.pixel_y,
    }
    return event


def encode_event(message: Dict[str, Any]) -> bytes:
    """One compact JSON object per line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


@dataclass(eq=False)
class _Subscriber:
    conn: socket.socket
    peer: Any
    sent: int = 0


class SocketEventBus:
    """Fans gaze events out to local TCP subscribers as JSON lines.

    Subscribers only read; anything they send is ignored. A subscriber whose
    socket errors on send is dropped on that send.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8765,
        *,
        backlog: int = 4,
        accept_timeout: float = 0.5,
    ) -> None:
        self.host = host
        self.port = port
        self.backlog = backlog
        self.accept_timeout = accept_timeout
        self._listener: Optional[socket.socket] = None
        self._subscribers: List[_Subscriber] = []
        self._lock = threading.Lock()
        self._serving = threading.Event()
        self._acceptor: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._serving.is_set()

    @property
    def address(self) -> Optional[tuple[str, int]]:
        if self._listener is None:
            return None
        host, port = self._listener.getsockname()[:2]
        return host, port

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def start(self) -> None:
        if self.running:
            return
        self._listener = socket.create_server((self.host, self.port), backlog=self.backlog)
        self._listener.settimeout(self.accept_timeout)
        self._serving.set()
        self._acceptor = threading.Thread(target=self._serve, name="GazeEventBus", daemon=True)
        self._acceptor.start()
        host, port = self.address
        print(f"[Bus] listening on tcp://{host}:{port}")

    def _serve(self) -> None:
        listener = self._listener
        while self._serving.is_set() and listener is not None:
            try:
                conn, peer = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                # listener closed by stop()
                break
            conn.settimeout(None)
            with self._lock:
                self._subscribers.append(_Subscriber(conn=conn, peer=peer))
            print(f"[Bus] subscriber {peer} joined")

    def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` to every subscriber; returns how many received it."""
        if not self.running:
            return 0
        data = encode_event(message)
        delivered = 0
        with self._lock:
            for sub in list(self._subscribers):
                try:
                    sub.conn.sendall(data)
                except OSError:
                    self._drop(sub)
                    continue
                sub.sent += 1
                delivered += 1
        return delivered

    def publish(self, result: FrameResult, timestamp_ms: int) -> int:
        return self.broadcast(build_gaze_event(result, timestamp_ms))

    def _drop(self, sub: _Subscriber) -> None:
        # caller holds self._lock
        self._subscribers.remove(sub)
        print(f"[Bus] subscriber {sub.peer} dropped after {sub.sent} events")
        try:
            sub.conn.close()
        except OSError:
            pass

    def stop(self) -> None:
        self._serving.clear()
        with self._lock:
            for sub in list(self._subscribers):
                self._drop(sub)
        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass
        if self._acceptor is not None:
            self._acceptor.join(timeout=2.0 * self.accept_timeout + 0.5)
        self._listener = None
        self._acceptor = None

    def __enter__(self) -> "SocketEventBus":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()
