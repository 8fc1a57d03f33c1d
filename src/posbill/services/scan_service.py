from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from posbill.domain.errors import CameraError, DeviceNotFoundError

log = logging.getLogger("posbill.scan")

SOURCE_KEYBOARD = "keyboard"
SOURCE_CAMERA = "camera"
SOURCE_MANUAL = "manual"

ENTER_KEYS = frozenset({"Return", "KP_Enter", "Enter", "\r", "\n"})

FACING_REAR = "environment"
FACING_FRONT = "user"


@dataclass(frozen=True)
class ScanEvent:
    code: str
    source: str


class ScanChannel:
    """Single queue that every input source publishes into.

    Events are handled one at a time, in order. Publishing from inside a
    handler only enqueues; the running drain picks it up afterwards.
    """

    def __init__(self):
        self._queue: deque[ScanEvent] = deque()
        self._handlers: list[Callable[[ScanEvent], None]] = []
        self._draining = False

    def subscribe(self, handler: Callable[[ScanEvent], None]) -> None:
        self._handlers.append(handler)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def publish(self, event: ScanEvent) -> None:
        log.info("scan_received source=%s code=%s", event.source, event.code)
        self._queue.append(event)
        if not self._draining:
            self._drain()

    def _drain(self) -> None:
        self._draining = True
        try:
            while self._queue:
                event = self._queue.popleft()
                for handler in list(self._handlers):
                    handler(event)
        finally:
            self._draining = False


class KeystrokeBurstListener:
    """Turns hardware-scanner keystroke bursts into scan events.

    Scanners type the whole code in a few milliseconds and finish with Enter.
    A pause longer than ``gap_ms`` means a human is typing, so the buffer restarts.
    """

    def __init__(self, channel: ScanChannel, gap_ms: int = 100, clock: Callable[[], float] = time.monotonic):
        self.channel = channel
        self.gap_ms = gap_ms
        self.clock = clock
        self.active = False
        self.buffer = ""
        self._last_key_at: Optional[float] = None

    def activate(self) -> None:
        self.active = True
        self._reset()

    def deactivate(self) -> None:
        self.active = False
        self._reset()

    def _reset(self) -> None:
        self.buffer = ""
        self._last_key_at = None

    def on_key(self, key: str, timestamp: float | None = None) -> Optional[str]:
        if not self.active or not key:
            return None
        now = self.clock() if timestamp is None else timestamp

        if self._last_key_at is not None and (now - self._last_key_at) * 1000 > self.gap_ms:
            self.buffer = ""

        if key in ENTER_KEYS:
            code = self.buffer
            self._reset()
            if not code:
                return None
            self.channel.publish(ScanEvent(code, SOURCE_KEYBOARD))
            return code

        # modifiers and navigation keys (Shift_L, Tab, ...) are not part of a code
        if len(key) != 1 or not key.isprintable():
            return None

        self.buffer += key
        self._last_key_at = now
        return None


class CameraStream(Protocol):
    def read(self) -> object | None: ...
    def close(self) -> None: ...


class OpticalScanner:
    """Decodes codes from a live camera stream.

    ``open_camera(facing)`` returns a stream or raises ``CameraError``; a
    ``DeviceNotFoundError`` on the rear camera gets one retry on the front one.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    ERROR = "error"
    STOPPED = "stopped"

    def __init__(
        self,
        channel: ScanChannel,
        open_camera: Callable[[str], CameraStream],
        decode: Callable[[object], Optional[str]],
    ):
        self.channel = channel
        self.open_camera = open_camera
        self.decode = decode
        self.state = self.IDLE
        self.facing: Optional[str] = None
        self.error: Optional[str] = None
        self._stream: Optional[CameraStream] = None

    def start(self) -> bool:
        if self.state == self.SCANNING:
            return True
        try:
            stream = self.open_camera(FACING_REAR)
            facing = FACING_REAR
        except DeviceNotFoundError as e:
            log.warning("camera_rear_unavailable error=%s retry=%s", e, FACING_FRONT)
            try:
                stream = self.open_camera(FACING_FRONT)
                facing = FACING_FRONT
            except CameraError as e2:
                return self._fail(e2)
        except CameraError as e:
            return self._fail(e)

        self._stream = stream
        self.facing = facing
        self.error = None
        self.state = self.SCANNING
        log.info("camera_started facing=%s", facing)
        return True

    def _fail(self, err: CameraError) -> bool:
        self.state = self.ERROR
        self.error = f"Camera error: {err}. Enter the code manually."
        log.error("camera_failed error=%s", err)
        return False

    def poll(self, max_frames: int = 1) -> list[str]:
        """Read up to ``max_frames`` frames and publish every decoded code."""
        if self.state != self.SCANNING or self._stream is None:
            return []
        codes: list[str] = []
        for _ in range(max_frames):
            frame = self._stream.read()
            if frame is None:
                break
            code = (self.decode(frame) or "").strip()
            if not code:
                continue
            codes.append(code)
            self.channel.publish(ScanEvent(code, SOURCE_CAMERA))
        return codes

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
            log.info("camera_released facing=%s", self.facing)
        if self.state != self.ERROR:
            self.state = self.STOPPED


class ManualEntry:
    def __init__(self, channel: ScanChannel):
        self.channel = channel

    def submit(self, text: str) -> Optional[str]:
        code = (text or "").strip()
        if not code:
            return None
        self.channel.publish(ScanEvent(code, SOURCE_MANUAL))
        return code
