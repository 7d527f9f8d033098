"""
Printer Status Protocol.

Each printer family answers a hello sequence, reports faults in status
frames and signals completion in its own way. A StatusDecoder captures
those byte-level rules; ProtocolStateMachine drives any decoder through
the same session lifecycle:

    OPENED -> HANDSHAKE_SENT -> STATUS_READY -> PRINTING -> CLOSED

A session only moves forward. CLOSED is reached exactly once, through
whichever of success, fault, deadline or transport error comes first.

Timers are scheduled through an object with an asyncio-style
call_later(delay, callback, *args) returning a cancellable handle,
which is the running event loop unless another scheduler is injected.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Optional

from .destination import Destination
from .options import PrintOptions, PrinterFamily
from .responses import (
    EscPosAutomaticStatus,
    EscPosRealtimeStatus,
    SiiAutomaticStatus,
    StarStatus,
)
from .result import ResultCode

logger = logging.getLogger(__name__)


class SessionState(IntEnum):
    """Lifecycle of a print session. Values only ever increase."""

    OPENED = 0
    HANDSHAKE_SENT = 1
    STATUS_READY = 2
    PRINTING = 3
    CLOSED = 4


class Verdict(Enum):
    """What a decoder found at the head of the receive buffer."""

    CONSUMED = "consumed"          # bytes to discard
    FAULT = "fault"                # printer reported a fault
    READY = "ready"                # clean status frame
    STATUS = "status"              # completion status byte
    ERROR_DETAIL = "error_detail"  # error reported, details must be requested
    INCOMPLETE = "incomplete"      # wait for more bytes


@dataclass(frozen=True)
class Classification:
    """Decoder result for the bytes at the head of the buffer."""

    verdict: Verdict
    length: int = 0
    result: Optional[ResultCode] = None
    drawer_closed: Optional[bool] = None

    @classmethod
    def consumed(cls, length: int = 1) -> "Classification":
        return cls(Verdict.CONSUMED, length)

    @classmethod
    def fault(cls, result: ResultCode) -> "Classification":
        return cls(Verdict.FAULT, result=result)

    @classmethod
    def ready(cls, length: int, drawer_closed: Optional[bool] = None) -> "Classification":
        return cls(Verdict.READY, length, drawer_closed=drawer_closed)

    @classmethod
    def status(cls) -> "Classification":
        return cls(Verdict.STATUS, 1)

    @classmethod
    def error_detail(cls) -> "Classification":
        return cls(Verdict.ERROR_DETAIL, 1)

    @classmethod
    def incomplete(cls) -> "Classification":
        return cls(Verdict.INCOMPLETE)


# --- Decoders ---


class StatusDecoder:
    """
    Byte-level rules of one printer family.

    Attributes:
        HELLO: Sequence sent when the transport opens
        HANDSHAKE_REPLY: False if the printer never answers HELLO
        AUTOMATIC_STATUS_ENABLE: Sequence enabling automatic status back,
            None if the family reports status without it
        ERROR_DETAIL_REQUEST: Sequence sent when the handshake reports an error
        ACKNOWLEDGES_PRINT: True if clean frames during printing signal
            completion (first one acknowledges the job, a later one completes it)
    """

    FAMILY: PrinterFamily
    HELLO: bytes = b""
    HANDSHAKE_REPLY = True
    AUTOMATIC_STATUS_ENABLE: Optional[bytes] = None
    ERROR_DETAIL_REQUEST: Optional[bytes] = None
    ACKNOWLEDGES_PRINT = False

    # ESC @ GS a 0: reset and disable automatic status, emitted by composers
    RESET_PREFIX = b"\x1b@\x1da\x00"

    def classify(self, buffer: bytearray, state: SessionState) -> Classification:
        """Classify the bytes at the head of a non-empty buffer."""
        raise NotImplementedError

    def prepare(self, command: bytes) -> bytes:
        """Adapt a command buffer before it is sent to the printer."""
        if command.startswith(self.RESET_PREFIX):
            return command[len(self.RESET_PREFIX):]
        return command


class EscPosDecoder(StatusDecoder):
    """ESC/POS: realtime status handshake, then 4-byte automatic status back."""

    FAMILY = PrinterFamily.ESCPOS
    HELLO = b"\x10\x04\x02"  # DLE EOT 2
    AUTOMATIC_STATUS_ENABLE = b"\x1b@\x1da\xff"  # ESC @ GS a 255
    ERROR_DETAIL_REQUEST = b"\x10\x05\x02"  # DLE ENQ 2

    # Header bytes of block data responses (GS I, GS ( E, ...), NUL terminated.
    # The NUL stays in the buffer and is then read as a status byte.
    BLOCK_DATA_HEADERS = frozenset((0x35, 0x37, 0x3B, 0x3D, 0x5F))

    def classify(self, buffer: bytearray, state: SessionState) -> Classification:
        if state == SessionState.HANDSHAKE_SENT:
            return self._classify_realtime(buffer)

        first = buffer[0]
        if first in self.BLOCK_DATA_HEADERS:
            end = buffer.find(0)
            if end > 0:
                return Classification.consumed(end)
            return Classification.incomplete()

        if (first & 0x90) == 0:
            return Classification.status()

        if EscPosAutomaticStatus.is_header(first):
            if len(buffer) < EscPosAutomaticStatus.LENGTH:
                return Classification.incomplete()
            frame = EscPosAutomaticStatus.parse(buffer)
            if frame is None:
                return Classification.consumed(1)
            if frame.fault:
                return Classification.fault(frame.fault)
            return Classification.ready(frame.length, frame.drawer_closed)

        return Classification.consumed(1)

    def _classify_realtime(self, buffer: bytearray) -> Classification:
        status = EscPosRealtimeStatus.parse(buffer)
        if status.cover_open:
            return Classification.fault(ResultCode.COVEROPEN)
        if status.paper_empty:
            return Classification.fault(ResultCode.PAPEREMPTY)
        if status.error:
            return Classification.error_detail()
        if status.online:
            # Anything queued behind the handshake reply is stale
            return Classification.ready(len(buffer))
        return Classification.consumed(1)


class SiiDecoder(StatusDecoder):
    """SII: no handshake reply, 8-byte automatic status frames."""

    FAMILY = PrinterFamily.SII
    HELLO = b"\x1b@"  # ESC @
    HANDSHAKE_REPLY = False
    AUTOMATIC_STATUS_ENABLE = b"\x1da\xff"  # GS a 255

    def classify(self, buffer: bytearray, state: SessionState) -> Classification:
        first = buffer[0]
        if SiiAutomaticStatus.is_header(first):
            if len(buffer) < SiiAutomaticStatus.LENGTH:
                return Classification.incomplete()
            frame = SiiAutomaticStatus.parse(buffer)
            if frame.fault:
                return Classification.fault(frame.fault)
            return Classification.ready(frame.length, frame.drawer_closed)

        if (first & 0xF0) == 0x80:
            return Classification.status()

        return Classification.consumed(1)


class StarDecoder(StatusDecoder):
    """Star: variable-length status frames, automatic status always on."""

    FAMILY = PrinterFamily.STAR
    HELLO = b"\x1b\x06\x01"  # ESC ACK SOH
    ACKNOWLEDGES_PRINT = True

    # (ESC @) ESC RS a 0 -> (ESC @) ESC RS a 1 ETB
    LEADING_RESET = re.compile(rb"^(\x1b@)?\x1b\x1ea\x00")
    LEADING_REPLACEMENT = b"\\1\x1b\x1ea\x01\x17"
    # ESC GS ETX 1 0 0 (EOT) or ESC ACK SOH -> ETB
    TRAILING_REQUEST = re.compile(rb"(\x1b\x1d\x03\x01\x00\x00\x04?|\x1b\x06\x01)\Z")
    TRAILING_REPLACEMENT = b"\x17"

    def classify(self, buffer: bytearray, state: SessionState) -> Classification:
        if not StarStatus.is_header(buffer[0]):
            return Classification.consumed(1)

        length = StarStatus.frame_length(buffer)
        if length is None or len(buffer) < length:
            return Classification.incomplete()

        frame = StarStatus.parse(buffer)
        if frame is None:
            return Classification.consumed(1)
        if frame.fault:
            return Classification.fault(frame.fault)
        if state == SessionState.HANDSHAKE_SENT:
            return Classification.ready(len(buffer), frame.drawer_closed)
        return Classification.ready(frame.length, frame.drawer_closed)

    def prepare(self, command: bytes) -> bytes:
        command = self.LEADING_RESET.sub(self.LEADING_REPLACEMENT, command, count=1)
        return self.TRAILING_REQUEST.sub(self.TRAILING_REPLACEMENT, command, count=1)


DECODERS = {
    PrinterFamily.ESCPOS: EscPosDecoder,
    PrinterFamily.SII: SiiDecoder,
    PrinterFamily.STAR: StarDecoder,
}


def create_decoder(family: PrinterFamily) -> StatusDecoder:
    """Create the status decoder for a printer family."""
    return DECODERS[family]()


# --- State machine ---


@dataclass
class Session:
    """
    Mutable state of one print or status request.

    Attributes:
        destination: Where the printer is
        family: Printer family
        command: Command buffer to print
        buffer: Received bytes not consumed yet
        state: Lifecycle state
        drain: True while the transport accepts writes without queuing
        recovery_timer: Handshake / automatic status recovery timer
        deadline_timer: Offline, error-detail or print deadline
        acknowledged: Printer confirmed the job (families that acknowledge)
        awaiting_error_detail: Error reported, waiting for the detail reply
        result: Final result once CLOSED
    """

    destination: Optional[Destination]
    family: PrinterFamily
    command: bytes = b""
    buffer: bytearray = field(default_factory=bytearray)
    state: SessionState = SessionState.OPENED
    drain: bool = True
    recovery_timer: Optional[Any] = None
    deadline_timer: Optional[Any] = None
    acknowledged: bool = False
    awaiting_error_detail: bool = False
    result: Optional[ResultCode] = None


class ProtocolStateMachine:
    """
    Family-agnostic driver for a print session.

    The transport feeds it with receive(), drained() and fail(); the
    machine writes through connection.write() and reports the single
    result through on_result.
    """

    # Seconds without a reply before recovery starts
    RECOVERY_DELAY = 2.0
    # Seconds between recovery retransmissions
    RETRY_INTERVAL = 1.0
    # Seconds from the start of recovery until the printer is declared offline
    OFFLINE_DEADLINE = 10.0
    # Seconds to wait for the error detail reply
    ERROR_DETAIL_TIMEOUT = 1.0
    # NUL bytes sent ahead of a retransmission to flush interrupted commands
    FLUSH_LENGTH = 8192

    def __init__(
        self,
        session: Session,
        decoder: StatusDecoder,
        connection,
        on_result: Callable[[ResultCode], None],
        options: Optional[PrintOptions] = None,
        scheduler=None,
    ):
        self.session = session
        self.decoder = decoder
        self.connection = connection
        self.options = options or PrintOptions()
        self._on_result = on_result
        self._scheduler = scheduler or asyncio.get_running_loop()

    @property
    def state(self) -> SessionState:
        return self.session.state

    # --- Transport events ---

    def start(self):
        """Transport is open: say hello."""
        hello = self.decoder.HELLO
        self._advance(SessionState.HANDSHAKE_SENT)
        self._write(hello)
        if not self.decoder.HANDSHAKE_REPLY:
            self._enter_status_ready()
        else:
            self._arm_recovery(hello)

    def receive(self, data: bytes):
        """Append inbound bytes and decode until no progress is made."""
        session = self.session
        if session.state == SessionState.CLOSED:
            return

        session.buffer += data
        while session.buffer and session.state != SessionState.CLOSED:
            if session.awaiting_error_detail:
                self.close(ResultCode.ERROR)
                return

            length = len(session.buffer)
            self._dispatch(self.decoder.classify(session.buffer, session.state))
            if len(session.buffer) >= length:
                break

    def drained(self):
        """Transport send buffer is empty again."""
        self.session.drain = True

    def fail(self, exc: Optional[Exception] = None):
        """Transport fault."""
        logger.debug("Transport error: %s", exc)
        self.close(ResultCode.DISCONNECT)

    def close(self, result: ResultCode):
        """Resolve the session. Later calls are ignored."""
        session = self.session
        if session.state == SessionState.CLOSED:
            return
        self._cancel_timers()
        session.state = SessionState.CLOSED
        session.result = result
        self.connection.close()
        if result.is_fault:
            logger.warning("Printer reported %s", result.value)
        logger.debug("Session closed: %s", result.value)
        self._on_result(result)

    # --- Decoding ---

    def _dispatch(self, classification: Classification):
        session = self.session
        verdict = classification.verdict

        if verdict == Verdict.FAULT:
            self.close(classification.result)
        elif verdict == Verdict.CONSUMED:
            del session.buffer[:classification.length]
        elif verdict == Verdict.STATUS:
            if session.state == SessionState.PRINTING and session.drain:
                self.close(ResultCode.SUCCESS)
            else:
                del session.buffer[:1]
        elif verdict == Verdict.ERROR_DETAIL:
            del session.buffer[:1]
            self._request_error_detail()
        elif verdict == Verdict.READY:
            del session.buffer[:classification.length]
            self._ready(classification.drawer_closed)

    def _ready(self, drawer_closed: Optional[bool]):
        session = self.session
        if session.state == SessionState.HANDSHAKE_SENT:
            if self.decoder.AUTOMATIC_STATUS_ENABLE is not None:
                self._enter_status_ready()
            else:
                self._printer_ready(drawer_closed)
        elif session.state == SessionState.STATUS_READY:
            self._printer_ready(drawer_closed)
        elif session.state == SessionState.PRINTING and self.decoder.ACKNOWLEDGES_PRINT:
            if session.acknowledged and session.drain:
                self.close(ResultCode.SUCCESS)
            else:
                session.acknowledged = True

    def _printer_ready(self, drawer_closed: Optional[bool]):
        if not self.options.status_only:
            self._start_printing()
        elif self.options.drawer:
            self.close(ResultCode.DRAWERCLOSED if drawer_closed else ResultCode.DRAWEROPEN)
        else:
            self.close(ResultCode.ONLINE)

    # --- Transitions ---

    def _enter_status_ready(self):
        enable = self.decoder.AUTOMATIC_STATUS_ENABLE
        self._cancel_timers()
        self._advance(SessionState.STATUS_READY)
        self._write(enable)
        self._arm_recovery(enable)

    def _start_printing(self):
        session = self.session
        self._cancel_timers()
        self._advance(SessionState.PRINTING)
        self._write(self.decoder.prepare(session.command))
        timeout = self.options.timeout
        if timeout > 0:
            session.deadline_timer = self._scheduler.call_later(
                timeout, self.close, ResultCode.TIMEOUT
            )

    def _request_error_detail(self):
        session = self.session
        self._cancel_timers()
        self._write(self.decoder.ERROR_DETAIL_REQUEST)
        session.awaiting_error_detail = True
        session.deadline_timer = self._scheduler.call_later(
            self.ERROR_DETAIL_TIMEOUT, self.close, ResultCode.ERROR
        )

    def _advance(self, state: SessionState):
        if state > self.session.state:
            logger.debug("State %s -> %s", self.session.state.name, state.name)
            self.session.state = state

    # --- Timers ---

    def _arm_recovery(self, sequence: bytes):
        self.session.recovery_timer = self._scheduler.call_later(
            self.RECOVERY_DELAY, self._recover, sequence
        )

    def _recover(self, sequence: bytes):
        session = self.session
        logger.debug("No reply from printer, retrying")
        retransmission = bytes(self.FLUSH_LENGTH) + sequence
        session.recovery_timer = self._scheduler.call_later(
            self.RETRY_INTERVAL, self._retry, retransmission
        )
        session.deadline_timer = self._scheduler.call_later(
            self.OFFLINE_DEADLINE, self.close, ResultCode.OFFLINE
        )

    def _retry(self, retransmission: bytes):
        session = self.session
        if session.state == SessionState.CLOSED:
            return
        if session.drain:
            self._write(retransmission)
        session.recovery_timer = self._scheduler.call_later(
            self.RETRY_INTERVAL, self._retry, retransmission
        )

    def _cancel_timers(self):
        session = self.session
        for timer in (session.recovery_timer, session.deadline_timer):
            if timer is not None:
                timer.cancel()
        session.recovery_timer = None
        session.deadline_timer = None

    # --- Output ---

    def _write(self, data: bytes) -> bool:
        session = self.session
        if session.state == SessionState.CLOSED:
            return False
        logger.debug("TX %d bytes", len(data))
        session.drain = self.connection.write(data)
        return session.drain
