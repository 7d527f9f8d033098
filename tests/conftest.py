"""
Pytest configuration for receiptio tests.

Provides a virtual clock and an in-memory connection so protocol tests
run without a printer and without real timers.
"""

import pytest

from receiptio.connection import Connection
from receiptio.options import PrintOptions, PrinterFamily
from receiptio.protocol import ProtocolStateMachine, Session, create_decoder


class FakeHandle:
    """Cancellable timer handle."""

    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual clock with an asyncio-style call_later."""

    def __init__(self):
        self.now = 0.0
        self._handles = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(self.now + delay, callback, args)
        self._handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds):
        """Run every callback due within the next seconds, in time order."""
        end = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= end]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = end


class FakeConnection(Connection):
    """In-memory connection recording writes."""

    def __init__(self, open_result=True):
        super().__init__()
        self.open_result = open_result
        self.writes = []
        self.drain = True
        self.close_count = 0

    async def open(self):
        return self.open_result

    def write(self, data):
        self.writes.append(bytes(data))
        return self.drain

    def close(self):
        self.close_count += 1
        self._closed = True

    @property
    def written(self):
        return b"".join(self.writes)


@pytest.fixture
def scheduler():
    """Virtual clock starting at t=0."""
    return FakeScheduler()


@pytest.fixture
def connection():
    """In-memory connection."""
    return FakeConnection()


@pytest.fixture
def make_machine(scheduler, connection):
    """Factory for a state machine wired to the fake clock and connection."""

    def _make(family=PrinterFamily.ESCPOS, command=b"", **options):
        results = []
        session = Session(destination=None, family=family, command=command)
        machine = ProtocolStateMachine(
            session,
            create_decoder(family),
            connection,
            on_result=results.append,
            options=PrintOptions(**options),
            scheduler=scheduler,
        )
        machine.results = results
        return machine

    return _make
