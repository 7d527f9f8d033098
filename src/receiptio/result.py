"""
Print Result Codes.

Every print or status request resolves with exactly one of these values.
"""

from enum import Enum


class ResultCode(str, Enum):
    """Terminal outcome of a print session."""

    SUCCESS = "success"
    ONLINE = "online"
    COVEROPEN = "coveropen"
    PAPEREMPTY = "paperempty"
    ERROR = "error"
    OFFLINE = "offline"
    DISCONNECT = "disconnect"
    TIMEOUT = "timeout"
    DRAWERCLOSED = "drawerclosed"
    DRAWEROPEN = "draweropen"

    @property
    def exit_code(self) -> int:
        """Process exit status reported by the command-line tool."""
        return EXIT_CODES[self]

    @property
    def is_fault(self) -> bool:
        """True for faults reported by the printer itself."""
        return self in (ResultCode.COVEROPEN, ResultCode.PAPEREMPTY, ResultCode.ERROR)

    def __str__(self) -> str:
        return self.value


EXIT_CODES = {
    ResultCode.SUCCESS: 0,
    ResultCode.ONLINE: 100,
    ResultCode.COVEROPEN: 101,
    ResultCode.PAPEREMPTY: 102,
    ResultCode.ERROR: 103,
    ResultCode.OFFLINE: 104,
    ResultCode.DISCONNECT: 105,
    ResultCode.TIMEOUT: 106,
    ResultCode.DRAWERCLOSED: 107,
    ResultCode.DRAWEROPEN: 108,
}
