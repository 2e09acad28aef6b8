from typing import Any, Optional, Protocol

from utils.error_codes import CloseCodes


class Transport(Protocol):
    """What the chat core needs from the connection layer."""

    def emit(self, cid: str, event: str, data: Any = None) -> None:
        ...

    def is_connected(self, cid: str) -> bool:
        ...

    def disconnect(self, cid: str, code: int = CloseCodes.NORMAL, reason: str = "") -> None:
        ...


class RelayDispatcher:
    """The only path by which the core talks back to a connection."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def send(self, cid: Optional[str], event: str, data: Any = None):
        if not cid or not self.transport.is_connected(cid):
            return
        self.transport.emit(cid, event, data)

    def close(self, cid: Optional[str], code: int = CloseCodes.NORMAL, reason: str = ""):
        if not cid or not self.transport.is_connected(cid):
            return
        self.transport.disconnect(cid, code, reason)
