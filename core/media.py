from dataclasses import dataclass
from typing import Dict, Optional

from utils.validators import is_data_url


@dataclass(frozen=True)
class PendingOffer:
    sender: str
    payload: str
    kind: str


class PendingMediaExchange:
    """
    Holds at most one unresolved media offer per receiving connection.
    A second offer to the same receiver replaces the first.
    """

    def __init__(self, kind: str, prefix: str):
        self.kind = kind
        self.prefix = prefix
        self._offers: Dict[str, PendingOffer] = {}

    # Outbound event names for this media kind
    @property
    def request_event(self):
        return f"{self.kind}_request"

    @property
    def sent_event(self):
        return f"{self.kind}_sent"

    @property
    def deliver_event(self):
        return f"{self.kind}_deliver"

    @property
    def accepted_event(self):
        return f"{self.kind}_accepted"

    @property
    def declined_event(self):
        return f"{self.kind}_declined"

    def accepts(self, payload) -> bool:
        return is_data_url(payload, self.prefix)

    def offer(self, receiver: str, sender: str, payload: str):
        self._offers[receiver] = PendingOffer(sender=sender, payload=payload, kind=self.kind)

    def peek(self, receiver: str) -> Optional[PendingOffer]:
        return self._offers.get(receiver)

    def take(self, receiver: str) -> Optional[PendingOffer]:
        return self._offers.pop(receiver, None)

    def discard_for(self, cid: str):
        """Removes offers addressed to `cid` and offers sent by it."""
        self._offers.pop(cid, None)
        for receiver in [r for r, o in self._offers.items() if o.sender == cid]:
            del self._offers[receiver]

    def discard_between(self, a: str, b: str):
        for receiver, sender in ((a, b), (b, a)):
            pending = self._offers.get(receiver)
            if pending is not None and pending.sender == sender:
                del self._offers[receiver]

    def __len__(self):
        return len(self._offers)


def photo_exchange() -> PendingMediaExchange:
    return PendingMediaExchange("photo", "data:image/")


def video_exchange() -> PendingMediaExchange:
    return PendingMediaExchange("video", "data:video/")
