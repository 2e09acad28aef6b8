from collections import deque
from typing import Optional


class MatchingQueue:
    """FIFO of connection ids waiting for a partner. Each id appears at most once."""

    def __init__(self):
        self._order = deque()
        self._members = set()

    def push(self, cid: str) -> bool:
        if cid in self._members:
            return False
        self._order.append(cid)
        self._members.add(cid)
        return True

    def pop(self) -> Optional[str]:
        if not self._order:
            return None
        cid = self._order.popleft()
        self._members.discard(cid)
        return cid

    def remove(self, cid: str):
        if cid not in self._members:
            return
        self._members.discard(cid)
        self._order.remove(cid)

    def __contains__(self, cid):
        return cid in self._members

    def __len__(self):
        return len(self._order)

    def __iter__(self):
        return iter(list(self._order))


class PartnerRegistry:
    """
    Symmetric partner map. Both directions are written and removed
    together, so partner_of(partner_of(x)) == x for every paired x.
    """

    def __init__(self):
        self._partners = {}

    def pair(self, a: str, b: str):
        if a == b:
            raise ValueError("A connection cannot be paired with itself")
        if a in self._partners or b in self._partners:
            raise ValueError("Connection already paired")
        self._partners[a] = b
        self._partners[b] = a

    def unpair(self, cid: str) -> Optional[str]:
        """Removes the pairing containing `cid` and returns the former partner."""
        partner = self._partners.pop(cid, None)
        if partner is not None:
            self._partners.pop(partner, None)
        return partner

    def partner_of(self, cid: str) -> Optional[str]:
        return self._partners.get(cid)

    def is_paired(self, cid: str) -> bool:
        return cid in self._partners

    def pairs(self):
        seen = set()
        for a, b in self._partners.items():
            if a in seen:
                continue
            seen.update((a, b))
            yield a, b

    def __len__(self):
        return len(self._partners) // 2
