class ConsentGate:
    """Per-connection agreement flag. A fresh connection always starts unconsented."""

    def __init__(self):
        self._agreed = {}

    def register(self, cid: str):
        self._agreed[cid] = False

    def grant(self, cid: str):
        if cid in self._agreed:
            self._agreed[cid] = True

    def is_agreed(self, cid: str) -> bool:
        return self._agreed.get(cid, False)

    def discard(self, cid: str):
        self._agreed.pop(cid, None)

    def __contains__(self, cid):
        return cid in self._agreed

    def __len__(self):
        return len(self._agreed)
