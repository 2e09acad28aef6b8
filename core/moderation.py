import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)

REPORT_THRESHOLD = 10
BAN_SECONDS = 24 * 60 * 60


@dataclass
class ReportTally:
    reporters: Set[str] = field(default_factory=set)
    last_report: float = 0.0


class ModerationLedger:
    """
    Tracks distinct reporters per reported identity and the temporary bans
    that follow once `threshold` distinct reporters have filed against it.
    """

    def __init__(self, threshold: int = REPORT_THRESHOLD, ban_seconds: float = BAN_SECONDS,
                 tally_ttl: Optional[float] = None, clock=time.time):
        self.threshold = threshold
        self.ban_seconds = ban_seconds
        self.tally_ttl = tally_ttl
        self.clock = clock
        self._tallies: Dict[str, ReportTally] = {}
        self._bans: Dict[str, float] = {}

    def file_report(self, target: str, reporter: str) -> bool:
        """
        Records `reporter` against `target`. Returns True when this report
        pushed the tally to the threshold; the tally is then cleared and a
        ban installed for the target.
        """
        now = self.clock()
        tally = self._tallies.get(target)
        if tally is None:
            tally = self._tallies[target] = ReportTally()
        tally.reporters.add(reporter)
        tally.last_report = now

        if len(tally.reporters) < self.threshold:
            return False

        del self._tallies[target]
        self._bans[target] = now + self.ban_seconds
        logger.info("Identity banned after %d distinct reports", self.threshold)
        return True

    def is_banned(self, identity: str) -> bool:
        until = self._bans.get(identity)
        if until is None:
            return False
        if self.clock() < until:
            return True
        # Expired: purge on the read that notices it
        del self._bans[identity]
        return False

    def ban_expiry(self, identity: str) -> Optional[float]:
        return self._bans.get(identity)

    def report_count(self, identity: str) -> int:
        tally = self._tallies.get(identity)
        return len(tally.reporters) if tally else 0

    def sweep(self):
        """Drops expired bans and tallies idle for longer than tally_ttl."""
        now = self.clock()
        expired = [ident for ident, until in self._bans.items() if until <= now]
        for ident in expired:
            del self._bans[ident]

        stale = []
        if self.tally_ttl is not None:
            stale = [ident for ident, tally in self._tallies.items()
                     if now - tally.last_report >= self.tally_ttl]
            for ident in stale:
                del self._tallies[ident]

        if expired or stale:
            logger.debug("Sweep removed %d bans and %d tallies", len(expired), len(stale))
        return len(expired), len(stale)

    @property
    def active_bans(self) -> int:
        return len(self._bans)

    @property
    def open_tallies(self) -> int:
        return len(self._tallies)
