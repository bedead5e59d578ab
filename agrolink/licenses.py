"""Simulated license-key registry for the settings screen.

Keys are issued per plan tier and expire if nobody claims them: an active,
unclaimed key is revoked five minutes after issue and dropped from the
registry one minute after that.  Nothing here is a real licensing system.
"""

from __future__ import annotations

import logging
import itertools
import random
import string
import time
from collections.abc import Callable

from pydantic import BaseModel

from agrolink.models import StrEnum
from agrolink.timers import PeriodicTask

__all__ = ["License", "LicenseRegistry", "LicenseStatus", "PlanTier"]

logger = logging.getLogger("agrolink.licenses")

KEY_EXPIRY_S = 5 * 60
PRUNE_BUFFER_S = 60
KEY_ALPHABET = string.ascii_uppercase + string.digits


class PlanTier(StrEnum):
    BOUTIQUE_ESTATE = "Boutique Estate"
    INDUSTRIAL_APEX = "Industrial Apex"
    SOVEREIGN_PROTOCOL = "Sovereign Protocol"


class LicenseStatus(StrEnum):
    ACTIVE = "active"
    REVOKED = "revoked"
    PERMANENT = "permanent"


TIER_PREFIXES: dict[PlanTier, str] = {
    PlanTier.BOUTIQUE_ESTATE: "BTE-",
    PlanTier.INDUSTRIAL_APEX: "IAX-",
    PlanTier.SOVEREIGN_PROTOCOL: "SVP-",
}


class License(BaseModel):
    id: str
    key: str
    entity: str
    tier: PlanTier
    issued_at: float
    status: LicenseStatus = LicenseStatus.ACTIVE
    claimed: bool = False


class LicenseRegistry:
    """In-memory list of issued keys with a periodic expiry sweep.

    Parameters:
        rng: Source for key characters.
        clock: Returns the current epoch time in seconds.
        seed_defaults: Pre-load the two permanent institutional keys.
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        seed_defaults: bool = True,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._licenses: list[License] = []
        if seed_defaults:
            now = clock()
            self._licenses.extend([
                License(id="1", key="SVP-MASTER-HUB-25", entity="Master Admin",
                        tier=PlanTier.SOVEREIGN_PROTOCOL, issued_at=now,
                        status=LicenseStatus.PERMANENT, claimed=True),
                License(id="2", key="IAX-8821-XP9", entity="Ministry of Ag (Kenya)",
                        tier=PlanTier.INDUSTRIAL_APEX, issued_at=now - 1000,
                        status=LicenseStatus.PERMANENT, claimed=True),
            ])
        self._ids = itertools.count(len(self._licenses) + 1)

    @property
    def licenses(self) -> list[License]:
        return list(self._licenses)

    def get(self, key: str) -> License:
        for lic in self._licenses:
            if lic.key == key:
                return lic
        raise KeyError(key)

    def issue(self, tier: PlanTier, entity: str = "Institutional Pending") -> License:
        """Issue a fresh active key of the form ``PREFIX-XXXX-XXX``."""
        tier = PlanTier(tier)
        head = "".join(self._rng.choice(KEY_ALPHABET) for _ in range(4))
        tail = "".join(self._rng.choice(KEY_ALPHABET) for _ in range(3))
        now = self._clock()
        lic = License(
            id=str(next(self._ids)),
            key=f"{TIER_PREFIXES[tier]}{head}-{tail}",
            entity=entity,
            tier=tier,
            issued_at=now,
        )
        self._licenses.append(lic)
        logger.info("Issued %s key %s", tier.value, lic.key)
        return lic

    def claim(self, key: str) -> License:
        """Mark an active key as claimed so it no longer expires.

        Raises:
            KeyError: unknown key.
            ValueError: key has been revoked.
        """
        lic = self.get(key)
        if lic.status == LicenseStatus.REVOKED:
            raise ValueError(f"License {key} has been revoked")
        lic.claimed = True
        return lic

    def sweep(self, now: float | None = None) -> int:
        """Revoke expired unclaimed keys and prune stale revoked ones.

        Returns the number of pruned keys.
        """
        now = self._clock() if now is None else now
        for lic in self._licenses:
            if lic.status == LicenseStatus.ACTIVE and not lic.claimed and now - lic.issued_at > KEY_EXPIRY_S:
                lic.status = LicenseStatus.REVOKED
                logger.info("License %s expired unclaimed - revoked", lic.key)

        kept = [
            lic for lic in self._licenses
            if not (lic.status == LicenseStatus.REVOKED and now - lic.issued_at > KEY_EXPIRY_S + PRUNE_BUFFER_S)
        ]
        pruned = len(self._licenses) - len(kept)
        self._licenses = kept
        if pruned:
            logger.debug("Pruned %d revoked licenses", pruned)
        return pruned

    def start_sweeper(self, interval_s: float = 1.0) -> PeriodicTask:
        """Run :meth:`sweep` every *interval_s* seconds; returns the owned timer."""
        return PeriodicTask(self.sweep, interval_s, name="license-sweep").start()
