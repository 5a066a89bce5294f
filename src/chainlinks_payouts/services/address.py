"""Recipient Lightning address resolution.

Priority: the ``lud16`` field of the recipient's kind 0 profile, then the
deterministic ``{npub}@{fallback_domain}`` gateway address.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from chainlinks_payouts.core.settings import settings
from chainlinks_payouts.models.payment import AddressSource, LightningAddressRecord
from chainlinks_payouts.services.crypto import CryptoService
from chainlinks_payouts.services.interfaces import ProfileStore

logger = logging.getLogger(__name__)


def split_lightning_address(address: str) -> tuple[str, str] | None:
    """Return ``(name, domain)`` for a well-formed ``name@domain`` string."""
    if not isinstance(address, str) or address.count("@") != 1:
        return None
    name, domain = address.strip().split("@")
    if not name or not domain:
        return None
    return name, domain


def is_valid_lightning_address(address: str) -> bool:
    """Check the syntax of a Lightning address without touching the network."""
    return split_lightning_address(address) is not None


class AddressResolver:
    """Maps a recipient pubkey to a payable Lightning address."""

    def __init__(self, profiles: ProfileStore, fallback_domain: str | None = None) -> None:
        self.profiles = profiles
        self.fallback_domain = fallback_domain or settings.fallback_domain

    def fallback_address(self, pubkey: str) -> LightningAddressRecord:
        npub = CryptoService.npub_encode(pubkey)
        return LightningAddressRecord(
            address=f"{npub}@{self.fallback_domain}",
            source=AddressSource.NPUBCASH_FALLBACK,
        )

    async def resolve(self, pubkey: str) -> LightningAddressRecord:
        """Resolve ``pubkey`` to an address. Never raises on lookup failures."""
        try:
            profile = await self.profiles.fetch_profile(pubkey)
        except Exception as exc:
            logger.warning("Profile lookup failed for %s: %s", pubkey[:8], exc)
            profile = None

        lud16 = profile.get("lud16") if isinstance(profile, Mapping) else None
        if isinstance(lud16, str) and is_valid_lightning_address(lud16):
            address = lud16.strip()
            logger.debug("Found lud16 in kind 0 for %s: %s", pubkey[:8], address)
            return LightningAddressRecord(address=address, source=AddressSource.KIND0)

        record = self.fallback_address(pubkey)
        logger.debug("No lud16 for %s, using fallback %s", pubkey[:8], record.address)
        return record
