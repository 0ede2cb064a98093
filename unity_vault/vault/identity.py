"""
Identity validation — host-defined syntax rules for addresses.

The controller never decides what a well-formed identity is; it asks the
host through ``HostApi.addr_validate``. ``AddressValidator`` is the host
rule set used by the reference host and the API service: a normalized
(lowercase) string of bounded length over a restricted alphabet, with an
optional required prefix.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from unity_vault.config import settings
from unity_vault.vault.errors import InvalidIdentity

logger = logging.getLogger(__name__)

_IDENTITY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._\-]*$")


class HostApi(Protocol):
    """Host services the controller relies on for identity handling."""

    def addr_validate(self, address: str) -> str:
        """Return the validated identity or raise InvalidIdentity."""
        ...


class AddressValidator:
    """Default host identity rules, configured from VaultSettings."""

    def __init__(
        self,
        min_length: int | None = None,
        max_length: int | None = None,
        prefix: str | None = None,
    ) -> None:
        self.min_length = settings.identity_min_length if min_length is None else min_length
        self.max_length = settings.identity_max_length if max_length is None else max_length
        self.prefix = settings.identity_prefix if prefix is None else prefix

    def addr_validate(self, address: str) -> str:
        if not isinstance(address, str) or not address:
            raise InvalidIdentity("Identity must be a non-empty string")

        if len(address) < self.min_length:
            raise InvalidIdentity(
                f"Identity too short: {len(address)} < {self.min_length}"
            )
        if len(address) > self.max_length:
            raise InvalidIdentity(
                f"Identity too long: {len(address)} > {self.max_length}"
            )

        # Only the normalized form is accepted, never silently rewritten
        if address.lower() != address:
            raise InvalidIdentity(f"Identity not normalized: {address!r}")

        if self.prefix and not address.startswith(self.prefix):
            raise InvalidIdentity(
                f"Identity {address!r} lacks required prefix {self.prefix!r}"
            )

        if not _IDENTITY_PATTERN.match(address):
            raise InvalidIdentity(f"Identity contains invalid characters: {address!r}")

        logger.debug("Identity validated: %s", address)
        return address
