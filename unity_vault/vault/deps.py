"""Host collaborators handed to the controller on every invocation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from unity_vault.storage.service import Storage
from unity_vault.vault.identity import HostApi
from unity_vault.vault.schema import Coin


class BankQuerier(Protocol):
    """Read-only view of the host ledger."""

    def query_all_balances(self, address: str) -> list[Coin]:
        """Every non-zero balance held by ``address``, sorted by denom."""
        ...


@dataclass
class Deps:
    """Storage, identity rules and ledger reads for one invocation."""

    storage: Storage
    api: HostApi
    querier: BankQuerier
