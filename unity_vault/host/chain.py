"""
Vault Host — in-process runtime that delivers invocations to the controller.

The host owns the collaborators the controller treats as external: the
clock, the key-value store, identity rules and the bank ledger. It runs
every invocation as one transaction:

1. open a storage transaction and a ledger snapshot
2. move any attached funds from the sender to the vault
3. call the controller
4. apply every ledger instruction in the Response, in order
5. commit, or roll everything back if any step raised

So a failed invocation leaves neither controller state nor balances
changed, even when the failure came from the ledger after the controller
had already written its state.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from pydantic import BaseModel

from unity_vault.config import settings
from unity_vault.host.bank import BankLedger
from unity_vault.storage.service import MemoryStorage, Storage
from unity_vault.vault.controller import VaultController
from unity_vault.vault.deps import Deps
from unity_vault.vault.governance import GovernanceCapability
from unity_vault.vault.identity import AddressValidator, HostApi
from unity_vault.vault.schema import (
    Coin,
    Env,
    ExecuteMsg,
    InstantiateMsg,
    MessageInfo,
    MigrateMsg,
    QueryMsg,
    Response,
    SudoMsg,
)

logger = logging.getLogger(__name__)

# Average block interval used when advancing time without explicit heights
SECONDS_PER_BLOCK = 5


class VaultHost:
    """
    Single-vault host runtime.

    Usage:
        host = VaultHost(block_time=0)
        host.mint("creator", coins(3_000_000, "ujuno"))
        host.instantiate("creator", InstantiateMsg(...), funds=coins(3_000_000, "ujuno"))
        host.execute("gordon-gekko-address", StartWithdraw())
        host.advance_days(1, extra_seconds=3600)
        host.execute("gordon-gekko-address", ExecuteWithdraw())
    """

    def __init__(
        self,
        controller: VaultController | None = None,
        storage: Any = None,
        bank: BankLedger | None = None,
        api: HostApi | None = None,
        contract_address: str = settings.contract_address,
        block_time: int = 0,
        block_height: int = 0,
    ) -> None:
        self.controller = controller or VaultController()
        self.storage = storage if storage is not None else MemoryStorage()
        self.bank = bank or BankLedger()
        self.api = api or AddressValidator()
        self.contract_address = contract_address
        self.block_time = block_time
        self.block_height = block_height

    # ── Clock ───────────────────────────────────────────────────

    @property
    def env(self) -> Env:
        return Env(
            block_time=self.block_time,
            block_height=self.block_height,
            contract_address=self.contract_address,
        )

    def set_time(self, block_time: int) -> None:
        if block_time < self.block_time:
            raise ValueError(f"Host clock cannot move backwards: {block_time} < {self.block_time}")
        self.advance_time(block_time - self.block_time)

    def advance_time(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("Cannot advance time by a negative amount")
        self.block_time += seconds
        self.block_height += seconds // SECONDS_PER_BLOCK

    def advance_days(self, days: int, extra_seconds: int = 0) -> None:
        self.advance_time(days * self.controller.seconds_per_day + extra_seconds)

    # ── Invocations ─────────────────────────────────────────────

    def instantiate(
        self,
        sender: str,
        msg: InstantiateMsg,
        funds: list[Coin] | None = None,
    ) -> Response:
        info = MessageInfo(sender=sender, funds=funds or [])
        return self._invoke(
            "instantiate", info,
            lambda deps: self.controller.instantiate(deps, self.env, info, msg),
        )

    def execute(
        self,
        sender: str,
        msg: ExecuteMsg,
        funds: list[Coin] | None = None,
    ) -> Response:
        info = MessageInfo(sender=sender, funds=funds or [])
        return self._invoke(
            msg.type, info,
            lambda deps: self.controller.execute(deps, self.env, info, msg),
        )

    def sudo(self, capability: GovernanceCapability, msg: SudoMsg) -> Response:
        """Governance entry point: the only way to reach the override channel."""
        return self._invoke(
            msg.type, None,
            lambda deps: self.controller.sudo(capability, deps, self.env, msg),
        )

    def migrate(self, msg: MigrateMsg, controller: VaultController | None = None) -> Response:
        """Swap in ``controller`` (new code) and run its migration."""
        new_controller = controller or self.controller
        response = self._invoke(
            "migrate", None,
            lambda deps: new_controller.migrate(deps, self.env, msg),
        )
        self.controller = new_controller
        return response

    def query(self, msg: QueryMsg) -> BaseModel:
        return self.controller.query(self._deps(self.storage), self.env, msg)

    def balances(self, address: str | None = None) -> list[Coin]:
        return self.bank.query_all_balances(address or self.contract_address)

    def mint(self, address: str, amount: list[Coin]) -> None:
        """Credit genesis or test balances inside a host transaction."""
        with self._transaction():
            self.bank.mint(address, amount)

    def transfer(self, sender: str, to_address: str, amount: list[Coin]) -> None:
        """Plain bank send between accounts, e.g. a deposit into the vault."""
        with self._transaction():
            self.bank.transfer(sender, to_address, amount)

    # ── Internal ────────────────────────────────────────────────

    def _deps(self, storage: Storage) -> Deps:
        return Deps(storage=storage, api=self.api, querier=self.bank)

    def _invoke(
        self,
        action: str,
        info: MessageInfo | None,
        handler: Callable[[Deps], Response],
    ) -> Response:
        try:
            with self._transaction() as storage:
                if info is not None and info.funds:
                    self.bank.transfer(info.sender, self.contract_address, info.funds)

                response = handler(self._deps(storage))

                for message in response.messages:
                    self.bank.apply(self.contract_address, message)
        except Exception as exc:
            logger.warning(
                "Invocation rolled back: action=%s time=%d error=%s",
                action, self.block_time, exc,
            )
            raise

        logger.info(
            "Invocation committed: action=%s time=%d messages=%d",
            action, self.block_time, len(response.messages),
        )
        return response

    @contextmanager
    def _transaction(self) -> Iterator[Storage]:
        with self.storage.transaction() as storage, self.bank.transaction(storage):
            yield storage
