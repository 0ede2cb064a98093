"""
Bank Ledger — host ledger for fungible balances.

The controller never moves funds; it emits BankSend / BankBurn
instructions. This ledger is the reference executor for those
instructions and the BankQuerier the controller reads balances from.

Rules mirror a typical chain bank module:
- sending an empty coin list is rejected
- burning an empty coin list is a no-op
- zero-amount coins are rejected
- no account may go negative

``BankLedger`` keeps balances in memory; ``SqlBankLedger`` also persists
them next to the vault state so both survive a restart together.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import select

from unity_vault.storage.models import BankBalanceDB
from unity_vault.storage.service import SqlStorage
from unity_vault.vault.schema import BankBurn, BankSend, Coin

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when the ledger refuses an instruction."""
    pass


class BankLedger:
    """
    Multi-denomination balances keyed by address.

    Usage:
        bank = BankLedger()
        bank.mint("vault", coins(3_000_000, "ujuno"))
        bank.apply("vault", BankSend(to_address="bob", amount=coins(1, "ujuno")))
    """

    def __init__(self) -> None:
        self._balances: dict[str, dict[str, int]] = defaultdict(dict)

    # ── Queries ─────────────────────────────────────────────────

    def query_all_balances(self, address: str) -> list[Coin]:
        held = self._balances.get(address, {})
        return [
            Coin(denom=denom, amount=amount)
            for denom, amount in sorted(held.items())
            if amount > 0
        ]

    def total_supply(self, denom: str) -> int:
        return sum(held.get(denom, 0) for held in self._balances.values())

    def is_empty(self) -> bool:
        return not any(amount > 0 for held in self._balances.values() for amount in held.values())

    # ── Mutations ───────────────────────────────────────────────

    def mint(self, address: str, amount: list[Coin]) -> None:
        """Credit ``address`` out of thin air (genesis balances, test funding)."""
        self._check_coins(amount)
        for coin in amount:
            held = self._balances[address]
            held[coin.denom] = held.get(coin.denom, 0) + coin.amount
        logger.debug("Minted to %s: %s", address, _fmt(amount))

    def transfer(self, from_address: str, to_address: str, amount: list[Coin]) -> None:
        if not amount:
            raise LedgerError("Cannot send empty coins")
        self._check_coins(amount)
        self._debit(from_address, amount)
        for coin in amount:
            held = self._balances[to_address]
            held[coin.denom] = held.get(coin.denom, 0) + coin.amount
        logger.info("Transfer: %s -> %s %s", from_address, to_address, _fmt(amount))

    def burn(self, from_address: str, amount: list[Coin]) -> None:
        if not amount:
            logger.info("Burn of empty balance from %s: no-op", from_address)
            return
        self._check_coins(amount)
        self._debit(from_address, amount)
        logger.info("Burn: %s %s", from_address, _fmt(amount))

    def apply(self, sender: str, instruction: BankSend | BankBurn) -> None:
        """Execute one controller-emitted instruction on behalf of ``sender``."""
        if isinstance(instruction, BankSend):
            self.transfer(sender, instruction.to_address, instruction.amount)
        elif isinstance(instruction, BankBurn):
            self.burn(sender, instruction.amount)
        else:
            raise LedgerError(f"Unknown ledger instruction: {type(instruction).__name__}")

    @contextmanager
    def transaction(self, storage: Any = None) -> Iterator[BankLedger]:
        """
        Snapshot balances; restore them if the block raises.

        ``storage`` is the open storage transaction of the same invocation.
        The in-memory ledger ignores it.
        """
        snapshot = copy.deepcopy(self._balances)
        try:
            yield self
        except BaseException:
            self._balances = snapshot
            raise

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _check_coins(amount: list[Coin]) -> None:
        seen: set[str] = set()
        for coin in amount:
            if coin.amount <= 0:
                raise LedgerError(f"Invalid zero amount for {coin.denom}")
            if coin.denom in seen:
                raise LedgerError(f"Duplicate denomination {coin.denom}")
            seen.add(coin.denom)

    def _debit(self, address: str, amount: list[Coin]) -> None:
        held = self._balances.get(address, {})
        for coin in amount:
            if held.get(coin.denom, 0) < coin.amount:
                raise LedgerError(
                    f"Insufficient funds: {address} holds {held.get(coin.denom, 0)}"
                    f"{coin.denom}, needs {coin.amount}{coin.denom}"
                )
        for coin in amount:
            held[coin.denom] -= coin.amount
            if held[coin.denom] == 0:
                del held[coin.denom]


# ════════════════════════════════════════════════════════════════
# SQL-backed ledger
# ════════════════════════════════════════════════════════════════


class SqlBankLedger(BankLedger):
    """
    BankLedger whose balances persist in the ``bank_balances`` table.

    Balances are loaded once at construction and served from memory. Changes
    are written only from ``transaction()``, through the SQLAlchemy session of
    the storage transaction it is given. The ledger commits that session
    itself, so balances and vault state commit as one unit and memory never
    runs ahead of the database.

    Usage:
        storage = SqlStorage("sqlite:///unity_vault.db")
        storage.initialize()
        bank = SqlBankLedger(storage)
        host = VaultHost(storage=storage, bank=bank)
    """

    def __init__(self, storage: SqlStorage) -> None:
        super().__init__()
        with storage.SessionLocal() as session:
            rows = session.execute(select(BankBalanceDB)).scalars().all()
            for row in rows:
                self._balances[row.address][row.denom] = int(row.amount)
        logger.info("Loaded %d ledger balances from %s", len(rows), storage.engine.url.database)

    @contextmanager
    def transaction(self, storage: Any = None) -> Iterator[SqlBankLedger]:
        session = getattr(storage, "session", None)
        if session is None:
            raise LedgerError("SqlBankLedger requires an open SQL storage transaction")

        before = copy.deepcopy(self._balances)
        with super().transaction():
            yield self
            self._persist(session, before)
            # Commits the invocation's vault-state writes too; a failed commit
            # restores the in-memory balances
            session.commit()

    def _persist(self, session: Any, before: dict[str, dict[str, int]]) -> None:
        touched = {
            (address, denom)
            for balances in (before, self._balances)
            for address, held in balances.items()
            for denom in held
        }
        for address, denom in sorted(touched):
            amount = self._balances.get(address, {}).get(denom, 0)
            if amount == before.get(address, {}).get(denom, 0):
                continue

            row = session.get(BankBalanceDB, (address, denom))
            if amount == 0:
                if row is not None:
                    session.delete(row)
            elif row is None:
                session.add(BankBalanceDB(address=address, denom=denom, amount=str(amount)))
            else:
                row.amount = str(amount)
        session.flush()


def _fmt(amount: list[Coin]) -> str:
    return ",".join(f"{c.amount}{c.denom}" for c in amount) or "<none>"
