"""
Vault state store — SQLAlchemy models for controller slots and host balances.

The controller owns a handful of keys (configuration, contract version,
readiness timestamp). Each is one row; values are opaque bytes produced by
the typed ``Item`` accessors in ``unity_vault.storage.service``. Host ledger
balances live beside them in ``bank_balances``.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, LargeBinary, String, func
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all vault storage models."""
    pass


class VaultStateEntryDB(Base):
    """
    A single key-value slot of controller state.

    Rows are written only inside an invocation transaction, so a failed
    invocation never leaves a partially updated slot behind.
    """

    __tablename__ = "vault_state"

    key = Column(
        String(128), primary_key=True,
        comment="Storage key, e.g. 'config' or 'withdrawal_ready'",
    )
    value = Column(
        LargeBinary, nullable=False,
        comment="Serialized value (JSON bytes)",
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False,
        default=func.now(), onupdate=func.now(),
        comment="When this slot was last written",
    )

    def __repr__(self) -> str:
        return f"<VaultStateEntry key={self.key} bytes={len(self.value or b'')}>"


class BankBalanceDB(Base):
    """
    One non-zero balance of the host ledger.

    Written in the same session as the vault's state rows, so custodied funds
    and the timelock always commit or roll back together.
    """

    __tablename__ = "bank_balances"

    address = Column(String(128), primary_key=True, comment="Account identity")
    denom = Column(String(128), primary_key=True, comment="Denomination, e.g. 'ujuno'")
    amount = Column(
        String(40), nullable=False,
        comment="Decimal amount as text (128-bit range)",
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False,
        default=func.now(), onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<BankBalance {self.address} {self.amount}{self.denom}>"
