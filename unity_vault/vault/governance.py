"""
Privileged override channel — governance-level operations on custodied funds.

These operations bypass both the beneficiary gate and the timelock. They
exist so that a higher trust authority can freeze, burn or redirect funds
regardless of whether a withdrawal is pending.

Access is modelled as a capability, not an identity check: the channel is
only reachable by presenting a ``GovernanceCapability``, which the host
mints at its governance entry point. The beneficiary request path never
accepts or produces one, so the two paths cannot be confused at runtime.

Operations:
- BURN      — destroy the entire balance
- SEND      — send an amount of the configured denomination
- SEND_ALL  — send the entire multi-denomination balance
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from unity_vault.vault.deps import Deps
from unity_vault.vault.errors import (
    DenominationNotConfigured,
    InsufficientContractBalance,
    InvalidAmount,
    NoNativeBalance,
    Unauthorized,
)
from unity_vault.vault.schema import (
    BankBurn,
    BankSend,
    Env,
    Response,
    VaultAction,
    coins,
)
from unity_vault.vault.state import load_config

logger = logging.getLogger(__name__)

SUDO_MESSAGE_TYPE = "sudo"


@dataclass(frozen=True)
class GovernanceCapability:
    """
    Proof that an invocation arrived through the governance entry point.

    Only the host's governance boundary should call ``grant``.
    """

    reason: str
    granted_by: str = "governance"
    granted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def grant(cls, reason: str, granted_by: str = "governance") -> GovernanceCapability:
        capability = cls(reason=reason, granted_by=granted_by)
        logger.info("Governance capability granted: by=%s reason=%s", granted_by, reason)
        return capability


def require_capability(capability: object) -> GovernanceCapability:
    """Reject anything that is not a genuine capability object."""
    if not isinstance(capability, GovernanceCapability):
        logger.warning("Privileged call rejected: no governance capability presented")
        raise Unauthorized("Privileged operations require a governance capability")
    return capability


class PrivilegedChannel:
    """
    Governance overrides bound to one capability.

    Usage:
        channel = PrivilegedChannel(GovernanceCapability.grant("prop 42"))
        response = channel.execute_send(deps, env, "carl-fox-address", 2_500_000)
    """

    def __init__(self, capability: GovernanceCapability) -> None:
        self.capability = require_capability(capability)

    def execute_burn(self, deps: Deps, env: Env) -> Response:
        """Burn everything the vault holds. Succeeds even on an empty balance."""
        amount = deps.querier.query_all_balances(env.contract_address)

        logger.info(
            "Governance burn: denoms=%d reason=%s",
            len(amount), self.capability.reason,
        )

        return (
            Response()
            .add_attribute("message_type", SUDO_MESSAGE_TYPE)
            .add_attribute("action", VaultAction.BURN.value)
            .add_message(BankBurn(amount=amount))
        )

    def execute_send(self, deps: Deps, env: Env, recipient: str, amount: int) -> Response:
        """
        Send exactly ``amount`` of the configured denomination to ``recipient``.

        Other denominations held by the vault are untouched.

        Raises:
            InvalidIdentity: recipient is malformed.
            InvalidAmount: amount is zero.
            DenominationNotConfigured: the vault was created without a denomination.
            NoNativeBalance: the vault holds none of the denomination.
            InsufficientContractBalance: amount exceeds the held balance.
        """
        validated = deps.api.addr_validate(recipient)
        if amount <= 0:
            raise InvalidAmount()

        native_denom = load_config(deps.storage).native_denom
        if not native_denom:
            raise DenominationNotConfigured()

        balances = deps.querier.query_all_balances(env.contract_address)
        native_balance = next((c for c in balances if c.denom == native_denom), None)

        if native_balance is None or native_balance.amount == 0:
            raise NoNativeBalance(f"Contract holds no {native_denom}")
        if native_balance.amount < amount:
            raise InsufficientContractBalance(
                f"Requested {amount}{native_denom}, "
                f"contract holds {native_balance.amount}{native_denom}"
            )

        logger.info(
            "Governance send: recipient=%s amount=%d%s reason=%s",
            validated, amount, native_denom, self.capability.reason,
        )

        return (
            Response()
            .add_attribute("message_type", SUDO_MESSAGE_TYPE)
            .add_attribute("action", VaultAction.SEND.value)
            .add_attribute("recipient", validated)
            .add_attribute("amount", f"{amount}{native_denom}")
            .add_message(BankSend(to_address=validated, amount=coins(amount, native_denom)))
        )

    def execute_send_all(self, deps: Deps, env: Env, recipient: str) -> Response:
        """Send the whole balance, every denomination, to ``recipient``."""
        validated = deps.api.addr_validate(recipient)
        amount = deps.querier.query_all_balances(env.contract_address)

        logger.info(
            "Governance send-all: recipient=%s denoms=%d reason=%s",
            validated, len(amount), self.capability.reason,
        )

        return (
            Response()
            .add_attribute("message_type", SUDO_MESSAGE_TYPE)
            .add_attribute("action", VaultAction.SEND_ALL.value)
            .add_attribute("recipient", validated)
            .add_message(BankSend(to_address=validated, amount=amount))
        )
