"""
Withdrawal Controller — the timelock state machine for custodied funds.

The controller holds funds for exactly one beneficiary. Getting them out
on the normal path takes two steps:

1. START    — the beneficiary arms the timelock; ``ready_at = now + delay``
2. EXECUTE  — once ``now > ready_at`` the beneficiary claims everything

The readiness timestamp is never cleared. A second START re-arms from the
current time; after the deadline has passed, further EXECUTE calls keep
succeeding against newly arrived funds without a fresh START.

Governance overrides live in ``unity_vault.vault.governance`` and are
reached only through ``sudo`` with a GovernanceCapability.

Every operation either returns a Response or raises a VaultError. The
controller never touches balances itself; it emits ledger instructions
for the host to execute in the same transaction.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from unity_vault.config import settings
from unity_vault.vault.deps import Deps
from unity_vault.vault.errors import (
    AlreadyInstantiated,
    InvalidDelay,
    MigrationError,
    NotInstantiated,
    NoWithdrawalRequested,
    Unauthorized,
    WithdrawalNotReady,
)
from unity_vault.vault.governance import GovernanceCapability, PrivilegedChannel
from unity_vault.vault.schema import (
    BankSend,
    ContractVersion,
    Env,
    ExecuteBurn,
    ExecuteMsg,
    ExecuteSend,
    ExecuteSendAll,
    ExecuteWithdraw,
    GetConfig,
    GetContractVersion,
    GetWithdrawalReadyTime,
    InstantiateMsg,
    IsWithdrawalReady,
    MessageInfo,
    MigrateMsg,
    QueryMsg,
    Response,
    StartWithdraw,
    SudoMsg,
    VaultAction,
    VaultConfig,
    VaultState,
    WithdrawalReadyResponse,
    WithdrawalTimestampResponse,
)
from unity_vault.vault.state import (
    CONFIG,
    CONTRACT_INFO,
    WITHDRAWAL_READY,
    load_config,
    load_state,
)

logger = logging.getLogger(__name__)

# Host timestamps are unsigned 64-bit nanoseconds; this is the last whole second
MAX_TIMESTAMP = (2**64 - 1) // 10**9


class VaultController:
    """
    Decision logic for the time-locked vault.

    The controller is stateless; everything it knows lives in ``deps.storage``
    and is read fresh on every call.

    Usage:
        controller = VaultController()
        controller.instantiate(deps, env, info, InstantiateMsg(
            withdraw_address="gordon-gekko-address",
            withdraw_delay_in_days=28,
            native_denom="ujuno",
        ))
        controller.execute(deps, env, MessageInfo(sender="gordon-gekko-address"),
                           StartWithdraw())
    """

    def __init__(
        self,
        seconds_per_day: int = settings.seconds_per_day,
        max_withdraw_delay_days: int | None = settings.max_withdraw_delay_days,
        contract_name: str = settings.contract_name,
        contract_version: str = settings.contract_version,
    ) -> None:
        self.seconds_per_day = seconds_per_day
        self.max_withdraw_delay_days = max_withdraw_delay_days
        self.contract_name = contract_name
        self.contract_version = contract_version

    # ── Entry points ────────────────────────────────────────────

    def instantiate(
        self,
        deps: Deps,
        env: Env,
        info: MessageInfo,
        msg: InstantiateMsg,
    ) -> Response:
        """
        Store the write-once configuration.

        No caller authorization: whoever creates the vault is trusted to set
        its parameters once, because nobody can change them afterwards.

        Raises:
            AlreadyInstantiated: configuration already exists.
            InvalidIdentity: withdraw_address fails host validation.
            InvalidDelay: delay is negative or above the configured cap.
        """
        if CONFIG.exists(deps.storage):
            raise AlreadyInstantiated()

        withdraw_address = deps.api.addr_validate(msg.withdraw_address)
        self._validate_delay(msg.withdraw_delay_in_days)

        config = VaultConfig(
            withdraw_address=withdraw_address,
            withdraw_delay_in_days=msg.withdraw_delay_in_days,
            native_denom=msg.native_denom or None,
        )
        CONTRACT_INFO.save(
            deps.storage,
            ContractVersion(contract=self.contract_name, version=self.contract_version),
        )
        CONFIG.save(deps.storage, config)

        logger.info(
            "Vault instantiated: withdraw_address=%s delay_days=%d denom=%s creator=%s",
            withdraw_address, config.withdraw_delay_in_days, config.native_denom, info.sender,
        )

        return (
            Response()
            .add_attribute("method", VaultAction.INSTANTIATE.value)
            .add_attribute("withdraw_address", withdraw_address)
            .add_attribute("withdraw_delay", config.withdraw_delay_in_days)
        )

    def execute(
        self,
        deps: Deps,
        env: Env,
        info: MessageInfo,
        msg: ExecuteMsg,
    ) -> Response:
        """Dispatch a beneficiary-path request."""
        if isinstance(msg, StartWithdraw):
            return self.start_withdraw(deps, env, info)
        if isinstance(msg, ExecuteWithdraw):
            return self.execute_withdraw(deps, env, info)
        raise TypeError(f"Unsupported execute message: {type(msg).__name__}")

    def sudo(
        self,
        capability: GovernanceCapability,
        deps: Deps,
        env: Env,
        msg: SudoMsg,
    ) -> Response:
        """Dispatch a governance override. Requires a capability."""
        channel = self.privileged(capability)
        if isinstance(msg, ExecuteBurn):
            return channel.execute_burn(deps, env)
        if isinstance(msg, ExecuteSend):
            return channel.execute_send(deps, env, msg.recipient, msg.amount)
        if isinstance(msg, ExecuteSendAll):
            return channel.execute_send_all(deps, env, msg.recipient)
        raise TypeError(f"Unsupported sudo message: {type(msg).__name__}")

    def privileged(self, capability: GovernanceCapability) -> PrivilegedChannel:
        return PrivilegedChannel(capability)

    def query(self, deps: Deps, env: Env, msg: QueryMsg) -> BaseModel:
        """Dispatch a read-only query. No authorization, no side effects."""
        if isinstance(msg, GetConfig):
            return self.query_config(deps)
        if isinstance(msg, GetWithdrawalReadyTime):
            return self.query_withdrawal_ready_time(deps)
        if isinstance(msg, IsWithdrawalReady):
            return self.query_is_withdrawal_ready(deps, env)
        if isinstance(msg, GetContractVersion):
            return self.query_contract_version(deps)
        raise TypeError(f"Unsupported query message: {type(msg).__name__}")

    def migrate(self, deps: Deps, env: Env, msg: MigrateMsg) -> Response:
        """
        Record the running contract version over the stored one.

        Configuration and readiness are left untouched. Migration is refused
        across contract names and for downgrades.
        """
        stored = CONTRACT_INFO.may_load(deps.storage)
        if stored is None:
            raise MigrationError("No contract version stored; vault was never instantiated")
        if stored.contract != self.contract_name:
            raise MigrationError(
                f"Cannot migrate from contract {stored.contract!r} to {self.contract_name!r}"
            )

        previous = _parse_version(stored.version)
        current = _parse_version(self.contract_version)

        if current < previous:
            raise MigrationError(
                f"Cannot downgrade from {stored.version} to {self.contract_version}"
            )

        CONTRACT_INFO.save(
            deps.storage,
            ContractVersion(contract=self.contract_name, version=self.contract_version),
        )
        logger.info("Vault migrated: %s -> %s", stored.version, self.contract_version)

        return (
            Response()
            .add_attribute("method", VaultAction.MIGRATE.value)
            .add_attribute("from_version", stored.version)
            .add_attribute("to_version", self.contract_version)
        )

    # ── Beneficiary path ────────────────────────────────────────

    def start_withdraw(self, deps: Deps, env: Env, info: MessageInfo) -> Response:
        """
        Arm (or re-arm) the timelock from the current host time.

        Overwrites any previously pending request; the delay never
        accumulates across calls.

        Raises:
            NotInstantiated: no configuration stored.
            Unauthorized: sender is not the withdraw address.
        """
        config = load_config(deps.storage)
        self._require_beneficiary(config, info)

        delay_in_seconds = config.withdraw_delay_in_days * self.seconds_per_day
        ready_at = env.block_time + delay_in_seconds
        if ready_at > MAX_TIMESTAMP:
            raise InvalidDelay(f"Ready time {ready_at} overflows the host clock")

        WITHDRAWAL_READY.save(deps.storage, ready_at)

        logger.info(
            "Withdrawal started: ready_at=%d now=%d delay_days=%d",
            ready_at, env.block_time, config.withdraw_delay_in_days,
        )

        return (
            Response()
            .add_attribute("action", VaultAction.START_WITHDRAW.value)
            .add_attribute("withdrawal_ready_timestamp", ready_at)
            .set_data({"withdrawal_ready_timestamp": ready_at})
        )

    def execute_withdraw(self, deps: Deps, env: Env, info: MessageInfo) -> Response:
        """
        Send the complete balance to the beneficiary once the delay has elapsed.

        Readiness is strictly after ``ready_at``; at exactly ``ready_at`` the
        withdrawal is still locked. The timestamp is not cleared afterwards.

        Raises:
            NotInstantiated: no configuration stored.
            Unauthorized: sender is not the withdraw address.
            NoWithdrawalRequested: start-withdraw was never called.
            WithdrawalNotReady: the delay has not yet elapsed.
        """
        state = load_state(deps.storage)
        self._require_beneficiary(state.config, info)

        if state.withdrawal_ready_at is None:
            raise NoWithdrawalRequested()
        if not self._is_ready(env, state.withdrawal_ready_at):
            raise WithdrawalNotReady(
                f"Withdrawal not ready until after {state.withdrawal_ready_at} "
                f"(now {env.block_time})"
            )

        withdraw_address = state.config.withdraw_address
        amount = deps.querier.query_all_balances(env.contract_address)

        logger.info(
            "Withdrawal executed: withdraw_address=%s denoms=%d",
            withdraw_address, len(amount),
        )

        return (
            Response()
            .add_attribute("action", VaultAction.EXECUTE_WITHDRAW.value)
            .add_attribute("withdraw_address", withdraw_address)
            .add_message(BankSend(to_address=withdraw_address, amount=amount))
        )

    # ── Queries ─────────────────────────────────────────────────

    def query_config(self, deps: Deps) -> VaultConfig:
        return load_config(deps.storage)

    def query_withdrawal_ready_time(self, deps: Deps) -> WithdrawalTimestampResponse:
        return WithdrawalTimestampResponse(
            withdrawal_ready_timestamp=WITHDRAWAL_READY.may_load(deps.storage)
        )

    def query_is_withdrawal_ready(self, deps: Deps, env: Env) -> WithdrawalReadyResponse:
        ready_at = WITHDRAWAL_READY.may_load(deps.storage)
        is_ready = ready_at is not None and self._is_ready(env, ready_at)
        return WithdrawalReadyResponse(is_withdrawal_ready=is_ready)

    def query_contract_version(self, deps: Deps) -> ContractVersion:
        version = CONTRACT_INFO.may_load(deps.storage)
        if version is None:
            raise NotInstantiated()
        return version

    def query_state(self, deps: Deps) -> VaultState:
        return load_state(deps.storage)

    # ── Internal ────────────────────────────────────────────────

    def _validate_delay(self, delay_in_days: int) -> None:
        if delay_in_days < 0:
            raise InvalidDelay(f"Withdrawal delay cannot be negative: {delay_in_days}")
        if (
            self.max_withdraw_delay_days is not None
            and delay_in_days > self.max_withdraw_delay_days
        ):
            raise InvalidDelay(
                f"Withdrawal delay {delay_in_days} days exceeds the maximum of "
                f"{self.max_withdraw_delay_days} days"
            )
        if delay_in_days * self.seconds_per_day > MAX_TIMESTAMP:
            raise InvalidDelay(f"Withdrawal delay {delay_in_days} days overflows the host clock")

    @staticmethod
    def _require_beneficiary(config: VaultConfig, info: MessageInfo) -> None:
        if info.sender != config.withdraw_address:
            logger.warning(
                "Unauthorized withdrawal attempt: sender=%s", info.sender,
            )
            raise Unauthorized()

    @staticmethod
    def _is_ready(env: Env, ready_at: int) -> bool:
        return env.block_time > ready_at


def _parse_version(version: str) -> tuple[int, ...]:
    """Parse a dotted numeric version such as '0.3.0'."""
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError as exc:
        raise MigrationError(f"Unparseable contract version: {version!r}") from exc
