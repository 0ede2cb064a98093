"""
Vault Schema — Pydantic models for every value that crosses the controller boundary.

These models are the canonical shapes of:

- the stored state (configuration, contract version, readiness slot)
- the invocation context supplied by the host (Env, MessageInfo)
- typed requests (instantiate, execute, sudo, query, migrate)
- results (Response with attributes and ledger instructions, query responses)

Request unions are discriminated on a ``type`` field so that the host's
decoding layer can turn a JSON document into exactly one request variant.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, computed_field


# ════════════════════════════════════════════════════════════════
# Enumerations
# ════════════════════════════════════════════════════════════════


class VaultAction(str, enum.Enum):
    """Action names reported in Response attributes."""

    INSTANTIATE = "instantiate"
    START_WITHDRAW = "start_withdraw"
    EXECUTE_WITHDRAW = "execute_withdraw"
    BURN = "burn"
    SEND = "send"
    SEND_ALL = "send_all"
    MIGRATE = "migrate"


# ════════════════════════════════════════════════════════════════
# Value types
# ════════════════════════════════════════════════════════════════


class Coin(BaseModel):
    """An amount of a single denomination."""

    denom: str = Field(min_length=1, description="Denomination, e.g. 'ujuno'")
    amount: int = Field(ge=0, description="Amount in the smallest unit")


def coins(amount: int, denom: str) -> list[Coin]:
    """Build a single-denomination coin list."""
    return [Coin(denom=denom, amount=amount)]


class Attribute(BaseModel):
    key: str
    value: str


# ════════════════════════════════════════════════════════════════
# Stored state
# ════════════════════════════════════════════════════════════════


class VaultConfig(BaseModel):
    """
    Write-once configuration of the vault.

    ``withdraw_address`` is stored only after host validation and is the
    sole identity allowed to start or execute a withdrawal.
    """

    withdraw_address: str = Field(description="Validated beneficiary identity")
    withdraw_delay_in_days: int = Field(ge=0, description="Days between request and claim")
    native_denom: str | None = Field(
        default=None, description="Denomination used by partial-send overrides"
    )


class ContractVersion(BaseModel):
    """Contract name and version recorded at instantiate and on migrate."""

    contract: str
    version: str


class VaultState(BaseModel):
    """
    Aggregate view of everything the controller owns.

    The readiness slot is a single optional timestamp: ``None`` until the
    first start-withdraw, then the latest computed ready time.
    """

    config: VaultConfig
    withdrawal_ready_at: int | None = Field(
        default=None, description="Seconds since epoch after which claims succeed"
    )

    @computed_field
    @property
    def withdrawal_requested(self) -> bool:
        return self.withdrawal_ready_at is not None


# ════════════════════════════════════════════════════════════════
# Invocation context (supplied by the host)
# ════════════════════════════════════════════════════════════════


class Env(BaseModel):
    """Host-supplied context: current chain time and the vault's own address."""

    block_time: int = Field(ge=0, description="Current host time in seconds")
    block_height: int = Field(default=0, ge=0)
    contract_address: str


class MessageInfo(BaseModel):
    """Authenticated caller of a beneficiary-path request."""

    sender: str
    funds: list[Coin] = Field(default_factory=list)


# ════════════════════════════════════════════════════════════════
# Ledger instructions
# ════════════════════════════════════════════════════════════════


class BankSend(BaseModel):
    """Transfer ``amount`` from the vault to ``to_address``."""

    type: Literal["bank_send"] = "bank_send"
    to_address: str
    amount: list[Coin]


class BankBurn(BaseModel):
    """Destroy ``amount`` held by the vault."""

    type: Literal["bank_burn"] = "bank_burn"
    amount: list[Coin]


LedgerInstruction = Annotated[Union[BankSend, BankBurn], Field(discriminator="type")]


class Response(BaseModel):
    """
    Acknowledgment of a successful write.

    Carries the action name and relevant identities/amounts as string
    attributes, plus the ledger instructions the host executes after the
    invocation commits.
    """

    attributes: list[Attribute] = Field(default_factory=list)
    messages: list[LedgerInstruction] = Field(default_factory=list)
    data: dict[str, Any] | None = None

    def add_attribute(self, key: str, value: Any) -> Response:
        self.attributes.append(Attribute(key=key, value=str(value)))
        return self

    def add_message(self, message: BankSend | BankBurn) -> Response:
        self.messages.append(message)
        return self

    def set_data(self, data: dict[str, Any]) -> Response:
        self.data = data
        return self

    def attribute(self, key: str) -> str | None:
        """Return the first attribute value stored under ``key``."""
        for attr in self.attributes:
            if attr.key == key:
                return attr.value
        return None


# ════════════════════════════════════════════════════════════════
# Requests
# ════════════════════════════════════════════════════════════════


class InstantiateMsg(BaseModel):
    """
    Create the vault. No admin exists afterwards, so these values must be
    correct the first time.
    """

    withdraw_address: str
    withdraw_delay_in_days: int
    native_denom: str | None = None


class MigrateMsg(BaseModel):
    pass


# ── Beneficiary path ──


class StartWithdraw(BaseModel):
    """Arm the timelock: claims become possible after the configured delay."""

    type: Literal["start_withdraw"] = "start_withdraw"


class ExecuteWithdraw(BaseModel):
    """Claim the full balance once the timelock has elapsed."""

    type: Literal["execute_withdraw"] = "execute_withdraw"


ExecuteMsg = Annotated[Union[StartWithdraw, ExecuteWithdraw], Field(discriminator="type")]


# ── Governance path ──


class ExecuteBurn(BaseModel):
    """Burn everything the vault holds."""

    type: Literal["execute_burn"] = "execute_burn"


class ExecuteSend(BaseModel):
    """Send ``amount`` of the native denomination to ``recipient``."""

    type: Literal["execute_send"] = "execute_send"
    recipient: str
    amount: int = Field(ge=0)


class ExecuteSendAll(BaseModel):
    """Send the whole multi-denomination balance to ``recipient``."""

    type: Literal["execute_send_all"] = "execute_send_all"
    recipient: str


SudoMsg = Annotated[
    Union[ExecuteBurn, ExecuteSend, ExecuteSendAll], Field(discriminator="type")
]


# ── Queries ──


class GetConfig(BaseModel):
    type: Literal["get_config"] = "get_config"


class GetWithdrawalReadyTime(BaseModel):
    type: Literal["get_withdrawal_ready_time"] = "get_withdrawal_ready_time"


class IsWithdrawalReady(BaseModel):
    type: Literal["is_withdrawal_ready"] = "is_withdrawal_ready"


class GetContractVersion(BaseModel):
    type: Literal["get_contract_version"] = "get_contract_version"


QueryMsg = Annotated[
    Union[GetConfig, GetWithdrawalReadyTime, IsWithdrawalReady, GetContractVersion],
    Field(discriminator="type"),
]


# ════════════════════════════════════════════════════════════════
# Query responses
# ════════════════════════════════════════════════════════════════


class WithdrawalTimestampResponse(BaseModel):
    """``None`` when no withdrawal has ever been requested."""

    withdrawal_ready_timestamp: int | None = None


class WithdrawalReadyResponse(BaseModel):
    is_withdrawal_ready: bool
