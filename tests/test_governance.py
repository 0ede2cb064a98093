"""
Tests for the privileged override channel.

Validates:
- Capability gating (no identity can stand in for a capability)
- Burn of the full balance, including an empty one
- Partial send of the configured denomination and its error ordering
- Send-all of every denomination
- Overrides ignore the timelock and any pending request
"""

from __future__ import annotations

import pytest

from unity_vault.host.bank import BankLedger
from unity_vault.storage.service import MemoryStorage
from unity_vault.vault.controller import VaultController
from unity_vault.vault.deps import Deps
from unity_vault.vault.errors import (
    DenominationNotConfigured,
    InsufficientContractBalance,
    InvalidAmount,
    InvalidIdentity,
    NoNativeBalance,
    Unauthorized,
)
from unity_vault.vault.governance import (
    GovernanceCapability,
    PrivilegedChannel,
    require_capability,
)
from unity_vault.vault.identity import AddressValidator
from unity_vault.vault.schema import (
    BankBurn,
    BankSend,
    Coin,
    Env,
    ExecuteBurn,
    ExecuteSend,
    ExecuteSendAll,
    InstantiateMsg,
    MessageInfo,
    StartWithdraw,
    coins,
)
from unity_vault.vault.state import WITHDRAWAL_READY

NATIVE_DENOM = "ujuno"
CONTRACT = "vault-contract"
BENEFICIARY = "gordon-gekko-address"
RECIPIENT = "carl-fox-address"


def _env(block_time: int = 0) -> Env:
    return Env(block_time=block_time, contract_address=CONTRACT)


class _GovernanceCase:
    native_denom: str | None = NATIVE_DENOM

    def setup_method(self):
        self.controller = VaultController()
        self.storage = MemoryStorage()
        self.bank = BankLedger()
        self.deps = Deps(storage=self.storage, api=AddressValidator(), querier=self.bank)
        self.controller.instantiate(
            self.deps,
            _env(),
            MessageInfo(sender="bud-fox-address"),
            InstantiateMsg(
                withdraw_address=BENEFICIARY,
                withdraw_delay_in_days=28,
                native_denom=self.native_denom,
            ),
        )
        self.capability = GovernanceCapability.grant(reason="test override")

    def _sudo(self, msg, block_time: int = 0):
        return self.controller.sudo(self.capability, self.deps, _env(block_time), msg)


class TestCapability:
    """Overrides are reachable only with a capability object."""

    def test_grant_records_reason(self):
        capability = GovernanceCapability.grant(reason="prop 42", granted_by="council")
        assert capability.reason == "prop 42"
        assert capability.granted_by == "council"
        assert capability.granted_at is not None

    def test_require_capability_accepts_capability(self):
        capability = GovernanceCapability(reason="ok")
        assert require_capability(capability) is capability

    def test_identity_string_is_not_a_capability(self):
        with pytest.raises(Unauthorized):
            require_capability(BENEFICIARY)

    def test_channel_refuses_missing_capability(self):
        with pytest.raises(Unauthorized):
            PrivilegedChannel(None)

    def test_controller_sudo_refuses_missing_capability(self):
        deps = Deps(storage=MemoryStorage(), api=AddressValidator(), querier=BankLedger())
        with pytest.raises(Unauthorized):
            VaultController().sudo(MessageInfo(sender=BENEFICIARY), deps, _env(), ExecuteBurn())


class TestBurn(_GovernanceCase):

    def test_burns_every_denomination(self):
        self.bank.mint(CONTRACT, [Coin(denom="uatom", amount=7)] + coins(3_000_000, NATIVE_DENOM))
        res = self._sudo(ExecuteBurn())

        assert res.attribute("message_type") == "sudo"
        assert res.attribute("action") == "burn"
        assert res.messages == [
            BankBurn(amount=[Coin(denom="uatom", amount=7), Coin(denom=NATIVE_DENOM, amount=3_000_000)])
        ]

    def test_empty_balance_still_succeeds(self):
        res = self._sudo(ExecuteBurn())
        assert res.messages == [BankBurn(amount=[])]

    def test_ignores_timelock(self):
        self.bank.mint(CONTRACT, coins(10, NATIVE_DENOM))
        self.controller.execute(self.deps, _env(0), MessageInfo(sender=BENEFICIARY), StartWithdraw())
        res = self._sudo(ExecuteBurn(), block_time=1)
        assert len(res.messages) == 1
        assert WITHDRAWAL_READY.load(self.storage) == 28 * 86400, "Override leaves readiness alone"


class TestSend(_GovernanceCase):

    def setup_method(self):
        super().setup_method()
        self.bank.mint(CONTRACT, coins(3_000_000, NATIVE_DENOM))

    def test_partial_send(self):
        res = self._sudo(ExecuteSend(recipient=RECIPIENT, amount=2_500_000))

        assert res.attribute("message_type") == "sudo"
        assert res.attribute("action") == "send"
        assert res.attribute("recipient") == RECIPIENT
        assert res.attribute("amount") == "2500000ujuno"
        assert res.messages == [
            BankSend(to_address=RECIPIENT, amount=coins(2_500_000, NATIVE_DENOM))
        ]

    def test_exact_balance(self):
        res = self._sudo(ExecuteSend(recipient=RECIPIENT, amount=3_000_000))
        assert res.messages[0].amount == coins(3_000_000, NATIVE_DENOM)

    def test_only_native_denomination_sent(self):
        self.bank.mint(CONTRACT, [Coin(denom="uatom", amount=9)])
        res = self._sudo(ExecuteSend(recipient=RECIPIENT, amount=1))
        assert res.messages == [BankSend(to_address=RECIPIENT, amount=coins(1, NATIVE_DENOM))]

    def test_insufficient_balance(self):
        with pytest.raises(InsufficientContractBalance):
            self._sudo(ExecuteSend(recipient=RECIPIENT, amount=3_000_001))

    def test_zero_amount(self):
        with pytest.raises(InvalidAmount):
            self._sudo(ExecuteSend(recipient=RECIPIENT, amount=0))

    def test_invalid_recipient_checked_first(self):
        with pytest.raises(InvalidIdentity):
            self._sudo(ExecuteSend(recipient="Carl Fox", amount=0))

    def test_ignores_timelock(self):
        res = self._sudo(ExecuteSend(recipient=RECIPIENT, amount=1), block_time=0)
        assert len(res.messages) == 1


class TestSendWithoutNativeBalance(_GovernanceCase):

    def test_no_native_balance(self):
        self.bank.mint(CONTRACT, [Coin(denom="uatom", amount=100)])
        with pytest.raises(NoNativeBalance):
            self._sudo(ExecuteSend(recipient=RECIPIENT, amount=1))

    def test_empty_vault(self):
        with pytest.raises(NoNativeBalance):
            self._sudo(ExecuteSend(recipient=RECIPIENT, amount=1))


class TestSendWithoutDenomination(_GovernanceCase):

    native_denom = None

    def test_denomination_not_configured(self):
        self.bank.mint(CONTRACT, coins(100, NATIVE_DENOM))
        with pytest.raises(DenominationNotConfigured):
            self._sudo(ExecuteSend(recipient=RECIPIENT, amount=1))

    def test_send_all_still_works(self):
        self.bank.mint(CONTRACT, coins(100, NATIVE_DENOM))
        res = self._sudo(ExecuteSendAll(recipient=RECIPIENT))
        assert res.messages == [BankSend(to_address=RECIPIENT, amount=coins(100, NATIVE_DENOM))]


class TestSendAll(_GovernanceCase):

    def test_sends_every_denomination(self):
        self.bank.mint(CONTRACT, [Coin(denom="uatom", amount=7)] + coins(3_000_000, NATIVE_DENOM))
        res = self._sudo(ExecuteSendAll(recipient=RECIPIENT))

        assert res.attribute("message_type") == "sudo"
        assert res.attribute("action") == "send_all"
        assert res.attribute("recipient") == RECIPIENT
        assert res.messages == [
            BankSend(
                to_address=RECIPIENT,
                amount=[Coin(denom="uatom", amount=7), Coin(denom=NATIVE_DENOM, amount=3_000_000)],
            )
        ]

    def test_invalid_recipient(self):
        with pytest.raises(InvalidIdentity):
            self._sudo(ExecuteSendAll(recipient=""))
