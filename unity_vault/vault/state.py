"""Storage slots owned by the controller."""

from __future__ import annotations

from unity_vault.storage.service import Item, Storage
from unity_vault.vault.errors import NotInstantiated
from unity_vault.vault.schema import ContractVersion, VaultConfig, VaultState

CONFIG: Item[VaultConfig] = Item("config", VaultConfig)
WITHDRAWAL_READY: Item[int] = Item("withdrawal_ready", int)
CONTRACT_INFO: Item[ContractVersion] = Item("contract_info", ContractVersion)


def load_config(storage: Storage) -> VaultConfig:
    config = CONFIG.may_load(storage)
    if config is None:
        raise NotInstantiated()
    return config


def load_state(storage: Storage) -> VaultState:
    """Aggregate config and readiness; readiness is None before any request."""
    return VaultState(
        config=load_config(storage),
        withdrawal_ready_at=WITHDRAWAL_READY.may_load(storage),
    )
