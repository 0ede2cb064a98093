"""Unity Vault — Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class VaultSettings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "UNITY_VAULT_",
        "extra": "ignore",
    }

    # ── Contract identity (stored at instantiate, checked on migrate) ──
    contract_name: str = "unity-vault"
    contract_version: str = "0.3.0"

    # ── Timelock ───────────────────────────────────────────────
    seconds_per_day: int = 86400
    max_withdraw_delay_days: int | None = 3650

    # ── Identity rules (host address syntax) ───────────────────
    identity_min_length: int = 3
    identity_max_length: int = 90
    identity_prefix: str = ""

    # ── Storage ────────────────────────────────────────────────
    database_url: str = "sqlite:///unity_vault.db"
    contract_address: str = "unity-vault-contract"

    # ── Host ledger ────────────────────────────────────────────
    # Credited once, when the ledger table is empty.
    # JSON in the environment: {"bud-fox-address": {"ujuno": 3000000}}
    genesis_balances: dict[str, dict[str, int]] = {}

    # ── Governance channel ─────────────────────────────────────
    governance_key: str = "change-me-governance-key"

    # ── Sender authentication (HMAC-SHA256 tokens per identity) ──
    sender_auth_secret: str = "change-me-sender-secret"

    # ── API ────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # ── Logging ────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"


settings = VaultSettings()
