"""
Unity Vault — HTTP boundary for the withdrawal controller.

FastAPI application providing:
- Instantiate (write-once configuration)
- Beneficiary requests (start / execute withdrawal), caller in ``X-Sender``
  and proven by an ``X-Sender-Token`` issued for that identity
- Governance overrides (burn / send / send-all), a separate entry point
  gated by ``X-Governance-Key``
- Public queries (config, ready time, readiness, contract version)
- Bank sends (deposits into the vault) and balance lookups against the
  SQL-persisted host ledger

The API is the host's decoding layer: it turns JSON into typed requests,
stamps each invocation with the current clock, and maps controller errors
to HTTP status codes. All decisions are made by the controller.
"""

from __future__ import annotations

import logging
import secrets
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from unity_vault.api.auth import verify_sender
from unity_vault.config import settings
from unity_vault.host.bank import LedgerError
from unity_vault.storage.service import StorageError
from unity_vault.vault.errors import ErrorKind, VaultError
from unity_vault.vault.governance import GovernanceCapability
from unity_vault.vault.schema import (
    Coin,
    ExecuteMsg,
    GetConfig,
    GetContractVersion,
    GetWithdrawalReadyTime,
    InstantiateMsg,
    IsWithdrawalReady,
    SudoMsg,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.TIMING: 409,
    ErrorKind.STATE_ABSENCE: 409,
    ErrorKind.BALANCE: 409,
    ErrorKind.LIFECYCLE: 409,
}


# ── Pydantic request models ────────────────────────────────────


class InstantiateRequest(InstantiateMsg):
    funds: list[Coin] = []


class ExecuteRequest(BaseModel):
    msg: ExecuteMsg
    funds: list[Coin] = []


class SudoRequest(BaseModel):
    msg: SudoMsg


class BankSendRequest(BaseModel):
    to_address: str
    amount: list[Coin]


class ApiState:
    """Mutable application state injected at startup."""

    def __init__(self) -> None:
        self.host: Any = None
        self.clock: Callable[[], int] = lambda: int(time.time())
        self.startup_time: datetime = datetime.now(timezone.utc)


state = ApiState()


# ── Application lifecycle ──────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup & shutdown lifecycle — connect the host to SQL storage."""
    from unity_vault.log_config import configure_logging

    configure_logging()
    log = structlog.get_logger()
    log.info("unity_vault.api.starting", contract_address=settings.contract_address)

    if state.host is None:
        from unity_vault.host.bank import SqlBankLedger
        from unity_vault.host.chain import VaultHost
        from unity_vault.storage.service import SqlStorage

        storage = SqlStorage(settings.database_url)
        storage.initialize()
        bank = SqlBankLedger(storage)
        state.host = VaultHost(storage=storage, bank=bank, block_time=state.clock())
        log.info("unity_vault.api.storage_ready", keys=storage.keys())

        if settings.genesis_balances and bank.is_empty():
            for address, held in sorted(settings.genesis_balances.items()):
                amount = [Coin(denom=denom, amount=n) for denom, n in sorted(held.items())]
                state.host.mint(address, amount)
            log.info("unity_vault.api.genesis_applied", accounts=len(settings.genesis_balances))

    yield

    log.info("unity_vault.api.shutdown")


app = FastAPI(
    title="Unity Vault",
    description="Time-locked withdrawal controller with a governance override channel",
    version=settings.contract_version,
    lifespan=lifespan,
)


# ── Helpers ────────────────────────────────────────────────────


def _host() -> Any:
    if state.host is None:
        raise HTTPException(status_code=503, detail="Vault host not initialized")
    # Host time only moves forward
    now = state.clock()
    if now > state.host.block_time:
        state.host.set_time(now)
    return state.host


def _authenticate(sender: str, token: str) -> str:
    if not verify_sender(sender, token):
        logger.warning("Rejected request with invalid sender token: sender=%s", sender)
        raise HTTPException(status_code=403, detail="Invalid sender token")
    return sender


def _error(exc: Exception) -> HTTPException:
    if isinstance(exc, VaultError):
        status = 404 if exc.code == "not_instantiated" else ERROR_STATUS[exc.kind]
        return HTTPException(
            status_code=status,
            detail={"code": exc.code, "kind": exc.kind.value, "message": exc.message},
        )
    if isinstance(exc, LedgerError):
        return HTTPException(
            status_code=409,
            detail={"code": "ledger_rejected", "kind": "ledger", "message": str(exc)},
        )
    logger.error("Storage failure: %s", exc)
    return HTTPException(
        status_code=500,
        detail={"code": "storage_error", "kind": "storage", "message": str(exc)},
    )


# ── Routes: Writes ─────────────────────────────────────────────


@app.post("/api/instantiate")
async def api_instantiate(
    req: InstantiateRequest,
    x_sender: str = Header(...),
    x_sender_token: str = Header(...),
):
    """Create the vault configuration. Write-once. The sender pays any attached funds."""
    sender = _authenticate(x_sender, x_sender_token)
    host = _host()
    msg = InstantiateMsg(
        withdraw_address=req.withdraw_address,
        withdraw_delay_in_days=req.withdraw_delay_in_days,
        native_denom=req.native_denom,
    )
    try:
        response = host.instantiate(sender, msg, funds=req.funds)
    except (VaultError, LedgerError, StorageError) as exc:
        raise _error(exc) from exc
    return response.model_dump(mode="json")


@app.post("/api/execute")
async def api_execute(
    req: ExecuteRequest,
    x_sender: str = Header(...),
    x_sender_token: str = Header(...),
):
    """Beneficiary request: start_withdraw or execute_withdraw."""
    sender = _authenticate(x_sender, x_sender_token)
    host = _host()
    try:
        response = host.execute(sender, req.msg, funds=req.funds)
    except (VaultError, LedgerError, StorageError) as exc:
        raise _error(exc) from exc
    return response.model_dump(mode="json")


@app.post("/api/sudo")
async def api_sudo(
    req: SudoRequest,
    x_governance_key: str = Header(...),
    x_governance_reason: str = Header(default="api"),
):
    """Governance entry point. Never reachable with a beneficiary identity."""
    if not secrets.compare_digest(x_governance_key.encode(), settings.governance_key.encode()):
        logger.warning("Rejected governance call with invalid key")
        raise HTTPException(status_code=403, detail="Invalid governance key")

    host = _host()
    capability = GovernanceCapability.grant(reason=x_governance_reason, granted_by="api")
    try:
        response = host.sudo(capability, req.msg)
    except (VaultError, LedgerError, StorageError) as exc:
        raise _error(exc) from exc
    return response.model_dump(mode="json")


@app.post("/api/bank/send")
async def api_bank_send(
    req: BankSendRequest,
    x_sender: str = Header(...),
    x_sender_token: str = Header(...),
):
    """Move the sender's own funds, e.g. a deposit into the vault."""
    sender = _authenticate(x_sender, x_sender_token)
    host = _host()
    try:
        to_address = host.api.addr_validate(req.to_address)
        host.transfer(sender, to_address, req.amount)
    except (VaultError, LedgerError, StorageError) as exc:
        raise _error(exc) from exc
    return {
        "from_address": sender,
        "to_address": to_address,
        "amount": [c.model_dump(mode="json") for c in req.amount],
    }


# ── Routes: Queries ────────────────────────────────────────────


@app.get("/api/query/config")
async def api_query_config():
    try:
        return _host().query(GetConfig()).model_dump(mode="json")
    except (VaultError, StorageError) as exc:
        raise _error(exc) from exc


@app.get("/api/query/withdrawal-ready-time")
async def api_query_ready_time():
    try:
        return _host().query(GetWithdrawalReadyTime()).model_dump(mode="json")
    except (VaultError, StorageError) as exc:
        raise _error(exc) from exc


@app.get("/api/query/is-withdrawal-ready")
async def api_query_is_ready():
    try:
        return _host().query(IsWithdrawalReady()).model_dump(mode="json")
    except (VaultError, StorageError) as exc:
        raise _error(exc) from exc


@app.get("/api/query/contract-version")
async def api_query_contract_version():
    try:
        return _host().query(GetContractVersion()).model_dump(mode="json")
    except (VaultError, StorageError) as exc:
        raise _error(exc) from exc


@app.get("/api/balances/{address}")
async def api_balances(address: str):
    host = _host()
    return {
        "address": address,
        "balances": [c.model_dump(mode="json") for c in host.balances(address)],
    }


@app.get("/health")
async def health():
    host_time = state.host.block_time if state.host is not None else None
    return {
        "status": "healthy" if state.host is not None else "degraded",
        "host_time": host_time,
        "startup_time": state.startup_time.isoformat(),
    }


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
