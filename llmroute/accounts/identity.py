"""Caller identity and quota storage collaborators.

Session handling and credential management live outside this service. The
pipeline only needs two narrow capabilities:

- IdentityProvider.lookup(api_key) -> CallerIdentity | None
- QuotaStore.get(caller_id) / add_usage(caller_id, tokens)

InMemoryAccountStore implements both for development and tests. API keys
are stored as SHA-256 hashes, never in clear.
"""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass
from typing import Protocol

import structlog

from llmroute.config import Settings
from llmroute.errors import AccountingError
from llmroute.routing.catalog import Tier

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CallerQuota:
    usage_total: int
    usage_limit: int

    @property
    def remaining(self) -> int:
        return max(self.usage_limit - self.usage_total, 0)


@dataclass(frozen=True)
class CallerIdentity:
    """Snapshot of the authenticated caller at admission time."""

    caller_id: str
    tier: Tier
    usage_total: int
    usage_limit: int


class IdentityProvider(Protocol):
    async def lookup(self, api_key: str) -> CallerIdentity | None: ...


class QuotaStore(Protocol):
    async def get(self, caller_id: str) -> CallerQuota: ...

    async def add_usage(self, caller_id: str, tokens: int) -> CallerQuota: ...


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()


@dataclass
class _Account:
    caller_id: str
    tier: Tier
    usage_total: int
    usage_limit: int


class InMemoryAccountStore:
    """Process-local accounts. Not shared across instances."""

    def __init__(self) -> None:
        self._accounts: dict[str, _Account] = {}
        self._keys: dict[str, str] = {}
        self._lock = asyncio.Lock()

    def add_caller(
        self,
        caller_id: str,
        tier: Tier,
        *,
        api_key: str | None = None,
        usage_limit: int = 100_000,
        usage_total: int = 0,
    ) -> None:
        self._accounts[caller_id] = _Account(caller_id, tier, usage_total, usage_limit)
        if api_key is not None:
            self._keys[hash_api_key(api_key)] = caller_id

    async def lookup(self, api_key: str) -> CallerIdentity | None:
        caller_id = self._keys.get(hash_api_key(api_key))
        if caller_id is None:
            return None
        account = self._accounts[caller_id]
        return CallerIdentity(
            caller_id=account.caller_id,
            tier=account.tier,
            usage_total=account.usage_total,
            usage_limit=account.usage_limit,
        )

    async def get(self, caller_id: str) -> CallerQuota:
        account = self._accounts.get(caller_id)
        if account is None:
            raise AccountingError(f"Unknown caller {caller_id}")
        return CallerQuota(account.usage_total, account.usage_limit)

    async def add_usage(self, caller_id: str, tokens: int) -> CallerQuota:
        async with self._lock:
            account = self._accounts.get(caller_id)
            if account is None:
                raise AccountingError(f"Unknown caller {caller_id}")
            account.usage_total += tokens
            return CallerQuota(account.usage_total, account.usage_limit)


DEV_API_KEYS = {
    Tier.FREE: "dev-free-key",
    Tier.PRO: "dev-pro-key",
    Tier.ENTERPRISE: "dev-enterprise-key",
}


def build_account_store(settings: Settings) -> InMemoryAccountStore:
    """Account store for this process, seeded with dev callers outside production."""
    store = InMemoryAccountStore()
    if settings.seed_dev_callers and not settings.is_prod:
        for tier, api_key in DEV_API_KEYS.items():
            store.add_caller(
                f"dev-{tier.value}",
                tier,
                api_key=api_key,
                usage_limit=settings.default_usage_limit,
            )
        log.info("accounts.dev_callers_seeded", tiers=[t.value for t in DEV_API_KEYS])
    return store
