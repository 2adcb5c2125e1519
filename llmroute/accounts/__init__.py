"""Caller identity and quota accounting."""

from __future__ import annotations

from llmroute.accounts.identity import (
    CallerIdentity,
    CallerQuota,
    IdentityProvider,
    InMemoryAccountStore,
    QuotaStore,
    build_account_store,
)
from llmroute.accounts.quota import QuotaGuard

__all__ = [
    "CallerIdentity",
    "CallerQuota",
    "IdentityProvider",
    "InMemoryAccountStore",
    "QuotaGuard",
    "QuotaStore",
    "build_account_store",
]
