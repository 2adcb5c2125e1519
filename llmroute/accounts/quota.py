"""Quota guard - advisory admission check plus authoritative commit.

``admit`` compares an estimate against the caller's remaining quota before
any work starts. ``commit`` adds the actual usage once the stream is over.
The two calls are not a reservation: concurrent requests from one caller
can both be admitted and both committed, so the limit is a soft cap that
may be overshot by in-flight work.
"""

from __future__ import annotations

import structlog

from llmroute.accounts.identity import CallerQuota, QuotaStore
from llmroute.routing.catalog import Tier
from llmroute.routing.tokens import estimate_cost, format_token_count, usage_percentage

log = structlog.get_logger(__name__)


class QuotaGuard:
    """Admits requests against, and commits usage to, a QuotaStore."""

    # Alert thresholds (percentage of limit)
    WARNING_THRESHOLD = 80.0
    CRITICAL_THRESHOLD = 95.0

    def __init__(self, store: QuotaStore) -> None:
        self._store = store

    async def admit(self, caller_id: str, estimated_tokens: int) -> bool:
        """True if ``usage_total + estimated_tokens <= usage_limit``.

        Raises:
            AccountingError: The store cannot read the caller's quota
        """
        quota = await self._store.get(caller_id)
        allowed = quota.usage_total + estimated_tokens <= quota.usage_limit

        if allowed:
            log.debug(
                "quota.admitted",
                caller_id=caller_id,
                estimated_tokens=estimated_tokens,
                remaining=quota.remaining,
            )
        else:
            log.warning(
                "quota.admit_rejected",
                caller_id=caller_id,
                estimated_tokens=estimated_tokens,
                usage_total=quota.usage_total,
                usage_limit=quota.usage_limit,
            )
        return allowed

    async def commit(
        self,
        caller_id: str,
        actual_tokens: int,
        model_tier: Tier | None = None,
    ) -> CallerQuota:
        """Add ``actual_tokens`` to the caller's usage. Never rejects.

        Negative values are ignored so usage only ever grows.

        Raises:
            AccountingError: The store failed to record the usage
        """
        tokens = max(actual_tokens, 0)
        quota = await self._store.add_usage(caller_id, tokens)
        percent = usage_percentage(quota.usage_total, quota.usage_limit)

        log.info(
            "quota.committed",
            caller_id=caller_id,
            tokens=tokens,
            usage=format_token_count(quota.usage_total),
            limit=format_token_count(quota.usage_limit),
            estimated_cost_usd=round(estimate_cost(tokens, model_tier), 6) if model_tier else None,
        )

        if percent >= self.CRITICAL_THRESHOLD:
            log.warning("quota.critical", caller_id=caller_id, percent=round(percent, 1))
        elif percent >= self.WARNING_THRESHOLD:
            log.warning("quota.warning", caller_id=caller_id, percent=round(percent, 1))

        return quota
