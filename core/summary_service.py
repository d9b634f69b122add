"""
Cache-or-generate-and-upsert for conflict and country summaries.

Flow
────
1. Derive the SummaryTarget from the request (400 when no usable id).
2. Fail fast when the server is missing its generation credentials.
3. Return the cached summary when it is younger than the TTL, unless the
   caller forces a refresh.
4. Otherwise generate a new summary and upsert it.

Read faults on the cache count as a miss; write faults are logged and the
freshly generated text is still returned. Generation failures propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from core.models import (
    SummaryRecord,
    SummaryRequest,
    SummaryResult,
    SummaryTarget,
    TargetKind,
)
from core.summarizer import Summarizer, build_prompt
from core.summary_store import SummaryStore

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SummaryService:
    def __init__(
        self,
        settings: Settings,
        store: SummaryStore,
        summarizer: Summarizer,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.summarizer = summarizer
        self.clock = clock

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self.settings.summary_ttl_days)

    def _read_cached(self, target: SummaryTarget) -> Optional[SummaryRecord]:
        try:
            return self.store.get(target)
        except Exception:
            logger.exception(
                "Error reading cached summary for %s %d; treating as miss",
                target.kind.value,
                target.id,
            )
            return None

    def get_or_generate(self, request: SummaryRequest) -> SummaryResult:
        """Return a summary for the request's target, generating it if needed.

        Raises:
            InvalidRequest: Neither a conflict nor a country id was given.
            ServerMisconfigured: The generation API key is not configured.
            GenerationFailed: The generation backend returned an error.
            GenerationEmpty: The generation backend returned no text.
        """
        target = request.target()
        self.settings.validate()

        now = self.clock()
        existing = self._read_cached(target)

        if existing is not None and not request.force_refresh:
            if existing.is_fresh(now, self.ttl):
                logger.info("Summary cache hit for %s %d", target.kind.value, target.id)
                return SummaryResult(
                    text=existing.text, model_id=existing.model_id, cached=True
                )
            logger.info("Cached summary for %s %d is stale", target.kind.value, target.id)

        conflict_name = request.conflict_name
        country_name = request.country_name
        if existing is not None and existing.title:
            if target.kind is TargetKind.CONFLICT:
                conflict_name = conflict_name or existing.title
            else:
                country_name = country_name or existing.title
        country_id = request.country_id
        if country_id is None and existing is not None:
            country_id = existing.country_id

        prompt = build_prompt(
            target,
            conflict_name=conflict_name,
            country_name=country_name,
            country_id=country_id,
        )
        text = self.summarizer.generate(prompt)
        model_id = self.summarizer.model_id

        record = SummaryRecord(
            target=target,
            country_id=country_id if target.kind is TargetKind.CONFLICT else target.id,
            title=conflict_name if target.kind is TargetKind.CONFLICT else country_name,
            text=text,
            model_id=model_id,
            generated_at=now,
        )
        try:
            self.store.upsert(record)
        except Exception:
            logger.exception(
                "Error upserting summary for %s %d", target.kind.value, target.id
            )

        return SummaryResult(text=text, model_id=model_id, cached=False)
