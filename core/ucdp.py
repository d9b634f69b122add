"""
UCDP Georeferenced Event Dataset (GED) client and aggregation.

The GED API is paged; ``fetch_events`` follows ``NextPageUrl`` until it runs
out or ``max_pages`` is reached, which keeps request volume bounded for large
countries.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING, Optional

import requests
from pydantic import ValidationError

from core.errors import UpstreamFetchFailed
from core.models import ConflictNumbers, GedEvent, MonthlyCount

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


def last_12_month_window(today: Optional[date] = None) -> tuple[str, str]:
    """Return ``(start, end)`` ISO dates covering the year up to *today*."""
    end = today or date.today()
    try:
        start = end.replace(year=end.year - 1)
    except ValueError:
        # 29 February
        start = end.replace(year=end.year - 1, day=28)
    return start.isoformat(), end.isoformat()


def aggregate(events: Sequence[GedEvent]) -> ConflictNumbers:
    """Totals, fatalities per violence type and a per-month series."""
    by_type = {1: 0, 2: 0, 3: 0}
    by_month: dict[str, list[int]] = {}
    total_best = 0

    for event in events:
        total_best += event.best
        by_type[event.type_of_violence] = by_type.get(event.type_of_violence, 0) + event.best
        month = event.date_end[:7]
        counts = by_month.setdefault(month, [0, 0])
        counts[0] += 1
        counts[1] += event.best

    return ConflictNumbers(
        total_events=len(events),
        total_best=total_best,
        by_type=by_type,
        by_month=[
            MonthlyCount(month=month, events=counts[0], best=counts[1])
            for month, counts in sorted(by_month.items())
        ],
    )


class UcdpClient:
    """Minimal client for the UCDP GED ``gedevents`` endpoint."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.ucdp_access_token:
            headers["x-ucdp-access-token"] = self.settings.ucdp_access_token
        return headers

    def fetch_events(
        self,
        start_date: str,
        end_date: str,
        country_ids: Optional[Sequence[int]] = None,
        type_of_violence: Optional[Sequence[int]] = None,
        max_pages: int = 5,
        page_size: int = 1000,
    ) -> list[GedEvent]:
        """Fetch GED events between two ISO dates.

        Raises:
            UpstreamFetchFailed: A page could not be fetched or decoded.
        """
        url: Optional[str] = (
            f"{self.settings.ucdp_base_url.rstrip('/')}/gedevents/{self.settings.ged_version}"
        )
        params: Optional[dict[str, str]] = {
            "pagesize": str(page_size),
            "StartDate": start_date,
            "EndDate": end_date,
        }
        if country_ids:
            params["Country"] = ",".join(str(c) for c in country_ids)
        if type_of_violence:
            params["TypeOfViolence"] = ",".join(str(t) for t in type_of_violence)

        events: list[GedEvent] = []
        for _ in range(max_pages):
            if not url:
                break
            try:
                response = self.session.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=self.settings.http_timeout,
                )
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as exc:
                logger.error("UCDP request failed for %s: %s", url, exc)
                raise UpstreamFetchFailed(f"UCDP request failed: {exc}") from exc

            if not isinstance(payload, dict):
                raise UpstreamFetchFailed("UCDP returned an unexpected payload")

            rows = payload.get("Result")
            if not isinstance(rows, list):
                rows = []
            for row in rows:
                if not isinstance(row, dict):
                    logger.warning("Skipping non-object GED row %r", row)
                    continue
                try:
                    events.append(GedEvent.model_validate(row))
                except ValidationError as exc:
                    logger.warning("Skipping malformed GED event %r: %s", row.get("id"), exc)

            # NextPageUrl already carries the query string
            url = payload.get("NextPageUrl") or None
            params = None

        logger.info("Fetched %d GED events (%s to %s)", len(events), start_date, end_date)
        return events

    def conflict_numbers(
        self,
        conflict_id: Optional[int] = None,
        country_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> ConflictNumbers:
        """Aggregate the trailing year of events for a conflict or a country."""
        start, end = last_12_month_window(today)
        events = self.fetch_events(
            start,
            end,
            country_ids=[country_id] if country_id else None,
            max_pages=10,
        )
        if conflict_id:
            events = [event for event in events if event.conflict_new_id == conflict_id]
        return aggregate(events)

    def recent_country_events(
        self, country_id: int, today: Optional[date] = None, max_pages: int = 2
    ) -> list[GedEvent]:
        start, end = last_12_month_window(today)
        return self.fetch_events(start, end, country_ids=[country_id], max_pages=max_pages)
