"""
UNHCR displacement lookup.

Queries the UNHCR Population API for a country of origin and returns the
refugee, asylum-seeker and IDP stocks for the most recent year it has data
for. Stateless: nothing is cached server-side.

Docs: https://api.unhcr.org/docs/refugee-statistics.html
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Optional

import requests
from pydantic import ValidationError

from core.errors import InvalidRequest, UpstreamFetchFailed
from core.models import DisplacementSnapshot, PopulationRow

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

SOURCE_LABEL = "UNHCR Population API"

_ISO3_RE = re.compile(r"^[A-Za-z]{3}$")


def normalise_iso3(value: Any) -> str:
    """Upper-case a 3-letter code, or raise ``InvalidRequest``."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest("Missing iso3")
    code = value.strip()
    if not _ISO3_RE.match(code):
        raise InvalidRequest(f"Invalid iso3 code: {value!r}")
    return code.upper()


def decode_rows(payload: Any) -> list[PopulationRow]:
    """Pull population rows out of a response, under ``data`` or ``results``."""
    if not isinstance(payload, dict):
        return []
    raw = payload.get("data")
    if not isinstance(raw, list):
        raw = payload.get("results")
    if not isinstance(raw, list):
        return []

    rows = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            rows.append(PopulationRow.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed UNHCR row: %s", exc)
    return rows


def summarise_rows(iso3: str, rows: list[PopulationRow]) -> DisplacementSnapshot:
    """Sum the rows belonging to the latest year present."""
    years = [row.year for row in rows if row.year is not None]
    if not years:
        return DisplacementSnapshot(
            iso3=iso3, refugees=0, asylum_seekers=0, source=SOURCE_LABEL
        )

    latest = max(years)
    latest_rows = [row for row in rows if row.year == latest]
    return DisplacementSnapshot(
        iso3=iso3,
        refugees=sum(row.refugees for row in latest_rows),
        asylum_seekers=sum(row.asylum_seekers for row in latest_rows),
        idps=sum(row.idps for row in latest_rows),
        year=latest,
        source=SOURCE_LABEL,
    )


class DisplacementClient:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    def fetch(self, iso3: Any) -> DisplacementSnapshot:
        """Return latest-year displacement figures for *iso3* as country of origin.

        Raises:
            InvalidRequest: *iso3* is missing or not a 3-letter code.
            UpstreamFetchFailed: The UNHCR API could not be reached or
                answered with an error.
        """
        code = normalise_iso3(iso3)
        url = f"{self.settings.unhcr_base_url.rstrip('/')}/population/"
        params = {"cf_type": "ISO", "coo": code, "limit": "1000"}

        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.settings.http_timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            logger.error("UNHCR population fetch failed for %s: %s", code, status)
            raise UpstreamFetchFailed(f"UNHCR population fetch failed: {status}") from exc
        except (requests.RequestException, ValueError) as exc:
            logger.error("UNHCR population fetch failed for %s: %s", code, exc)
            raise UpstreamFetchFailed(f"UNHCR population fetch failed: {exc}") from exc

        snapshot = summarise_rows(code, decode_rows(payload))
        logger.info("Displacement for %s: year=%s", code, snapshot.year)
        return snapshot
