"""
UCDP country id → ISO3 resolution.

Lookup order
────────────
1. Static table of UCDP (Gleditsch–Ward) country ids.
2. A previous resolution memoised in the ``country_iso3`` table.
3. Centroid of the country's recent GED events → containing world-boundary
   polygon → ISO3 from the polygon's properties, else from its name.
   Successful resolutions are memoised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from core.db import Database
from core.geo import CountryPolygonIndex, centroid
from core.ucdp import UcdpClient

logger = logging.getLogger(__name__)

#: UCDP country id → (ISO3, common name)
UCDP_COUNTRIES: dict[int, tuple[str, str]] = {
    2: ("USA", "United States"),
    20: ("CAN", "Canada"),
    40: ("CUB", "Cuba"),
    41: ("HTI", "Haiti"),
    42: ("DOM", "Dominican Republic"),
    70: ("MEX", "Mexico"),
    90: ("GTM", "Guatemala"),
    91: ("HND", "Honduras"),
    92: ("SLV", "El Salvador"),
    93: ("NIC", "Nicaragua"),
    94: ("CRI", "Costa Rica"),
    95: ("PAN", "Panama"),
    100: ("COL", "Colombia"),
    101: ("VEN", "Venezuela"),
    130: ("ECU", "Ecuador"),
    135: ("PER", "Peru"),
    140: ("BRA", "Brazil"),
    145: ("BOL", "Bolivia"),
    150: ("PRY", "Paraguay"),
    155: ("CHL", "Chile"),
    160: ("ARG", "Argentina"),
    165: ("URY", "Uruguay"),
    200: ("GBR", "United Kingdom"),
    205: ("IRL", "Ireland"),
    210: ("NLD", "Netherlands"),
    211: ("BEL", "Belgium"),
    220: ("FRA", "France"),
    230: ("ESP", "Spain"),
    235: ("PRT", "Portugal"),
    260: ("DEU", "Germany"),
    290: ("POL", "Poland"),
    310: ("HUN", "Hungary"),
    316: ("CZE", "Czechia"),
    325: ("ITA", "Italy"),
    339: ("ALB", "Albania"),
    343: ("MKD", "North Macedonia"),
    344: ("HRV", "Croatia"),
    345: ("SRB", "Serbia"),
    346: ("BIH", "Bosnia and Herzegovina"),
    350: ("GRC", "Greece"),
    352: ("CYP", "Cyprus"),
    355: ("BGR", "Bulgaria"),
    359: ("MDA", "Moldova"),
    360: ("ROU", "Romania"),
    365: ("RUS", "Russia"),
    369: ("UKR", "Ukraine"),
    370: ("BLR", "Belarus"),
    371: ("ARM", "Armenia"),
    372: ("GEO", "Georgia"),
    373: ("AZE", "Azerbaijan"),
    432: ("MLI", "Mali"),
    433: ("SEN", "Senegal"),
    434: ("BEN", "Benin"),
    435: ("MRT", "Mauritania"),
    436: ("NER", "Niger"),
    437: ("CIV", "Ivory Coast"),
    438: ("GIN", "Guinea"),
    439: ("BFA", "Burkina Faso"),
    450: ("LBR", "Liberia"),
    451: ("SLE", "Sierra Leone"),
    452: ("GHA", "Ghana"),
    461: ("TGO", "Togo"),
    471: ("CMR", "Cameroon"),
    475: ("NGA", "Nigeria"),
    481: ("GAB", "Gabon"),
    482: ("CAF", "Central African Republic"),
    483: ("TCD", "Chad"),
    484: ("COG", "Republic of the Congo"),
    490: ("COD", "DR Congo"),
    500: ("UGA", "Uganda"),
    501: ("KEN", "Kenya"),
    510: ("TZA", "Tanzania"),
    516: ("BDI", "Burundi"),
    517: ("RWA", "Rwanda"),
    520: ("SOM", "Somalia"),
    522: ("DJI", "Djibouti"),
    530: ("ETH", "Ethiopia"),
    531: ("ERI", "Eritrea"),
    540: ("AGO", "Angola"),
    541: ("MOZ", "Mozambique"),
    551: ("ZMB", "Zambia"),
    552: ("ZWE", "Zimbabwe"),
    553: ("MWI", "Malawi"),
    560: ("ZAF", "South Africa"),
    565: ("NAM", "Namibia"),
    580: ("MDG", "Madagascar"),
    600: ("MAR", "Morocco"),
    615: ("DZA", "Algeria"),
    616: ("TUN", "Tunisia"),
    620: ("LBY", "Libya"),
    625: ("SDN", "Sudan"),
    626: ("SSD", "South Sudan"),
    630: ("IRN", "Iran"),
    640: ("TUR", "Turkey"),
    645: ("IRQ", "Iraq"),
    651: ("EGY", "Egypt"),
    652: ("SYR", "Syria"),
    660: ("LBN", "Lebanon"),
    663: ("JOR", "Jordan"),
    666: ("ISR", "Israel"),
    670: ("SAU", "Saudi Arabia"),
    678: ("YEM", "Yemen"),
    690: ("KWT", "Kuwait"),
    698: ("OMN", "Oman"),
    700: ("AFG", "Afghanistan"),
    701: ("TKM", "Turkmenistan"),
    702: ("TJK", "Tajikistan"),
    703: ("KGZ", "Kyrgyzstan"),
    704: ("UZB", "Uzbekistan"),
    705: ("KAZ", "Kazakhstan"),
    710: ("CHN", "China"),
    712: ("MNG", "Mongolia"),
    731: ("PRK", "North Korea"),
    732: ("KOR", "South Korea"),
    740: ("JPN", "Japan"),
    750: ("IND", "India"),
    770: ("PAK", "Pakistan"),
    771: ("BGD", "Bangladesh"),
    775: ("MMR", "Myanmar"),
    780: ("LKA", "Sri Lanka"),
    790: ("NPL", "Nepal"),
    800: ("THA", "Thailand"),
    811: ("KHM", "Cambodia"),
    812: ("LAO", "Laos"),
    816: ("VNM", "Vietnam"),
    820: ("MYS", "Malaysia"),
    840: ("PHL", "Philippines"),
    850: ("IDN", "Indonesia"),
    860: ("TLS", "Timor-Leste"),
    900: ("AUS", "Australia"),
    910: ("PNG", "Papua New Guinea"),
    920: ("NZL", "New Zealand"),
}

#: Boundary-dataset spellings that differ from the common names above.
NAME_ALIASES: dict[str, str] = {
    "russian federation": "RUS",
    "congo, democratic republic of the": "COD",
    "democratic republic of the congo": "COD",
    "dem. rep. congo": "COD",
    "congo": "COG",
    "syrian arab republic": "SYR",
    "central african rep.": "CAF",
    "s. sudan": "SSD",
    "bosnia and herz.": "BIH",
    "côte d'ivoire": "CIV",
    "cote d'ivoire": "CIV",
    "burma": "MMR",
    "united states of america": "USA",
    "czech republic": "CZE",
    "macedonia": "MKD",
    "dominican rep.": "DOM",
    "iran (islamic republic of)": "IRN",
    "lao pdr": "LAO",
    "viet nam": "VNM",
    "türkiye": "TUR",
    "republic of korea": "KOR",
    "dem. rep. korea": "PRK",
    "w. sahara": "ESH",
    "western sahara": "ESH",
    "palestine": "PSE",
    "kosovo": "XKX",
}

_NAME_TO_ISO3 = {name.lower(): iso3 for iso3, name in UCDP_COUNTRIES.values()}


def static_iso3(country_id: int) -> Optional[str]:
    entry = UCDP_COUNTRIES.get(country_id)
    return entry[0] if entry else None


def country_name(country_id: Optional[int]) -> Optional[str]:
    """Display name for a UCDP country id, or None when unknown."""
    if not country_id:
        return None
    entry = UCDP_COUNTRIES.get(country_id)
    return entry[1] if entry else None


def name_to_iso3(name: str) -> Optional[str]:
    lower = name.strip().lower()
    return _NAME_TO_ISO3.get(lower) or NAME_ALIASES.get(lower)


class Iso3Resolver:
    """Resolves UCDP country ids to ISO3 codes, memoising geometric lookups."""

    def __init__(
        self,
        db: Database,
        ucdp: UcdpClient,
        index_loader: Callable[[], CountryPolygonIndex],
    ) -> None:
        self.db = db
        self.ucdp = ucdp
        self._index_loader = index_loader
        self._index: Optional[CountryPolygonIndex] = None

    @property
    def index(self) -> CountryPolygonIndex:
        """The polygon index, loaded on first use."""
        if self._index is None:
            self._index = self._index_loader()
        return self._index

    def _memoised(self, country_id: int) -> Optional[str]:
        try:
            with self.db.connect() as conn:
                row = conn.execute(
                    "SELECT iso3 FROM country_iso3 WHERE country_id = ?", (country_id,)
                ).fetchone()
        except Exception:
            logger.exception("Error reading memoised ISO3 for country %d", country_id)
            return None
        return row["iso3"] if row else None

    def _memoise(self, country_id: int, iso3: str, source: str) -> None:
        try:
            with self.db.connect() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO country_iso3 (country_id, iso3, source, resolved_at) "
                    "VALUES (?, ?, ?, ?)",
                    (country_id, iso3, source, datetime.now(timezone.utc).isoformat()),
                )
        except Exception:
            logger.exception("Error memoising ISO3 for country %d", country_id)

    def resolve(self, country_id: int) -> Optional[str]:
        """Return the ISO3 code for *country_id*, or None if it cannot be found.

        Raises:
            UpstreamFetchFailed: The GED events or the boundaries dataset
                could not be loaded.
        """
        iso3 = static_iso3(country_id)
        if iso3:
            return iso3

        iso3 = self._memoised(country_id)
        if iso3:
            return iso3

        point = centroid(self.ucdp.recent_country_events(country_id))
        if point is None:
            logger.info("No recent events to locate country %d", country_id)
            return None

        polygon = self.index.lookup(*point)
        if polygon is None:
            logger.info("Centroid %r of country %d matched no polygon", point, country_id)
            return None

        iso3 = polygon.iso3 or name_to_iso3(polygon.name)
        if iso3:
            self._memoise(country_id, iso3, source=f"polygon:{polygon.name}")
        return iso3
