"""
Flask web server for Conflict Atlas.

Routes
──────
POST /api/conflict-summary                     Cached or freshly generated summary
POST /api/unhcr-displacement                   Latest-year UNHCR displacement figures
POST /api/conflict-numbers                     Trailing-year UCDP GED aggregates
POST /api/country-iso3                         UCDP country id → ISO3
GET  /api/dashboards/<user>/<kind>/<id>        Stored dashboard layout
PUT  /api/dashboards/<user>/<kind>/<id>        Save a dashboard layout
GET  /api/health                               Liveness probe
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException


# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from config.settings import Settings
from core.dashboards import DashboardStore
from core.db import Database
from core.displacement import DisplacementClient
from core.errors import ConflictAtlasError, InvalidRequest, NotFound
from core.geo import CountryPolygonIndex
from core.iso3 import Iso3Resolver
from core.models import GridLayoutItem, SummaryRequest, SummaryTarget, TargetKind, coerce_id
from core.summarizer import Summarizer
from core.summary_service import SummaryService
from core.summary_store import SummaryStore
from core.ucdp import UcdpClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the routes talk to, built once per application."""

    summaries: SummaryService
    displacement: DisplacementClient
    ucdp: UcdpClient
    iso3: Iso3Resolver
    dashboards: DashboardStore


def build_services(settings: Settings) -> Services:
    db = Database(settings.db_path)
    db.init_schema()
    ucdp = UcdpClient(settings)
    return Services(
        summaries=SummaryService(settings, SummaryStore(db), Summarizer(settings)),
        displacement=DisplacementClient(settings),
        ucdp=ucdp,
        iso3=Iso3Resolver(
            db, ucdp, lambda: CountryPolygonIndex.load(settings.world_boundaries_path)
        ),
        dashboards=DashboardStore(db),
    )


def _json_body() -> dict[str, Any]:
    """The request's JSON object; anything unparsable counts as empty."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _target(kind: str, target_id: int) -> SummaryTarget:
    try:
        return SummaryTarget(kind=TargetKind(kind), id=target_id)
    except (ValueError, ValidationError) as exc:
        raise InvalidRequest(f"Invalid dashboard target {kind}/{target_id}") from exc


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> Flask:
    """Application factory.

    Args:
        settings: Configuration; read from the environment when omitted.
        services: Pre-built services (tests inject fakes here).
    """
    settings = settings or Settings()
    services = services or build_services(settings)

    app = Flask(__name__)
    app.config["DEBUG"] = settings.debug
    CORS(
        app,
        resources={r"/api/*": {"origins": "*"}},
        methods=["GET", "PUT", "POST", "OPTIONS"],
        send_wildcard=True,
    )

    # ── Errors ─────────────────────────────────────────────────────────────

    @app.errorhandler(ConflictAtlasError)
    def handle_known_error(exc: ConflictAtlasError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": str(exc)}), 500

    # ── Summaries ──────────────────────────────────────────────────────────

    @app.route("/api/conflict-summary", methods=["POST"])
    def conflict_summary():
        """Return ``{summary, model, cached}`` for a conflict or a country."""
        summary_request = SummaryRequest.model_validate(_json_body())
        result = services.summaries.get_or_generate(summary_request)
        return jsonify(result.to_response())

    # ── Data lookups ───────────────────────────────────────────────────────

    @app.route("/api/unhcr-displacement", methods=["POST"])
    def unhcr_displacement():
        snapshot = services.displacement.fetch(_json_body().get("iso3"))
        return jsonify(snapshot.to_response())

    @app.route("/api/conflict-numbers", methods=["POST"])
    def conflict_numbers():
        body = _json_body()
        conflict_id = coerce_id(body.get("conflictId"))
        country_id = coerce_id(body.get("countryId"))
        if conflict_id is None and country_id is None:
            raise InvalidRequest("Invalid or missing conflictId/countryId")
        numbers = services.ucdp.conflict_numbers(conflict_id, country_id)
        return jsonify(numbers.model_dump())

    @app.route("/api/country-iso3", methods=["POST"])
    def country_iso3():
        country_id = coerce_id(_json_body().get("countryId"))
        if country_id is None:
            raise InvalidRequest("Invalid or missing countryId")
        return jsonify({"countryId": country_id, "iso3": services.iso3.resolve(country_id)})

    # ── Dashboards ─────────────────────────────────────────────────────────

    @app.route("/api/dashboards/<user_id>/<kind>/<int:target_id>")
    def get_dashboard(user_id: str, kind: str, target_id: int):
        dashboard = services.dashboards.get(user_id, _target(kind, target_id))
        if dashboard is None:
            raise NotFound("Not found")
        return jsonify(dashboard.model_dump(mode="json"))

    @app.route("/api/dashboards/<user_id>/<kind>/<int:target_id>", methods=["PUT"])
    def save_dashboard(user_id: str, kind: str, target_id: int):
        target = _target(kind, target_id)
        raw_layout = _json_body().get("layout")
        if not isinstance(raw_layout, list):
            raise InvalidRequest("layout must be a list")
        try:
            layout = [GridLayoutItem.model_validate(item) for item in raw_layout]
        except ValidationError as exc:
            raise InvalidRequest(f"Invalid layout: {exc}") from exc
        dashboard = services.dashboards.save(user_id, target, layout)
        return jsonify(dashboard.model_dump(mode="json"))

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    return app


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    settings = Settings()
    app = create_app(settings)
    app.run(debug=settings.debug, host="0.0.0.0", port=settings.port)
