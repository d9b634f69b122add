"""Tests for core/displacement.py — UNHCR lookup with a mocked HTTP session."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from config.settings import Settings
from core.displacement import SOURCE_LABEL, DisplacementClient, decode_rows, normalise_iso3
from core.errors import InvalidRequest, UpstreamFetchFailed


def make_client(payload=None, error=None, status: int = 200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)

    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response

    settings = Settings(unhcr_base_url="https://unhcr.test/population/v1")
    return DisplacementClient(settings, session=session), session


class TestNormaliseIso3:
    def test_upper_cases(self):
        assert normalise_iso3(" syr ") == "SYR"

    @pytest.mark.parametrize("value", [None, "", 12, "SY", "SYRIA", "S1R"])
    def test_rejects_bad_codes(self, value):
        with pytest.raises(InvalidRequest):
            normalise_iso3(value)


class TestDecodeRows:
    def test_reads_results_key(self):
        rows = decode_rows({"results": [{"year": 2020, "Refugees": 3}]})
        assert rows[0].refugees == 3

    def test_unexpected_shape_is_empty(self):
        assert decode_rows(["not", "a", "dict"]) == []
        assert decode_rows({"data": "nope"}) == []


class TestFetch:
    def test_sums_latest_year_only(self):
        client, session = make_client(
            {
                "items": 3,
                "data": [
                    {"year": 2022, "refugees": 100, "asylum_seekers": 10, "idps": 1000},
                    {"year": 2023, "refugees": 200, "asylum_seekers": 20, "idps": 2000},
                    {"year": "2023", "Refugees": "5", "Asylum_seekers": 1, "IDPs": 5},
                ],
            }
        )

        snapshot = client.fetch("ukr")

        assert snapshot.iso3 == "UKR"
        assert snapshot.year == 2023
        assert snapshot.refugees == 205
        assert snapshot.asylum_seekers == 21
        assert snapshot.idps == 2005
        assert snapshot.source == SOURCE_LABEL

    def test_queries_country_of_origin(self):
        client, session = make_client({"data": []})
        client.fetch("syr")

        args, kwargs = session.get.call_args
        assert args[0] == "https://unhcr.test/population/v1/population/"
        assert kwargs["params"] == {"cf_type": "ISO", "coo": "SYR", "limit": "1000"}

    def test_no_rows_gives_zeros_without_year(self):
        client, _ = make_client({"data": []})

        snapshot = client.fetch("SYR")

        assert snapshot.refugees == 0
        assert snapshot.asylum_seekers == 0
        assert snapshot.year is None
        assert snapshot.idps is None
        assert "year" not in snapshot.to_response()
        assert "idps" not in snapshot.to_response()

    def test_http_error_is_upstream_failure(self):
        client, _ = make_client(status=503)
        with pytest.raises(UpstreamFetchFailed, match="503"):
            client.fetch("SYR")

    def test_connection_error_is_upstream_failure(self):
        client, _ = make_client(error=requests.ConnectionError("refused"))
        with pytest.raises(UpstreamFetchFailed):
            client.fetch("SYR")

    def test_invalid_iso3_makes_no_request(self):
        client, session = make_client({"data": []})
        with pytest.raises(InvalidRequest):
            client.fetch(None)
        session.get.assert_not_called()
