"""
Tests for the SightMap client with a mocked requests session.
"""

from unittest.mock import MagicMock

import pytest
import requests

from assetmatch.cancel import CancelToken, RunCancelled
from assetmatch.client import SightMapClient, TransportError
from assetmatch.models import ReferenceTag
from conftest import make_response

BASE = "https://api.test/v1"


def _client(*responses, page_retries=2):
    session = MagicMock()
    session.get.side_effect = list(responses)
    client = SightMapClient("secret", base_url=BASE + "/", per_page=2, page_retries=page_retries, retry_delay=0, session=session)
    return client, session


def _page(items, next_url=None, total=None):
    return make_response({"data": items, "paging": {"next_url": next_url, "total_count": total}})


class TestConstruction:
    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="API key"):
            SightMapClient("")

    def test_urls(self):
        client, _ = _client()
        assert client.assets_url("77") == f"{BASE}/accounts/77/assets?per-page=2"
        assert client.assets_url() == f"{BASE}/assets?per-page=2"


class TestFetchAssets:
    """Paged catalog download."""

    def test_follows_pages_in_order(self):
        client, session = _client(
            _page([{"id": 1, "name": "A"}, {"id": 2, "name": "B"}], next_url=f"{BASE}/p2", total=3),
            _page([{"id": 3, "name": "C", "address_line1": "1 Main St", "address_city": "Denver", "address_state": "CO"}], total=3),
        )
        progress = []
        assets = client.fetch_assets("77", on_page=lambda loaded, total: progress.append((loaded, total)))

        assert [a.id for a in assets] == ["1", "2", "3"]
        assert assets[2].address == "1 Main St"
        assert assets[2].location == "Denver, CO"
        assert progress == [(2, 3), (3, 3)]
        assert session.get.call_count == 2
        assert session.get.call_args_list[1].args[0] == f"{BASE}/p2"

    def test_account_scope_sends_flag(self):
        client, session = _client(_page([]))
        client.fetch_assets("77")
        headers = session.get.call_args.kwargs["headers"]
        assert headers["API-Key"] == "secret"
        assert headers["Experimental-Flags"] == "accounts-assets"

    def test_global_scope_has_no_flag(self):
        client, session = _client(_page([]))
        client.fetch_assets()
        assert session.get.call_args.args[0] == f"{BASE}/assets?per-page=2"
        assert "Experimental-Flags" not in session.get.call_args.kwargs["headers"]

    def test_page_failure_aborts(self):
        client, _ = _client(_page([{"id": 1}], next_url=f"{BASE}/p2"), make_response(None, 500))
        with pytest.raises(TransportError) as exc:
            client.fetch_assets("77")
        assert exc.value.status == 500

    def test_status_errors_not_retried(self):
        client, session = _client(make_response(None, 503))
        with pytest.raises(TransportError):
            client.fetch_assets("77")
        assert session.get.call_count == 1

    def test_auth_failure(self):
        client, _ = _client(make_response(None, 401))
        with pytest.raises(TransportError, match="authorization"):
            client.fetch_assets("77")

    def test_timeout_retried(self):
        client, session = _client(requests.exceptions.Timeout("slow"), _page([{"id": 9}]))
        assets = client.fetch_assets("77")
        assert [a.id for a in assets] == ["9"]
        assert session.get.call_count == 2

    def test_retries_exhausted(self):
        client, session = _client(*[requests.exceptions.ConnectionError("down")] * 3)
        with pytest.raises(TransportError, match="ConnectionError"):
            client.fetch_assets("77")
        assert session.get.call_count == 3

    def test_invalid_json(self):
        resp = make_response(None)
        resp.json.side_effect = ValueError("not json")
        client, _ = _client(resp)
        with pytest.raises(TransportError, match="invalid JSON"):
            client.fetch_assets("77")

    def test_cancelled_token_makes_no_request(self):
        client, session = _client(_page([]))
        token = CancelToken()
        token.cancel()
        with pytest.raises(RunCancelled):
            client.fetch_assets("77", token=token)
        session.get.assert_not_called()


class TestSubResources:
    """Per-asset reference fetches."""

    def test_references(self):
        client, session = _client(_page([{"key": "unit", "value": "12345"}, "LEGACY-1"]))
        tags = client.fetch_references("42")

        assert tags == [ReferenceTag("unit", "12345"), ReferenceTag("id", "LEGACY-1")]
        url = session.get.call_args.args[0]
        assert url == f"{BASE}/assets/42/multifamily/references?per-page=100"
        assert session.get.call_args.kwargs["headers"]["Experimental-Flags"] == "references"

    def test_references_keep_id_and_name(self):
        client, _ = _client(_page([{"id": 31, "name": "Yardi", "key": "unit", "value": "12345"}]))
        tag = client.fetch_references("42")[0]

        assert tag == ReferenceTag("unit", "12345", id="31", name="Yardi")

    def test_references_not_retried(self):
        client, session = _client(requests.exceptions.Timeout("slow"), _page([]))
        with pytest.raises(TransportError):
            client.fetch_references("42")
        assert session.get.call_count == 1

    def test_not_found(self):
        client, _ = _client(make_response(None, 404))
        with pytest.raises(TransportError) as exc:
            client.fetch_references("42")
        assert exc.value.status == 404

    def test_group_references(self):
        client, session = _client(_page([{"unit_id": 5, "key": "unit", "value": "A-5"}]))
        refs = client.fetch_group_references("42", {"id": 3, "name": "Yardi"})

        assert len(refs) == 1
        assert refs[0].asset_id == "42"
        assert refs[0].group_id == "3"
        assert refs[0].group_name == "Yardi"
        assert refs[0].unit_id == "5"
        assert refs[0].value == "A-5"
        assert session.get.call_args.args[0].endswith("/reference-groups/3/references?per-page=100")

    def test_reference_groups(self):
        client, _ = _client(_page([{"id": 1}], next_url=f"{BASE}/g2"), _page([{"id": 2}]))
        assert [g["id"] for g in client.fetch_reference_groups("42")] == [1, 2]
