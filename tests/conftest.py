"""
Pytest configuration and shared fixtures.
"""

import threading
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from assetmatch.logger import get_logger

# Modules grab the shared logger at import; create it before they do so
# test runs never write into ./logs.
get_logger(enable_file=False, enable_console=False)

from assetmatch.client import TransportError  # noqa: E402
from assetmatch.models import CandidateEntity, InputRecord, ReferenceTag, UnitReference  # noqa: E402


def make_response(payload=None, status: int = 200) -> MagicMock:
    """Build a requests.Response stand-in."""
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status} Error", response=resp
        )
    else:
        resp.raise_for_status.return_value = None
    return resp


class FakeClient:
    """In-memory stand-in for SightMapClient used by workflow tests."""

    def __init__(
        self,
        assets: Optional[List[CandidateEntity]] = None,
        references: Optional[Dict[str, List[ReferenceTag]]] = None,
        failing: Optional[set] = None,
        catalog_error: Optional[Exception] = None,
        groups: Optional[Dict[str, list]] = None,
        unit_refs: Optional[Dict[tuple, List[UnitReference]]] = None,
    ):
        self.assets = assets or []
        self.references = references or {}
        self.failing = failing or set()
        self.catalog_error = catalog_error
        self.groups = groups or {}
        self.unit_refs = unit_refs or {}
        self.catalog_calls = 0
        self.reference_calls: List[str] = []
        self._lock = threading.Lock()

    def fetch_assets(self, account_id=None, token=None, on_page=None):
        self.catalog_calls += 1
        if token is not None:
            token.raise_if_cancelled()
        if self.catalog_error is not None:
            raise self.catalog_error
        if on_page:
            on_page(len(self.assets), len(self.assets))
        return list(self.assets)

    def fetch_references(self, asset_id):
        with self._lock:
            self.reference_calls.append(asset_id)
        if asset_id in self.failing:
            raise TransportError(f"SightMap request failed (500): {asset_id}", status=500)
        return list(self.references.get(asset_id, []))

    def fetch_reference_groups(self, asset_id):
        if asset_id in self.failing:
            raise TransportError(f"SightMap resource not found (404): {asset_id}", status=404)
        return list(self.groups.get(asset_id, []))

    def fetch_group_references(self, asset_id, group):
        key = (asset_id, group["id"])
        if key in self.failing:
            raise TransportError(f"SightMap request failed (502): {key}", status=502)
        return list(self.unit_refs.get(key, []))


@pytest.fixture
def catalog() -> List[CandidateEntity]:
    """Small catalog with varied field coverage."""
    return [
        CandidateEntity(id="101", name="Greenwood Apartments", address="100 Main Street", city="Denver", state="CO"),
        CandidateEntity(id="102", name="Sunrise Villas", address="555 Broad Avenue", city="Austin", state="TX"),
        CandidateEntity(id="103", name="The Lofts at Union Station", address="1701 Wynkoop St", city="Denver", state="CO"),
        CandidateEntity(id="104", name="Oak Plaza", city="Portland", state="OR"),
    ]


@pytest.fixture
def reference_records() -> List[InputRecord]:
    return [
        InputRecord(name="Greenwood", reference_code="12345"),
        InputRecord(name="Sunrise Villas"),
    ]


@pytest.fixture
def fake_client(catalog) -> FakeClient:
    return FakeClient(
        assets=catalog,
        references={
            "104": [ReferenceTag(key="unit", value="12345")],
            "102": [ReferenceTag(key="yardi", value="SV-01")],
        },
    )
