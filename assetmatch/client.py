"""SightMap API access: the paged catalog source and per-asset sub-resources."""

from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from .cancel import CancelToken
from .config import DEFAULT_BASE_URL
from .logger import get_logger
from .models import CandidateEntity, ReferenceTag, UnitReference
from .retry import RetryError, exponential_backoff

logger = get_logger()

ACCOUNT_ASSETS_FLAG = "accounts-assets"
REFERENCES_FLAG = "references"
SUB_RESOURCE_PER_PAGE = 100


class TransportError(Exception):
    """A request to the inventory service did not complete successfully."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class SightMapClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        per_page: int = 250,
        timeout: int = 20,
        page_retries: int = 2,
        retry_delay: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("Missing SightMap API key. Set SIGHTMAP_API_KEY or pass --api-key.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout
        self.session = session or requests.Session()

        transient = (requests.exceptions.Timeout, requests.exceptions.ConnectionError)
        self._get_page = exponential_backoff(
            max_retries=page_retries,
            base_delay=retry_delay,
            exceptions=transient,
            on_retry=self._log_retry,
        )(self._get)
        # Sub-resource fetches are never retried; a failure is isolated per asset.
        self._get_once = exponential_backoff(max_retries=0, exceptions=transient)(self._get)

    @staticmethod
    def _log_retry(attempt: int, exc: Exception, delay: float):
        logger.warning("Retrying SightMap request", attempt=attempt, delay=delay, error=str(exc))

    def _get(self, url: str, flags: Optional[str]):
        headers = {"API-Key": self.api_key, "Accept": "application/json"}
        if flags:
            headers["Experimental-Flags"] = flags
        return self.session.get(url, headers=headers, timeout=self.timeout)

    def _request(self, url: str, flags: Optional[str] = None, retry: bool = False) -> Dict[str, Any]:
        """GET one page and decode it.

        Raises:
            TransportError: On any HTTP error, timeout, connection failure
                or undecodable body
        """
        logger.record_api_call()
        fetch = self._get_page if retry else self._get_once
        try:
            resp = fetch(url, flags)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.record_error(f"HTTPError_{status}")
            if status in (401, 403):
                logger.error("SightMap rejected the API key", url=url, status=status)
                raise TransportError(f"SightMap authorization failed ({status}): {url}", status, url) from e
            if status == 404:
                logger.debug("SightMap resource not found", url=url, status=404)
                raise TransportError(f"SightMap resource not found (404): {url}", status, url) from e
            logger.error("SightMap request failed", url=url, status=status)
            raise TransportError(f"SightMap request failed ({status}): {url}", status, url) from e
        except RetryError as e:
            cause = e.__cause__
            error_type = "Timeout" if isinstance(cause, requests.exceptions.Timeout) else "ConnectionError"
            logger.record_error(error_type)
            logger.warning("SightMap request gave up", url=url, error=str(cause))
            raise TransportError(f"SightMap request error ({error_type}): {url}", None, url) from e
        except requests.exceptions.RequestException as e:
            logger.record_error("RequestException")
            logger.error("SightMap request error", url=url, error=str(e))
            raise TransportError(f"SightMap request error: {e}", None, url) from e

        try:
            payload = resp.json()
        except ValueError as e:
            logger.record_error("InvalidJSON")
            raise TransportError(f"SightMap returned invalid JSON: {url}", resp.status_code, url) from e
        return payload if isinstance(payload, dict) else {"data": payload}

    def iter_pages(
        self,
        url: str,
        flags: Optional[str] = None,
        token: Optional[CancelToken] = None,
        retry: bool = True,
    ) -> Iterator[Dict[str, Any]]:
        """Yield each page payload, following ``paging.next_url`` until absent."""
        next_url: Optional[str] = url
        while next_url:
            if token is not None:
                token.raise_if_cancelled()
            payload = self._request(next_url, flags, retry=retry)
            yield payload
            paging = payload.get("paging") or {}
            next_url = paging.get("next_url")

    def fetch_all(self, url: str, flags: Optional[str] = None, token: Optional[CancelToken] = None, retry: bool = True) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for page in self.iter_pages(url, flags, token, retry=retry):
            items.extend(page.get("data") or [])
        return items

    def assets_url(self, account_id: Optional[str] = None) -> str:
        if account_id:
            return f"{self.base_url}/accounts/{account_id}/assets?per-page={self.per_page}"
        return f"{self.base_url}/assets?per-page={self.per_page}"

    def fetch_assets(
        self,
        account_id: Optional[str] = None,
        token: Optional[CancelToken] = None,
        on_page: Optional[Callable[[int, Optional[int]], None]] = None,
    ) -> List[CandidateEntity]:
        """Whole catalog for one account, or the global catalog when no account is given.

        Any failed page aborts the fetch with TransportError.
        """
        flags = ACCOUNT_ASSETS_FLAG if account_id else None
        assets: List[CandidateEntity] = []
        for page in self.iter_pages(self.assets_url(account_id), flags, token):
            assets.extend(CandidateEntity.from_api(item) for item in page.get("data") or [])
            total = (page.get("paging") or {}).get("total_count")
            logger.debug("Fetched asset page", loaded=len(assets), total=total)
            if on_page:
                on_page(len(assets), total)
        logger.info("Fetched asset catalog", scope=account_id or "global", assets=len(assets))
        return assets

    def fetch_references(self, asset_id: str) -> List[ReferenceTag]:
        url = f"{self.base_url}/assets/{asset_id}/multifamily/references?per-page={SUB_RESOURCE_PER_PAGE}"
        return [ReferenceTag.from_api(item) for item in self.fetch_all(url, REFERENCES_FLAG, retry=False)]

    def fetch_reference_groups(self, asset_id: str) -> List[Dict[str, Any]]:
        url = (
            f"{self.base_url}/assets/{asset_id}/multifamily/units/reference-groups"
            f"?per-page={SUB_RESOURCE_PER_PAGE}"
        )
        return self.fetch_all(url, REFERENCES_FLAG, retry=False)

    def fetch_group_references(self, asset_id: str, group: Dict[str, Any]) -> List[UnitReference]:
        group_id = str(group.get("id", ""))
        url = (
            f"{self.base_url}/assets/{asset_id}/multifamily/units/reference-groups/{group_id}/references"
            f"?per-page={SUB_RESOURCE_PER_PAGE}"
        )
        return [
            UnitReference(
                asset_id=str(asset_id),
                group_id=group_id,
                group_name=str(group.get("name") or ""),
                unit_id=str(item.get("unit_id") or ""),
                key=str(item.get("key") or ""),
                value=str(item.get("value") or ""),
            )
            for item in self.fetch_all(url, REFERENCES_FLAG, retry=False)
        ]
