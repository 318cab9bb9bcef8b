"""
Thin client for the Webflow v2 CMS API.

The caller's own ``Authorization`` header is forwarded on every request; this
service holds no CMS credentials. Full collection listings are cached per
collection and credential, coalesced while in flight, and evicted when an
item of the collection is patched.
"""

import hashlib
from typing import Any

import httpx

from models.errors import ParseError, UpstreamError, ValidationError
from tools.web.cache import CacheStoreName, ContentCache
from tools.web.inflight import InFlightDeduplicator
from utils.hashing import listing_cache_key, listing_cache_prefix
from utils.http import RetryPolicy, fetch_resilient
from utils.logger import get_logger

logger = get_logger(__name__)

WEBFLOW_API_BASE = "https://api.webflow.com/v2"
MAX_PAGES = 500


def _require(name: str, value: str | None) -> str:
    if not value or not str(value).strip():
        raise ValidationError(name, f"{name} is required")
    return str(value).strip()


class WebflowClient:
    provider_name = "webflow"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: ContentCache,
        inflight: InFlightDeduplicator,
        base_url: str = WEBFLOW_API_BASE,
        page_size: int = 100,
        retry_policy: RetryPolicy | None = None,
    ):
        self.http_client = http_client
        self.cache = cache
        self.inflight = inflight
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, min(page_size, 100))
        self.retry_policy = retry_policy or RetryPolicy()
        # Bumped on every patch; a listing fetched across a bump is not cached
        self._generations: dict[str, int] = {}

    def _headers(self, authorization: str, json_body: bool = False) -> dict[str, str]:
        headers = {"Authorization": authorization, "accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await fetch_resilient(
            self.http_client, method, url, policy=self.retry_policy, **kwargs
        )
        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                "Webflow request failed",
                extra={
                    "extra_fields": {
                        "method": method,
                        "url": url,
                        "status_code": response.status_code,
                        "error_message": message,
                    }
                },
            )
            raise UpstreamError(self.provider_name, response.status_code, message)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ParseError("webflow response", f"body is not JSON: {e}") from e

    async def list_items(
        self, collection_id: str, authorization: str, offset: int = 0, limit: int | None = None
    ) -> dict[str, Any]:
        """One page of a collection, passed through unchanged."""
        collection_id = _require("collection_id", collection_id)
        authorization = _require("authorization", authorization)
        limit = self.page_size if limit is None else max(1, min(int(limit), 100))
        return await self._request(
            "GET",
            f"{self.base_url}/collections/{collection_id}/items",
            params={"offset": max(0, int(offset)), "limit": limit},
            headers=self._headers(authorization),
        )

    async def list_all_items(self, collection_id: str, authorization: str) -> dict[str, Any]:
        """
        Every item of a collection, deduplicated by ``id``.

        Returns:
            ``{"items": [...], "total": n, "cached": bool}``
        """
        collection_id = _require("collection_id", collection_id)
        authorization = _require("authorization", authorization)
        key = listing_cache_key(collection_id, authorization)

        cached = self.cache.get(CacheStoreName.LISTING, key)
        if cached is not None:
            return {"items": list(cached), "total": len(cached), "cached": True}

        generation = self._generations.get(collection_id, 0)

        async def fetch_all() -> tuple[dict[str, Any], ...]:
            items = await self._fetch_all_pages(collection_id, authorization)
            if self._generations.get(collection_id, 0) == generation:
                self.cache.set(CacheStoreName.LISTING, key, items)
            else:
                logger.info(
                    "Collection changed during listing, result not cached",
                    extra={"extra_fields": {"collection_id": collection_id}},
                )
            return items

        items = await self.inflight.get_or_fetch(key, fetch_all)
        return {"items": list(items), "total": len(items), "cached": False}

    async def _fetch_all_pages(self, collection_id: str, authorization: str) -> tuple[dict[str, Any], ...]:
        seen: set[str] = set()
        items: list[dict[str, Any]] = []
        offset = 0
        duplicates = 0

        for _ in range(MAX_PAGES):
            page = await self.list_items(collection_id, authorization, offset, self.page_size)
            page_items = page.get("items") if isinstance(page, dict) else None
            if not isinstance(page_items, list):
                raise ParseError("webflow listing", "missing 'items' list")

            for item in page_items:
                item_id = item.get("id") if isinstance(item, dict) else None
                if item_id is None:
                    continue
                if item_id in seen:
                    duplicates += 1
                    continue
                seen.add(item_id)
                items.append(item)

            offset += len(page_items)
            total = (page.get("pagination") or {}).get("total")
            if len(page_items) < self.page_size or (isinstance(total, int) and offset >= total):
                break

        logger.info(
            "Fetched full collection listing",
            extra={
                "extra_fields": {
                    "collection_id": collection_id,
                    "items": len(items),
                    "duplicates_dropped": duplicates,
                }
            },
        )
        return tuple(items)

    async def get_item(self, collection_id: str, item_id: str, authorization: str) -> dict[str, Any]:
        collection_id = _require("collection_id", collection_id)
        item_id = _require("item_id", item_id)
        authorization = _require("authorization", authorization)
        return await self._request(
            "GET",
            f"{self.base_url}/collections/{collection_id}/items/{item_id}",
            headers=self._headers(authorization),
        )

    async def patch_item(
        self, collection_id: str, item_id: str, authorization: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        collection_id = _require("collection_id", collection_id)
        item_id = _require("item_id", item_id)
        authorization = _require("authorization", authorization)
        data = await self._request(
            "PATCH",
            f"{self.base_url}/collections/{collection_id}/items/{item_id}",
            json=body,
            headers=self._headers(authorization, json_body=True),
        )

        self._generations[collection_id] = self._generations.get(collection_id, 0) + 1
        # Listings cached under any credential are now stale
        evicted = self.cache.store(CacheStoreName.LISTING).delete_prefix(
            listing_cache_prefix(collection_id)
        )
        abandoned = self.inflight.forget_prefix(listing_cache_prefix(collection_id))
        logger.info(
            "Patched item",
            extra={
                "extra_fields": {
                    "collection_id": collection_id,
                    "item_id": item_id,
                    "listing_entries_evicted": evicted,
                    "listing_fetches_abandoned": abandoned,
                }
            },
        )
        return data

    async def upload_asset(
        self,
        site_id: str,
        authorization: str,
        file_name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> dict[str, Any]:
        """
        Register an asset with its MD5 hash, then upload the bytes.

        Webflow answers the registration with a presigned ``uploadUrl`` and the
        form fields the storage backend expects; the file goes there as a
        multipart form together with those fields.
        """
        site_id = _require("site_id", site_id)
        authorization = _require("authorization", authorization)
        file_name = _require("file_name", file_name)
        if not content:
            raise ValidationError("file", "file content is empty")

        file_hash = hashlib.md5(content).hexdigest()
        metadata = await self._request(
            "POST",
            f"{self.base_url}/sites/{site_id}/assets",
            json={"fileName": file_name, "fileHash": file_hash},
            headers=self._headers(authorization, json_body=True),
        )
        upload_url = metadata.get("uploadUrl") if isinstance(metadata, dict) else None
        if not upload_url:
            raise ParseError("webflow asset metadata", "missing 'uploadUrl'")

        fields = {str(k): str(v) for k, v in (metadata.get("uploadDetails") or {}).items()}
        response = await fetch_resilient(
            self.http_client,
            "POST",
            upload_url,
            policy=self.retry_policy,
            data=fields,
            files={"file": (file_name, content, content_type)},
        )
        if not response.is_success:
            raise UpstreamError("asset storage", response.status_code, response.text[:200] or "Upload failed")

        logger.info(
            "Uploaded asset",
            extra={
                "extra_fields": {
                    "site_id": site_id,
                    "asset_id": metadata.get("id"),
                    "size_bytes": len(content),
                }
            },
        )
        return {
            "id": metadata.get("id"),
            "fileName": file_name,
            "fileHash": file_hash,
            "hostedUrl": metadata.get("hostedUrl"),
            "assetUrl": metadata.get("assetUrl"),
        }


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        for field in ("message", "msg", "error"):
            if body.get(field):
                return str(body[field])
    return response.reason_phrase or f"HTTP {response.status_code}"
