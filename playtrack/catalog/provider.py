"""Catalog providers.

The tracking core only needs ``list_content()``; catalog CRUD lives in the
portal backend.
"""

from typing import Any, Protocol

import httpx
import structlog

from playtrack.core.exceptions import CatalogUnavailable

from .models import ContentItem


logger = structlog.get_logger(__name__)


class CatalogProvider(Protocol):
    """Supplies the set of trackable content items."""

    async def list_content(self) -> list[ContentItem]:
        """List every trackable content item."""
        ...


class InMemoryCatalogProvider:
    """Catalog backed by a fixed list of items."""

    def __init__(self, items: list[ContentItem] | None = None) -> None:
        self._items = list(items or [])

    def add(self, item: ContentItem) -> None:
        self._items.append(item)

    async def list_content(self) -> list[ContentItem]:
        return list(self._items)


class HttpCatalogProvider:
    """Catalog read from the portal REST backend (``GET /trainings``)."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client

    async def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=self._headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "catalog_request_failed",
                status_code=e.response.status_code,
                path=path,
            )
            raise CatalogUnavailable(
                f"Catalog request failed: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.error("catalog_request_error", error=str(e), path=path)
            raise CatalogUnavailable(f"Catalog request error: {e}") from e
        return response.json()

    async def list_content(self) -> list[ContentItem]:
        payload = await self._get("/trainings")
        items = payload.get("data", payload) if isinstance(payload, dict) else payload
        return [ContentItem.from_api(item) for item in items or []]
