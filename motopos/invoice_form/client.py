import logging
from typing import Any

import httpx

from motopos.core.config import settings
from motopos.invoice_form.state import CustomerSnapshot, ItemKind, MotorcycleRecord, ProductRecord

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail

    @property
    def message(self) -> str:
        if isinstance(self.detail, list):
            return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in self.detail)
        return str(self.detail)


class ApiClient:
    """Async wrapper around the MotoPOS HTTP API used by the invoice form."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiError(0, str(exc)) from exc
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            detail = body.get("detail", body) if isinstance(body, dict) else body
            logger.info("%s %s returned %s: %s", method, url, response.status_code, detail)
            raise ApiError(response.status_code, detail)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("%s %s returned a body that is not JSON", method, url)
            raise ApiError(response.status_code, response.text) from exc

    async def search_products(self, query: str, page_size: int | None = None) -> list[ProductRecord]:
        params = {"search": query, "page_size": page_size or settings.search_page_size}
        return [ProductRecord.model_validate(row) for row in await self._request("GET", "/products", params=params)]

    async def search_motorcycles(self, query: str, page_size: int | None = None) -> list[MotorcycleRecord]:
        params = {"search": query, "page_size": page_size or settings.search_page_size}
        return [MotorcycleRecord.model_validate(row) for row in await self._request("GET", "/motorcycles", params=params)]

    async def search_items(self, kind: ItemKind, query: str) -> list[ProductRecord] | list[MotorcycleRecord]:
        if kind == "motorcycle":
            return await self.search_motorcycles(query)
        return await self.search_products(query)

    async def get_product(self, product_id: int) -> ProductRecord:
        return ProductRecord.model_validate(await self._request("GET", f"/products/{product_id}"))

    async def get_motorcycle(self, motorcycle_id: int) -> MotorcycleRecord:
        return MotorcycleRecord.model_validate(await self._request("GET", f"/motorcycles/{motorcycle_id}"))

    async def create_product(self, payload: dict) -> ProductRecord:
        return ProductRecord.model_validate(await self._request("POST", "/products", json=payload))

    async def create_motorcycle(self, payload: dict) -> MotorcycleRecord:
        return MotorcycleRecord.model_validate(await self._request("POST", "/motorcycles", json=payload))

    async def search_customers(self, query: str, page_size: int | None = None) -> list[CustomerSnapshot]:
        params = {"search": query, "page_size": page_size or settings.search_page_size}
        return [CustomerSnapshot.model_validate(row) for row in await self._request("GET", "/customers", params=params)]

    async def get_customer(self, customer_id: int) -> CustomerSnapshot:
        return CustomerSnapshot.model_validate(await self._request("GET", f"/customers/{customer_id}"))

    async def create_draft(self, payload: dict) -> dict:
        return await self._request("POST", "/drafts", json=payload)

    async def update_draft(self, draft_id: int, payload: dict) -> dict:
        return await self._request("PUT", f"/drafts/{draft_id}", json=payload)

    async def get_draft(self, draft_id: int) -> dict:
        return await self._request("GET", f"/drafts/{draft_id}")

    async def finalize_draft(self, draft_id: int, payload: dict) -> dict:
        return await self._request("POST", f"/drafts/{draft_id}/finalize", json=payload)

    async def get_invoice(self, invoice_id: int) -> dict:
        return await self._request("GET", f"/invoices/{invoice_id}")

    async def update_invoice(self, invoice_id: int, payload: dict) -> dict:
        return await self._request("PUT", f"/invoices/{invoice_id}", json=payload)
