"""Record Store HTTP Client.

Client for the tabular record store (Airtable REST API) holding the
operational data: shipments, legs, companies and tariffs.

Records are returned in the store's native shape:
    {"id": "rec...", "createdTime": "...", "fields": {...}}

Calls are not retried. Failure mapping:
    404             -> NotFoundError
    401 / 403       -> BackendConnectionError
    other >= 400    -> RemoteCallError
    timeout         -> BackendConnectionError
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from core.config import RecordStoreSettings
from core.errors import BackendConnectionError, ConfigurationError, NotFoundError, RemoteCallError

logger = logging.getLogger(__name__)

BACKEND = "record_store"


class RecordStoreClient:
    """HTTP client for the record store.

    Usage:
        store = RecordStoreClient(settings.require_record_store())
        master = await store.get_record("Masters", "recM1")
        await store.update_record("Masters", "recM1", {"company_venta": "CL"})
        await store.close()
    """

    def __init__(
        self,
        settings: RecordStoreSettings,
        timeout_seconds: float = 30.0,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self._session = http_session
        self._owns_session = http_session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_url(self, table: str, record_id: Optional[str] = None) -> str:
        url = f"{self.settings.base_url}/{self.settings.base_id}/{quote(table, safe='')}"
        if record_id:
            url += f"/{quote(record_id, safe='')}"
        return url

    async def _request(
        self,
        method: str,
        table: str,
        record_id: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated request.

        Returns:
            Response JSON

        Raises:
            NotFoundError: Table or record not found
            BackendConnectionError: Authentication failed or timeout
            RemoteCallError: Other API errors, or a body that is not UTF-8 JSON
        """
        if not self.settings.api_key or not self.settings.base_id:
            raise ConfigurationError("Record store api key and base id must be configured")

        url = self._build_url(table, record_id)
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with self._get_session().request(
                method,
                url,
                headers=self._get_headers(),
                params=params,
                json=data,
                timeout=timeout,
            ) as response:
                try:
                    response_text = await response.text()
                except UnicodeDecodeError as e:
                    raise RemoteCallError(
                        f"Record store returned an undecodable body: {e}",
                        backend=BACKEND,
                        status_code=response.status,
                    )

                if response.status < 400:
                    if not response_text:
                        return {}
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise RemoteCallError(
                            f"Record store returned invalid JSON: {e}",
                            backend=BACKEND,
                            status_code=response.status,
                            response_body=response_text,
                        )

                if response.status == 404:
                    raise NotFoundError(
                        f"Record not found: {table}/{record_id}" if record_id else f"Table not found: {table}",
                        table=table,
                        record_id=record_id,
                    )

                if response.status in (401, 403):
                    raise BackendConnectionError(
                        f"Record store authentication failed ({response.status})",
                        backend=BACKEND,
                        details={"status_code": response.status},
                    )

                raise RemoteCallError(
                    f"Record store HTTP error {response.status}: {response_text}",
                    backend=BACKEND,
                    status_code=response.status,
                    response_body=response_text,
                )
        except asyncio.TimeoutError:
            raise BackendConnectionError(
                f"Record store call timed out after {self.timeout_seconds}s", backend=BACKEND
            )
        except aiohttp.ClientError as e:
            raise BackendConnectionError(f"Record store transport error: {e}", backend=BACKEND)

    # =========================================================================
    # Records
    # =========================================================================

    async def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        """Get a single record by id.

        Raises:
            NotFoundError: Unknown id, or the store returned an empty record
        """
        record = await self._request("GET", table, record_id)
        if not record or "fields" not in record:
            raise NotFoundError(f"Record not found: {table}/{record_id}", table=table, record_id=record_id)
        return record

    async def update_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Partially update a record (PATCH semantics)."""
        logger.debug(f"Updating {table}/{record_id}: {sorted(fields)}")
        return await self._request("PATCH", table, record_id, data={"fields": fields, "typecast": True})

    async def create_record(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Create a record and return it with its new id."""
        return await self._request("POST", table, data={"fields": fields, "typecast": True})

    async def search_records(
        self,
        table: str,
        filter_formula: Optional[str] = None,
        page_size: int = 100,
    ) -> List[Dict[str, Any]]:
        """List records with automatic pagination.

        Args:
            table: Table name or id
            filter_formula: Store-side filter formula
            page_size: Page size (the store caps it at 100)

        Returns:
            All matching records
        """
        all_records: List[Dict[str, Any]] = []
        offset: Optional[str] = None

        while True:
            params = {"pageSize": str(page_size)}
            if filter_formula:
                params["filterByFormula"] = filter_formula
            if offset:
                params["offset"] = offset

            response = await self._request("GET", table, params=params)
            records = response.get("records")
            if not records:
                break

            all_records.extend(records)

            offset = response.get("offset")
            if not offset:
                break

        return all_records

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
