"""Odoo JSON-RPC Client.

Low-level client for one Odoo company. Every call goes to ``<url>/jsonrpc``:

    common.login(db, username, password)                     -> uid
    object.execute_kw(db, uid, password, model, method, args, kwargs)

Each ``execute_kw`` carries ``allowed_company_ids`` / ``company_id`` in its
context so reads and writes land in the tenant's accounting company.

Calls are not retried: a timeout or transport failure surfaces as
BackendConnectionError, a fault payload or HTTP error as RemoteCallError.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional, Sequence

import aiohttp

from connectors.erp_base import ERPSession
from core.config import TenantSettings
from core.errors import BackendConnectionError, RemoteCallError

logger = logging.getLogger(__name__)


class OdooClient(ERPSession):
    """JSON-RPC session against one tenant's Odoo company.

    Usage:
        client = OdooClient(settings.require_tenant(TenantCode.CL))
        await client.login()
        partners = await client.search_read("res.partner", [("vat", "=", "76.123.456-7")], ["id"])
        await client.close()
    """

    def __init__(
        self,
        settings: TenantSettings,
        timeout_seconds: float = 30.0,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize client.

        Args:
            settings: Tenant credentials and company scope
            timeout_seconds: Total timeout applied to every remote call
            http_session: Shared aiohttp session (created lazily if omitted)
        """
        super().__init__(settings.code, settings.company_id)
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self._session = http_session
        self._owns_session = http_session is None
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return f"{self.settings.url}/jsonrpc"

    # =========================================================================
    # Transport
    # =========================================================================

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON-RPC envelope and return the decoded response body.

        Raises:
            BackendConnectionError: Timeout or transport failure
            RemoteCallError: HTTP status >= 400 or undecodable body
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        tenant = self.tenant.value

        try:
            async with self._get_session().post(self.endpoint, json=payload, timeout=timeout) as response:
                if response.status >= 400:
                    body = await response.text(errors="replace")
                    raise RemoteCallError(
                        f"ERP HTTP error {response.status}",
                        tenant=tenant,
                        status_code=response.status,
                        response_body=body,
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise RemoteCallError(f"ERP returned invalid JSON: {e}", tenant=tenant,
                                          status_code=response.status)
        except asyncio.TimeoutError:
            raise BackendConnectionError(
                f"ERP call timed out after {self.timeout_seconds}s", tenant=tenant
            )
        except aiohttp.ClientError as e:
            raise BackendConnectionError(f"ERP transport error: {e}", tenant=tenant)

    async def _rpc(self, service: str, method: str, args: Sequence[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": list(args)},
            "id": next(self._ids),
        }
        body = await self._post_json(payload)

        if body.get("error"):
            error = body["error"]
            data = error.get("data") or {}
            message = data.get("message") or error.get("message") or "Unknown ERP error"
            raise RemoteCallError(
                f"ERP fault: {message}",
                tenant=self.tenant.value,
                response_body=str(error),
            )
        return body.get("result")

    # =========================================================================
    # ERPSession
    # =========================================================================

    async def login(self) -> int:
        uid = await self._rpc(
            "common", "login",
            [self.settings.db, self.settings.username, self.settings.password],
        )
        if not uid:
            raise BackendConnectionError(
                f"ERP authentication failed for tenant {self.tenant.value}",
                tenant=self.tenant.value,
            )
        self.uid = int(uid)
        logger.info(f"Authenticated tenant {self.tenant.value} as uid {self.uid} (company {self.company_id})")
        return self.uid

    async def call(
        self,
        model: str,
        method: str,
        args: Optional[Sequence[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if not self.is_authenticated:
            await self.login()

        kwargs = dict(kwargs or {})
        context = dict(kwargs.get("context") or {})
        context.update({
            "allowed_company_ids": [self.company_id],
            "company_id": self.company_id,
        })
        kwargs["context"] = context

        return await self._rpc(
            "object", "execute_kw",
            [
                self.settings.db,
                self.uid,
                self.settings.password,
                model,
                method,
                list(args or []),
                kwargs,
            ],
        )

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
