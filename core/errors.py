"""Error taxonomy for the sync service.

Connectors translate transport failures into these types; services let them
propagate; the API layer maps them onto HTTP status codes.

Hierarchy:
    SyncError
    ├── ConfigurationError        missing tenant credentials or mapping
    ├── BackendConnectionError    auth / timeout / transport (is a ConnectionError)
    │   └── RemoteCallError       remote answered but rejected the call
    ├── NotFoundError             referenced business record is absent
    ├── ValidationError           missing id, non-positive rate, no lines
    └── PartialWriteError         record-store write-back failed (non-fatal)
"""

import builtins
from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for every error raised by the sync service."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses and structured logs."""
        data = {"type": type(self).__name__, "error": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ConfigurationError(SyncError):
    """A tenant or record-store setting required for the call is missing."""
    pass


class BackendConnectionError(SyncError, builtins.ConnectionError):
    """Authentication or transport failure talking to a backend.

    Attributes:
        backend: "erp" or "record_store"
        tenant: Tenant code when the failure is tenant-scoped
    """

    def __init__(
        self,
        message: str,
        backend: str = "erp",
        tenant: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.backend = backend
        self.tenant = tenant

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["backend"] = self.backend
        if self.tenant:
            data["tenant"] = self.tenant
        return data


class RemoteCallError(BackendConnectionError):
    """The backend answered but rejected the call (fault payload or HTTP error)."""

    def __init__(
        self,
        message: str,
        backend: str = "erp",
        tenant: Optional[str] = None,
        status_code: int = 0,
        response_body: str = "",
    ):
        super().__init__(message, backend=backend, tenant=tenant)
        self.status_code = status_code
        self.response_body = response_body


class NotFoundError(SyncError):
    """A business record referenced by the request does not exist."""

    def __init__(self, message: str, table: Optional[str] = None, record_id: Optional[str] = None):
        super().__init__(message, {"table": table, "record_id": record_id} if table else None)
        self.table = table
        self.record_id = record_id


class ValidationError(SyncError):
    """Input cannot be synchronized as-is (missing id, bad rate, no lines)."""
    pass


class PartialWriteError(SyncError):
    """Write-back to the record store failed after the ERP mutation succeeded."""

    def __init__(self, message: str, table: str, record_id: str, fields: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"table": table, "record_id": record_id})
        self.table = table
        self.record_id = record_id
        self.fields = fields or {}
