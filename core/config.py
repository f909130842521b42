"""Service configuration.

Settings are plain pydantic models populated from environment variables
(optionally seeded from a ``.env`` file). Credentials are validated lazily,
at first use, so the API can boot and answer health probes without them.

Environment:
    ERP_URL, ERP_DB, ERP_USERNAME, ERP_PASSWORD     shared ERP credentials
    ERP_<CODE>_URL / _DB / _USERNAME / _PASSWORD    per-tenant overrides
    ERP_<CODE>_COMPANY_ID                           company scope (AR=1, CL=2)
    ERP_<CODE>_PRODUCT_TRANSPORT / _FREIGHT / _STAY
                                                    invoice-line product ids
    RECORD_STORE_API_KEY, RECORD_STORE_BASE_ID      record store access
    HTTP_TIMEOUT_SECONDS                            per remote call (default 30)
    BLOCK_REINVOICE                                 reject second invoice call
    LOG_LEVEL, LOG_JSON                             logging
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from core.errors import ConfigurationError
from core.tenants import TenantCode


REPO_ROOT = Path(__file__).resolve().parents[1]


# =============================================================================
# Tenant (ERP company) settings
# =============================================================================

class ServiceProducts(BaseModel):
    """ERP product ids used on invoice lines.

    Defaults are overwritten in memory by the product catalog sync with the
    ids it finds or creates.
    """
    transport: int = 2
    subcontracted_freight: int = 3
    stay: int = 4


class Journals(BaseModel):
    """ERP journal ids per move direction."""
    sale: int = 1
    purchase: int = 2


class TenantSettings(BaseModel):
    """One country-scoped ERP company."""
    code: TenantCode
    country_name: str
    currency: str
    company_id: int

    url: str = ""
    db: str = ""
    username: str = ""
    password: str = ""

    products: ServiceProducts = Field(default_factory=ServiceProducts)
    journals: Journals = Field(default_factory=Journals)

    def missing_credentials(self) -> List[str]:
        return [name for name in ("url", "db", "username", "password") if not getattr(self, name)]


# =============================================================================
# Record store settings
# =============================================================================

class RecordStoreTables(BaseModel):
    masters: str = "Masters"
    operations: str = "tblV9e6v8lhdMCqUG"
    companies: str = "Empresas"
    tariffs: str = "Tarifas"


class RecordStoreSettings(BaseModel):
    api_key: str = ""
    base_id: str = ""
    base_url: str = "https://api.airtable.com/v0"
    tables: RecordStoreTables = Field(default_factory=RecordStoreTables)


class FieldMapping(BaseModel):
    """Record-store column names.

    List-valued entries are fallbacks tried in order. Templates containing
    ``{tenant}`` are expanded with the lower-case tenant code.
    """
    # Shipments ("Masters")
    master_name: str = "Master"
    master_customer_name: List[str] = Field(
        default_factory=lambda: ["Nombre del Cliente", "Cliente", "Nombre del Cliente Formateado"]
    )
    master_customer_tax_id: List[str] = Field(default_factory=lambda: ["CUIT/RUT", "CUIT"])
    master_customer_country: List[str] = Field(default_factory=lambda: ["País del Cliente", "País"])
    master_destination: str = "Destino"
    master_legs: str = "Operaciones / Órdenes de Viaje 2"
    master_sale_tenant: str = "company_venta"
    master_partner_id: str = "odoo_partner_id_{tenant}"
    master_cost_center_id: str = "odoo_analytic_id_master_{tenant}"
    master_invoice_id: str = "odoo_invoice_id_{tenant}"
    master_invoice_number: str = "numero_factura_master"
    master_billing_state: str = "estado_contable_master"

    # Legs ("Operaciones")
    leg_name: List[str] = Field(default_factory=lambda: ["Nombre de Operación", "Nombre de Operacion"])
    leg_sell_rate: str = "Tarifa de Venta"
    leg_buy_rate: str = "Tarifa de Compra"
    leg_master: str = "Master"
    leg_origin: str = "Origen"
    leg_destination: str = "Destino"
    leg_carrier_name: List[str] = Field(default_factory=lambda: ["Transportista", "Chofer"])
    leg_carrier_tax_id: List[str] = Field(default_factory=lambda: ["CUIT"])
    leg_carrier_country: List[str] = Field(default_factory=lambda: ["País"])
    leg_cost_tenant: str = "company_cost"
    leg_cost_center_id: str = "odoo_analytic_id_operacion_{tenant}"
    leg_purchase_invoice_id: str = "odoo_purchase_invoice_id"
    leg_billing_state: str = "estado_contable_operacion"

    # Companies ("Empresas")
    company_name: List[str] = Field(default_factory=lambda: ["Nombre", "Razón Social", "Name"])
    company_tax_id: List[str] = Field(default_factory=lambda: ["CUIT/RUT", "CUIT", "RUT"])
    company_country: List[str] = Field(default_factory=lambda: ["País", "Pais"])
    company_kind: List[str] = Field(default_factory=lambda: ["Tipo"])
    company_email: List[str] = Field(default_factory=lambda: ["Email", "Mail"])
    company_phone: List[str] = Field(default_factory=lambda: ["Telefono", "Phone"])
    company_partner_id: str = "odoo_partner_id_{tenant}"

    # Tariffs
    tariff_origin: List[str] = Field(default_factory=lambda: ["Origin", "Origen"])
    tariff_destination: List[str] = Field(default_factory=lambda: ["Destination", "Destino"])
    tariff_price: List[str] = Field(default_factory=lambda: ["Price", "Precio"])

    @staticmethod
    def for_tenant(template: str, tenant: TenantCode) -> str:
        return template.format(tenant=tenant.value.lower())


class BillingSettings(BaseModel):
    invoiced_state: str = "facturado"
    analytic_plan_hint: str = "Mercotruck"
    tariff_pricelist_name: str = "Tarifas Flete"
    block_reinvoice: bool = False


# =============================================================================
# Root settings
# =============================================================================

class Settings(BaseModel):
    tenants: Dict[TenantCode, TenantSettings]
    primary_tenant: TenantCode = TenantCode.AR
    record_store: RecordStoreSettings = Field(default_factory=RecordStoreSettings)
    fields: FieldMapping = Field(default_factory=FieldMapping)
    billing: BillingSettings = Field(default_factory=BillingSettings)
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"
    log_json: bool = False

    def tenant(self, code: TenantCode) -> TenantSettings:
        """Get a tenant's settings without validating credentials."""
        if code not in self.tenants:
            raise ConfigurationError(f"Tenant not configured: {code}")
        return self.tenants[code]

    def require_tenant(self, code: TenantCode) -> TenantSettings:
        """Get a tenant's settings, failing if any ERP credential is blank."""
        tenant = self.tenant(code)
        missing = tenant.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing ERP credentials for tenant {tenant.code.value}: {', '.join(missing)}",
                {"tenant": tenant.code.value, "missing": missing},
            )
        return tenant

    def require_record_store(self) -> RecordStoreSettings:
        missing = [name for name in ("api_key", "base_id") if not getattr(self.record_store, name)]
        if missing:
            raise ConfigurationError(
                f"Missing record store settings: {', '.join(missing)}",
                {"missing": missing},
            )
        return self.record_store


DEFAULT_TENANTS = {
    TenantCode.AR: {"country_name": "Argentina", "currency": "ARS", "company_id": 1},
    TenantCode.CL: {"country_name": "Chile", "currency": "USD", "company_id": 2},
}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _tenant_from_env(code: TenantCode) -> TenantSettings:
    prefix = f"ERP_{code.value}_"
    defaults = DEFAULT_TENANTS[code]
    products = ServiceProducts()

    def pick(key: str) -> str:
        return os.getenv(prefix + key) or os.getenv("ERP_" + key) or ""

    return TenantSettings(
        code=code,
        country_name=defaults["country_name"],
        currency=os.getenv(prefix + "CURRENCY") or defaults["currency"],
        company_id=int(os.getenv(prefix + "COMPANY_ID") or defaults["company_id"]),
        url=pick("URL").rstrip("/"),
        db=pick("DB"),
        username=pick("USERNAME"),
        password=pick("PASSWORD"),
        products=ServiceProducts(
            transport=int(os.getenv(prefix + "PRODUCT_TRANSPORT") or products.transport),
            subcontracted_freight=int(os.getenv(prefix + "PRODUCT_FREIGHT") or products.subcontracted_freight),
            stay=int(os.getenv(prefix + "PRODUCT_STAY") or products.stay),
        ),
    )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build settings from the environment.

    Args:
        env_file: Optional .env path (defaults to the repository root .env)

    Returns:
        Settings with both tenants populated
    """
    env_path = env_file or REPO_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings(
        tenants={code: _tenant_from_env(code) for code in TenantCode},
        record_store=RecordStoreSettings(
            api_key=os.getenv("RECORD_STORE_API_KEY", ""),
            base_id=os.getenv("RECORD_STORE_BASE_ID", ""),
        ),
        billing=BillingSettings(block_reinvoice=_env_flag("BLOCK_REINVOICE")),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_env_flag("LOG_JSON"),
    )
