"""Catalog synchronization: companies, freight tariffs and service products.

sync_company(record_id):
    company record -> partner in the tenant routed from the company's
    country -> partner id written back per tenant

sync_tariffs(tenant):
    ensure the tariff pricelist exists -> one fixed-price item per tariff
    row, keyed "<origin> - <destination>". A row the ERP rejects is counted
    in the summary and the batch continues.

sync_products(tenant):
    resolve category, unit, sale tax and (optional) income account -> one
    service template per invoice-line product (Transporte, Flete, Estadía),
    keyed by name -> variant ids replace the tenant's configured product ids
"""

from typing import Any, Dict, Optional

from connectors.erp_base import ERPModel, ERPSession
from core.config import Settings
from core.errors import NotFoundError, RemoteCallError, ValidationError
from core.observability import get_logger, log_record_action
from invoicing import normalize_rate
from orchestrators.base import BaseSyncService, first_field
from orchestrators.models import (
    CompanySyncResult,
    EntityResult,
    ProductDefaults,
    ProductItemResult,
    ProductSyncResult,
    TariffItemResult,
    TariffSyncResult,
)
from partner_resolver import PartnerResolver, PartyData, PartyRole
from sync_engine import find_first, search_one, upsert, write_or_create
from tenancy import OperationKind, TenantCode, resolve_tenant

logger = get_logger(__name__)

CARRIER_KINDS = {"fletero", "transportista", "proveedor", "carrier", "supplier"}
FALLBACK_CURRENCY = "USD"

# (ServiceProducts field, product name) for every product an invoice line uses
SERVICE_PRODUCTS = (
    ("transport", "Transporte"),
    ("subcontracted_freight", "Flete"),
    ("stay", "Estadía"),
)
SALE_TAX_RATE = 21.0
INCOME_CODE_PATTERNS = ("4.1", "41", "70", "400", "4000")
INCOME_NAME_PATTERNS = ("Ingreso", "Venta", "Revenue", "Income", "Sales")


class CatalogSyncService(BaseSyncService):
    """Push company, tariff and product master data to the ERP."""

    def __init__(self, record_store, pool, partners: PartnerResolver, settings: Settings):
        super().__init__(record_store, pool, settings)
        self.partners = partners

    # =========================================================================
    # Companies
    # =========================================================================

    def _country_code(self, country: Optional[str]) -> Optional[str]:
        """ISO code for a country field holding a code or a tenant country name."""
        if not country:
            return None
        text = country.strip()
        if len(text) == 2:
            return text.upper()
        for tenant in self.settings.tenants.values():
            if tenant.country_name.lower() in text.lower():
                return tenant.code.value
        return None

    async def sync_company(self, record_id: str) -> CompanySyncResult:
        """Create or update the partner for one company record."""
        return await self._track("company_sync", record_id, lambda: self._sync_company(record_id))

    async def _sync_company(self, record_id: str) -> CompanySyncResult:
        f = self.fields
        record = await self._load(self.tables.companies, record_id)
        fields = record.get("fields") or {}

        name = first_field(fields, f.company_name)
        if not name:
            raise ValidationError(f"Company {record_id} has no name")

        country = first_field(fields, f.company_country)
        kind = (first_field(fields, f.company_kind) or "").lower()
        tenant = resolve_tenant(None, country, OperationKind.SALE, self.routing_policy)

        party = PartyData(
            name=name,
            role=PartyRole.CARRIER if kind in CARRIER_KINDS else PartyRole.CUSTOMER,
            tax_id=first_field(fields, f.company_tax_id),
            email=first_field(fields, f.company_email),
            phone=first_field(fields, f.company_phone),
            country_code=self._country_code(country),
        )
        partner = await self.partners.find_or_create(tenant, party)

        write_back = await self._write_back(
            self.tables.companies,
            record_id,
            {f.for_tenant(f.company_partner_id, tenant): str(partner.id)},
        )

        return CompanySyncResult(
            record_id=record_id,
            record_name=name,
            tenant=tenant,
            partner=EntityResult.from_partner(partner),
            write_back=write_back,
        )

    # =========================================================================
    # Tariffs
    # =========================================================================

    async def _resolve_currency(self, session: ERPSession, tenant: TenantCode) -> Optional[int]:
        for code in (self.pool.tenant_settings(tenant).currency, FALLBACK_CURRENCY):
            row = await search_one(session, ERPModel.CURRENCY, [("name", "=", code)], ["id"])
            if row:
                return row["id"]
        return None

    async def ensure_pricelist(self, tenant: TenantCode) -> int:
        """Id of the tariff pricelist, created on first use.

        When the ERP rejects the create, any active pricelist (else any
        pricelist at all) receives the tariffs instead.
        """
        session = await self.pool.get_session(tenant)
        name = self.settings.billing.tariff_pricelist_name

        existing = await search_one(session, ERPModel.PRICELIST, [("name", "=", name)], ["id"])
        if existing:
            return existing["id"]

        values: Dict[str, Any] = {"name": name, "active": True}
        currency_id = await self._resolve_currency(session, tenant)
        if currency_id:
            values["currency_id"] = currency_id
        try:
            result = await write_or_create(session, ERPModel.PRICELIST, None, values)
        except RemoteCallError as e:
            fallback = await find_first(session, ERPModel.PRICELIST, [[("active", "=", True)], []], ["id", "name"])
            if not fallback:
                raise
            logger.warning(
                f"Pricelist {name} could not be created, using {fallback.get('name')} (id {fallback['id']}): {e.message}",
                extra_fields={"tenant": tenant.value},
            )
            return fallback["id"]

        logger.info(f"Created pricelist {name} (id {result.id})", extra_fields={"tenant": tenant.value})
        return result.id

    async def _sync_tariff_row(
        self,
        session: ERPSession,
        pricelist_id: int,
        record: Dict[str, Any],
    ) -> TariffItemResult:
        f = self.fields
        fields = record.get("fields") or {}
        origin = first_field(fields, f.tariff_origin)
        destination = first_field(fields, f.tariff_destination)
        price = next(
            (normalize_rate(fields[name]) for name in f.tariff_price if fields.get(name) is not None),
            normalize_rate(None),
        )
        item = TariffItemResult(
            record_id=record.get("id"),
            origin=origin,
            destination=destination,
            price=float(price),
        )

        if not origin or not destination:
            raise ValidationError("Tariff row needs both origin and destination")

        key = f"{origin} - {destination}"
        result = await upsert(
            session,
            ERPModel.PRICELIST_ITEM,
            [("pricelist_id", "=", pricelist_id), ("name", "=", key)],
            create_values={
                "name": key,
                "pricelist_id": pricelist_id,
                "applied_on": "3_global",
                "compute_price": "fixed",
                "fixed_price": float(price),
                "min_quantity": 1,
            },
            update_values={"fixed_price": float(price), "name": key},
        )
        item.id = result.id
        item.action = result.action.value
        return item

    async def sync_tariffs(self, tenant: TenantCode) -> TariffSyncResult:
        """Upsert every tariff row into the tenant's tariff pricelist."""
        return await self._track("tariff_sync", tenant.value, lambda: self._sync_tariffs(tenant))

    async def _sync_tariffs(self, tenant: TenantCode) -> TariffSyncResult:
        pricelist_id = await self.ensure_pricelist(tenant)
        session = await self.pool.get_session(tenant)

        try:
            records = await self.record_store.search_records(self.tables.tariffs)
        except NotFoundError:
            logger.warning(f"Tariff table {self.tables.tariffs} not found, nothing to sync")
            records = []

        result = TariffSyncResult(tenant=tenant, pricelist_id=pricelist_id)
        for record in records:
            try:
                item = await self._sync_tariff_row(session, pricelist_id, record)
            except (ValidationError, RemoteCallError) as e:
                result.summary["errors"] += 1
                fields = record.get("fields") or {}
                result.details.append(TariffItemResult(
                    record_id=record.get("id"),
                    origin=first_field(fields, self.fields.tariff_origin),
                    destination=first_field(fields, self.fields.tariff_destination),
                    action="error",
                    error=e.message,
                ))
                logger.warning(f"Tariff row {record.get('id')} failed: {e.message}")
                continue

            result.summary[item.action] = result.summary.get(item.action, 0) + 1
            result.details.append(item)
            log_record_action(
                "tariff", item.action, ERPModel.PRICELIST_ITEM, item.id,
                tenant=tenant.value, key=f"{item.origin} - {item.destination}",
            )

        return result

    # =========================================================================
    # Service products
    # =========================================================================

    async def resolve_product_defaults(self, tenant: TenantCode) -> ProductDefaults:
        """Find the category, unit, sale tax and income account for service products.

        Raises:
            NotFoundError: The tenant has no services category, no unit of
                measure, or no sales tax
        """
        session = await self.pool.get_session(tenant)

        category = await search_one(session, ERPModel.PRODUCT_CATEGORY, [("name", "ilike", "Servi")], ["id"])
        if not category:
            raise NotFoundError(f"No services product category found in tenant {tenant.value}",
                                table=ERPModel.PRODUCT_CATEGORY)

        uom = await search_one(session, ERPModel.UOM, [("name", "ilike", "Unit")], ["id"])
        if not uom:
            raise NotFoundError(f"No unit of measure found in tenant {tenant.value}", table=ERPModel.UOM)

        tax = await find_first(session, ERPModel.TAX, [
            [("type_tax_use", "=", "sale"), ("amount", "=", SALE_TAX_RATE)],
            [("type_tax_use", "=", "sale")],
        ], ["id"])
        if not tax:
            raise NotFoundError(f"No sales tax found in tenant {tenant.value}", table=ERPModel.TAX)

        active = ("deprecated", "=", False)
        income = await find_first(
            session,
            ERPModel.ACCOUNT,
            [[("code", "ilike", p), active] for p in INCOME_CODE_PATTERNS]
            + [[("name", "ilike", p), active] for p in INCOME_NAME_PATTERNS]
            + [[("account_type", "=", "income"), active]],
            ["id"],
        )
        if not income:
            logger.warning(f"No income account found in tenant {tenant.value}, products use the category account")

        return ProductDefaults(
            categ_id=category["id"],
            uom_id=uom["id"],
            tax_id=tax["id"],
            income_account_id=income["id"] if income else None,
        )

    async def _sync_product(
        self,
        session: ERPSession,
        tenant: TenantCode,
        slot: str,
        name: str,
        defaults: ProductDefaults,
    ) -> ProductItemResult:
        accounting: Dict[str, Any] = {
            "list_price": 0.0,
            "standard_price": 0.0,
            "categ_id": defaults.categ_id,
            "taxes_id": [(6, 0, [defaults.tax_id])],
        }
        if defaults.income_account_id:
            accounting["property_account_income_id"] = defaults.income_account_id

        result = await upsert(
            session,
            ERPModel.PRODUCT_TEMPLATE,
            [("name", "=", name)],
            create_values={
                "name": name,
                "type": "service",
                "detailed_type": "service",
                "uom_id": defaults.uom_id,
                "uom_po_id": defaults.uom_id,
                "sale_ok": True,
                "purchase_ok": True,
                "tracking": "none",
                **accounting,
            },
            update_values=accounting,
        )
        item = ProductItemResult(slot=slot, name=name, template_id=result.id, action=result.action.value)

        variant = await search_one(session, ERPModel.PRODUCT, [("product_tmpl_id", "=", result.id)], ["id"])
        if variant:
            item.id = variant["id"]
            setattr(self.pool.tenant_settings(tenant).products, slot, variant["id"])
        else:
            logger.warning(f"Product {name} has no variant yet, keeping the configured {slot} id")
        return item

    async def sync_products(self, tenant: TenantCode) -> ProductSyncResult:
        """Create or update the service products invoice lines reference."""
        return await self._track("product_sync", tenant.value, lambda: self._sync_products(tenant))

    async def _sync_products(self, tenant: TenantCode) -> ProductSyncResult:
        defaults = await self.resolve_product_defaults(tenant)
        session = await self.pool.get_session(tenant)

        result = ProductSyncResult(tenant=tenant, defaults=defaults)
        for slot, name in SERVICE_PRODUCTS:
            try:
                item = await self._sync_product(session, tenant, slot, name, defaults)
            except (ValidationError, RemoteCallError) as e:
                result.summary["errors"] += 1
                result.details.append(ProductItemResult(slot=slot, name=name, action="error", error=e.message))
                logger.warning(f"Product {name} failed: {e.message}")
                continue

            result.summary[item.action] = result.summary.get(item.action, 0) + 1
            result.details.append(item)
            log_record_action(
                "product", item.action, ERPModel.PRODUCT_TEMPLATE, item.template_id,
                tenant=tenant.value, name=name, product_id=item.id,
            )

        return result
