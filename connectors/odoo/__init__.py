"""Odoo connector (JSON-RPC)."""

from connectors.odoo.odoo_client import OdooClient

__all__ = ["OdooClient"]
