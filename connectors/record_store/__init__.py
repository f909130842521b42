"""Record store connector (Airtable REST API)."""

from connectors.record_store.airtable_client import RecordStoreClient

__all__ = ["RecordStoreClient"]
