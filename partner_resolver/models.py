"""Partner Resolver Data Models.

This module defines the Pydantic models for partner resolution:
- PartyData: A customer or carrier as described by the record store
- PartnerResult: The ERP contact the party resolved to
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from sync_engine import UpsertAction


class PartyRole(str, Enum):
    """Which side of a shipment the party is on."""
    CUSTOMER = "customer"  # Billed on the sale side
    CARRIER = "carrier"    # Paid on the cost side


class MatchType(str, Enum):
    """How an existing partner was found."""
    TAX_ID = "tax_id"        # Exact tax id (CUIT/RUT)
    EXACT_NAME = "exact_name"
    SIMILAR_NAME = "similar_name"  # Case-insensitive substring
    NO_MATCH = "no_match"


class PartyData(BaseModel):
    """A business party to resolve.

    Attributes:
        name: Display name (required, used for name matching)
        role: Customer or carrier
        tax_id: CUIT/RUT, the most reliable natural key
        email: Contact email
        phone: Contact phone
        country_code: ISO country code, resolved to the ERP country on create
    """
    name: str = Field(..., description="Display name")
    role: PartyRole = Field(default=PartyRole.CUSTOMER)
    tax_id: Optional[str] = Field(default=None, description="CUIT/RUT")
    email: Optional[str] = None
    phone: Optional[str] = None
    country_code: Optional[str] = Field(default=None, description="ISO country code, e.g. 'CL'")


class PartnerResult(BaseModel):
    """ERP contact a party resolved to."""
    id: int
    name: str
    action: UpsertAction
    match_type: MatchType = Field(default=MatchType.NO_MATCH)
