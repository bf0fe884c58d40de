"""Contact store integration layer -- pluggable adapters feeding reconciliation.

Provides abstract adapter interfaces with concrete implementations:
- SupabaseAdapter: Source store (relational contacts table via PostgREST)
- HubSpotAdapter: CRM contacts via the HubSpot CRM v3 API
- PagedIterator: Cursor paging shared by both adapters
- from_supabase_row / from_hubspot_object: Lenient record normalization

Architecture: adapters own every I/O concern (paging, retries, timeouts);
the reconciliation engine only ever sees fetched lists.
"""

from src.crm_sync.contacts.crm.adapter import (
    AdapterError,
    CrmAdapter,
    CrmApiError,
    SourceStoreAdapter,
    SourceStoreError,
)
from src.crm_sync.contacts.crm.field_mapping import (
    HUBSPOT_PROPERTY_MAP,
    from_hubspot_object,
    from_supabase_row,
    to_hubspot_properties,
)
from src.crm_sync.contacts.crm.hubspot import HubSpotAdapter
from src.crm_sync.contacts.crm.paging import CollectedPages, Page, PagedIterator
from src.crm_sync.contacts.crm.supabase import SupabaseAdapter

__all__ = [
    "AdapterError",
    "CrmAdapter",
    "CrmApiError",
    "SourceStoreAdapter",
    "SourceStoreError",
    "HubSpotAdapter",
    "SupabaseAdapter",
    "Page",
    "PagedIterator",
    "CollectedPages",
    "HUBSPOT_PROPERTY_MAP",
    "from_hubspot_object",
    "from_supabase_row",
    "to_hubspot_properties",
]
