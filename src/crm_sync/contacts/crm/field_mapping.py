"""Record normalization between raw store payloads and contact schemas.

Defines:
- from_supabase_row(): Converts a PostgREST row dict to SourceContact.
- from_hubspot_object(): Converts a HubSpot contact object to CrmContact.
- to_hubspot_properties(): Converts internal field dict to HubSpot update properties.

Both readers are lenient: missing strings become "", missing or blank
statuses become None, and non-string scalars are stringified. A malformed
record is degraded, never dropped, so it still takes part in matching.
"""

from __future__ import annotations

from typing import Any

from src.crm_sync.contacts.schemas import CrmContact, CrmContactProperties, SourceContact


# ── CRM Property Mappings ──────────────────────────────────────────────────
# Internal field names the sync may push -> HubSpot contact property names.

HUBSPOT_PROPERTY_MAP: dict[str, str] = {
    "email": "email",
    "email_verification_status": "email_verification_status",
    "firstname": "firstname",
    "lastname": "lastname",
}


# ── Value Coercion ─────────────────────────────────────────────────────────


def _as_str(value: Any) -> str:
    """Coerce a scalar to str; None and containers become ""."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _as_status(value: Any) -> str | None:
    """Coerce a status value; None, containers and blank strings become None."""
    text = _as_str(value)
    return text if text.strip() else None


def _as_timestamp(*candidates: Any) -> str | None:
    for candidate in candidates:
        text = _as_str(candidate)
        if text:
            return text
    return None


# ── Conversion Functions ───────────────────────────────────────────────────


def from_supabase_row(row: Any) -> SourceContact:
    """Convert a Supabase ``contacts`` row to a SourceContact.

    The display name comes from a ``name`` column when present, otherwise
    from ``firstname`` and ``lastname`` joined by a space.

    Args:
        row: Row dict as returned by PostgREST; anything else reads as an empty row.

    Returns:
        SourceContact with defaults filled for any missing field.
    """
    if not isinstance(row, dict):
        row = {}

    contact_id = row.get("id")
    if isinstance(contact_id, bool) or not isinstance(contact_id, (int, str)):
        contact_id = _as_str(contact_id)

    name = _as_str(row.get("name")).strip()
    if not name:
        name = f"{_as_str(row.get('firstname'))} {_as_str(row.get('lastname'))}".strip()

    return SourceContact(
        id=contact_id,
        name=name,
        email=_as_str(row.get("email")),
        email_verification_status=_as_status(row.get("email_verification_status")),
        hs_object_id=_as_str(row.get("hs_object_id")).strip(),
        created_at=_as_timestamp(row.get("created_at"), row.get("createdate")),
        updated_at=_as_timestamp(row.get("updated_at"), row.get("lastmodifieddate")),
    )


def from_hubspot_object(obj: Any) -> CrmContact:
    """Convert a HubSpot CRM v3 contact object to a CrmContact.

    HubSpot's ``hs_object_id`` property always equals the object id, so the
    id is used as the join key whenever the property was not requested.

    Args:
        obj: Contact object (``id``, ``properties``, ``createdAt``, ``updatedAt``);
            anything else reads as an empty object.

    Returns:
        CrmContact with defaults filled for any missing field.
    """
    if not isinstance(obj, dict):
        obj = {}

    contact_id = _as_str(obj.get("id"))
    props = obj.get("properties")
    if not isinstance(props, dict):
        props = {}

    return CrmContact(
        id=contact_id,
        properties=CrmContactProperties(
            firstname=_as_str(props.get("firstname")),
            lastname=_as_str(props.get("lastname")),
            email=_as_str(props.get("email")),
            email_verification_status=_as_status(props.get("email_verification_status")),
            hs_object_id=_as_str(props.get("hs_object_id")).strip() or contact_id,
        ),
        created_at=_as_timestamp(obj.get("createdAt"), props.get("createdate")),
        updated_at=_as_timestamp(obj.get("updatedAt"), props.get("lastmodifieddate")),
    )


def to_hubspot_properties(
    data: dict[str, Any],
    property_map: dict[str, str] | None = None,
) -> dict[str, str]:
    """Convert internal field dict to a HubSpot ``properties`` update payload.

    Unknown fields and None values are dropped; values are sent as strings.

    Args:
        data: Dict of internal field names to values.
        property_map: Optional custom property map. Defaults to HUBSPOT_PROPERTY_MAP.

    Returns:
        Dict suitable for the HubSpot contact update ``properties`` body.
    """
    if property_map is None:
        property_map = HUBSPOT_PROPERTY_MAP

    properties: dict[str, str] = {}
    for field_name, value in data.items():
        if field_name not in property_map or value is None:
            continue
        if hasattr(value, "value"):
            value = value.value
        properties[property_map[field_name]] = str(value)

    return properties
