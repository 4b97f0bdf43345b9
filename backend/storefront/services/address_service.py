# Overview: Service-layer operations for delivery address resolution.

from __future__ import annotations

import re

from ..extensions import db
from ..models import Address
from ..errors import AddressNotFound, NoAddressAvailable, ValidationError

PHONE_RE = re.compile(r"^\d{10}$")
PINCODE_RE = re.compile(r"^\d{6}$")

REQUIRED_ADDRESS_FIELDS = ("name", "phone", "address", "city", "pincode")


def validate_inline_address(data) -> dict:
    """
    Validate and normalize an address object sent with the request.

    Requires non-empty name, phone, address, city and pincode; phone must
    be exactly 10 digits and pincode exactly 6 digits.
    """
    if not isinstance(data, dict):
        raise ValidationError("address must be an object")

    cleaned = {key: str(data.get(key) or "").strip() for key in REQUIRED_ADDRESS_FIELDS}
    missing = [key for key, value in cleaned.items() if not value]
    if missing:
        raise ValidationError(
            f"Address is missing required fields: {', '.join(missing)}",
            details={"missing_fields": missing},
        )
    if not PHONE_RE.match(cleaned["phone"]):
        raise ValidationError("Phone number must be exactly 10 digits", details={"field": "phone"})
    if not PINCODE_RE.match(cleaned["pincode"]):
        raise ValidationError("Pincode must be exactly 6 digits", details={"field": "pincode"})

    cleaned["landmark"] = str(data.get("landmark") or "").strip() or None
    cleaned["state"] = str(data.get("state") or "").strip() or None
    return cleaned


def _saved_addresses(user_id: int):
    return db.session.query(Address).filter_by(user_id=user_id, is_deleted=False)


def resolve_delivery_address(
    user_id: int,
    *,
    address_id: int | None = None,
    inline_address: dict | None = None,
    skip_address: bool = False,
) -> dict | None:
    """
    Pick the delivery address snapshot for an order.

    Resolution order: explicit address_id, inline address, the user's
    default saved address, the most recently saved address. Returns None
    only when skip_address is requested (pickup).
    """
    if skip_address:
        return None

    if address_id is not None:
        address = _saved_addresses(user_id).filter_by(id=address_id).first()
        if address is None:
            raise AddressNotFound("Delivery address not found", details={"address_id": address_id})
        return address.to_snapshot()

    if inline_address is not None:
        return validate_inline_address(inline_address)

    default = _saved_addresses(user_id).filter_by(is_default=True).order_by(Address.id.desc()).first()
    if default is not None:
        return default.to_snapshot()

    recent = _saved_addresses(user_id).order_by(Address.created_at.desc(), Address.id.desc()).first()
    if recent is not None:
        return recent.to_snapshot()

    raise NoAddressAvailable("Delivery address is required")
