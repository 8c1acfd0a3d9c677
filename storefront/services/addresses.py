"""
Address resolution for checkout

Customers either pick a saved address or fill in the manual form. The manual
form collects structured fields; an older free-text block is still accepted
and is only used to fill structured fields the customer left blank.
"""

import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..models.checkout import AddressForm, OrderAddress

UNKNOWN = "Unknown"

MANUAL_REQUIRED_FIELDS = (
    "full_name",
    "phone_number",
    "pincode",
    "street",
    "locality",
    "city",
    "state",
)

FIELD_LABELS = {
    "full_name": "Full name",
    "phone_number": "Phone number",
    "pincode": "Pincode",
    "street": "Street address",
    "locality": "Locality",
    "city": "City",
    "state": "State",
}

LANDMARK_PATTERN = re.compile(r"landmark:\s*(.+)", re.IGNORECASE)


@dataclass(frozen=True)
class ResolvedAddress:
    name: str = ""
    phone: str = ""
    pincode: str = ""
    street: str = ""
    locality: str = ""
    city: str = ""
    state: str = ""
    landmark: str = ""
    country: str = ""


def parse_address_text(
    text: str,
    known_cities: Iterable[str] = (),
    known_states: Iterable[str] = (),
) -> ResolvedAddress:
    """
    Best-effort split of a free-text address.

    The first line is the street. A later "City, State" or
    "Locality, City, State" line gives the rest; failing that, the text is
    scanned for known city and state names. "Landmark: ..." is picked up
    anywhere.
    """
    landmark = ""
    match = LANDMARK_PATTERN.search(text or "")
    if match:
        landmark = match.group(1).strip()

    lines = [
        line.strip() for line in (text or "").splitlines()
        if line.strip() and not LANDMARK_PATTERN.match(line.strip())
    ]
    street = lines[0] if lines else ""
    locality = city = state = ""

    for line in lines[1:]:
        parts = [part.strip() for part in line.split(",") if part.strip()]
        if len(parts) >= 3:
            locality, city, state = parts[-3], parts[-2], parts[-1]
            break
        if len(parts) == 2:
            city, state = parts
            break

    if not city:
        city = next((name for name in known_cities if name in text), "")
    if not state:
        state = next((name for name in known_states if name in text), "")

    return ResolvedAddress(
        street=street,
        locality=locality,
        city=city,
        state=state,
        landmark=landmark,
    )


def resolve_form(
    form: AddressForm,
    known_cities: Iterable[str] = (),
    known_states: Iterable[str] = (),
) -> Optional[ResolvedAddress]:
    """Resolve one side of the information step; None if nothing usable was given"""
    if not form.manual:
        address = form.selected_address
        if not (form.selected_address_id and address):
            return None
        return ResolvedAddress(
            name=address.name,
            phone=address.mobile_number,
            pincode=address.zip_code,
            street=address.street,
            locality=address.locality,
            city=address.city,
            state=address.state,
            landmark=address.landmark or "",
            country=address.country,
        )

    resolved = ResolvedAddress(
        name=form.full_name.strip(),
        phone=form.phone_number.strip(),
        pincode=form.pincode.strip(),
        street=form.street.strip(),
        locality=form.locality.strip(),
        city=form.city.strip(),
        state=form.state.strip(),
        landmark=form.landmark.strip(),
    )

    if form.address_text.strip():
        parsed = parse_address_text(form.address_text, known_cities, known_states)
        resolved = replace(
            resolved,
            street=resolved.street or parsed.street,
            locality=resolved.locality or parsed.locality,
            city=resolved.city or parsed.city,
            state=resolved.state or parsed.state,
            landmark=resolved.landmark or parsed.landmark,
        )
    return resolved


def form_errors(
    form: AddressForm,
    prefix: str,
    known_cities: Iterable[str] = (),
    known_states: Iterable[str] = (),
) -> dict[str, str]:
    """Field-level messages for an incomplete address form"""
    if not form.manual:
        if form.selected_address_id and form.selected_address:
            return {}
        return {f"{prefix}.selected_address": "Please select an address or enter one manually."}

    resolved = resolve_form(form, known_cities, known_states)
    values = {
        "full_name": resolved.name,
        "phone_number": resolved.phone,
        "pincode": resolved.pincode,
        "street": resolved.street,
        "locality": resolved.locality,
        "city": resolved.city,
        "state": resolved.state,
    }
    return {
        f"{prefix}.{field}": f"{FIELD_LABELS[field]} is required."
        for field in MANUAL_REQUIRED_FIELDS
        if not values[field]
    }


def to_order_address(
    form: AddressForm,
    default_country: str = "India",
    known_cities: Iterable[str] = (),
    known_states: Iterable[str] = (),
) -> OrderAddress:
    """Build the order-service address, with "Unknown" for unresolved required parts"""
    resolved = resolve_form(form, known_cities, known_states) or ResolvedAddress()
    return OrderAddress(
        name=resolved.name,
        mobile_number=resolved.phone,
        zip_code=resolved.pincode,
        street=resolved.street or UNKNOWN,
        locality=resolved.locality,
        city=resolved.city or UNKNOWN,
        state=resolved.state or UNKNOWN,
        country=resolved.country or default_country,
        landmark=resolved.landmark,
    )
