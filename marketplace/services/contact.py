import re
from typing import Optional
from urllib.parse import quote

from marketplace.models.enums import display_name


def unformat_phone(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def is_valid_us_phone(value: Optional[str]) -> bool:
    return len(unformat_phone(value)) == 10


def format_phone(value: Optional[str]) -> str:
    """Format digits as (XXX) XXX-XXXX, progressively for partial input."""
    numbers = unformat_phone(value)
    if len(numbers) >= 10:
        return f"({numbers[:3]}) {numbers[3:6]}-{numbers[6:10]}"
    if len(numbers) >= 6:
        return f"({numbers[:3]}) {numbers[3:6]}-{numbers[6:]}"
    if len(numbers) >= 3:
        return f"({numbers[:3]}) {numbers[3:]}"
    return numbers


def _quantity_text(quantity) -> str:
    # 60.00 -> "60", 12.50 -> "12.5"
    text = format(quantity, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def email_subject(listing) -> str:
    return f"{display_name(listing.material_type)} listing: {listing.site_name}"


def email_body(listing, sender_first_name: Optional[str] = None) -> str:
    listing_type = getattr(listing.listing_type, "value", listing.listing_type)
    unit = getattr(listing.unit, "value", listing.unit)
    return (
        f"Hi {listing.contact_first_name or 'there'},\n\n"
        f"I saw you've got {_quantity_text(listing.quantity)} {unit} of "
        f"{display_name(listing.material_type)} listed for {listing_type.lower()}. "
        "I'm looking to move this type of material and think we might be a good fit to work together.\n\n"
        "Let me know if there's a good time to connect, happy to keep it quick.\n\n"
        f"Thanks,\n{sender_first_name or 'A potential customer'}"
    )


def contact_links(listing, sender_first_name: Optional[str] = None) -> dict:
    """mailto:/tel: links for reaching a listing's owner from its contact snapshot."""
    subject = email_subject(listing)
    body = email_body(listing, sender_first_name)

    mailto = None
    if listing.contact_email:
        mailto = f"mailto:{listing.contact_email}?subject={quote(subject)}&body={quote(body)}"

    tel = None
    if is_valid_us_phone(listing.contact_phone):
        tel = f"tel:+1{unformat_phone(listing.contact_phone)}"

    return {
        "listing_id": listing.id,
        "email_subject": subject,
        "email_body": body,
        "mailto": mailto,
        "tel": tel,
    }
