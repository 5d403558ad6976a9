"""Outbound order links for catalog products.

Visitors order by messaging the merchant. The product's custom link decides
the channel; without one, the store's phone number on WhatsApp is used.
"""

import re
from urllib.parse import quote

from katalog.schemas.catalog import OrderLink

_NON_DIGITS = re.compile(r"\D")


def order_message(product_name: str) -> str:
    return f"Merhaba, {product_name} hakkında bilgi almak istiyorum."


def detect_link_type(custom_link: str) -> str:
    """Classify a merchant-supplied link by the channel it points to."""
    link = custom_link.lower()
    if "wa.me" in link or "whatsapp" in link:
        return "whatsapp"
    if "t.me" in link or "telegram" in link:
        return "telegram"
    if "mailto:" in link or ("@" in link and "." in link):
        return "email"
    if "yemeksepeti" in link:
        return "yemeksepeti"
    if "trendyol" in link:
        return "trendyol"
    return "website"


def build_order_link(
    product_name: str,
    custom_link: str | None,
    store_phone: str | None,
) -> OrderLink:
    """Build the URL the order button opens, with its link type."""
    message = order_message(product_name)
    text = quote(message, safe="")

    if not custom_link:
        phone = _NON_DIGITS.sub("", store_phone or "")
        return OrderLink(
            url=f"https://wa.me/{phone}?text={text}",
            link_type="whatsapp_fallback",
        )

    link_type = detect_link_type(custom_link)
    link = custom_link.lower()

    if link_type == "whatsapp":
        phone = _NON_DIGITS.sub("", link)
        url = f"https://wa.me/{phone}?text={text}"
    elif link_type == "telegram":
        username = link.split("@", 1)[1] if "@" in link else link.split("t.me/", 1)[-1]
        url = f"https://t.me/{username}"
    elif link_type == "email":
        email = link.replace("mailto:", "")
        subject = quote(f"Sipariş: {product_name}", safe="")
        url = f"mailto:{email}?subject={subject}&body={text}"
    else:
        url = custom_link

    return OrderLink(url=url, link_type=link_type)
