"""Direct-contact (WhatsApp) messages about orders."""

import re
from urllib.parse import quote

from app.models.order import Order
from app.models.store import Store

WHATSAPP_BASE_URL = "https://wa.me"
BRAZIL_COUNTRY_CODE = "55"


def whatsapp_number(phone: str | None) -> str | None:
    """Digits-only international number; Brazilian local numbers get +55."""
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return None
    if len(digits) in (10, 11):
        digits = BRAZIL_COUNTRY_CODE + digits
    return digits


def whatsapp_link(phone: str | None, message: str) -> str | None:
    number = whatsapp_number(phone)
    if number is None:
        return None
    return f"{WHATSAPP_BASE_URL}/{number}?text={quote(message)}"


def format_order_message(order: Order) -> str:
    """Plain-text order summary sent to the store over WhatsApp."""
    lines = [f"*New order {order.order_number}*", ""]
    for item in order.items:
        label = item.product_name
        if item.variation_name:
            label += f" ({item.variation_name})"
        lines.append(f"{item.quantity}x {label} - R$ {item.total:.2f}")

    lines.append("")
    lines.append(f"Subtotal: R$ {order.subtotal:.2f}")
    if order.shipping_method:
        lines.append(f"Shipping ({order.shipping_method}): R$ {order.shipping_cost:.2f}")
    lines.append(f"*Total: R$ {order.total:.2f}*")
    lines.append("")
    lines.append(f"Customer: {order.customer_name}")
    if order.customer_phone:
        lines.append(f"Phone: {order.customer_phone}")

    address = order.shipping_address
    if address:
        street = f"{address.get('street', '')}, {address.get('number', '')}"
        if address.get("complement"):
            street += f" - {address['complement']}"
        lines.append(f"Address: {street}")
        lines.append(f"{address.get('city', '')}/{address.get('state', '')} - {address.get('zip', '')}")

    lines.append(f"Payment: {order.payment_method}")
    if order.notes:
        lines.append(f"Notes: {order.notes}")
    return "\n".join(lines)


def order_contact_link(store: Store, order: Order) -> str | None:
    """Link that opens a chat with the store pre-filled with the order summary."""
    return whatsapp_link(store.whatsapp, format_order_message(order))
