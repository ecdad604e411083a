# /storechat/services/order_directive.py

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

from storechat.models.domain import OrderSignal, OrderSource, OrderStatus
from storechat.services.customer_info import parse_customer_info

# Parser for the order directive blocks the assistant appends to its replies
# (see persona.ASSISTANT_INSTRUCTIONS), plus the catalog lookup and total
# computation used when a confirmed directive becomes an order.
#
#   ===ORDER_INFO===            ===ORDER_PENDING===
#   PRODUCT_NAME: ...           PRODUCT_NAME: ...
#   QUANTITY: 2                 QUANTITY: 1
#   CUSTOMER_INFO: ...          STATUS: WAITING_FOR_INFO
#   NOTES: ...                  ===END_ORDER===
#   STATUS: CONFIRMED
#   ===END_ORDER===

# A block body never contains another block header, so an unterminated
# header cannot swallow the block after it.
_BLOCK_BODY = r"((?:(?!===ORDER_)[\s\S])*?)"
CONFIRMED_BLOCK = re.compile(r"===ORDER_INFO===\s+" + _BLOCK_BODY + r"===END_ORDER===")
PENDING_BLOCK = re.compile(r"===ORDER_PENDING===\s+" + _BLOCK_BODY + r"===END_ORDER===")

CONFIRMED_STATUS = "CONFIRMED"
PENDING_STATUS = "WAITING_FOR_INFO"

UNKNOWN_PRODUCT_ID = "unknown"
ZERO_AMOUNT = "0"

_FIELD_LINE = re.compile(r"^\s*([A-Z_]+)\s*:[ \t]*(.*?)\s*$")
_LEADING_INT = re.compile(r"\d+")
_PRICE_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_THOUSANDS_SEPARATOR = re.compile(r"(?<=\d),(?=\d{3}\b)")


@dataclass(frozen=True)
class OrderDirective:
    signal: Optional[OrderSignal]
    visible_text: str
    product_name: str = ""
    quantity: int = 1
    customer_info: str = ""
    notes: str = ""


def parse_block_fields(body: str) -> Dict[str, str]:
    """Reads `KEY: value` lines; the first occurrence of a key wins."""
    fields: Dict[str, str] = {}
    for line in body.splitlines():
        match = _FIELD_LINE.match(line)
        if match and match.group(1) not in fields:
            fields[match.group(1)] = match.group(2)
    return fields


def parse_quantity(value: Optional[str]) -> int:
    match = _LEADING_INT.match(value or "")
    if not match:
        return 1
    return max(int(match.group(0)), 1)


def strip_directive_blocks(text: str) -> str:
    stripped, count = CONFIRMED_BLOCK.subn("", text)
    stripped, pending_count = PENDING_BLOCK.subn("", stripped)
    if count + pending_count == 0:
        return text
    return stripped.strip()


def _directive_from_block(match: Optional[re.Match], expected_status: str) -> Optional[Dict[str, str]]:
    if not match:
        return None
    fields = parse_block_fields(match.group(1))
    if not fields.get("PRODUCT_NAME") or fields.get("STATUS") != expected_status:
        return None
    return fields


def parse_order_directive(reply: str) -> OrderDirective:
    """
    Looks for a confirmed block first, then a pending one. Malformed blocks
    count as no directive but are still removed from the visible text.
    """
    reply = reply or ""
    visible_text = strip_directive_blocks(reply)

    fields = _directive_from_block(CONFIRMED_BLOCK.search(reply), CONFIRMED_STATUS)
    if fields:
        return OrderDirective(
            signal=OrderSignal.CONFIRMED,
            visible_text=visible_text,
            product_name=fields["PRODUCT_NAME"],
            quantity=parse_quantity(fields.get("QUANTITY")),
            customer_info=fields.get("CUSTOMER_INFO", ""),
            notes=fields.get("NOTES", ""),
        )

    fields = _directive_from_block(PENDING_BLOCK.search(reply), PENDING_STATUS)
    if fields:
        return OrderDirective(
            signal=OrderSignal.PENDING,
            visible_text=visible_text,
            product_name=fields["PRODUCT_NAME"],
            quantity=parse_quantity(fields.get("QUANTITY")),
        )

    return OrderDirective(signal=None, visible_text=visible_text)


def match_product(product_name: str, products: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First catalog product whose name contains, or is contained in, product_name (case-insensitive)."""
    wanted = product_name.casefold().strip()
    if not wanted:
        return None
    for product in products:
        candidate = (product.get("name") or "").casefold().strip()
        if candidate and (candidate in wanted or wanted in candidate):
            return product
    return None


def _format_amount(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return format(amount.normalize(), "f")


def calculate_total_amount(price: Optional[str], quantity: int) -> str:
    """First number in the price times quantity, e.g. 1200 دولار x 3 -> 3600; "0" when there is none."""
    if not price:
        return ZERO_AMOUNT
    match = _PRICE_NUMBER.search(_THOUSANDS_SEPARATOR.sub("", price))
    if not match:
        return ZERO_AMOUNT
    try:
        return _format_amount(Decimal(match.group(1)) * quantity)
    except InvalidOperation:
        return ZERO_AMOUNT


def build_chat_order(directive: OrderDirective, products: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Order fields for a confirmed directive; totals are fixed here and never recomputed."""
    customer = parse_customer_info(directive.customer_info)
    product = match_product(directive.product_name, products)

    if product:
        product_id = str(product["id"])
        price = product.get("price") or ZERO_AMOUNT
        total_amount = calculate_total_amount(price, directive.quantity)
    else:
        product_id, price, total_amount = UNKNOWN_PRODUCT_ID, ZERO_AMOUNT, ZERO_AMOUNT

    return {
        "product_id": product_id,
        "product_name": directive.product_name,
        "quantity": directive.quantity,
        "customer_name": customer.name,
        "customer_phone": customer.phone,
        "customer_address": customer.address,
        "total_amount": total_amount,
        "notes": directive.notes,
        "status": OrderStatus.PENDING.value,
        "source": OrderSource.CHAT.value,
        "items": [{
            "product_id": product_id,
            "product_name": directive.product_name,
            "quantity": directive.quantity,
            "price": price,
        }],
    }
