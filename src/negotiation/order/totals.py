"""Order totals: gross, discount and net value across all items of an order.

This is the pricing collaborator behind ``Order.replace_totals``. The
aggregate stores whatever mapping it is given; the item-management handlers
call ``calculate_totals`` after every change to the order lines.
"""

from datetime import UTC, datetime

from negotiation.shared.money import HUNDRED, ZERO, to_decimal, to_text


def calculate_totals(order):
    gross = ZERO
    discount = ZERO
    net = ZERO

    for item in order.items:
        gross += to_decimal(item.total, "total")
        discount += to_decimal(item.discount_amount, "discount_amount")
        net += to_decimal(item.final_value, "final_value")

    average_discount = discount / gross * HUNDRED if gross > ZERO else ZERO

    return {
        "gross_value": to_text(gross),
        "discount_value": to_text(discount),
        "net_value": to_text(net),
        "item_count": len(order.items),
        "average_discount_percent": to_text(average_discount),
        "calculated_at": datetime.now(UTC).isoformat(),
    }
