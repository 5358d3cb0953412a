"""Freight quotes for planned shipments.

Freight is charged per kilogram per kilometre with a minimum charge per
quote. The weight used for freight (nominal or volumetric) is decided by the
product catalogue and passed in as ``unit_weight``.
"""

from dataclasses import dataclass
from decimal import Decimal

from protean.exceptions import ValidationError

from negotiation.shared.money import ZERO, non_negative, positive

DEFAULT_RATE_PER_KG_KM = Decimal("0.05")
DEFAULT_MINIMUM_FREIGHT = Decimal("50.00")


@dataclass(frozen=True)
class FreightQuote:
    """Result of a freight calculation."""

    total_weight: Decimal
    freight_value: Decimal
    distance_km: Decimal
    total_volume: Decimal | None = None


@dataclass(frozen=True)
class ConsolidatedFreightQuote:
    """Freight for several lines travelling together."""

    quotes: tuple[FreightQuote, ...]
    total_weight: Decimal
    freight_value: Decimal
    distance_km: Decimal
    total_volume: Decimal | None = None


def quote_freight(
    unit_weight,
    quantity,
    distance_km,
    unit_volume=None,
    rate_per_kg_km=DEFAULT_RATE_PER_KG_KM,
    minimum=DEFAULT_MINIMUM_FREIGHT,
) -> FreightQuote:
    """Freight for ``quantity`` units over ``distance_km``, never below ``minimum``."""
    unit_weight = non_negative(unit_weight, "unit_weight")
    quantity = positive(quantity, "quantity")
    distance_km = positive(distance_km, "distance_km")
    rate_per_kg_km = non_negative(rate_per_kg_km, "rate_per_kg_km")
    minimum = non_negative(minimum, "minimum")

    total_weight = unit_weight * quantity
    total_volume = non_negative(unit_volume, "unit_volume") * quantity if unit_volume is not None else None
    calculated = total_weight * distance_km * rate_per_kg_km

    return FreightQuote(
        total_weight=total_weight,
        freight_value=max(calculated, minimum),
        distance_km=distance_km,
        total_volume=total_volume,
    )


def quote_consolidated_freight(
    lines,
    distance_km,
    rate_per_kg_km=DEFAULT_RATE_PER_KG_KM,
    minimum=DEFAULT_MINIMUM_FREIGHT,
) -> ConsolidatedFreightQuote:
    """Freight for several ``(unit_weight, quantity)`` or
    ``(unit_weight, quantity, unit_volume)`` lines on one trip.

    Individual lines carry no minimum; the minimum applies to the sum.
    """
    lines = list(lines or [])
    if not lines:
        raise ValidationError({"lines": ["At least one line is required for a freight quote"]})

    quotes = []
    for line in lines:
        unit_weight, quantity, *rest = line
        unit_volume = rest[0] if rest else None
        quotes.append(
            quote_freight(
                unit_weight,
                quantity,
                distance_km,
                unit_volume=unit_volume,
                rate_per_kg_km=rate_per_kg_km,
                minimum=ZERO,
            )
        )

    volumes = [q.total_volume for q in quotes if q.total_volume is not None]
    minimum = non_negative(minimum, "minimum")

    return ConsolidatedFreightQuote(
        quotes=tuple(quotes),
        total_weight=sum((q.total_weight for q in quotes), ZERO),
        freight_value=max(sum((q.freight_value for q in quotes), ZERO), minimum),
        distance_km=quotes[0].distance_km,
        total_volume=sum(volumes, ZERO) if volumes else None,
    )
