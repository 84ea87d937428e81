"""
Core types for cartsync.

Re-exports from kungfu + the identity primitives shared by every layer.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TypeAlias

# Re-export from kungfu
from kungfu import Result, Ok, Error

# ═══════════════════════════════════════════════════════════════════════════════
# Attribute: one name/value pair of a product variant
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Attribute:
    """
    Selected variant attribute, e.g. Attribute("Size", "XL").

    Comparison is case-sensitive on both name and value.
    """

    name: str
    value: str


Attributes: TypeAlias = tuple[Attribute, ...]

IdentityKey: TypeAlias = tuple[str, tuple[tuple[str, str], ...]]
"""(product_id, sorted unique (name, value) pairs)."""


def attributes_of(pairs: Iterable[Attribute | tuple[str, str]]) -> Attributes:
    """Normalize attribute input (Attribute or (name, value) tuples) to a tuple."""
    result: list[Attribute] = []
    for pair in pairs:
        if isinstance(pair, Attribute):
            result.append(pair)
        else:
            name, value = pair
            result.append(Attribute(name, value))
    return tuple(result)


def identity_key(product_id: str, attributes: Iterable[Attribute]) -> IdentityKey:
    """
    Identity of a line item.

    Two items are the same iff the product matches and the attribute
    sets are equal. Insertion order of attributes never matters.
    """
    pairs = sorted({(a.name, a.value) for a in attributes})
    return (product_id, tuple(pairs))


def same_identity(
    product_a: str,
    attributes_a: Iterable[Attribute],
    product_b: str,
    attributes_b: Iterable[Attribute],
) -> bool:
    return identity_key(product_a, attributes_a) == identity_key(product_b, attributes_b)


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

Clock: TypeAlias = Callable[[], datetime]
"""Injectable time source. Must return timezone-aware datetimes."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_iso(raw: object) -> datetime | None:
    """Parse an ISO timestamp. Returns None for missing or malformed input."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def round_half_up(value: float) -> int:
    """Round like JavaScript's Math.round (halves go towards +infinity)."""
    return math.floor(value + 0.5)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    # Identity
    "Attribute",
    "Attributes",
    "IdentityKey",
    "attributes_of",
    "identity_key",
    "same_identity",
    # Time
    "Clock",
    "utc_now",
    "to_iso",
    "parse_iso",
    "round_half_up",
)
