"""
cartsync — local shopping cart kept in step with a server cart.

    from cartsync import store as S      # Local cart store
    from cartsync import pricing as P    # Sales and bulk tiers
    from cartsync import gateway as G    # Server cart API
    from cartsync import engine as E     # Merge, sync, optimistic edits
    from cartsync import checkout as C   # Checkout corrections
"""

from cartsync import store
from cartsync import pricing
from cartsync import gateway
from cartsync import engine
from cartsync import checkout
from cartsync.config import Policy
from cartsync._types import (
    Result,
    Ok,
    Error,
    Attribute,
    Attributes,
    IdentityKey,
    identity_key,
)

__version__ = "0.1.0"

__all__ = (
    "store",
    "pricing",
    "gateway",
    "engine",
    "checkout",
    "Policy",
    "Result",
    "Ok",
    "Error",
    "Attribute",
    "Attributes",
    "IdentityKey",
    "identity_key",
)
