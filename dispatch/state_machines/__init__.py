from .offer_state import (
    OfferState,
    OfferStateException,
    expire_offer,
    is_offered_to,
    offer_expired,
    offer_state,
    offer_to,
    rotate_offer,
)

__all__ = [
    "OfferState",
    "OfferStateException",
    "expire_offer",
    "is_offered_to",
    "offer_expired",
    "offer_state",
    "offer_to",
    "rotate_offer",
]
