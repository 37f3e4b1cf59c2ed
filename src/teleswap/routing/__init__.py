"""Route catalog, quoting and the provider interface."""

from teleswap.routing.base import Quote, RequestType, StatusInfo, SwapProvider, SwapRequest
from teleswap.routing.catalog import SwapCatalog
from teleswap.routing.quoter import RouteQuoter

__all__ = [
    "Quote",
    "RequestType",
    "RouteQuoter",
    "StatusInfo",
    "SwapCatalog",
    "SwapProvider",
    "SwapRequest",
]
