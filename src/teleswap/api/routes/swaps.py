"""Quote and swap record endpoints."""

import logging
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from teleswap.assets import Network
from teleswap.bridge.lifecycle import TeleSwapProvider
from teleswap.config import get_settings
from teleswap.errors import (
    AmountTooLow,
    ConfigurationError,
    InvalidTransition,
    NoRouteFound,
    RpcError,
    SwapNotFound,
    UnsupportedRoute,
)
from teleswap.ledger.database import get_db
from teleswap.ledger.models import SwapStatus
from teleswap.ledger.repository import SwapRepository
from teleswap.routing.base import SwapRequest
from teleswap.utils.locks import LockTimeoutError, swap_lock

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def _build_provider() -> TeleSwapProvider:
    from teleswap.factory import create_provider

    return create_provider()


def get_provider() -> TeleSwapProvider:
    """Provider dependency (overridden in tests)."""
    try:
        return _build_provider()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))


async def require_admin_token(x_admin_token: str = Header(None)) -> bool:
    """Verify admin token from header.

    If ADMIN_TOKEN is not set, allows access (dev mode).
    """
    settings = get_settings()

    if not settings.admin_token:
        return True

    if x_admin_token != settings.admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")

    return True


class FailRequest(BaseModel):
    """Operator request to fail a swap."""

    reason: str = Field(..., min_length=1, max_length=500)


@router.get("/quote")
async def get_quote(
    from_asset: str = Query(..., alias="from"),
    to_asset: str = Query(..., alias="to"),
    amount: str = Query(...),
    network: Network = Query(Network.TESTNET),
    provider: TeleSwapProvider = Depends(get_provider),
):
    """Quote a swap. Amounts in the response are integer strings in smallest units."""
    try:
        request = SwapRequest(from_asset, to_asset, network, Decimal(amount))
    except (InvalidOperation, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid amount: {amount}") from e

    try:
        quote = await provider.get_quote(request)
        minimum = await provider.get_min(request)
    except (UnsupportedRoute, NoRouteFound) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AmountTooLow as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RpcError as e:
        logger.error(f"Quote failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return {**quote.to_dict(), "network": network.value, "min": str(minimum)}


@router.get("/swaps")
async def list_swaps(
    status: Optional[SwapStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """List swap records, newest first."""
    async with get_db() as session:
        repo = SwapRepository(session)
        swaps = await repo.list_swaps(limit=limit, offset=offset, status=status)
        return [swap.to_dict() for swap in swaps]


@router.get("/swaps/{swap_id}")
async def get_swap(swap_id: str):
    """Get one swap record."""
    async with get_db() as session:
        repo = SwapRepository(session)
        swap = await repo.get_swap(swap_id)
        if swap is None:
            raise HTTPException(status_code=404, detail=f"Swap {swap_id} not found")
        return swap.to_dict()


@router.post("/swaps/{swap_id}/fail")
async def fail_swap(
    swap_id: str,
    body: FailRequest,
    _: bool = Depends(require_admin_token),
):
    """Mark a swap FAILED, e.g. when the teleporter never relayed it."""
    async with get_db() as session:
        repo = SwapRepository(session)
        swap = await repo.get_swap(swap_id)
        if swap is None:
            raise HTTPException(status_code=404, detail=f"Swap {swap_id} not found")

        try:
            async with swap_lock(swap.from_asset, swap_id, timeout=10.0, operation="mark_failed"):
                swap = await repo.mark_failed(swap_id, body.reason)
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
        except SwapNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except LockTimeoutError as e:
            raise HTTPException(status_code=409, detail=str(e))

        return swap.to_dict()
