"""TeleportDAO API client: bridge fee oracle and locker registry."""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from teleswap.config import TargetNetworkConfig
from teleswap.errors import RpcError

logger = logging.getLogger(__name__)


class TeleportApiClient:
    """HTTP client for the TeleportDAO fee and locker endpoints.

    Both endpoints take amounts in BTC display units and a testnet flag
    (the network tier, not a chain id).
    """

    def __init__(
        self,
        api_url: str,
        api_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config: TargetNetworkConfig) -> "TeleportApiClient":
        return cls(config.api_url, config.api_token)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    async def _get_json(self, path: str, params: dict) -> dict:
        client = await self._get_client()
        try:
            response = await client.get(f"{self.api_url}{path}", params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"TeleportDAO API error on {path}: {e}")
            raise RpcError(f"TeleportDAO {path} failed: {e}") from e
        except ValueError as e:
            raise RpcError(f"TeleportDAO {path} returned invalid JSON: {e}") from e

    async def calculate_fee(self, amount: Decimal, fee_type: str, testnet: bool) -> dict:
        """Get the fee breakdown for moving `amount` BTC.

        Args:
            amount: Amount in BTC (display units)
            fee_type: "transfer" (BTC -> Polygon) or "burn" (Polygon -> BTC)
            testnet: Network tier
        """
        return await self._get_json(
            "/fees",
            {"amount": str(amount), "type": fee_type, "testnet": str(testnet).lower()},
        )

    async def get_lockers(
        self, amount: Decimal, locker_type: str, testnet: bool
    ) -> Optional[dict]:
        """Get the preferred locker able to handle `amount` BTC, or None."""
        data = await self._get_json(
            "/lockers",
            {"amount": str(amount), "type": locker_type, "testnet": str(testnet).lower()},
        )
        return data.get("preferredLocker")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
