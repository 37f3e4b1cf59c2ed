"""Funding transaction payload (OP_RETURN data).

The TeleportDAO payment format is a big-endian packed record:

    chain_id:2 | app_id:2 | recipient:20 | percentage_fee:2 | speed:1

for a plain transfer (27 bytes), extended for an exchange request with

    exchange_token:20 | output_amount:28 | deadline:4 | is_fixed_token:1

(80 bytes in total). Every numeric field is an unsigned integer.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from teleswap.assets import Network
from teleswap.bridge.fees import FeeEstimator
from teleswap.clients.base import ContractClient
from teleswap.config import ZERO_ADDRESS, TargetNetworkConfig
from teleswap.errors import EncodingError, NoRouteFound
from teleswap.routing.base import RequestType
from teleswap.routing.quoter import RouteQuoter
from teleswap.units import BaseUnits, CurrencyAmount

logger = logging.getLogger(__name__)

TRANSFER_APP_ID = 0
EXCHANGE_APP_ID = 1

NORMAL_SPEED = 0

_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")

# (field, size in bytes)
_TRANSFER_LAYOUT = (
    ("chain_id", 2),
    ("app_id", 2),
    ("recipient_address", 20),
    ("percentage_fee", 2),
    ("speed", 1),
)
_EXCHANGE_LAYOUT = (
    ("exchange_token_address", 20),
    ("output_amount", 28),
    ("deadline", 4),
    ("is_fixed_token", 1),
)

TRANSFER_PAYLOAD_LENGTH = sum(size for _, size in _TRANSFER_LAYOUT)
EXCHANGE_PAYLOAD_LENGTH = TRANSFER_PAYLOAD_LENGTH + sum(size for _, size in _EXCHANGE_LAYOUT)


@dataclass(frozen=True)
class PaymentData:
    """The documented field set of a funding payload."""

    chain_id: int
    app_id: int
    recipient_address: str
    percentage_fee: int
    speed: int
    is_exchange: bool
    exchange_token_address: str
    output_amount: int
    deadline: int
    is_fixed_token: bool


def _pack_uint(name: str, value, size: int) -> bytes:
    if isinstance(value, bool):
        value = int(value)
    if not isinstance(value, int):
        raise EncodingError(f"{name} must be an unsigned integer, got {value!r}")
    if value < 0 or value >= 1 << (8 * size):
        raise EncodingError(f"{name}={value} does not fit in {size} bytes")
    return value.to_bytes(size, "big")


def _pack_address(name: str, value: str) -> bytes:
    if not isinstance(value, str) or not _ADDRESS.match(value):
        raise EncodingError(f"{name} is not an EVM address: {value!r}")
    return bytes.fromhex(value[2:])


class TeleportPayment:
    """Codec for the TeleportDAO payment payload."""

    @staticmethod
    def encode(data: PaymentData) -> bytes:
        fields = {
            "chain_id": data.chain_id,
            "app_id": data.app_id,
            "recipient_address": data.recipient_address,
            "percentage_fee": data.percentage_fee,
            "speed": data.speed,
            "exchange_token_address": data.exchange_token_address,
            "output_amount": data.output_amount,
            "deadline": data.deadline,
            "is_fixed_token": data.is_fixed_token,
        }
        layout = _TRANSFER_LAYOUT + (_EXCHANGE_LAYOUT if data.is_exchange else ())

        payload = b""
        for name, size in layout:
            value = fields[name]
            if name.endswith("_address"):
                payload += _pack_address(name, value)
            else:
                payload += _pack_uint(name, value, size)
        return payload

    @staticmethod
    def decode(payload: bytes) -> PaymentData:
        if len(payload) == TRANSFER_PAYLOAD_LENGTH:
            layout = _TRANSFER_LAYOUT
        elif len(payload) == EXCHANGE_PAYLOAD_LENGTH:
            layout = _TRANSFER_LAYOUT + _EXCHANGE_LAYOUT
        else:
            raise EncodingError(f"Unexpected payload length {len(payload)}")

        values = {}
        offset = 0
        for name, size in layout:
            chunk = payload[offset:offset + size]
            offset += size
            if name.endswith("_address"):
                values[name] = "0x" + chunk.hex()
            else:
                values[name] = int.from_bytes(chunk, "big")

        is_exchange = len(layout) > len(_TRANSFER_LAYOUT)
        return PaymentData(
            chain_id=values["chain_id"],
            app_id=values["app_id"],
            recipient_address=values["recipient_address"],
            percentage_fee=values["percentage_fee"],
            speed=values["speed"],
            is_exchange=is_exchange,
            exchange_token_address=values.get("exchange_token_address", ZERO_ADDRESS),
            output_amount=values.get("output_amount", 0),
            deadline=values.get("deadline", 0),
            is_fixed_token=bool(values.get("is_fixed_token", 0)),
        )


def apply_slippage(amount: int, slippage_percent: Decimal) -> int:
    """Reduce `amount` by `slippage_percent`, rounding down."""
    numerator, denominator = (Decimal(100) - Decimal(slippage_percent)).as_integer_ratio()
    return amount * numerator // (100 * denominator)


class SwapLike(Protocol):
    from_asset: str
    to_asset: str
    network: str
    from_amount: str


class PayloadEncoder:
    """Builds the payload embedded in a Bitcoin funding transaction."""

    def __init__(
        self,
        fee_estimator: FeeEstimator,
        quoter: RouteQuoter,
        contracts: ContractClient,
        config: TargetNetworkConfig,
        slippage_percent: Decimal = Decimal("10"),
        deadline_window_seconds: int = 86400,
        payment: type[TeleportPayment] = TeleportPayment,
    ):
        self.fee_estimator = fee_estimator
        self.quoter = quoter
        self.contracts = contracts
        self.config = config
        self.slippage_percent = Decimal(slippage_percent)
        self.deadline_window_seconds = deadline_window_seconds
        self.payment = payment

    async def encode(
        self, record: SwapLike, request_type: RequestType, recipient_address: str
    ) -> bytes:
        """Encode the payload for `record`.

        The percentage fee and, for exchanges, the output amount are computed
        fresh rather than copied from the original quote.

        Raises:
            EncodingError: the payload cannot be built (unknown route token,
                non-integer fee, value out of range, nothing left after fees)
        """
        gross = BaseUnits(int(record.from_amount), record.from_asset).to_currency()
        network = Network(record.network)
        fees = await self.fee_estimator.estimate(gross, network)

        if fees.teleporter_percentage_fee != fees.teleporter_percentage_fee.to_integral_value():
            raise EncodingError(
                f"Percentage fee must be an integer, got {fees.teleporter_percentage_fee}"
            )
        percentage_fee = int(fees.teleporter_percentage_fee)

        if request_type == RequestType.SWAP:
            exchange_token = self.config.token_address(record.to_asset)
            if not exchange_token:
                raise EncodingError(f"No route token for {record.to_asset}")

            net_value = gross.value - fees.total_fee
            if net_value <= 0:
                raise EncodingError(
                    f"Nothing left to exchange: {gross} {gross.asset} minus fee {fees.total_fee}"
                )
            try:
                fresh_quote = await self.quoter.quote(
                    CurrencyAmount(net_value, record.from_asset), record.from_asset, record.to_asset
                )
            except NoRouteFound as e:
                raise EncodingError(f"Cannot price exchange for payload: {e}") from e

            output_amount = apply_slippage(fresh_quote.value, self.slippage_percent)
            deadline = await self.contracts.get_latest_block_timestamp() + self.deadline_window_seconds
            data = PaymentData(
                chain_id=self.config.payload_chain_id,
                app_id=EXCHANGE_APP_ID,
                recipient_address=recipient_address,
                percentage_fee=percentage_fee,
                speed=NORMAL_SPEED,
                is_exchange=True,
                exchange_token_address=exchange_token,
                output_amount=output_amount,
                deadline=deadline,
                is_fixed_token=False,
            )
            logger.debug(
                f"Exchange payload: fresh quote {fresh_quote.value}, "
                f"min output {output_amount} {record.to_asset}, deadline {deadline}"
            )
        else:
            data = PaymentData(
                chain_id=self.config.payload_chain_id,
                app_id=TRANSFER_APP_ID,
                recipient_address=recipient_address,
                percentage_fee=percentage_fee,
                speed=NORMAL_SPEED,
                is_exchange=False,
                exchange_token_address=ZERO_ADDRESS,
                output_amount=0,
                deadline=0,
                is_fixed_token=False,
            )

        return self.payment.encode(data)
