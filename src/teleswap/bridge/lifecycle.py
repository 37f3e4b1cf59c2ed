"""TeleSwap swap lifecycle.

Drives a swap through one of two branches:

    BTC -> Polygon:   NEW -> WAITING_FOR_SEND_CONFIRMATIONS -> WAITING_FOR_RECEIVE -> SUCCESS
    TELEBTC -> BTC:   NEW -> WAITING_FOR_APPROVE_CONFIRMATIONS -> APPROVE_CONFIRMED
                          -> WAITING_FOR_BURN_CONFIRMATIONS -> SUCCESS

Handlers never write to the database themselves. Each one takes a snapshot
of the record and returns the fields to update (or None), and
perform_next_action persists the result through the repository, which
rejects any backwards move.
"""

import logging
import uuid
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from teleswap.assets import BTC, TELEBTC, Network, is_burn_pair
from teleswap.bridge.fees import FeeEstimator
from teleswap.bridge.lockers import LockerSelector
from teleswap.bridge.payload import EXCHANGE_PAYLOAD_LENGTH, PayloadEncoder
from teleswap.bridge.statuses import TIMELINE_STEPS, build_status_table
from teleswap.clients.address import address_type_number
from teleswap.clients.base import (
    AddressCodec,
    ChainClient,
    ContractClient,
    TransactionInfo,
    TransactionRequest,
    WalletProvider,
)
from teleswap.config import TargetNetworkConfig
from teleswap.errors import (
    AmountTooLow,
    InvalidTransition,
    TransactionNotFound,
    TransactionReverted,
    UnsupportedRoute,
)
from teleswap.ledger.database import get_db
from teleswap.ledger.models import SwapRecord, SwapStatus
from teleswap.ledger.repository import SwapRepository
from teleswap.routing.base import Quote, RequestType, StatusInfo, SwapRequest
from teleswap.routing.catalog import SwapCatalog
from teleswap.routing.quoter import RouteQuoter
from teleswap.units import BaseUnits, CurrencyAmount
from teleswap.utils.scheduler import Scheduler

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]
Updates = Optional[dict[str, Any]]


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class TeleSwapProvider:
    """Quotes, starts and advances TeleSwap swaps."""

    def __init__(
        self,
        catalog: SwapCatalog,
        fee_estimator: FeeEstimator,
        quoter: RouteQuoter,
        locker_selector: LockerSelector,
        payload_encoder: PayloadEncoder,
        wallet: WalletProvider,
        contracts: ContractClient,
        address_codec: AddressCodec,
        config: TargetNetworkConfig,
        scheduler: Optional[Scheduler] = None,
        finalization_confirmations: int = 1,
        session_factory: SessionFactory = get_db,
    ):
        self.catalog = catalog
        self.fee_estimator = fee_estimator
        self.quoter = quoter
        self.locker_selector = locker_selector
        self.payload_encoder = payload_encoder
        self.wallet = wallet
        self.contracts = contracts
        self.address_codec = address_codec
        self.config = config
        self.scheduler = scheduler or Scheduler()
        self.finalization_confirmations = finalization_confirmations
        self.session_factory = session_factory
        self._statuses = build_status_table(finalization_confirmations)

    # Quoting

    async def get_quote(self, request: SwapRequest) -> Quote:
        """Quote `request` net of bridge fees.

        Raises:
            UnsupportedRoute: route not in the catalog, or a Polygon source
                other than TeleBTC
            AmountTooLow: fees take the whole amount
            NoRouteFound: no QuickSwap path to the destination token
        """
        self.catalog.ensure_supported(request.from_asset, request.to_asset, request.network)
        if request.from_asset != BTC and not is_burn_pair(request.from_asset, request.to_asset):
            raise UnsupportedRoute(request.from_asset, request.to_asset, request.network.value)

        gross = CurrencyAmount(request.amount, request.from_asset)
        fees = await self.fee_estimator.estimate(gross, request.network)

        net_value = gross.value - fees.total_fee
        if net_value <= 0:
            raise AmountTooLow(
                f"{gross} {gross.asset} does not cover the bridge fee of {fees.total_fee} BTC"
            )

        to_units = await self.quoter.quote(
            CurrencyAmount(net_value, request.from_asset), request.from_asset, request.to_asset
        )
        quote = Quote(
            from_asset=request.from_asset,
            to_asset=request.to_asset,
            from_amount=gross.to_units().value,
            to_amount=to_units.value,
            fee=fees.total_fee,
        )
        logger.info(
            f"Quoted {quote.from_amount} {quote.from_asset} -> {quote.to_amount} {quote.to_asset} "
            f"(fee {fees.total_fee} BTC, {request.network.value})"
        )
        return quote

    async def get_min(self, request: SwapRequest) -> Decimal:
        """Smallest input worth sending: the teleporter fee at amount zero."""
        return await self.fee_estimator.minimum(request.from_asset, request.network)

    async def estimate_fees(
        self,
        record: SwapRecord,
        fee_prices: Sequence[Decimal],
        max_spend: bool = False,
    ) -> Optional[dict[Decimal, CurrencyAmount]]:
        """Estimate the Bitcoin network fee of the funding transaction.

        Uses a zeroed payload of the largest size so the estimate covers both
        request types. Only Bitcoin funding has a fee to estimate here.
        """
        if record.from_asset != BTC:
            return None

        client = self.wallet.get_client(BTC, record.from_account_id)
        value = 0 if max_spend else int(record.from_amount)
        dummy_payload = bytes(EXCHANGE_PAYLOAD_LENGTH)
        requests = [
            TransactionRequest(to="", value=value, data=dummy_payload, fee=Decimal(price))
            for price in fee_prices
        ]
        totals = await client.get_total_fees(requests, max_spend)
        return {level: BaseUnits(int(total), BTC).to_currency() for level, total in totals.items()}

    # Starting a swap

    async def new_swap(
        self,
        request: SwapRequest,
        quote: Optional[Quote] = None,
        from_account_id: Optional[str] = None,
        to_account_id: Optional[str] = None,
        fee: Optional[Decimal] = None,
    ) -> SwapRecord:
        """Submit the first transaction of a swap and persist the record.

        Nothing is persisted when the submission fails; the error goes back
        to the caller.

        Args:
            request: What to swap
            quote: A quote from get_quote; fetched fresh when omitted
            from_account_id: Wallet account paying
            to_account_id: Wallet account receiving
            fee: Source transaction fee rate (sat/vB for Bitcoin)
        """
        self.catalog.ensure_supported(request.from_asset, request.to_asset, request.network)
        if quote is None:
            quote = await self.get_quote(request)

        swap_id = str(uuid.uuid4())
        record = SwapRecord(
            id=swap_id,
            network=request.network.value,
            from_asset=request.from_asset,
            to_asset=request.to_asset,
            from_amount=str(quote.from_amount),
            to_amount=str(quote.to_amount),
            fee=str(fee) if fee is not None else None,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            status=SwapStatus.NEW,
            number_of_bitcoin_confirmations=0,
        )

        if request.from_asset == BTC:
            async with self.scheduler.with_lock(record.from_asset, swap_id, "send_bitcoin_swap"):
                updates = await self.send_bitcoin_swap(record)
        elif is_burn_pair(request.from_asset, request.to_asset):
            async with self.scheduler.with_lock(record.from_asset, swap_id, "approve_for_burn"):
                updates = await self.approve_for_burn(record)
        else:
            raise UnsupportedRoute(request.from_asset, request.to_asset, request.network.value)

        async with self.session_factory() as session:
            repo = SwapRepository(session)
            await repo.create_swap(
                network=record.network,
                from_asset=record.from_asset,
                to_asset=record.to_asset,
                from_amount=quote.from_amount,
                to_amount=quote.to_amount,
                from_account_id=from_account_id,
                to_account_id=to_account_id,
                swap_id=swap_id,
            )
            if record.fee is not None:
                updates = {"fee": record.fee, **updates}
            return await repo.apply_updates(swap_id, updates)

    def _request_type(self, record: SwapRecord) -> RequestType:
        return RequestType.WRAP if record.to_asset == TELEBTC else RequestType.SWAP

    async def send_bitcoin_swap(self, record: SwapRecord) -> dict[str, Any]:
        """Fund a locker with the swap amount and the bridge payload."""
        network = Network(record.network)
        locker = await self.locker_selector.choose(record.from_units, network)
        request_type = self._request_type(record)

        recipient = await self.wallet.get_address(record.to_asset, record.to_account_id)
        payload = await self.payload_encoder.encode(record, request_type, recipient)

        client = self.wallet.get_client(BTC, record.from_account_id)
        tx_hash = await client.send_transaction(
            TransactionRequest(
                to=locker.bitcoin_address,
                value=int(record.from_amount),
                data=payload,
                fee=Decimal(record.fee) if record.fee else None,
            )
        )
        logger.info(
            f"Swap {record.id}: sent {record.from_amount} sat to locker {locker.bitcoin_address} "
            f"({request_type.value}, tx {tx_hash})"
        )
        return {
            "status": SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS,
            "bitcoin_tx_hash": tx_hash,
            "number_of_bitcoin_confirmations": 0,
        }

    async def approve_for_burn(self, record: SwapRecord) -> dict[str, Any]:
        """Let the burn router spend the swap amount of TeleBTC."""
        client = self.wallet.get_client(record.from_asset, record.from_account_id)
        data = self.contracts.encode_function_data(
            "approve", [self.config.cc_burn_router_address, int(record.from_amount)]
        )
        tx_hash = await client.send_transaction(
            TransactionRequest(to=self.config.telebtc_address, value=0, data=data)
        )
        logger.info(f"Swap {record.id}: approved {record.from_amount} TELEBTC units (tx {tx_hash})")
        return {
            "status": SwapStatus.WAITING_FOR_APPROVE_CONFIRMATIONS,
            "approve_tx_hash": tx_hash,
        }

    async def send_burn(self, record: SwapRecord) -> Updates:
        """Ask the burn router to release BTC from a locker to the user."""
        if record.swap_status != SwapStatus.APPROVE_CONFIRMED:
            return None

        locker = await self.locker_selector.choose(record.from_units, Network(record.network))
        recipient = await self.wallet.get_address(record.to_asset, record.to_account_id)
        parsed = self.address_codec.parse_address(recipient)

        data = self.contracts.encode_function_data(
            "ccBurn",
            [
                int(record.from_amount),
                parsed.script_hash,
                address_type_number(parsed.address_type),
                _hex_to_bytes(locker.locking_script),
            ],
        )
        client = self.wallet.get_client(record.from_asset, record.from_account_id)
        tx_hash = await client.send_transaction(
            TransactionRequest(to=self.config.cc_burn_router_address, value=0, data=data)
        )
        logger.info(f"Swap {record.id}: burn requested to {recipient} (tx {tx_hash})")
        return {
            "status": SwapStatus.WAITING_FOR_BURN_CONFIRMATIONS,
            "burn_tx_hash": tx_hash,
        }

    # Polling

    async def _lookup(
        self, client: ChainClient, tx_hash: Optional[str], swap_id: str
    ) -> Optional[TransactionInfo]:
        if not tx_hash:
            logger.warning(f"Swap {swap_id} has no transaction hash to poll")
            return None
        try:
            return await client.get_transaction_by_hash(tx_hash)
        except TransactionNotFound as e:
            logger.warning(f"Swap {swap_id}: {e}, retrying")
            return None
        except TransactionReverted as e:
            logger.error(f"Swap {swap_id}: {e}, needs an operator to fail it")
            raise

    async def wait_for_bitcoin_confirmations(self, record: SwapRecord) -> Updates:
        """First confirmation of the funding transaction."""
        if record.swap_status != SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS:
            return None

        client = self.wallet.get_client(BTC, record.from_account_id)
        tx = await self._lookup(client, record.bitcoin_tx_hash, record.id)
        if tx is None or tx.confirmations <= 0:
            return None
        return {
            "status": SwapStatus.WAITING_FOR_RECEIVE,
            "number_of_bitcoin_confirmations": tx.confirmations,
        }

    async def wait_for_receive(self, record: SwapRecord) -> Updates:
        """Finalization on Bitcoin and the teleporter's relay on Polygon.

        Both are required: the confirmation threshold alone does not finish
        the swap, and there is no timeout while the relay is outstanding.
        """
        if record.swap_status != SwapStatus.WAITING_FOR_RECEIVE:
            return None

        client = self.wallet.get_client(BTC, record.from_account_id)
        tx = await self._lookup(client, record.bitcoin_tx_hash, record.id)
        if tx is None:
            return None

        updates: dict[str, Any] = {}
        if tx.confirmations > (record.number_of_bitcoin_confirmations or 0):
            updates["number_of_bitcoin_confirmations"] = tx.confirmations

        if tx.confirmations < self.finalization_confirmations:
            return updates or None

        if self._request_type(record) == RequestType.WRAP:
            router = self.config.cc_transfer_router_address
        else:
            router = self.config.cc_exchange_router_address

        if await self.contracts.is_request_used(router, "0x" + record.bitcoin_tx_hash):
            updates["status"] = SwapStatus.SUCCESS
        else:
            logger.debug(f"Swap {record.id}: finalized, waiting for teleporter")
        return updates or None

    async def wait_for_approve_confirmations(self, record: SwapRecord) -> Updates:
        if record.swap_status != SwapStatus.WAITING_FOR_APPROVE_CONFIRMATIONS:
            return None

        client = self.wallet.get_client(record.from_asset, record.from_account_id)
        tx = await self._lookup(client, record.approve_tx_hash, record.id)
        if tx is None or tx.confirmations <= 0:
            return None
        return {"status": SwapStatus.APPROVE_CONFIRMED}

    async def wait_for_burn_confirmations(self, record: SwapRecord) -> Updates:
        if record.swap_status != SwapStatus.WAITING_FOR_BURN_CONFIRMATIONS:
            return None

        client = self.wallet.get_client(record.from_asset, record.from_account_id)
        tx = await self._lookup(client, record.burn_tx_hash, record.id)
        if tx is None or tx.confirmations <= 0:
            return None
        return {"status": SwapStatus.SUCCESS}

    # Dispatch

    async def get_swap(self, swap_id: str) -> SwapRecord:
        async with self.session_factory() as session:
            return await SwapRepository(session).get_swap_or_raise(swap_id)

    def _still_in(self, swap_id: str, status: SwapStatus):
        async def check() -> bool:
            async with self.session_factory() as session:
                swap = await SwapRepository(session).get_swap(swap_id)
            return swap is not None and swap.swap_status == status

        return check

    async def _poll(self, record: SwapRecord, handler) -> Updates:
        return await self.scheduler.with_interval(
            record.id, lambda: handler(record), self._still_in(record.id, record.swap_status)
        )

    async def perform_next_action(self, swap_id: str) -> Optional[SwapRecord]:
        """Run the action for the swap's current status and persist its result.

        Returns:
            The updated record, or None when nothing changed
        """
        record = await self.get_swap(swap_id)
        status = record.swap_status

        match status:
            case SwapStatus.NEW:
                logger.warning(f"Swap {swap_id} is NEW with no submission, leaving it alone")
                return None
            case SwapStatus.WAITING_FOR_SEND_CONFIRMATIONS:
                updates = await self._poll(record, self.wait_for_bitcoin_confirmations)
            case SwapStatus.WAITING_FOR_RECEIVE:
                updates = await self._poll(record, self.wait_for_receive)
            case SwapStatus.WAITING_FOR_APPROVE_CONFIRMATIONS:
                updates = await self._poll(record, self.wait_for_approve_confirmations)
            case SwapStatus.APPROVE_CONFIRMED:
                async with self.scheduler.with_lock(record.from_asset, swap_id, "send_burn"):
                    # re-read under the lock so a second caller sees the first one's burn
                    record = await self.get_swap(swap_id)
                    updates = await self.send_burn(record)
                    if updates:
                        return await self._apply(swap_id, updates)
                return None
            case SwapStatus.WAITING_FOR_BURN_CONFIRMATIONS:
                updates = await self._poll(record, self.wait_for_burn_confirmations)
            case SwapStatus.SUCCESS | SwapStatus.FAILED:
                return None
            case _:
                raise AssertionError(f"Unhandled swap status {status}")

        if not updates:
            return None
        return await self._apply(swap_id, updates)

    async def _apply(self, swap_id: str, updates: dict[str, Any]) -> Optional[SwapRecord]:
        try:
            async with self.session_factory() as session:
                return await SwapRepository(session).apply_updates(swap_id, updates)
        except InvalidTransition as e:
            logger.warning(f"Dropped stale update for swap {swap_id}: {e}")
            return None

    async def drive(self, swap_id: str) -> Optional[SwapRecord]:
        """Advance a swap until it is terminal or stops making progress."""
        record = None
        while True:
            updated = await self.perform_next_action(swap_id)
            if updated is None:
                return record
            record = updated
            if record.swap_status.is_terminal:
                return record

    async def mark_failed(self, swap_id: str, reason: str) -> SwapRecord:
        """Fail a swap from outside the state machine (operator action)."""
        record = await self.get_swap(swap_id)
        async with self.scheduler.with_lock(record.from_asset, swap_id, "mark_failed"):
            async with self.session_factory() as session:
                return await SwapRepository(session).mark_failed(swap_id, reason)

    # Presentation

    def status_table(self) -> dict[SwapStatus, StatusInfo]:
        return self._statuses

    def notification(self, record: SwapRecord) -> str:
        return self._statuses[record.swap_status].notification(record)

    def timeline_steps(self) -> list[str]:
        return list(TIMELINE_STEPS)

    def total_steps(self) -> int:
        return len(TIMELINE_STEPS)
