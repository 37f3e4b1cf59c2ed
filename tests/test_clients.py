"""Tests for chain and API adapters."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import BITCOIN_RECIPIENT, POLYGON_RECIPIENT
from teleswap.clients.address import BitcoinAddressCodec, address_type_number
from teleswap.clients.base import TransactionRequest
from teleswap.clients.esplora import EsploraClient
from teleswap.clients.evm import EvmChainClient
from teleswap.clients.teleport_api import TeleportApiClient
from teleswap.clients.wallet import ConfiguredWallet
from teleswap.errors import ConfigurationError, RpcError, TransactionNotFound, TransactionReverted

ESPLORA_URL = "https://esplora.test/api"
TX_HASH = "cd" * 32
WITNESS_PROGRAM = bytes.fromhex("751e76e8199196d454941c45d1b3a323f1433bd6")


def esplora(handler, signer=None) -> EsploraClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EsploraClient(ESPLORA_URL, signer=signer, client=client)


def teleport_api(handler, token=None) -> TeleportApiClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TeleportApiClient("https://api.teleport.test/", api_token=token, client=client)


class TestBitcoinAddressCodec:
    """Tests for address parsing."""

    def test_testnet_p2wpkh(self):
        parsed = BitcoinAddressCodec(testnet=True).parse_address(BITCOIN_RECIPIENT)

        assert parsed.address_type == "p2wpkh"
        assert parsed.script_hash == WITNESS_PROGRAM

    def test_mainnet_p2wpkh(self):
        parsed = BitcoinAddressCodec().parse_address("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4")

        assert parsed.address_type == "p2wpkh"
        assert parsed.script_hash == WITNESS_PROGRAM

    def test_p2pkh(self):
        parsed = BitcoinAddressCodec().parse_address("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2")

        assert parsed.address_type == "p2pkh"
        assert len(parsed.script_hash) == 20

    def test_p2sh(self):
        parsed = BitcoinAddressCodec().parse_address("3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy")

        assert parsed.address_type == "p2sh"
        assert len(parsed.script_hash) == 20

    def test_wrong_network_rejected(self):
        with pytest.raises(ValueError):
            BitcoinAddressCodec().parse_address(BITCOIN_RECIPIENT)

    def test_address_type_numbers(self):
        assert address_type_number("p2pk") == 0
        assert address_type_number("p2pkh") == 1
        assert address_type_number("p2sh") == 2
        assert address_type_number("p2wpkh") == 3
        with pytest.raises(ValueError):
            address_type_number("p2tr")


class TestEsploraClient:
    """Tests for the esplora client."""

    @pytest.mark.asyncio
    async def test_confirmations_from_tip(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == f"/api/tx/{TX_HASH}":
                return httpx.Response(200, json={"status": {"confirmed": True, "block_height": 100}})
            if request.url.path == "/api/blocks/tip/height":
                return httpx.Response(200, text="105")
            return httpx.Response(404)

        tx = await esplora(handler).get_transaction_by_hash(TX_HASH)

        assert tx.confirmations == 6
        assert tx.block_height == 100
        assert tx.is_confirmed

    @pytest.mark.asyncio
    async def test_unconfirmed(self):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, json={"status": {"confirmed": False}})

        tx = await esplora(handler).get_transaction_by_hash(TX_HASH)

        assert tx.confirmations == 0
        assert paths == [f"/api/tx/{TX_HASH}"]

    @pytest.mark.asyncio
    async def test_not_indexed(self):
        client = esplora(lambda request: httpx.Response(404, text="Transaction not found"))

        with pytest.raises(TransactionNotFound) as exc_info:
            await client.get_transaction_by_hash(TX_HASH)

        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = esplora(lambda request: httpx.Response(502))

        with pytest.raises(RpcError):
            await client.get_transaction_by_hash(TX_HASH)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RpcError):
            await esplora(handler).get_transaction_by_hash(TX_HASH)

    @pytest.mark.asyncio
    async def test_fee_estimates(self):
        client = esplora(lambda request: httpx.Response(200, json={"1": 25.5, "6": 10}))

        estimates = await client.get_fee_estimates()

        assert estimates == {"1": Decimal("25.5"), "6": Decimal("10")}

    def test_estimate_vsize(self):
        request = TransactionRequest(to="tb1q", value=1000, data=bytes(80))

        assert EsploraClient.estimate_vsize(request, max_spend=False) == Decimal("231.5")
        assert EsploraClient.estimate_vsize(request, max_spend=True) == Decimal("200.5")

    @pytest.mark.asyncio
    async def test_total_fees(self):
        client = esplora(lambda request: httpx.Response(500))
        requests = [
            TransactionRequest(to="tb1q", value=1000, data=bytes(80), fee=Decimal("2")),
            TransactionRequest(to="tb1q", value=1000, data=bytes(80), fee=Decimal("3")),
        ]

        totals = await client.get_total_fees(requests, max_spend=False)

        assert totals == {Decimal("2"): 463, Decimal("3"): 695}

    @pytest.mark.asyncio
    async def test_send_without_signer(self):
        client = esplora(lambda request: httpx.Response(200, text=TX_HASH))

        with pytest.raises(RpcError):
            await client.send_transaction(TransactionRequest(to="tb1q", value=1000))

    @pytest.mark.asyncio
    async def test_send_broadcasts_signed_tx(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(200, text=TX_HASH + "\n")

        signer = MagicMock()
        signer.sign_transaction = AsyncMock(return_value="0200aa")
        client = esplora(handler, signer=signer)

        txid = await client.send_transaction(TransactionRequest(to="tb1q", value=1000))

        assert txid == TX_HASH
        assert bodies == [b"0200aa"]


class TestTeleportApiClient:
    """Tests for the fee oracle and locker registry client."""

    @pytest.mark.asyncio
    async def test_calculate_fee(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"totalFeeInBTC": "0.0001"})

        data = await teleport_api(handler, token="t0k").calculate_fee(Decimal("0.01"), "transfer", True)

        assert data == {"totalFeeInBTC": "0.0001"}
        request = seen[0]
        assert request.url.path == "/fees"
        assert request.url.params["amount"] == "0.01"
        assert request.url.params["type"] == "transfer"
        assert request.url.params["testnet"] == "true"

    @pytest.mark.asyncio
    async def test_preferred_locker(self):
        locker = {"bitcoinAddress": "tb1qlocker", "lockerInfo": {"lockerLockingScript": "0x00"}}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["type"] == "burn"
            return httpx.Response(200, content=json.dumps({"preferredLocker": locker}))

        assert await teleport_api(handler).get_lockers(Decimal("1"), "burn", False) == locker

    @pytest.mark.asyncio
    async def test_no_locker(self):
        client = teleport_api(lambda request: httpx.Response(200, json={"preferredLocker": None}))

        assert await client.get_lockers(Decimal("1"), "transfer", True) is None

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = teleport_api(lambda request: httpx.Response(503))

        with pytest.raises(RpcError):
            await client.calculate_fee(Decimal("0.01"), "transfer", True)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = teleport_api(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(RpcError):
            await client.calculate_fee(Decimal("0.01"), "transfer", True)


class FakeEth:
    """Just enough of web3's async eth module for receipt lookups."""

    def __init__(self, receipt: dict, latest: int):
        self.receipt = receipt
        self.latest = latest

    async def get_transaction_receipt(self, tx_hash):
        return self.receipt

    @property
    def block_number(self):
        async def latest():
            return self.latest

        return latest()


class TestEvmChainClient:
    """Tests for Polygon receipt handling."""

    @pytest.mark.asyncio
    async def test_mined_receipt_confirmations(self):
        w3 = MagicMock()
        w3.eth = FakeEth({"status": 1, "blockNumber": 100}, latest=104)

        info = await EvmChainClient(w3).get_transaction_by_hash("0xabc")

        assert info.confirmations == 5
        assert info.block_height == 100

    @pytest.mark.asyncio
    async def test_reverted_receipt_is_not_an_rpc_error(self):
        w3 = MagicMock()
        w3.eth = FakeEth({"status": 0, "blockNumber": 100}, latest=104)

        with pytest.raises(TransactionReverted) as exc_info:
            await EvmChainClient(w3).get_transaction_by_hash("0xabc")

        assert not isinstance(exc_info.value, RpcError)
        assert exc_info.value.tx_hash == "0xabc"


class TestConfiguredWallet:
    """Tests for the configured wallet."""

    def test_client_per_chain(self, target_config):
        wallet = ConfiguredWallet(target_config)

        assert isinstance(wallet.get_client("BTC"), EsploraClient)
        assert wallet.get_client("TELEBTC") is wallet.get_client("USDT")
        assert wallet.get_client("TELEBTC") is not wallet.get_client("BTC")

    def test_unknown_asset(self, target_config):
        with pytest.raises(ConfigurationError):
            ConfiguredWallet(target_config).get_client("DOGE")

    @pytest.mark.asyncio
    async def test_addresses(self, target_config):
        wallet = ConfiguredWallet(target_config, bitcoin_address=BITCOIN_RECIPIENT)

        assert await wallet.get_address("BTC") == BITCOIN_RECIPIENT
        with pytest.raises(ConfigurationError):
            await wallet.get_address("USDT")

        wallet = ConfiguredWallet(target_config, polygon_address=POLYGON_RECIPIENT)
        assert await wallet.get_address("TELEBTC") == POLYGON_RECIPIENT
