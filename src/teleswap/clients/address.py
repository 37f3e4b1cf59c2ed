"""Bitcoin address parsing for burn requests.

The burn router needs the user's output script as (hash, type) rather than
an address string. Decoding uses bip_utils address decoders.
"""

from bip_utils import CoinsConf, P2PKHAddrDecoder, P2SHAddrDecoder, P2WPKHAddrDecoder

from teleswap.clients.base import ParsedAddress

# Script type numbers understood by the burn router
ADDRESS_TYPE_NUMBERS = {
    "p2pk": 0,
    "p2pkh": 1,
    "p2sh": 2,
    "p2wpkh": 3,
}


class BitcoinAddressCodec:
    """Split P2PKH, P2SH and P2WPKH addresses into script hash and type."""

    def __init__(self, testnet: bool = False):
        self.testnet = testnet
        self._conf = CoinsConf.BitcoinTestNet if testnet else CoinsConf.BitcoinMainNet

    def parse_address(self, raw: str) -> ParsedAddress:
        """Decode an address.

        Raises:
            ValueError: if the address is not a valid P2PKH, P2SH or P2WPKH
                address for this network
        """
        address = raw.strip()
        hrp = self._conf.ParamByKey("p2wpkh_hrp")

        if address.lower().startswith(f"{hrp}1"):
            script_hash = P2WPKHAddrDecoder.DecodeAddr(
                address, hrp=hrp, wit_ver=self._conf.ParamByKey("p2wpkh_wit_ver")
            )
            return ParsedAddress(script_hash=bytes(script_hash), address_type="p2wpkh")

        try:
            script_hash = P2PKHAddrDecoder.DecodeAddr(
                address, net_ver=self._conf.ParamByKey("p2pkh_net_ver")
            )
            return ParsedAddress(script_hash=bytes(script_hash), address_type="p2pkh")
        except ValueError:
            pass

        script_hash = P2SHAddrDecoder.DecodeAddr(
            address, net_ver=self._conf.ParamByKey("p2sh_net_ver")
        )
        return ParsedAddress(script_hash=bytes(script_hash), address_type="p2sh")


def address_type_number(address_type: str) -> int:
    """Map an address type to the burn router's script type enum."""
    try:
        return ADDRESS_TYPE_NUMBERS[address_type]
    except KeyError:
        raise ValueError(f"Unsupported Bitcoin address type: {address_type}")
