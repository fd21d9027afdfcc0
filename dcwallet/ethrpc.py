"""Wallet-level helpers over the Ethereum JSON-RPC client."""

from .ethclient import CallMsg, FilterQuery

ADDRESS_LENGTH = 20
HASH_LENGTH = 32
WORD_LENGTH = 32

# Selector of the ERC-20 ``balanceOf(address)`` function.
BALANCE_OF_SELECTOR = bytes.fromhex("70a08231")


def _hex_to_fixed(value, length):
    """Decode a hex string and fit it to ``length`` bytes.

    Longer input keeps its last bytes, shorter input is padded on the left.
    """
    text = str(value)
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) % 2:
        text = "0" + text
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"invalid hex value: {value!r}") from None
    raw = raw[-length:] if len(raw) > length else raw.rjust(length, b"\0")
    return raw


def _hex_to_address(value):
    return "0x" + _hex_to_fixed(value, ADDRESS_LENGTH).hex()


def _hex_to_hash(value):
    return "0x" + _hex_to_fixed(value, HASH_LENGTH).hex()


def _pack_balance_of(address):
    return BALANCE_OF_SELECTOR + _hex_to_fixed(address, ADDRESS_LENGTH).rjust(
        WORD_LENGTH, b"\0"
    )


class EthRpc:
    """Calls the wallet needs, made through an :class:`EthClient`."""

    def __init__(self, client):
        self.client = client
        self._network_id = 0

    def block_number(self):
        """Return the latest block number."""
        return int(self.client.block_number())

    def block_by_num(self, block_num):
        """Return the full block at a number."""
        return self.client.block_by_number(int(block_num))

    def nonce_at(self, address):
        """Return the nonce of an address at the latest block."""
        return int(self.client.nonce_at(_hex_to_address(address), None))

    def network_id(self):
        """Return the network id; it is fetched once and then remembered."""
        if self._network_id != 0:
            return self._network_id
        self._network_id = int(self.client.network_id())
        return self._network_id

    def send_transaction(self, raw_tx):
        """Submit a signed, encoded transaction."""
        return self.client.send_transaction(raw_tx)

    def transaction_by_hash(self, tx_hash):
        """Return a mined transaction, or None while it is still pending."""
        tx, is_pending = self.client.transaction_by_hash(_hex_to_hash(tx_hash))
        if is_pending:
            return None
        return tx

    def transaction_receipt(self, tx_hash):
        """Return the receipt of a mined transaction."""
        return self.client.transaction_receipt(_hex_to_hash(tx_hash))

    def balance_at(self, address):
        """Return the wei balance of an address at the latest block."""
        return self.client.balance_at(_hex_to_address(address), None)

    def filter_logs(self, start_block, end_block, contract_addresses, event_id):
        """Return logs of one event emitted by the given contracts in a block range."""
        addresses = [_hex_to_address(address) for address in contract_addresses]
        query = FilterQuery(
            from_block=int(start_block),
            to_block=int(end_block),
            addresses=addresses or None,
            topics=[[_hex_to_hash(event_id)]],
        )
        return self.client.filter_logs(query)

    def token_balance(self, token_address, address):
        """Return the ERC-20 token balance of an address."""
        owner = _hex_to_address(address)
        msg = CallMsg(
            from_address=owner,
            to=_hex_to_address(token_address),
            value=None,
            data=_pack_balance_of(address),
        )
        out = self.client.call_contract(msg, None)
        if len(out) < WORD_LENGTH:
            raise ValueError("error call res")
        return int.from_bytes(out[:WORD_LENGTH], "big")