"""JSON-RPC client for an Ethereum node."""

import itertools
import json
from dataclasses import dataclass, field

import requests

DEFAULT_TIMEOUT = 60

ZERO_ADDRESS = "0x" + "00" * 20
ZERO_HASH = "0x" + "00" * 32
EMPTY_UNCLE_HASH = "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347"
EMPTY_ROOT_HASH = "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"


class EthRpcError(Exception):
    """Error object returned by the node for a call."""

    def __init__(self, code, message, data=None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"{code}: {message}")


class NotFoundError(LookupError):
    """The requested object does not exist on the node."""

    def __init__(self, message="not found"):
        super().__init__(message)


@dataclass
class FilterQuery:
    """Options for a log filter."""

    block_hash: str | None = None
    from_block: int | None = None
    to_block: int | None = None
    addresses: list | None = None
    topics: list | None = None


@dataclass
class CallMsg:
    """Arguments of a contract call or gas estimate."""

    from_address: str = ZERO_ADDRESS
    to: str | None = None
    gas: int = 0
    gas_price: int | None = None
    value: int | None = None
    data: bytes = field(default=b"")


@dataclass(frozen=True)
class SyncProgress:
    """Progress of a node that is catching up with the chain."""

    starting_block: int
    current_block: int
    highest_block: int
    pulled_states: int
    known_states: int


def _encode_int(number):
    number = int(number)
    if number < 0:
        return "-" + hex(-number)
    return hex(number)


def _decode_int(value):
    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise ValueError(f"invalid hex quantity: {value!r}")
    return int(value, 16)


def _decode_bytes(value):
    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise ValueError(f"invalid hex data: {value!r}")
    return bytes.fromhex(value[2:])


def _same_hash(a, b):
    return a is not None and b is not None and str(a).lower() == str(b).lower()


def to_block_num_arg(number):
    """Return the block parameter for a block number; None means latest."""
    if number is None:
        return "latest"
    if number == -1:
        return "pending"
    return _encode_int(number)


def to_filter_arg(query):
    """Return the ``eth_getLogs`` argument for a filter query."""
    arg = {"address": query.addresses, "topics": query.topics}
    if query.block_hash is not None:
        arg["blockHash"] = query.block_hash
        if query.from_block is not None or query.to_block is not None:
            raise ValueError("cannot specify both BlockHash and FromBlock/ToBlock")
    else:
        if query.from_block is None:
            arg["fromBlock"] = "0x0"
        else:
            arg["fromBlock"] = to_block_num_arg(query.from_block)
        arg["toBlock"] = to_block_num_arg(query.to_block)
    return arg


def to_call_arg(msg):
    """Return the call object for ``eth_call`` and ``eth_estimateGas``."""
    arg = {"from": msg.from_address, "to": msg.to}
    if msg.data:
        arg["data"] = "0x" + bytes(msg.data).hex()
    if msg.value is not None:
        arg["value"] = _encode_int(msg.value)
    if msg.gas:
        arg["gas"] = _encode_int(msg.gas)
    if msg.gas_price is not None:
        arg["gasPrice"] = _encode_int(msg.gas_price)
    return arg


class EthClient:
    """Typed wrappers around the Ethereum JSON-RPC API over HTTP."""

    def __init__(self, url, session=None, timeout=DEFAULT_TIMEOUT):
        self.url = url
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self._ids = itertools.count(1)

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()

    def _post(self, payload):
        resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        return json.loads(resp.content)

    @staticmethod
    def _result(answer):
        error = answer.get("error")
        if error is not None:
            raise EthRpcError(error.get("code"), error.get("message"), error.get("data"))
        return answer.get("result")

    def call(self, method, *args):
        """Call a JSON-RPC method and return its result."""
        answer = self._post(
            {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(args)}
        )
        return self._result(answer)

    def _batch(self, calls):
        requests_ = [
            {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(args)}
            for method, args in calls
        ]
        answers = {item.get("id"): item for item in self._post(requests_)}
        results = []
        for request in requests_:
            answer = answers.get(request["id"])
            if answer is None:
                raise ValueError(f"missing batch response for id {request['id']}")
            results.append(self._result(answer))
        return results

    # --- blockchain access ---

    def chain_id(self):
        """Return the chain id used for replay protection."""
        return _decode_int(self.call("eth_chainId"))

    def block_by_hash(self, block_hash):
        """Return the full block with this hash; uncle headers are under ``uncleHeaders``."""
        return self._get_block("eth_getBlockByHash", block_hash, True)

    def block_by_number(self, number):
        """Return the full block at this number; None means the latest."""
        return self._get_block("eth_getBlockByNumber", to_block_num_arg(number), True)

    def block_number(self):
        """Return the most recent block number."""
        return _decode_int(self.call("eth_blockNumber"))

    def _get_block(self, method, *args):
        raw = self.call(method, *args)
        if not raw:
            raise NotFoundError()
        uncle_hashes = list(raw.get("uncles") or [])
        transactions = list(raw.get("transactions") or [])
        uncle_hash = str(raw.get("sha3Uncles", "")).lower()
        tx_root = str(raw.get("transactionsRoot", "")).lower()
        if uncle_hash == EMPTY_UNCLE_HASH and uncle_hashes:
            raise ValueError(
                "server returned non-empty uncle list but block header indicates no uncles"
            )
        if uncle_hash != EMPTY_UNCLE_HASH and not uncle_hashes:
            raise ValueError(
                "server returned empty uncle list but block header indicates uncles"
            )
        if tx_root == EMPTY_ROOT_HASH and transactions:
            raise ValueError(
                "server returned non-empty transaction list but block header "
                "indicates no transactions"
            )
        if tx_root != EMPTY_ROOT_HASH and not transactions:
            raise ValueError(
                "server returned empty transaction list but block header "
                "indicates transactions"
            )
        uncles = []
        if uncle_hashes:
            uncles = self._batch(
                [
                    ("eth_getUncleByBlockHashAndIndex", (raw.get("hash"), _encode_int(i)))
                    for i in range(len(uncle_hashes))
                ]
            )
            for i, uncle in enumerate(uncles):
                if uncle is None:
                    raise ValueError(
                        f"got null header for uncle {i} of block {raw.get('hash')}"
                    )
        block = dict(raw)
        block["transactions"] = transactions
        block["uncleHeaders"] = uncles
        return block

    def header_by_hash(self, block_hash):
        """Return the header of the block with this hash."""
        head = self.call("eth_getBlockByHash", block_hash, False)
        if head is None:
            raise NotFoundError()
        return head

    def header_by_number(self, number):
        """Return the header at this number; None means the latest."""
        head = self.call("eth_getBlockByNumber", to_block_num_arg(number), False)
        if head is None:
            raise NotFoundError()
        return head

    @staticmethod
    def _check_signed(tx):
        if tx is None:
            raise NotFoundError()
        if tx.get("r") is None:
            raise ValueError("server returned transaction without signature")
        return tx

    def transaction_by_hash(self, tx_hash):
        """Return ``(transaction, is_pending)`` for a transaction hash."""
        tx = self._check_signed(self.call("eth_getTransactionByHash", tx_hash))
        return tx, tx.get("blockNumber") is None

    def transaction_sender(self, tx, block_hash, index):
        """Return the sender of a transaction included at ``block_hash`` and ``index``.

        A sender reported by the node for the same block is used without a call.
        """
        if (
            not _same_hash(block_hash, ZERO_HASH)
            and tx.get("from") is not None
            and _same_hash(tx.get("blockHash"), block_hash)
        ):
            return tx["from"]
        meta = self.call(
            "eth_getTransactionByBlockHashAndIndex", block_hash, _encode_int(index)
        ) or {}
        meta_hash = meta.get("hash")
        if meta_hash is None or _same_hash(meta_hash, ZERO_HASH) or not _same_hash(
            meta_hash, tx.get("hash")
        ):
            raise ValueError("wrong inclusion block/index")
        return meta.get("from")

    def transaction_count(self, block_hash):
        """Return the number of transactions in a block."""
        return _decode_int(self.call("eth_getBlockTransactionCountByHash", block_hash))

    def transaction_in_block(self, block_hash, index):
        """Return the transaction at ``index`` in a block."""
        return self._check_signed(
            self.call("eth_getTransactionByBlockHashAndIndex", block_hash, _encode_int(index))
        )

    def transaction_receipt(self, tx_hash):
        """Return the receipt of a mined transaction."""
        receipt = self.call("eth_getTransactionReceipt", tx_hash)
        if receipt is None:
            raise NotFoundError()
        return receipt

    def sync_progress(self):
        """Return the sync progress, or None when the node is not syncing."""
        raw = self.call("eth_syncing")
        if isinstance(raw, bool):
            return None
        if not isinstance(raw, dict):
            raise ValueError(f"invalid eth_syncing result {raw!r}")

        def read(name):
            value = raw.get(name)
            return 0 if value is None else _decode_int(value)

        return SyncProgress(
            starting_block=read("startingBlock"),
            current_block=read("currentBlock"),
            highest_block=read("highestBlock"),
            pulled_states=read("pulledStates"),
            known_states=read("knownStates"),
        )

    # --- state access ---

    def network_id(self):
        """Return the network id."""
        version = self.call("net_version")
        try:
            return int(str(version), 10)
        except ValueError:
            raise ValueError(f"invalid net_version result {json.dumps(version)}") from None

    def balance_at(self, account, block_number=None):
        """Return the wei balance of an account."""
        return _decode_int(self.call("eth_getBalance", account, to_block_num_arg(block_number)))

    def storage_at(self, account, key, block_number=None):
        """Return a contract storage slot."""
        return _decode_bytes(
            self.call("eth_getStorageAt", account, key, to_block_num_arg(block_number))
        )

    def code_at(self, account, block_number=None):
        """Return the contract code of an account."""
        return _decode_bytes(self.call("eth_getCode", account, to_block_num_arg(block_number)))

    def nonce_at(self, account, block_number=None):
        """Return the nonce of an account."""
        return _decode_int(
            self.call("eth_getTransactionCount", account, to_block_num_arg(block_number))
        )

    def filter_logs(self, query):
        """Return the logs matching a filter query."""
        return list(self.call("eth_getLogs", to_filter_arg(query)) or [])

    # --- pending state ---

    def pending_balance_at(self, account):
        """Return the wei balance of an account in the pending state."""
        return _decode_int(self.call("eth_getBalance", account, "pending"))

    def pending_storage_at(self, account, key):
        """Return a contract storage slot in the pending state."""
        return _decode_bytes(self.call("eth_getStorageAt", account, key, "pending"))

    def pending_code_at(self, account):
        """Return the contract code of an account in the pending state."""
        return _decode_bytes(self.call("eth_getCode", account, "pending"))

    def pending_nonce_at(self, account):
        """Return the nonce to use for the account's next transaction."""
        return _decode_int(self.call("eth_getTransactionCount", account, "pending"))

    def pending_transaction_count(self):
        """Return the number of transactions in the pending state."""
        return _decode_int(self.call("eth_getBlockTransactionCountByNumber", "pending"))

    # --- contract calling ---

    def call_contract(self, msg, block_number=None):
        """Run a message call without creating a transaction."""
        return _decode_bytes(self.call("eth_call", to_call_arg(msg), to_block_num_arg(block_number)))

    def pending_call_contract(self, msg):
        """Run a message call against the pending state."""
        return _decode_bytes(self.call("eth_call", to_call_arg(msg), "pending"))

    def suggest_gas_price(self):
        """Return the suggested gas price."""
        return _decode_int(self.call("eth_gasPrice"))

    def suggest_gas_tip_cap(self):
        """Return the suggested priority fee per gas."""
        return _decode_int(self.call("eth_maxPriorityFeePerGas"))

    def estimate_gas(self, msg):
        """Return the estimated gas needed for a message."""
        return _decode_int(self.call("eth_estimateGas", to_call_arg(msg)))

    def send_transaction(self, raw_tx):
        """Submit a signed, encoded transaction; returns the node's result."""
        return self.call("eth_sendRawTransaction", "0x" + bytes(raw_tx).hex())