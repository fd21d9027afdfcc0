import json

import pytest
import responses

from dcwallet.ethclient import EthClient, NotFoundError
from dcwallet.ethrpc import EthRpc

URL = "http://localhost:8545"
OWNER = "0x" + "ab" * 20
TOKEN = "0x" + "cd" * 20
TX_HASH = "0x" + "12" * 32


@pytest.fixture
def node():
    """Register a fake JSON-RPC node; returns (rpc, handlers, seen requests)."""
    handlers = {}
    seen = []

    def callback(request):
        payload = json.loads(request.body)
        seen.append(payload)
        handler = handlers[payload["method"]]
        result = handler(payload["params"]) if callable(handler) else handler
        body = {"jsonrpc": "2.0", "id": payload["id"], "result": result}
        return 200, {"Content-Type": "application/json"}, json.dumps(body)

    with responses.RequestsMock() as mock:
        mock.add_callback(responses.POST, URL, callback=callback)
        yield EthRpc(EthClient(URL)), handlers, seen


def test_block_number(node):
    rpc, handlers, _ = node
    handlers["eth_blockNumber"] = hex(1234)
    assert rpc.block_number() == 1234


def test_network_id_is_cached(node):
    rpc, handlers, seen = node
    handlers["net_version"] = "5"
    assert rpc.network_id() == 5
    assert rpc.network_id() == 5
    assert [call["method"] for call in seen] == ["net_version"]


def test_nonce_at_normalizes_address(node):
    rpc, handlers, seen = node
    handlers["eth_getTransactionCount"] = hex(7)
    assert rpc.nonce_at(OWNER.upper().replace("0X", "0x")) == 7
    assert seen[0]["params"] == [OWNER, "latest"]


def test_nonce_at_pads_short_address(node):
    rpc, handlers, seen = node
    handlers["eth_getTransactionCount"] = hex(0)
    rpc.nonce_at("0x1")
    assert seen[0]["params"][0] == "0x" + "00" * 19 + "01"


def test_balance_at(node):
    rpc, handlers, seen = node
    handlers["eth_getBalance"] = hex(10**18)
    assert rpc.balance_at(OWNER) == 10**18
    assert seen[0]["params"] == [OWNER, "latest"]


def test_transaction_by_hash_pending_is_none(node):
    rpc, handlers, _ = node
    handlers["eth_getTransactionByHash"] = {"hash": TX_HASH, "r": "0x1", "blockNumber": None}
    assert rpc.transaction_by_hash(TX_HASH) is None


def test_transaction_by_hash_mined(node):
    rpc, handlers, seen = node
    tx = {"hash": TX_HASH, "r": "0x1", "blockNumber": hex(3)}
    handlers["eth_getTransactionByHash"] = tx
    assert rpc.transaction_by_hash(TX_HASH) == tx
    assert seen[0]["params"] == [TX_HASH]


def test_transaction_receipt_missing_raises(node):
    rpc, handlers, _ = node
    handlers["eth_getTransactionReceipt"] = None
    with pytest.raises(NotFoundError):
        rpc.transaction_receipt(TX_HASH)


def test_transaction_receipt_found(node):
    rpc, handlers, _ = node
    receipt = {"transactionHash": TX_HASH, "status": "0x1"}
    handlers["eth_getTransactionReceipt"] = receipt
    assert rpc.transaction_receipt(TX_HASH) == receipt


def test_send_transaction_encodes_raw(node):
    rpc, handlers, seen = node
    handlers["eth_sendRawTransaction"] = TX_HASH
    assert rpc.send_transaction(b"\x01\x02") == TX_HASH
    assert seen[0]["params"] == ["0x0102"]


def test_filter_logs_builds_query(node):
    rpc, handlers, seen = node
    logs = [{"address": TOKEN, "data": "0x"}]
    handlers["eth_getLogs"] = logs
    assert rpc.filter_logs(10, 20, [TOKEN], TX_HASH) == logs
    arg = seen[0]["params"][0]
    assert arg["fromBlock"] == hex(10)
    assert arg["toBlock"] == hex(20)
    assert arg["address"] == [TOKEN]
    assert arg["topics"] == [[TX_HASH]]


def test_token_balance(node):
    rpc, handlers, seen = node
    handlers["eth_call"] = "0x" + (42).to_bytes(32, "big").hex()
    assert rpc.token_balance(TOKEN, OWNER) == 42
    call, block = seen[0]["params"]
    assert block == "latest"
    assert call["to"] == TOKEN
    assert call["from"] == OWNER
    assert call["data"] == "0x70a08231" + "00" * 12 + "ab" * 20


def test_token_balance_empty_result_raises(node):
    rpc, handlers, _ = node
    handlers["eth_call"] = "0x"
    with pytest.raises(ValueError):
        rpc.token_balance(TOKEN, OWNER)


def test_invalid_address_raises():
    rpc = EthRpc(EthClient(URL))
    with pytest.raises(ValueError):
        rpc.nonce_at("0xzz")