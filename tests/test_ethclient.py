import json

import pytest
import responses

from dcwallet.ethclient import (
    EMPTY_ROOT_HASH,
    EMPTY_UNCLE_HASH,
    ZERO_HASH,
    CallMsg,
    EthClient,
    EthRpcError,
    FilterQuery,
    NotFoundError,
    SyncProgress,
    to_block_num_arg,
    to_call_arg,
    to_filter_arg,
)

URL = "http://localhost:8545"
BLOCK_HASH = "0x" + "ab" * 32
OTHER_HASH = "0x" + "cd" * 32


class _Err:
    def __init__(self, code, message):
        self.code = code
        self.message = message


class FakeNode:
    def __init__(self):
        self.results = {}
        self.requests = []

    def __call__(self, request):
        payload = json.loads(request.body)

        def answer(item):
            self.requests.append(item)
            res = self.results[item["method"]]
            if callable(res):
                res = res(*item["params"])
            if isinstance(res, _Err):
                return {
                    "jsonrpc": "2.0",
                    "id": item["id"],
                    "error": {"code": res.code, "message": res.message},
                }
            return {"jsonrpc": "2.0", "id": item["id"], "result": res}

        if isinstance(payload, list):
            out = [answer(item) for item in payload]
        else:
            out = answer(payload)
        return 200, {}, json.dumps(out)


@pytest.fixture
def node():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        fake = FakeNode()
        rsps.add_callback(
            responses.POST, URL, callback=fake, content_type="application/json"
        )
        yield fake


@pytest.fixture
def client():
    return EthClient(URL)


def test_to_block_num_arg():
    assert to_block_num_arg(None) == "latest"
    assert to_block_num_arg(-1) == "pending"
    assert to_block_num_arg(0) == "0x0"
    assert int(to_block_num_arg(123456), 16) == 123456


def test_to_filter_arg_defaults():
    arg = to_filter_arg(FilterQuery(addresses=["0x01"], topics=[["0x02"]]))
    assert arg == {
        "address": ["0x01"],
        "topics": [["0x02"]],
        "fromBlock": "0x0",
        "toBlock": "latest",
    }


def test_to_filter_arg_block_hash_conflict():
    with pytest.raises(ValueError):
        to_filter_arg(FilterQuery(block_hash=BLOCK_HASH, from_block=1))
    arg = to_filter_arg(FilterQuery(block_hash=BLOCK_HASH))
    assert arg["blockHash"] == BLOCK_HASH
    assert "fromBlock" not in arg


def test_to_call_arg():
    minimal = to_call_arg(CallMsg(to="0x01"))
    assert set(minimal) == {"from", "to"}
    full = to_call_arg(CallMsg(to="0x01", data=b"\x01\x02", value=10, gas=21000))
    assert full["data"] == "0x0102"
    assert int(full["value"], 16) == 10
    assert int(full["gas"], 16) == 21000


def test_chain_id_and_block_number(node, client):
    node.results["eth_chainId"] = "0x1"
    node.results["eth_blockNumber"] = hex(500)
    assert client.chain_id() == 1
    assert client.block_number() == 500
    assert [r["method"] for r in node.requests] == ["eth_chainId", "eth_blockNumber"]


def test_rpc_error(node, client):
    node.results["eth_gasPrice"] = _Err(-32000, "boom")
    with pytest.raises(EthRpcError) as info:
        client.suggest_gas_price()
    assert info.value.code == -32000
    assert info.value.message == "boom"


def test_header_not_found(node, client):
    node.results["eth_getBlockByHash"] = None
    with pytest.raises(NotFoundError):
        client.header_by_hash(BLOCK_HASH)


def test_transaction_by_hash(node, client):
    tx = {"hash": OTHER_HASH, "r": "0x1", "blockNumber": None}
    node.results["eth_getTransactionByHash"] = tx
    got, pending = client.transaction_by_hash(OTHER_HASH)
    assert got == tx
    assert pending is True


def test_transaction_without_signature(node, client):
    node.results["eth_getTransactionByHash"] = {"hash": OTHER_HASH, "blockNumber": "0x1"}
    with pytest.raises(ValueError):
        client.transaction_by_hash(OTHER_HASH)


def test_transaction_sender_cached(node, client):
    tx = {"hash": OTHER_HASH, "from": "0xbb", "blockHash": BLOCK_HASH}
    assert client.transaction_sender(tx, BLOCK_HASH, 0) == "0xbb"
    assert node.requests == []


def test_transaction_sender_lookup(node, client):
    node.results["eth_getTransactionByBlockHashAndIndex"] = {
        "hash": OTHER_HASH,
        "from": "0xcc",
    }
    tx = {"hash": OTHER_HASH}
    assert client.transaction_sender(tx, ZERO_HASH, 2) == "0xcc"
    assert node.requests[0]["params"] == [ZERO_HASH, "0x2"]
    with pytest.raises(ValueError):
        client.transaction_sender({"hash": BLOCK_HASH}, ZERO_HASH, 2)


def test_network_id(node, client):
    node.results["net_version"] = "5"
    assert client.network_id() == 5
    node.results["net_version"] = "abc"
    with pytest.raises(ValueError):
        client.network_id()


def test_sync_progress(node, client):
    node.results["eth_syncing"] = False
    assert client.sync_progress() is None
    node.results["eth_syncing"] = {
        "startingBlock": "0x1",
        "currentBlock": "0x2",
        "highestBlock": "0x3",
    }
    assert client.sync_progress() == SyncProgress(1, 2, 3, 0, 0)


def test_balance_and_code(node, client):
    node.results["eth_getBalance"] = hex(10**18)
    node.results["eth_getCode"] = "0x6001"
    assert client.balance_at("0x01") == 10**18
    assert node.requests[-1]["params"] == ["0x01", "latest"]
    assert client.pending_code_at("0x01") == b"\x60\x01"
    assert node.requests[-1]["params"] == ["0x01", "pending"]


def test_block_with_uncles(node, client):
    node.results["eth_getBlockByHash"] = {
        "hash": BLOCK_HASH,
        "sha3Uncles": OTHER_HASH,
        "transactionsRoot": EMPTY_ROOT_HASH,
        "uncles": [OTHER_HASH],
        "transactions": [],
    }
    node.results["eth_getUncleByBlockHashAndIndex"] = lambda h, i: {"hash": h, "index": i}
    block = client.block_by_hash(BLOCK_HASH)
    assert block["uncleHeaders"] == [{"hash": BLOCK_HASH, "index": "0x0"}]


def test_block_inconsistent_uncles(node, client):
    node.results["eth_getBlockByNumber"] = {
        "hash": BLOCK_HASH,
        "sha3Uncles": EMPTY_UNCLE_HASH,
        "transactionsRoot": EMPTY_ROOT_HASH,
        "uncles": [OTHER_HASH],
        "transactions": [],
    }
    with pytest.raises(ValueError):
        client.block_by_number(7)
    assert node.requests[0]["params"] == ["0x7", True]


def test_filter_logs_and_send(node, client):
    node.results["eth_getLogs"] = [{"data": "0x"}]
    node.results["eth_sendRawTransaction"] = OTHER_HASH
    logs = client.filter_logs(FilterQuery(from_block=1, to_block=2))
    assert logs == [{"data": "0x"}]
    assert node.requests[0]["params"][0]["fromBlock"] == "0x1"
    assert client.send_transaction(b"\xf8\x01") == OTHER_HASH
    assert node.requests[1]["params"] == ["0xf801"]