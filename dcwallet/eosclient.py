"""Client for the EOS node HTTP RPC."""

import json
from dataclasses import asdict, dataclass, field

import requests

DEFAULT_TIMEOUT = 5 * 60


class EosRpcError(Exception):
    """Error reported by the node in its response body."""

    def __init__(self, payload):
        payload = payload or {}
        inner = payload.get("error") or {}
        self.payload = payload
        self.code = int(payload.get("code") or 0)
        self.message = payload.get("message") or ""
        self.error_code = int(inner.get("code") or 0)
        self.name = inner.get("name") or ""
        self.what = inner.get("what") or ""
        self.details = list(inner.get("details") or [])
        super().__init__(str(self))

    def __str__(self):
        text = f"{self.code}[{self.error_code}] {self.message}-{self.what}"
        if self.details:
            text += f"-{self.details[0].get('message') or ''}"
        return text


@dataclass
class PushTransactionArg:
    """Signed, packed transaction to push to the chain."""

    signatures: list = field(default_factory=list)
    compression: str = ""
    packed_context_free_data: str = ""
    packed_trx: str = ""


class EosClient:
    """Calls the chain and history endpoints of an EOS node."""

    def __init__(self, uri, session=None, timeout=DEFAULT_TIMEOUT):
        self.uri = uri
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _request(self, path, args=None):
        resp = self.session.post(self.uri + path, json=args, timeout=self.timeout)
        payload = json.loads(resp.content)
        if not isinstance(payload, dict):
            raise ValueError("response is not a JSON object")
        if int(payload.get("code") or 0) != 0:
            raise EosRpcError(payload)
        return payload

    def chain_get_info(self):
        """Return the chain information."""
        return self._request("/v1/chain/get_info")

    def chain_get_account(self, account):
        """Return an account's information."""
        return self._request("/v1/chain/get_account", {"account_name": account})

    def chain_get_block(self, block_num):
        """Return a block by number."""
        return self._request("/v1/chain/get_block", {"block_num_or_id": block_num})

    def chain_push_transaction(self, arg):
        """Push a signed transaction and return the node's result."""
        if isinstance(arg, PushTransactionArg):
            arg = asdict(arg)
        return self._request("/v1/chain/push_transaction", dict(arg))

    def history_get_transaction(self, tx_id):
        """Return a transaction from the history plugin."""
        return self._request("/v1/history/get_transaction", {"id": tx_id})