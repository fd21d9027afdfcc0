# dcwallet

Building blocks for a wallet service that takes deposits and sends
withdrawals on several chains: the status codes it stores, the SQL it runs,
a database-backed run lock, delivery of callback notifications, and small
JSON-RPC clients for Ethereum and EOS nodes.

## Modules

- `dcwallet.values` – `IntEnum` classes for the codes kept in the database:
  `TxStatus`, `TxOrgStatus`, `SendStatus`, `SendRelationType`,
  `NotifyStatus`, `NotifyType`, `WithdrawStatus`, `UxtoType`,
  `UxtoHandleStatus`.
- `dcwallet.db_core` – the SQL layer and the queries for configuration,
  status values, addresses, locks and token configuration.
- `dcwallet.db_transfers` – queries for deposits (`t_tx`, `t_tx_erc20`,
  `t_tx_eos`), outgoing transactions (`t_send`, `t_send_eos`), withdrawals
  (`t_withdraw`) and product notifications (`t_product_notify`).
- `dcwallet.db_btc` – queries for bitcoin unspent outputs, sends, deposits
  and omni tokens.
- `dcwallet.locking` – run locks kept in `t_app_lock`, and
  `get_address_key_map`.
- `dcwallet.notify` – posting product notifications to their callback URLs.
- `dcwallet.eosclient` – `EosClient`, `EosRpcError`, `PushTransactionArg`.
- `dcwallet.ethclient` – `EthClient` and its helpers.
- `dcwallet.ethrpc` – `EthRpc`, wallet-level calls over an `EthClient`.

## Install

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Database access

Every query function takes a DB-API connection whose driver uses `%s`
placeholders. The statements are written for MySQL (`ON DUPLICATE KEY
UPDATE`, `FOR UPDATE`, `IFNULL`). Queries are written with `:name`
parameters; `expand_named(query, params)` turns them into placeholders and
expands a list value into an `IN (...)` list. Rows come back as dicts keyed
by column name, and update functions take dicts.

The low-level helpers are `fetch_one`, `fetch_all`, `execute_count`,
`execute_last_id` and `execute_many_count`.

```python
from dcwallet.db_core import get_app_config_int, ConfigNotFoundError

try:
    confirmations = get_app_config_int(conn, "min_confirm_num")
except ConfigNotFoundError:
    confirmations = 12
```

Update functions that take a list of ids return 0 without touching the
database when the list is empty.

## Run locks

`get_lock(conn, key)` takes a lock and returns whether it did; a lock held
for more than 30 minutes is treated as stale and taken over.
`release_lock(conn, key)` frees it. `held_lock` is a context manager that
yields whether the lock was taken and releases it afterwards; errors while
taking or releasing are logged, not raised. `lock_wrap` runs a function
under the lock and returns whether it ran.

```python
from dcwallet.locking import held_lock, lock_wrap

with held_lock(conn, "CheckDoNotify") as acquired:
    if acquired:
        ...

lock_wrap(conn, "CheckAddressFree", check_address_free)
```

## Notifications

`check_do_notify(conn, session=None)` runs under the `CheckDoNotify` lock.
It posts new notifications and retries failed ones last updated more than
ten minutes ago, and returns a dict of notification id to the
`NotifyStatus` it ended in (empty when the lock was not taken). A
notification passes when the endpoint answers HTTP 200 with a JSON object
that has an `error` key; otherwise it is marked failed with the reason.
`deliver_notify(conn, row, session=None)` handles a single row.

```python
import requests
from dcwallet.notify import check_do_notify

results = check_do_notify(conn, requests.Session())
```

## Chain clients

```python
from dcwallet.ethclient import EthClient
from dcwallet.ethrpc import EthRpc

rpc = EthRpc(EthClient("http://localhost:8545"))
height = rpc.block_number()
balance = rpc.balance_at("0x0000000000000000000000000000000000000001")
```

`EthClient.call(method, *args)` makes any JSON-RPC call; the typed methods
decode hex quantities to `int` and hex data to `bytes`. Blocks,
transactions and receipts are returned as the node's JSON dicts; a full
block also carries its uncle headers under `uncleHeaders`.
`transaction_by_hash` returns `(transaction, is_pending)`. `EthRpc` caches
the network id after the first call, returns `None` from
`transaction_by_hash` while a transaction is pending, and reads ERC-20
balances with `token_balance`.

```python
from dcwallet.eosclient import EosClient, EosRpcError

eos = EosClient("http://localhost:8888")
info = eos.chain_get_info()
```

`EosClient` methods return the node's response as a dict and raise
`EosRpcError` when the response carries a non-zero `code`. `EthClient`
raises `EthRpcError` for a JSON-RPC error, and `NotFoundError` for a
missing block, header, transaction or receipt.

## What this package does not do

It has no commands, no scheduler that runs the periodic jobs, and no HTTP
API server. It does not create the database schema, generate addresses,
build or sign transactions, or encrypt private keys. The queries assume
the wallet's tables already exist.