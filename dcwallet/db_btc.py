"""Queries for bitcoin unspent outputs, sends, deposits and omni tokens."""

from .db_core import execute_count, execute_many_count, fetch_all, fetch_one
from .values import UxtoType


def _select(cols, rest):
    return "SELECT\n" + ",\n".join(cols) + rest


def _update_by_ids(conn, table, ids, row, fields):
    ids = list(ids)
    if not ids:
        return 0
    assignments = ",\n".join(f"    {name}=:{name}" for name in fields)
    params = {name: row[name] for name in fields}
    params["ids"] = ids
    return execute_count(
        conn,
        f"UPDATE\n\t{table}\nSET\n{assignments}\nWHERE\n\tid IN (:ids)",
        params,
    )


_HANDLE_TIME = ("handle_status", "handle_msg", "handle_time")
_HANDLE_AT = ("handle_status", "handle_msg", "handle_at")
_ORG_AT = ("org_status", "org_msg", "org_at")

_VALUE_ORDER = "CAST(vout_value as DECIMAL(65,8))"


# --- t_tx_btc_uxto ---


def select_uxtos_by_tx_ids(conn, cols, tx_ids):
    """Return unspent outputs belonging to the given transaction ids."""
    cols = list(cols)
    if not cols:
        return []
    return fetch_all(
        conn,
        _select(cols, "\nFROM\n\tt_tx_btc_uxto\nWHERE\n\ttx_id IN (:tx_ids)"),
        {"tx_ids": list(tx_ids)},
    )


_UXTO_COLUMNS = (
    "id",
    "uxto_type",
    "block_hash",
    "tx_id",
    "vout_n",
    "vout_address",
    "vout_value",
    "vout_script",
    "create_time",
    "spend_tx_id",
    "spend_n",
    "handle_status",
    "handle_msg",
    "handle_time",
)


def create_many_uxtos(conn, rows):
    """Insert or update several unspent outputs; returns the affected row count.

    The block hash is refreshed on conflict only when the first row has one.
    """
    rows = list(rows)
    if not rows:
        return 0
    values = [[row[name] for name in _UXTO_COLUMNS] for row in rows]
    updates = ["spend_tx_id", "spend_n", "handle_status", "handle_msg", "handle_time"]
    if rows[0].get("block_hash"):
        updates.insert(0, "block_hash")
    column_list = ",\n".join(f"    {name}" for name in _UXTO_COLUMNS)
    update_list = ",\n".join(f"\t{name}=VALUES({name})" for name in updates)
    query = (
        f"INSERT INTO t_tx_btc_uxto (\n{column_list}\n) VALUES\n    %s\n"
        f"ON DUPLICATE KEY UPDATE \n{update_list}"
    )
    return execute_many_count(conn, query, values)


def select_uxtos_to_org_for_update(conn, cols, uxto_type):
    """Lock and return unhandled outputs of a type for collection."""
    order = "\tid" if uxto_type == UxtoType.TX else f"\t{_VALUE_ORDER} DESC"
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_tx_btc_uxto\nWHERE\n\thandle_status=0\n"
            "\tAND uxto_type=:uxto_type\nORDER BY\n" + order + "\nFOR UPDATE",
        ),
        {"uxto_type": uxto_type},
    )


def _order_for_type(uxto_type):
    if uxto_type == UxtoType.TX:
        return "id"
    if uxto_type in (UxtoType.OMNI, UxtoType.OMNI_HOT):
        return _VALUE_ORDER
    return f"{_VALUE_ORDER} DESC"


def select_uxtos_by_address_for_update(conn, cols, address, uxto_type):
    """Lock and return unhandled outputs of a type at one address."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_tx_btc_uxto\nWHERE\n\tvout_address=:vout_address\n"
            "\tAND handle_status=0\n\tAND uxto_type=:uxto_type\nORDER BY\n "
            + _order_for_type(uxto_type)
            + "\nFOR UPDATE",
        ),
        {"vout_address": address, "uxto_type": uxto_type},
    )


def select_uxtos_by_addresses_for_update(conn, cols, addresses, uxto_type):
    """Lock and return unhandled outputs of a type at several addresses."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_tx_btc_uxto\nWHERE\n\tvout_address IN (:vout_address)\n"
            "\tAND handle_status=0\n\tAND uxto_type=:uxto_type\nORDER BY\n"
            " vout_address, " + _order_for_type(uxto_type) + "\nFOR UPDATE",
        ),
        {"vout_address": list(addresses), "uxto_type": uxto_type},
    )


# --- t_send_btc ---


def select_send_btc_by_status(conn, cols, status):
    """Return outgoing bitcoin transactions in the given state."""
    return fetch_all(
        conn,
        _select(cols, "\nFROM\n\tt_send_btc\nWHERE\n\thandle_status=:handle_status"),
        {"handle_status": status},
    )


def update_send_btc_status(conn, ids, row):
    """Set the handling state of outgoing bitcoin transactions."""
    return _update_by_ids(conn, "t_send_btc", ids, row, _HANDLE_TIME)


# --- t_tx_btc ---


def select_tx_btc_by_status(conn, cols, status):
    """Return bitcoin deposits in the given state."""
    return fetch_all(
        conn,
        _select(cols, "\nFROM\n\tt_tx_btc\nWHERE\n\thandle_status=:handle_status"),
        {"handle_status": status},
    )


def update_tx_btc_status(conn, ids, row):
    """Set the handling state of bitcoin deposits."""
    return _update_by_ids(conn, "t_tx_btc", ids, row, _HANDLE_TIME)


# --- t_app_config_token_btc ---


def select_app_config_tokens_btc(conn, cols):
    """Return all configured omni tokens."""
    return fetch_all(conn, _select(cols, "\nFROM\n\tt_app_config_token_btc"), {})


def select_app_config_tokens_btc_by_indexes(conn, cols, token_indexes):
    """Return configured omni tokens with the given indexes."""
    token_indexes = list(token_indexes)
    if not token_indexes:
        return []
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_app_config_token_btc\nWHERE\n\ttoken_index IN (:token_index)",
        ),
        {"token_index": token_indexes},
    )


# --- t_tx_btc_token ---


def select_tx_btc_tokens_for_org_update(conn, cols, org_status):
    """Lock and return omni deposits with the given collection state."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_tx_btc_token\nWHERE\n\torg_status=:org_status\nFOR UPDATE",
        ),
        {"org_status": org_status},
    )


def select_tx_btc_tokens_by_handle_status(conn, cols, handle_status):
    """Return omni deposits with the given handling state."""
    return fetch_all(
        conn,
        _select(
            cols, "\nFROM\n\tt_tx_btc_token\nWHERE\n\thandle_status=:handle_status"
        ),
        {"handle_status": handle_status},
    )


def update_tx_btc_token_org_status(conn, ids, row):
    """Set the collection state of omni deposits."""
    return _update_by_ids(conn, "t_tx_btc_token", ids, row, _ORG_AT)


def update_tx_btc_token_handle_status(conn, ids, row):
    """Set the handling state of omni deposits."""
    return _update_by_ids(conn, "t_tx_btc_token", ids, row, _HANDLE_AT)


def get_send_btc_pending_balance(conn, address, token_index):
    """Return the omni token amount not yet confirmed as sent from an address."""
    row = fetch_one(
        conn,
        "SELECT \n\tIFNULL(SUM(CAST(value as DECIMAL(65,8))), \"0\")\n"
        "FROM\n\tt_tx_btc_token\nWHERE\n\tfrom_address=:address\n"
        "\tAND token_index=:token_index\n\tAND handle_status<3\nLIMIT 1",
        {"address": address, "token_index": token_index},
    )
    if row is None:
        return "0"
    value = next(iter(row.values()))
    return "0" if value is None else str(value)