"""Queries for deposits, outgoing transactions, withdrawals and notifications."""

from .db_core import execute_count, execute_many_count, fetch_all, fetch_one


def _select(cols, rest):
    return "SELECT\n" + ",\n".join(cols) + rest


def _pick(row, names):
    return {name: row[name] for name in names}


def _update_by_ids(conn, table, ids, row, fields):
    """Set ``fields`` from ``row`` on every row of ``table`` whose id is in ``ids``."""
    ids = list(ids)
    if not ids:
        return 0
    assignments = ",\n".join(f"    {name}=:{name}" for name in fields)
    params = _pick(row, fields)
    params["ids"] = ids
    return execute_count(
        conn,
        f"UPDATE\n\t{table}\nSET\n{assignments}\nWHERE\n\tid IN (:ids)",
        params,
    )


def _select_by_handle_status(conn, table, cols, status, order=""):
    return fetch_all(
        conn,
        _select(
            cols,
            f"\nFROM\n\t{table}\nWHERE\n\thandle_status=:handle_status{order}",
        ),
        {"handle_status": status},
    )


_HANDLE_TIME = ("handle_status", "handle_msg", "handle_time")
_HANDLE_AT = ("handle_status", "handle_msg", "handle_at")
_ORG_TIME = ("org_status", "org_msg", "org_time")


# --- t_tx ---


def select_tx_for_org_update(conn, cols, org_status):
    """Lock and return deposits with the given collection state."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_tx\nWHERE\n\torg_status=:org_status\nFOR UPDATE",
        ),
        {"org_status": org_status},
    )


def update_tx_org_status(conn, ids, row):
    """Set the collection state of deposits."""
    return _update_by_ids(conn, "t_tx", ids, row, _ORG_TIME)


def update_tx_status(conn, ids, row):
    """Set the handling state of deposits."""
    return _update_by_ids(conn, "t_tx", ids, row, _HANDLE_TIME)


def select_tx_by_status(conn, cols, status):
    """Return deposits with the given handling state."""
    return _select_by_handle_status(conn, "t_tx", cols, status)


# --- t_tx_erc20 ---


def update_tx_erc20_status(conn, ids, row):
    """Set the handling state of token deposits."""
    return _update_by_ids(conn, "t_tx_erc20", ids, row, _HANDLE_TIME)


def select_tx_erc20_by_status(conn, cols, status):
    """Return token deposits with the given handling state."""
    return _select_by_handle_status(conn, "t_tx_erc20", cols, status)


def select_tx_erc20_for_org_update(conn, cols, org_statuses):
    """Lock and return token deposits in any of the given collection states."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_tx_erc20\nWHERE\n\torg_status IN (:org_status)\nFOR UPDATE",
        ),
        {"org_status": list(org_statuses)},
    )


def update_tx_erc20_org_status(conn, ids, row):
    """Set the collection state of token deposits."""
    return _update_by_ids(conn, "t_tx_erc20", ids, row, _ORG_TIME)


# --- t_tx_eos ---


def update_tx_eos_status(conn, ids, row):
    """Set the handling state of eos deposits."""
    return _update_by_ids(conn, "t_tx_eos", ids, row, _HANDLE_AT)


def select_tx_eos_by_status(conn, cols, status):
    """Return eos deposits with the given handling state."""
    return _select_by_handle_status(conn, "t_tx_eos", cols, status)


# --- t_send / t_send_eos ---


def _first_value(row):
    if row is None:
        return None
    return next(iter(row.values()))


def get_send_max_nonce(conn, address):
    """Return the next nonce to use for an address, from sent transactions."""
    row = fetch_one(
        conn,
        "SELECT \n\tIFNULL(MAX(nonce), -1)\nFROM\n\tt_send\n"
        "WHERE\n\tfrom_address=:address\nLIMIT 1",
        {"address": address},
    )
    if row is None:
        return 0
    return int(_first_value(row)) + 1


def _pending_balance(conn, query, address):
    row = fetch_one(conn, query, {"address": address})
    value = _first_value(row)
    return "0" if value is None else str(value)


def get_send_pending_balance(conn, address):
    """Return the total amount not yet confirmed as sent from an address."""
    return _pending_balance(
        conn,
        "SELECT \n\tIFNULL(SUM(CAST(balance_real as DECIMAL(65,18))), \"0\")\n"
        "FROM\n\tt_send\nWHERE\n\tfrom_address=:address\n"
        "\tAND handle_status<2\nLIMIT 1",
        address,
    )


def get_send_eos_pending_balance(conn, address):
    """Return the total eos amount not yet confirmed as sent from an address."""
    return _pending_balance(
        conn,
        "SELECT \n\tIFNULL(SUM(CAST(balance_real as DECIMAL(65,4))), \"0\")\n"
        "FROM\n\tt_send_eos\nWHERE\n\tfrom_address=:address\n"
        "\tAND handle_status<2\nLIMIT 1",
        address,
    )


def update_send_status(conn, ids, row):
    """Set the handling state of outgoing transactions."""
    return _update_by_ids(conn, "t_send", ids, row, _HANDLE_TIME)


def update_send_eos_status(conn, ids, row):
    """Set the handling state of outgoing eos transactions."""
    return _update_by_ids(conn, "t_send_eos", ids, row, _HANDLE_AT)


def select_send_by_status(conn, cols, status):
    """Return outgoing transactions with the given state, ordered by id."""
    return _select_by_handle_status(conn, "t_send", cols, status, "\nORDER BY id")


def select_send_eos_by_status(conn, cols, status):
    """Return outgoing eos transactions with the given state, ordered by id."""
    return _select_by_handle_status(
        conn, "t_send_eos", cols, status, "\nORDER BY id"
    )


# --- t_withdraw ---


def _select_withdraws(conn, cols, status, symbols, suffix):
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_withdraw\nWHERE\n\thandle_status=:handle_status\n"
            "\tAND symbol IN (:symbols)" + suffix,
        ),
        {"handle_status": status, "symbols": list(symbols)},
    )


def select_withdraws_by_status(conn, cols, status, symbols):
    """Return withdrawals of the given symbols in the given state."""
    return _select_withdraws(conn, cols, status, symbols, "")


def select_withdraws_by_status_for_update(conn, cols, status, symbols):
    """Lock and return withdrawals of the given symbols in the given state."""
    return _select_withdraws(conn, cols, status, symbols, "\nFOR UPDATE")


def get_withdraw_for_update(conn, cols, withdraw_id, status):
    """Lock and return one withdrawal in the given state, or None."""
    return fetch_one(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_withdraw\nWHERE\n\tid=:id\n"
            "\tAND handle_status=:handle_status\nFOR UPDATE",
        ),
        {"id": withdraw_id, "handle_status": status},
    )


def update_withdraw_gen_tx(conn, row):
    """Record the transaction hash and state of one withdrawal."""
    return execute_count(
        conn,
        "UPDATE\n\tt_withdraw\nSET\n    tx_hash=:tx_hash,\n"
        "    handle_status=:handle_status,\n    handle_msg=:handle_msg,\n"
        "    handle_time=:handle_time\nWHERE\n\tid=:id",
        _pick(row, ("id", "tx_hash") + _HANDLE_TIME),
    )


def update_withdraw_status(conn, ids, row):
    """Set the handling state of withdrawals."""
    return _update_by_ids(conn, "t_withdraw", ids, row, _HANDLE_TIME)


_WITHDRAW_COLUMNS = (
    "product_id",
    "out_serial",
    "to_address",
    "memo",
    "symbol",
    "balance_real",
    "tx_hash",
    "create_time",
    "handle_status",
    "handle_msg",
    "handle_time",
)


def create_many_withdraws(conn, rows):
    """Insert or update several withdrawals; returns the affected row count.

    Ids are written only when the first row carries a positive id.
    """
    rows = list(rows)
    if not rows:
        return 0
    columns = _WITHDRAW_COLUMNS
    if rows[0].get("id", 0) > 0:
        columns = ("id",) + columns
    values = [[row[name] for name in columns] for row in rows]
    column_list = ",\n".join(f"    {name}" for name in columns)
    query = (
        f"INSERT INTO t_withdraw (\n{column_list}\n) VALUES\n    %s\n"
        "ON DUPLICATE KEY UPDATE \n\ttx_hash=VALUES(tx_hash),\n"
        "\thandle_status=VALUES(handle_status),\n"
        "\thandle_msg=VALUES(handle_msg),\n"
        "\thandle_time=VALUES(handle_time)"
    )
    return execute_many_count(conn, query, values)


# --- t_product_notify ---


def select_product_notifies(conn, cols, status, before):
    """Return notifications in the given state last updated before a time."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_product_notify\nWHERE\n\thandle_status=:handle_status\n"
            "\tAND update_time<:update_time",
        ),
        {"handle_status": status, "update_time": before},
    )


def update_product_notify_status(conn, row):
    """Set the delivery state of one notification."""
    return execute_count(
        conn,
        "UPDATE\n\tt_product_notify\nSET\n    handle_status=:handle_status,\n"
        "    handle_msg=:handle_msg,\n    update_time=:update_time\nWHERE\n\tid=:id",
        _pick(row, ("id", "handle_status", "handle_msg", "update_time")),
    )