"""Named-parameter SQL helpers and queries for configuration, addresses and locks."""

import re
from collections.abc import Mapping
from contextlib import closing

_NAMED = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")
_PLACEHOLDER = "%s"


class ConfigNotFoundError(LookupError):
    """Raised when a configuration or status key has no row."""


def expand_named(query, params):
    """Turn ``:name`` parameters into positional placeholders.

    List and tuple values are expanded for ``IN (...)`` clauses.
    Returns the rewritten query and the list of arguments.
    """
    args = []

    def replace(match):
        name = match.group(1)
        if name not in params:
            raise ValueError(f"missing parameter: {name}")
        value = params[name]
        if isinstance(value, (list, tuple)):
            if not value:
                raise ValueError(f"empty sequence for parameter: {name}")
            args.extend(value)
            return ", ".join([_PLACEHOLDER] * len(value))
        args.append(value)
        return _PLACEHOLDER

    return _NAMED.sub(replace, query), args


def _execute(conn, query, params):
    sql, args = expand_named(query, params or {})
    cursor = conn.cursor()
    try:
        cursor.execute(sql, args)
    except BaseException:
        cursor.close()
        raise
    return cursor


def _as_dict(cursor, row):
    if isinstance(row, Mapping):
        return dict(row)
    names = [column[0] for column in cursor.description]
    return dict(zip(names, row))


def fetch_one(conn, query, params):
    """Run a query and return its first row as a dict, or None."""
    with closing(_execute(conn, query, params)) as cursor:
        row = cursor.fetchone()
        if row is None:
            return None
        return _as_dict(cursor, row)


def fetch_all(conn, query, params):
    """Run a query and return all rows as dicts."""
    with closing(_execute(conn, query, params)) as cursor:
        return [_as_dict(cursor, row) for row in cursor.fetchall()]


def execute_count(conn, query, params):
    """Run a statement and return the number of affected rows."""
    with closing(_execute(conn, query, params)) as cursor:
        return cursor.rowcount


def execute_last_id(conn, query, params):
    """Run a statement and return the id of the last inserted row."""
    with closing(_execute(conn, query, params)) as cursor:
        return cursor.lastrowid


def execute_many_count(conn, query, rows):
    """Insert several rows in one statement.

    The query holds a single ``%s`` where the value tuples go.
    Returns the number of affected rows.
    """
    rows = [list(row) for row in rows]
    if not rows:
        return 0
    groups = []
    args = []
    for row in rows:
        groups.append("(" + ", ".join([_PLACEHOLDER] * len(row)) + ")")
        args.extend(row)
    sql = query.replace("%s", ",\n    ".join(groups), 1)
    cursor = conn.cursor()
    with closing(cursor):
        cursor.execute(sql, args)
        return cursor.rowcount


def _scalar(row):
    if row is None:
        return None
    return next(iter(row.values()))


def _select(cols, rest):
    return "SELECT\n" + ",\n".join(cols) + rest


def _get_value(conn, table, k, label):
    row = fetch_one(
        conn,
        f"SELECT\n    v\nFROM\n\t{table}\nWHERE\n\tk=:k\nLIMIT 1",
        {"k": k},
    )
    if row is None:
        raise ConfigNotFoundError(f"no {label} of: {k}")
    return row["v"]


def get_app_config_int(conn, k):
    """Return an integer configuration value."""
    return int(_get_value(conn, "t_app_config_int", k, "app config int"))


def get_app_config_str(conn, k):
    """Return a string configuration value."""
    return str(_get_value(conn, "t_app_config_str", k, "app config str"))


def get_app_status_int(conn, k):
    """Return an integer status value."""
    return int(_get_value(conn, "t_app_status_int", k, "app status int"))


def update_app_status_int(conn, k, v):
    """Set an integer status value."""
    return execute_count(
        conn,
        "UPDATE\n\tt_app_status_int\nSET\n    v=:v\nWHERE\n\tk=:k",
        {"k": k, "v": v},
    )


def update_app_status_int_greater(conn, k, v):
    """Set an integer status value only if it grows."""
    return execute_count(
        conn,
        "UPDATE\n\tt_app_status_int\nSET\n    v=:v\nWHERE\n\tk=:k\n\tAND v<:v",
        {"k": k, "v": v},
    )


def update_app_config_str(conn, k, v):
    """Set a string configuration value."""
    return execute_count(
        conn,
        "UPDATE\n\tt_app_config_str\nSET\n    v=:v\nWHERE\n\tk=:k",
        {"k": k, "v": v},
    )


def get_address_key_free_count(conn, symbol):
    """Count unused addresses of a symbol."""
    row = fetch_one(
        conn,
        "SELECT\n\tIFNULL(COUNT(*), 0)\nFROM\n\tt_address_key\n"
        "WHERE\n\tuse_tag=0\n\tAND symbol=:symbol",
        {"symbol": symbol},
    )
    value = _scalar(row)
    return 0 if value is None else int(value)


def select_address_keys_by_tag_and_symbol(conn, cols, use_tag, symbol):
    """Return address rows with the given tag and symbol, ordered by id."""
    return fetch_all(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_address_key\nWHERE\n\tuse_tag=:use_tag\n"
            "\tAND symbol=:symbol\nORDER BY\n\tid",
        ),
        {"use_tag": use_tag, "symbol": symbol},
    )


def select_address_keys_by_address(conn, cols, addresses):
    """Return address rows for the given addresses."""
    addresses = list(addresses)
    if not addresses:
        return []
    return fetch_all(
        conn,
        _select(cols, "\nFROM\n\tt_address_key\nWHERE\n\taddress IN (:addresses)"),
        {"addresses": addresses},
    )


def get_address_key_by_address(conn, cols, address):
    """Return the row of one address, or None."""
    return fetch_one(
        conn,
        _select(cols, "\nFROM\n\tt_address_key\nWHERE\n\taddress=:address"),
        {"address": address},
    )


def get_free_address_key_for_update(conn, cols, symbol):
    """Lock and return one unused address of a symbol, or None."""
    return fetch_one(
        conn,
        _select(
            cols,
            "\nFROM\n\tt_address_key\nWHERE\n\tuse_tag=0\n\tAND symbol=:symbol\n"
            "LIMIT 1\nFOR UPDATE",
        ),
        {"symbol": symbol},
    )


def get_address_max_int_of_eos(conn):
    """Return the largest numeric eos address, or 0."""
    row = fetch_one(
        conn,
        "SELECT\n\tIFNULL(MAX(CAST(address AS UNSIGNED)),0)\nFROM\n"
        '\tt_address_key\nWHERE\n\tsymbol="eos"',
        {},
    )
    value = _scalar(row)
    if value is None:
        return 0
    return int(str(value), 10)


def get_app_lock(conn, cols, k):
    """Return the active lock row for a key, or None."""
    return fetch_one(
        conn,
        _select(cols, "\nFROM\n\tt_app_lock\nWHERE\n\tk=:k\n\tAND v=1"),
        {"k": k},
    )


def create_app_lock(conn, row):
    """Insert or refresh a lock row; returns the last insert id."""
    if row.get("id", 0) > 0:
        query = (
            "INSERT INTO t_app_lock (\n    id,\n    k,\n    v,\n    create_time\n"
            ") VALUES (\n    :id,\n    :k,\n    :v,\n    :create_time\n"
            ") ON DUPLICATE KEY UPDATE \n\tv=:v,\n\tcreate_time=:create_time"
        )
        params = {
            "id": row["id"],
            "k": row["k"],
            "v": row["v"],
            "create_time": row["create_time"],
        }
    else:
        query = (
            "INSERT INTO t_app_lock (\n    k,\n    v,\n    create_time\n"
            ") VALUES (\n    :k,\n    :v,\n    :create_time\n"
            ") ON DUPLICATE KEY UPDATE \n\tv=:v,\n\tcreate_time=:create_time"
        )
        params = {"k": row["k"], "v": row["v"], "create_time": row["create_time"]}
    return execute_last_id(conn, query, params)


def update_app_lock(conn, row):
    """Update the value and time of a lock row by key."""
    return execute_count(
        conn,
        "UPDATE\n\tt_app_lock\nSET\n    v=:v,\n    create_time=:create_time\n"
        "WHERE\n\tk=:k",
        {"k": row["k"], "v": row["v"], "create_time": row["create_time"]},
    )


def select_app_config_tokens(conn, cols):
    """Return all configured ERC-20 tokens."""
    return fetch_all(conn, _select(cols, "\nFROM\n\tt_app_config_token"), {})