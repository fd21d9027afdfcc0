"""Delivery of product notifications to their callback URLs."""

import json
import logging
import time

import requests

from .db_transfers import select_product_notifies, update_product_notify_status
from .locking import held_lock
from .values import NotifyStatus

log = logging.getLogger(__name__)

LOCK_NAME = "CheckDoNotify"
REQUEST_TIMEOUT = 30
RETRY_DELAY = 60 * 10
MAX_MSG_LENGTH = 500

_NOTIFY_COLS = ["id", "url", "msg"]


def _mark(conn, row_id, status, msg):
    try:
        update_product_notify_status(
            conn,
            {
                "id": row_id,
                "handle_status": int(status),
                "handle_msg": msg,
                "update_time": int(time.time()),
            },
        )
    except Exception as err:
        log.error("err: [%s] %s", type(err).__name__, err)
    return status


def deliver_notify(conn, row, session=None):
    """Post one notification and record the outcome; returns the new status.

    A notification passes when the callback answers HTTP 200 with a JSON
    object that holds an ``error`` key.
    """
    http = session if session is not None else requests
    msg = row["msg"]
    data = msg.encode("utf-8") if isinstance(msg, str) else msg
    try:
        resp = http.post(
            row["url"],
            data=data,
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as err:
        log.error("err: [%s] %s", type(err).__name__, err)
        return _mark(conn, row["id"], NotifyStatus.FAIL, str(err))

    if resp.status_code != 200:
        log.error("req status error: %d", resp.status_code)
        return _mark(
            conn, row["id"], NotifyStatus.FAIL, f"http status: {resp.status_code}"
        )

    body = resp.text
    try:
        payload = json.loads(body)
    except ValueError as err:
        log.error("err: [%s] %s", type(err).__name__, err)
        return _mark(conn, row["id"], NotifyStatus.FAIL, body)
    if not isinstance(payload, dict):
        log.error("err: response is not a JSON object")
        return _mark(conn, row["id"], NotifyStatus.FAIL, body)

    if "error" in payload:
        return _mark(conn, row["id"], NotifyStatus.PASS, body)
    return _mark(conn, row["id"], NotifyStatus.FAIL, body[:MAX_MSG_LENGTH])


def check_do_notify(conn, session=None):
    """Send new notifications and retry failed ones older than ten minutes.

    Runs under the ``CheckDoNotify`` lock. Returns a dict of notification id
    to the status it ended in; empty when the lock was not taken.
    """
    results = {}
    with held_lock(conn, LOCK_NAME) as acquired:
        if not acquired:
            return results
        now = int(time.time())
        try:
            rows = select_product_notifies(
                conn, _NOTIFY_COLS, int(NotifyStatus.INIT), now
            )
            rows += select_product_notifies(
                conn, _NOTIFY_COLS, int(NotifyStatus.FAIL), now - RETRY_DELAY
            )
        except Exception as err:
            log.error("err: [%s] %s", type(err).__name__, err)
            return results
        for row in rows:
            results[row["id"]] = deliver_notify(conn, row, session)
    return results