"""Status and type codes stored in the wallet database."""

from enum import IntEnum


class TxStatus(IntEnum):
    """Handling state of an incoming transaction."""

    INIT = 0
    NOTIFY = 1


class TxOrgStatus(IntEnum):
    """State of collecting funds from deposit addresses."""

    INIT = 0
    HEX = 1
    SEND = 2
    CONFIRM = 3
    FEE_HEX = 4
    FEE_SEND = 5
    FEE_CONFIRM = 6


class SendStatus(IntEnum):
    """State of an outgoing raw transaction."""

    INIT = 0
    SEND = 1
    CONFIRM = 2


class SendRelationType(IntEnum):
    """What an outgoing transaction was created for."""

    TX = 1
    WITHDRAW = 2
    TX_ERC20 = 3
    TX_ERC20_FEE = 4
    UXTO_ORG = 5
    OMNI_ORG = 6


class NotifyStatus(IntEnum):
    """Delivery state of a product notification."""

    INIT = 0
    FAIL = 1
    PASS = 2


class NotifyType(IntEnum):
    """Kind of product notification."""

    TX = 1
    WITHDRAW_SEND = 2
    WITHDRAW_CONFIRM = 3


class WithdrawStatus(IntEnum):
    """State of a withdrawal request."""

    INIT = 0
    HEX = 1
    SEND = 2
    CONFIRM = 3


class UxtoType(IntEnum):
    """Origin of an unspent output."""

    TX = 1
    HOT = 2
    OMNI = 3
    OMNI_HOT = 4
    OMNI_ORG_FEE = 5


class UxtoHandleStatus(IntEnum):
    """Handling state of an unspent output."""

    INIT = 0
    USE = 1
    CONFIRM = 2