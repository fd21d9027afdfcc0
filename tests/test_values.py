import pytest

from dcwallet.values import (
    NotifyStatus,
    NotifyType,
    SendRelationType,
    SendStatus,
    TxOrgStatus,
    TxStatus,
    UxtoHandleStatus,
    UxtoType,
    WithdrawStatus,
)


def test_lookup_by_stored_value():
    assert NotifyStatus(1) is NotifyStatus.FAIL
    assert TxOrgStatus(6) is TxOrgStatus.FEE_CONFIRM
    assert UxtoType(4) is UxtoType.OMNI_HOT
    assert SendRelationType(5) is SendRelationType.UXTO_ORG


def test_unknown_value_is_rejected():
    with pytest.raises(ValueError):
        TxStatus(7)
    with pytest.raises(ValueError):
        WithdrawStatus(-1)


def test_members_compare_as_ints():
    assert SendStatus(2) > SendStatus(1) > SendStatus(0)
    assert SendStatus(2) is SendStatus.CONFIRM
    assert UxtoHandleStatus(1) == 1
    assert NotifyType(3) - NotifyType(1) == 2


@pytest.mark.parametrize(
    "enum_cls",
    [TxStatus, TxOrgStatus, SendStatus, NotifyStatus, WithdrawStatus, UxtoHandleStatus],
)
def test_status_codes_are_consecutive_from_zero(enum_cls):
    assert sorted(int(m) for m in enum_cls) == list(range(len(enum_cls)))


@pytest.mark.parametrize("enum_cls", [SendRelationType, NotifyType, UxtoType])
def test_type_codes_are_consecutive_from_one(enum_cls):
    assert sorted(int(m) for m in enum_cls) == list(range(1, len(enum_cls) + 1))