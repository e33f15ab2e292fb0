from __future__ import annotations

import pytest

from sharevault.vault.errors import InvalidDeposit, UnrecognizedOperation
from sharevault.vault.messages import DepositMsg, RedeemMsg, parse_execute_msg, parse_query_msg, single_payment
from tests.holders import USER, USER2


def test_parse_execute_messages() -> None:
    assert parse_execute_msg({"deposit": {}}) == DepositMsg()
    assert parse_execute_msg({"deposit": None}) == DepositMsg()
    assert parse_execute_msg({"redeem": {"shares": 9}}) == RedeemMsg(shares=9)
    assert parse_execute_msg({"redeem": {"shares": "9"}}) == RedeemMsg(shares=9)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "deposit",
        {},
        {"withdraw": {"ids": [1, 1, 1]}},
        {"deposit": {}, "redeem": {"shares": 1}},
        {"deposit": {"amount": "10000"}},
        {"deposit": {"denom": "uawesome"}},
        {"deposit": []},
        {"redeem": {"shares": "1.5"}},
        {"redeem": {"shares": True}},
        {"redeem": {"shares": -1}},
        {"redeem": {}},
        {"redeem": {"shares": 1, "to": "someone-else"}},
    ],
)
def test_unclassifiable_execute_messages_fail_loudly(payload) -> None:
    with pytest.raises(UnrecognizedOperation):
        parse_execute_msg(payload)


def test_single_payment_takes_exactly_one_coin_of_the_vault_denom() -> None:
    assert single_payment({"uawesome": 10_000}, "uawesome") == 10_000
    assert single_payment({"uawesome": "10000"}, "uawesome") == 10_000


@pytest.mark.parametrize(
    "funds",
    [
        None,
        {},
        {"uawesome": 0},
        {"uother": 10},
        {"uawesome": 10, "uother": 10},
        {"uawesome": "ten"},
        {"uawesome": -5},
    ],
)
def test_single_payment_rejects_missing_or_mixed_funds(funds) -> None:
    with pytest.raises(InvalidDeposit):
        single_payment(funds, "uawesome")


def test_parse_query_messages() -> None:
    assert parse_query_msg({"config": {}}).__class__.__name__ == "ConfigQuery"
    assert parse_query_msg({"balance": {"address": USER}}).address == USER
    with pytest.raises(UnrecognizedOperation):
        parse_query_msg({"user_balance": {"address": USER}})


def test_execute_and_query_through_service(bank, host_execute, vault) -> None:
    out = host_execute(USER, {"deposit": {}}, funds={"uawesome": 10_000})
    assert out["action"] == "mint"
    assert out["asset"] == "10000"
    assert out["shares"] == "10000"

    assert vault.query({"balance": {"address": USER}}) == {"address": USER, "shares": 10_000}
    cfg = vault.query({"config": {}})
    assert cfg["total_supply"] == 10_000
    assert cfg["denom"] == "uawesome"

    out = host_execute(USER, {"redeem": {"shares": "4000"}})
    assert out["action"] == "burn"
    assert out["asset"] == "4000"
    assert out["payout"] == {"to": USER, "denom": "uawesome", "amount": "4000"}
    assert bank.balance(USER) == 4_000


def test_deposit_without_attached_funds_mints_nothing(bank, deposit, vault) -> None:
    deposit(USER, 1_000)
    before = vault.state()

    # "thief" never sent anything; an amount written into the message is not a payment.
    with pytest.raises(UnrecognizedOperation):
        vault.execute("thief", {"deposit": {"amount": "500"}})
    with pytest.raises(InvalidDeposit):
        vault.execute("thief", {"deposit": {}})
    with pytest.raises(InvalidDeposit):
        vault.execute("thief", {"deposit": {}}, funds={"uawesome": 0})

    assert vault.state() == before
    assert vault.balance_of("thief") == 0
    assert bank.balance(bank.pool) == 1_000


def test_deposit_claiming_funds_that_never_arrived_is_invalid(bank, deposit, vault) -> None:
    deposit(USER, 1_000)
    before = vault.state()

    # Funds claimed but not moved into custody: the pool cannot account for them.
    with pytest.raises(InvalidDeposit):
        vault.execute("thief", {"deposit": {}}, funds={"uawesome": 5_000})
    assert vault.state() == before


def test_deposit_with_foreign_or_mixed_funds_is_refunded(bank, host_execute, vault) -> None:
    bank.mint(USER2, 50, denom="uother")
    with pytest.raises(InvalidDeposit):
        host_execute(USER2, {"deposit": {}}, funds={"uawesome": 100, "uother": 50})
    assert bank.balance(USER2) == 10_000
    assert bank.balance(USER2, "uother") == 50
    assert vault.total_supply() == 0


def test_redeem_refuses_attached_funds(host_execute, bank, vault) -> None:
    host_execute(USER, {"deposit": {}}, funds={"uawesome": 1_000})
    with pytest.raises(InvalidDeposit):
        host_execute(USER, {"redeem": {"shares": 10}}, funds={"uawesome": 1})
    assert vault.balance_of(USER) == 1_000
    assert bank.balance(USER) == 9_000


def test_service_never_treats_unknown_operation_as_success(vault) -> None:
    before = vault.state()
    with pytest.raises(UnrecognizedOperation):
        vault.execute(USER, {"resolve_proposal": {}})
    assert vault.state() == before
