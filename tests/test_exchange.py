"""
Tests for the Farmer-Processor Exchange: orders, offers, acceptance and transactions.
"""
from datetime import datetime

import pytest

from grainchain.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from grainchain.services.exchange import Exchange

from conftest import FARMER_1, FARMER_2, PROCESSOR


def test_create_order_ids_increase_and_view(exchange):
    first = exchange.create_order(PROCESSOR, 100)
    second = exchange.create_order(PROCESSOR, 250)
    assert first == 1
    assert second > first
    assert exchange.view_order(second) == {
        "id": second,
        "quantity_kg": 250,
        "status": "InProgress",
        "owner": PROCESSOR,
    }


@pytest.mark.parametrize("quantity", [0, -5])
def test_create_order_rejects_non_positive_quantity(exchange, quantity):
    with pytest.raises(ValidationError):
        exchange.create_order(PROCESSOR, quantity)


def test_create_order_requires_caller(exchange):
    with pytest.raises(ValidationError):
        exchange.create_order("", 10)


def test_view_order_out_of_range(exchange):
    exchange.create_order(PROCESSOR, 10)
    for order_id in (0, 2):
        with pytest.raises(NotFoundError):
            exchange.view_order(order_id)


def test_cancel_order(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    assert exchange.cancel_order(PROCESSOR, order_id) == order_id
    assert exchange.view_order(order_id)["status"] == "Cancelled"


def test_cancel_order_errors(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    with pytest.raises(NotFoundError):
        exchange.cancel_order(PROCESSOR, 99)
    with pytest.raises(AuthorizationError):
        exchange.cancel_order(FARMER_1, order_id)
    assert exchange.view_order(order_id)["status"] == "InProgress"


def test_cancel_terminal_order_is_state_error(exchange):
    cancelled = exchange.create_order(PROCESSOR, 10)
    exchange.cancel_order(PROCESSOR, cancelled)
    with pytest.raises(StateError):
        exchange.cancel_order(PROCESSOR, cancelled)

    completed = exchange.create_order(PROCESSOR, 10)
    offer_id = exchange.create_offer(FARMER_1, completed, "2024-06-01", 5, "Kansas")
    exchange.accept_offer(PROCESSOR, completed, offer_id)
    with pytest.raises(StateError):
        exchange.cancel_order(PROCESSOR, completed)
    assert exchange.view_order(completed)["status"] == "Completed"


def test_create_offer_validation(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    with pytest.raises(ValidationError):
        exchange.create_offer(FARMER_1, order_id, "2024-06-01", 0, "Kansas")
    with pytest.raises(NotFoundError):
        exchange.create_offer(FARMER_1, 7, "2024-06-01", 5, "Kansas")


def test_create_offer_on_closed_order_is_allowed(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    exchange.cancel_order(PROCESSOR, order_id)
    offer_id = exchange.create_offer(FARMER_1, order_id, "2024-06-01", 5, "Kansas")
    assert exchange.view_offer(offer_id)["status"] == "InProgress"
    with pytest.raises(StateError):
        exchange.accept_offer(PROCESSOR, order_id, offer_id)


def test_cancel_offer(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    offer_id = exchange.create_offer(FARMER_1, order_id, "2024-06-01", 5, "Kansas")
    with pytest.raises(AuthorizationError):
        exchange.cancel_offer(FARMER_2, offer_id)
    assert exchange.cancel_offer(FARMER_1, offer_id) == offer_id
    with pytest.raises(StateError):
        exchange.cancel_offer(FARMER_1, offer_id)
    with pytest.raises(NotFoundError):
        exchange.cancel_offer(FARMER_1, 0)


def test_accept_offer_scenario(exchange):
    order_id = exchange.create_order(PROCESSOR, 100)
    offer_1 = exchange.create_offer(FARMER_1, order_id, "2024-06-01", 5, "Kansas")
    offer_2 = exchange.create_offer(FARMER_2, order_id, "2024-06-03", 6, "Nebraska")
    assert (order_id, offer_1, offer_2) == (1, 1, 2)

    assert exchange.accept_offer(PROCESSOR, 1, 1) == 1

    assert exchange.view_order(1)["status"] == "Completed"
    assert exchange.view_offer(1)["status"] == "Completed"
    assert exchange.view_offer(2)["status"] == "InProgress"
    assert [o["id"] for o in exchange.list_active_offers(1)] == [2]

    [tx] = exchange.list_all_transactions()
    assert tx["id"] == 1
    assert (tx["order_id"], tx["offer_id"]) == (1, 1)
    assert tx["farmer"] == FARMER_1
    assert tx["processor"] == PROCESSOR


def test_accept_offer_succeeds_at_most_once(exchange):
    order_id = exchange.create_order(PROCESSOR, 100)
    offer_1 = exchange.create_offer(FARMER_1, order_id, "2024-06-01", 5, "Kansas")
    offer_2 = exchange.create_offer(FARMER_2, order_id, "2024-06-03", 6, "Nebraska")
    exchange.accept_offer(PROCESSOR, order_id, offer_1)
    with pytest.raises(StateError):
        exchange.accept_offer(PROCESSOR, order_id, offer_2)
    with pytest.raises(StateError):
        exchange.accept_offer(PROCESSOR, order_id, offer_1)
    assert len(exchange.list_all_transactions()) == 1
    assert exchange.view_offer(offer_2)["status"] == "InProgress"


def test_accept_offer_rejections_leave_state_unchanged(exchange):
    order_a = exchange.create_order(PROCESSOR, 100)
    order_b = exchange.create_order(PROCESSOR, 50)
    offer_b = exchange.create_offer(FARMER_1, order_b, "2024-06-01", 5, "Kansas")
    cancelled = exchange.create_offer(FARMER_2, order_a, "2024-06-01", 5, "Kansas")
    exchange.cancel_offer(FARMER_2, cancelled)

    with pytest.raises(ValidationError):
        exchange.accept_offer(PROCESSOR, order_a, offer_b)
    with pytest.raises(AuthorizationError):
        exchange.accept_offer(FARMER_1, order_b, offer_b)
    with pytest.raises(StateError):
        exchange.accept_offer(PROCESSOR, order_a, cancelled)
    with pytest.raises(NotFoundError):
        exchange.accept_offer(PROCESSOR, order_a, 42)

    assert exchange.view_order(order_a)["status"] == "InProgress"
    assert exchange.view_order(order_b)["status"] == "InProgress"
    assert exchange.view_offer(offer_b)["status"] == "InProgress"
    assert exchange.list_all_transactions() == []


def test_list_active_offers_filters_and_is_stable(exchange):
    order_id = exchange.create_order(PROCESSOR, 100)
    other = exchange.create_order(PROCESSOR, 100)
    keep = exchange.create_offer(FARMER_1, order_id, "2024-06-01", 5, "Kansas")
    dropped = exchange.create_offer(FARMER_2, order_id, "2024-06-02", 4, "Iowa")
    exchange.create_offer(FARMER_2, other, "2024-06-02", 4, "Iowa")
    late = exchange.create_offer(FARMER_2, order_id, "2024-06-05", 7, "Iowa")
    exchange.cancel_offer(FARMER_2, dropped)

    first = exchange.list_active_offers(order_id)
    assert [o["id"] for o in first] == [keep, late]
    assert exchange.list_active_offers(order_id) == first
    with pytest.raises(NotFoundError):
        exchange.list_active_offers(99)


def test_transaction_uses_clock(session_factory):
    stamp = datetime(2024, 6, 10, 12, 0, 0)
    exchange = Exchange(session_factory, clock=lambda: stamp)
    order_id = exchange.create_order(PROCESSOR, 10)
    offer_id = exchange.create_offer(FARMER_1, order_id, "2024-06-01", 5, "Kansas")
    tx_id = exchange.accept_offer(PROCESSOR, order_id, offer_id)
    assert exchange.get_transaction(tx_id)["timestamp"] == "2024-06-10T12:00:00"
    assert exchange.transactions_for_order(order_id)[0]["id"] == tx_id
    assert exchange.get_transaction(tx_id + 1) is None


def test_ids_beyond_sql_integer_range_are_not_found(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    too_big = 2**64
    with pytest.raises(NotFoundError):
        exchange.view_order(too_big)
    with pytest.raises(NotFoundError):
        exchange.view_offer(too_big)
    with pytest.raises(NotFoundError):
        exchange.create_offer(FARMER_1, too_big, "2024-06-01", 5, "Kansas")
    with pytest.raises(NotFoundError):
        exchange.accept_offer(PROCESSOR, order_id, too_big)
    assert exchange.get_transaction(too_big) is None


@pytest.mark.parametrize("amount", [2**63, 2**64])
def test_amounts_beyond_sql_integer_range_are_invalid(exchange, amount):
    with pytest.raises(ValidationError):
        exchange.create_order(PROCESSOR, amount)
    order_id = exchange.create_order(PROCESSOR, 2**63 - 1)
    with pytest.raises(ValidationError):
        exchange.create_offer(FARMER_1, order_id, "2024-06-01", amount, "Kansas")


def test_authorization_error_reports_caller(exchange):
    order_id = exchange.create_order(PROCESSOR, 10)
    with pytest.raises(AuthorizationError) as exc_info:
        exchange.cancel_order(FARMER_1, order_id)
    assert exc_info.value.to_dict()["context"]["caller"] == FARMER_1
