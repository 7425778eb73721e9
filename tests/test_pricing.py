from types import SimpleNamespace

from app.utils.pricing import (
    apply_pricing, calculate_balance, calculate_pricing, calculate_services_cost,
)


def test_calculate_pricing_matches_booking_example():
    derived = calculate_pricing(500, 10, [{"name": "Decor", "price": 200}])

    assert derived == {
        "food_cost": 5000,
        "additional_services_cost": 200,
        "total_cost": 5200,
        "balance_amount": 5200,
    }


def test_discount_and_amount_paid_are_subtracted():
    derived = calculate_pricing(1200, 50, [{"price": 3000}, {"price": 1500}], discount_amount=500, amount_paid=20000)

    assert derived["food_cost"] == 60000
    assert derived["additional_services_cost"] == 4500
    assert derived["total_cost"] == 64000
    assert derived["balance_amount"] == 44000


def test_services_cost_accepts_objects_and_missing_prices():
    services = [SimpleNamespace(price=250), {"name": "Music"}, {"price": None}]
    assert calculate_services_cost(services) == 250
    assert calculate_services_cost(None) == 0


def test_balance_defaults_amount_paid_to_zero():
    assert calculate_balance(5200) == 5200
    assert calculate_balance(5200, None) == 5200


def test_apply_pricing_recomputes_every_derived_field():
    row = SimpleNamespace(
        final_per_plate_price=800,
        guest_count=25,
        additional_services=[{"price": 1000}],
        discount_amount=0,
        amount_paid=5000,
        food_cost=1,
        additional_services_cost=1,
        total_cost=1,
        balance_amount=1,
    )

    apply_pricing(row)

    assert row.food_cost == 20000
    assert row.additional_services_cost == 1000
    assert row.total_cost == 21000
    assert row.balance_amount == 16000
    assert row.total_cost == row.food_cost + row.additional_services_cost - row.discount_amount
    assert row.balance_amount == row.total_cost - row.amount_paid
