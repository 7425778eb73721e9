def calculate_food_cost(final_per_plate_price, guest_count):
    return round((final_per_plate_price or 0) * (guest_count or 0), 2)


def calculate_services_cost(additional_services):
    total = 0
    for service in additional_services or []:
        if isinstance(service, dict):
            total += service.get("price") or 0
        else:
            total += getattr(service, "price", 0) or 0
    return round(total, 2)


def calculate_total_cost(food_cost, services_cost, discount_amount=0):
    return round(food_cost + services_cost - (discount_amount or 0), 2)


def calculate_balance(total_cost, amount_paid=0):
    return round(total_cost - (amount_paid or 0), 2)


def calculate_pricing(final_per_plate_price, guest_count, additional_services=None,
                      discount_amount=0, amount_paid=0):
    """Derive every computed pricing field from its inputs."""
    food_cost = calculate_food_cost(final_per_plate_price, guest_count)
    services_cost = calculate_services_cost(additional_services)
    total_cost = calculate_total_cost(food_cost, services_cost, discount_amount)

    return {
        "food_cost": food_cost,
        "additional_services_cost": services_cost,
        "total_cost": total_cost,
        "balance_amount": calculate_balance(total_cost, amount_paid),
    }


def apply_pricing(entity):
    """Recompute derived pricing on a request/booking row in place.

    Must run before any flush that changes guest_count, the per-plate
    price, additional services, discount or amount paid.
    """
    derived = calculate_pricing(
        entity.final_per_plate_price,
        entity.guest_count,
        entity.additional_services,
        entity.discount_amount,
        entity.amount_paid,
    )
    for field, value in derived.items():
        setattr(entity, field, value)
    return entity
