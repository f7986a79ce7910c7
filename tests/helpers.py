"""Helper utilities for tests."""

import time
from datetime import date
from decimal import Decimal


def make_category(services, name="Groceries", **fields):
    """Create and return a category."""
    return services.categories.create({"name": name, **fields})


def make_rule(services, pattern, category_id, **fields):
    """Create and return a categorization rule."""
    return services.rules.create(
        {"pattern": pattern, "category_id": category_id, **fields}
    )


def draft(description="Coffee", amount="-3.50", day=date(2024, 1, 15), **fields):
    """Build a transaction draft mapping."""
    return {
        "date": day,
        "description": description,
        "amount": Decimal(amount),
        **fields,
    }


class FakeProvider:
    """LLM provider stand-in that records calls and returns canned suggestions."""

    def __init__(self, suggestions=None, error=None, delay=0.0):
        self.suggestions = suggestions or []
        self.error = error
        self.delay = delay
        self.calls = []

    def suggest_category(
        self, description, amount, details=None, existing_category_names=None
    ):
        self.calls.append((description, amount, details, existing_category_names))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.suggestions)
