import pytest

from helpers import compiled_resources, topic


@pytest.fixture
def functions():
    return {
        "orders": {
            "name": "shop-dev-orders",
            "handler": "orders.handler",
            "events": [
                {"sns": {"arn": topic("topic-x")}},
                {"http": {"path": "/orders", "method": "post"}},
            ],
        },
        "audit": {
            "name": "shop-dev-audit",
            "events": [{"schedule": "rate(5 minutes)"}],
        },
    }


@pytest.fixture
def resources(functions):
    return compiled_resources(functions)
