import pytest

import dlq_naming as naming
from dlq_errors import ConfigurationError, QueueNameTooLongError


def test_pascal_case_only_touches_first_letter():
    assert naming.pascal_case("ordersSnsSubscriptiontopic-x") == "OrdersSnsSubscriptiontopic-x"
    assert naming.pascal_case("Already") == "Already"
    assert naming.pascal_case("") == ""


def test_derive_id_per_role():
    assert naming.derive_id(naming.FUNCTION, "orders") == "OrdersLambdaFunction"
    assert naming.derive_id(naming.DEAD_LETTER_QUEUE, "orders") == "OrdersSQSDeadLetterQueue"
    assert naming.derive_id(naming.EVENT_INVOKE_CONFIG, "orders") == "OrdersEventInvokeConfig"


def test_subscription_id_uses_arn_suffix():
    arn = "arn:aws:sns:us-east-1:111111111111:topic-x"
    assert naming.subscription_id("orders", arn) == "OrdersSnsSubscriptiontopic-x"
    assert naming.subscription_id("orders", "topic-x") == "OrdersSnsSubscriptiontopic-x"


def test_policy_ids_are_stable_and_distinct():
    ids = [naming.policy_id("orders", index) for index in range(1, 4)]
    assert ids == [
        "OrdersSQSDeadLetterQueuePolicy",
        "OrdersSQSDeadLetterQueuePolicy2",
        "OrdersSQSDeadLetterQueuePolicy3",
    ]
    assert naming.policy_id("orders", 2) == naming.policy_id("orders", 2)
    assert naming.policy_id("orders", 2) != naming.policy_id("payments", 2)


def test_queue_strings():
    name = naming.queue_name("shop-dev-orders")
    assert name == "shop-dev-orders-dlq"
    assert naming.queue_arn("eu-west-1", "123456789012", name) == \
        "arn:aws:sqs:eu-west-1:123456789012:shop-dev-orders-dlq"
    assert naming.queue_url("eu-west-1", "123456789012", name) == \
        "https://sqs.eu-west-1.amazonaws.com/123456789012/shop-dev-orders-dlq"


def test_validate_queue_name_limit():
    assert naming.validate_queue_name("a" * 80) == "a" * 80
    with pytest.raises(QueueNameTooLongError) as excinfo:
        naming.validate_queue_name("a" * 81)
    assert isinstance(excinfo.value, ConfigurationError)
    assert excinfo.value.queue_name == "a" * 81
    assert "longer than 80 characters" in str(excinfo.value)


def test_service_principal():
    assert naming.service_principal("arn:aws:sns:us-east-1:111111111111:topic-x") == "sns.amazonaws.com"
    assert naming.service_principal("topic-x") == "sns.amazonaws.com"
