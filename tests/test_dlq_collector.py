from dlq_collector import (
    EventSource,
    collect_bindings,
    collect_function,
    find_function,
    sns_event_source,
)

from helpers import ACCOUNT_ID, REGION, topic


def test_collects_only_sns_events(functions):
    bindings = collect_bindings(functions)

    assert len(bindings) == 1
    binding = bindings[0]
    assert binding.display_name == "orders"
    assert binding.function_name == "shop-dev-orders"
    assert binding.event_sources == [EventSource(topic("topic-x"))]


def test_function_level_flag_disables_everything():
    functions = {
        "orders": {"enableSnsDlq": False, "events": [{"sns": topic("a")}]},
        "billing": {"enableDlq": False, "events": [{"sns": topic("b")}]},
    }
    assert collect_bindings(functions) == []


def test_event_level_flag_disables_one_event():
    functions = {
        "orders": {
            "events": [
                {"sns": {"arn": topic("a"), "enableSnsDlq": False}},
                {"sns": {"arn": topic("b")}},
            ],
        },
    }
    binding = collect_bindings(functions)[0]

    assert [s.source_arn for s in binding.enabled_sources()] == [topic("b")]
    assert binding.event_sources[0].dlq_enabled is False


def test_all_events_disabled_contributes_nothing():
    declaration = {"events": [{"sns": {"arn": topic("a"), "setDlq": False}}]}
    assert collect_function("orders", declaration) is None


def test_name_defaults_to_key():
    binding = collect_function("orders", {"events": [{"sns": topic("a")}]})
    assert binding.function_name == "orders"


def test_descriptor_shapes():
    assert sns_event_source({"sns": topic("a")}).source_arn == topic("a")
    assert sns_event_source({"sns": {"arn": topic("a")}}).source_arn == topic("a")
    assert sns_event_source({"sns": {"arn": {"Ref": "MyTopic"}}}) is None
    assert sns_event_source({"sns": {"arn": {"Fn::Join": [":", ["a", "b"]]}, "topicName": 7}}) is None
    assert sns_event_source({"sqs": "arn:aws:sqs:us-east-1:1:q"}) is None
    assert sns_event_source("not-an-event") is None


def test_topic_names_expand_with_identity():
    source = sns_event_source({"sns": {"topicName": "alerts"}}, REGION, ACCOUNT_ID)
    assert source.source_arn == f"arn:aws:sns:{REGION}:{ACCOUNT_ID}:alerts"

    assert sns_event_source({"sns": "alerts"}).source_arn == "alerts"


def test_find_function(functions):
    assert find_function(functions, "orders") is functions["orders"]
    assert find_function(functions, "missing") is None
    assert find_function(None, "orders") is None


def test_intrinsic_arn_with_topic_name():
    source = sns_event_source({"sns": {"arn": {"Ref": "OrdersTopic"}, "topicName": "x"}}, REGION, ACCOUNT_ID)

    assert source == EventSource({"Ref": "OrdersTopic"}, topic_name="x")
    assert source.subscription_key == "x"
    assert EventSource(topic("a")).subscription_key == topic("a")


def test_unresolvable_sns_event_warns(capsys):
    declaration = {
        "events": [
            {"sns": {"arn": {"Ref": "OrdersTopic"}}},
            {"sns": topic("a")},
            {"http": {"path": "/orders"}},
        ],
    }

    binding = collect_function("orders", declaration)

    assert binding.event_sources == [EventSource(topic("a"))]
    err = capsys.readouterr().err
    assert "Warning: sns event of function 'orders' skipped" in err
    assert "OrdersTopic" in err
    assert err.count("Warning:") == 1
