"""Wires SQS dead-letter queues into SNS-triggered functions of a compiled template.

For each eligible function the pass

* creates the ``AWS::SQS::Queue`` named ``<function name>-dlq``,
* adds ``DLQ_QUEUE_URL`` to the function's environment variables,
* routes the function's own async failures to the queue (``AWS::Lambda::EventInvokeConfig``),
* points the ``RedrivePolicy`` of every SNS subscription at the queue, and
* allows the topics (and the function) to send to the queue through one or more
  ``AWS::SQS::QueuePolicy`` resources holding at most ten source ARNs each.

Re-running a pass over its own output rewrites the same resources.
"""

import copy
import json
import sys
from dataclasses import dataclass

import dlq_naming as naming
from cfn_template import Template
from dlq_collector import collect_bindings, collect_function, find_function
from dlq_errors import MissingResourceError

QUEUE_TYPE = "AWS::SQS::Queue"
QUEUE_POLICY_TYPE = "AWS::SQS::QueuePolicy"
FUNCTION_TYPE = "AWS::Lambda::Function"
EVENT_INVOKE_CONFIG_TYPE = "AWS::Lambda::EventInvokeConfig"
SUBSCRIPTION_TYPE = "AWS::SNS::Subscription"

DLQ_URL_VARIABLE = "DLQ_QUEUE_URL"
POLICY_VERSION = "2012-10-17"


@dataclass
class DeadLetterQueue:
    logical_id: str
    name: str
    arn: str
    url: str


def plan_queue(binding, account_id, region):
    """Computes (and validates) the queue a binding will get, without touching any template."""
    name = naming.validate_queue_name(naming.queue_name(binding.function_name))
    return DeadLetterQueue(
        logical_id=naming.derive_id(naming.DEAD_LETTER_QUEUE, binding.display_name),
        name=name,
        arn=naming.queue_arn(region, account_id, name),
        url=naming.queue_url(region, account_id, name),
    )


def _as_template(template):
    return template if isinstance(template, Template) else Template(template)


# --- Resource Synthesizer --- START
def synthesize(template, binding, account_id, region, failure_destination=True):
    """Adds the queue, the DLQ_QUEUE_URL variable and the failure destination for one function."""
    template = _as_template(template)
    queue = plan_queue(binding, account_id, region)

    function_id = naming.derive_id(naming.FUNCTION, binding.display_name)
    function = template.get(function_id, FUNCTION_TYPE)

    template.put(queue.logical_id, QUEUE_TYPE, {"QueueName": queue.name})
    print(f"  {queue.logical_id} ({QUEUE_TYPE}) -> {queue.name}")

    function.set_environment_variable(DLQ_URL_VARIABLE, queue.url)
    print(f"  {function_id} (Lambda Env) -> {DLQ_URL_VARIABLE}")

    if failure_destination:
        attach_failure_destination(template, binding, queue)
    return queue


def attach_failure_destination(template, binding, queue):
    """Creates the EventInvokeConfig sending failed async invocations of $LATEST to the queue."""
    function_id = naming.derive_id(naming.FUNCTION, binding.display_name)
    config_id = naming.derive_id(naming.EVENT_INVOKE_CONFIG, binding.display_name)

    existing = template.find(config_id)
    properties = dict(existing.properties) if existing is not None else {}
    destinations = dict(properties.get("DestinationConfig") or {})
    destinations["OnFailure"] = {"Destination": {"Fn::GetAtt": [queue.logical_id, "Arn"]}}

    properties["FunctionName"] = {"Ref": function_id}
    properties["Qualifier"] = "$LATEST"
    properties["DestinationConfig"] = destinations
    template.put(config_id, EVENT_INVOKE_CONFIG_TYPE, properties)
    print(f"  {config_id} (OnFailure) -> {queue.logical_id}")
    return config_id
# --- Resource Synthesizer --- END


# --- Trust/Redrive Linker --- START
def chunk(items, size=naming.POLICY_CHUNK_SIZE):
    return [items[i:i + size] for i in range(0, len(items), size)]


def _queue_statement(principal, queue, source_arns):
    return {
        "Effect": "Allow",
        "Principal": {"Service": principal},
        "Action": "sqs:SendMessage",
        "Resource": {"Fn::GetAtt": [queue.logical_id, "Arn"]},
        "Condition": {"ArnEquals": {"aws:SourceArn": source_arns}},
    }


def unique_arns(arns):
    """Drops repeated ARNs, keeping declaration order; intrinsic mappings compare by content."""
    seen = set()
    unique = []
    for arn in arns:
        key = arn if isinstance(arn, str) else json.dumps(arn, sort_keys=True)
        if key not in seen:
            seen.add(key)
            unique.append(arn)
    return unique


def policy_statements(queue, source_arns, function_id=None):
    """Statements of one policy chunk; the function statement goes only where function_id is given."""
    statements = []
    # One statement per delivering service, the condition list stays within the chunk size
    principals = {}
    for arn in source_arns:
        principals.setdefault(naming.service_principal(arn), []).append(arn)
    for principal, arns in principals.items():
        statements.append(_queue_statement(principal, queue, arns))
    if function_id is not None:
        statements.append(_queue_statement(
            "lambda.amazonaws.com", queue, {"Fn::GetAtt": [function_id, "Arn"]}))
    return statements


def link(template, binding, queue, event_sources=None, failure_destination=True):
    """Sets the redrive policy on each subscription and writes the chunked queue policies."""
    template = _as_template(template)
    if event_sources is None:
        event_sources = binding.event_sources
    enabled = [source for source in event_sources if source.dlq_enabled]

    # Resolve every subscription before writing anything
    subscriptions = [
        template.get(naming.subscription_id(binding.display_name, source.subscription_key), SUBSCRIPTION_TYPE)
        for source in enabled
    ]
    for subscription in subscriptions:
        subscription.set_redrive_target(queue.arn)
        print(f"  {subscription.logical_id} (RedrivePolicy) -> {queue.logical_id}")

    source_arns = unique_arns(source.source_arn for source in enabled)
    function_id = naming.derive_id(naming.FUNCTION, binding.display_name)
    if failure_destination and function_id not in template:
        raise MissingResourceError(function_id, FUNCTION_TYPE)

    policy_ids = []
    for index, arns in enumerate(chunk(source_arns), start=1):
        policy_id = naming.policy_id(binding.display_name, index)
        template.put(policy_id, QUEUE_POLICY_TYPE, {
            "Queues": [{"Ref": queue.logical_id}],
            "PolicyDocument": {
                "Version": POLICY_VERSION,
                "Statement": policy_statements(
                    queue, arns, function_id if failure_destination and index == 1 else None),
            },
        })
        policy_ids.append(policy_id)
        print(f"  {policy_id} ({QUEUE_POLICY_TYPE}) -> {len(arns)} source(s)")

    _remove_stale_policies(template, binding, len(policy_ids) + 1)
    return policy_ids


def _remove_stale_policies(template, binding, first_unused_index):
    # Chunks beyond the current count are left over from a run with more sources
    index = first_unused_index
    while True:
        stale_id = naming.policy_id(binding.display_name, index)
        body = template.resources.get(stale_id)
        if body is None or body.get('Type') != QUEUE_POLICY_TYPE:
            return
        template.remove(stale_id)
        print(f"  Removed stale queue policy {stale_id}")
        index += 1
# --- Trust/Redrive Linker --- END


def configure_function(template, binding, account_id, region, failure_destination=True):
    """Synthesizes and links the dead-letter queue of a single binding."""
    print(f"Configuring dead-letter queue for function '{binding.display_name}'...")
    queue = synthesize(template, binding, account_id, region, failure_destination)
    link(template, binding, queue, failure_destination=failure_destination)
    return queue


def wire_dead_letter_queues(template, functions, account_id, region, failure_destination=True):
    """Pre-deploy pass over every declared function.

    ``template`` is either the Resources mapping or a Template. All queue names are
    validated before anything is written and the resources are rebuilt on a copy,
    so a failing function leaves the caller's template exactly as it was.
    """
    template = _as_template(template)
    bindings = collect_bindings(functions, region, account_id)
    if not bindings:
        print("No functions with SNS events need a dead-letter queue.")
        return []

    for binding in bindings:
        plan_queue(binding, account_id, region)

    working = Template(copy.deepcopy(template.resources))
    queues = [
        configure_function(working, binding, account_id, region, failure_destination)
        for binding in bindings
    ]

    template.resources.clear()
    template.resources.update(working.resources)
    print(f"Wired {len(queues)} dead-letter queue(s).")
    return queues


def configure_single_function(functions, key, account_id, region):
    """Pre-package pass for one function: only sets DLQ_QUEUE_URL on its declaration.

    Returns the queue URL, or None when the function is unknown, disabled, or has no
    eligible SNS event.
    """
    declaration = find_function(functions, key)
    if declaration is None:
        print(f"Warning: Function {key} not found", file=sys.stderr)
        return None

    binding = collect_function(key, declaration, region, account_id)
    if binding is None:
        print(f"Function '{key}' has no SNS events needing a dead-letter queue.")
        return None

    queue = plan_queue(binding, account_id, region)
    environment = declaration.get('environment')
    if environment is None:
        environment = declaration['environment'] = {}
    environment[DLQ_URL_VARIABLE] = queue.url
    print(f"  {key} (Function Env) -> {DLQ_URL_VARIABLE}")
    return queue.url
