"""Collects the SNS event bindings of each declared function that need a dead-letter queue."""

import sys
from dataclasses import dataclass, field

from dlq_naming import topic_arn

# Flag names accepted on a function or on an individual sns event
DLQ_FLAGS = ('enableSnsDlq', 'enableDlq', 'setDlq')


@dataclass
class EventSource:
    source_arn: object          # ARN string, or an intrinsic mapping when topic_name is set
    dlq_enabled: bool = True
    topic_name: str = None

    @property
    def subscription_key(self):
        """What the compiled subscription ID is derived from."""
        return self.topic_name or self.source_arn


@dataclass
class FunctionBinding:
    function_name: str          # deployed name, drives the queue name
    display_name: str           # key in the service definition, drives logical IDs
    event_sources: list = field(default_factory=list)
    dlq_enabled: bool = True

    def enabled_sources(self):
        return [source for source in self.event_sources if source.dlq_enabled]


def dlq_flag(declaration):
    """Returns False only when one of the DLQ flags is explicitly disabled."""
    for flag in DLQ_FLAGS:
        if declaration.get(flag) is False:
            return False
    return True


def sns_event_source(event, region=None, account_id=None):
    """Builds an EventSource from an event declaration, or None if it is not a recognizable sns event."""
    if not isinstance(event, dict) or 'sns' not in event:
        return None
    descriptor = event['sns']
    enabled = True
    if isinstance(descriptor, str):
        source = descriptor
    elif isinstance(descriptor, dict):
        enabled = dlq_flag(descriptor)
        source = descriptor.get('arn')
        topic_name = descriptor.get('topicName')
        if isinstance(source, dict) and isinstance(topic_name, str) and topic_name:
            # Ref/Fn::Join topics: the ID comes from topicName, the intrinsic goes into the policy
            return EventSource(source_arn=source, dlq_enabled=enabled, topic_name=topic_name)
        if source is None:
            source = topic_name
    else:
        return None

    # An intrinsic without a topicName can't be matched to its subscription
    if not isinstance(source, str) or not source:
        return None
    if ':' not in source and region and account_id:
        source = topic_arn(region, account_id, source)
    return EventSource(source_arn=source, dlq_enabled=enabled)


def collect_function(key, declaration, region=None, account_id=None):
    """Builds the binding for one function; None when nothing of it needs wiring."""
    declaration = declaration or {}
    if not dlq_flag(declaration):
        return None

    sources = []
    for event in declaration.get('events') or []:
        source = sns_event_source(event, region, account_id)
        if source is not None:
            sources.append(source)
        elif isinstance(event, dict) and 'sns' in event:
            print(f"Warning: sns event of function '{key}' skipped, its topic could not be resolved "
                  f"(add a topicName next to an intrinsic arn): {event['sns']!r}", file=sys.stderr)

    binding = FunctionBinding(
        function_name=declaration.get('name') or key,
        display_name=key,
        event_sources=sources,
    )
    if not binding.enabled_sources():
        return None
    return binding


def collect_bindings(functions, region=None, account_id=None):
    """Walks the function declarations in order and returns the eligible bindings."""
    bindings = []
    for key, declaration in (functions or {}).items():
        binding = collect_function(key, declaration, region, account_id)
        if binding is not None:
            bindings.append(binding)
    return bindings


def find_function(functions, key):
    return (functions or {}).get(key)
