from dlq_errors import QueueNameTooLongError

MAX_QUEUE_NAME_LENGTH = 80
POLICY_CHUNK_SIZE = 10
QUEUE_NAME_SUFFIX = "-dlq"

# --- Logical ID roles ---
FUNCTION = "LambdaFunction"
DEAD_LETTER_QUEUE = "SQSDeadLetterQueue"
QUEUE_POLICY = "SQSDeadLetterQueuePolicy"
EVENT_INVOKE_CONFIG = "EventInvokeConfig"
SNS_SUBSCRIPTION = "SnsSubscription"


def pascal_case(name):
    """Upper-cases the first letter only, the way the compiled template names its resources."""
    return name[:1].upper() + name[1:]


def derive_id(role, display_name, discriminator=None):
    """Builds the logical ID of a function's resource for the given role."""
    suffix = "" if discriminator is None else str(discriminator)
    return pascal_case(f"{display_name}{role}{suffix}")


def policy_id(display_name, chunk_index):
    # First chunk keeps the undecorated ID so single-policy templates stay stable
    return derive_id(QUEUE_POLICY, display_name, chunk_index if chunk_index > 1 else None)


def source_suffix(source_arn):
    """Trailing segment of an ARN (the topic name for SNS)."""
    return source_arn.split(":")[-1]


def subscription_id(display_name, source_arn):
    return derive_id(SNS_SUBSCRIPTION, display_name, source_suffix(source_arn))


def topic_arn(region, account_id, topic_name):
    return f"arn:aws:sns:{region}:{account_id}:{topic_name}"


def service_principal(source_arn):
    """Maps an ARN like arn:aws:sns:... to the service principal that delivers from it."""
    if not isinstance(source_arn, str):
        # Intrinsic topic ARNs (Ref, Fn::Join) resolve at deploy time
        return "sns.amazonaws.com"
    parts = source_arn.split(":")
    service = parts[2] if len(parts) > 2 and parts[2] else "sns"
    return f"{service}.amazonaws.com"


def queue_name(function_name):
    return f"{function_name}{QUEUE_NAME_SUFFIX}"


def queue_arn(region, account_id, name):
    return f"arn:aws:sqs:{region}:{account_id}:{name}"


def queue_url(region, account_id, name):
    return f"https://sqs.{region}.amazonaws.com/{account_id}/{name}"


def validate_queue_name(name):
    if len(name) > MAX_QUEUE_NAME_LENGTH:
        raise QueueNameTooLongError(name, MAX_QUEUE_NAME_LENGTH)
    return name
