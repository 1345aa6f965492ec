"""Exceptions raised while wiring dead-letter queues into a template."""


class DlqError(Exception):
    """Base class for every error raised by the DLQ wiring."""


class ConfigurationError(DlqError):
    """The service definition asks for something the platform cannot provision."""


class QueueNameTooLongError(ConfigurationError):
    def __init__(self, queue_name, limit):
        self.queue_name = queue_name
        self.limit = limit
        super().__init__(
            f"Generated queue name [{queue_name}] is longer than {limit} characters.")


class TemplateError(DlqError):
    """The template is unreadable or does not have the expected shape."""


class MissingResourceError(TemplateError):
    def __init__(self, logical_id, expected_type=None):
        self.logical_id = logical_id
        self.expected_type = expected_type
        what = f"{expected_type} resource" if expected_type else "Resource"
        super().__init__(f"{what} '{logical_id}' not found in template.")
