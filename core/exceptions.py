"""Custom exceptions for the application."""


class HarnessError(Exception):
    """Base exception for harness-related errors."""
    pass


class InstanceNotFoundError(HarnessError):
    """Exception raised when an instance id is not registered."""

    def __init__(self, instance_id: str, message: str = None):
        self.instance_id = instance_id
        super().__init__(message or f'Instance "{instance_id}" not found.')


class InstanceGoneError(InstanceNotFoundError):
    """Exception raised for ids of instances that were deleted or evicted."""

    def __init__(self, instance_id: str, reason: str):
        self.reason = reason
        super().__init__(instance_id, f'Instance "{instance_id}" was {reason}.')


class MessageNotFoundError(HarnessError):
    """Exception raised when a referenced message is not cached."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f'Message with ID "{message_id}" not found.')


class AuthenticationError(HarnessError):
    """Exception raised when the backend rejects a login."""
    pass


class InvalidRequestError(HarnessError):
    """Exception raised for malformed request values outside the body schema."""
    pass
