"""Exceptions raised by the notification engine."""

from __future__ import annotations


class NotificationError(RuntimeError):
    """Base class for notification engine errors."""


class ConfigError(NotificationError):
    """Raised when a stored trigger configuration cannot be decoded."""

    def __init__(self, notification_type: str, message: str):
        super().__init__(f"Invalid {notification_type} config: {message}")
        self.notification_type = notification_type


class StoreUnavailableError(NotificationError):
    """Raised when the record store cannot be reached before a run starts."""


class TemplateNotFoundError(NotificationError):
    """Raised when a template requested by id does not exist."""

    def __init__(self, template_id: str):
        super().__init__(f"Template not found: {template_id}")
        self.template_id = template_id


__all__ = [
    "ConfigError",
    "NotificationError",
    "StoreUnavailableError",
    "TemplateNotFoundError",
]
