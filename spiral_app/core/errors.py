# spiral_app/core/errors.py

from typing import Dict, Optional


class SpiralError(Exception):
    """Base class for domain errors raised by the SpiralEngine core."""

    code = "spiral_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationFailed(SpiralError):
    """Submitted widget data failed validation. Carries per-field messages."""

    code = "validation_failed"

    def __init__(self, errors: Dict[str, str], message: str = "Validation failed."):
        super().__init__(message)
        self.errors = dict(errors)


class AccessDenied(SpiralError):
    code = "access_denied"


class LimitReached(SpiralError):
    code = "limit_reached"


class UnknownWidget(SpiralError):
    code = "unknown_widget"

    def __init__(self, widget_id: str):
        super().__init__("Widget '%s' is not registered." % widget_id)
        self.widget_id = widget_id
