"""
CarbonWise – Domain Exceptions
===============================
Errors raised inside the service layer.  Routes translate them into HTTP
responses; the AI adapter converts every ``AIServiceError`` into an
``AIUnavailable`` value so nothing AI-related reaches the caller.
"""

from __future__ import annotations


class CarbonWiseError(Exception):
    """Base class for all application errors."""


class NotFoundError(CarbonWiseError):
    """A user-owned resource does not exist (or belongs to someone else)."""

    def __init__(self, resource: str, identifier: object) -> None:
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class AIServiceError(CarbonWiseError):
    """The text-generation service failed to produce a usable completion."""


class AIServiceTimeout(AIServiceError):
    """The completion did not finish within the configured timeout."""


class AIResponseError(AIServiceError):
    """The service replied, but the reply held no usable JSON object."""
