# core/__init__.py
# Re-exports the settings singleton and the domain exceptions for convenience
from carbonwise.config import AppSettings, settings
from carbonwise.core.exceptions import (
    AIResponseError,
    AIServiceError,
    AIServiceTimeout,
    CarbonWiseError,
    NotFoundError,
)

__all__ = [
    'AppSettings',
    'settings',
    'CarbonWiseError',
    'NotFoundError',
    'AIServiceError',
    'AIServiceTimeout',
    'AIResponseError',
]
