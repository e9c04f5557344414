# models/__init__.py
# Re-exports all ORM models from database.session for clean imports
from carbonwise.database.session import (
    Activity,
    Base,
    CalculatorProfile,
    Goal,
    Insight,
    User,
    UserBadge,
    get_db,
)

__all__ = [
    'Activity',
    'Base',
    'CalculatorProfile',
    'Goal',
    'Insight',
    'User',
    'UserBadge',
    'get_db',
]
