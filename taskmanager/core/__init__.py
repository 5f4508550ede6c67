"""
Core module - data models and shared helpers.

This module contains:
- models: Core value types (User, Project, LinkCode)
- utils: time helpers and clocks
"""

from taskmanager.core.models import (
    User,
    Project,
    LinkCode,
)

from taskmanager.core.utils import (
    Clock,
    FrozenClock,
    SystemClock,
    to_millis,
    utc_now,
)

__all__ = [
    # Models
    "User",
    "Project",
    "LinkCode",
    # Utils
    "Clock",
    "FrozenClock",
    "SystemClock",
    "to_millis",
    "utc_now",
]
