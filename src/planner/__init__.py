"""
Planner - A personal planning tool organizing work into a hierarchy.

This package provides the entity store behind the planner:
Area → Project → Task
"""

from .version import VERSION, APP_SCHEMA_VERSION
from .models import (
    Metadata,
    Area,
    Project,
    Task,
)
from .recovery import (
    PlannerError,
    ValidationError,
    NotFoundError,
    IntegrityError,
    PersistenceError,
)
from .config import PlannerConfig, load_config
from .data import EntityStore, open_store

__version__ = VERSION

__all__ = [
    "VERSION",
    "APP_SCHEMA_VERSION",
    "Metadata",
    "Area",
    "Project",
    "Task",
    "PlannerError",
    "ValidationError",
    "NotFoundError",
    "IntegrityError",
    "PersistenceError",
    "PlannerConfig",
    "load_config",
    "EntityStore",
    "open_store",
]
