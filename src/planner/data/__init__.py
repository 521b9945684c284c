"""
Data management submodule: the entity store and its persistence helpers.
"""

from .core import EntityStore, EntityKind, open_store, AREAS, PROJECTS, TASKS
from .backup import BackupManager

__all__ = [
    'EntityStore',
    'EntityKind',
    'open_store',
    'AREAS',
    'PROJECTS',
    'TASKS',
    'BackupManager',
]
