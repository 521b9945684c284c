"""
EntityStore - Durable store for the area → project → task hierarchy.

This module provides create/get/list/update/delete operations for areas,
projects and tasks, enforcing that every project belongs to an existing area,
every task to an existing project, and that a parent with children cannot be
deleted. Each entity kind is persisted as one YAML table in the data directory.
"""
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import pydantic

from planner.config import PlannerConfig, load_config
from planner.logs import get_logger
from planner.migrate import MigrationEngine
from planner.models import Area, AreaTable, BaseYAMLModel, Metadata, Project, ProjectTable, Task, TaskTable
from planner.recovery import CorruptionError, IntegrityError, NotFoundError, PersistenceError, ValidationError
from .backup import BackupManager
from .integrity import (area_has_dependents, count_projects, count_tasks,
                        find_dangling_references, project_has_dependents)
from .io import atomic_write, create_dirs, load_yaml_file, DATA_YAML
from .validate import needs_migration, validate_document

log = get_logger("data")

R = TypeVar('R', Area, Project, Task)

@dataclass(frozen=True)
class EntityKind:
    label: str
    filename: str
    table_type: Type[BaseYAMLModel]

AREAS = EntityKind("area", "areas.yml", AreaTable)
PROJECTS = EntityKind("project", "projects.yml", ProjectTable)
TASKS = EntityKind("task", "tasks.yml", TaskTable)
KINDS = (AREAS, PROJECTS, TASKS)

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _advance(previous: datetime) -> datetime:
    """A timestamp strictly later than previous, even if the clock has not moved."""
    now = _now()
    if now > previous:
        return now
    return previous + timedelta(microseconds=1)

def _check_encodable(field: str, value: str) -> str:
    try:
        value.encode('utf-8')
    except UnicodeEncodeError:
        raise ValidationError(f"{field} must be valid UTF-8 text")
    return value

def _require_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    return _check_encodable("name", name)

def _require_id(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    return value

def _optional_text(field: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return _check_encodable(field, value)

class EntityStore:
    """
    Areas, projects and tasks persisted in a data directory.

    Mutations are serialized by a lock and written with an atomic file replace
    before the in-memory tables are swapped, so a failed write changes nothing.
    Reads use the current tables without locking and return deep copies.
    """

    def __init__(self, data_dir: Union[Path, str], backup_manager: Optional[BackupManager] = None,
                 migration_engine: Optional[MigrationEngine] = None):
        self.data_dir = Path(data_dir)
        self.backups = backup_manager or BackupManager(self.data_dir)
        self.migrations = migration_engine or MigrationEngine()
        self._lock = threading.RLock()
        self._tables: Dict[EntityKind, BaseYAMLModel] = {}
        create_dirs(self.data_dir)
        self.reload()

    def path_for(self, kind: EntityKind) -> Path:
        return self.data_dir / kind.filename

    # ── Loading ───────────────────────────────────────────────

    def reload(self):
        """Re-read every table from disk, migrating and validating it."""
        with self._lock:
            documents = {kind: load_yaml_file(self.path_for(kind)) for kind in KINDS}
            stale = [kind for kind, data in documents.items()
                     if data is not None and needs_migration(data, self.path_for(kind))]
            if stale:
                self.backups.create_backup("pre_migrate")

            tables = {}
            for kind, data in documents.items():
                tables[kind] = self._build_table(kind, data, kind in stale)

            problems = find_dangling_references(tables[AREAS].records.values(),
                                                tables[PROJECTS].records.values(),
                                                tables[TASKS].records.values())
            if problems:
                raise CorruptionError(f"Dangling references in {self.data_dir}: {'; '.join(problems)}")

            self._tables = tables
            log.info(f"Loaded {len(tables[AREAS].records)} areas, {len(tables[PROJECTS].records)} projects, "
                     f"{len(tables[TASKS].records)} tasks from {self.data_dir}")

    def _build_table(self, kind: EntityKind, data: Optional[Dict[str, Any]], stale: bool) -> BaseYAMLModel:
        path = self.path_for(kind)
        if data is None:
            return kind.table_type()

        if stale:
            data = self.migrations.upgrade(data)
        validate_document(data, kind.table_type, path)
        try:
            table = kind.table_type.model_validate(data)
        except pydantic.ValidationError as e:
            raise CorruptionError(f"File {path} contains invalid {kind.label} records: {e}") from e

        if stale:
            self._write(kind, table)
            log.info(f"Migrated {path} to schema {table.schema_version}")
        return table

    # ── Persistence helpers ───────────────────────────────────

    def _write(self, kind: EntityKind, table: BaseYAMLModel):
        atomic_write(DATA_YAML, self.path_for(kind), table.model_dump(mode='json'))

    def _records(self, kind: EntityKind) -> Dict[str, Any]:
        return self._tables[kind].records

    def _commit(self, kind: EntityKind, records: Dict[str, Any]):
        table = self._tables[kind].model_copy(update={'records': records})
        self._write(kind, table)
        self._tables = {**self._tables, kind: table}

    def _new_id(self) -> str:
        while True:
            entity_id = str(uuid.uuid4())
            if not any(entity_id in self._records(kind) for kind in KINDS):
                return entity_id

    def _new_meta(self) -> Metadata:
        now = _now()
        return Metadata(id=self._new_id(), created_at=now, updated_at=now)

    def _insert(self, kind: EntityKind, record: R) -> R:
        records = dict(self._records(kind))
        records[record.id] = record
        self._commit(kind, records)
        log.debug(f"Created {kind.label} {record.id}")
        return record.model_copy(deep=True)

    def _get(self, kind: EntityKind, entity_id: str) -> R:
        record = self._tables[kind].records.get(entity_id)
        if record is None:
            raise NotFoundError(kind.label, entity_id)
        return record.model_copy(deep=True)

    def _update(self, kind: EntityKind, entity_id: str, changes: Dict[str, str]) -> R:
        with self._lock:
            current = self._records(kind).get(entity_id)
            if current is None:
                raise NotFoundError(kind.label, entity_id)

            meta = current.meta.model_copy(update={'updated_at': _advance(current.meta.updated_at)})
            updated = current.model_copy(update={**changes, 'meta': meta})

            records = dict(self._records(kind))
            records[entity_id] = updated
            self._commit(kind, records)

        log.debug(f"Updated {kind.label} {entity_id}: {sorted(changes)}")
        return updated.model_copy(deep=True)

    def _remove(self, kind: EntityKind, entity_id: str):
        records = dict(self._records(kind))
        del records[entity_id]
        self._commit(kind, records)
        log.debug(f"Deleted {kind.label} {entity_id}")

    # ── Areas ─────────────────────────────────────────────────

    def create_area(self, name: str, description: Optional[str] = "") -> Area:
        """
        Create an area.

        Raises:
            ValidationError: If name is empty or whitespace only.
        """
        _require_name(name)
        description = _optional_text("description", description)
        with self._lock:
            area = Area(meta=self._new_meta(), name=name, description=description)
            return self._insert(AREAS, area)

    def get_area(self, area_id: str) -> Area:
        return self._get(AREAS, area_id)

    def list_areas(self) -> List[Area]:
        """All areas in creation order."""
        return [a.model_copy(deep=True) for a in self._tables[AREAS].records.values()]

    def update_area(self, area_id: str, name: Optional[str] = None, description: Optional[str] = None) -> Area:
        """
        Change the supplied fields of an area; None leaves a field untouched.
        """
        changes = {}
        if name is not None:
            changes['name'] = _require_name(name)
        if description is not None:
            changes['description'] = _optional_text("description", description)
        return self._update(AREAS, area_id, changes)

    def delete_area(self, area_id: str):
        """
        Delete an area that has no projects.

        Raises:
            NotFoundError: If the area does not exist.
            IntegrityError: If any project still belongs to the area.
        """
        with self._lock:
            if area_id not in self._records(AREAS):
                raise NotFoundError(AREAS.label, area_id)
            projects = self._records(PROJECTS).values()
            if area_has_dependents(area_id, projects):
                raise IntegrityError(AREAS.label, area_id, count_projects(area_id, projects), PROJECTS.label)
            self._remove(AREAS, area_id)

    # ── Projects ──────────────────────────────────────────────

    def create_project(self, name: str, area_id: str, notes: Optional[str] = "") -> Project:
        """
        Create a project inside an existing area.

        Raises:
            ValidationError: If name or area_id is empty.
            NotFoundError: If the area does not exist.
        """
        _require_name(name)
        _require_id("area_id", area_id)
        notes = _optional_text("notes", notes)
        with self._lock:
            if area_id not in self._records(AREAS):
                raise NotFoundError(AREAS.label, area_id)
            project = Project(meta=self._new_meta(), name=name, area_id=area_id, notes=notes)
            return self._insert(PROJECTS, project)

    def get_project(self, project_id: str) -> Project:
        return self._get(PROJECTS, project_id)

    def list_projects(self, area_id: Optional[str] = None) -> List[Project]:
        """
        Projects in creation order, optionally only those of one area.

        An area id that matches nothing yields an empty list.
        """
        projects = self._tables[PROJECTS].records.values()
        if area_id:
            projects = [p for p in projects if p.area_id == area_id]
        return [p.model_copy(deep=True) for p in projects]

    def update_project(self, project_id: str, name: Optional[str] = None, notes: Optional[str] = None) -> Project:
        changes = {}
        if name is not None:
            changes['name'] = _require_name(name)
        if notes is not None:
            changes['notes'] = _optional_text("notes", notes)
        return self._update(PROJECTS, project_id, changes)

    def delete_project(self, project_id: str):
        """
        Delete a project that has no tasks.

        Raises:
            NotFoundError: If the project does not exist.
            IntegrityError: If any task still belongs to the project.
        """
        with self._lock:
            if project_id not in self._records(PROJECTS):
                raise NotFoundError(PROJECTS.label, project_id)
            tasks = self._records(TASKS).values()
            if project_has_dependents(project_id, tasks):
                raise IntegrityError(PROJECTS.label, project_id, count_tasks(project_id, tasks), TASKS.label)
            self._remove(PROJECTS, project_id)

    # ── Tasks ─────────────────────────────────────────────────

    def create_task(self, name: str, project_id: str, notes: Optional[str] = "") -> Task:
        """
        Create a task inside an existing project.

        Raises:
            ValidationError: If name or project_id is empty.
            NotFoundError: If the project does not exist.
        """
        _require_name(name)
        _require_id("project_id", project_id)
        notes = _optional_text("notes", notes)
        with self._lock:
            if project_id not in self._records(PROJECTS):
                raise NotFoundError(PROJECTS.label, project_id)
            task = Task(meta=self._new_meta(), name=name, project_id=project_id, notes=notes)
            return self._insert(TASKS, task)

    def get_task(self, task_id: str) -> Task:
        return self._get(TASKS, task_id)

    def list_tasks(self, project_id: Optional[str] = None) -> List[Task]:
        """Tasks in creation order, optionally only those of one project."""
        tasks = self._tables[TASKS].records.values()
        if project_id:
            tasks = [t for t in tasks if t.project_id == project_id]
        return [t.model_copy(deep=True) for t in tasks]

    def update_task(self, task_id: str, name: Optional[str] = None, notes: Optional[str] = None) -> Task:
        changes = {}
        if name is not None:
            changes['name'] = _require_name(name)
        if notes is not None:
            changes['notes'] = _optional_text("notes", notes)
        return self._update(TASKS, task_id, changes)

    def delete_task(self, task_id: str):
        with self._lock:
            if task_id not in self._records(TASKS):
                raise NotFoundError(TASKS.label, task_id)
            self._remove(TASKS, task_id)

    # ── Backups ───────────────────────────────────────────────

    def backup(self, name: Optional[str] = None) -> Path:
        """Snapshot the current data files."""
        with self._lock:
            return self.backups.create_backup(name)

    def restore_backup(self, backup_id: str):
        """
        Replace the data files with a backup and reload them.

        If the restored files cannot be loaded, the files saved in the safety
        backup are put back and reloaded before the error is raised.
        """
        with self._lock:
            safety_path = self.backups.restore_backup(backup_id)
            try:
                self.reload()
            except PersistenceError as e:
                log.error(f"Backup {backup_id} cannot be loaded, rolling back: {e}")
                self.backups.restore_backup(safety_path.name, create_safety_backup=False)
                self.reload()
                raise

def open_store(config: Optional[PlannerConfig] = None) -> EntityStore:
    """
    Open the store described by config (or the default configuration).

    Existing data is backed up first and old backups are rotated down to
    ``config.max_backups``.
    """
    config = config or load_config()
    create_dirs(config.data_dir)
    backups = BackupManager(config.data_dir, config.backup_dir)
    if config.backup_on_open and backups.data_files():
        backups.create_backup()
        backups.cleanup_old_backups(config.max_backups)
    return EntityStore(config.data_dir, backup_manager=backups)
