import importlib
import pkgutil
from types import ModuleType
from typing import Dict, Iterable, List, Optional, Type

from packaging.version import Version

import planner.migrations
from planner.logs import get_logger
from planner.migration import Migration, TableDocument
from planner.recovery import MigrationError
from planner.version import APP_SCHEMA_VERSION

log = get_logger("migrate")

class MigrationEngine:
    """
    Upgrades stored table documents to the application schema version.

    Concrete Migration classes are discovered in the ``planner.migrations``
    package and chained by their FROM_VERSION/VERSION attributes.
    """
    def __init__(self, migrations: Optional[Iterable[Migration]] = None):
        """Initializes the engine with explicit migrations, or discovers them."""
        self.migrations: Dict[Version, Migration] = {}
        if migrations is None:
            migrations = self._discover_migrations()
        for migration in migrations:
            self.register(migration)
        log.debug(f"Loaded migrations: {self.describe()}")

    def register(self, migration: Migration):
        from_version = Version(migration.FROM_VERSION)
        if from_version in self.migrations:
            raise MigrationError(f"Duplicate migration from schema {from_version}")
        self.migrations[from_version] = migration

    def describe(self) -> List[str]:
        return [f"{m.FROM_VERSION}_to_{m.VERSION}" for _, m in sorted(self.migrations.items())]

    def _discover_migrations(self) -> List[Migration]:
        """
        Imports every module in ``planner.migrations`` and instantiates the
        concrete Migration class each one defines.
        """
        found = []
        for module_info in pkgutil.iter_modules(planner.migrations.__path__):
            module = importlib.import_module(f"{planner.migrations.__name__}.{module_info.name}")
            migration_class = self._find_migration_class_in_module(module)
            if migration_class:
                found.append(migration_class())
                log.debug(f"Loaded migration class '{migration_class.__name__}' from '{module_info.name}'.")
            else:
                log.warning(f"Module '{module_info.name}' does not contain a concrete Migration class.")
        return found

    def _find_migration_class_in_module(self, module: ModuleType) -> Optional[Type[Migration]]:
        """
        Helper method to find a concrete subclass of Migration in a loaded module.
        """
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (isinstance(attr, type) and
                issubclass(attr, Migration) and
                attr is not Migration and
                attr.__module__ == module.__name__):
                return attr
        return None

    def get_migration_path(self, current_version: str, target_version: str = APP_SCHEMA_VERSION) -> List[Migration]:
        """
        Determines the sequence of migrations needed to get from
        current_version to target_version.

        Raises:
            MigrationError: If a step in the chain is missing.
        """
        version = Version(current_version)
        target = Version(target_version)
        path = []
        while version < target:
            migration = self.migrations.get(version)
            if migration is None:
                raise MigrationError(f"No migration from schema {version} towards {target}")
            path.append(migration)
            version = Version(migration.VERSION)
        if version != target:
            raise MigrationError(f"Migrations from {current_version} overshoot target {target}")
        return path

    def upgrade(self, data: TableDocument, target_version: str = APP_SCHEMA_VERSION) -> TableDocument:
        """
        Applies every migration step between the document's schema version
        and target_version.

        Returns:
            The upgraded document, stamped with target_version.
        """
        current_version = str(data.get('schema_version'))
        for migration in self.get_migration_path(current_version, target_version):
            log.info(f"Migrating from {migration.FROM_VERSION} to {migration.VERSION}...")
            try:
                data = migration.upgrade(data)
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                raise MigrationError(
                    f"Migration {migration.FROM_VERSION} to {migration.VERSION} failed: {e}") from e
            data['schema_version'] = migration.VERSION
        return data
