import abc
from typing import Any, Dict

# One table file (areas.yml, projects.yml or tasks.yml) as a plain mapping:
# a ``schema_version`` string plus that version's ``records`` layout.
TableDocument = Dict[str, Any]

class Migration(abc.ABC):
    """
    One step in the chain of table schema versions.

    A step is keyed by the schema version it accepts. MigrationEngine strings
    steps together from a file's ``schema_version`` up to APP_SCHEMA_VERSION
    and stamps VERSION on the result of each step.
    """
    FROM_VERSION = None
    VERSION = None

    @abc.abstractmethod
    def upgrade(self, data: TableDocument) -> TableDocument:
        """Return a copy of ``data`` laid out for VERSION. ``data`` is not modified."""

    @abc.abstractmethod
    def downgrade(self, data: TableDocument) -> TableDocument:
        """Return a copy of ``data`` laid out for FROM_VERSION again."""
