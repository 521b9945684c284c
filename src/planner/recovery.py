class PlannerError(Exception):
    """Base exception for all planner errors."""
    pass

class RecoverableError(PlannerError):
    """The request was rejected; stored data is unchanged."""
    pass

class FatalError(PlannerError):
    """An error that requires application termination or major intervention."""
    pass

class ValidationError(RecoverableError):
    """Caller-supplied data violates a field constraint."""
    pass

class NotFoundError(RecoverableError):
    """A referenced entity does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")

class IntegrityError(RecoverableError):
    """Delete blocked by existing dependents."""

    def __init__(self, kind: str, entity_id: str, dependents: int, dependent_kind: str):
        self.kind = kind
        self.entity_id = entity_id
        self.dependents = dependents
        self.dependent_kind = dependent_kind
        super().__init__(f"{kind} {entity_id} has dependents: {dependents} {dependent_kind}(s)")

class PersistenceError(FatalError):
    """The storage medium failed; the operation did not apply."""
    pass

class FileOperationError(PersistenceError):
    """Reading or writing a data file failed."""
    pass

class MigrationNeededError(PersistenceError):
    """ Data was written by a newer schema than this release understands """
    pass

class CorruptionError(PersistenceError):
    """Corrupted Data Error - from syntax errors in data formats, to just unknown data"""
    pass

class MigrationError(CorruptionError):
    """Data migration failed - data may be corrupted."""
    pass
