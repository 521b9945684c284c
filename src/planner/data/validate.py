from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Type, Union

from jsonschema import Draft202012Validator, ValidationError, SchemaError
from packaging.version import Version, InvalidVersion
from pydantic import BaseModel

from planner.logs import get_logger
from planner.recovery import CorruptionError, MigrationNeededError
from planner.version import APP_SCHEMA_VERSION

log = get_logger("data.validate")

@lru_cache(maxsize=None)
def table_schema(model_type: Type[BaseModel]) -> Dict[str, Any]:
    """Generate the JSON schema a stored document of this model must satisfy."""
    schema = model_type.model_json_schema()
    schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
    return schema

def document_version(data: Dict[str, Any], file_path: Union[Path, str]) -> Version:
    """
    Read the schema version stamped on a stored document.

    Raises:
        CorruptionError: If the stamp is missing or not a version string.
    """
    raw = data.get('schema_version')
    if raw is None:
        raise CorruptionError(f"File {file_path} has no schema_version")
    try:
        return Version(str(raw))
    except InvalidVersion as e:
        raise CorruptionError(f"File {file_path} has invalid schema_version {raw!r}") from e

def needs_migration(data: Dict[str, Any], file_path: Union[Path, str]) -> bool:
    """
    Compare a document's schema version with the application's.

    Returns:
        True if the document is older and must be migrated, False if current.

    Raises:
        MigrationNeededError: If the document was written by a newer schema.
    """
    version = document_version(data, file_path)
    app_version = Version(APP_SCHEMA_VERSION)
    log.debug(f"{file_path}: schema {version}; APP: {app_version}")
    if version > app_version:
        raise MigrationNeededError(
            f"File {file_path} uses schema {version}, newer than supported {app_version}; upgrade planner")
    return version < app_version

def validate_document(data: Dict[str, Any], model_type: Type[BaseModel], file_path: Union[Path, str]):
    """
    Validate a loaded document against the JSON schema of its table model.

    Raises:
        CorruptionError: If the document does not match the schema.
    """
    schema = table_schema(model_type)
    try:
        Draft202012Validator(schema).validate(data)
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        log.error(f"File '{file_path}' FAILED validation at {location}: {e.message}")
        raise CorruptionError(f"File {file_path} failed validation at {location}: {e.message}") from e
    except SchemaError as e:
        raise CorruptionError(f"Schema for {model_type.__name__} is invalid: {e.message}") from e
    log.debug(f"File '{file_path}' is VALID for schema version '{APP_SCHEMA_VERSION}'.")
