from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Dict, Type, TypeVar
import yaml

from planner.version import APP_SCHEMA_VERSION

T = TypeVar('T', bound='BaseYAMLModel')

def check_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("name must not be empty")
    return v

class BaseYAMLModel(BaseModel):
    """A pydantic model that is persisted as a YAML document."""

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode='json'), default_flow_style=False, sort_keys=False, indent=2, allow_unicode=True)

    @classmethod
    def from_yaml(cls: Type[T], text: str) -> T:
        return cls.model_validate(yaml.safe_load(text) or {})

class Metadata(BaseModel):
    """Identity and timestamps shared by every entity; assigned by the store."""

    id: str = Field(description="Unique identifier of the entity")
    created_at: datetime = Field(description="When the entity was created")
    updated_at: datetime = Field(description="When the entity was last modified")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be before created_at")
        return self

class Area(BaseModel):
    """Top-level grouping of work, such as "Work" or "Personal"."""

    meta: Metadata
    name: str = Field(description="The human readable name of the area")
    description: str = Field(default="", description="What the area covers")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return check_name(v)

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def created_at(self) -> datetime:
        return self.meta.created_at

    @property
    def updated_at(self) -> datetime:
        return self.meta.updated_at

class Project(BaseModel):
    """A body of work belonging to exactly one area."""

    meta: Metadata
    name: str = Field(description="The human readable name of the project")
    area_id: str = Field(description="Id of the owning area")
    notes: str = Field(default="", description="Free-form notes")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return check_name(v)

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def created_at(self) -> datetime:
        return self.meta.created_at

    @property
    def updated_at(self) -> datetime:
        return self.meta.updated_at

class Task(BaseModel):
    """An actionable item belonging to exactly one project."""

    meta: Metadata
    name: str = Field(description="The human readable name of the task")
    project_id: str = Field(description="Id of the owning project")
    notes: str = Field(default="", description="Free-form notes")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return check_name(v)

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def created_at(self) -> datetime:
        return self.meta.created_at

    @property
    def updated_at(self) -> datetime:
        return self.meta.updated_at

def _validate_keys(records: Dict[str, BaseModel]) -> Dict[str, BaseModel]:
    for key, record in records.items():
        if key != record.meta.id:
            raise ValueError(f"Record key {key} does not match its id {record.meta.id}")
    return records

class AreaTable(BaseYAMLModel):
    """All areas, keyed by id in creation order."""

    schema_version: str = Field(default=APP_SCHEMA_VERSION, description="Schema version of this document")
    records: Dict[str, Area] = Field(default_factory=dict, description="Areas keyed by id")

    @field_validator('records')
    @classmethod
    def validate_keys(cls, v):
        return _validate_keys(v)

class ProjectTable(BaseYAMLModel):
    """All projects, keyed by id in creation order."""

    schema_version: str = Field(default=APP_SCHEMA_VERSION, description="Schema version of this document")
    records: Dict[str, Project] = Field(default_factory=dict, description="Projects keyed by id")

    @field_validator('records')
    @classmethod
    def validate_keys(cls, v):
        return _validate_keys(v)

class TaskTable(BaseYAMLModel):
    """All tasks, keyed by id in creation order."""

    schema_version: str = Field(default=APP_SCHEMA_VERSION, description="Schema version of this document")
    records: Dict[str, Task] = Field(default_factory=dict, description="Tasks keyed by id")

    @field_validator('records')
    @classmethod
    def validate_keys(cls, v):
        return _validate_keys(v)
