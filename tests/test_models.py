"""Unit tests for Pydantic models."""

import pytest
import yaml
from datetime import datetime, timedelta, timezone

from planner.models import Metadata, Area, Project, Task, AreaTable, ProjectTable
from planner.version import APP_SCHEMA_VERSION

NOW = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def meta(entity_id: str = "id-1", created_at: datetime = NOW, updated_at: datetime = NOW) -> Metadata:
    return Metadata(id=entity_id, created_at=created_at, updated_at=updated_at)


class TestMetadata:
    """Test Metadata model."""

    def test_valid_metadata(self):
        m = meta(updated_at=NOW + timedelta(seconds=1))
        assert m.id == "id-1"
        assert m.updated_at > m.created_at

    def test_updated_before_created(self):
        with pytest.raises(ValueError, match="updated_at must not be before created_at"):
            meta(updated_at=NOW - timedelta(seconds=1))


class TestEntities:
    """Test Area, Project and Task models."""

    def test_area_defaults(self):
        area = Area(meta=meta(), name="Work")
        assert area.description == ""
        assert area.id == "id-1"
        assert area.created_at == NOW
        assert area.updated_at == NOW

    def test_project_fields(self):
        project = Project(meta=meta("p"), name="Launch", area_id="a", notes="n")
        assert project.id == "p"
        assert project.area_id == "a"
        assert project.notes == "n"

    def test_task_fields(self):
        task = Task(meta=meta("t"), name="Do it", project_id="p")
        assert task.project_id == "p"
        assert task.notes == ""

    @pytest.mark.parametrize("model, extra", [
        (Area, {}),
        (Project, {"area_id": "a"}),
        (Task, {"project_id": "p"}),
    ])
    def test_blank_name_rejected(self, model, extra):
        with pytest.raises(ValueError, match="name must not be empty"):
            model(meta=meta(), name="  ", **extra)

    def test_project_requires_area(self):
        with pytest.raises(ValueError):
            Project(meta=meta(), name="Launch")


class TestTables:
    """Test table documents."""

    def test_empty_table(self):
        table = AreaTable()
        assert table.schema_version == APP_SCHEMA_VERSION
        assert table.records == {}

    def test_record_key_must_match_id(self):
        with pytest.raises(ValueError, match="does not match its id"):
            AreaTable(records={"other": Area(meta=meta("id-1"), name="Work")})

    def test_yaml_document_layout(self):
        """Test the persisted layout keys records by id with a nested meta block."""
        project = Project(meta=meta("p1"), name="Launch", area_id="a1")
        table = ProjectTable(records={"p1": project})

        document = yaml.safe_load(table.to_yaml())
        assert document["schema_version"] == APP_SCHEMA_VERSION
        assert list(document["records"]) == ["p1"]
        record = document["records"]["p1"]
        assert record["meta"]["id"] == "p1"
        assert isinstance(record["meta"]["created_at"], str)
        assert record["area_id"] == "a1"

        assert ProjectTable.from_yaml(table.to_yaml()) == table

    def test_records_keep_insertion_order(self):
        ids = ["c", "a", "b"]
        table = AreaTable(records={i: Area(meta=meta(i), name=i) for i in ids})
        assert list(AreaTable.from_yaml(table.to_yaml()).records) == ids
