"""Unit tests for BackupManager and store-level backups."""

import pytest
import yaml
from datetime import datetime, timedelta
from pathlib import Path

from planner.config import PlannerConfig
from planner.data import EntityStore, BackupManager, open_store
from planner.recovery import CorruptionError, MigrationNeededError, NotFoundError


def data_snapshot(data_dir: Path):
    return {p.name: p.read_text() for p in sorted(data_dir.glob("*.yml"))}


class TestBackupManager:
    """Test creating, listing, restoring and rotating backups."""

    def test_create_backup(self, store: EntityStore, data_dir: Path, project):
        backup_path = store.backups.create_backup("before-cleanup")

        assert backup_path.parent == data_dir / "backups"
        assert backup_path.name.endswith("_before-cleanup")
        assert (backup_path / "areas.yml").read_text() == (data_dir / "areas.yml").read_text()
        assert (backup_path / "projects.yml").exists()
        assert (backup_path / "backup.json").exists()

    def test_backup_name_is_sanitized(self, tmp_path: Path):
        manager = BackupManager(tmp_path)
        backup_path = manager.create_backup("../evil name!")
        assert backup_path.parent == tmp_path / "backups"
        assert backup_path.name.endswith("_evilname")

    def test_list_backups_newest_first(self, store: EntityStore):
        first = store.backups.create_backup("first")
        second = store.backups.create_backup("second")

        backups = store.backups.list_backups()
        assert [b["backup_id"] for b in backups] == [second.name, first.name]
        assert backups[0]["custom_name"] == "second"

    def test_list_without_backups(self, tmp_path: Path):
        assert BackupManager(tmp_path).list_backups() == []

    def test_backup_without_metadata(self, store: EntityStore, area):
        backup_path = store.backups.create_backup()
        (backup_path / "backup.json").unlink()

        backups = store.backups.list_backups()
        assert backups[0]["status"] == "metadata_missing"
        assert backups[0]["files"] == ["areas.yml"]

    def test_get_backup_info(self, store: EntityStore, area):
        backup_path = store.backups.create_backup()
        info = store.backups.get_backup_info(backup_path.name)
        assert info["files"] == ["areas.yml"]
        with pytest.raises(NotFoundError):
            store.backups.get_backup_info("missing")

    def test_backup_id_uses_created_at(self, store: EntityStore, area):
        backup_path = store.backups.create_backup("named")
        created_at = datetime.fromisoformat(store.backups.get_backup_info(backup_path.name)["created_at"])

        stamp = datetime.strptime("_".join(backup_path.name.split("_")[:3]), "%Y%m%d_%H%M%S_%f")
        assert created_at.utcoffset() == timedelta(0)
        assert stamp == created_at.replace(tzinfo=None)

    def test_cleanup_old_backups(self, store: EntityStore, area):
        created = [store.backups.create_backup(f"b{i}") for i in range(5)]

        removed = store.backups.cleanup_old_backups(keep_count=2)

        assert removed == 3
        remaining = [b["backup_id"] for b in store.backups.list_backups()]
        assert remaining == [created[4].name, created[3].name]

    def test_delete_backup(self, store: EntityStore):
        backup_path = store.backups.create_backup()
        assert store.backups.delete_backup(backup_path.name)
        assert not backup_path.exists()
        assert not store.backups.delete_backup(backup_path.name)


class TestRestore:
    """Test restoring a backup through the store."""

    def test_restore_backup(self, store: EntityStore, area, project):
        backup_path = store.backup("checkpoint")
        task = store.create_task("Added later", project.id)
        store.update_area(area.id, name="Renamed")

        store.restore_backup(backup_path.name)

        assert store.get_area(area.id) == area
        assert store.list_tasks() == []
        with pytest.raises(NotFoundError):
            store.get_task(task.id)

    def test_restore_takes_safety_backup(self, store: EntityStore, area):
        backup_path = store.backup()
        store.restore_backup(backup_path.name)

        names = [b.get("custom_name") for b in store.backups.list_backups()]
        assert f"pre_restore_{backup_path.name}" in names

    def test_restore_missing_backup(self, store: EntityStore, area):
        with pytest.raises(NotFoundError, match="backup not found"):
            store.restore_backup("missing")
        assert store.get_area(area.id) == area

    def test_restore_unloadable_backup_rolls_back(self, store: EntityStore, data_dir: Path, area, project):
        """Test a backup with a dangling reference leaves files and tables as they were."""
        backup_path = store.backup("dangling")
        projects_file = backup_path / "projects.yml"
        projects_file.write_text(projects_file.read_text().replace(area.id, "ghost-area"))
        task = store.create_task("Added later", project.id)
        before = data_snapshot(data_dir)

        with pytest.raises(CorruptionError, match="references missing area ghost-area"):
            store.restore_backup(backup_path.name)

        assert data_snapshot(data_dir) == before
        assert store.get_task(task.id) == task
        other = store.create_area("Still writable")

        reopened = EntityStore(data_dir)
        assert reopened.get_project(project.id) == project
        assert reopened.get_task(task.id) == task
        assert reopened.get_area(other.id) == other

    def test_restore_newer_backup_rolls_back(self, store: EntityStore, data_dir: Path, area):
        """Test a backup written by a newer schema is refused without touching the data."""
        backup_path = store.backup("future")
        areas_file = backup_path / "areas.yml"
        document = yaml.safe_load(areas_file.read_text())
        document["schema_version"] = "99.0.0"
        areas_file.write_text(yaml.safe_dump(document, sort_keys=False))
        later = store.create_area("Added later")
        before = data_snapshot(data_dir)

        with pytest.raises(MigrationNeededError, match="newer than supported"):
            store.restore_backup(backup_path.name)

        assert data_snapshot(data_dir) == before
        assert store.list_areas() == [area, later]
        assert EntityStore(data_dir).list_areas() == [area, later]


class TestOpenStore:
    """Test opening a store from configuration."""

    def test_open_empty_directory(self, data_dir: Path):
        store = open_store(PlannerConfig(data_dir=data_dir))
        assert store.list_areas() == []
        assert store.backups.list_backups() == []

    def test_open_backs_up_existing_data(self, data_dir: Path):
        area = open_store(PlannerConfig(data_dir=data_dir)).create_area("Work")

        store = open_store(PlannerConfig(data_dir=data_dir))

        assert store.get_area(area.id) == area
        backups = store.backups.list_backups()
        assert len(backups) == 1
        assert backups[0]["files"] == ["areas.yml"]

    def test_open_rotates_backups(self, data_dir: Path):
        config = PlannerConfig(data_dir=data_dir, max_backups=2)
        open_store(config).create_area("Work")
        for _ in range(4):
            open_store(config)
        assert len(open_store(config).backups.list_backups()) == 2

    def test_backup_on_open_disabled(self, data_dir: Path):
        config = PlannerConfig(data_dir=data_dir, backup_on_open=False)
        open_store(config).create_area("Work")
        assert open_store(config).backups.list_backups() == []
