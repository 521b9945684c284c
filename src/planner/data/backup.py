import shutil
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from .io import atomic_write, create_dirs, DATA_JSON, load_json_file
from planner.logs import get_logger
from planner.recovery import FileOperationError, NotFoundError, PlannerError
from planner.version import VERSION, APP_SCHEMA_VERSION

log = get_logger('data.backup')

METADATA_FILENAME = "backup.json"

class BackupManager:
    """Copies the store's data files into timestamped backup folders."""

    def __init__(self, data_dir: Path, backup_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir)
        self.backup_dir = Path(backup_dir) if backup_dir is not None else self.data_dir / "backups"

    def _generate_backup_id(self, created_at: datetime, custom_name: Optional[str] = None) -> str:
        """Generate a backup ID with timestamp and optional custom name"""
        timestamp = created_at.strftime("%Y%m%d_%H%M%S_%f")
        if custom_name:
            # Sanitize custom name for filesystem
            safe_name = "".join(c for c in custom_name if c.isalnum() or c in ('-', '_')).strip()
            if safe_name:
                return f"{timestamp}_{safe_name}"
        return timestamp

    def _create_backup_metadata(self, backup_id: str, created_at: datetime, files_copied: List[str],
                              custom_name: Optional[str] = None) -> Dict[str, Any]:
        """Create metadata for a backup"""
        return {
            "backup_id": backup_id,
            "created_at": created_at.isoformat(timespec="microseconds"),
            "source_path": str(self.data_dir),
            "custom_name": custom_name,
            "files_count": len(files_copied),
            "files": files_copied,
            "planner_version": VERSION,
            "schema_version": APP_SCHEMA_VERSION,
        }

    def data_files(self) -> List[Path]:
        if not self.data_dir.exists():
            return []
        return sorted(p for p in self.data_dir.glob("*.yml") if p.is_file())

    def create_backup(self, backup_name: Optional[str] = None) -> Path:
        """
        Create a timestamped backup of the data files.

        Args:
            backup_name: Optional custom name appended to the backup id

        Returns:
            Path to the created backup directory
        """
        # The id and the metadata share one UTC timestamp
        created_at = datetime.now(timezone.utc)
        backup_id = self._generate_backup_id(created_at, backup_name)
        backup_path = self.backup_dir / backup_id
        create_dirs(backup_path)

        copied_files = []
        try:
            for file_path in self.data_files():
                shutil.copy2(file_path, backup_path / file_path.name)
                copied_files.append(file_path.name)
        except OSError as e:
            error_msg = f"Cannot copy data files into backup {backup_path}: {e}"
            log.error(error_msg)
            raise FileOperationError(error_msg) from e

        metadata = self._create_backup_metadata(backup_id, created_at, copied_files, backup_name)
        atomic_write(DATA_JSON, backup_path / METADATA_FILENAME, metadata)

        log.info(f"Created backup {backup_id} with {len(copied_files)} file(s)")
        return backup_path

    def list_backups(self) -> List[Dict[str, Any]]:
        """
        List all available backups with their metadata, newest first.
        """
        backups = []

        if not self.backup_dir.exists():
            return backups

        for backup_path in self.backup_dir.iterdir():
            if not backup_path.is_dir():
                continue
            try:
                metadata = load_json_file(backup_path / METADATA_FILENAME)
            except PlannerError as e:
                log.warning(f"Backup {backup_path.name} has unreadable metadata: {e}")
                metadata = None
            if metadata is None:
                # Incomplete or damaged backup, describe it from the directory
                files = sorted(p.name for p in backup_path.glob("*.yml"))
                metadata = {
                    "backup_id": backup_path.name,
                    "created_at": "",
                    "files_count": len(files),
                    "files": files,
                    "status": "metadata_missing",
                }
            metadata['backup_path'] = str(backup_path)
            backups.append(metadata)

        backups.sort(key=lambda x: (x.get("created_at", ""), x["backup_id"]), reverse=True)
        return backups

    def get_backup_info(self, backup_id: str) -> Dict[str, Any]:
        """Get detailed information about a specific backup"""
        for backup in self.list_backups():
            if backup["backup_id"] == backup_id:
                return backup
        raise NotFoundError("backup", backup_id)

    def restore_backup(self, backup_id: str, create_safety_backup: bool = True) -> Optional[Path]:
        """
        Replace the current data files with the ones stored in a backup.

        Args:
            backup_id: Name of the backup folder to restore from
            create_safety_backup: Back up the current state first

        Returns:
            Path of the safety backup, if one was created
        """
        backup_path = self.backup_dir / backup_id
        if not backup_path.is_dir():
            raise NotFoundError("backup", backup_id)

        safety_path = None
        if create_safety_backup:
            safety_path = self.create_backup(f"pre_restore_{backup_id}")

        create_dirs(self.data_dir)
        try:
            for file_path in self.data_files():
                file_path.unlink()
            for backup_file in sorted(backup_path.glob("*.yml")):
                shutil.copy2(backup_file, self.data_dir / backup_file.name)
        except OSError as e:
            error_msg = f"Error during restore of backup {backup_id}: {e}"
            log.error(error_msg)
            raise FileOperationError(error_msg) from e

        log.info(f"Restored backup {backup_id}")
        return safety_path

    def delete_backup(self, backup_id: str) -> bool:
        """Delete a specific backup"""
        backup_path = self.backup_dir / backup_id
        if not backup_path.is_dir():
            return False
        try:
            shutil.rmtree(backup_path)
        except OSError as e:
            raise FileOperationError(f"Error removing backup {backup_path}: {e}") from e
        return True

    def cleanup_old_backups(self, keep_count: int = 10) -> int:
        """Clean up old backups, keeping only the most recent ones"""
        deleted_count = 0
        for backup in self.list_backups()[keep_count:]:
            if self.delete_backup(backup["backup_id"]):
                deleted_count += 1

        if deleted_count:
            log.info(f"Removed {deleted_count} old backup(s)")
        return deleted_count
