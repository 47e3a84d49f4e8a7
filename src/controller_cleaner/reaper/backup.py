"""Backup of source files before they are rewritten, with restoration."""
import shutil
import secrets
from pathlib import Path
from datetime import datetime
from typing import Dict, List
from .manifest import Manifest


class SafeBackup:
    """Copies files into a trash directory before the cleaner rewrites them."""

    def __init__(self, trash_dir: str | Path = ".cleaner_trash"):
        """Initialize backup store.

        Args:
            trash_dir: Path to trash directory (default: .cleaner_trash)
        """
        self.trash_dir = Path(trash_dir)
        self.trash_dir.mkdir(parents=True, exist_ok=True)
        self.manifest = Manifest(self.trash_dir)

    def backup(self, file_path: str | Path, reason: str = "cleanup") -> str:
        """Copy a file to the trash and record it in the manifest.

        Args:
            file_path: File about to be rewritten
            reason: Why the file is being backed up

        Returns:
            Backup ID for restoration

        Raises:
            FileNotFoundError: If file doesn't exist
            OSError: If the copy fails
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        backup_id = self._generate_backup_id()
        backup_dir = self.trash_dir / backup_id
        backup_dir.mkdir(parents=True, exist_ok=True)

        backup_path = backup_dir / file_path.name
        shutil.copy2(str(file_path), str(backup_path))

        self.manifest.add_backup(
            backup_id=backup_id,
            original_path=str(file_path.resolve()),
            backup_path=str(backup_path),
            reason=reason,
            file_hash=self.manifest.calculate_file_hash(backup_path),
        )

        return backup_id

    def restore(self, backup_id: str):
        """Copy a backed-up file over its original location.

        Args:
            backup_id: Backup identifier

        Raises:
            ValueError: If backup ID not found
            OSError: If the backup copy is missing or restoration fails
        """
        record = self.manifest.get_backup(backup_id)

        if not record:
            raise ValueError(f"Backup ID not found: {backup_id}")

        # Restoring twice is a no-op
        if record.get("restored", False):
            return

        backup_path = Path(record["backup_path"])
        original_path = Path(record["original_path"])

        if not backup_path.exists():
            raise OSError(f"File not found in trash: {backup_path}")

        original_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(str(backup_path), str(original_path))

        self.manifest.mark_restored(backup_id)

    def restore_all(self, backup_ids: List[str]):
        """Restore multiple files, attempting every one before failing.

        Args:
            backup_ids: Backup identifiers

        Raises:
            OSError: If any restoration fails
        """
        errors = []

        for backup_id in backup_ids:
            try:
                self.restore(backup_id)
            except (ValueError, OSError) as e:
                errors.append(f"{backup_id}: {e}")

        if errors:
            raise OSError("Failed to restore some files:\n" + "\n".join(errors))

    def get_trash_info(self) -> Dict:
        """Get information about trash contents.

        Returns:
            Dictionary with backup statistics
        """
        all_backups = self.manifest.get_all_backups()
        unrestored = self.manifest.get_unrestored_backups()

        return {
            "total_backups": len(all_backups),
            "unrestored_count": len(unrestored),
            "restored_count": len(all_backups) - len(unrestored),
            "trash_dir": str(self.trash_dir),
        }

    def _generate_backup_id(self) -> str:
        """Generate unique backup ID with timestamp.

        Returns:
            Backup ID in format: YYYYMMDD_HHMMSS_randomhex
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{timestamp}_{secrets.token_hex(3)}"
