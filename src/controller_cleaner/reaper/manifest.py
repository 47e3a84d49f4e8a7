"""Backup manifest management for file restoration."""
import json
import hashlib
from pathlib import Path
from datetime import datetime
from typing import List, Dict, Optional


class Manifest:
    """Manage JSON manifest for tracking backed-up source files."""

    VERSION = "1.0"

    def __init__(self, trash_dir: str | Path):
        """Initialize manifest.

        Args:
            trash_dir: Path to trash directory
        """
        self.trash_dir = Path(trash_dir)
        self.manifest_path = self.trash_dir / "manifest.json"
        self._ensure_manifest_exists()

    def _ensure_manifest_exists(self):
        """Create manifest file if it doesn't exist."""
        self.trash_dir.mkdir(parents=True, exist_ok=True)

        if not self.manifest_path.exists():
            self._write_manifest({"version": self.VERSION, "backups": []})

    def _read_manifest(self) -> Dict:
        """Read manifest from disk.

        Returns:
            Manifest dictionary (empty manifest if unreadable)
        """
        try:
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            return {"version": self.VERSION, "backups": []}
        data.setdefault("backups", [])
        return data

    def _write_manifest(self, data: Dict):
        """Write manifest to disk atomically.

        Args:
            data: Manifest dictionary to write
        """
        temp_path = self.manifest_path.with_suffix('.tmp')
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        temp_path.replace(self.manifest_path)

    def add_backup(self, backup_id: str, original_path: str, backup_path: str,
                   reason: str, file_hash: str):
        """Add backup record to manifest.

        Args:
            backup_id: Unique backup identifier
            original_path: Absolute path of the source file
            backup_path: Path of the copy in the trash directory
            reason: Why the file was backed up (e.g., 'cleanup', 'mark')
            file_hash: SHA256 hash of the copy for verification
        """
        manifest = self._read_manifest()
        manifest["backups"].append({
            "id": backup_id,
            "original_path": str(original_path),
            "backup_path": str(backup_path),
            "created_at": datetime.now().isoformat(),
            "reason": reason,
            "file_hash": file_hash,
            "restored": False,
        })
        self._write_manifest(manifest)

    def get_backup(self, backup_id: str) -> Optional[Dict]:
        for record in self._read_manifest()["backups"]:
            if record["id"] == backup_id:
                return record
        return None

    def mark_restored(self, backup_id: str):
        manifest = self._read_manifest()

        for record in manifest["backups"]:
            if record["id"] == backup_id:
                record["restored"] = True
                break

        self._write_manifest(manifest)

    def get_all_backups(self) -> List[Dict]:
        return self._read_manifest()["backups"]

    def get_unrestored_backups(self) -> List[Dict]:
        return [r for r in self._read_manifest()["backups"] if not r.get("restored", False)]

    @staticmethod
    def calculate_file_hash(file_path: str | Path) -> str:
        """Calculate SHA256 hash of file.

        Args:
            file_path: Path to file

        Returns:
            SHA256 hash as hex string
        """
        sha256_hash = hashlib.sha256()

        with open(file_path, "rb") as f:
            for byte_block in iter(lambda: f.read(4096), b""):
                sha256_hash.update(byte_block)

        return sha256_hash.hexdigest()
