"""Tests for file backups taken before rewrites, and their restoration."""
import pytest

from controller_cleaner.analyzer.model import SymbolId, SymbolKind
from controller_cleaner.reaper.backup import SafeBackup


class TestSafeBackup:

    def test_backup_and_restore(self, tmp_path):
        source = tmp_path / "A.java"
        source.write_text("class A {}\n", encoding="utf-8")
        backup = SafeBackup(tmp_path / ".cleaner_trash")

        backup_id = backup.backup(source, reason="cleanup")
        source.write_text("changed\n", encoding="utf-8")
        backup.restore(backup_id)

        assert source.read_text(encoding="utf-8") == "class A {}\n"
        record = backup.manifest.get_backup(backup_id)
        assert record["restored"] is True
        assert record["file_hash"] == backup.manifest.calculate_file_hash(record["backup_path"])
        assert backup.get_trash_info()["restored_count"] == 1

    def test_unknown_id(self, tmp_path):
        backup = SafeBackup(tmp_path / ".cleaner_trash")
        with pytest.raises(ValueError, match="Backup ID not found"):
            backup.restore("20240101_000000_abcdef")

    def test_restore_all_reports_every_failure(self, tmp_path):
        backup = SafeBackup(tmp_path / ".cleaner_trash")
        with pytest.raises(OSError) as excinfo:
            backup.restore_all(["missing-1", "missing-2"])
        assert "missing-1" in str(excinfo.value) and "missing-2" in str(excinfo.value)

    def test_missing_file(self, tmp_path):
        backup = SafeBackup(tmp_path / ".cleaner_trash")
        with pytest.raises(FileNotFoundError):
            backup.backup(tmp_path / "nope.java")


class TestProviderBackups:
    """The file-system provider backs a file up once, before its first write."""

    def test_one_backup_per_file(self, project):
        project.write("A.java", "class A {\n    void a() {}\n    void b() {}\n}\n")
        backup = SafeBackup(project.root / ".cleaner_trash")
        provider = project.provider(backup=backup)

        provider.delete(SymbolId(SymbolKind.METHOD, "A.java", "A.a", "()"))
        provider.delete(SymbolId(SymbolKind.METHOD, "A.java", "A.b", "()"))

        records = backup.manifest.get_all_backups()
        assert len(records) == 1
        assert provider.backup_ids == {"A.java": records[0]["id"]}

        backup.restore(records[0]["id"])
        assert project.read("A.java") == "class A {\n    void a() {}\n    void b() {}\n}\n"

    def test_trash_directory_is_not_scanned(self, project):
        project.write("A.java", "class A {}\n")
        backup = SafeBackup(project.root / ".cleaner_trash")
        backup.backup(project.root / "A.java")

        assert project.provider(backup=backup).list_files() == ["A.java"]
