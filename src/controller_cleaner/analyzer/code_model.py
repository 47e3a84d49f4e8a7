"""Code model providers: the read/write view of a Java source tree."""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Set

from ..errors import ModelReadError, MutationError
from ..reaper.symbol_remover import JavaSymbolRemover
from .extractor import JavaSymbolExtractor
from .model import FileModel, ModelSnapshot, SymbolId
from .parser import LanguageParser


class CodeModelProvider(ABC):
    """Pluggable access to the program model.

    Every read returns a fresh snapshot; callers must never keep nodes or
    offsets across a write. Symbols are addressed by SymbolId only.
    """

    @abstractmethod
    def list_files(self, scope: Optional[Iterable[str]] = None) -> List[str]:
        """List source files, optionally restricted to a scope."""

    @abstractmethod
    def read_snapshot(self) -> ModelSnapshot:
        """Read the whole project into a fresh, immutable snapshot.

        Raises:
            ModelReadError: If the model cannot be read consistently
        """

    @abstractmethod
    def is_valid(self, identity: SymbolId) -> bool:
        """Check the symbol still exists in the current state of its file."""

    @abstractmethod
    def delete(self, identity: SymbolId) -> None:
        """Delete a symbol from its file.

        Raises:
            StaleSymbolError: If the symbol no longer exists
            MutationError: If the deletion fails
        """

    @abstractmethod
    def read_source(self, file_path: str) -> bytes:
        """Return the current bytes of a file."""

    @abstractmethod
    def write_source(self, file_path: str, data: bytes) -> None:
        """Replace the contents of a file."""


class JavaSourceTree(CodeModelProvider):
    """File-system backed provider for a Java project.

    File paths are project-relative POSIX strings so identities stay stable
    regardless of the working directory.
    """

    EXCLUDED_DIRS = {
        'build', 'target', 'out', 'bin', '.git', '.svn', '.idea', '.gradle',
        'node_modules', '.cleaner_trash',
    }

    def __init__(self, root: str | Path, backup=None, excluded_dirs: Optional[Set[str]] = None):
        """Initialize provider.

        Args:
            root: Project root directory
            backup: Optional SafeBackup; each file is backed up once before its first write
            excluded_dirs: Directory names skipped during discovery
        """
        self.root = Path(root).resolve()
        self.backup = backup
        self.excluded_dirs = set(excluded_dirs) if excluded_dirs is not None else set(self.EXCLUDED_DIRS)
        if backup is not None:
            self.excluded_dirs.add(Path(backup.trash_dir).name)
        self.parser = LanguageParser('java')
        self.extractor = JavaSymbolExtractor()
        self.backup_ids: dict[str, str] = {}

    def list_files(self, scope: Optional[Iterable[str]] = None) -> List[str]:
        """List project-relative .java files.

        Args:
            scope: Files or directories to restrict to (default: whole project)
        """
        discovered = self._discover()
        if scope is None:
            return discovered

        files = set()
        for item in scope:
            relative = self._relative(item)
            if (self.root / relative).is_dir():
                prefix = '' if relative in ('', '.') else relative.rstrip('/') + '/'
                files.update(f for f in discovered if f.startswith(prefix))
            elif relative.endswith('.java') and (self.root / relative).is_file():
                files.add(relative)
        return sorted(files)

    def _discover(self) -> List[str]:
        files = []
        for file_path in self.root.rglob('*.java'):
            relative_parts = file_path.relative_to(self.root).parts
            if any(part in self.excluded_dirs for part in relative_parts[:-1]):
                continue
            if file_path.is_file():
                files.append(file_path.relative_to(self.root).as_posix())
        return sorted(files)

    def read_snapshot(self) -> ModelSnapshot:
        return ModelSnapshot([self.read_file_model(path) for path in self.list_files()])

    def read_file_model(self, file_path: str, nodes: Optional[dict] = None) -> FileModel:
        """Parse one file into a FileModel.

        Raises:
            ModelReadError: If the file cannot be read
        """
        source = self._read(file_path)
        tree = self.parser.parse_source(source)
        return self.extractor.extract(tree, source, file_path, nodes)

    def is_valid(self, identity: SymbolId) -> bool:
        if not (self.root / identity.file_path).is_file():
            return False
        try:
            file_model = self.read_file_model(identity.file_path)
        except ModelReadError:
            return False
        return any(symbol.identity == identity for symbol in file_model.symbols)

    def delete(self, identity: SymbolId) -> None:
        try:
            source = self._read(identity.file_path)
        except ModelReadError as e:
            raise MutationError(str(e)) from e

        updated = JavaSymbolRemover(self.parser, self.extractor).remove(source, identity)
        self.write_source(identity.file_path, updated)

    def read_source(self, file_path: str) -> bytes:
        return self._read(file_path)

    def write_source(self, file_path: str, data: bytes) -> None:
        """Write a file, backing it up first if a backup store is attached.

        Raises:
            MutationError: If the backup or the write fails
        """
        relative = self._relative(file_path)
        target = self.root / relative
        try:
            if self.backup is not None and relative not in self.backup_ids:
                self.backup_ids[relative] = self.backup.backup(target, reason="cleanup")
            target.write_bytes(data)
        except OSError as e:
            raise MutationError(f"Failed to write {relative}: {e}") from e

    def _read(self, file_path: str) -> bytes:
        path = self.root / self._relative(file_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ModelReadError(f"Cannot read {file_path}: {e}") from e
        try:
            data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ModelReadError(f"{file_path} is not valid UTF-8: {e}") from e
        return data

    def _relative(self, file_path: str | Path) -> str:
        path = Path(file_path)
        if path.is_absolute():
            try:
                return path.resolve().relative_to(self.root).as_posix()
            except ValueError:
                return path.as_posix()
        return path.as_posix()
