"""Sentinel comment marking files for scoped cleanup."""
from pathlib import PurePosixPath
from typing import Iterable, List, Optional

from ..analyzer.code_model import CodeModelProvider
from ..analyzer.extractor import COMMENT_TYPES, JavaSymbolExtractor, node_text
from ..analyzer.parser import LanguageParser
from ..config import MARKER_TEXT
from ..errors import MutationError
from ..utils.progress import NullProgressSink, ProgressSink


class FileMarkingCoordinator:
    """Lists, adds and removes the '//Controller Cleaner' sentinel.

    A file is marked when its first syntactic element is a comment holding
    the sentinel text. The sentinel is the only persisted scope state.
    """

    def __init__(self, provider: CodeModelProvider, marker_text: str = MARKER_TEXT,
                 sink: Optional[ProgressSink] = None):
        self.provider = provider
        self.marker_text = marker_text
        self.sink = sink or NullProgressSink()
        self.parser = LanguageParser('java')
        self.extractor = JavaSymbolExtractor(marker_text)

    def list_marked_files(self, scope: Optional[Iterable[str]] = None) -> List[str]:
        """Files in scope whose first syntactic token is the sentinel.

        Raises:
            ModelReadError: If the model cannot be read
        """
        snapshot = self.provider.read_snapshot()
        allowed = set(self.provider.list_files(scope)) if scope is not None else None
        return [
            file_model.file_path
            for file_model in snapshot.files
            if file_model.is_marked and (allowed is None or file_model.file_path in allowed)
        ]

    def is_marked(self, source_code: bytes) -> bool:
        return self.extractor.is_marked(self.parser.parse_source(source_code), source_code)

    def mark(self, files: Iterable[str]) -> List[str]:
        """Insert the sentinel as the first line of each file not yet marked.

        Returns:
            Files that were changed
        """
        marked = []
        for file_path in files:
            try:
                source = self.provider.read_source(file_path)
                if self.is_marked(source):
                    continue
                self.provider.write_source(file_path, self.marker_text.encode('utf-8') + _line_ending(source) + source)
            except (OSError, MutationError) as e:
                self.sink.log(f"Failed to mark file {PurePosixPath(file_path).name} for cleanup: {e}")
                continue
            marked.append(file_path)
            self.sink.log(f"Marked file for cleanup: {PurePosixPath(file_path).name}")
        return marked

    def unmark(self, files: Iterable[str]) -> List[str]:
        """Remove the sentinel comment and its line break from each file.

        Returns:
            Files that were changed
        """
        unmarked = []
        for file_path in files:
            name = PurePosixPath(file_path).name
            try:
                source = self.provider.read_source(file_path)
                updated = self._strip_marker(source)
                if updated is None:
                    continue
                self.provider.write_source(file_path, updated)
            except (OSError, MutationError) as e:
                self.sink.log(f"Failed to remove Controller Cleaner comment from {name}: {e}")
                continue
            unmarked.append(file_path)
            self.sink.log(f"Removed Controller Cleaner comment from {name}")
        return unmarked

    def _strip_marker(self, source_code: bytes) -> Optional[bytes]:
        root = self.parser.parse_source(source_code).root_node
        if root.child_count == 0:
            return None
        first = root.children[0]
        if first.type not in COMMENT_TYPES or self.marker_text not in node_text(first, source_code):
            return None

        end = first.end_byte
        if source_code[end:end + 2] == b"\r\n":
            end += 2
        elif source_code[end:end + 1] == b"\n":
            end += 1
        return source_code[:first.start_byte] + source_code[end:]


def _line_ending(source_code: bytes) -> bytes:
    """Line break used by the first line of the file, LF when there is none."""
    newline = source_code.find(b"\n")
    if newline > 0 and source_code[newline - 1:newline] == b"\r":
        return b"\r\n"
    return b"\n"
