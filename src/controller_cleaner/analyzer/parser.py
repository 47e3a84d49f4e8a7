"""Tree-sitter parser for Java sources."""
from pathlib import Path
from typing import Optional
from tree_sitter import Language, Parser, Tree
import tree_sitter_java as tsjava


class LanguageParser:
    """Java parser using tree-sitter v0.22+ API."""

    SUPPORTED_LANGUAGES = {
        '.java': 'java',
    }

    def __init__(self, language: str = 'java'):
        """Initialize parser for given language.

        Args:
            language: Only 'java' is supported

        Raises:
            ValueError: If language is not supported
        """
        self.language = language
        self.parser = self._create_parser()

    def _create_parser(self) -> Parser:
        """Factory method using tree-sitter v0.22+ API.

        CRITICAL: Uses Parser(Language(capsule)) syntax; the grammar
        package returns an opaque capsule that must be wrapped.

        Returns:
            Configured Parser instance

        Raises:
            ValueError: If language is not supported
        """
        if self.language == 'java':
            lang = Language(tsjava.language())
        else:
            raise ValueError(f"Unsupported language: {self.language}")

        return Parser(lang)

    def parse_source(self, source_code: bytes) -> Tree:
        """Parse raw source bytes.

        Args:
            source_code: UTF-8 encoded Java source

        Returns:
            Parsed Tree (possibly containing ERROR nodes)
        """
        return self.parser.parse(source_code)

    def parse_file(self, file_path: str | Path) -> Optional[Tree]:
        """Parse file and return tree-sitter Tree.

        Args:
            file_path: Path to source file to parse

        Returns:
            Parsed Tree object, or None if the file could not be read
        """
        file_path = Path(file_path)

        if not file_path.exists():
            return None

        try:
            with open(file_path, 'rb') as f:
                source_code = f.read()
            return self.parser.parse(source_code)
        except OSError:
            return None

    @classmethod
    def from_file_extension(cls, file_path: str | Path) -> Optional['LanguageParser']:
        """Create parser based on file extension.

        Args:
            file_path: Path to determine language from

        Returns:
            LanguageParser instance, or None if extension not supported
        """
        extension = Path(file_path).suffix.lower()

        language = cls.SUPPORTED_LANGUAGES.get(extension)
        if language:
            return cls(language)
        return None
