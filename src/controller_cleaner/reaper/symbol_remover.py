"""Byte-range removal of Java declarations using tree-sitter."""
from typing import Optional, Tuple
from tree_sitter import Node

from ..analyzer.extractor import JavaSymbolExtractor, doc_comment_node
from ..analyzer.model import SymbolId, SymbolKind
from ..analyzer.parser import LanguageParser
from ..errors import StaleSymbolError

_HORIZONTAL_SPACE = b' \t'


class JavaSymbolRemover:
    """
    Removes one declaration (import, field, method, class) from a Java file.

    The file is re-parsed on every call and the target is located by its
    identity, so offsets from an earlier parse are never reused.
    """

    def __init__(self, parser: Optional[LanguageParser] = None,
                 extractor: Optional[JavaSymbolExtractor] = None):
        self.parser = parser or LanguageParser('java')
        self.extractor = extractor or JavaSymbolExtractor()

    def remove(self, source_code: bytes, identity: SymbolId) -> bytes:
        """
        Delete the declaration identified by `identity`.

        Args:
            source_code: Current file contents
            identity: Symbol to delete

        Returns:
            The updated file contents.

        Raises:
            StaleSymbolError: If the symbol is not declared in this source
        """
        tree = self.parser.parse_source(source_code)
        nodes = {}
        self.extractor.extract(tree, source_code, identity.file_path, nodes)

        node = nodes.get(identity)
        if node is None:
            raise StaleSymbolError(identity)

        if identity.kind == SymbolKind.FIELD:
            start, end = self._field_range(node, source_code)
        else:
            start, end = self._declaration_range(node, source_code)

        return source_code[:start] + source_code[end:]

    def _field_range(self, declarator: Node, source_code: bytes) -> Tuple[int, int]:
        """Range for one field declarator.

        A declaration with a single declarator is removed whole. Otherwise only
        the declarator and one adjacent comma go: `int a, b, c;` minus `b`
        becomes `int a, c;`.
        """
        declaration = declarator.parent
        if declaration is None or len(declaration.children_by_field_name('declarator')) <= 1:
            return self._declaration_range(declaration or declarator, source_code)

        following = declarator.next_sibling
        if following is not None and following.type == ',':
            next_declarator = following.next_sibling
            end = next_declarator.start_byte if next_declarator is not None else following.end_byte
            return declarator.start_byte, end

        preceding = declarator.prev_sibling
        if preceding is not None and preceding.type == ',':
            previous_declarator = preceding.prev_sibling
            start = previous_declarator.end_byte if previous_declarator is not None else preceding.start_byte
            return start, declarator.end_byte

        return declarator.start_byte, declarator.end_byte

    def _declaration_range(self, node: Node, source_code: bytes) -> Tuple[int, int]:
        """Range for a whole declaration, including its javadoc and its line."""
        start = node.start_byte
        doc = doc_comment_node(node, source_code)
        if doc is not None:
            start = doc.start_byte

        end = node.end_byte
        trailing = node.next_sibling
        if (trailing is not None and trailing.type == 'line_comment'
                and trailing.start_point[0] == node.end_point[0]):
            # `int x; // note` takes its trailing comment along
            end = trailing.end_byte

        line_start = self._line_start(source_code, start)
        if line_start is None:
            # Something precedes the declaration on its line: cut the node only
            return start, self._skip(source_code, end, _HORIZONTAL_SPACE)

        start = line_start
        end = self._extend_range_for_newline(source_code, end)
        end = self._collapse_blank_line(source_code, start, end)
        return start, end

    def _line_start(self, source_code: bytes, start: int) -> Optional[int]:
        """Beginning of the line if only indentation precedes `start`."""
        index = start
        while index > 0 and source_code[index - 1] in _HORIZONTAL_SPACE:
            index -= 1
        if index == 0 or source_code[index - 1] == 10:  # \n
            return index
        return None

    def _extend_range_for_newline(self, source_code: bytes, end: int) -> int:
        """
        Consume trailing spaces and one line break,
        ensuring we don't leave empty lines behind.
        """
        current = self._skip(source_code, end, _HORIZONTAL_SPACE)
        length = len(source_code)

        if current < length and source_code[current] == 13:  # \r
            current += 1
        if current < length and source_code[current] == 10:  # \n
            current += 1
            return current

        return end

    def _collapse_blank_line(self, source_code: bytes, start: int, end: int) -> int:
        """Swallow one following blank line when the removal sits between two.

        Keeps `a;\\n\\nold;\\n\\nb;` from turning into `a;\\n\\n\\nb;`.
        """
        if start != 0 and not self._is_blank_line_before(source_code, start):
            return end

        current = self._skip(source_code, end, _HORIZONTAL_SPACE + b'\r')
        if current < len(source_code) and source_code[current] == 10:
            return current + 1
        return end

    def _is_blank_line_before(self, source_code: bytes, start: int) -> bool:
        if start == 0 or source_code[start - 1] != 10:
            return False
        index = start - 1
        while index > 0 and source_code[index - 1] in _HORIZONTAL_SPACE + b'\r':
            index -= 1
        return index == 0 or source_code[index - 1] == 10

    @staticmethod
    def _skip(source_code: bytes, index: int, characters: bytes) -> int:
        while index < len(source_code) and source_code[index] in characters:
            index += 1
        return index
