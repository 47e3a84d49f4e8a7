"""Symbol model shared by the analyzer, planner and reaper."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class SymbolKind(str, Enum):
    METHOD = "method"
    FIELD = "field"
    IMPORT = "import"
    CLASS = "class"


@dataclass(frozen=True)
class SymbolId:
    """Stable identity of a declared symbol.

    Re-derived from a fresh parse on every read: kind + file + qualified name
    (+ parameter types for methods). Never points into a parse tree, so it
    survives edits elsewhere in the file.
    """
    kind: SymbolKind
    file_path: str
    qualified_name: str
    signature: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.qualified_name}{self.signature}@{self.file_path}"


@dataclass(frozen=True)
class Symbol:
    """A declared program element with the metadata the classifier needs."""
    kind: SymbolKind
    name: str  # Simple name (last segment for imports)
    qualified_name: str
    file_path: str
    line: int = 0
    containing_class: Optional[SymbolId] = None
    modifiers: Tuple[str, ...] = ()
    annotations: Tuple[str, ...] = ()  # Raw text without '@', e.g. 'Deprecated'
    has_doc_deprecated_tag: bool = False
    signature: str = ""  # Methods: '(int,String)'

    # Classes
    type_kind: str = ""  # class, interface, enum, record, annotation
    method_count: int = 0  # Constructors included
    field_count: int = 0
    nested_class_count: int = 0
    supertypes: Tuple[str, ...] = ()  # Simple names from extends/implements

    # Methods
    arity: int = 0
    varargs: bool = False
    in_interface: bool = False

    # Imports
    is_wildcard: bool = False
    is_static_import: bool = False

    @property
    def identity(self) -> SymbolId:
        return SymbolId(self.kind, self.file_path, self.qualified_name, self.signature)

    @property
    def display_name(self) -> str:
        """Short human-readable name, e.g. 'UserController.old()'."""
        if self.kind == SymbolKind.METHOD:
            owner = self.containing_class.qualified_name.rsplit(".", 1)[-1] if self.containing_class else ""
            return f"{owner}.{self.name}()" if owner else f"{self.name}()"
        if self.kind == SymbolKind.IMPORT:
            return self.qualified_name
        return self.name

    def has_modifier(self, modifier: str) -> bool:
        return modifier in self.modifiers


@dataclass(frozen=True)
class CallSite:
    """One method invocation expression."""
    file_path: str
    line: int
    name: str
    arity: int
    receiver: Optional[str] = None  # Receiver text ('this', 'super', 'Foo', 'repo'), None if bare
    enclosing_method: Optional[SymbolId] = None
    enclosing_class: Optional[SymbolId] = None


@dataclass(frozen=True)
class NameUsage:
    """One textual use of a simple name.

    kind is 'identifier', 'type', 'call' (invoked method name),
    'method_ref' (Foo::bar) or 'doc' (javadoc link).
    """
    name: str
    kind: str
    line: int
    enclosing_method: Optional[SymbolId] = None
    enclosing_class: Optional[SymbolId] = None


@dataclass(frozen=True)
class ReferenceSite:
    """A resolved reference to a symbol."""
    target: SymbolId
    file_path: str
    line: int
    referencing_method: Optional[SymbolId] = None


@dataclass
class FileModel:
    """Everything extracted from one source file."""
    file_path: str
    package: str = ""
    symbols: List[Symbol] = field(default_factory=list)
    calls: List[CallSite] = field(default_factory=list)
    usages: List[NameUsage] = field(default_factory=list)
    is_marked: bool = False
    has_errors: bool = False

    def symbols_of(self, kind: SymbolKind) -> List[Symbol]:
        return [s for s in self.symbols if s.kind == kind]


class ModelSnapshot:
    """Immutable project-wide view from one fresh read of the code model."""

    def __init__(self, files: List[FileModel]):
        self._files: Dict[str, FileModel] = {f.file_path: f for f in files}
        self._symbols: Dict[SymbolId, Symbol] = {}
        for file_model in files:
            for symbol in file_model.symbols:
                # First declaration wins on duplicate identities
                self._symbols.setdefault(symbol.identity, symbol)

    @property
    def files(self) -> List[FileModel]:
        return list(self._files.values())

    @property
    def file_paths(self) -> List[str]:
        return list(self._files.keys())

    def file(self, file_path: str) -> Optional[FileModel]:
        return self._files.get(file_path)

    def get_symbols(self, file_path: str) -> List[Symbol]:
        file_model = self._files.get(file_path)
        return list(file_model.symbols) if file_model else []

    def symbol(self, identity: SymbolId) -> Optional[Symbol]:
        return self._symbols.get(identity)

    def __contains__(self, identity: SymbolId) -> bool:
        return identity in self._symbols

    def all_symbols(self, kind: Optional[SymbolKind] = None) -> Iterator[Symbol]:
        for symbol in self._symbols.values():
            if kind is None or symbol.kind == kind:
                yield symbol
