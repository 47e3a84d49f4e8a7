"""Reference tracker mapping symbol definitions to their usages across the project."""
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple
import networkx as nx

from .model import CallSite, ModelSnapshot, NameUsage, ReferenceSite, Symbol, SymbolId, SymbolKind

OVERRIDE_ANNOTATIONS = {'Override', 'java.lang.Override'}
INTERFACE_KINDS = {'interface', 'annotation'}


class ReferenceIndex(ABC):
    """Project-wide reference queries over one snapshot."""

    @abstractmethod
    def find_references(self, symbol: Symbol) -> List[ReferenceSite]:
        """All references to a symbol, self-references included."""

    @abstractmethod
    def call_candidates(self, call: CallSite) -> List[SymbolId]:
        """Project methods a call expression may target (empty when unresolved)."""

    @abstractmethod
    def calls_in(self, method: SymbolId) -> List[CallSite]:
        """Call expressions inside a method body."""

    @abstractmethod
    def is_override(self, method: Symbol) -> bool:
        """Whether the method overrides or implements a supertype method."""

    def resolve_call_target(self, call: CallSite) -> Optional[SymbolId]:
        """Resolve a call to exactly one method, or None if unresolved or ambiguous."""
        candidates = self.call_candidates(call)
        if len(candidates) == 1:
            return candidates[0]
        return None

    def callees(self, method: SymbolId) -> List[SymbolId]:
        """Resolved call targets inside a method, one entry per call site."""
        targets = []
        for call in self.calls_in(method):
            target = self.resolve_call_target(call)
            if target is not None:
                targets.append(target)
        return targets

    def external_reference_count(self, symbol: Symbol) -> int:
        """Count references from outside the symbol's own body."""
        identity = symbol.identity
        return sum(1 for ref in self.find_references(symbol) if ref.referencing_method != identity)

    def is_interface_method(self, method: Symbol) -> bool:
        return method.in_interface


class ReferenceTracker(ReferenceIndex):
    """Reference index built from a ModelSnapshot.

    INHERITANCE MAP: classes are linked to their project supertypes by simple
    name in a networkx DiGraph (subclass -> superclass). A simple name shared
    by several classes links to all of them, which only ever makes more
    methods look like overrides.
    """

    def __init__(self, snapshot: ModelSnapshot):
        """Index a snapshot.

        Args:
            snapshot: Fresh project-wide model
        """
        self.snapshot = snapshot

        self._classes_by_name: Dict[str, List[Symbol]] = defaultdict(list)
        self._methods_by_name: Dict[str, List[Symbol]] = defaultdict(list)
        self._methods_by_class: Dict[SymbolId, List[Symbol]] = defaultdict(list)
        self._calls_by_name: Dict[str, List[CallSite]] = defaultdict(list)
        self._calls_by_method: Dict[SymbolId, List[CallSite]] = defaultdict(list)
        self._usages_by_name: Dict[str, List[Tuple[str, NameUsage]]] = defaultdict(list)
        self._imports: List[Symbol] = []
        self._candidate_cache: Dict[CallSite, List[SymbolId]] = {}

        for symbol in snapshot.all_symbols():
            if symbol.kind == SymbolKind.CLASS:
                self._classes_by_name[symbol.name].append(symbol)
            elif symbol.kind == SymbolKind.METHOD:
                self._methods_by_name[symbol.name].append(symbol)
                if symbol.containing_class is not None:
                    self._methods_by_class[symbol.containing_class].append(symbol)
            elif symbol.kind == SymbolKind.IMPORT:
                self._imports.append(symbol)

        for file_model in snapshot.files:
            for call in file_model.calls:
                self._calls_by_name[call.name].append(call)
                if call.enclosing_method is not None:
                    self._calls_by_method[call.enclosing_method].append(call)
            for usage in file_model.usages:
                self._usages_by_name[usage.name].append((file_model.file_path, usage))

        self.inheritance = self._build_inheritance_graph()

    def _build_inheritance_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for classes in self._classes_by_name.values():
            for cls in classes:
                graph.add_node(cls.identity)
                for supertype in cls.supertypes:
                    for parent in self._classes_by_name.get(supertype, []):
                        if parent.identity != cls.identity:
                            graph.add_edge(cls.identity, parent.identity)
        return graph

    # === INHERITANCE ===

    def supertypes_of(self, class_id: Optional[SymbolId]) -> List[SymbolId]:
        """Project supertypes of a class, nearest first."""
        if class_id is None or class_id not in self.inheritance:
            return []
        return [node for node in nx.bfs_tree(self.inheritance, class_id) if node != class_id]

    def enclosing_classes(self, class_id: Optional[SymbolId]) -> List[SymbolId]:
        """The class itself followed by its outer classes, innermost first."""
        chain = []
        current = class_id
        while current is not None and current not in chain:
            chain.append(current)
            symbol = self.snapshot.symbol(current)
            current = symbol.containing_class if symbol else None
        return chain

    def is_override(self, method: Symbol) -> bool:
        if any(annotation in OVERRIDE_ANNOTATIONS for annotation in method.annotations):
            return True
        for supertype in self.supertypes_of(method.containing_class):
            for candidate in self._methods_by_class.get(supertype, []):
                if candidate.name == method.name and candidate.arity == method.arity:
                    return True
        return False

    def is_interface_method(self, method: Symbol) -> bool:
        if method.in_interface:
            return True
        owner = self.snapshot.symbol(method.containing_class) if method.containing_class else None
        return owner is not None and owner.type_kind in INTERFACE_KINDS

    # === CALL RESOLUTION ===

    def call_candidates(self, call: CallSite) -> List[SymbolId]:
        cached = self._candidate_cache.get(call)
        if cached is None:
            cached = self._compute_candidates(call)
            self._candidate_cache[call] = cached
        return cached

    def _compute_candidates(self, call: CallSite) -> List[SymbolId]:
        named = [m for m in self._methods_by_name.get(call.name, []) if _accepts_arity(m, call.arity)]
        if not named:
            return []

        receiver = call.receiver
        if receiver is None or receiver == 'this' or receiver.endswith('.this'):
            # Own class and its supertypes first, then each outer class
            for class_id in self.enclosing_classes(call.enclosing_class):
                scope = {class_id, *self.supertypes_of(class_id)}
                level = [m.identity for m in named if m.containing_class in scope]
                if level:
                    return level
            # Static import or a method inherited from outside the project
            return [m.identity for m in named]

        if receiver == 'super':
            scope = set(self.supertypes_of(call.enclosing_class))
            return [m.identity for m in named if m.containing_class in scope]

        simple = receiver.rsplit('.', 1)[-1]
        if simple[:1].isupper() and simple in self._classes_by_name:
            # Static access through a project class
            scope: Set[SymbolId] = set()
            for cls in self._classes_by_name[simple]:
                scope.add(cls.identity)
                scope.update(self.supertypes_of(cls.identity))
            return [m.identity for m in named if m.containing_class in scope]

        # Receiver of unknown type: every same-named method is a candidate
        return [m.identity for m in named]

    def calls_in(self, method: SymbolId) -> List[CallSite]:
        return list(self._calls_by_method.get(method, []))

    # === REFERENCES ===

    def find_references(self, symbol: Symbol) -> List[ReferenceSite]:
        if symbol.kind == SymbolKind.METHOD:
            return self._method_references(symbol)
        if symbol.kind == SymbolKind.FIELD:
            return self._field_references(symbol)
        if symbol.kind == SymbolKind.CLASS:
            return self._class_references(symbol)
        if symbol.kind == SymbolKind.IMPORT:
            return self._import_references(symbol)
        return []

    def _method_references(self, method: Symbol) -> List[ReferenceSite]:
        identity = method.identity
        references = []
        for call in self._calls_by_name.get(method.name, []):
            # Ambiguous calls reference every candidate
            if identity in self.call_candidates(call):
                references.append(ReferenceSite(identity, call.file_path, call.line, call.enclosing_method))
        for file_path, usage in self._usages_by_name.get(method.name, []):
            if usage.kind == 'method_ref':
                references.append(ReferenceSite(identity, file_path, usage.line, usage.enclosing_method))
        return references

    def _field_references(self, field: Symbol) -> List[ReferenceSite]:
        identity = field.identity
        same_file_only = field.has_modifier('private')
        return [
            ReferenceSite(identity, file_path, usage.line, usage.enclosing_method)
            for file_path, usage in self._usages_by_name.get(field.name, [])
            if usage.kind == 'identifier' and (not same_file_only or file_path == field.file_path)
        ]

    def _class_references(self, cls: Symbol) -> List[ReferenceSite]:
        identity = cls.identity
        references = []
        for file_path, usage in self._usages_by_name.get(cls.name, []):
            if usage.kind not in ('identifier', 'type', 'doc'):
                continue
            # Uses inside the class's own body are not references
            if identity in self.enclosing_classes(usage.enclosing_class):
                continue
            references.append(ReferenceSite(identity, file_path, usage.line, usage.enclosing_method))

        prefix = cls.qualified_name + "."
        for imported in self._imports:
            if imported.is_wildcard:
                continue
            if imported.qualified_name == cls.qualified_name or imported.qualified_name.startswith(prefix):
                references.append(ReferenceSite(identity, imported.file_path, imported.line, None))
        return references

    def _import_references(self, imported: Symbol) -> List[ReferenceSite]:
        if imported.is_wildcard:
            return []
        identity = imported.identity
        return [
            ReferenceSite(identity, file_path, usage.line, usage.enclosing_method)
            for file_path, usage in self._usages_by_name.get(imported.name, [])
            if file_path == imported.file_path
        ]


def _accepts_arity(method: Symbol, arity: int) -> bool:
    if method.varargs:
        return arity >= method.arity - 1
    return method.arity == arity
