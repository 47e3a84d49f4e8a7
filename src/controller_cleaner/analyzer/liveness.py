"""Liveness analysis: direct and transitive unreachability of candidate symbols."""
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import networkx as nx

from .classifier import Category, SymbolClassifier
from .model import ModelSnapshot, Symbol, SymbolId, SymbolKind
from .reference_tracker import ReferenceIndex, ReferenceTracker


@dataclass(frozen=True)
class CleanupAnalysis:
    """Immutable result of one read-only pass."""
    files: Tuple[str, ...] = ()
    items: Dict[Category, Tuple[Symbol, ...]] = field(default_factory=dict)
    followups: Tuple[SymbolId, ...] = ()  # Callees of the removal set, re-checked next pass

    def symbols(self, category: Category) -> Tuple[Symbol, ...]:
        return self.items.get(category, ())

    def count(self, category: Category) -> int:
        return len(self.symbols(category))

    @property
    def counts(self) -> Dict[Category, int]:
        return {category: self.count(category) for category in Category}

    @property
    def total(self) -> int:
        return sum(len(symbols) for symbols in self.items.values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def per_file(self, category: Category) -> Dict[str, List[Symbol]]:
        grouped: Dict[str, List[Symbol]] = {}
        for symbol in self.symbols(category):
            grouped.setdefault(symbol.file_path, []).append(symbol)
        return grouped

    def files_with_candidates(self) -> List[str]:
        """Files holding at least one candidate, in analysis order."""
        touched = {symbol.file_path for symbols in self.items.values() for symbol in symbols}
        ordered = [f for f in self.files if f in touched]
        ordered.extend(sorted(touched.difference(ordered)))
        return ordered


class LivenessAnalyzer:
    """Computes which candidate symbols are unreachable in one snapshot.

    A symbol is unused when its external reference count is zero. Methods
    additionally go through a transitive closure seeded with the unused
    deprecated controller methods.
    """

    def __init__(self, snapshot: ModelSnapshot, classifier: SymbolClassifier,
                 index: Optional[ReferenceIndex] = None):
        """Initialize analyzer.

        Args:
            snapshot: Fresh project-wide model
            classifier: Candidate classifier
            index: Reference index (built from the snapshot if None)
        """
        self.snapshot = snapshot
        self.classifier = classifier
        self.index = index or ReferenceTracker(snapshot)
        self._call_graph: Optional[nx.DiGraph] = None

    # === STRUCTURAL CANDIDATES ===

    def find_unused_imports(self, files: Iterable[str]) -> Dict[str, List[Symbol]]:
        return self._find_unused(files, SymbolKind.IMPORT, Category.UNUSED_IMPORT)

    def find_unused_fields(self, files: Iterable[str]) -> Dict[str, List[Symbol]]:
        return self._find_unused(files, SymbolKind.FIELD, Category.UNUSED_FIELD)

    def find_empty_classes(self, files: Iterable[str]) -> Dict[str, List[Symbol]]:
        return self._find_unused(files, SymbolKind.CLASS, Category.EMPTY_CLASS)

    def _find_unused(self, files: Iterable[str], kind: SymbolKind, category: Category) -> Dict[str, List[Symbol]]:
        results: Dict[str, List[Symbol]] = {}
        for file_path in files:
            file_model = self.snapshot.file(file_path)
            # Files that failed to parse cleanly contribute usages but no candidates
            if file_model is None or file_model.has_errors:
                continue

            unused = []
            seen: Set[SymbolId] = set()
            for symbol in file_model.symbols_of(kind):
                if symbol.identity in seen:
                    continue
                seen.add(symbol.identity)
                if self.classifier.classify(symbol) != category:
                    continue
                if kind == SymbolKind.IMPORT and self.classifier.is_always_unused_import(symbol):
                    unused.append(symbol)
                elif self.index.external_reference_count(symbol) == 0:
                    unused.append(symbol)
            if unused:
                results[file_path] = unused
        return results

    # === METHODS ===

    def find_controllers(self, files: Iterable[str]) -> List[Symbol]:
        controllers = []
        for file_path in files:
            file_model = self.snapshot.file(file_path)
            if file_model is None:
                continue
            controllers.extend(c for c in file_model.symbols_of(SymbolKind.CLASS) if self.classifier.is_controller(c))
        return controllers

    def find_deprecated_methods(self, controllers: Sequence[Symbol]) -> List[Symbol]:
        controller_ids = {c.identity for c in controllers}
        methods = []
        for method in self.snapshot.all_symbols(SymbolKind.METHOD):
            if method.containing_class not in controller_ids:
                continue
            file_model = self.snapshot.file(method.file_path)
            if file_model is not None and file_model.has_errors:
                continue
            owner = self.snapshot.symbol(method.containing_class)
            if self.classifier.classify(method, owner) == Category.DEPRECATED_METHOD:
                methods.append(method)
        return methods

    def find_unused_deprecated_methods(self, files: Iterable[str]) -> List[Symbol]:
        """Deprecated controller methods with zero external references."""
        deprecated = self.find_deprecated_methods(self.find_controllers(files))
        return [m for m in deprecated if self.is_removable_method(m) and self.index.external_reference_count(m) == 0]

    def is_removable_method(self, method: Symbol) -> bool:
        """Interface methods and overrides are never removable."""
        return not self.index.is_interface_method(method) and not self.index.is_override(method)

    @property
    def call_graph(self) -> nx.DiGraph:
        """Resolved call edges between project methods.

        Edge attribute 'calls' holds the number of call sites.
        """
        if self._call_graph is None:
            graph = nx.DiGraph()
            for method in self.snapshot.all_symbols(SymbolKind.METHOD):
                graph.add_node(method.identity)
                for callee in self.index.callees(method.identity):
                    if graph.has_edge(method.identity, callee):
                        graph[method.identity][callee]['calls'] += 1
                    else:
                        graph.add_edge(method.identity, callee, calls=1)
            self._call_graph = graph
        return self._call_graph

    def find_transitively_unused_methods(self, seed: Sequence[Symbol]) -> List[Symbol]:
        """Methods that become unreachable once the seed methods are gone.

        FIFO worklist: each method's counter starts at its external reference
        count and drops by one per dequeue. A method whose counter reaches zero
        is marked dead and its callees are enqueued once per call site. Seed
        methods are never part of the result.

        Args:
            seed: Methods already confirmed unused

        Returns:
            Newly unreachable methods in discovery order
        """
        graph = self.call_graph
        seed_ids = {method.identity for method in seed}
        queue = deque(method.identity for method in seed)
        counters: Dict[SymbolId, int] = {}
        dead: Set[SymbolId] = set()
        result: List[Symbol] = []

        while queue:
            identity = queue.popleft()
            method = self.snapshot.symbol(identity)
            if method is None or method.kind != SymbolKind.METHOD:
                continue

            if identity not in counters:
                counters[identity] = self.index.external_reference_count(method)
            counters[identity] -= 1

            if counters[identity] > 0 or identity in dead:
                continue
            if not self.is_removable_method(method):
                continue

            dead.add(identity)
            if identity not in seed_ids:
                result.append(method)

            if identity in graph:
                for callee, data in graph[identity].items():
                    queue.extend([callee] * data['calls'])

        return result

    def followups(self, removed: Iterable[SymbolId]) -> Tuple[SymbolId, ...]:
        """Every possible callee of the removal set, resolved or ambiguous."""
        removed = set(removed)
        found: Set[SymbolId] = set()
        for identity in removed:
            for call in self.index.calls_in(identity):
                found.update(self.index.call_candidates(call))
        return tuple(sorted(found - removed, key=str))

    # === FULL ANALYSES ===

    def analyze_deprecated_controllers(self, files: Iterable[str],
                                       recheck: Iterable[SymbolId] = ()) -> CleanupAnalysis:
        """Unused deprecated controller methods plus their transitive callees.

        Args:
            files: Files whose controllers are scanned
            recheck: Callees of methods removed by the previous pass; those that
                now have zero external references join the transitive set

        Returns:
            CleanupAnalysis with DEPRECATED_METHOD and TRANSITIVE_METHOD items
        """
        files = list(files)
        deprecated = self.find_unused_deprecated_methods(files)
        deprecated_ids = {m.identity for m in deprecated}

        revived_dead = []
        for identity in recheck:
            method = self.snapshot.symbol(identity)
            if method is None or method.kind != SymbolKind.METHOD or identity in deprecated_ids:
                continue
            if self.is_removable_method(method) and self.index.external_reference_count(method) == 0:
                revived_dead.append(method)

        transitive = list(revived_dead)
        known = deprecated_ids | {m.identity for m in revived_dead}
        for method in self.find_transitively_unused_methods(deprecated + revived_dead):
            if method.identity not in known:
                known.add(method.identity)
                transitive.append(method)

        return CleanupAnalysis(
            files=tuple(files),
            items={
                Category.DEPRECATED_METHOD: tuple(deprecated),
                Category.TRANSITIVE_METHOD: tuple(transitive),
            },
            followups=self.followups(known),
        )

    def analyze_marked_files(self, files: Iterable[str]) -> CleanupAnalysis:
        """Unused imports, unused fields and empty classes in the given files."""
        files = list(files)
        return CleanupAnalysis(
            files=tuple(files),
            items={
                Category.UNUSED_IMPORT: _flatten(self.find_unused_imports(files)),
                Category.UNUSED_FIELD: _flatten(self.find_unused_fields(files)),
                Category.EMPTY_CLASS: _flatten(self.find_empty_classes(files)),
            },
        )


def _flatten(per_file: Dict[str, List[Symbol]]) -> Tuple[Symbol, ...]:
    return tuple(symbol for symbols in per_file.values() for symbol in symbols)
