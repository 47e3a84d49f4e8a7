"""Removal planning: turn an analysis into an ordered, filtered batch."""
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from .classifier import Category
from .liveness import CleanupAnalysis
from .model import Symbol, SymbolId, SymbolKind
from .reference_tracker import ReferenceIndex


@dataclass(frozen=True)
class PlannedRemoval:
    category: Category
    symbol: Symbol


@dataclass(frozen=True)
class RemovalBatch:
    """Deduplicated removals in application order."""
    items: Tuple[PlannedRemoval, ...] = ()
    excluded: Tuple[Tuple[Symbol, str], ...] = ()  # (symbol, reason) dropped by final exclusions

    @property
    def counts(self) -> Dict[Category, int]:
        counts = {category: 0 for category in Category}
        for item in self.items:
            counts[item.category] += 1
        return counts

    @property
    def total(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class RemovalPlanner:
    """Builds a RemovalBatch and re-applies the safety exclusions.

    The exclusions are repeated here even though the classifier and the
    liveness analyzer already apply them, so a batch never holds an
    interface method, an override, an annotated field, or a public or
    static field.
    """
    index: ReferenceIndex
    order: List[Category] = field(default_factory=lambda: list(Category))

    def plan(self, analysis: CleanupAnalysis) -> RemovalBatch:
        """Plan one pass.

        Args:
            analysis: Fresh analysis of the current snapshot

        Returns:
            RemovalBatch ordered imports, fields, deprecated methods,
            transitive methods, classes. Each identity appears once; the
            first category wins.
        """
        seen: Set[SymbolId] = set()
        items: List[PlannedRemoval] = []
        excluded: List[Tuple[Symbol, str]] = []

        for category in self.order:
            for symbol in analysis.symbols(category):
                if symbol.identity in seen:
                    continue
                seen.add(symbol.identity)

                reason = self.exclusion_reason(symbol)
                if reason:
                    excluded.append((symbol, reason))
                    continue
                items.append(PlannedRemoval(category, symbol))

        return RemovalBatch(items=tuple(items), excluded=tuple(excluded))

    def exclusion_reason(self, symbol: Symbol) -> str:
        """Why a symbol must never be removed, or '' if it may be."""
        if symbol.kind == SymbolKind.METHOD:
            if self.index.is_interface_method(symbol):
                return "interface method"
            if self.index.is_override(symbol):
                return "overrides a supertype method"
        elif symbol.kind == SymbolKind.FIELD:
            if symbol.annotations:
                return "annotated field"
            if symbol.has_modifier('public'):
                return "public field"
            if symbol.has_modifier('static'):
                return "static field"
        return ""
