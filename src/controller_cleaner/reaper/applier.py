"""Per-item application of a removal batch with failure tolerance."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple

from ..analyzer.classifier import Category
from ..analyzer.code_model import CodeModelProvider
from ..analyzer.model import Symbol, SymbolKind
from ..analyzer.planner import RemovalBatch
from ..errors import MutationError, StaleSymbolError
from ..utils.progress import NullProgressSink, ProgressSink


class ApplyStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"  # Already gone, e.g. removed with its containing class
    FAILED = "failed"


@dataclass(frozen=True)
class ApplyResult:
    status: ApplyStatus
    symbol: Symbol
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status != ApplyStatus.FAILED


@dataclass
class PassResult:
    """Outcome of applying one batch."""
    pass_number: int
    removed: Dict[Category, int] = field(default_factory=lambda: {c: 0 for c in Category})
    failures: List[Tuple[str, str]] = field(default_factory=list)  # (symbol name, reason)
    skipped: int = 0
    touched_files: List[str] = field(default_factory=list)
    method_files: List[str] = field(default_factory=list)  # Files that lost a method

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())


_KIND_LABELS = {
    SymbolKind.IMPORT: "unused import",
    SymbolKind.FIELD: "unused field",
    SymbolKind.METHOD: "method",
    SymbolKind.CLASS: "empty class",
}


class MutationApplier:
    """Deletes planned symbols one at a time through the code model provider."""

    def __init__(self, provider: CodeModelProvider, sink: Optional[ProgressSink] = None):
        self.provider = provider
        self.sink = sink or NullProgressSink()

    def apply(self, symbol: Symbol) -> ApplyResult:
        """Delete one symbol.

        The symbol is re-validated against the current model first; a symbol
        that no longer exists is skipped silently.

        Args:
            symbol: Symbol from the current pass's snapshot

        Returns:
            ApplyResult with APPLIED, SKIPPED or FAILED status
        """
        identity = symbol.identity
        if not self.provider.is_valid(identity):
            return ApplyResult(ApplyStatus.SKIPPED, symbol, "no longer exists")

        try:
            self.provider.delete(identity)
        except StaleSymbolError as e:
            return ApplyResult(ApplyStatus.SKIPPED, symbol, str(e))
        except (MutationError, OSError) as e:
            return ApplyResult(ApplyStatus.FAILED, symbol, str(e))

        return ApplyResult(ApplyStatus.APPLIED, symbol)

    def apply_batch(self, batch: RemovalBatch, pass_number: int) -> PassResult:
        """Apply every planned removal; item failures never abort the batch.

        Args:
            batch: Planned removals in application order
            pass_number: 1-based pass number for log messages

        Returns:
            PassResult with per-category counts, failures and touched files
        """
        result = PassResult(pass_number=pass_number)

        for item in batch:
            symbol = item.symbol
            label = _KIND_LABELS[symbol.kind]
            file_name = PurePosixPath(symbol.file_path).name
            outcome = self.apply(symbol)

            if outcome.status == ApplyStatus.APPLIED:
                result.removed[item.category] += 1
                if symbol.file_path not in result.touched_files:
                    result.touched_files.append(symbol.file_path)
                if symbol.kind == SymbolKind.METHOD and symbol.file_path not in result.method_files:
                    result.method_files.append(symbol.file_path)
                self.sink.progress(f"Pass {pass_number} - Removed {label}: {symbol.display_name}")
                self.sink.log(f"Pass {pass_number} - Removed {label}: {symbol.display_name} from {file_name}")
            elif outcome.status == ApplyStatus.SKIPPED:
                result.skipped += 1
            else:
                result.failures.append((symbol.display_name, outcome.reason))
                self.sink.log(f"Failed to remove {label} {symbol.display_name} from {file_name}: {outcome.reason}")

        return result
