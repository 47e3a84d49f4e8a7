"""Cleanup job definitions: what a run analyzes, how it is summarized, how it ends."""
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, TYPE_CHECKING

from .analyzer.classifier import Category, SymbolClassifier, any_annotated_controller
from .analyzer.code_model import CodeModelProvider
from .analyzer.liveness import CleanupAnalysis, LivenessAnalyzer
from .analyzer.model import ModelSnapshot, SymbolId, SymbolKind
from .analyzer.policy import AnnotationPolicy, ClassMode, FieldMode
from .config import MARKER_TEXT
from .reaper.marker import FileMarkingCoordinator
from .utils.progress import ProgressSink

if TYPE_CHECKING:
    from .driver import Report

# Entries listed by name in a confirmation summary
SUMMARY_LIMIT = 10


class CleanupJob(ABC):
    """One kind of cleanup run driven by the fixpoint driver."""

    title = "Cleanup"
    categories: tuple = ()
    finish_when_empty = False

    def __init__(self, policy: Optional[AnnotationPolicy] = None,
                 field_mode: FieldMode = FieldMode.FINAL_PRIVATE,
                 class_mode: ClassMode = ClassMode.EMPTY,
                 controller_name_fallback: bool = True):
        self.policy = policy or AnnotationPolicy()
        self.field_mode = field_mode
        self.class_mode = class_mode
        self.controller_name_fallback = controller_name_fallback

    def scope_files(self, snapshot: ModelSnapshot, provider: CodeModelProvider,
                    scope: Optional[Iterable[str]] = None) -> List[str]:
        """Files this job analyzes."""
        if scope is None:
            return snapshot.file_paths
        allowed = set(provider.list_files(scope))
        return [f for f in snapshot.file_paths if f in allowed]

    def build_analyzer(self, snapshot: ModelSnapshot, files: List[str]) -> LivenessAnalyzer:
        return LivenessAnalyzer(snapshot, self.build_classifier(snapshot, files))

    def build_classifier(self, snapshot: ModelSnapshot, files: List[str]) -> SymbolClassifier:
        return SymbolClassifier(
            policy=self.policy,
            field_mode=self.field_mode,
            class_mode=self.class_mode,
        )

    @abstractmethod
    def analyze(self, analyzer: LivenessAnalyzer, files: List[str],
                recheck: Iterable[SymbolId] = ()) -> CleanupAnalysis:
        """Classify the files in scope and collect removal candidates."""

    def empty_message(self, analysis: CleanupAnalysis) -> str:
        return "Nothing to clean up."

    @abstractmethod
    def summarize(self, analysis: CleanupAnalysis) -> str:
        """Confirmation text listing what a run would remove."""

    def pass_message(self, pass_number: int, counts: dict) -> str:
        parts = [f"{counts.get(c, 0)} {c.label}" for c in self.categories]
        return f"Pass {pass_number} complete: removed " + _join(parts)

    def finish(self, provider: CodeModelProvider, report: "Report", sink: ProgressSink) -> None:
        """Post-run step, only called after a successful run."""

    def final_message(self, report: "Report") -> str:
        parts = [f"{report.removed_counts.get(c, 0)} {c.label}" for c in self.categories]
        return (
            f"Successfully removed {_join(parts)} from {len(report.files)} files "
            f"over {report.passes_run} passes."
        )


class DeprecatedControllerJob(CleanupJob):
    """Unused deprecated controller methods and the methods only they reached."""

    title = "Deprecated Controller Remover"
    categories = (Category.DEPRECATED_METHOD, Category.TRANSITIVE_METHOD)

    def __init__(self, *args, mark_after_removal: bool = True, **kwargs):
        """Initialize job.

        Args:
            mark_after_removal: Mark files that lost a method so a later
                marked-file cleanup sweeps imports and fields left behind
        """
        super().__init__(*args, **kwargs)
        self.mark_after_removal = mark_after_removal

    def build_classifier(self, snapshot, files):
        classifier = super().build_classifier(snapshot, files)
        # Name fallback only when nothing in scope carries a controller annotation
        classes = [
            s for f in files
            for s in (snapshot.file(f).symbols_of(SymbolKind.CLASS) if snapshot.file(f) else [])
        ]
        classifier.controller_name_fallback = (
            self.controller_name_fallback and not any_annotated_controller(classes, self.policy)
        )
        return classifier

    def analyze(self, analyzer, files, recheck=()):
        return analyzer.analyze_deprecated_controllers(files, recheck)

    def empty_message(self, analysis):
        return "No unused deprecated controller methods found."

    def summarize(self, analysis: CleanupAnalysis) -> str:
        deprecated = analysis.symbols(Category.DEPRECATED_METHOD)
        transitive = analysis.symbols(Category.TRANSITIVE_METHOD)
        methods = list(deprecated) + list(transitive)

        lines = [
            f"Found {analysis.total} methods to remove:",
            f"• {len(deprecated)} unused deprecated methods",
            f"• {len(transitive)} transitively unused methods",
            "",
        ]
        lines.extend(f"• {method.display_name}" for method in methods[:SUMMARY_LIMIT])
        if len(methods) > SUMMARY_LIMIT:
            lines.append(f"... and {len(methods) - SUMMARY_LIMIT} more")
        lines.append("")
        lines.append("Do you want to remove these methods?")
        return "\n".join(lines)

    def finish(self, provider, report, sink):
        if not self.mark_after_removal or not report.method_files:
            return
        marker = FileMarkingCoordinator(provider, sink=sink)
        report.marked_files = marker.mark(report.method_files)

    def final_message(self, report):
        message = (
            f"Successfully removed {report.total_removed} methods over {report.passes_run} passes"
        )
        if report.marked_files:
            return message + f" and marked {len(report.marked_files)} files for cleanup."
        return message + "."


class MarkedFileJob(CleanupJob):
    """Unused imports, fields and empty classes in files carrying the sentinel."""

    title = "Code Cleanup"
    categories = (Category.UNUSED_IMPORT, Category.UNUSED_FIELD, Category.EMPTY_CLASS)
    finish_when_empty = True

    def scope_files(self, snapshot, provider, scope=None):
        files = super().scope_files(snapshot, provider, scope)
        return [f for f in files if snapshot.file(f).is_marked]

    def analyze(self, analyzer, files, recheck=()):
        return analyzer.analyze_marked_files(files)

    def empty_message(self, analysis):
        if not analysis.files:
            return f"No files marked with '{MARKER_TEXT}' found."
        return f"No unused elements found in {len(analysis.files)} marked files."

    @property
    def field_label(self) -> str:
        if self.field_mode == FieldMode.FINAL_PRIVATE:
            return "unused final private fields"
        return "unused non-public fields"

    def summarize(self, analysis: CleanupAnalysis) -> str:
        imports = analysis.per_file(Category.UNUSED_IMPORT)
        fields = analysis.per_file(Category.UNUSED_FIELD)
        classes = analysis.per_file(Category.EMPTY_CLASS)

        lines = [
            f"Found {len(analysis.files)} files marked for cleanup:",
            f"• {analysis.count(Category.UNUSED_IMPORT)} unused imports",
            f"• {analysis.count(Category.UNUSED_FIELD)} {self.field_label}",
            f"• {analysis.count(Category.EMPTY_CLASS)} empty classes",
            "",
        ]
        for file_path in analysis.files[:SUMMARY_LIMIT]:
            lines.append(
                f"• {PurePosixPath(file_path).name}: "
                f"{len(imports.get(file_path, []))} imports, "
                f"{len(fields.get(file_path, []))} fields, "
                f"{len(classes.get(file_path, []))} empty classes"
            )
        if len(analysis.files) > SUMMARY_LIMIT:
            lines.append(f"... and {len(analysis.files) - SUMMARY_LIMIT} more files")
        lines.append("")
        lines.append("Do you want to remove these unused elements?")
        return "\n".join(lines)

    def finish(self, provider, report, sink):
        if not report.files:
            return
        sink.log("Removing Controller Cleaner comments from processed files...")
        marker = FileMarkingCoordinator(provider, sink=sink)
        report.unmarked_files = marker.unmark(report.files)
        sink.log(f"Controller Cleaner comments removed from {len(report.unmarked_files)} files")

    def final_message(self, report):
        return super().final_message(report) + " Controller Cleaner comments have been removed."


def _join(parts: List[str]) -> str:
    if len(parts) <= 1:
        return "".join(parts)
    return ", ".join(parts[:-1]) + ", and " + parts[-1]
