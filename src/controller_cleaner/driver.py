"""Fixpoint cleanup driver: analyze, confirm once, then apply in bounded passes."""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .analyzer.classifier import Category
from .analyzer.code_model import CodeModelProvider
from .analyzer.liveness import CleanupAnalysis, LivenessAnalyzer
from .analyzer.model import SymbolId
from .analyzer.planner import RemovalPlanner
from .config import MAX_PASSES
from .errors import ModelReadError
from .jobs import CleanupJob, DeprecatedControllerJob, MarkedFileJob
from .reaper.applier import MutationApplier, PassResult
from .utils.progress import NullProgressSink, ProgressSink

# Confirmation port: receives the summary text, returns True to proceed
ConfirmFn = Callable[[str], bool]


class DriverState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    APPLYING = "applying"


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    NOTHING_TO_DO = "nothing_to_do"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class Report:
    """Structured result of every run, successful or not."""
    job: str
    outcome: RunOutcome = RunOutcome.COMPLETED
    removed_counts: Dict[Category, int] = field(default_factory=lambda: {c: 0 for c in Category})
    failures: List[Tuple[str, str]] = field(default_factory=list)  # (symbol name, reason)
    passes_run: int = 0
    files: List[str] = field(default_factory=list)  # Files in the analyzed scope
    touched_files: List[str] = field(default_factory=list)
    method_files: List[str] = field(default_factory=list)
    marked_files: List[str] = field(default_factory=list)
    unmarked_files: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def total_removed(self) -> int:
        return sum(self.removed_counts.values())


class CancellationToken:
    """External cancellation signal, checked between passes."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# One active run per project
_registry_lock = threading.Lock()
_project_locks: Dict[str, threading.Lock] = {}


def _project_lock(provider: CodeModelProvider) -> threading.Lock:
    key = str(getattr(provider, 'root', id(provider)))
    with _registry_lock:
        return _project_locks.setdefault(key, threading.Lock())


class CleanupDriver:
    """State machine: IDLE -> ANALYZING -> AWAITING_CONFIRMATION -> APPLYING -> IDLE.

    Confirmation is requested exactly once. Each pass re-reads a fresh
    snapshot, so nothing computed in one pass survives into the next except
    the follow-up identities to re-check.
    """

    def __init__(self, provider: CodeModelProvider, job: CleanupJob,
                 sink: Optional[ProgressSink] = None, max_passes: int = MAX_PASSES,
                 cancel_token: Optional[CancellationToken] = None):
        """Initialize driver.

        Args:
            provider: Code model to analyze and mutate
            job: What to clean
            sink: Progress/log sink
            max_passes: Upper bound on applying passes
            cancel_token: Optional external cancellation signal
        """
        self.provider = provider
        self.job = job
        self.sink = sink or NullProgressSink()
        self.max_passes = max_passes
        self.cancel_token = cancel_token or CancellationToken()
        self.state = DriverState.IDLE

    def analyze(self, scope: Optional[Iterable[str]] = None,
                recheck: Iterable[SymbolId] = ()) -> Tuple[CleanupAnalysis, LivenessAnalyzer]:
        """Run one read-only analysis over a fresh snapshot.

        Raises:
            ModelReadError: If the code model cannot be read
        """
        snapshot = self.provider.read_snapshot()
        files = self.job.scope_files(snapshot, self.provider, scope)
        analyzer = self.job.build_analyzer(snapshot, files)
        return self.job.analyze(analyzer, files, recheck), analyzer

    def run(self, confirm: ConfirmFn, scope: Optional[Iterable[str]] = None) -> Report:
        """Run the full cleanup.

        Args:
            confirm: Called once with the summary; False aborts without mutation
            scope: Optional file restriction

        Returns:
            Report in every case; read errors are reported, not raised
        """
        if scope is not None:
            scope = list(scope)

        lock = _project_lock(self.provider)
        if not lock.acquire(blocking=False):
            message = "Another cleanup run is already active for this project"
            self.sink.log(message)
            return Report(job=self.job.title, outcome=RunOutcome.FAILED, error=message)

        try:
            return self._run(confirm, scope)
        finally:
            self.state = DriverState.IDLE
            lock.release()

    def _run(self, confirm: ConfirmFn, scope: Optional[List[str]]) -> Report:
        report = Report(job=self.job.title)

        # === ANALYZING ===
        self.state = DriverState.ANALYZING
        self.sink.progress(f"Starting {self.job.title.lower()} analysis...")
        try:
            analysis, _ = self.analyze(scope)
        except ModelReadError as e:
            return self._fail(report, e)

        report.files = list(analysis.files)
        for category in self.job.categories:
            self.sink.log(f"Found {analysis.count(category)} {category.label}")

        if analysis.is_empty:
            self.sink.log(self.job.empty_message(analysis))
            report.outcome = RunOutcome.NOTHING_TO_DO
            if self.job.finish_when_empty:
                self.job.finish(self.provider, report, self.sink)
            return report

        # === AWAITING_CONFIRMATION ===
        self.state = DriverState.AWAITING_CONFIRMATION
        summary = self.job.summarize(analysis)
        self.sink.log(summary)
        if not confirm(summary):
            self.sink.log("Operation cancelled by user.")
            report.outcome = RunOutcome.DECLINED
            return report

        # === APPLYING ===
        self.state = DriverState.APPLYING
        self.sink.log(f"Starting removal of {analysis.total} elements...")
        applier = MutationApplier(self.provider, self.sink)
        recheck: Tuple[SymbolId, ...] = ()
        pass_scope = scope

        for pass_number in range(1, self.max_passes + 1):
            if self.cancel_token.cancelled:
                report.outcome = RunOutcome.CANCELLED
                break

            self.sink.log(f"Starting cleanup pass {pass_number} of {self.max_passes}...")
            self.sink.progress(f"Pass {pass_number} - analyzing...")
            try:
                pass_analysis, analyzer = self.analyze(pass_scope, recheck)
            except ModelReadError as e:
                return self._fail(report, e)

            # Last chance to stop before this pass mutates anything
            if self.cancel_token.cancelled:
                report.outcome = RunOutcome.CANCELLED
                break

            batch = RemovalPlanner(analyzer.index).plan(pass_analysis)
            for symbol, reason in batch.excluded:
                self.sink.log(f"Pass {pass_number} - Kept {symbol.display_name}: {reason}")

            result = applier.apply_batch(batch, pass_number)
            report.passes_run = pass_number
            self._merge(report, result)
            self.sink.log(self.job.pass_message(pass_number, result.removed))

            if result.total_removed == 0:
                self.sink.log(f"No changes in pass {pass_number}, stopping cleanup.")
                break

            recheck = pass_analysis.followups

        if report.outcome == RunOutcome.COMPLETED:
            self.job.finish(self.provider, report, self.sink)
            self.sink.log(self.job.final_message(report))
        else:
            self.sink.log(f"Cleanup cancelled after {report.passes_run} passes.")
        return report

    def _merge(self, report: Report, result: PassResult) -> None:
        for category, count in result.removed.items():
            report.removed_counts[category] = report.removed_counts.get(category, 0) + count
        report.failures.extend(result.failures)
        for file_path in result.touched_files:
            if file_path not in report.touched_files:
                report.touched_files.append(file_path)
        for file_path in result.method_files:
            if file_path not in report.method_files:
                report.method_files.append(file_path)

    def _fail(self, report: Report, error: ModelReadError) -> Report:
        self.sink.log(f"Analysis failed: {error}")
        report.outcome = RunOutcome.FAILED
        report.error = str(error)
        return report


# === PUBLIC ENTRY POINTS ===

def analyze_deprecated_controllers(provider: CodeModelProvider, scope: Optional[Iterable[str]] = None,
                                   job: Optional[DeprecatedControllerJob] = None) -> CleanupAnalysis:
    """Read-only analysis of unused deprecated controller methods.

    Raises:
        ModelReadError: If the code model cannot be read
    """
    analysis, _ = CleanupDriver(provider, job or DeprecatedControllerJob()).analyze(scope)
    return analysis


def analyze_marked_files(provider: CodeModelProvider, scope: Optional[Iterable[str]] = None,
                         job: Optional[MarkedFileJob] = None) -> CleanupAnalysis:
    """Read-only analysis of marked files.

    Raises:
        ModelReadError: If the code model cannot be read
    """
    analysis, _ = CleanupDriver(provider, job or MarkedFileJob()).analyze(scope)
    return analysis


def run_deprecated_controller_cleanup(provider: CodeModelProvider, confirm: ConfirmFn,
                                      scope: Optional[Iterable[str]] = None,
                                      job: Optional[DeprecatedControllerJob] = None,
                                      sink: Optional[ProgressSink] = None,
                                      cancel_token: Optional[CancellationToken] = None) -> Report:
    driver = CleanupDriver(provider, job or DeprecatedControllerJob(), sink=sink, cancel_token=cancel_token)
    return driver.run(confirm, scope)


def run_marked_file_cleanup(provider: CodeModelProvider, confirm: ConfirmFn,
                            scope: Optional[Iterable[str]] = None,
                            job: Optional[MarkedFileJob] = None,
                            sink: Optional[ProgressSink] = None,
                            cancel_token: Optional[CancellationToken] = None) -> Report:
    driver = CleanupDriver(provider, job or MarkedFileJob(), sink=sink, cancel_token=cancel_token)
    return driver.run(confirm, scope)
