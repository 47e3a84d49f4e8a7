"""Tests for the fixpoint cleanup driver and its public entry points."""
import pytest

from controller_cleaner import driver as driver_module
from controller_cleaner.analyzer.classifier import Category
from controller_cleaner.analyzer.model import Symbol
from controller_cleaner.analyzer.policy import FieldMode
from controller_cleaner.driver import (
    CancellationToken,
    CleanupDriver,
    RunOutcome,
    analyze_deprecated_controllers,
    analyze_marked_files,
    run_deprecated_controller_cleanup,
    run_marked_file_cleanup,
)
from controller_cleaner.jobs import CleanupJob, DeprecatedControllerJob, MarkedFileJob

from conftest import FakeCodeModel, MemoryProgressSink, ModelBuilder


def _yes(summary):
    return True


class RecordingConfirm:
    def __init__(self, answer=True):
        self.answer = answer
        self.summaries = []

    def __call__(self, summary):
        self.summaries.append(summary)
        return self.answer


SCENARIO = """
@RestController
public class X {
    @Deprecated
    public void old() {
        helper();
    }

    private void helper() {
    }

    public void live() {
    }
}
"""


class TestDeprecatedControllerScenarios:
    """End-to-end runs on real Java sources."""

    def test_old_and_helper(self, project, sink):
        project.write("X.java", SCENARIO)
        confirm = RecordingConfirm()

        report = run_deprecated_controller_cleanup(project.provider(), confirm, sink=sink)

        assert report.outcome == RunOutcome.COMPLETED
        assert report.total_removed == 2
        assert report.passes_run == 2
        assert report.removed_counts[Category.DEPRECATED_METHOD] == 1
        assert report.removed_counts[Category.TRANSITIVE_METHOD] == 1
        assert len(confirm.summaries) == 1, "Confirmation is requested exactly once"
        assert "X.old()" in confirm.summaries[0]
        assert sink.contains("No changes in pass 2, stopping cleanup.")

        source = project.read("X.java")
        assert "old" not in source and "helper" not in source
        assert "public void live()" in source
        # Files that lost a method are queued for the marked-file cleanup
        assert source.startswith("//Controller Cleaner\n")
        assert report.marked_files == ["X.java"]

    def test_second_run_removes_nothing(self, project):
        project.write("X.java", SCENARIO)
        provider = project.provider()

        run_deprecated_controller_cleanup(provider, _yes)
        second = run_deprecated_controller_cleanup(provider, _yes)

        assert second.outcome == RunOutcome.NOTHING_TO_DO
        assert second.total_removed == 0

    def test_chain_across_files(self, project):
        project.write("web/ReportController.java", """
            @RestController
            class ReportController {
                @Deprecated
                public String a() { return Reports.b(); }
            }
        """)
        project.write("web/Reports.java", """
            class Reports {
                static String b() { return c(); }
                static String c() { return "c"; }
                static String kept() { return "k"; }
            }
        """)
        provider = project.provider()

        report = run_deprecated_controller_cleanup(provider, _yes, job=DeprecatedControllerJob(mark_after_removal=False))

        assert report.total_removed == 3
        assert report.method_files == ["web/ReportController.java", "web/Reports.java"]
        assert report.marked_files == []
        assert "kept" in project.read("web/Reports.java")
        assert "static String b()" not in project.read("web/Reports.java")

    def test_analysis_is_read_only(self, project):
        project.write("X.java", SCENARIO)
        before = project.read("X.java")

        analysis = analyze_deprecated_controllers(project.provider())

        assert [s.name for s in analysis.symbols(Category.DEPRECATED_METHOD)] == ["old"]
        assert [s.name for s in analysis.symbols(Category.TRANSITIVE_METHOD)] == ["helper"]
        assert project.read("X.java") == before


class TestMarkedFileScenarios:
    """Marked-file cleanup on real Java sources."""

    MARKED = """
        //Controller Cleaner
        import java.util.List;
        import java.io.IOException;
        import java.lang.String;

        class Holder {
            private final String x = "a";
            @Deprecated private final String y = "b";
            List<String> names;

            static class Empty {
            }
        }
    """

    def test_removes_unused_elements_and_unmarks(self, project, sink):
        project.write("Holder.java", self.MARKED)
        project.write("Other.java", "import java.io.File;\nclass Other {}\n")

        report = run_marked_file_cleanup(project.provider(), _yes, sink=sink)

        assert report.outcome == RunOutcome.COMPLETED
        assert report.removed_counts[Category.UNUSED_IMPORT] == 2
        assert report.removed_counts[Category.UNUSED_FIELD] == 1
        assert report.removed_counts[Category.EMPTY_CLASS] == 1
        assert report.files == ["Holder.java"]
        assert report.unmarked_files == ["Holder.java"]
        assert project.read("Holder.java") == (
            "import java.util.List;\n"
            "\n"
            "class Holder {\n"
            "    @Deprecated private final String y = \"b\";\n"
            "    List<String> names;\n"
            "\n"
            "}\n"
        )
        # Unmarked files are out of scope
        assert project.read("Other.java") == "import java.io.File;\nclass Other {}\n"

    def test_no_marked_files(self, project, sink):
        project.write("A.java", "class A {}\n")

        report = run_marked_file_cleanup(project.provider(), _yes, sink=sink)

        assert report.outcome == RunOutcome.NOTHING_TO_DO
        assert sink.contains("No files marked with '//Controller Cleaner' found.")

    def test_clean_marked_files_are_still_unmarked(self, project, sink):
        project.write("A.java", "//Controller Cleaner\nclass A { void run() {} }\n")

        report = run_marked_file_cleanup(project.provider(), _yes, sink=sink)

        assert report.outcome == RunOutcome.NOTHING_TO_DO
        assert report.unmarked_files == ["A.java"]
        assert project.read("A.java") == "class A { void run() {} }\n"

    def test_field_mode_is_configurable(self, project):
        project.write("A.java", "//Controller Cleaner\nclass A {\n    private int counter;\n    void run() {}\n}\n")

        strict = analyze_marked_files(project.provider())
        loose = analyze_marked_files(project.provider(), job=MarkedFileJob(field_mode=FieldMode.NON_PUBLIC))

        assert strict.count(Category.UNUSED_FIELD) == 0
        assert loose.count(Category.UNUSED_FIELD) == 1


def _controller_model(*method_names):
    builder = ModelBuilder("web/LegacyController.java")
    cls = builder.cls("LegacyController", annotations=("RestController",))
    methods = [builder.method(cls, name, annotations=("Deprecated",)) for name in method_names]
    return builder, cls, methods


class RegrowingModel(FakeCodeModel):
    """Every deletion leaves a new unused deprecated method behind."""

    def __init__(self, files, owner):
        super().__init__(files)
        self.owner = owner
        self.generation = 0

    def delete(self, identity):
        super().delete(identity)
        self.generation += 1
        name = f"old{self.generation}"
        file_model = self.files[identity.file_path]
        file_model.symbols.append(Symbol(
            kind=identity.kind,
            name=name,
            qualified_name=f"{self.owner.qualified_name}.{name}",
            file_path=identity.file_path,
            containing_class=self.owner.identity,
            annotations=("Deprecated",),
            signature="()",
        ))


class TestDriverStateMachine:
    """Outcomes, pass bound, cancellation and locking on the in-memory model."""

    def test_declined_makes_no_changes(self, sink):
        builder, _, _ = _controller_model("old")
        model = FakeCodeModel([builder.build()])
        confirm = RecordingConfirm(answer=False)

        report = CleanupDriver(model, DeprecatedControllerJob(), sink).run(confirm)

        assert report.outcome == RunOutcome.DECLINED
        assert model.deleted == []
        assert len(confirm.summaries) == 1
        assert sink.contains("Operation cancelled by user.")

    def test_nothing_to_do_never_asks(self):
        builder, _, _ = _controller_model()
        confirm = RecordingConfirm()

        report = CleanupDriver(FakeCodeModel([builder.build()]), DeprecatedControllerJob()).run(confirm)

        assert report.outcome == RunOutcome.NOTHING_TO_DO
        assert confirm.summaries == []

    def test_pass_bound(self, sink):
        builder, cls, _ = _controller_model("old0")
        model = RegrowingModel([builder.build()], cls)

        report = CleanupDriver(model, DeprecatedControllerJob(mark_after_removal=False), sink).run(_yes)

        assert report.outcome == RunOutcome.COMPLETED
        assert report.passes_run == 3
        assert report.total_removed == 3
        assert sink.contains("Starting cleanup pass 3 of 3...")
        assert not sink.contains("pass 4")

    def test_fresh_snapshot_every_pass(self):
        builder, _, _ = _controller_model("old")
        model = FakeCodeModel([builder.build()])

        report = CleanupDriver(model, DeprecatedControllerJob(mark_after_removal=False)).run(_yes)

        # Initial analysis plus one snapshot per pass
        assert report.passes_run == 2
        assert model.snapshots_read == 3

    def test_item_failures_do_not_abort(self):
        builder, _, (broken, fine) = _controller_model("broken", "fine")
        model = FakeCodeModel([builder.build()], fail_on=[broken.identity])

        report = CleanupDriver(model, DeprecatedControllerJob(mark_after_removal=False)).run(_yes)

        assert report.outcome == RunOutcome.COMPLETED
        assert fine.identity in model.deleted
        assert ("LegacyController.broken()", "read-only file: web/LegacyController.java") in report.failures

    def test_read_error_fails_the_run(self, sink):
        builder, _, _ = _controller_model("old")
        model = FakeCodeModel([builder.build()], fail_reads=True)

        report = CleanupDriver(model, DeprecatedControllerJob(), sink).run(_yes)

        assert report.outcome == RunOutcome.FAILED
        assert report.error == "disk went away"
        assert sink.contains("Analysis failed: disk went away")

    def test_cancellation_before_first_pass(self):
        builder, _, _ = _controller_model("old")
        model = FakeCodeModel([builder.build()])
        token = CancellationToken()

        def confirm_then_cancel(summary):
            token.cancel()
            return True

        report = CleanupDriver(model, DeprecatedControllerJob(), cancel_token=token).run(confirm_then_cancel)

        assert report.outcome == RunOutcome.CANCELLED
        assert report.passes_run == 0
        assert model.deleted == []

    def test_cancellation_during_a_pass_finishes_its_batch(self):
        builder, _, (first, second) = _controller_model("first", "second")
        model = FakeCodeModel([builder.build()])
        token = CancellationToken()

        class CancelOnRemoval(MemoryProgressSink):
            def log(self, message):
                super().log(message)
                if " - Removed " in message:
                    token.cancel()

        report = CleanupDriver(model, DeprecatedControllerJob(mark_after_removal=False),
                               CancelOnRemoval(), cancel_token=token).run(_yes)

        assert report.outcome == RunOutcome.CANCELLED
        assert report.passes_run == 1
        assert report.total_removed == 2
        assert set(model.deleted) == {first.identity, second.identity}

    def test_concurrent_run_on_same_project_is_refused(self):
        builder, _, _ = _controller_model("old")
        model = FakeCodeModel([builder.build()])
        lock = driver_module._project_lock(model)

        with lock:
            report = CleanupDriver(model, DeprecatedControllerJob()).run(_yes)

        assert report.outcome == RunOutcome.FAILED
        assert "already active" in report.error
        assert model.deleted == []

    @pytest.mark.parametrize("run", [run_deprecated_controller_cleanup, run_marked_file_cleanup])
    def test_entry_points_return_reports(self, run):
        builder, _, _ = _controller_model()
        report = run(FakeCodeModel([builder.build()]), _yes)

        assert report.outcome == RunOutcome.NOTHING_TO_DO
        assert report.error is None


def test_cleanup_job_is_abstract():
    with pytest.raises(TypeError):
        CleanupJob()
