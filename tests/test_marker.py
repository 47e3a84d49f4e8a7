"""Tests for the '//Controller Cleaner' sentinel."""
from controller_cleaner.reaper.marker import FileMarkingCoordinator


class TestFileMarking:

    def test_mark_inserts_sentinel_once(self, project, sink):
        project.write("A.java", "package a;\nclass A {}\n")
        coordinator = FileMarkingCoordinator(project.provider(), sink=sink)

        assert coordinator.mark(["A.java"]) == ["A.java"]
        assert coordinator.mark(["A.java"]) == [], "Marking twice must not duplicate the sentinel"
        assert project.read("A.java") == "//Controller Cleaner\npackage a;\nclass A {}\n"
        assert sink.contains("Marked file for cleanup: A.java")

    def test_list_marked_files(self, project):
        project.write("a/Marked.java", "//Controller Cleaner\nclass Marked {}\n")
        project.write("a/Plain.java", "class Plain {}\n")
        project.write("b/Other.java", "//Controller Cleaner\nclass Other {}\n")
        coordinator = FileMarkingCoordinator(project.provider())

        assert coordinator.list_marked_files() == ["a/Marked.java", "b/Other.java"]
        assert coordinator.list_marked_files(scope=["a"]) == ["a/Marked.java"]

    def test_unmark_removes_comment_and_line_break(self, project, sink):
        project.write("A.java", "//Controller Cleaner\r\npackage a;\nclass A {}\n")
        coordinator = FileMarkingCoordinator(project.provider(), sink=sink)

        assert coordinator.unmark(["A.java"]) == ["A.java"]
        assert project.read("A.java") == "package a;\nclass A {}\n"
        assert sink.contains("Removed Controller Cleaner comment from A.java")

    def test_unmark_ignores_unmarked_files(self, project):
        project.write("A.java", "// regular comment\nclass A {}\n")
        coordinator = FileMarkingCoordinator(project.provider())

        assert coordinator.unmark(["A.java"]) == []
        assert project.read("A.java") == "// regular comment\nclass A {}\n"

    def test_round_trip_restores_original(self, project):
        original = "import java.util.List;\n\nclass A { List<String> xs; }\n"
        project.write("A.java", original)
        coordinator = FileMarkingCoordinator(project.provider())

        coordinator.mark(["A.java"])
        assert coordinator.is_marked(project.read("A.java").encode("utf-8"))
        coordinator.unmark(["A.java"])
        assert project.read("A.java") == original

    def test_mark_keeps_crlf_line_endings(self, project):
        (project.root / "A.java").write_bytes(b"package a;\r\nclass A {}\r\n")
        coordinator = FileMarkingCoordinator(project.provider())

        coordinator.mark(["A.java"])
        assert (project.root / "A.java").read_bytes() == b"//Controller Cleaner\r\npackage a;\r\nclass A {}\r\n"

        coordinator.unmark(["A.java"])
        assert (project.root / "A.java").read_bytes() == b"package a;\r\nclass A {}\r\n"
