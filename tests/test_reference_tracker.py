"""Tests for reference counting, call resolution and override detection."""
import pytest

from controller_cleaner.analyzer.model import SymbolKind
from controller_cleaner.analyzer.reference_tracker import ReferenceTracker


def _symbol(snapshot, kind, qualified_name):
    return next(s for s in snapshot.all_symbols(kind) if s.qualified_name == qualified_name)


@pytest.fixture
def tracked(project):
    def _tracked(files):
        for path, source in files.items():
            project.write(path, source)
        snapshot = project.provider().read_snapshot()
        return snapshot, ReferenceTracker(snapshot)
    return _tracked


class TestMethodReferences:
    """Call-based references."""

    def test_self_recursion_is_not_external(self, tracked):
        snapshot, tracker = tracked({"A.java": """
            class A {
                int fact(int n) { return n <= 1 ? 1 : n * fact(n - 1); }
            }
        """})
        fact = _symbol(snapshot, SymbolKind.METHOD, "A.fact")

        assert len(tracker.find_references(fact)) == 1
        assert tracker.external_reference_count(fact) == 0

    def test_overloads_resolve_by_arity(self, tracked):
        snapshot, tracker = tracked({"A.java": """
            class A {
                void run() { log("x"); }
                void log(String message) {}
                void log(String message, int level) {}
            }
        """})
        one = next(s for s in snapshot.all_symbols(SymbolKind.METHOD) if s.name == "log" and s.arity == 1)
        two = next(s for s in snapshot.all_symbols(SymbolKind.METHOD) if s.name == "log" and s.arity == 2)

        assert tracker.external_reference_count(one) == 1
        assert tracker.external_reference_count(two) == 0

    def test_ambiguous_call_references_every_candidate(self, tracked):
        snapshot, tracker = tracked({
            "A.java": "class A { void save() {} }\n",
            "B.java": "class B { void save() {} }\n",
            "C.java": "class C { void go(Object repo) { repo.save(); } }\n",
        })
        call = next(c for f in snapshot.files for c in f.calls if c.name == "save")

        assert len(tracker.call_candidates(call)) == 2
        assert tracker.resolve_call_target(call) is None
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.METHOD, "A.save")) == 1
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.METHOD, "B.save")) == 1

    def test_static_receiver_narrows_to_class(self, tracked):
        snapshot, tracker = tracked({
            "A.java": "class A { static void save() {} }\n",
            "B.java": "class B { static void save() {} }\n",
            "C.java": "class C { void go() { A.save(); } }\n",
        })
        call = next(c for f in snapshot.files for c in f.calls if c.name == "save")

        assert tracker.resolve_call_target(call) == _symbol(snapshot, SymbolKind.METHOD, "A.save").identity

    def test_bare_call_prefers_own_class(self, tracked):
        snapshot, tracker = tracked({
            "A.java": "class A { void run() { helper(); } void helper() {} }\n",
            "B.java": "class B { void helper() {} }\n",
        })
        call = next(c for f in snapshot.files for c in f.calls if c.name == "helper")

        assert tracker.resolve_call_target(call) == _symbol(snapshot, SymbolKind.METHOD, "A.helper").identity
        assert tracker.callees(_symbol(snapshot, SymbolKind.METHOD, "A.run").identity) == [
            _symbol(snapshot, SymbolKind.METHOD, "A.helper").identity
        ]

    def test_method_reference_counts(self, tracked):
        snapshot, tracker = tracked({"A.java": """
            class A {
                Object go(java.util.List<String> xs) { return xs.stream().map(A::clean); }
                static String clean(String s) { return s; }
            }
        """})
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.METHOD, "A.clean")) == 1


class TestOverrides:
    """Override and interface detection."""

    def test_override_annotation(self, tracked):
        snapshot, tracker = tracked({"A.java": """
            class A {
                @Override
                public String toString() { return "a"; }
            }
        """})
        assert tracker.is_override(_symbol(snapshot, SymbolKind.METHOD, "A.toString")) is True

    def test_project_supertype_without_annotation(self, tracked):
        snapshot, tracker = tracked({
            "Base.java": "abstract class Base { abstract void handle(int x); }\n",
            "Impl.java": "class Impl extends Base { void handle(int x) {} void other() {} }\n",
        })
        assert tracker.is_override(_symbol(snapshot, SymbolKind.METHOD, "Impl.handle")) is True
        assert tracker.is_override(_symbol(snapshot, SymbolKind.METHOD, "Impl.other")) is False

    def test_interface_methods(self, tracked):
        snapshot, tracker = tracked({"Api.java": "interface Api { void call(); }\n"})
        assert tracker.is_interface_method(_symbol(snapshot, SymbolKind.METHOD, "Api.call")) is True


class TestStructuralReferences:
    """Imports, fields and classes."""

    def test_import_used_as_type(self, tracked):
        snapshot, tracker = tracked({"A.java": """
            import java.util.List;
            import java.io.IOException;
            class A {
                List<String> names;
            }
        """})
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.IMPORT, "java.util.List")) == 1
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.IMPORT, "java.io.IOException")) == 0

    def test_import_used_only_in_javadoc(self, tracked):
        snapshot, tracker = tracked({"A.java": """
            import java.io.IOException;
            class A {
                /** @throws IOException never */
                void run() {}
            }
        """})
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.IMPORT, "java.io.IOException")) == 1

    def test_private_field_only_counts_same_file(self, tracked):
        snapshot, tracker = tracked({
            "A.java": "class A { private final int count = 1; }\n",
            "B.java": "class B { int go(Other o) { return o.count; } }\n",
        })
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.FIELD, "A.count")) == 0

    def test_class_referenced_from_another_file(self, tracked):
        snapshot, tracker = tracked({
            "Marker.java": "class Marker {}\n",
            "Unused.java": "class Unused { Unused self() { return this; } }\n",
            "User.java": "class User { Marker m = new Marker(); }\n",
        })
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.CLASS, "Marker")) == 2
        # Uses inside the class's own body do not count
        assert tracker.external_reference_count(_symbol(snapshot, SymbolKind.CLASS, "Unused")) == 0
