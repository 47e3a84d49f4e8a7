"""Shared fixtures: Java project writer, in-memory code model and recording sink."""
import os
from pathlib import Path
from textwrap import dedent
from typing import Dict, Iterable, List, Optional, Set

import pytest

from controller_cleaner import config as config_module
from controller_cleaner.analyzer.code_model import CodeModelProvider, JavaSourceTree
from controller_cleaner.analyzer.model import CallSite, FileModel, ModelSnapshot, Symbol, SymbolId, SymbolKind
from controller_cleaner.errors import ModelReadError, MutationError, StaleSymbolError
from controller_cleaner.utils.progress import ProgressSink


class MemoryProgressSink(ProgressSink):
    """Records everything the engine reports."""

    def __init__(self):
        self.progress_text: List[str] = []
        self.messages: List[str] = []

    def progress(self, text: str) -> None:
        self.progress_text.append(text)

    def log(self, message: str) -> None:
        self.messages.append(message)

    def contains(self, fragment: str) -> bool:
        return any(fragment in message for message in self.messages)


class JavaProject:
    """Writes Java sources under a temporary root."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def write(self, relative: str, source: str) -> str:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(source).lstrip("\n"), encoding="utf-8")
        return relative

    def read(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8")

    def provider(self, backup=None) -> JavaSourceTree:
        return JavaSourceTree(self.root, backup=backup)


class ModelBuilder:
    """Builds FileModels by hand for engine tests that need no parser."""

    def __init__(self, file_path: str, package: str = "", is_marked: bool = False):
        self.model = FileModel(file_path=file_path, package=package, is_marked=is_marked)
        self._line = 0

    def _next_line(self) -> int:
        self._line += 1
        return self._line

    def cls(self, name: str, annotations=(), supertypes=(), type_kind="class",
            method_count=0, field_count=0, outer: Optional[Symbol] = None) -> Symbol:
        prefix = outer.qualified_name if outer else self.model.package
        symbol = Symbol(
            kind=SymbolKind.CLASS,
            name=name,
            qualified_name=f"{prefix}.{name}" if prefix else name,
            file_path=self.model.file_path,
            line=self._next_line(),
            containing_class=outer.identity if outer else None,
            annotations=tuple(annotations),
            type_kind=type_kind,
            method_count=method_count,
            field_count=field_count,
            supertypes=tuple(supertypes),
        )
        self.model.symbols.append(symbol)
        return symbol

    def method(self, owner: Symbol, name: str, annotations=(), modifiers=("public",),
               arity: int = 0, doc_deprecated: bool = False) -> Symbol:
        symbol = Symbol(
            kind=SymbolKind.METHOD,
            name=name,
            qualified_name=f"{owner.qualified_name}.{name}",
            file_path=self.model.file_path,
            line=self._next_line(),
            containing_class=owner.identity,
            modifiers=tuple(modifiers),
            annotations=tuple(annotations),
            has_doc_deprecated_tag=doc_deprecated,
            signature="(" + ",".join(["int"] * arity) + ")",
            arity=arity,
            in_interface=owner.type_kind == "interface",
        )
        self.model.symbols.append(symbol)
        return symbol

    def call(self, caller: Symbol, name: str, arity: int = 0, receiver: Optional[str] = None) -> CallSite:
        call = CallSite(
            file_path=self.model.file_path,
            line=self._next_line(),
            name=name,
            arity=arity,
            receiver=receiver,
            enclosing_method=caller.identity,
            enclosing_class=caller.containing_class,
        )
        self.model.calls.append(call)
        return call

    def build(self) -> FileModel:
        return self.model


class FakeCodeModel(CodeModelProvider):
    """In-memory provider over hand-built FileModels.

    Deleting a method also drops the call sites inside it, which is what a
    re-parse of the edited file would report.
    """

    def __init__(self, files: Iterable[FileModel], fail_on: Iterable[SymbolId] = (),
                 fail_reads: bool = False):
        self.files: Dict[str, FileModel] = {f.file_path: f for f in files}
        self.sources: Dict[str, bytes] = {path: b"" for path in self.files}
        self.fail_on: Set[SymbolId] = set(fail_on)
        self.fail_reads = fail_reads
        self.deleted: List[SymbolId] = []
        self.snapshots_read = 0

    def list_files(self, scope=None):
        if scope is None:
            return sorted(self.files)
        return sorted(path for path in scope if path in self.files)

    def read_snapshot(self) -> ModelSnapshot:
        if self.fail_reads:
            raise ModelReadError("disk went away")
        self.snapshots_read += 1
        return ModelSnapshot([
            FileModel(
                file_path=f.file_path,
                package=f.package,
                symbols=list(f.symbols),
                calls=list(f.calls),
                usages=list(f.usages),
                is_marked=f.is_marked,
                has_errors=f.has_errors,
            )
            for f in self.files.values()
        ])

    def is_valid(self, identity: SymbolId) -> bool:
        file_model = self.files.get(identity.file_path)
        return file_model is not None and any(s.identity == identity for s in file_model.symbols)

    def delete(self, identity: SymbolId) -> None:
        if identity in self.fail_on:
            raise MutationError(f"read-only file: {identity.file_path}")
        file_model = self.files.get(identity.file_path)
        if file_model is None or not self.is_valid(identity):
            raise StaleSymbolError(identity)
        file_model.symbols = [s for s in file_model.symbols if s.identity != identity]
        file_model.calls = [c for c in file_model.calls if c.enclosing_method != identity]
        file_model.usages = [u for u in file_model.usages if u.enclosing_method != identity]
        self.deleted.append(identity)

    def read_source(self, file_path: str) -> bytes:
        return self.sources[file_path]

    def write_source(self, file_path: str, data: bytes) -> None:
        self.sources[file_path] = data


@pytest.fixture
def project(tmp_path):
    """Empty Java project rooted in a temporary directory."""
    return JavaProject(tmp_path / "project")


@pytest.fixture
def sink():
    return MemoryProgressSink()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate every test from CLEANER_* variables and the config singleton."""
    for name in list(os.environ):
        if name.startswith("CLEANER_"):
            monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "_config", None)
