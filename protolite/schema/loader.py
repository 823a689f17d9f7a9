"""Load schemas from source text or files, following imports."""

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from ..errors import SchemaError
from .builder import build_schema
from .descriptors import Schema
from .parser import parse
from .types import ProtoFile

logger = logging.getLogger(__name__)

StrPath = str | os.PathLike[str]


class _ImportResolver(ABC):
    """Collects a file and everything it imports, dependencies first.

    Files are identified by a key: the resolved path on disk here, the
    import name for in-memory sources.
    """

    def __init__(self) -> None:
        self.files: list[ProtoFile] = []
        self.sources: dict[str, str] = {}
        self._loaded: set[str] = set()
        self._stack: list[str] = []

    @abstractmethod
    def locate(self, name: str, importer: str | None) -> str:
        """Key of the file an import statement refers to."""

    @abstractmethod
    def read(self, key: str) -> str:
        """Source text of a located file."""

    def add(self, key: str | None, text: str) -> None:
        proto = parse(text, path=key)
        if key is not None:
            self._stack.append(key)

        for imp in proto.imports:
            dependency = self.locate(imp.path, key)
            if dependency in self._stack:
                cycle = " -> ".join([*self._stack, dependency])
                raise SchemaError(f"Import cycle: {cycle}")
            if dependency in self._loaded:
                continue

            logger.debug("Resolved import %s to %s", imp.path, dependency)
            dependency_text = self.read(dependency)
            self.sources[imp.path] = dependency_text
            self.add(dependency, dependency_text)
            self._loaded.add(dependency)

        if key is not None:
            self._stack.pop()
        self.files.append(proto)


class _FileResolver(_ImportResolver):
    def __init__(self, include_paths: Iterable[StrPath]) -> None:
        super().__init__()
        self.include_paths = [Path(p) for p in include_paths]

    def locate(self, name: str, importer: str | None) -> str:
        search = [Path(importer).parent] if importer else []
        for directory in (*search, *self.include_paths):
            candidate = directory / name
            if candidate.is_file():
                return str(candidate.resolve())
        raise SchemaError(f"{importer or '<schema>'}: cannot find import {name!r}")

    def read(self, key: str) -> str:
        return Path(key).read_text(encoding="utf-8")


class _MappingResolver(_ImportResolver):
    def __init__(self, sources: Mapping[str, str]) -> None:
        super().__init__()
        self.available = sources

    def locate(self, name: str, importer: str | None) -> str:
        if name not in self.available:
            raise SchemaError(f"{importer or '<schema>'}: cannot find import {name!r}")
        return name

    def read(self, key: str) -> str:
        return self.available[key]


def load_schema(text: str, include_paths: Iterable[StrPath] = ()) -> Schema:
    """Parse and build a schema from source text.

    Imports are searched for in include_paths.
    """
    resolver = _FileResolver(include_paths)
    resolver.add(None, text)
    return build_schema(resolver.files)


def load_schema_file(path: StrPath, include_paths: Iterable[StrPath] = ()) -> Schema:
    """Parse and build a schema from a file.

    Imports are searched for next to the importing file, then in
    include_paths.
    """
    key = str(Path(path).resolve())
    resolver = _FileResolver(include_paths)
    resolver.add(key, resolver.read(key))
    return build_schema(resolver.files)


def load_schema_sources(sources: Mapping[str, str], root: str) -> Schema:
    """Build a schema from in-memory sources keyed by import name."""
    if root not in sources:
        raise SchemaError(f"Root schema {root!r} is not among the sources")
    resolver = _MappingResolver(sources)
    resolver.add(root, sources[root])
    return build_schema(resolver.files)


def collect_sources(
    path: StrPath, include_paths: Iterable[StrPath] = ()
) -> tuple[str, dict[str, str]]:
    """Read a schema file and every file it imports.

    Returns:
        Tuple of (root name, sources) where sources maps the root file's name
        and each import name to its text, suitable for load_schema_sources.
    """
    path = Path(path).resolve()
    text = path.read_text(encoding="utf-8")
    resolver = _FileResolver(include_paths)
    resolver.add(str(path), text)
    return path.name, {path.name: text, **resolver.sources}
