"""
Class repository: resolves a class name to a ClassDescriptor.

A repository is a chain of archive sources (bundle JARs, jars embedded via
Bundle-ClassPath, rt.jar or JDK jmods) searched in order, plus classes
registered directly. Nothing is ever loaded into a JVM; lookups parse the
class file bytes and cache the result.
"""
import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .bundle import ARCHIVE_ERRORS, BundleInfo
from .classfile import parse_classfile
from .errors import ClassFormatError, ClassLookupError
from .model import ClassDescriptor

log = logging.getLogger(__name__)


def internal_name(name: str) -> str:
    return name.replace(".", "/")


class ArchiveClassSource:
    """Class files inside one zip archive, optionally under a directory prefix."""

    def __init__(self, archive: zipfile.ZipFile, label: str, prefix: str = ""):
        self.archive = archive
        self.label = label
        self.prefix = prefix
        self._names = set(archive.namelist())

    @classmethod
    def open(cls, path, prefix: str = "") -> "ArchiveClassSource":
        # zipfile tolerates the 4-byte header jmod files put before the zip data
        return cls(zipfile.ZipFile(path, "r"), os.fspath(path), prefix)

    def read(self, name: str) -> Optional[bytes]:
        entry = f"{self.prefix}{internal_name(name)}.class"
        if entry not in self._names:
            return None
        return self.archive.read(entry)

    def close(self) -> None:
        self.archive.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r})"


class EmbeddedClassSource(ArchiveClassSource):
    """A jar nested inside another archive, read into memory on first lookup."""

    def __init__(self, parent: ArchiveClassSource, entry: str):
        self.parent = parent
        self.entry = entry
        self.label = f"{parent.label}!/{entry}"
        self.prefix = ""
        self.archive: Optional[zipfile.ZipFile] = None
        self._names = None

    def _load(self) -> None:
        self._names = set()
        embedded = open_embedded(self.parent.archive, self.entry, self.parent.label)
        if embedded is not None:
            self.archive = embedded.archive
            self._names = embedded._names

    def read(self, name: str) -> Optional[bytes]:
        if self._names is None:
            self._load()
        return super().read(name)

    def close(self) -> None:
        if self.archive is not None:
            self.archive.close()


def open_embedded(archive: zipfile.ZipFile, entry: str, label: str) -> Optional[ArchiveClassSource]:
    """Opens a jar nested inside archive (a Bundle-ClassPath entry) in memory."""
    try:
        data = archive.read(entry)
    except KeyError:
        return None
    except ARCHIVE_ERRORS as e:
        log.warning("Ignoring unreadable embedded jar %s in %s: %s", entry, label, e)
        return None
    try:
        return ArchiveClassSource(zipfile.ZipFile(io.BytesIO(data), "r"), f"{label}!/{entry}")
    except zipfile.BadZipFile as e:
        log.warning("Ignoring unreadable embedded jar %s in %s: %s", entry, label, e)
        return None


def jdk_sources(path) -> List[ArchiveClassSource]:
    """
    Class sources for a JDK location: an rt.jar, a directory of *.jmod files,
    or a JDK home containing jmods/ or jre/lib/rt.jar.
    """
    p = Path(path)
    if p.is_file():
        prefix = "classes/" if p.suffix == ".jmod" else ""
        return [ArchiveClassSource.open(p, prefix)]
    for candidate in (p / "jmods", p):
        jmods = sorted(candidate.glob("*.jmod")) if candidate.is_dir() else []
        if jmods:
            return [ArchiveClassSource.open(j, "classes/") for j in jmods]
    for rt in (p / "jre" / "lib" / "rt.jar", p / "lib" / "rt.jar"):
        if rt.is_file():
            return [ArchiveClassSource.open(rt)]
    log.warning("No JDK classes found at %s", path)
    return []


class ClassRepository:
    def __init__(self, sources: Iterable[ArchiveClassSource] = ()):
        self.sources: List[ArchiveClassSource] = list(sources)
        self._cache: Dict[str, ClassDescriptor] = {}
        self._failures: Dict[str, str] = {}

    @classmethod
    def from_bundles(cls, bundles: Iterable[BundleInfo], classpath: Iterable = (),
                     jdk: Iterable = ()) -> "ClassRepository":
        """
        Builds a repository over bundles (and their embedded jars), then plain
        classpath jars, then the JDK.
        """
        repo = cls()
        for bundle in bundles:
            repo.add_archive(bundle.file_path, bundle.embedded_jars)
        for jar in classpath:
            repo.add_archive(jar)
        for location in jdk:
            repo.sources.extend(jdk_sources(location))
        return repo

    def add_archive(self, path, embedded_jars: Sequence[str] = ()) -> None:
        try:
            source = ArchiveClassSource.open(path)
        except (OSError, zipfile.BadZipFile) as e:
            log.warning("Ignoring unreadable archive %s: %s", path, e)
            return
        self.sources.append(source)
        self.sources.extend(EmbeddedClassSource(source, entry) for entry in embedded_jars)

    def register(self, desc: ClassDescriptor) -> None:
        """Makes desc resolvable by name; a class already known keeps its first descriptor."""
        self._cache.setdefault(desc.name, desc)
        self._failures.pop(desc.name, None)

    def _fail(self, name: str, key: str, reason: str) -> ClassLookupError:
        self._failures[key] = reason
        return ClassLookupError(name, reason)

    def find(self, name: str) -> ClassDescriptor:
        """Returns the descriptor for a dotted or internal class name, raising ClassLookupError."""
        key = internal_name(name)
        found = self._cache.get(key)
        if found is not None:
            return found
        if key in self._failures:
            raise ClassLookupError(name, self._failures[key])
        for source in self.sources:
            try:
                data = source.read(key)
            except ARCHIVE_ERRORS as e:
                raise self._fail(name, key, f"unreadable in {source.label}: {e}") from e
            if data is None:
                continue
            try:
                desc = parse_classfile(data)
            except ClassFormatError as e:
                raise self._fail(name, key, f"unreadable in {source.label}: {e}") from e
            self._cache[key] = desc
            return desc
        raise self._fail(name, key, "not found")

    def close(self) -> None:
        for source in self.sources:
            source.close()
        self.sources = []

    def __enter__(self) -> "ClassRepository":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
