"""
Stub file writer: the per-bundle driver.

For each bundle the exported classes (including those of embedded
Bundle-ClassPath jars) are parsed, grouped into pools and rendered, one
.java file per pool. Around the sources a minimal PDE project is laid out:
a trimmed copy of the bundle manifest and a build.properties, with the
Tycho parent files at the output root.
"""
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from .bundle import (
    ARCHIVE_ERRORS,
    MANIFEST_PATH,
    BundleInfo,
    embedded_jar_paths,
    read_bundle_info,
    read_manifest,
)
from .classfile import parse_classfile
from .config import DEFAULT_POLICY, OverridePolicy
from .constructors import print_constructors
from .errors import ClassFormatError, StubWriteError
from .exports import find_exported_packages
from .model import ClassDescriptor
from .pool import ClassPool, PoolBuilder
from .render import INDENT, print_class_fields, print_class_signature, print_enum_constants, print_methods
from .repository import ClassRepository, open_embedded
from .tycho import EXTENSIONS_XML, parent_pom, stub_modules

log = logging.getLogger(__name__)

# Manifest headers carried over into the stub project's manifest, in order
COPY_HEADERS = (
    "Manifest-Version",
    "Bundle-SymbolicName",
    "Bundle-Name",
    "Bundle-Version",
    "Bundle-ManifestVersion",
    "Bundle-Vendor",
    "Import-Package",
    "Require-Bundle",
    "DynamicImport-Package",
    "Export-Package",
    "Bundle-RequiredExecutionEnvironment",
    "Fragment-Host",
    "Eclipse-ExtensibleAPI",
    "Eclipse-SourceReferences",
)

MANIFEST_LINE_WIDTH = 72
IGNORED_CLASS_ENTRIES = ("module-info.class", "package-info.class")


@dataclass
class GenerationStats:
    bundles_found: int = 0
    bundles_processed: int = 0
    bundles_skipped: int = 0
    bundles_failed: int = 0
    class_files: int = 0
    not_exported: int = 0
    parse_errors: int = 0
    classes_skipped: int = 0
    render_errors: int = 0
    files_written: int = 0
    # (entry or class name, message)
    failures: List[Tuple[str, str]] = field(default_factory=list)


# ----- rendering -----

def nested_class_name(desc: ClassDescriptor) -> str:
    """The source name of a nested pool member: the part after the last '$'."""
    name = desc.local_name[desc.local_name.rfind("$") + 1:]
    if not name or name[0].isdigit():
        # local classes (Outer$1Local) keep their binary name
        return desc.local_name
    return name


def indent_block(text: str) -> str:
    return "".join(INDENT + line if line.strip() else line for line in text.splitlines(True))


def render_class(pool: ClassPool, desc: ClassDescriptor, class_name: str,
                 repository: Optional[ClassRepository], policy: OverridePolicy = DEFAULT_POLICY,
                 top_level: bool = True) -> str:
    """Renders desc as class_name, with the pool members nested below it as inner classes."""
    result = [print_class_signature(desc, class_name, policy, top_level), " {\n"]
    if desc.is_enum:
        result.append(print_enum_constants(desc))
    result.append(print_class_fields(desc, policy))
    result.append(print_constructors(desc, repository, class_name))
    result.append(print_methods(desc, policy))

    for child in pool.direct_children(desc):
        inner = render_class(pool.subpool(child), child, nested_class_name(child),
                             repository, policy, top_level=False)
        result.append(indent_block(inner))

    result.append("}\n")
    return "".join(result)


def render_pool(pool: ClassPool, repository: Optional[ClassRepository],
                policy: OverridePolicy = DEFAULT_POLICY) -> str:
    """The full contents of the .java file for pool."""
    header = f"package {pool.package_name};\n\n" if pool.package_name else ""
    return header + render_class(pool, pool.outer, pool.class_name, repository, policy)


def pool_path(src_root: Path, pool: ClassPool) -> Path:
    path = Path(src_root)
    if pool.package_name:
        path = path.joinpath(*pool.package_name.split("."))
    return path / (pool.class_name + ".java")


# ----- manifest and build files -----

def format_manifest(headers: Iterable[Tuple[str, str]]) -> str:
    """Main manifest section with lines wrapped at 72 bytes, CRLF separated."""
    lines = []
    for name, value in headers:
        line = f"{name}: {value}".encode("utf-8")
        first = True
        while line:
            width = MANIFEST_LINE_WIDTH if first else MANIFEST_LINE_WIDTH - 1
            cut = width
            # never split a multi-byte character
            while cut < len(line) and (line[cut] & 0xC0) == 0x80:
                cut -= 1
            chunk = line[:cut].decode("utf-8")
            lines.append(chunk if first else " " + chunk)
            line = line[cut:]
            first = False
    return "".join(ln + "\r\n" for ln in lines) + "\r\n"


def stub_manifest_headers(bundle: BundleInfo) -> List[Tuple[str, str]]:
    headers = [(name, bundle.headers[name]) for name in COPY_HEADERS if bundle.headers.get(name)]
    if not bundle.headers.get("Manifest-Version"):
        headers.insert(0, ("Manifest-Version", "1.0"))
    return headers


def build_properties(bundle_base: Path) -> str:
    if (bundle_base / "OSGI-INF").is_dir():
        includes = "META-INF/,OSGI-INF/,."
    else:
        includes = "META-INF/,."
    props = [
        ("source..", "src"),
        ("output..", "target/classes"),
        ("bin.includes", includes),
        ("tycho.pomless.parent", "../../pom.xml"),
    ]
    return "".join(f"{k}={v}\n" for k, v in props)


def write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
    except OSError as e:
        raise StubWriteError(f"Unable to write {path}: {e}") from e


def write_tycho_structure(dest) -> None:
    """Writes the parent pom.xml and .mvn/extensions.xml the stub projects build against."""
    base = Path(dest)
    modules = stub_modules(base)
    log.debug("Writing Tycho parent for %d projects", len(modules))
    write_text(base / ".mvn" / "extensions.xml", EXTENSIONS_XML)
    write_text(base / "pom.xml", parent_pom(modules))


# ----- driver -----

def iter_class_entries(archive: zipfile.ZipFile) -> Iterator[str]:
    for entry in archive.namelist():
        if not entry.endswith(".class"):
            continue
        if entry.rsplit("/", 1)[-1] in IGNORED_CLASS_ENTRIES:
            continue
        yield entry


def entry_package(entry: str) -> str:
    idx = entry.rfind("/")
    return entry[:idx].replace("/", ".") if idx > -1 else ""


class StubWriter:
    """
    Writes stub sources for bundle archives.

    The repository resolves superclasses for constructor chaining; classes
    parsed from the bundle being written are made available to it as well,
    so a bundle's own hierarchy resolves even when it is not on the
    repository's path.
    """

    def __init__(self, repository: Optional[ClassRepository] = None,
                 policy: OverridePolicy = DEFAULT_POLICY,
                 stats: Optional[GenerationStats] = None):
        self.repository = repository if repository is not None else ClassRepository()
        self.policy = policy
        self.stats = stats if stats is not None else GenerationStats()

    def _collect_archive(self, archive: zipfile.ZipFile, label: str, builder: PoolBuilder) -> None:
        for entry in iter_class_entries(archive):
            self.stats.class_files += 1
            if not builder.accepts_package(entry_package(entry)):
                self.stats.not_exported += 1
                continue
            try:
                desc = parse_classfile(archive.read(entry))
            except (ClassFormatError, *ARCHIVE_ERRORS) as e:
                self.stats.parse_errors += 1
                self.stats.failures.append((f"{label}!/{entry}", str(e)))
                log.warning("Failed to parse %s in %s: %s", entry, label, e)
                continue
            self.repository.register(desc)
            builder.add(desc)

    def collect_pools(self, archive: zipfile.ZipFile, exported: Set[str], label: str = "",
                      embedded_jars: Iterable[str] = ()) -> List[ClassPool]:
        """Parses the exported classes of archive and of its embedded jars into pools."""
        label = label or (archive.filename or "<archive>")
        builder = PoolBuilder(exported, self.policy)
        self._collect_archive(archive, label, builder)

        for entry in embedded_jars:
            embedded = open_embedded(archive, entry, label)
            if embedded is None:
                continue
            try:
                self._collect_archive(embedded.archive, embedded.label, builder)
            finally:
                embedded.close()

        self.stats.classes_skipped += builder.skipped
        return builder.build()

    def write_pool(self, pool: ClassPool, src_root: Path, label: str = "") -> Optional[Path]:
        """
        Renders and writes one pool. Rendering failures skip the pool and are
        logged; I/O failures raise StubWriteError.
        """
        try:
            text = render_pool(pool, self.repository, self.policy)
        except Exception as e:
            self.stats.render_errors += 1
            self.stats.failures.append((pool.outer.binary_name, str(e)))
            log.error("Unable to render class %s (package %s) of %s",
                      pool.class_name, pool.package_name, label or "bundle", exc_info=True)
            return None
        path = pool_path(src_root, pool)
        write_text(path, text)
        self.stats.files_written += 1
        return path

    def write_stubs(self, archive: zipfile.ZipFile, src_root, exported: Optional[Set[str]] = None,
                    label: str = "", embedded_jars: Optional[Iterable[str]] = None) -> List[Path]:
        """
        Writes one .java file per pool of archive's exported classes below
        src_root. Exports and embedded jars default to what the archive's
        manifest declares.
        """
        if exported is None or embedded_jars is None:
            headers = read_manifest(archive)
            if exported is None:
                exported = find_exported_packages(headers.get("Export-Package"))
            if embedded_jars is None:
                embedded_jars = embedded_jar_paths(headers.get("Bundle-ClassPath"))
        if not exported:
            log.debug("No exported packages in %s", label or archive.filename)
            return []
        written = []
        for pool in self.collect_pools(archive, exported, label, embedded_jars):
            path = self.write_pool(pool, Path(src_root), label)
            if path is not None:
                written.append(path)
        return written

    def write_bundle_project(self, bundle: BundleInfo, dest, sources_only: bool = False) -> Path:
        """
        Lays out bundles/<symbolic name>/ below dest: the stub sources under
        src/ and, unless sources_only, META-INF/MANIFEST.MF and build.properties.
        """
        bundle_base = Path(dest) / "bundles" / bundle.symbolic_name
        src = bundle_base / "src"
        try:
            src.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StubWriteError(f"Unable to create bundle directory {bundle_base}: {e}") from e

        try:
            with zipfile.ZipFile(bundle.file_path, "r") as archive:
                self.write_stubs(archive, src, bundle.exported_packages, bundle.symbolic_name,
                                 bundle.embedded_jars)
        except (OSError, zipfile.BadZipFile) as e:
            raise StubWriteError(f"Unable to read bundle {bundle.file_path}: {e}") from e

        if not sources_only:
            write_text(bundle_base / MANIFEST_PATH, format_manifest(stub_manifest_headers(bundle)))
            write_text(bundle_base / "build.properties", build_properties(bundle_base))
        return bundle_base


def skip_reason(bundle: BundleInfo, policy: OverridePolicy) -> Optional[str]:
    if bundle.symbolic_name in policy.skip_bundles:
        return "on the skip list"
    if bundle.is_source_bundle:
        return "an existing source bundle"
    return None


def find_bundles(directory) -> List[Path]:
    """The JARs in directory, or in its plugins/ subdirectory when there is one."""
    base = Path(directory)
    if (base / "plugins").is_dir():
        base = base / "plugins"
    return sorted(p for p in base.iterdir() if p.is_file() and p.name.lower().endswith(".jar"))


def read_bundles(paths: Iterable[Path], stats: GenerationStats) -> Tuple[List[BundleInfo], List[Path]]:
    """Splits paths into bundles and the plain JARs that carry no Bundle-SymbolicName."""
    bundles = []
    plain = []
    for path in paths:
        try:
            info = read_bundle_info(path)
        except ARCHIVE_ERRORS as e:
            log.warning("Unable to read %s: %s", path, e)
            stats.bundles_skipped += 1
            continue
        if info is None:
            log.debug("Skipping %s: no Bundle-SymbolicName", path.name)
            stats.bundles_skipped += 1
            plain.append(path)
            continue
        bundles.append(info)
    return bundles, plain


def generate_stub_projects(bundles_dir, dest, jdk: Iterable = (), classpath: Iterable = (),
                           policy: OverridePolicy = DEFAULT_POLICY,
                           only: Optional[Set[str]] = None,
                           sources_only: bool = False) -> GenerationStats:
    """
    Generates a stub project for every bundle found in bundles_dir. A bundle
    that cannot be written is reported and the remaining bundles continue.
    Unless sources_only, the Tycho parent files are written to dest as well.
    """
    stats = GenerationStats()
    paths = find_bundles(bundles_dir)
    stats.bundles_found = len(paths)
    bundles, plain = read_bundles(paths, stats)

    extra = plain + [Path(p) for p in classpath]
    with ClassRepository.from_bundles(bundles, extra, jdk) as repository:
        writer = StubWriter(repository, policy, stats)
        for bundle in bundles:
            if only and bundle.symbolic_name not in only:
                continue
            reason = skip_reason(bundle, policy)
            if reason is not None:
                log.debug("Skipping %s: %s", bundle.symbolic_name, reason)
                stats.bundles_skipped += 1
                continue
            log.info("Processing bundle %s %s (%s)", bundle.symbolic_name, bundle.version, bundle.name)
            try:
                writer.write_bundle_project(bundle, dest, sources_only)
            except StubWriteError as e:
                stats.bundles_failed += 1
                stats.failures.append((bundle.symbolic_name, str(e)))
                log.error("Aborted bundle %s: %s", bundle.symbolic_name, e)
                continue
            except Exception as e:
                stats.bundles_failed += 1
                stats.failures.append((bundle.symbolic_name, f"{type(e).__name__}: {e}"))
                log.error("Aborted bundle %s", bundle.symbolic_name, exc_info=True)
                continue
            stats.bundles_processed += 1

    if not sources_only:
        write_tycho_structure(dest)
    return stats
