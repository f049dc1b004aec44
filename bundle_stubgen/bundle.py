"""
Bundle manifest reading.

Only the headers the stub generator needs are interpreted; everything else
is kept verbatim in BundleInfo.headers so it can be copied into the stub
project's own manifest.
"""
import logging
import os
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .exports import clause_names, find_exported_packages, split_header

log = logging.getLogger(__name__)

MANIFEST_PATH = "META-INF/MANIFEST.MF"

# What reading one archive entry can raise: I/O, bad CRC or headers, corrupt
# deflate data, unsupported compression, encryption
ARCHIVE_ERRORS = (OSError, zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError)


def parse_manifest(text: str) -> Dict[str, str]:
    """Parses the main section of a JAR manifest, joining continuation lines."""
    headers: Dict[str, str] = {}
    last = None
    for raw in text.splitlines():
        if not raw.strip():
            if headers:
                break  # end of main section
            continue
        if raw.startswith(" ") and last is not None:
            headers[last] += raw[1:]
            continue
        name, sep, value = raw.partition(":")
        if not sep:
            log.debug("Ignoring malformed manifest line %r", raw)
            last = None
            continue
        last = name.strip()
        headers[last] = value.strip()
    return headers


def parse_properties(text: str) -> Dict[str, str]:
    """A small reader for the key=value files used for manifest localization."""
    props: Dict[str, str] = {}
    pending = ""
    for raw in text.splitlines():
        line = raw.lstrip()
        if not pending and (not line or line[0] in "#!"):
            continue
        if line.endswith("\\") and not line.endswith("\\\\"):
            pending += line[:-1]
            continue
        line = pending + line
        pending = ""
        for i, ch in enumerate(line):
            if ch in "=:" or ch.isspace():
                key = line[:i]
                value = line[i + 1:].lstrip()
                if ch.isspace() and value[:1] in ("=", ":"):
                    value = value[1:].lstrip()
                break
        else:
            key, value = line, ""
        props[key] = value
    return props


def embedded_jar_paths(classpath: Optional[str]) -> List[str]:
    """The nested JARs named by a Bundle-ClassPath header; "." and directories are left out."""
    entries = [clause_names(c)[0] for c in split_header(classpath)]
    return [e for e in entries if e != "." and e.lower().endswith(".jar")]


@dataclass
class BundleInfo:
    symbolic_name: str
    version: str
    name: str
    file_path: str
    embedded_jars: List[str] = field(default_factory=list)
    export_package: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def exported_packages(self):
        return find_exported_packages(self.export_package)

    @property
    def is_source_bundle(self) -> bool:
        return self.symbolic_name.endswith(".source") or "Eclipse-SourceBundle" in self.headers


def read_manifest(archive: zipfile.ZipFile) -> Dict[str, str]:
    try:
        data = archive.read(MANIFEST_PATH)
    except KeyError:
        return {}
    return parse_manifest(data.decode("utf-8", errors="replace"))


def _localization(archive: zipfile.ZipFile, headers: Dict[str, str]) -> Dict[str, str]:
    if "Fragment-Host" in headers:
        legacy = "fragment"
    elif "Eclipse-SystemBundle" in headers:
        legacy = "systembundle"
    else:
        legacy = "plugin"
    candidates = [headers.get("Bundle-Localization", "OSGI-INF/l10n/bundle"), legacy]
    for base in candidates:
        try:
            data = archive.read(base + ".properties")
        except KeyError:
            continue
        return parse_properties(data.decode("iso-8859-1"))
    return {}


def read_bundle_info(path) -> Optional[BundleInfo]:
    """Reads a bundle's manifest; returns None for JARs that are not bundles."""
    with zipfile.ZipFile(path, "r") as archive:
        headers = read_manifest(archive)
        symbolic = clause_names(headers.get("Bundle-SymbolicName", ""))
        if not symbolic:
            return None
        props = None

        def localize(value: str) -> str:
            nonlocal props
            if value.startswith("%"):
                if props is None:
                    props = _localization(archive, headers)
                return props.get(value[1:], value)
            return value

        symbolic_name = symbolic[0]
        return BundleInfo(
            symbolic_name=symbolic_name,
            version=headers.get("Bundle-Version", "0.0.0"),
            name=localize(headers.get("Bundle-Name") or symbolic_name),
            file_path=os.fspath(path),
            embedded_jars=embedded_jar_paths(headers.get("Bundle-ClassPath")),
            export_package=headers.get("Export-Package"),
            headers=headers,
        )
