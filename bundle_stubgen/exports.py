"""Export-Package handling: which packages of a bundle are public surface."""
from typing import List, Optional, Set


def split_header(value: Optional[str], separator: str = ",") -> List[str]:
    """
    Splits an OSGi manifest header on separator, ignoring separators inside
    quoted attribute values (uses:="a,b"). Empty clauses are dropped.
    """
    if not value:
        return []
    parts = []
    current = []
    quoted = False
    for ch in value:
        if ch == '"':
            quoted = not quoted
        if ch == separator and not quoted:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def clause_names(clause: str) -> List[str]:
    """
    The leading names of a header clause: 'a;b;version=1' yields ['a', 'b'].
    The first segment is always a name, however malformed the rest is.
    """
    segments = split_header(clause, ";")
    if not segments:
        return []
    names = [segments[0]]
    for segment in segments[1:]:
        if "=" in segment:
            break
        names.append(segment)
    return names


def find_exported_packages(export_package: Optional[str]) -> Set[str]:
    """Returns the package names listed in an Export-Package header, attributes stripped."""
    packages: Set[str] = set()
    for clause in split_header(export_package):
        packages.update(clause_names(clause))
    return packages
