"""
Class pools: classes grouped by the outer-class stem of their binary name.

A pool is written out as one source file. Its first (lexicographically
smallest) member is rendered as the top-level class even when it was nested
in the bytecode, and the remaining members are nested inside it.
"""
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .config import OverridePolicy
from .model import ACC_SYNTHETIC, ClassDescriptor

log = logging.getLogger(__name__)


def pool_key(desc: ClassDescriptor) -> str:
    """'pkg.Outer' for 'pkg/Outer$Inner$Deeper'."""
    stem = desc.local_name.split("$", 1)[0]
    package = desc.package_name
    return f"{package}.{stem}" if package else stem


class ClassPool:
    """An ordered, name-deduplicated set of classes sharing one outer stem."""

    def __init__(self, key: str, members: Iterable[ClassDescriptor] = ()):
        self.key = key
        self._members: Dict[str, ClassDescriptor] = {}
        for member in members:
            self.add(member)

    def add(self, desc: ClassDescriptor) -> bool:
        """Adds desc unless a class of the same name is already present; first one wins."""
        if desc.name in self._members:
            return False
        self._members[desc.name] = desc
        return True

    @property
    def members(self) -> List[ClassDescriptor]:
        return [self._members[name] for name in sorted(self._members)]

    @property
    def outer(self) -> ClassDescriptor:
        return self._members[min(self._members)]

    @property
    def nested(self) -> List[ClassDescriptor]:
        return self.members[1:]

    @property
    def package_name(self) -> str:
        idx = self.key.rfind(".")
        return self.key[:idx] if idx > -1 else ""

    @property
    def class_name(self) -> str:
        return self.key[self.key.rfind(".") + 1:]

    def subpool(self, desc: ClassDescriptor) -> "ClassPool":
        """desc together with every member nested (at any depth) below it."""
        prefix = desc.name + "$"
        return ClassPool(self.key, [desc] + [m for m in self.nested if m.name.startswith(prefix)])

    def direct_children(self, desc: ClassDescriptor) -> List[ClassDescriptor]:
        # Only classes whose last '$' sits just past the end of desc's name
        return [m for m in self.members
                if m.name.startswith(desc.name + "$") and m.name.rfind("$") == len(desc.name)]

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[ClassDescriptor]:
        return iter(self.members)

    def __contains__(self, name: str) -> bool:
        return name in self._members


def should_emit_class(desc: ClassDescriptor, policy: OverridePolicy) -> bool:
    if desc.is_private or desc.is_anonymous:
        return False
    if desc.access_flags & ACC_SYNTHETIC:
        return False
    if desc.local_name in ("module-info", "package-info"):
        return False
    return not policy.should_skip_class(desc.binary_name, desc.package_name)


class PoolBuilder:
    """Collects parsed classes of one bundle into pools keyed by outer stem."""

    def __init__(self, exported_packages: Set[str], policy: OverridePolicy):
        self.exported_packages = exported_packages
        self.policy = policy
        self.pools: Dict[str, ClassPool] = {}
        self.skipped = 0

    def accepts_package(self, package_name: str) -> bool:
        return package_name in self.exported_packages

    def add(self, desc: ClassDescriptor) -> Optional[ClassPool]:
        if not self.accepts_package(desc.package_name):
            return None
        if not should_emit_class(desc, self.policy):
            log.debug("Skipping class %s", desc.binary_name)
            self.skipped += 1
            return None
        key = pool_key(desc)
        pool = self.pools.get(key)
        if pool is None:
            pool = self.pools[key] = ClassPool(key)
        pool.add(desc)
        return pool

    def build(self) -> List[ClassPool]:
        return [self.pools[key] for key in sorted(self.pools)]


def build_class_pools(classes: Iterable[ClassDescriptor], exported_packages: Set[str],
                      policy: OverridePolicy) -> List[ClassPool]:
    builder = PoolBuilder(exported_packages, policy)
    for desc in classes:
        builder.add(desc)
    return builder.build()
