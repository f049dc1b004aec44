"""
Override policy consulted while pooling and rendering classes.

The built-in table collects special cases met in real bundles: classes whose
initialization is unsafe, methods whose naive return type clashes with a
standard interface, inner classes that are complicated but unneeded, and so
on. A policy is an immutable value; tests and callers derive new ones with
`replace()` or `load()` instead of mutating shared state.
"""
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from .errors import ConfigurationError
from .model import MethodDescriptor

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MethodMatcher:
    """Matches a method by name and full JVM descriptor (parameters and return)."""
    name: str
    descriptor: str

    def matches(self, method: MethodDescriptor) -> bool:
        return method.name == self.name and method.descriptor == self.descriptor


def _frozen_map(values: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class OverridePolicy:
    # Bundles (symbolic names) that never get stubs
    skip_bundles: FrozenSet[str] = frozenset()
    # Classes known to contain inner classes that are complicated but unnecessary
    skip_inner_classes: FrozenSet[str] = frozenset()
    skip_classes: FrozenSet[str] = frozenset()
    skip_packages: FrozenSet[str] = frozenset()
    # Binary-name prefixes of classes that are re-packaged JDK APIs
    skip_class_prefixes: FrozenSet[str] = frozenset()
    # Classes that should be marked public even if they aren't
    public_classes: FrozenSet[str] = frozenset()
    # class -> field names not to generate
    skip_fields: Mapping[str, FrozenSet[str]] = field(default_factory=lambda: MappingProxyType({}))
    # class -> verbatim member source appended to the class body
    raw_class_body_additions: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    # class -> field -> string constant, for classes where reading the value is unsafe
    known_string_constants: Mapping[str, Mapping[str, str]] = field(default_factory=lambda: MappingProxyType({}))
    # class -> matcher -> replacement return type (field descriptor)
    return_overrides: Mapping[str, Mapping[MethodMatcher, str]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def create(cls, *,
               skip_bundles: Iterable[str] = (),
               skip_inner_classes: Iterable[str] = (),
               skip_classes: Iterable[str] = (),
               skip_packages: Iterable[str] = (),
               skip_class_prefixes: Iterable[str] = (),
               public_classes: Iterable[str] = (),
               skip_fields: Optional[Mapping[str, Iterable[str]]] = None,
               raw_class_body_additions: Optional[Mapping[str, str]] = None,
               known_string_constants: Optional[Mapping[str, Mapping[str, str]]] = None,
               return_overrides: Optional[Mapping[str, Mapping[MethodMatcher, str]]] = None) -> "OverridePolicy":
        return cls(
            skip_bundles=frozenset(skip_bundles),
            skip_inner_classes=frozenset(skip_inner_classes),
            skip_classes=frozenset(skip_classes),
            skip_packages=frozenset(skip_packages),
            skip_class_prefixes=frozenset(skip_class_prefixes),
            public_classes=frozenset(public_classes),
            skip_fields=_frozen_map({k: frozenset(v) for k, v in (skip_fields or {}).items()}),
            raw_class_body_additions=_frozen_map(raw_class_body_additions),
            known_string_constants=_frozen_map(
                {k: _frozen_map(v) for k, v in (known_string_constants or {}).items()}),
            return_overrides=_frozen_map(
                {k: _frozen_map(v) for k, v in (return_overrides or {}).items()}),
        )

    @classmethod
    def default(cls) -> "OverridePolicy":
        return DEFAULT_POLICY

    def replace(self, **changes) -> "OverridePolicy":
        """Returns a copy with the given fields replaced; plain dicts and sets are frozen."""
        merged = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        merged.update(changes)
        return OverridePolicy.create(**merged)

    def merge(self, other: "OverridePolicy") -> "OverridePolicy":
        """Returns a policy holding the entries of both, other winning on conflicts."""
        def nested(a: Mapping, b: Mapping) -> Dict:
            result = {k: dict(v) for k, v in a.items()}
            for k, v in b.items():
                result.setdefault(k, {}).update(v)
            return result

        skip_fields = {k: set(v) for k, v in self.skip_fields.items()}
        for k, v in other.skip_fields.items():
            skip_fields.setdefault(k, set()).update(v)
        return OverridePolicy.create(
            skip_bundles=self.skip_bundles | other.skip_bundles,
            skip_inner_classes=self.skip_inner_classes | other.skip_inner_classes,
            skip_classes=self.skip_classes | other.skip_classes,
            skip_packages=self.skip_packages | other.skip_packages,
            skip_class_prefixes=self.skip_class_prefixes | other.skip_class_prefixes,
            public_classes=self.public_classes | other.public_classes,
            skip_fields=skip_fields,
            raw_class_body_additions={**self.raw_class_body_additions, **other.raw_class_body_additions},
            known_string_constants=nested(self.known_string_constants, other.known_string_constants),
            return_overrides=nested(self.return_overrides, other.return_overrides),
        )

    # ----- lookups -----

    def should_skip_class(self, binary_name: str, package_name: str) -> bool:
        if binary_name in self.skip_classes or package_name in self.skip_packages:
            return True
        if any(binary_name.startswith(prefix) for prefix in self.skip_class_prefixes):
            return True
        dollar = binary_name.find("$")
        while dollar > -1:
            if binary_name[:dollar] in self.skip_inner_classes:
                return True
            dollar = binary_name.find("$", dollar + 1)
        return False

    def should_skip_field(self, binary_name: str, field_name: str) -> bool:
        return field_name in self.skip_fields.get(binary_name, ())

    def known_string_constant(self, binary_name: str, field_name: str) -> Optional[str]:
        return self.known_string_constants.get(binary_name, {}).get(field_name)

    def return_override(self, binary_name: str, method: MethodDescriptor) -> Optional[str]:
        for matcher, replacement in self.return_overrides.get(binary_name, {}).items():
            if matcher.matches(method):
                return replacement
        return None

    # ----- JSON overlay -----

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any]) -> "OverridePolicy":
        if not isinstance(doc, Mapping):
            raise ConfigurationError("Overrides document must be a JSON object")
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(doc) - known
        if unknown:
            raise ConfigurationError(f"Unknown override keys: {', '.join(sorted(unknown))}")
        try:
            kwargs = dict(doc)
            if "return_overrides" in doc:
                kwargs["return_overrides"] = {
                    cls_name: {MethodMatcher(e["name"], e["descriptor"]): e["return"] for e in entries}
                    for cls_name, entries in doc["return_overrides"].items()
                }
            return cls.create(**kwargs)
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Malformed overrides document: {e}") from e

    @classmethod
    def load(cls, path, base: Optional["OverridePolicy"] = None) -> "OverridePolicy":
        """Reads a JSON overrides file and merges it over base (the default table if omitted)."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Unable to read overrides from {path}: {e}") from e
        overlay = cls.from_dict(doc)
        log.debug("Loaded overrides from %s", path)
        return (base if base is not None else DEFAULT_POLICY).merge(overlay)


_MULTI_MAP_REMOVE = {
    MethodMatcher("remove", "(Ljava/lang/Object;Ljava/lang/Object;)Ljava/lang/Object;"): "Z",
}

DEFAULT_POLICY = OverridePolicy.create(
    skip_bundles=(
        # Impossibly old, and a subset of the real ICU which is also present
        "com.ibm.icu.base",
    ),
    skip_inner_classes=(
        "javax.servlet.jsp.el.ImplicitObjectELResolver",
        "org.apache.jasper.compiler.Validator",
        "org.apache.jasper.runtime.PerThreadTagHandlerPool",
        "org.apache.jasper.runtime.ProtectedFunctionMapper",
        "org.apache.jasper.compiler.ELParser",
        "org.apache.jasper.compiler.SmapUtil",
        "com.ibm.xsp.http.io.FileCleaningTracker",
        "com.ibm.xsp.debug.DebugMemory",
    ),
    skip_classes=(
        "lotus.domino.AgentLoader",
        "org.apache.commons.logging.impl.Log4JLogger",
        "org.apache.commons.logging.impl.LogKitLogger",
        "org.apache.commons.logging.impl.AvalonLogger",
    ),
    skip_packages=(
        "com.ibm.osg.util",
        "org.apache.commons.logging.impl",
        "org.eclipse.equinox.http.registry.internal",
        "com.ibm.ws.jsp.translator",
        "com.ibm.ws.jsp.translator.document",
        "com.ibm.ws.jsp.translator.optimizedtag",
        "com.ibm.ws.jsp.translator.optimizedtag.impl",
        "com.ibm.ws.jsp.translator.resource",
        "com.ibm.ws.jsp.translator.utils",
        "com.ibm.ws.jsp.translator.visitor",
        "com.ibm.ws.jsp.translator.visitor.configuration",
        "com.ibm.ws.jsp.translator.visitor.generator",
        "com.ibm.ws.jsp.translator.visitor.smap",
        "com.ibm.ws.jsp.translator.visitor.tagfiledep",
        "com.ibm.ws.jsp.translator.visitor.tagfilescan",
        "com.ibm.ws.jsp.translator.visitor.validator",
        "com.ibm.ws.jsp.translator.visitor.xml",
        "com.ibm.ws.jsp.inmemory.generator",
        "com.hcl.domino.module.nsf",
    ),
    # Re-packaged core XML APIs; standard in every supported Java version
    skip_class_prefixes=(
        "javax.xml.stream.",
        "javax.xml.datatype.",
        "javax.xml.validation.",
        "javax.xml.xpath.",
        "javax.xml.transform.",
        "javax.xml.parsers.",
        "javax.xml.crypto.",
        "javax.xml.catalog.",
        "org.xml.",
        "org.w3c.",
    ),
    public_classes=(
        "org.apache.jasper.compiler.ELNode",
        "com.ibm.commons.vfs.VFS$FileEntry",
        "com.ibm.commons.vfs.VFS$FolderEntry",
        "com.ibm.xsp.webapp.resources.AbstractResourceProvider$AbstractResource",
        "com.ibm.xsp.model.AbstractDataSource$RuntimeProperties",
        "com.ibm.designer.runtime.domino.adapter.ComponentModule$ServletInvoker",
    ),
    skip_fields={
        "org.apache.xalan.xsltc.compiler.XPathParser": ("action_obj",),
    },
    # Classes originally compiled against an older Servlet/JSP API
    raw_class_body_additions={
        "org.apache.jasper.runtime.JspContextWrapper":
            "public javax.el.ELContext getELContext() { return null; }",
        "org.apache.jasper.runtime.JspFactoryImpl":
            "public javax.servlet.jsp.JspApplicationContext getJspApplicationContext(javax.servlet.ServletContext paramServletContext) { return null; }",
        "org.apache.jasper.compiler.TagLibraryInfoImpl":
            "public javax.servlet.jsp.tagext.TagLibraryInfo[] getTagLibraryInfos() { return null; }",
        "org.apache.jasper.runtime.PageContextImpl":
            "public javax.el.ELContext getELContext() { return null; }",
        "org.apache.jasper.compiler.ImplicitTagLibraryInfo":
            "public javax.servlet.jsp.tagext.TagLibraryInfo[] getTagLibraryInfos() { return null; }",
        "org.apache.jasper.servlet.JspCServletContext":
            "public String getContextPath() { return null; }",
    },
    known_string_constants={
        "com.ibm.ws.http.HttpTransport": {
            "HOST": "Host",
            "HTTP": "http",
            "HTTPS": "https",
            "PORT": "Port",
            "MAX_CONNECT_BACKLOG": "MaxConnectBacklog",
            "TCP_NO_DELAY": "TcpNoDelay",
            "KEEP_ALIVE_ENABLE": "KeepAliveEnabled",
        },
        "com.ibm.designer.runtime.domino.bootstrap.BootstrapEnvironment": {
            "DIR_SHARED": "shared",
            "DIR_NSF": "nsf",
        },
        "com.ibm.domino.xsp.bridge.http.servlet.XspCmdHttpServletResponse": {
            "CONTENT_LENGTH": "CONTENT_LENGTH",
            "CONTENT_TYPE": "CONTENT_TYPE",
            "HTTP_RESPONSE": "HTTP_RESPONSE",
        },
    },
    # The ancient MultiKeyMap-style remove(Object, Object) conflicts with Map
    return_overrides={
        "org.apache.commons.collections.map.MultiKeyMap": _MULTI_MAP_REMOVE,
        "org.apache.commons.collections.MultiHashMap": _MULTI_MAP_REMOVE,
        "org.apache.commons.collections.MultiMap": _MULTI_MAP_REMOVE,
        "org.apache.commons.collections.map.MultiValueMap": _MULTI_MAP_REMOVE,
        "org.apache.bcel.verifier.exc.AssertionViolatedException": {
            MethodMatcher("getStackTrace", "()Ljava/lang/String;"): "[Ljava/lang/StackTraceElement;",
        },
    },
)
