"""
Structural descriptors of parsed classes.

The descriptors are immutable snapshots of what the classfile reader found.
Generic information is kept as raw signature strings and parsed on demand,
falling back to the erased descriptor when a class carries no (or a broken)
Signature attribute.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple, Union

from .signature import (
    OBJECT,
    ClassSignature,
    ClassType,
    JavaType,
    MethodSignature,
    TypeParameter,
    erasure,
    parse_class_signature,
    parse_field_signature,
    parse_method_signature,
)

log = logging.getLogger(__name__)

# ----- Access flags (JVMS 4.1, 4.5, 4.6, 4.7.6) -----
ACC_PUBLIC       = 0x0001
ACC_PRIVATE      = 0x0002
ACC_PROTECTED    = 0x0004
ACC_STATIC       = 0x0008
ACC_FINAL        = 0x0010
ACC_SUPER        = 0x0020
ACC_SYNCHRONIZED = 0x0020
ACC_VOLATILE     = 0x0040
ACC_BRIDGE       = 0x0040
ACC_TRANSIENT    = 0x0080
ACC_VARARGS      = 0x0080
ACC_NATIVE       = 0x0100
ACC_INTERFACE    = 0x0200
ACC_ABSTRACT     = 0x0400
ACC_STRICT       = 0x0800
ACC_SYNTHETIC    = 0x1000
ACC_ANNOTATION   = 0x2000
ACC_ENUM         = 0x4000

ConstantValue = Union[int, float, str]


@lru_cache(maxsize=4096)
def _method_signature(text: str) -> MethodSignature:
    return parse_method_signature(text)


@lru_cache(maxsize=4096)
def _field_signature(text: str) -> JavaType:
    return parse_field_signature(text)


@lru_cache(maxsize=4096)
def _class_signature(text: str) -> ClassSignature:
    return parse_class_signature(text)


class _Modifiers:
    """Flag predicates shared by all descriptors; relies on a `modifiers` int."""

    modifiers: int

    @property
    def is_public(self) -> bool:
        return bool(self.modifiers & ACC_PUBLIC)

    @property
    def is_private(self) -> bool:
        return bool(self.modifiers & ACC_PRIVATE)

    @property
    def is_protected(self) -> bool:
        return bool(self.modifiers & ACC_PROTECTED)

    @property
    def is_package_private(self) -> bool:
        return not self.modifiers & (ACC_PUBLIC | ACC_PRIVATE | ACC_PROTECTED)

    @property
    def is_static(self) -> bool:
        return bool(self.modifiers & ACC_STATIC)

    @property
    def is_final(self) -> bool:
        return bool(self.modifiers & ACC_FINAL)

    @property
    def is_abstract(self) -> bool:
        return bool(self.modifiers & ACC_ABSTRACT)

    @property
    def is_synthetic(self) -> bool:
        return bool(self.modifiers & ACC_SYNTHETIC)


@dataclass(frozen=True)
class ElementValue:
    """
    An annotation element value. `tag` is the JVMS 4.7.16.1 tag; `value` is
    the constant for primitive/string tags, (type descriptor, constant name)
    for 'e', a return descriptor for 'c', a tuple of ElementValue for '[' and
    None for nested annotations, which are not reproduced.
    """
    tag: str
    value: Any = None


@dataclass(frozen=True)
class InnerClassEntry:
    inner: str
    outer: Optional[str]
    simple_name: Optional[str]
    access_flags: int


@dataclass(frozen=True)
class FieldDescriptor(_Modifiers):
    name: str
    descriptor: str
    access_flags: int = ACC_PUBLIC
    signature: Optional[str] = None
    constant_value: Optional[ConstantValue] = None

    @property
    def modifiers(self) -> int:
        return self.access_flags

    @property
    def is_enum_constant(self) -> bool:
        return bool(self.access_flags & ACC_ENUM)

    @property
    def erased_type(self) -> JavaType:
        return _field_signature(self.descriptor)

    @property
    def type(self) -> JavaType:
        if self.signature:
            try:
                return _field_signature(self.signature)
            except ValueError as e:
                log.warning("Ignoring malformed signature of field %s: %s", self.name, e)
        return self.erased_type


@dataclass(frozen=True)
class MethodDescriptor(_Modifiers):
    name: str
    descriptor: str = "()V"
    access_flags: int = ACC_PUBLIC
    signature: Optional[str] = None
    exceptions: Tuple[str, ...] = ()
    annotation_default: Optional[ElementValue] = None

    @property
    def modifiers(self) -> int:
        return self.access_flags

    @property
    def is_constructor(self) -> bool:
        return self.name == "<init>"

    @property
    def is_native(self) -> bool:
        return bool(self.access_flags & ACC_NATIVE)

    @property
    def is_bridge(self) -> bool:
        return bool(self.access_flags & ACC_BRIDGE)

    @property
    def is_varargs(self) -> bool:
        return bool(self.access_flags & ACC_VARARGS)

    @property
    def erased(self) -> MethodSignature:
        return _method_signature(self.descriptor)

    @property
    def generic(self) -> MethodSignature:
        if self.signature:
            try:
                return _method_signature(self.signature)
            except ValueError as e:
                log.warning("Ignoring malformed signature of method %s: %s", self.name, e)
        return self.erased

    @property
    def type_parameters(self) -> Tuple[TypeParameter, ...]:
        return self.generic.type_parameters

    @property
    def parameter_types(self) -> Tuple[JavaType, ...]:
        """
        Parameter types in descriptor order. javac leaves synthetic leading
        parameters (outer instances, enum name/ordinal) out of the Signature
        attribute, so those positions are filled from the descriptor.
        """
        erased = self.erased.parameters
        generic = self.generic.parameters
        if len(generic) == len(erased):
            return generic
        if len(generic) < len(erased):
            return erased[:len(erased) - len(generic)] + generic
        return erased

    @property
    def return_type(self) -> JavaType:
        return self.generic.return_type

    @property
    def exception_types(self) -> Tuple[JavaType, ...]:
        throws = self.generic.throws
        if throws:
            return throws
        return tuple(ClassType(e) for e in self.exceptions)


@dataclass(frozen=True)
class ConstructorDescriptor(MethodDescriptor):
    name: str = "<init>"


@dataclass(frozen=True)
class ClassDescriptor(_Modifiers):
    name: str
    access_flags: int = ACC_PUBLIC | ACC_SUPER
    super_name: Optional[str] = OBJECT
    interfaces: Tuple[str, ...] = ()
    signature: Optional[str] = None
    fields: Tuple[FieldDescriptor, ...] = ()
    methods: Tuple[MethodDescriptor, ...] = ()
    constructors: Tuple[ConstructorDescriptor, ...] = ()
    inner_classes: Tuple[InnerClassEntry, ...] = ()
    enclosing_class: Optional[str] = None

    # ----- naming -----

    @property
    def binary_name(self) -> str:
        return self.name.replace("/", ".")

    @property
    def package_name(self) -> str:
        idx = self.name.rfind("/")
        return self.name[:idx].replace("/", ".") if idx > -1 else ""

    @property
    def local_name(self) -> str:
        """The binary name without its package, e.g. 'Outer$Inner'."""
        return self.name[self.name.rfind("/") + 1:]

    @property
    def self_entry(self) -> Optional[InnerClassEntry]:
        for entry in self.inner_classes:
            if entry.inner == self.name:
                return entry
        return None

    @property
    def is_nested(self) -> bool:
        return self.self_entry is not None or self.enclosing_class is not None

    @property
    def simple_name(self) -> Optional[str]:
        """Source-level simple name; None for anonymous classes."""
        entry = self.self_entry
        if entry is not None:
            return entry.simple_name
        if self.enclosing_class is not None:
            return None
        return self.local_name

    @property
    def is_anonymous(self) -> bool:
        return self.is_nested and not self.simple_name

    @property
    def outer_name(self) -> Optional[str]:
        entry = self.self_entry
        if entry is not None and entry.outer:
            return entry.outer
        return self.enclosing_class

    # ----- modifiers -----

    @property
    def modifiers(self) -> int:
        # Member classes record their source modifiers in their own
        # InnerClasses entry; the top-level flags lose private/protected/static.
        entry = self.self_entry
        if entry is not None:
            return entry.access_flags
        return self.access_flags

    @property
    def is_interface(self) -> bool:
        return bool(self.modifiers & ACC_INTERFACE)

    @property
    def is_annotation(self) -> bool:
        return bool(self.modifiers & ACC_ANNOTATION)

    @property
    def is_enum(self) -> bool:
        return bool(self.modifiers & ACC_ENUM)

    @property
    def has_outer_instance(self) -> bool:
        """True for non-static inner classes, whose constructors take the outer instance first."""
        if not self.is_nested or self.is_static:
            return False
        if self.is_interface or self.is_enum or self.is_annotation:
            return False
        return self.outer_name is not None

    def implicit_parameter_count(self, ctor: MethodDescriptor) -> int:
        if not self.has_outer_instance:
            return 0
        params = ctor.erased.parameters
        if params and isinstance(params[0], ClassType) and params[0].name == self.outer_name:
            return 1
        return 0

    # ----- generics -----

    @property
    def generic(self) -> ClassSignature:
        if self.signature:
            try:
                return _class_signature(self.signature)
            except ValueError as e:
                log.warning("Ignoring malformed signature of class %s: %s", self.binary_name, e)
        superclass = ClassType(self.super_name) if self.super_name else None
        return ClassSignature((), superclass, tuple(ClassType(i) for i in self.interfaces))

    @property
    def type_parameters(self) -> Tuple[TypeParameter, ...]:
        return self.generic.type_parameters

    @property
    def generic_superclass(self) -> Optional[ClassType]:
        if self.super_name is None:
            return None
        return self.generic.superclass

    @property
    def generic_interfaces(self) -> Tuple[ClassType, ...]:
        return self.generic.interfaces

    @property
    def type_scope(self) -> Dict[str, TypeParameter]:
        return {p.name: p for p in self.type_parameters}

    def erase(self, t: JavaType) -> JavaType:
        return erasure(t, self.type_scope)
