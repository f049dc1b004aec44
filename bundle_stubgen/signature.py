"""
JVM descriptor and generic signature parsing.

Field/method descriptors and the Signature attribute share one grammar
(JVMS 4.3 and 4.7.9.1); a descriptor is just a signature without type
parameters, type arguments or throws clauses, so a single parser handles
both.

Class names are kept in internal form ('java/util/Map$Entry') everywhere;
rendering to source form happens in render.py.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

OBJECT = "java/lang/Object"

PRIMITIVES = {
    "B": "byte", "C": "char", "D": "double", "F": "float",
    "I": "int", "J": "long", "S": "short", "Z": "boolean", "V": "void",
}


class JavaType:
    """Marker base for the parsed type forms below."""
    __slots__ = ()


@dataclass(frozen=True)
class BaseType(JavaType):
    descriptor: str

    @property
    def name(self) -> str:
        return PRIMITIVES[self.descriptor]


@dataclass(frozen=True)
class TypeVariable(JavaType):
    name: str


@dataclass(frozen=True)
class ArrayType(JavaType):
    component: JavaType


@dataclass(frozen=True)
class TypeArgument:
    # None for an exact argument, '+' extends, '-' super, '*' unbounded
    wildcard: Optional[str]
    type: Optional[JavaType]


@dataclass(frozen=True)
class ClassType(JavaType):
    """
    A (possibly parameterized) class type. For 'Lp/Outer<TT;>.Inner;' the
    name is 'p/Outer$Inner' and owner carries the parameterized 'p/Outer'.
    """
    name: str
    arguments: Tuple[TypeArgument, ...] = ()
    owner: Optional["ClassType"] = None

    @property
    def is_object(self) -> bool:
        return self.name == OBJECT and not self.arguments


@dataclass(frozen=True)
class TypeParameter:
    name: str
    class_bound: Optional[JavaType] = None
    interface_bounds: Tuple[JavaType, ...] = ()

    @property
    def bounds(self) -> Tuple[JavaType, ...]:
        if self.class_bound is not None:
            return (self.class_bound,) + self.interface_bounds
        return self.interface_bounds


@dataclass(frozen=True)
class ClassSignature:
    type_parameters: Tuple[TypeParameter, ...]
    superclass: Optional[ClassType]
    interfaces: Tuple[ClassType, ...]


@dataclass(frozen=True)
class MethodSignature:
    type_parameters: Tuple[TypeParameter, ...]
    parameters: Tuple[JavaType, ...]
    return_type: JavaType
    throws: Tuple[JavaType, ...]


VOID = BaseType("V")
OBJECT_TYPE = ClassType(OBJECT)


class SignatureParser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def peek(self) -> str:
        if self.pos >= len(self.text):
            return ""
        return self.text[self.pos]

    def read(self) -> str:
        ch = self.peek()
        if not ch:
            raise ValueError(f"Unexpected end of signature '{self.text}'")
        self.pos += 1
        return ch

    def expect(self, expected: str) -> None:
        ch = self.read()
        if ch != expected:
            raise ValueError(f"Expected '{expected}' at {self.pos - 1} in '{self.text}', got '{ch}'")

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in ".;[/<>:":
            self.pos += 1
        if start == self.pos:
            raise ValueError(f"Expected identifier at {start} in '{self.text}'")
        return self.text[start:self.pos]

    def type_parameters(self) -> Tuple[TypeParameter, ...]:
        if self.peek() != "<":
            return ()
        self.read()
        params = []
        while self.peek() != ">":
            name = self.identifier()
            self.expect(":")
            class_bound = None
            if self.peek() not in (":", ">"):
                class_bound = self.reference_type()
            interface_bounds = []
            while self.peek() == ":":
                self.read()
                interface_bounds.append(self.reference_type())
            params.append(TypeParameter(name, class_bound, tuple(interface_bounds)))
        self.read()
        return tuple(params)

    def java_type(self) -> JavaType:
        ch = self.peek()
        if ch in PRIMITIVES:
            self.read()
            return BaseType(ch)
        return self.reference_type()

    def reference_type(self) -> JavaType:
        ch = self.peek()
        if ch == "L":
            return self.class_type()
        if ch == "T":
            self.read()
            name = self.identifier()
            self.expect(";")
            return TypeVariable(name)
        if ch == "[":
            self.read()
            return ArrayType(self.java_type())
        raise ValueError(f"Unexpected '{ch}' at {self.pos} in '{self.text}'")

    def class_type(self) -> ClassType:
        self.expect("L")
        parts = [self.identifier()]
        while self.peek() == "/":
            self.read()
            parts.append(self.identifier())
        current = ClassType("/".join(parts), self.type_arguments())
        while self.peek() == ".":
            self.read()
            simple = self.identifier()
            current = ClassType(f"{current.name}${simple}", self.type_arguments(), current)
        self.expect(";")
        return current

    def type_arguments(self) -> Tuple[TypeArgument, ...]:
        if self.peek() != "<":
            return ()
        self.read()
        args = []
        while self.peek() != ">":
            ch = self.peek()
            if ch == "*":
                self.read()
                args.append(TypeArgument("*", None))
            elif ch in ("+", "-"):
                self.read()
                args.append(TypeArgument(ch, self.reference_type()))
            else:
                args.append(TypeArgument(None, self.reference_type()))
        self.read()
        return tuple(args)


def parse_class_signature(text: str) -> ClassSignature:
    p = SignatureParser(text)
    type_params = p.type_parameters()
    superclass = p.class_type()
    interfaces = []
    while not p.at_end():
        interfaces.append(p.class_type())
    return ClassSignature(type_params, superclass, tuple(interfaces))


def parse_method_signature(text: str) -> MethodSignature:
    """Parses a method Signature attribute or a plain method descriptor."""
    p = SignatureParser(text)
    type_params = p.type_parameters()
    p.expect("(")
    params = []
    while p.peek() != ")":
        params.append(p.java_type())
    p.expect(")")
    return_type = p.java_type()
    throws = []
    while p.peek() == "^":
        p.read()
        throws.append(p.reference_type())
    if not p.at_end():
        raise ValueError(f"Trailing data in method signature '{text}'")
    return MethodSignature(type_params, tuple(params), return_type, tuple(throws))


def parse_field_signature(text: str) -> JavaType:
    """Parses a field Signature attribute or a plain field descriptor."""
    p = SignatureParser(text)
    result = p.java_type()
    if not p.at_end():
        raise ValueError(f"Trailing data in field signature '{text}'")
    return result


def erasure(t: JavaType, scope: Optional[Dict[str, TypeParameter]] = None) -> JavaType:
    """
    Erases a type. Type variables erase to their leftmost bound when the
    declaring parameter is in scope, otherwise to java.lang.Object.
    """
    if isinstance(t, ClassType):
        return ClassType(t.name)
    if isinstance(t, ArrayType):
        return ArrayType(erasure(t.component, scope))
    if isinstance(t, TypeVariable):
        param = (scope or {}).get(t.name)
        if param is not None and param.bounds:
            # bounds may refer back to the same variable (T extends Comparable<T>)
            narrowed = {k: v for k, v in scope.items() if k != t.name}
            return erasure(param.bounds[0], narrowed)
        return OBJECT_TYPE
    return t


def substitute(t: JavaType, bindings: Dict[str, JavaType]) -> JavaType:
    """Replaces type variables found in bindings, leaving the others alone."""
    if isinstance(t, TypeVariable):
        return bindings.get(t.name, t)
    if isinstance(t, ArrayType):
        return ArrayType(substitute(t.component, bindings))
    if isinstance(t, ClassType):
        owner = substitute(t.owner, bindings) if t.owner is not None else None
        args = tuple(
            TypeArgument(a.wildcard, substitute(a.type, bindings) if a.type is not None else None)
            for a in t.arguments
        )
        return ClassType(t.name, args, owner)
    return t


def type_variables_in(t: JavaType) -> List[str]:
    if isinstance(t, TypeVariable):
        return [t.name]
    if isinstance(t, ArrayType):
        return type_variables_in(t.component)
    if isinstance(t, ClassType):
        found = type_variables_in(t.owner) if t.owner is not None else []
        for a in t.arguments:
            if a.type is not None:
                found.extend(type_variables_in(a.type))
        return found
    return []
