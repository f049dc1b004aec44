"""
Source rendering of class headers, fields and methods.

Every function returns text; nothing here touches the filesystem. Type names
are always fully qualified, with nested '$' names turned into '.' names.
"""
import math
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_POLICY, OverridePolicy
from .model import ClassDescriptor, ConstantValue, ElementValue, FieldDescriptor, MethodDescriptor
from .signature import (
    ArrayType,
    BaseType,
    ClassType,
    JavaType,
    TypeArgument,
    TypeParameter,
    TypeVariable,
    VOID,
    parse_field_signature,
)

INDENT = "\t"

JAVA_ESCAPES = {
    "\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t",
    "\r": "\\r", "\b": "\\b", "\f": "\\f",
}


# ----- types -----

def type_name(t: JavaType) -> str:
    if isinstance(t, BaseType):
        return t.name
    if isinstance(t, TypeVariable):
        return t.name
    if isinstance(t, ArrayType):
        return type_name(t.component) + "[]"
    if isinstance(t, ClassType):
        return class_type_name(t)
    raise TypeError(f"Not a Java type: {t!r}")


def _is_parameterized(t: Optional[ClassType]) -> bool:
    while t is not None:
        if t.arguments:
            return True
        t = t.owner
    return False


def class_type_name(t: ClassType) -> str:
    if t.owner is not None and _is_parameterized(t.owner):
        base = class_type_name(t.owner) + "." + t.name[len(t.owner.name) + 1:]
    else:
        base = t.name.replace("/", ".").replace("$", ".")
    if t.arguments:
        base += "<" + ", ".join(type_argument_name(a) for a in t.arguments) + ">"
    return base


def type_argument_name(arg: TypeArgument) -> str:
    if arg.wildcard == "*":
        return "?"
    if arg.wildcard == "+":
        return "? extends " + type_name(arg.type)
    if arg.wildcard == "-":
        return "? super " + type_name(arg.type)
    return type_name(arg.type)


def default_value(t: JavaType) -> str:
    """The literal a stub returns for t: false, 0, '\\0', null, or nothing for void."""
    if isinstance(t, BaseType):
        if t.descriptor == "Z":
            return "false"
        if t.descriptor == "C":
            return "'\\0'"
        if t.descriptor == "V":
            return ""
        return "0"
    return "null"


def print_bounds(param: TypeParameter) -> str:
    bounds = [type_name(b) for b in param.bounds
              if not (isinstance(b, ClassType) and b.is_object)]
    if not bounds:
        return ""
    return " extends " + " & ".join(bounds)


def print_type_variables(params: Sequence[TypeParameter]) -> str:
    if not params:
        return ""
    return "<" + ", ".join(p.name + print_bounds(p) for p in params) + ">"


def print_parameters(types: Sequence[JavaType], varargs: bool = False, first_index: int = 0) -> str:
    """Renders '(T arg0, U arg1)'; argument numbers start at first_index."""
    params = []
    last = len(types) - 1
    for i, t in enumerate(types):
        if varargs and i == last and isinstance(t, ArrayType):
            rendered = type_name(t.component) + "..."
        else:
            rendered = type_name(t)
        params.append(f"{rendered} arg{i + first_index}")
    return "(" + ", ".join(params) + ")"


def print_throws(types: Iterable[JavaType]) -> str:
    names = [type_name(t) for t in types]
    if not names:
        return ""
    return " throws " + ", ".join(names)


# ----- literals -----

def escape_java(text: str) -> str:
    out = []
    for ch in text:
        if ch in JAVA_ESCAPES:
            out.append(JAVA_ESCAPES[ch])
        elif 0x20 <= ord(ch) < 0x7f:
            out.append(ch)
        elif ord(ch) > 0xffff:
            code = ord(ch) - 0x10000
            out.append("\\u%04x\\u%04x" % (0xd800 + (code >> 10), 0xdc00 + (code & 0x3ff)))
        else:
            out.append("\\u%04x" % ord(ch))
    return "".join(out)


def string_literal(text: str) -> str:
    return '"' + escape_java(text) + '"'


def char_literal(code: int) -> str:
    ch = chr(code)
    if ch == "'":
        return "'\\''"
    if ch == '"':
        return "'\"'"
    return "'" + escape_java(ch) + "'"


def _floating_literal(value: float, box: str, suffix: str) -> str:
    if math.isnan(value):
        return f"{box}.NaN"
    if math.isinf(value):
        return f"{box}.POSITIVE_INFINITY" if value > 0 else f"{box}.NEGATIVE_INFINITY"
    return repr(float(value)) + suffix


def literal(value: ConstantValue, t: JavaType) -> str:
    """Source form of a ConstantValue for a field (or annotation element) of type t."""
    if isinstance(value, str):
        return string_literal(value)
    if isinstance(t, BaseType):
        if t.descriptor == "Z":
            return "true" if value else "false"
        if t.descriptor == "C":
            return char_literal(int(value))
        if t.descriptor == "J":
            return f"{int(value)}L"
        if t.descriptor == "F":
            return _floating_literal(value, "Float", "f")
        if t.descriptor == "D":
            return _floating_literal(value, "Double", "")
        return str(int(value))
    if isinstance(value, float):
        return _floating_literal(value, "Double", "")
    return str(value)


ELEMENT_TYPES = {tag: BaseType(tag) for tag in "BCDFIJSZ"}


def element_value(value: ElementValue) -> Optional[str]:
    """Annotation default in source form; None when it cannot be reproduced."""
    tag = value.tag
    if tag in ELEMENT_TYPES:
        return literal(value.value, ELEMENT_TYPES[tag])
    if tag == "s":
        return string_literal(value.value)
    if tag == "e":
        enum_type, constant = value.value
        return type_name(parse_field_signature(enum_type)) + "." + constant
    if tag == "c":
        return ("void" if value.value == "V" else type_name(parse_field_signature(value.value))) + ".class"
    if tag == "[":
        items = [element_value(v) for v in value.value]
        if any(i is None for i in items):
            return None
        return "{" + ", ".join(items) + "}"
    return None


# ----- class header -----

def print_class_signature(desc: ClassDescriptor, class_name: str,
                          policy: OverridePolicy = DEFAULT_POLICY, top_level: bool = False) -> str:
    result = []
    if desc.is_public or desc.binary_name in policy.public_classes:
        result.append("public ")
    elif desc.is_protected and not top_level:
        result.append("protected ")

    if desc.is_enum:
        result.append("enum")
    elif desc.is_annotation:
        result.append("@interface")
    else:
        if desc.is_static and not top_level:
            result.append("static ")
        if desc.is_final:
            result.append("final ")
        if desc.is_abstract and not desc.is_interface:
            result.append("abstract ")
        result.append("interface" if desc.is_interface else "class")
    result.append(" ")
    result.append(class_name)
    result.append(print_type_variables(desc.type_parameters))

    sup = desc.generic_superclass
    if sup is not None and not desc.is_enum and not desc.is_interface and sup.name != "java/lang/Object":
        result.append(" extends " + type_name(sup))

    if not desc.is_annotation:
        interfaces = [type_name(i) for i in desc.generic_interfaces]
        if interfaces:
            result.append(" extends " if desc.is_interface else " implements ")
            result.append(", ".join(interfaces))
    return "".join(result)


# ----- fields -----

def print_enum_constants(desc: ClassDescriptor) -> str:
    names = [f.name for f in desc.fields if f.is_enum_constant]
    return INDENT + ", ".join(names) + ";\n\n"


def field_initializer(desc: ClassDescriptor, f: FieldDescriptor, policy: OverridePolicy) -> Optional[str]:
    if not f.is_final:
        return None
    if f.is_static:
        known = policy.known_string_constant(desc.binary_name, f.name)
        if known is not None:
            return string_literal(known)
        if f.constant_value is not None:
            return literal(f.constant_value, f.erased_type)
    # Final fields must be definitely assigned for the stub to compile
    return default_value(f.erased_type)


def print_field(desc: ClassDescriptor, f: FieldDescriptor, policy: OverridePolicy = DEFAULT_POLICY) -> str:
    result = [INDENT, "public " if f.is_public else "protected "]
    if f.is_static:
        result.append("static ")
    if f.is_final:
        result.append("final ")
    result.append(type_name(f.type))
    result.append(" ")
    result.append(f.name)
    init = field_initializer(desc, f, policy)
    if init is not None:
        result.append(" = " + init)
    result.append(";\n\n")
    return "".join(result)


def should_emit_field(desc: ClassDescriptor, f: FieldDescriptor, policy: OverridePolicy) -> bool:
    if f.is_enum_constant or f.is_synthetic:
        return False
    if not (f.is_public or f.is_protected):
        return False
    return not policy.should_skip_field(desc.binary_name, f.name)


def print_class_fields(desc: ClassDescriptor, policy: OverridePolicy = DEFAULT_POLICY) -> str:
    return "".join(print_field(desc, f, policy) for f in desc.fields if should_emit_field(desc, f, policy))


# ----- methods -----

def should_emit_method(desc: ClassDescriptor, m: MethodDescriptor) -> bool:
    if m.is_synthetic or m.is_bridge or m.is_constructor:
        return False
    if not (m.is_public or m.is_protected):
        return False
    if desc.is_enum:
        # Generated by the compiler for every enum
        if m.name == "values" and m.descriptor.startswith("()"):
            return False
        if m.name == "valueOf" and m.descriptor.startswith("(Ljava/lang/String;)"):
            return False
    return True


def method_return_type(desc: ClassDescriptor, m: MethodDescriptor, policy: OverridePolicy) -> JavaType:
    override = policy.return_override(desc.binary_name, m)
    if override is not None:
        return parse_field_signature(override)
    return m.return_type


def print_method(desc: ClassDescriptor, m: MethodDescriptor, policy: OverridePolicy = DEFAULT_POLICY) -> str:
    result = [INDENT]
    if m.is_public:
        result.append("public ")
    elif m.is_protected:
        result.append("protected ")
    if m.is_static:
        result.append("static ")
    if m.is_native:
        result.append("native ")
    # Constant bodies are not reproduced, so enum methods always get a body
    has_body = not (m.is_abstract and not desc.is_enum) and not m.is_native
    if m.is_abstract and not desc.is_interface and not desc.is_enum:
        result.append("abstract ")
    if desc.is_interface and not m.is_abstract and not m.is_static:
        result.append("default ")

    type_vars = print_type_variables(m.type_parameters)
    if type_vars:
        result.append(type_vars + " ")

    return_type = method_return_type(desc, m, policy)
    result.append("void" if return_type == VOID else type_name(return_type))
    result.append(" ")
    result.append(m.name)
    result.append(print_parameters(m.parameter_types, m.is_varargs))
    result.append(print_throws(m.exception_types))

    if desc.is_annotation:
        if m.annotation_default is not None:
            default = element_value(m.annotation_default)
            if default is not None:
                result.append(" default " + default)
        result.append(";\n")
    elif not has_body:
        result.append(";\n")
    else:
        result.append(" {\n")
        if return_type != VOID:
            result.append(INDENT * 2 + "return " + default_value(return_type) + ";\n")
        result.append(INDENT + "}\n")
    return "".join(result)


# ----- raw additions -----

_RAW_METHOD = re.compile(r"([A-Za-z_$][\w$]*)\s*\(([^)]*)\)")


def _arity(params: str) -> int:
    if not params.strip():
        return 0
    depth = 0
    count = 1
    for ch in params:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif ch == "," and depth == 0:
            count += 1
    return count


def raw_method_key(source: str) -> Optional[Tuple[str, int]]:
    """(name, arity) of the first method declared in a raw source addition."""
    match = _RAW_METHOD.search(source)
    if match is None:
        return None
    return match.group(1), _arity(match.group(2))


def raw_body_addition(desc: ClassDescriptor, policy: OverridePolicy) -> Optional[str]:
    return policy.raw_class_body_additions.get(desc.binary_name)


def print_methods(desc: ClassDescriptor, policy: OverridePolicy = DEFAULT_POLICY) -> str:
    replaced = None
    raw = raw_body_addition(desc, policy)
    if raw is not None:
        replaced = raw_method_key(raw)

    result: List[str] = []
    for m in desc.methods:
        if not should_emit_method(desc, m):
            continue
        if replaced is not None and (m.name, len(m.parameter_types)) == replaced:
            continue
        result.append(print_method(desc, m, policy))
        result.append("\n")
    if raw is not None:
        result.append(INDENT + raw + "\n\n")
    return "".join(result)
