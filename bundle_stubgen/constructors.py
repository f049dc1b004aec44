"""
Constructor rendering.

A stub constructor must still chain to a constructor its superclass really
has, so the superclass is looked up in the repository and a `super(...)` call
with explicitly cast default arguments is synthesized when the implicit
`super()` would not compile.
"""
import logging
from typing import Dict, List, Optional, Sequence

from .errors import ClassLookupError, ClassFormatError
from .model import ClassDescriptor, ConstructorDescriptor
from .render import INDENT, default_value, print_parameters, print_throws, type_name
from .repository import ClassRepository
from .signature import (
    OBJECT,
    JavaType,
    TypeArgument,
    TypeVariable,
    erasure,
    substitute,
    type_variables_in,
)

log = logging.getLogger(__name__)

EMPTY_BODY = " {\n" + INDENT + "}\n"


def is_accessible_from(ctor: ConstructorDescriptor, owner: ClassDescriptor, subclass: ClassDescriptor) -> bool:
    if ctor.is_public or ctor.is_protected:
        return True
    if ctor.is_private:
        return False
    # package-private: plain string comparison, split packages are not considered
    return owner.package_name == subclass.package_name


def choose_super_constructor(candidates: Sequence[ConstructorDescriptor]) -> Optional[ConstructorDescriptor]:
    """Prefers the first constructor declaring no exceptions, else the first one."""
    if not candidates:
        return None
    for ctor in candidates:
        if not ctor.exception_types:
            return ctor
    return candidates[0]


def super_type_bindings(desc: ClassDescriptor, super_desc: ClassDescriptor) -> Dict[str, JavaType]:
    """
    Maps the superclass's type variables to the arguments the subclass passes
    in its extends clause. Raw or wildcard arguments fall back to erasure.
    """
    bindings: Dict[str, JavaType] = {}
    sup = desc.generic_superclass
    args = sup.arguments if sup is not None and sup.name == super_desc.name else ()
    for i, param in enumerate(super_desc.type_parameters):
        arg: Optional[TypeArgument] = args[i] if i < len(args) else None
        if arg is not None and arg.wildcard in (None, "+"):
            bindings[param.name] = arg.type
        else:
            bindings[param.name] = erasure(TypeVariable(param.name), super_desc.type_scope)
    return bindings


def super_argument_types(desc: ClassDescriptor, super_desc: ClassDescriptor,
                         ctor: ConstructorDescriptor) -> List[JavaType]:
    params = list(ctor.parameter_types)[super_desc.implicit_parameter_count(ctor):]
    scope = dict(super_desc.type_scope)
    scope.update({p.name: p for p in ctor.type_parameters})
    bindings = super_type_bindings(desc, super_desc)
    # Constructor-level type variables shadow the class's and are erased
    for p in ctor.type_parameters:
        bindings[p.name] = erasure(TypeVariable(p.name), scope)
    subclass_vars = set(desc.type_scope)
    result = []
    for t in params:
        bound = substitute(t, bindings)
        if any(v not in subclass_vars for v in type_variables_in(bound)):
            bound = erasure(t, scope)
        result.append(bound)
    return result


def write_super_call(types: Sequence[JavaType]) -> str:
    args = ", ".join(f"({type_name(t)}){default_value(t)}" for t in types)
    return INDENT * 2 + f"super({args});\n"


def write_basic_constructor_body(desc: ClassDescriptor, repository: Optional[ClassRepository]) -> str:
    """
    Returns the body of a stub constructor of desc, starting with ' {'.

    The body is empty unless the superclass lacks a no-argument constructor,
    in which case one accessible superclass constructor is called with cast
    default values. Lookup failures are logged and give an empty body.
    """
    if desc.super_name in (None, OBJECT):
        return EMPTY_BODY

    if repository is None:
        log.warning("No class repository to locate superconstructors for %s", desc.binary_name)
        return EMPTY_BODY
    try:
        super_desc = repository.find(desc.super_name)
    except (ClassLookupError, ClassFormatError) as e:
        log.warning("Unable to process superclass constructors for %s: %s", desc.binary_name, e)
        return EMPTY_BODY

    ctors = super_desc.constructors
    if not ctors:
        return EMPTY_BODY
    if any(not c.erased.parameters and is_accessible_from(c, super_desc, desc) for c in ctors):
        return EMPTY_BODY

    if super_desc.has_outer_instance:
        # The outer instance is assumed to be supplied implicitly; this only
        # holds when the subclass shares the superclass's enclosing instance.
        if any(super_desc.implicit_parameter_count(c) == len(c.erased.parameters) for c in ctors):
            return EMPTY_BODY

    candidates = [c for c in ctors if not c.is_synthetic and is_accessible_from(c, super_desc, desc)]
    ctor = choose_super_constructor(candidates)
    if ctor is None:
        log.warning("No accessible superclass constructor of %s for %s",
                    super_desc.binary_name, desc.binary_name)
        return EMPTY_BODY

    return " {\n" + write_super_call(super_argument_types(desc, super_desc, ctor)) + INDENT + "}\n"


def should_emit_constructor(desc: ClassDescriptor, ctor: ConstructorDescriptor) -> bool:
    return not desc.is_enum and not desc.is_interface and not ctor.is_synthetic


def print_constructor(desc: ClassDescriptor, ctor: ConstructorDescriptor,
                      repository: Optional[ClassRepository], class_name: str) -> str:
    result = [INDENT]
    if ctor.is_public:
        result.append("public ")
    elif ctor.is_protected:
        result.append("protected ")
    elif ctor.is_private:
        result.append("private ")
    result.append(class_name)

    implicit = desc.implicit_parameter_count(ctor)
    params = ctor.parameter_types[implicit:]
    result.append(print_parameters(params, ctor.is_varargs, first_index=implicit))
    result.append(print_throws(ctor.exception_types))
    result.append(write_basic_constructor_body(desc, repository))
    result.append("\n")
    return "".join(result)


def print_constructors(desc: ClassDescriptor, repository: Optional[ClassRepository], class_name: str) -> str:
    return "".join(print_constructor(desc, c, repository, class_name)
                   for c in desc.constructors if should_emit_constructor(desc, c))
