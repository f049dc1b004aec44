"""
Classfile reader.

Turns the bytes of a .class entry into a ClassDescriptor without loading or
initializing anything: constant values come straight from ConstantValue
attributes, generic information from Signature attributes.

Only the attributes needed for stub generation are decoded (Signature,
ConstantValue, Exceptions, InnerClasses, EnclosingMethod, AnnotationDefault);
everything else is skipped by length.
"""
import io
import struct
from typing import Callable, Dict, List, Optional, Tuple

from .errors import ClassFormatError
from .model import (
    ClassDescriptor,
    ConstantValue,
    ConstructorDescriptor,
    ElementValue,
    FieldDescriptor,
    InnerClassEntry,
    MethodDescriptor,
)

MAGIC = 0xCAFEBABE

# CP tags
CONSTANT_Utf8               = 1
CONSTANT_Integer            = 3
CONSTANT_Float              = 4
CONSTANT_Long               = 5
CONSTANT_Double             = 6
CONSTANT_Class              = 7
CONSTANT_String             = 8
CONSTANT_Fieldref           = 9
CONSTANT_Methodref          = 10
CONSTANT_InterfaceMethodref = 11
CONSTANT_NameAndType        = 12
CONSTANT_MethodHandle       = 15
CONSTANT_MethodType         = 16
CONSTANT_Dynamic            = 17
CONSTANT_InvokeDynamic      = 18
CONSTANT_Module             = 19
CONSTANT_Package            = 20


def read_u1(b: io.BytesIO) -> int:
    d = b.read(1)
    if len(d) != 1:
        raise EOFError
    return d[0]


def read_u2(b: io.BytesIO) -> int:
    d = b.read(2)
    if len(d) != 2:
        raise EOFError
    return struct.unpack(">H", d)[0]


def read_u4(b: io.BytesIO) -> int:
    d = b.read(4)
    if len(d) != 4:
        raise EOFError
    return struct.unpack(">I", d)[0]


def read_bytes(b: io.BytesIO, n: int) -> bytes:
    d = b.read(n)
    if len(d) != n:
        raise EOFError
    return d


def decode_modified_utf8(data: bytes) -> str:
    """
    Decodes the JVM's modified UTF-8: NUL is stored as C0 80 and
    supplementary characters as CESU-8 surrogate pairs.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    text = data.replace(b"\xc0\x80", b"\x00").decode("utf-8", errors="surrogatepass")
    return text.encode("utf-16", errors="surrogatepass").decode("utf-16", errors="replace")


class CPEntry:
    __slots__ = ("tag", "v")

    def __init__(self, tag: int, v):
        self.tag = tag
        self.v = v


class ConstantPool:
    def __init__(self, entries: List[Optional[CPEntry]]):
        self.entries = entries

    def entry(self, idx: int, *tags: int) -> CPEntry:
        if idx <= 0 or idx >= len(self.entries):
            raise ClassFormatError(f"Constant pool index {idx} out of range")
        ent = self.entries[idx]
        if ent is None or (tags and ent.tag not in tags):
            raise ClassFormatError(f"Bad constant pool entry at {idx}")
        return ent

    def utf8(self, idx: int) -> str:
        return self.entry(idx, CONSTANT_Utf8).v

    def class_name(self, idx: int) -> str:
        # already internal form with '/'
        return self.utf8(self.entry(idx, CONSTANT_Class).v)

    def optional_class_name(self, idx: int) -> Optional[str]:
        return self.class_name(idx) if idx != 0 else None

    def optional_utf8(self, idx: int) -> Optional[str]:
        return self.utf8(idx) if idx != 0 else None

    def constant(self, idx: int) -> ConstantValue:
        ent = self.entry(idx, CONSTANT_Integer, CONSTANT_Float, CONSTANT_Long,
                         CONSTANT_Double, CONSTANT_String)
        if ent.tag == CONSTANT_String:
            return self.utf8(ent.v)
        return ent.v


def read_constant_pool(b: io.BytesIO) -> ConstantPool:
    cp_count = read_u2(b)

    # 1-based CP with possible double-slot entries
    cp: List[Optional[CPEntry]] = [None] * cp_count
    i = 1
    while i < cp_count:
        tag = read_u1(b)
        if tag == CONSTANT_Utf8:
            ln = read_u2(b)
            cp[i] = CPEntry(tag, decode_modified_utf8(read_bytes(b, ln)))
        elif tag == CONSTANT_Integer:
            cp[i] = CPEntry(tag, struct.unpack(">i", read_bytes(b, 4))[0])
        elif tag == CONSTANT_Float:
            cp[i] = CPEntry(tag, struct.unpack(">f", read_bytes(b, 4))[0])
        elif tag in (CONSTANT_Long, CONSTANT_Double):
            fmt = ">q" if tag == CONSTANT_Long else ">d"
            cp[i] = CPEntry(tag, struct.unpack(fmt, read_bytes(b, 8))[0])
            i += 1  # double-slot
        elif tag in (CONSTANT_Class, CONSTANT_String, CONSTANT_MethodType,
                     CONSTANT_Module, CONSTANT_Package):
            cp[i] = CPEntry(tag, read_u2(b))
        elif tag in (CONSTANT_Fieldref, CONSTANT_Methodref, CONSTANT_InterfaceMethodref,
                     CONSTANT_NameAndType, CONSTANT_Dynamic, CONSTANT_InvokeDynamic):
            cp[i] = CPEntry(tag, (read_u2(b), read_u2(b)))
        elif tag == CONSTANT_MethodHandle:
            cp[i] = CPEntry(tag, (read_u1(b), read_u2(b)))
        else:
            raise ClassFormatError(f"Unsupported CP tag {tag}")
        i += 1
    return ConstantPool(cp)


def read_element_value(b: io.BytesIO, cp: ConstantPool) -> ElementValue:
    tag = chr(read_u1(b))
    if tag in "BCDFIJSZ":
        return ElementValue(tag, cp.constant(read_u2(b)))
    if tag == "s":
        return ElementValue(tag, cp.utf8(read_u2(b)))
    if tag == "e":
        type_name = cp.utf8(read_u2(b))
        return ElementValue(tag, (type_name, cp.utf8(read_u2(b))))
    if tag == "c":
        return ElementValue(tag, cp.utf8(read_u2(b)))
    if tag == "@":
        skip_annotation(b, cp)
        return ElementValue(tag)
    if tag == "[":
        count = read_u2(b)
        return ElementValue(tag, tuple(read_element_value(b, cp) for _ in range(count)))
    raise ClassFormatError(f"Unknown element_value tag {tag!r}")


def skip_annotation(b: io.BytesIO, cp: ConstantPool) -> None:
    read_u2(b)  # type_index
    for _ in range(read_u2(b)):
        read_u2(b)  # element_name_index
        read_element_value(b, cp)


AttributeHandler = Callable[[io.BytesIO, ConstantPool], object]


def read_attributes(b: io.BytesIO, cp: ConstantPool,
                    handlers: Dict[str, AttributeHandler]) -> Dict[str, object]:
    """Decodes the attributes named in handlers and skips all others."""
    found: Dict[str, object] = {}
    attr_cnt = read_u2(b)
    for _ in range(attr_cnt):
        name = cp.utf8(read_u2(b))
        length = read_u4(b)
        data = read_bytes(b, length)
        handler = handlers.get(name)
        if handler is not None:
            found[name] = handler(io.BytesIO(data), cp)
    return found


def _signature(b: io.BytesIO, cp: ConstantPool) -> str:
    return cp.utf8(read_u2(b))


def _constant_value(b: io.BytesIO, cp: ConstantPool) -> ConstantValue:
    return cp.constant(read_u2(b))


def _exceptions(b: io.BytesIO, cp: ConstantPool) -> Tuple[str, ...]:
    return tuple(cp.class_name(read_u2(b)) for _ in range(read_u2(b)))


def _inner_classes(b: io.BytesIO, cp: ConstantPool) -> Tuple[InnerClassEntry, ...]:
    entries = []
    for _ in range(read_u2(b)):
        inner = cp.class_name(read_u2(b))
        outer = cp.optional_class_name(read_u2(b))
        simple_name = cp.optional_utf8(read_u2(b))
        entries.append(InnerClassEntry(inner, outer, simple_name, read_u2(b)))
    return tuple(entries)


def _enclosing_method(b: io.BytesIO, cp: ConstantPool) -> str:
    return cp.class_name(read_u2(b))


FIELD_ATTRIBUTES: Dict[str, AttributeHandler] = {
    "Signature": _signature,
    "ConstantValue": _constant_value,
}
METHOD_ATTRIBUTES: Dict[str, AttributeHandler] = {
    "Signature": _signature,
    "Exceptions": _exceptions,
    "AnnotationDefault": read_element_value,
}
CLASS_ATTRIBUTES: Dict[str, AttributeHandler] = {
    "Signature": _signature,
    "InnerClasses": _inner_classes,
    "EnclosingMethod": _enclosing_method,
}


def parse_classfile(data: bytes) -> ClassDescriptor:
    try:
        return _parse(io.BytesIO(data))
    except EOFError:
        raise ClassFormatError("Truncated class file")
    except struct.error as e:
        raise ClassFormatError(str(e))
    except UnicodeDecodeError as e:
        raise ClassFormatError(f"Bad Utf8 constant: {e}")


def _parse(b: io.BytesIO) -> ClassDescriptor:
    magic = read_u4(b)
    if magic != MAGIC:
        raise ClassFormatError("Bad magic")
    _minor = read_u2(b)
    _major = read_u2(b)
    cp = read_constant_pool(b)

    access_flags = read_u2(b)
    this_name = cp.class_name(read_u2(b))
    super_name = cp.optional_class_name(read_u2(b))

    iface_count = read_u2(b)
    interfaces = tuple(cp.class_name(read_u2(b)) for _ in range(iface_count))

    # fields
    fields = []
    for _ in range(read_u2(b)):
        f_acc = read_u2(b)
        f_name = cp.utf8(read_u2(b))
        f_desc = cp.utf8(read_u2(b))
        attrs = read_attributes(b, cp, FIELD_ATTRIBUTES)
        fields.append(FieldDescriptor(
            name=f_name,
            descriptor=f_desc,
            access_flags=f_acc,
            signature=attrs.get("Signature"),
            constant_value=attrs.get("ConstantValue"),
        ))

    # methods
    methods = []
    constructors = []
    for _ in range(read_u2(b)):
        m_acc = read_u2(b)
        m_name = cp.utf8(read_u2(b))
        m_desc = cp.utf8(read_u2(b))
        attrs = read_attributes(b, cp, METHOD_ATTRIBUTES)
        if m_name == "<clinit>":
            continue
        kwargs = dict(
            descriptor=m_desc,
            access_flags=m_acc,
            signature=attrs.get("Signature"),
            exceptions=attrs.get("Exceptions", ()),
            annotation_default=attrs.get("AnnotationDefault"),
        )
        if m_name == "<init>":
            constructors.append(ConstructorDescriptor(**kwargs))
        else:
            methods.append(MethodDescriptor(name=m_name, **kwargs))

    attrs = read_attributes(b, cp, CLASS_ATTRIBUTES)

    return ClassDescriptor(
        name=this_name,
        access_flags=access_flags,
        super_name=super_name,
        interfaces=interfaces,
        signature=attrs.get("Signature"),
        fields=tuple(fields),
        methods=tuple(methods),
        constructors=tuple(constructors),
        inner_classes=attrs.get("InnerClasses", ()),
        enclosing_class=attrs.get("EnclosingMethod"),
    )
