import pytest

from bundle_stubgen.config import DEFAULT_POLICY, OverridePolicy
from bundle_stubgen.model import (
    ACC_ABSTRACT,
    ACC_ANNOTATION,
    ACC_BRIDGE,
    ACC_ENUM,
    ACC_FINAL,
    ACC_INTERFACE,
    ACC_NATIVE,
    ACC_PRIVATE,
    ACC_PROTECTED,
    ACC_PUBLIC,
    ACC_STATIC,
    ACC_SUPER,
    ACC_SYNTHETIC,
    ACC_VARARGS,
    ClassDescriptor,
    ElementValue,
    FieldDescriptor,
    InnerClassEntry,
    MethodDescriptor,
)
from bundle_stubgen.render import (
    default_value,
    element_value,
    literal,
    print_class_fields,
    print_class_signature,
    print_enum_constants,
    print_method,
    print_methods,
    print_type_variables,
    type_name,
)
from bundle_stubgen.signature import BaseType, ClassType, parse_field_signature

PUBLIC_CONSTANT = ACC_PUBLIC | ACC_STATIC | ACC_FINAL
NO_POLICY = OverridePolicy()
PKG = "org/openntf/test"


def method_type_variables(signature):
    return print_type_variables(MethodDescriptor("m", "()V", signature=signature).type_parameters)


# ----- types -----

@pytest.mark.parametrize("signature, expected", [
    ("I", "int"),
    ("[[J", "long[][]"),
    ("Ljava/util/Map$Entry;", "java.util.Map.Entry"),
    ("Ljava/util/List<+Ljava/lang/Number;>;", "java.util.List<? extends java.lang.Number>"),
    ("Ljava/util/Map<*-Ljava/lang/Integer;>;", "java.util.Map<?, ? super java.lang.Integer>"),
    ("Lp/Outer<Ljava/lang/String;>.Inner;", "p.Outer<java.lang.String>.Inner"),
    ("[TT;", "T[]"),
])
def test_type_name(signature, expected):
    assert type_name(parse_field_signature(signature)) == expected


def test_default_values():
    assert default_value(BaseType("Z")) == "false"
    assert default_value(BaseType("C")) == "'\\0'"
    for primitive in "BSIJFD":
        assert default_value(BaseType(primitive)) == "0"
    assert default_value(BaseType("V")) == ""
    assert default_value(ClassType("java/lang/String")) == "null"
    assert default_value(parse_field_signature("[I")) == "null"


# ----- type variables -----

def test_no_type_variables():
    assert print_type_variables(()) == ""
    assert print_type_variables(ClassDescriptor("p/Plain").type_parameters) == ""


def test_object_bound_is_omitted():
    assert method_type_variables("<T:Ljava/lang/Object;>()V") == "<T>"


def test_method_type_variable_with_interface_bound():
    assert method_type_variables("<L::Ljava/util/EventListener;>(Ljava/lang/Class<TL;>;)TL;") == \
        "<L extends java.util.EventListener>"


def test_method_type_variables_referring_to_each_other():
    assert method_type_variables("<A::Ljava/util/EventListener;B:TA;>(TA;TB;)V") == \
        "<A extends java.util.EventListener, B extends A>"


def test_multiple_bounds():
    assert method_type_variables("<T:Ljava/lang/Number;:Ljava/lang/Comparable<TT;>;>()V") == \
        "<T extends java.lang.Number & java.lang.Comparable<T>>"


# ----- class signatures -----

def test_class_implementing_parameterized_interface():
    desc = ClassDescriptor(
        f"{PKG}/TestClassSignatures$Bar", ACC_SUPER,
        interfaces=(f"{PKG}/TestClassSignatures$Foo", "java/util/EventListener"),
        signature=f"Ljava/lang/Object;L{PKG}/TestClassSignatures$Foo<Ljava/lang/String;Ljava/lang/Integer;>;"
                  "Ljava/util/EventListener;",
    )
    assert print_class_signature(desc, "Bar") == \
        "class Bar implements org.openntf.test.TestClassSignatures.Foo<java.lang.String, java.lang.Integer>, " \
        "java.util.EventListener"


def test_generic_class_passing_variables():
    desc = ClassDescriptor(
        f"{PKG}/TestClassSignatures$Baz", ACC_SUPER,
        interfaces=(f"{PKG}/TestClassSignatures$Foo",),
        signature=f"<C:Ljava/lang/Object;D:Ljava/lang/Object;>Ljava/lang/Object;L{PKG}/TestClassSignatures$Foo<TC;TD;>;",
    )
    assert print_class_signature(desc, "Baz") == \
        "class Baz<C, D> implements org.openntf.test.TestClassSignatures.Foo<C, D>"


def test_generic_superclass():
    desc = ClassDescriptor(
        f"{PKG}/TestClassSignatures$Ness", ACC_SUPER,
        super_name=f"{PKG}/TestClassSignatures$Baz",
        signature=f"<E:Ljava/lang/Object;F:Ljava/lang/Object;>L{PKG}/TestClassSignatures$Baz<TE;TF;>;",
    )
    assert print_class_signature(desc, "Ness") == \
        "class Ness<E, F> extends org.openntf.test.TestClassSignatures.Baz<E, F>"


def test_forced_public_class():
    desc = ClassDescriptor("p/Hidden", ACC_SUPER | ACC_ABSTRACT)
    policy = OverridePolicy.create(public_classes=["p.Hidden"])
    assert print_class_signature(desc, "Hidden", policy) == "public abstract class Hidden"
    assert print_class_signature(desc, "Hidden", NO_POLICY) == "abstract class Hidden"


def test_enum_never_extends():
    desc = ClassDescriptor("p/Color", ACC_PUBLIC | ACC_FINAL | ACC_SUPER | ACC_ENUM,
                           super_name="java/lang/Enum", signature="Ljava/lang/Enum<Lp/Color;>;")
    assert print_class_signature(desc, "Color") == "public enum Color"


def test_nested_modifiers_depend_on_position():
    desc = ClassDescriptor("p/Outer$Inner", ACC_SUPER, inner_classes=(
        InnerClassEntry("p/Outer$Inner", "p/Outer", "Inner", ACC_PROTECTED | ACC_STATIC | ACC_FINAL),))
    assert print_class_signature(desc, "Inner") == "protected static final class Inner"
    assert print_class_signature(desc, "Outer", top_level=True) == "final class Outer"


def test_interface_and_annotation_headers():
    iface = ClassDescriptor("p/Listener", ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT,
                            interfaces=("java/util/EventListener",))
    assert print_class_signature(iface, "Listener") == "public interface Listener extends java.util.EventListener"

    annotation = ClassDescriptor("p/Marker", ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT | ACC_ANNOTATION,
                                 interfaces=("java/lang/annotation/Annotation",))
    assert print_class_signature(annotation, "Marker") == "public @interface Marker"


# ----- fields -----

def test_static_string_constant():
    desc = ClassDescriptor("p/StaticField", fields=(
        FieldDescriptor("FOO", "Ljava/lang/String;", PUBLIC_CONSTANT, constant_value="Bar"),))
    assert print_class_fields(desc) == '\tpublic static final java.lang.String FOO = "Bar";\n\n'


def test_skip_field():
    desc = ClassDescriptor("p/SkipField", fields=(
        FieldDescriptor("skipMe", "Ljava/lang/String;"),
        FieldDescriptor("doNotSkip", "Ljava/lang/String;"),
    ))
    policy = OverridePolicy.create(skip_fields={"p.SkipField": ["skipMe"]})
    assert print_class_fields(desc, policy) == "\tpublic java.lang.String doNotSkip;\n\n"
    assert "skipMe" in print_class_fields(desc, NO_POLICY)


def test_known_string_constant_wins():
    desc = ClassDescriptor("p/Consts", fields=(
        FieldDescriptor("HOST", "Ljava/lang/String;", PUBLIC_CONSTANT),))
    policy = OverridePolicy.create(known_string_constants={"p.Consts": {"HOST": "Host"}})
    assert print_class_fields(desc, policy) == '\tpublic static final java.lang.String HOST = "Host";\n\n'


def test_field_visibility_and_generics():
    desc = ClassDescriptor("p/Fields", fields=(
        FieldDescriptor("items", "Ljava/util/List;", ACC_PROTECTED, signature="Ljava/util/List<Ljava/lang/String;>;"),
        FieldDescriptor("hidden", "I", ACC_PRIVATE),
        FieldDescriptor("packaged", "I", 0),
        FieldDescriptor("this$0", "Lp/Outer;", ACC_FINAL | ACC_SYNTHETIC),
    ))
    assert print_class_fields(desc, NO_POLICY) == "\tprotected java.util.List<java.lang.String> items;\n\n"


def test_final_fields_get_initializers():
    desc = ClassDescriptor("p/Finals", fields=(
        FieldDescriptor("count", "I", ACC_PUBLIC | ACC_FINAL),
        FieldDescriptor("NAME", "Ljava/lang/String;", PUBLIC_CONSTANT),
        FieldDescriptor("flag", "Z", ACC_PUBLIC | ACC_STATIC),
    ))
    assert print_class_fields(desc, NO_POLICY) == (
        "\tpublic final int count = 0;\n\n"
        "\tpublic static final java.lang.String NAME = null;\n\n"
        "\tpublic static boolean flag;\n\n"
    )


@pytest.mark.parametrize("value, descriptor, expected", [
    (2, "J", "2L"),
    (1.5, "F", "1.5f"),
    (float("nan"), "D", "Double.NaN"),
    (float("-inf"), "F", "Float.NEGATIVE_INFINITY"),
    (0.1, "D", "0.1"),
    (65, "C", "'A'"),
    (39, "C", "'\\''"),
    (0, "C", "'\\u0000'"),
    (1, "Z", "true"),
    (0, "Z", "false"),
    (-3, "I", "-3"),
    ('say "hi"\n', "Ljava/lang/String;", '"say \\"hi\\"\\n"'),
    ("é", "Ljava/lang/String;", '"\\u00e9"'),
])
def test_literals(value, descriptor, expected):
    assert literal(value, parse_field_signature(descriptor)) == expected


def test_enum_constants():
    desc = ClassDescriptor("p/Color", ACC_PUBLIC | ACC_FINAL | ACC_SUPER | ACC_ENUM,
                           super_name="java/lang/Enum", fields=(
        FieldDescriptor("RED", "Lp/Color;", PUBLIC_CONSTANT | ACC_ENUM),
        FieldDescriptor("GREEN", "Lp/Color;", PUBLIC_CONSTANT | ACC_ENUM),
        FieldDescriptor("$VALUES", "[Lp/Color;", ACC_PRIVATE | ACC_STATIC | ACC_FINAL | ACC_SYNTHETIC),
    ), methods=(
        MethodDescriptor("values", "()[Lp/Color;", ACC_PUBLIC | ACC_STATIC),
        MethodDescriptor("valueOf", "(Ljava/lang/String;)Lp/Color;", ACC_PUBLIC | ACC_STATIC),
        MethodDescriptor("label", "()Ljava/lang/String;", ACC_PUBLIC | ACC_ABSTRACT),
    ))
    assert print_enum_constants(desc) == "\tRED, GREEN;\n\n"
    assert print_class_fields(desc) == ""
    assert print_methods(desc) == "\tpublic java.lang.String label() {\n\t\treturn null;\n\t}\n\n"


def test_enum_without_constants():
    desc = ClassDescriptor("p/Empty", ACC_PUBLIC | ACC_ENUM, super_name="java/lang/Enum")
    assert print_enum_constants(desc) == "\t;\n\n"


# ----- methods -----

CLASS = ClassDescriptor(f"{PKG}/TestMethods")


def test_void_method():
    assert print_method(CLASS, MethodDescriptor("bar")) == "\tpublic void bar() {\n\t}\n"


def test_reference_return():
    assert print_method(CLASS, MethodDescriptor("baz", "()Ljava/lang/Object;")) == \
        "\tpublic java.lang.Object baz() {\n\t\treturn null;\n\t}\n"


def test_parameters():
    assert print_method(CLASS, MethodDescriptor("foo", "(Ljava/lang/Object;)V")) == \
        "\tpublic void foo(java.lang.Object arg0) {\n\t}\n"


@pytest.mark.parametrize("descriptor, statement", [
    ("()I", "return 0;"),
    ("()D", "return 0;"),
    ("()Z", "return false;"),
    ("()C", "return '\\0';"),
    ("()[I", "return null;"),
])
def test_default_returns(descriptor, statement):
    assert print_method(CLASS, MethodDescriptor("get", descriptor)) == \
        "\tpublic " + type_name(MethodDescriptor("get", descriptor).return_type) + \
        " get() {\n\t\t" + statement + "\n\t}\n"


def test_return_type_override():
    desc = ClassDescriptor("org/apache/commons/collections/MultiHashMap")
    remove = MethodDescriptor("remove", "(Ljava/lang/Object;Ljava/lang/Object;)Ljava/lang/Object;")
    assert print_method(desc, remove, DEFAULT_POLICY) == \
        "\tpublic boolean remove(java.lang.Object arg0, java.lang.Object arg1) {\n\t\treturn false;\n\t}\n"


def test_generic_method():
    m = MethodDescriptor("get", "(Ljava/lang/Class;)Ljava/util/EventListener;",
                         signature="<L::Ljava/util/EventListener;>(Ljava/lang/Class<TL;>;)TL;")
    assert print_method(CLASS, m) == \
        "\tpublic <L extends java.util.EventListener> L get(java.lang.Class<L> arg0) {\n\t\treturn null;\n\t}\n"


def test_modifiers_and_bodies():
    abstract_class = ClassDescriptor("p/Base", ACC_PUBLIC | ACC_SUPER | ACC_ABSTRACT)
    assert print_method(abstract_class, MethodDescriptor("run", "()V", ACC_PUBLIC | ACC_ABSTRACT)) == \
        "\tpublic abstract void run();\n"
    assert print_method(abstract_class, MethodDescriptor("hash", "()I", ACC_PUBLIC | ACC_NATIVE)) == \
        "\tpublic native int hash();\n"
    assert print_method(abstract_class, MethodDescriptor("make", "()Lp/Base;", ACC_PROTECTED | ACC_STATIC)) == \
        "\tprotected static p.Base make() {\n\t\treturn null;\n\t}\n"


def test_interface_methods():
    iface = ClassDescriptor("p/Listener", ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT)
    assert print_method(iface, MethodDescriptor("fire", "()V", ACC_PUBLIC | ACC_ABSTRACT)) == \
        "\tpublic void fire();\n"
    assert print_method(iface, MethodDescriptor("fireTwice", "()V", ACC_PUBLIC)) == \
        "\tpublic default void fireTwice() {\n\t}\n"
    assert print_method(iface, MethodDescriptor("create", "()Lp/Listener;", ACC_PUBLIC | ACC_STATIC)) == \
        "\tpublic static p.Listener create() {\n\t\treturn null;\n\t}\n"


def test_throws_and_varargs():
    m = MethodDescriptor("format", "(Ljava/lang/String;[Ljava/lang/Object;)Ljava/lang/String;",
                         ACC_PUBLIC | ACC_VARARGS, exceptions=("java/io/IOException",))
    assert print_method(CLASS, m) == (
        "\tpublic java.lang.String format(java.lang.String arg0, java.lang.Object... arg1)"
        " throws java.io.IOException {\n\t\treturn null;\n\t}\n"
    )


def test_annotation_elements():
    annotation = ClassDescriptor("p/Marker", ACC_PUBLIC | ACC_INTERFACE | ACC_ABSTRACT | ACC_ANNOTATION)
    value = MethodDescriptor("value", "()Ljava/lang/String;", ACC_PUBLIC | ACC_ABSTRACT,
                             annotation_default=ElementValue("s", "x"))
    count = MethodDescriptor("count", "()I", ACC_PUBLIC | ACC_ABSTRACT)
    assert print_method(annotation, value) == '\tpublic java.lang.String value() default "x";\n'
    assert print_method(annotation, count) == "\tpublic int count();\n"


def test_element_values():
    assert element_value(ElementValue("e", ("Ljava/lang/annotation/RetentionPolicy;", "RUNTIME"))) == \
        "java.lang.annotation.RetentionPolicy.RUNTIME"
    assert element_value(ElementValue("c", "Ljava/lang/String;")) == "java.lang.String.class"
    assert element_value(ElementValue("[", (ElementValue("I", 1), ElementValue("I", 2)))) == "{1, 2}"
    assert element_value(ElementValue("@")) is None


def test_synthetic_bridge_and_private_methods_are_skipped():
    desc = ClassDescriptor("p/Skips", methods=(
        MethodDescriptor("access$000", "()V", ACC_STATIC | ACC_SYNTHETIC),
        MethodDescriptor("compareTo", "(Ljava/lang/Object;)I", ACC_PUBLIC | ACC_BRIDGE | ACC_SYNTHETIC),
        MethodDescriptor("secret", "()V", ACC_PRIVATE),
        MethodDescriptor("visible"),
    ))
    assert print_methods(desc, NO_POLICY) == "\tpublic void visible() {\n\t}\n\n"


def test_raw_body_addition_replaces_same_method():
    desc = ClassDescriptor("p/Context", methods=(
        MethodDescriptor("getContextPath", "()Ljava/lang/String;"),
        MethodDescriptor("getContextPath", "(I)Ljava/lang/String;"),
    ))
    raw = "public String getContextPath() { return null; }"
    policy = OverridePolicy.create(raw_class_body_additions={"p.Context": raw})
    assert print_methods(desc, policy) == (
        "\tpublic java.lang.String getContextPath(int arg0) {\n\t\treturn null;\n\t}\n\n"
        "\t" + raw + "\n\n"
    )
