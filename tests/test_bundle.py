from bundle_stubgen.bundle import embedded_jar_paths, parse_manifest, parse_properties, read_bundle_info

from .classbuilder import manifest, write_jar


def test_parse_manifest_joins_continuation_lines():
    text = (
        "Manifest-Version: 1.0\r\n"
        "Export-Package: com.example.api,com.exam\r\n"
        " ple.spi\r\n"
        "Bundle-SymbolicName: com.example; singleton:=true\r\n"
        "\r\n"
        "Name: com/example/Foo.class\r\n"
        "SHA-256-Digest: abc\r\n"
    )
    headers = parse_manifest(text)
    assert headers["Export-Package"] == "com.example.api,com.example.spi"
    assert headers["Bundle-SymbolicName"] == "com.example; singleton:=true"
    assert "SHA-256-Digest" not in headers


def test_parse_properties():
    props = parse_properties(
        "# comment\n"
        "! other comment\n"
        "bundleName = Example Bundle\n"
        "vendor:ACME\n"
        "long=first \\\n"
        "    second\n"
        "empty\n"
    )
    assert props == {
        "bundleName": "Example Bundle",
        "vendor": "ACME",
        "long": "first second",
        "empty": "",
    }


def test_read_bundle_info_localizes_headers(tmp_path):
    jar = write_jar(tmp_path / "com.example_1.0.0.jar", {
        "META-INF/MANIFEST.MF": manifest(
            Bundle_SymbolicName="com.example;singleton:=true",
            Bundle_Version="1.0.0.v2024",
            Bundle_Name="%bundleName",
            Bundle_Vendor="%vendor",
            Require_Bundle='org.eclipse.core.runtime;bundle-version="3.0",com.example.util',
            Bundle_ClassPath=".,lib/extra.jar",
            Export_Package='com.example.api;version="1.0"',
        ),
        "plugin.properties": "bundleName=Example\nvendor=ACME Corp\n",
    })
    info = read_bundle_info(jar)
    assert info.symbolic_name == "com.example"
    assert info.version == "1.0.0.v2024"
    assert info.name == "Example"
    assert info.embedded_jars == ["lib/extra.jar"]
    assert info.exported_packages == {"com.example.api"}
    assert info.file_path == str(jar)
    assert not info.is_source_bundle


def test_bundle_localization_header(tmp_path):
    jar = write_jar(tmp_path / "b.jar", {
        "META-INF/MANIFEST.MF": manifest(
            Bundle_SymbolicName="b",
            Bundle_Name="%name",
            Bundle_Localization="OSGI-INF/l10n/custom",
        ),
        "OSGI-INF/l10n/custom.properties": "name=Custom Name\n",
    })
    assert read_bundle_info(jar).name == "Custom Name"


def test_unresolved_localization_keeps_key(tmp_path):
    jar = write_jar(tmp_path / "b.jar", {
        "META-INF/MANIFEST.MF": manifest(Bundle_SymbolicName="b", Bundle_Name="%missing"),
    })
    info = read_bundle_info(jar)
    assert info.name == "%missing"
    assert info.version == "0.0.0"


def test_source_bundles(tmp_path):
    source = write_jar(tmp_path / "a.source.jar", {
        "META-INF/MANIFEST.MF": manifest(Bundle_SymbolicName="com.example.source"),
    })
    assert read_bundle_info(source).is_source_bundle

    marked = write_jar(tmp_path / "b.jar", {
        "META-INF/MANIFEST.MF": manifest(Bundle_SymbolicName="b", Eclipse_SourceBundle='a;version="1.0"'),
    })
    assert read_bundle_info(marked).is_source_bundle

    name_only = write_jar(tmp_path / "c.jar", {
        "META-INF/MANIFEST.MF": manifest(Bundle_SymbolicName="c", Bundle_Name="c.source"),
    })
    assert not read_bundle_info(name_only).is_source_bundle


def test_plain_jar_is_not_a_bundle(tmp_path):
    jar = write_jar(tmp_path / "plain.jar", {"META-INF/MANIFEST.MF": manifest(Main_Class="Foo")})
    assert read_bundle_info(jar) is None
    empty = write_jar(tmp_path / "empty.jar", {"readme.txt": "x"})
    assert read_bundle_info(empty) is None


def test_embedded_jar_paths():
    assert embedded_jar_paths('.,lib/a.jar;x=1,classes/,lib/B.JAR') == ["lib/a.jar", "lib/B.JAR"]
    assert embedded_jar_paths(None) == []
