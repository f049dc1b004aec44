"""
Tycho build root for the generated stub projects.

Each stub project's build.properties names ../../pom.xml as its
tycho.pomless.parent; this module provides that parent POM, listing every
project under bundles/, and the .mvn/extensions.xml that turns on
pomless builds.
"""
from pathlib import Path
from typing import List

TYCHO_VERSION = "2.7.5"

EXTENSIONS_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<extensions>
	<extension>
		<groupId>org.eclipse.tycho</groupId>
		<artifactId>tycho-build</artifactId>
		<version>{TYCHO_VERSION}</version>
	</extension>
</extensions>
"""

POM_HEADER = f"""<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0"
	xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
	xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
	<modelVersion>4.0.0</modelVersion>

	<groupId>bundle-stubs</groupId>
	<artifactId>bundle-stubs-parent</artifactId>
	<version>1.0.0-SNAPSHOT</version>
	<packaging>pom</packaging>

	<properties>
		<tycho-version>{TYCHO_VERSION}</tycho-version>
		<project.build.sourceEncoding>UTF-8</project.build.sourceEncoding>
	</properties>

"""

POM_FOOTER = """	<build>
		<plugins>
			<plugin>
				<groupId>org.eclipse.tycho</groupId>
				<artifactId>tycho-maven-plugin</artifactId>
				<version>${tycho-version}</version>
				<extensions>true</extensions>
			</plugin>
			<plugin>
				<groupId>org.eclipse.tycho</groupId>
				<artifactId>target-platform-configuration</artifactId>
				<version>${tycho-version}</version>
				<configuration>
					<pomDependencies>consider</pomDependencies>
				</configuration>
			</plugin>
		</plugins>
	</build>
</project>
"""


def stub_modules(dest) -> List[str]:
    """The bundle projects under dest/bundles, as POM module paths."""
    bundles = Path(dest) / "bundles"
    if not bundles.is_dir():
        return []
    return sorted(f"bundles/{p.name}" for p in bundles.iterdir()
                  if (p / "build.properties").is_file())


def parent_pom(modules: List[str]) -> str:
    result = [POM_HEADER]
    if modules:
        result.append("\t<modules>\n")
        result.extend(f"\t\t<module>{m}</module>\n" for m in modules)
        result.append("\t</modules>\n\n")
    result.append(POM_FOOTER)
    return "".join(result)

