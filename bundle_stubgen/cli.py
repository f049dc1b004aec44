import argparse
import logging
import sys
from typing import Dict, List, Optional

from .config import DEFAULT_POLICY, OverridePolicy
from .errors import ConfigurationError, StubWriteError
from .writer import GenerationStats, find_bundles, generate_stub_projects


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def print_statistics(stats: GenerationStats, verbose: bool = False) -> None:
    print("=== Stub Generation Statistics ===", file=sys.stderr)
    print(f"Bundles found: {stats.bundles_found}", file=sys.stderr)
    print(f"Bundles processed: {stats.bundles_processed}", file=sys.stderr)
    print(f"Bundles skipped: {stats.bundles_skipped}", file=sys.stderr)
    print(f"Bundles failed: {stats.bundles_failed}", file=sys.stderr)
    print(f"Class files seen: {stats.class_files}", file=sys.stderr)
    print(f"Outside exported packages: {stats.not_exported}", file=sys.stderr)
    print(f"Parse errors: {stats.parse_errors}", file=sys.stderr)
    print(f"Classes skipped by policy: {stats.classes_skipped}", file=sys.stderr)
    print(f"Render errors: {stats.render_errors}", file=sys.stderr)
    print(f"Source files written: {stats.files_written}", file=sys.stderr)
    print("=== End Statistics ===", file=sys.stderr)

    if stats.failures:
        print("\n=== Failure Summary ===", file=sys.stderr)
        print(f"Total failures: {len(stats.failures)}", file=sys.stderr)
        if not verbose:
            print("Use --verbose to see every failure", file=sys.stderr)
        failure_types: Dict[str, int] = {}
        for name, message in stats.failures:
            failure_type = message.split("\n")[0].split(":")[0].strip()
            failure_types[failure_type] = failure_types.get(failure_type, 0) + 1
            if verbose:
                print(f"  {name}: {message}", file=sys.stderr)
        print("Failure types:", file=sys.stderr)
        for failure_type, count in sorted(failure_types.items(), key=lambda x: x[1], reverse=True):
            print(f"  {failure_type}: {count}", file=sys.stderr)
        print("=== End Failure Summary ===", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="bundle-stubgen",
        description="Generate Java source stub projects from compiled OSGi bundles")
    ap.add_argument("bundles", help="Directory of bundle JARs (its plugins/ subdirectory is used when present)")
    ap.add_argument("-o", "--dest", default="stubs", help="Output directory (default: stubs)")
    ap.add_argument("--jdk", action="append", default=[], help="JDK home, jmods directory or rt.jar used to resolve superclasses (repeatable)")
    ap.add_argument("--classpath", action="append", default=[], help="Extra JAR used to resolve superclasses (repeatable)")
    ap.add_argument("--overrides", help="JSON file of overrides merged over the built-in table")
    ap.add_argument("--bundle", action="append", default=[], help="Only process the bundle with this symbolic name (repeatable)")
    ap.add_argument("--sources-only", action="store_true", help="Write only the src trees, no manifests or build.properties")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    policy: OverridePolicy = DEFAULT_POLICY
    if args.overrides:
        try:
            policy = OverridePolicy.load(args.overrides, DEFAULT_POLICY)
        except ConfigurationError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2

    try:
        found = find_bundles(args.bundles)
    except OSError as e:
        print(f"ERROR: Unable to list bundles in {args.bundles}: {e}", file=sys.stderr)
        return 1
    if not found:
        print(f"ERROR: No bundle JARs found in {args.bundles}.", file=sys.stderr)
        return 1

    try:
        stats = generate_stub_projects(
            args.bundles,
            args.dest,
            jdk=args.jdk,
            classpath=args.classpath,
            policy=policy,
            only=set(args.bundle) or None,
            sources_only=args.sources_only,
        )
    except StubWriteError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print_statistics(stats, args.verbose)

    if stats.bundles_failed:
        print(f"WARNING: {stats.bundles_failed} bundles could not be written.", file=sys.stderr)
        return 1
    return 0
