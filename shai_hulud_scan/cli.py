"""Command line interface: ``shai-hulud-scan [options] [directory]``"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from shai_hulud_scan import __version__, registry
from shai_hulud_scan.config import ScanConfig, setup_logging
from shai_hulud_scan.errors import InvalidTargetDirectory
from shai_hulud_scan.reporting import ReportGenerator
from shai_hulud_scan.scanner import ShaiHuludScanner

EPILOG = """
examples:
  shai-hulud-scan                    # Scan current directory
  shai-hulud-scan --json             # JSON format output
  shai-hulud-scan /path/to/project   # Scan specified directory
  shai-hulud-scan -d ./src --json    # Scan src directory and output JSON

The tool recursively scans package-lock.json, yarn.lock and pnpm-lock.yaml
files for npm packages and versions compromised in the Shai-Hulud attack.
Exit status is 1 when any compromised package is found.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shai-hulud-scan",
        description="🔍 Shai-Hulud supply chain attack detection tool",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("directory", nargs="?", help="Directory to scan (default: current directory)")
    parser.add_argument("-d", "--dir", dest="dir", help="Directory to scan, overrides the positional argument")
    parser.add_argument("--json", action="store_true", help="Output results in JSON format")
    parser.add_argument("--group-by", choices=["lockfile", "package"], default="lockfile",
                        help="Group findings by lockfile (default) or by package")
    parser.add_argument("--list-lockfiles", action="store_true",
                        help="List discovered lockfiles without checking packages")
    parser.add_argument("--known-bad", metavar="FILE",
                        help="Known-bad list, one name@version per line (default: bundled list)")
    parser.add_argument("--workers", type=int, help="Lockfiles parsed in parallel (default: 4)")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-file", help="Also write log messages to this file")
    parser.add_argument("-o", "--output", help="Also save the report to this file")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_target(args: argparse.Namespace) -> str:
    target = args.dir or args.directory or os.getcwd()
    if not os.path.isdir(target):
        raise InvalidTargetDirectory(target)
    return target


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = ScanConfig.from_args(args)
    setup_logging(config)

    try:
        target = resolve_target(args)
    except InvalidTargetDirectory as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    known_bad = registry.load(config.known_bad_path)
    scanner = ShaiHuludScanner(config, known_bad)
    reporter = ReportGenerator(config)

    try:
        if args.list_lockfiles:
            output = reporter.render_lockfile_list(scanner.list_lockfiles(target))
            exit_code = 0
        else:
            result = scanner.scan(target)
            output = reporter.render(result)
            exit_code = 0 if result.is_clean else 1

        print(output)
        if config.output_file:
            reporter.save_report(output, config.output_file)
    except KeyboardInterrupt:
        print("\n[!] Scan interrupted by user", file=sys.stderr)
        return 1
    except Exception as e:
        logging.error(f"Scan failed: {e}")
        print(f"❌ Error occurred during scanning: {e}", file=sys.stderr)
        return 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
