# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for rafkit

Prints the metadata of a RAF file, or writes a copy with the comment of
the embedded JPEG replaced.

Copyright 2025 DNAi inc.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rafkit.core import RAFExif
from rafkit.exceptions import FormatMismatchError, RAFError

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_RAF = 2


def format_output(metadata: Dict[str, Any], json_output: bool = False, short: bool = False) -> str:
    """
    Format metadata output.

    Args:
        metadata: Dictionary of metadata
        json_output: Output as JSON
        short: Drop the group prefix from tag names

    Returns:
        Formatted output string
    """
    if short:
        shortened: Dict[str, Any] = {}
        for tag, value in metadata.items():
            shortened.setdefault(tag.split(':', 1)[-1], value)
        metadata = shortened
    if json_output:
        return json.dumps(metadata, indent=2, ensure_ascii=False, default=str)
    return "\n".join(f"{tag}: {value}" for tag, value in sorted(metadata.items()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rafkit',
        description="rafkit - Read FujiFilm RAF metadata and rewrite the embedded JPEG",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Read all metadata
  rafkit image.raf

  # Read in JSON format without group names
  rafkit -j -s image.raf

  # Write a copy with a new JPEG comment
  rafkit image.raf -o edited.raf --comment "Shot on a rainy day"
        """
    )
    parser.add_argument('file', help='RAF file to process')
    parser.add_argument('-j', '--json', action='store_true', help='Output metadata in JSON format')
    parser.add_argument('-s', '--short', action='store_true', help='Print tag names without group')
    parser.add_argument('-o', '--output', help='Write a rewritten copy to this file')
    parser.add_argument('--comment', help='New comment for the embedded JPEG')
    parser.add_argument('--strict-padding', action='store_true',
                        help='Fail if the padding after the JPEG holds non-zero bytes')
    parser.add_argument('--ignore-minor-errors', action='store_true',
                        help='Do not report untested RAF versions')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Verbose output (-vv for debug)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format='%(levelname)s %(name)s: %(message)s',
        )

    file_path = Path(args.file)
    options = {
        'StrictPadding': args.strict_padding,
        'IgnoreMinorErrors': args.ignore_minor_errors,
    }
    try:
        raf = RAFExif(file_path, read_only=args.output is None, options=options)
        if args.output is None:
            print(format_output(raf.get_all_metadata(), json_output=args.json, short=args.short))
            return EXIT_OK

        if args.comment is not None:
            raf.set_tag('Comment', args.comment)
        result = raf.save(args.output)
        for warning in result.warnings:
            print(f"Warning: {warning.message}", file=sys.stderr)
        print(f"1 image file written: {args.output}")
        return EXIT_OK
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except FormatMismatchError as e:
        print(f"Error: {file_path} is not a RAF file: {e.message}", file=sys.stderr)
        return EXIT_NOT_RAF
    except RAFError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
