#!/usr/bin/env python3
"""
Command-line interface for tes_extract

Parses every .bsa / .ba2 archive in a Data folder, optionally prints their
headers, lists files by extension and writes them to an output folder.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tes_extract import constants, utils
from tes_extract.archive import Archive, ExtensionSet
from tes_extract.autodetect import SUPPORTED_GAMES, autodetect_data_path
from tes_extract.models import FormatVariant


logger = logging.getLogger("tes_extract.cli")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def get_extension_set(args: argparse.Namespace) -> ExtensionSet:
    """Build the extension filter from -a / -e."""
    if args.all:
        return ExtensionSet.ALL
    if args.extensions:
        # -e may be repeated and each value may hold a comma-separated list
        return ExtensionSet.of(ext for value in args.extensions for ext in value.split(","))
    return ExtensionSet.NONE


def parse_archives(data_path: Path, show_header: bool = False) -> List[Archive]:
    """
    Parse every archive directly inside data_path (not recursive).

    Args:
        data_path: Folder to search
        show_header: Print each archive's header

    Returns:
        Parsed archives, sorted by file name
    """
    archives = []
    for file_path in sorted(data_path.iterdir()):
        if not file_path.is_file() or file_path.suffix.lower() not in constants.ARCHIVE_EXTENSIONS:
            continue

        print(f"Parsing {file_path}")
        archive = Archive.from_file(file_path)
        if show_header:
            print(archive.header)
        archives.append(archive)
    return archives


def extract_archive(archive: Archive, extension_set: ExtensionSet, output_dir: Optional[Path]) -> int:
    """
    List (and optionally write out) the files matching extension_set.

    Args:
        archive: Archive to read
        extension_set: Extensions to select
        output_dir: Folder to write files into, or None to only list them

    Returns:
        Number of files written
    """
    if output_dir is None or archive.header.version is FormatVariant.FALLOUT4_TEXTURES:
        if output_dir is not None:
            logger.warning(f"Extraction is not supported for texture archives, listing {archive.path.name} only")
        for file_name in archive.get_by_extension(extension_set):
            print(file_name)
        return 0

    written = 0
    for file_name, file_data in archive.extract_many_by_extension(extension_set):
        print(file_name)
        utils.dump_to_file(output_dir, file_name, file_data)
        written += 1
    return written


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="tes-extract",
        description="Parse and extract Bethesda .bsa / .ba2 archives",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n"
               "  tes-extract -d Data --header              # Print archive headers\n"
               "  tes-extract -d Data -e nif,dds            # List meshes and textures\n"
               "  tes-extract -g skyrimse -a -o extracted   # Extract everything\n"
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "-g", "--game",
        type=str.lower,
        choices=SUPPORTED_GAMES,
        help="The game to autodetect files for (Windows only)"
    )
    source.add_argument(
        "-d", "--directory",
        type=Path,
        help="Path to search for files in (not recursive), e.g. the game's Data folder"
    )

    parser.add_argument(
        "-H", "--header",
        action="store_true",
        help="Print the header of each archive"
    )

    find = parser.add_mutually_exclusive_group()
    find.add_argument(
        "-e", "--extensions",
        action="append",
        metavar="EXT",
        help="A list of file extensions to find (e.g. '-e png,nif,wav')"
    )
    find.add_argument(
        "-a", "--all",
        action="store_true",
        help="Find all file extensions"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Folder to write found files to (requires -e or -a)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args(argv)

    if args.output is not None and not (args.all or args.extensions):
        parser.error("-o/--output requires -e/--extensions or -a/--all")

    setup_logging(args.verbose)

    try:
        if args.game:
            data_path = autodetect_data_path(args.game)
        else:
            data_path = args.directory

        if not data_path.is_dir():
            raise ValueError(f"Not a directory: {data_path}")

        archives = parse_archives(data_path, args.header)

        extension_set = get_extension_set(args)
        written = 0
        for archive in archives:
            written += extract_archive(archive, extension_set, args.output)

        if args.output is not None:
            print(f"Wrote {written} files to {args.output}")
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("All done. Thanks for using tes-extract!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
