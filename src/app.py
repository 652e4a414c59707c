"""
cfg.bin Text Editor - Command line entry point.

Extract the text fields of cfg.bin files to JSON/TXT for translation, and
write edited text back, one file at a time or for a whole folder.
"""

import argparse
import os
import sys
from typing import List, Optional

from config.settings import Settings, load_known_names, load_settings
from constants import APP_NAME, APP_VERSION, EDIT_MODES, TEXT_EXTENSIONS
from services.cfgbin_editor import CfgBinEditor, CfgBinError, EditResult, annotate_depth
from services.cfgbin_editor.text_fields import extract_nnk, extract_standard
from utils.formatting import format_size
from utils.logging import init_log_file, update_log_file_path


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Extract and update text fields in Level-5 cfg.bin files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export text to a.cfg.bin.json
  python main.py extract a.cfg.bin

  # Write a_updated.cfg.bin from edited JSON
  python main.py update a.cfg.bin a.cfg.bin.json

  # Patch only the string table, fields keyed by address
  python main.py update a.cfg.bin a.cfg.bin.json --mode nnk

  # Export every cfg.bin in a folder as TXT
  python main.py batch-extract data/ --format txt

Notes:
  An empty value stays an empty string in the rebuilt file. Clearing a
  field does not turn it into a null reference.
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("--config", help="Settings JSON file (default: next to the app)")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--mode", choices=EDIT_MODES, help="Edit mode (default: from settings)")
    common.add_argument(
        "--format",
        dest="text_format",
        choices=sorted(TEXT_EXTENSIONS),
        help="Text exchange format (default: from settings)",
    )
    common.add_argument("--names", help="Extra entry names file for unresolved CRC32s")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("extract", parents=[common], help="Export text fields")
    p.add_argument("cfg_bin", help="Input cfg.bin file")
    p.add_argument("-o", "--output", help="Output text file")

    p = sub.add_parser("update", parents=[common], help="Write edited text back")
    p.add_argument("cfg_bin", help="Input cfg.bin file")
    p.add_argument("text_file", nargs="?", help="Edited JSON/TXT (default: <cfg_bin>.json)")
    p.add_argument("-o", "--output", help="Output cfg.bin (default: <stem>_updated.cfg.bin)")

    p = sub.add_parser("info", parents=[common], help="Show header, encoding and entries")
    p.add_argument("cfg_bin", help="Input cfg.bin file")

    p = sub.add_parser("batch-extract", parents=[common], help="Export every cfg.bin in a folder")
    p.add_argument("folder")
    p.add_argument("--no-recursive", action="store_true", help="Only the top folder")

    p = sub.add_parser("batch-update", parents=[common], help="Update every cfg.bin in a folder")
    p.add_argument("folder")
    p.add_argument("--no-recursive", action="store_true", help="Only the top folder")

    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.mode:
        settings.mode = args.mode
    if args.text_format:
        settings.text_format = args.text_format
    if args.names:
        settings.names_file = args.names
    if getattr(args, "no_recursive", False):
        settings.recursive = False
    return settings


def _print_progress(fraction: float, message: str):
    print(f"  [{fraction * 100:5.1f}%] {message}")


def _report(results: List[EditResult]) -> int:
    failed = [r for r in results if not r.success]
    for r in failed:
        print(f"  FAIL: {r.source_path}: {r.error}")
    print(f"\n{len(results) - len(failed)} succeeded, {len(failed)} failed")
    return 1 if failed else 0


def _show_info(editor: CfgBinEditor, cfg_path: str) -> int:
    try:
        container = editor.load(cfg_path)
    except (CfgBinError, OSError) as e:
        print(f"Failed to parse {cfg_path}: {e}")
        return 1

    header = container.header
    print(f"File: {cfg_path} ({format_size(len(container.source))})")
    print(f"  Encoding: {container.encoding.name} (flag {container.footer.encoding_flag})")
    print(f"  Entries: {header.entry_count}")
    print(
        f"  String table: 0x{header.string_table_offset:X}, "
        f"{header.string_table_length} bytes, {header.string_table_count} strings"
    )
    print(f"  Key table: {len(container.key_table)} names")
    print(f"  Text fields: {len(extract_standard(container))} ({len(extract_nnk(container))} addressable)")
    if container.unresolved:
        print(f"  Unresolved names: {len(container.unresolved)}")
    print()
    for depth, entry in annotate_depth(container.entries):
        if entry.is_end_marker:
            print(f"{'  ' * depth}{entry.display_name}")
            continue
        values = ", ".join(repr(var.value) for var in entry.variables)
        print(f"{'  ' * depth}{entry.display_name}({values})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    settings = _apply_overrides(load_settings(args.config), args)
    update_log_file_path(settings.log_dir)
    init_log_file()
    editor = CfgBinEditor(
        settings,
        on_status=print,
        extra_names=load_known_names(settings.names_file),
    )

    if args.command == "extract":
        result = editor.extract(args.cfg_bin, args.output)
        if not result.success:
            print(f"Extract failed: {result.error}")
            return 1
        return 0

    if args.command == "update":
        result = editor.update(args.cfg_bin, args.text_file, args.output)
        if not result.success:
            print(f"Update failed: {result.error}")
            return 1
        return 0

    if args.command == "info":
        return _show_info(editor, args.cfg_bin)

    if not os.path.isdir(args.folder):
        print(f"Not a folder: {args.folder}")
        return 1

    if args.command == "batch-extract":
        return _report(editor.batch_extract(args.folder, _print_progress))
    return _report(editor.batch_update(args.folder, _print_progress))


if __name__ == "__main__":
    sys.exit(main())
