#!/usr/bin/env python3
"""
Command-line interface for refnotes.

Provides commands for:
- Pasting a copied passage with its BibTeX record into a note
- Regenerating the bibliography section of a note
- Exporting all reference notes to a .bib file
- Configuration
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import get_config_dir
from .exceptions import RefNotesError
from .references import ReferenceManager
from .user_config import UserConfig, get_user_config
from .utils.clipboard import get_copied_text
from .vault import Vault

SETTABLE_KEYS = (
    'vault_directory',
    'reference_folder',
    'bibliography_format',
    'citation_callout_type',
    'export_filename',
)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _load_config(args) -> UserConfig:
    return get_user_config(Path(args.config) if args.config else None)


def _note_path(note: str) -> str:
    note = note.strip().lstrip('/')
    return note if note.endswith('.md') else f'{note}.md'


def _build_manager(args) -> ReferenceManager:
    """Create a reference manager from config and command-line overrides."""
    user_config = _load_config(args)
    vault_dir = Path(args.vault).expanduser() if args.vault else user_config.get_vault_directory()

    try:
        vault = Vault(vault_dir)
    except ValueError as e:
        _fail(str(e))

    return ReferenceManager(vault, user_config.settings(), user_config.counter_store())


def cmd_paste(args):
    """Handle paste subcommand."""
    try:
        clipboard_text = get_copied_text(args.text, args.file)
    except (OSError, ValueError, RuntimeError) as e:
        _fail(str(e))

    manager = _build_manager(args)
    note_path = _note_path(args.note)

    try:
        result = manager.paste(clipboard_text, note_path)
    except (RefNotesError, ValueError, OSError) as e:
        _fail(str(e))

    print(f"Cited {result.entry.citekey} in {note_path} (^{result.block_id})")
    print(f"Reference note {result.status.value}: {result.reference_path}")
    if args.show:
        print()
        print(result.callout)


def cmd_bibliography(args):
    """Regenerate the bibliography section of a note."""
    manager = _build_manager(args)
    note_path = _note_path(args.note)

    try:
        result = manager.build_bibliography(note_path)
    except (RefNotesError, ValueError, OSError) as e:
        _fail(str(e))

    for path in result.skipped:
        print(f"  ⚠ Skipped unreadable note: {path}")

    if not result.entries:
        print("No references found in linked notes")
    elif result.changed:
        print(f"Bibliography updated with {len(result.entries)} reference(s)")
    else:
        print(f"Bibliography already up to date ({len(result.entries)} reference(s))")


def cmd_export(args):
    """Export all reference notes to a .bib file."""
    manager = _build_manager(args)

    try:
        result = manager.export(args.output)
    except (RefNotesError, ValueError, OSError) as e:
        _fail(str(e))

    for path in result.skipped:
        print(f"  ⚠ Skipped unreadable note: {path}")

    if result.written:
        print(f"Exported {len(result.entries)} reference(s) to {result.path}")
    else:
        print("No references found to export")


def cmd_config_show(args):
    """Show current configuration."""
    user_config = _load_config(args)

    print("System Paths:")
    print(f"  Config directory: {get_config_dir()}")
    print(f"  Config file: {user_config.config_file}")
    print()

    config = user_config.show()
    vault_dir = user_config.get_vault_directory()
    exists = "✓" if vault_dir.is_dir() else "✗"

    print("User Configuration:")
    print(f"  Vault directory: {exists} {config.get('vault_directory')}")
    print(f"  Reference folder: {config.get('reference_folder') or '(vault root)'}")
    print(f"  Bibliography format: {user_config.get_bibliography_format().label}")
    print(f"  Callout type: {user_config.get_callout_type()}")
    print(f"  Export file: {config.get('export_filename')}")

    counters = config.get('citation_counters', {})
    if counters:
        print("  Citation counters:")
        for note, value in sorted(counters.items()):
            print(f"    {note}: {value}")
    else:
        print("  Citation counters: (none)")


def cmd_config_set(args):
    """Set a configuration value."""
    if args.key not in SETTABLE_KEYS:
        _fail(f"Unknown setting '{args.key}'. Choose from: {', '.join(SETTABLE_KEYS)}")

    user_config = _load_config(args)
    try:
        user_config.set(args.key, args.value)
    except ValueError as e:
        _fail(str(e))

    print(f"{args.key} set to: {user_config.get(args.key)}")


def cmd_config_reset(args):
    """Reset configuration to defaults."""
    if not args.confirm:
        print("This will reset all configuration (including citation counters) to defaults.")
        print("Run with --confirm to proceed.")
        sys.exit(1)

    user_config = _load_config(args)
    user_config.reset_to_defaults()
    print("Configuration reset to defaults")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='Cite copied passages in Markdown notes and keep bibliographies in sync',
        prog='refnotes'
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug logging')
    parser.add_argument('--vault', help='Vault directory (default: from config)')
    parser.add_argument('--config', help='Custom config file path')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Paste command
    parser_paste = subparsers.add_parser('paste', help='Cite a copied passage in a note')
    parser_paste.add_argument('note', help='Note path in the vault (".md" optional)')
    parser_paste.add_argument('--text', help='Passage and BibTeX record (default: clipboard)')
    parser_paste.add_argument('--file', help='Read passage and BibTeX record from file')
    parser_paste.add_argument('--show', action='store_true', help='Print the inserted callout')
    parser_paste.set_defaults(func=cmd_paste)

    # Bibliography command
    parser_bib = subparsers.add_parser('bibliography', help='Regenerate the bibliography of a note')
    parser_bib.add_argument('note', help='Note path in the vault (".md" optional)')
    parser_bib.set_defaults(func=cmd_bibliography)

    # Export command
    parser_export = subparsers.add_parser('export', help='Export reference notes to a .bib file')
    parser_export.add_argument('--output', help='Output path in the vault (default: from config)')
    parser_export.set_defaults(func=cmd_export)

    # Config command
    parser_config = subparsers.add_parser('config', help='Manage configuration')
    config_subparsers = parser_config.add_subparsers(dest='config_command', help='Config commands')

    parser_config_show = config_subparsers.add_parser('show', help='Show configuration')
    parser_config_show.set_defaults(func=cmd_config_show)

    parser_config_set = config_subparsers.add_parser('set', help='Set a configuration value')
    parser_config_set.add_argument('key', help=f"One of: {', '.join(SETTABLE_KEYS)}")
    parser_config_set.add_argument('value', help='New value')
    parser_config_set.set_defaults(func=cmd_config_set)

    parser_config_reset = config_subparsers.add_parser('reset', help='Reset to default configuration')
    parser_config_reset.add_argument('--confirm', action='store_true', help='Confirm reset')
    parser_config_reset.set_defaults(func=cmd_config_reset)

    # Parse and execute
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    if not hasattr(args, 'func'):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == '__main__':
    main()
