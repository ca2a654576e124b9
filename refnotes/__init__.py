"""
refnotes - citation management for Markdown note vaults.

Turn a copied passage plus its BibTeX record into a quoted callout, keep one
reference note per source with links back to every citation, and regenerate
per-note bibliographies in LaTeX, MLA, APA or Chicago style.

Main functions:
    - ReferenceManager: Paste, bibliography and export workflows
    - parse_entry / serialize_entry: BibTeX-like entry text
    - entry_to_metadata / metadata_to_entry: Front-matter codec
    - format_inline / format_bibliography: Citation formatting

Example:
    >>> from refnotes import ReferenceManager, Settings, Vault
    >>> manager = ReferenceManager(Vault('~/notes'), Settings(reference_folder='refs'))
    >>> result = manager.paste(copied_text, 'Romans.md')
    >>> manager.build_bibliography('Romans.md')
"""

__version__ = '0.1.0'

from .clipboard import ClipboardPayload, split_clipboard
from .config import Settings, get_config_dir
from .entry import Entry, extract_citekey, extract_field, normalize_citekey, parse_entry, serialize_entry
from .exceptions import (
    MissingCiteKeyError,
    RefNotesError,
    ReferenceFolderMissingError,
    UnreadableNoteError,
)
from .formatter import (
    CitationStyle,
    FormatResult,
    format_bibliography,
    format_bibliography_list,
    format_inline,
)
from .metadata import entry_to_metadata, extract_reference, metadata_to_entry
from .notes import CounterStore, insert_callout, mint_block_id, replace_bibliography, upsert_citation
from .references import ReferenceManager, ReferenceStatus
from .user_config import UserConfig, get_user_config
from .vault import Vault

__all__ = [
    'ClipboardPayload',
    'split_clipboard',
    'Settings',
    'get_config_dir',
    'Entry',
    'extract_citekey',
    'extract_field',
    'normalize_citekey',
    'parse_entry',
    'serialize_entry',
    'RefNotesError',
    'MissingCiteKeyError',
    'UnreadableNoteError',
    'ReferenceFolderMissingError',
    'CitationStyle',
    'FormatResult',
    'format_bibliography',
    'format_bibliography_list',
    'format_inline',
    'entry_to_metadata',
    'extract_reference',
    'metadata_to_entry',
    'CounterStore',
    'insert_callout',
    'mint_block_id',
    'replace_bibliography',
    'upsert_citation',
    'ReferenceManager',
    'ReferenceStatus',
    'UserConfig',
    'get_user_config',
    'Vault',
]
