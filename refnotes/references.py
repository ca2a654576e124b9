"""
Reference note workflows.

Three commands operate on a vault:

- paste: turn copied text (passage + BibTeX) into a callout in a content
  note and record the citation in the entry's reference note
- bibliography: regenerate the ``## Bibliography`` section of a content note
  from the reference notes it links to
- export: write every entry in the reference folder to one .bib file

Each command computes new note bodies completely before writing them.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Tuple
import logging
import re
import threading

from .clipboard import split_clipboard
from .config import Settings
from .entry import Entry, parse_entry
from .exceptions import MissingCiteKeyError, ReferenceFolderMissingError, UnreadableNoteError
from .formatter import format_bibliography_list, format_inline
from .metadata import extract_reference
from .notes import (
    CounterStore,
    insert_callout,
    mint_block_id,
    render_callout,
    render_citation_line,
    render_link_back,
    render_reference_note,
    replace_bibliography,
    upsert_citation,
)
from .vault import Vault

logger = logging.getLogger(__name__)

# [[target]], [[target#heading]], [[target#^block|alias]]; embeds excluded
_WIKILINK = re.compile(r'(?<!!)\[\[([^\[\]|#]+)(?:#[^\[\]|]*)?(?:\|[^\[\]]*)?\]\]')


class ReferenceStatus(Enum):
    """What a paste did to the reference note."""
    CREATED = 'created'
    UPDATED = 'updated'
    UNCHANGED = 'unchanged'


@dataclass
class PasteResult:
    """Outcome of a paste.

    Attributes:
        entry: Parsed entry
        callout: Callout inserted into the content note
        inline_citation: Inline citation used in the callout
        block_id: Block identifier of the callout
        page: Page of the passage, if any
        reference_path: Path of the reference note
        status: Whether the reference note was created or updated
    """
    entry: Entry
    callout: str
    inline_citation: str
    block_id: str
    page: Optional[str]
    reference_path: str
    status: ReferenceStatus


@dataclass
class BibliographyResult:
    """Outcome of regenerating a bibliography section."""
    entries: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    changed: bool = False


@dataclass
class ExportResult:
    """Outcome of an export."""
    path: str
    entries: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def written(self) -> bool:
        return bool(self.entries)


def find_links(text: str) -> List[str]:
    """Return the unique wikilink targets of a note, in order of appearance."""
    targets = []
    for match in _WIKILINK.finditer(text):
        target = match.group(1).strip()
        if target and target not in targets:
            targets.append(target)
    return targets


class ReferenceManager:
    """Run paste, bibliography and export commands against a vault.

    Commands are serialized: concurrent calls on one manager run one at a
    time, so pastes into the same note never race on its counter or body.

    Example:
        ```python
        manager = ReferenceManager(Vault("~/notes"), Settings(reference_folder="refs"))
        result = manager.paste(copied_text, "Romans.md")
        manager.build_bibliography("Romans.md")
        ```

    Args:
        vault: Notes directory
        settings: Folder, style and callout settings
        counters: Block identifier counters (persisted by the caller)
    """

    def __init__(
        self,
        vault: Vault,
        settings: Optional[Settings] = None,
        counters: Optional[CounterStore] = None
    ):
        self.vault = vault
        self.settings = settings or Settings()
        self.counters = counters if counters is not None else CounterStore()
        self._lock = threading.RLock()

    def paste(self, clipboard_text: str, note_path: str, insert: bool = True) -> PasteResult:
        """Cite a copied passage in a content note.

        Args:
            clipboard_text: Copied passage followed by its BibTeX record
            note_path: Content note receiving the callout
            insert: Write the callout into the content note. Pass False when
                the caller inserts ``PasteResult.callout`` itself.

        Returns:
            PasteResult

        Raises:
            MissingCiteKeyError: If the text has no usable BibTeX record
                (nothing is written)
            UnreadableNoteError: If an existing note cannot be read (nothing
                is written)
            OSError: If a note cannot be written
        """
        with self._lock:
            payload = split_clipboard(clipboard_text)
            if not payload.has_entry:
                raise MissingCiteKeyError("No BibTeX record found after the copied text")

            entry = parse_entry(payload.entry_text)
            style = self.settings.bibliography_format
            inline_citation = format_inline(entry, payload.page, style)
            reference_path = self.settings.reference_path(entry.citekey)

            # Both notes are read before a block id is reserved or anything is written
            reference_text = self._read_existing(reference_path)
            note_text = self._read_existing(note_path) if insert else None

            block_id = mint_block_id(entry.citekey, note_path, self.counters)

            callout = render_callout(
                self.settings.citation_callout_type,
                payload.main_text,
                reference_path,
                inline_citation,
                block_id,
            )
            note_name = PurePosixPath(note_path).stem
            citation_line = render_citation_line(render_link_back(note_name, block_id, payload.page))

            status, new_reference_text = self._updated_reference_note(reference_text, entry, citation_line)
            new_note_text = None
            if insert:
                base = new_reference_text if note_path == reference_path else note_text
                new_note_text = insert_callout(base or '', callout)

            if status is ReferenceStatus.CREATED:
                folder = self.settings.reference_folder
                if folder and not self.vault.is_folder(folder):
                    self.vault.create_folder(folder)
            if status is not ReferenceStatus.UNCHANGED:
                self.vault.write(reference_path, new_reference_text)
            logger.info(f"Reference note {status.value}: {reference_path}")

            if new_note_text is not None:
                self.vault.write(note_path, new_note_text)

            return PasteResult(
                entry=entry,
                callout=callout,
                inline_citation=inline_citation,
                block_id=block_id,
                page=payload.page,
                reference_path=reference_path,
                status=status,
            )

    def _read_existing(self, path: str) -> Optional[str]:
        """Read a note, or return None if it doesn't exist yet."""
        return self.vault.read(path) if self.vault.exists(path) else None

    @staticmethod
    def _updated_reference_note(
        text: Optional[str],
        entry: Entry,
        citation_line: str
    ) -> Tuple[ReferenceStatus, str]:
        """Compute the new reference note text without writing it."""
        if text is None:
            return ReferenceStatus.CREATED, render_reference_note(entry.without('pages'), citation_line)

        updated = upsert_citation(text, citation_line)
        if updated == text:
            return ReferenceStatus.UNCHANGED, text
        return ReferenceStatus.UPDATED, updated

    def build_bibliography(self, note_path: str) -> BibliographyResult:
        """Regenerate the bibliography section of a content note.

        Every linked note holding an entry contributes one bibliography entry,
        in link order, with literal duplicates dropped. Unreadable links are
        skipped. The note is only written if its text changes; a note without
        any linked entries is left untouched.

        Args:
            note_path: Content note

        Returns:
            BibliographyResult

        Raises:
            UnreadableNoteError: If the content note itself cannot be read
        """
        with self._lock:
            text = self.vault.read(note_path)

            paths = []
            for target in find_links(text):
                path = self.vault.resolve_link(target)
                if path != note_path:
                    paths.append(path)

            entries, skipped = self._collect_entries(paths, unique=True)
            if not entries:
                logger.info(f"No references found in linked notes of {note_path}")
                return BibliographyResult(entries=[], skipped=skipped, changed=False)

            rendered = format_bibliography_list(entries, self.settings.bibliography_format)
            updated = replace_bibliography(text, rendered)
            changed = updated != text
            if changed:
                self.vault.write(note_path, updated)

            return BibliographyResult(entries=entries, skipped=skipped, changed=changed)

    def export(self, output_path: Optional[str] = None) -> ExportResult:
        """Export every entry in the reference folder to a .bib file.

        Args:
            output_path: Export path in the vault (default from settings)

        Returns:
            ExportResult. Nothing is written when no entries are found.

        Raises:
            ReferenceFolderMissingError: If the reference folder doesn't exist
        """
        output_path = output_path or self.settings.export_filename
        folder = self.settings.reference_folder

        with self._lock:
            if not self.vault.is_folder(folder):
                raise ReferenceFolderMissingError(f"Reference folder not found: {folder or '/'}")

            notes = [path for path in self.vault.list_children(folder) if path.endswith('.md')]
            entries, skipped = self._collect_entries(notes, unique=False)

            if entries:
                self.vault.write(output_path, '\n\n'.join(entries))
                logger.info(f"Exported {len(entries)} references to {output_path}")

            return ExportResult(path=output_path, entries=entries, skipped=skipped)

    def _collect_entries(self, paths: Iterable[str], unique: bool) -> Tuple[List[str], List[str]]:
        """Read entries from notes, skipping unreadable ones.

        Returns:
            Tuple of (entry texts, skipped note paths)
        """
        entries: List[str] = []
        skipped: List[str] = []

        for path in paths:
            try:
                text = self.vault.read(path)
            except UnreadableNoteError as e:
                logger.warning(f"Skipping {path}: {e}")
                skipped.append(path)
                continue

            entry = extract_reference(text)
            if entry is None:
                logger.debug(f"No entry in {path}")
                continue
            if unique and entry in entries:
                continue
            entries.append(entry)

        return entries, skipped
