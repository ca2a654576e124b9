"""Tests for the paste, bibliography and export workflows."""

from pathlib import Path

import pytest

from refnotes.config import Settings
from refnotes.entry import serialize_entry
from refnotes.exceptions import MissingCiteKeyError, ReferenceFolderMissingError, UnreadableNoteError
from refnotes.notes import CounterStore
from refnotes.references import ReferenceManager, ReferenceStatus, find_links


WRIGHT_NOTE = (
    '---\n'
    'type: book\n'
    'citekey: Wright2013\n'
    'author: "Wright, N. T."\n'
    'title: "Paul and the Faithfulness of God"\n'
    'year: "2013"\n'
    'publisher: "Fortress Press"\n'
    '---\n'
    '\n'
    '## Citations\n'
    '- [[Romans#^Wright2013-1]] → p. 123\n'
)

LEGACY_NOTE = (
    '```bibtex\n'
    '@article{Old2001,\n'
    '  author = {Old, Alice},\n'
    '  title = {Ancient Things},\n'
    '  journal = {Past Review},\n'
    '  year = {2001},\n'
    '}\n'
    '```\n'
    '\n'
    '## Citations\n'
    '- [[Notes#^Old2001-1]]\n'
)


@pytest.fixture
def manager(vault) -> ReferenceManager:
    return ReferenceManager(vault, Settings(reference_folder='refs'))


class TestFindLinks:
    """Test wikilink collection."""

    def test_targets_in_order(self):
        text = 'See [[B]], [[A|alias]] and [[C#^block|Cite]] then [[B#Heading]].'
        assert find_links(text) == ['B', 'A', 'C']

    def test_embeds_and_empty_targets_skipped(self):
        assert find_links('![[image.png]] [[#^local]] [[ Real ]]') == ['Real']


class TestPaste:
    """Test ReferenceManager.paste()."""

    def test_creates_reference_note(self, manager, vault_dir, clipboard_text):
        result = manager.paste(clipboard_text, 'Romans.md')

        assert result.status is ReferenceStatus.CREATED
        assert result.reference_path == 'refs/Wright2013.md'
        assert result.block_id == 'Wright2013-1'
        assert result.inline_citation == 'Wright2013, p. 123'
        assert result.page == '123'
        assert (vault_dir / 'refs' / 'Wright2013.md').read_text(encoding='utf-8') == WRIGHT_NOTE

    def test_inserts_callout(self, manager, vault_dir, clipboard_text):
        result = manager.paste(clipboard_text, 'Romans.md')

        expected = (
            '> [!Logos Ref]\n'
            '> The righteousness of God is revealed.\n'
            '> [[refs/Wright2013.md|Wright2013, p. 123]] ^Wright2013-1\n'
        )
        assert result.callout + '\n' == expected
        assert (vault_dir / 'Romans.md').read_text(encoding='utf-8') == expected

    def test_appends_to_existing_note(self, manager, vault_dir, write_note, clipboard_text):
        write_note('Romans.md', '# Romans\n\nMy thoughts.\n')
        result = manager.paste(clipboard_text, 'Romans.md')
        text = (vault_dir / 'Romans.md').read_text(encoding='utf-8')
        assert text == f'# Romans\n\nMy thoughts.\n\n{result.callout}\n'

    def test_second_paste_updates_reference_note(self, manager, vault_dir, clipboard_text):
        manager.paste(clipboard_text, 'Romans.md')
        result = manager.paste(clipboard_text.replace('{123}', '{200-201}'), 'Romans.md')

        assert result.status is ReferenceStatus.UPDATED
        assert result.block_id == 'Wright2013-2'
        reference = (vault_dir / 'refs' / 'Wright2013.md').read_text(encoding='utf-8')
        assert reference == WRIGHT_NOTE + '- [[Romans#^Wright2013-2]] → p. 200-201\n'

        note = (vault_dir / 'Romans.md').read_text(encoding='utf-8')
        assert note.count('> [!Logos Ref]') == 2

    def test_repeated_link_leaves_reference_note_unchanged(self, vault, vault_dir, clipboard_text):
        """Test the same link back is only listed once."""
        ReferenceManager(vault, Settings(reference_folder='refs'), CounterStore()).paste(clipboard_text, 'Romans.md')
        result = ReferenceManager(vault, Settings(reference_folder='refs'), CounterStore()).paste(
            clipboard_text, 'Romans.md'
        )

        assert result.status is ReferenceStatus.UNCHANGED
        assert (vault_dir / 'refs' / 'Wright2013.md').read_text(encoding='utf-8') == WRIGHT_NOTE

    def test_reference_folder_at_root(self, vault, vault_dir, clipboard_text):
        result = ReferenceManager(vault).paste(clipboard_text, 'Romans.md')
        assert result.reference_path == 'Wright2013.md'
        assert (vault_dir / 'Wright2013.md').exists()

    def test_link_back_uses_note_name(self, manager, vault_dir, clipboard_text):
        manager.paste(clipboard_text, 'letters/Romans.md')
        reference = (vault_dir / 'refs' / 'Wright2013.md').read_text(encoding='utf-8')
        assert '- [[Romans#^Wright2013-1]] → p. 123' in reference

    def test_style_and_callout_type(self, vault, clipboard_text):
        settings = Settings(bibliography_format='apa', citation_callout_type='Quote')
        result = ReferenceManager(vault, settings).paste(clipboard_text, 'Romans.md', insert=False)
        assert result.inline_citation == '(Wright, 2013, p. 123)'
        assert result.callout.startswith('> [!Quote]\n')
        assert not vault.exists('Romans.md')

    def test_counter_persisted(self, vault, clipboard_text):
        saved = []
        manager = ReferenceManager(vault, Settings(), CounterStore(persist=saved.append))
        manager.paste(clipboard_text, 'Romans.md')
        assert saved == [{'Romans.md': 1}]

    def test_missing_entry_writes_nothing(self, manager, vault_dir):
        """Test a passage without a record aborts before any write."""
        saved = []
        manager.counters = CounterStore(persist=saved.append)

        with pytest.raises(MissingCiteKeyError):
            manager.paste('Just a passage', 'Romans.md')
        with pytest.raises(MissingCiteKeyError):
            manager.paste('Passage\n@book{, title = {T}}', 'Romans.md')

        assert list(vault_dir.iterdir()) == []
        assert saved == []

    def test_unreadable_content_note_writes_nothing(self, manager, vault_dir, clipboard_text):
        """Test a content note that can't be read leaves the reference folder untouched."""
        saved = []
        manager.counters = CounterStore(persist=saved.append)
        (vault_dir / 'Romans.md').write_bytes(b'\xff\xfe broken')

        with pytest.raises(UnreadableNoteError):
            manager.paste(clipboard_text, 'Romans.md')

        assert not (vault_dir / 'refs' / 'Wright2013.md').exists()
        assert (vault_dir / 'Romans.md').read_bytes() == b'\xff\xfe broken'
        assert saved == []

    def test_unreadable_reference_note_leaves_content_note(self, manager, vault_dir, write_note, clipboard_text):
        write_note('Romans.md', 'Intro\n')
        (vault_dir / 'refs').mkdir()
        (vault_dir / 'refs' / 'Wright2013.md').write_bytes(b'\xff\xfe')

        with pytest.raises(UnreadableNoteError):
            manager.paste(clipboard_text, 'Romans.md')

        assert (vault_dir / 'Romans.md').read_text(encoding='utf-8') == 'Intro\n'


class TestBuildBibliography:
    """Test ReferenceManager.build_bibliography()."""

    def test_latex_bibliography(self, manager, vault_dir, clipboard_text, wright_entry):
        manager.paste(clipboard_text, 'Romans.md')
        result = manager.build_bibliography('Romans.md')

        assert result.changed
        assert result.entries == [serialize_entry(wright_entry)]
        text = (vault_dir / 'Romans.md').read_text(encoding='utf-8')
        assert text.endswith(f'\n\n## Bibliography\n```bibtex\n{serialize_entry(wright_entry)}\n```\n')

    def test_rerun_is_noop(self, manager, vault_dir, clipboard_text):
        manager.paste(clipboard_text, 'Romans.md')
        manager.build_bibliography('Romans.md')
        before = (vault_dir / 'Romans.md').read_text(encoding='utf-8')

        result = manager.build_bibliography('Romans.md')

        assert not result.changed
        assert (vault_dir / 'Romans.md').read_text(encoding='utf-8') == before

    def test_narrative_style(self, vault, vault_dir, clipboard_text):
        manager = ReferenceManager(vault, Settings(reference_folder='refs', bibliography_format='apa'))
        manager.paste(clipboard_text, 'Romans.md')
        manager.build_bibliography('Romans.md')

        text = (vault_dir / 'Romans.md').read_text(encoding='utf-8')
        assert text.endswith(
            '## Bibliography\nWright, N. T. (2013). *Paul and the Faithfulness of God*. Fortress Press.\n'
        )

    def test_callout_goes_before_bibliography(self, manager, vault_dir, clipboard_text):
        manager.paste(clipboard_text, 'Romans.md')
        manager.build_bibliography('Romans.md')
        manager.paste(clipboard_text, 'Romans.md')

        text = (vault_dir / 'Romans.md').read_text(encoding='utf-8')
        assert text.index('^Wright2013-2') < text.index('## Bibliography')

    def test_links_resolved_skipped_and_deduplicated(self, manager, write_note):
        write_note('refs/Old2001.md', LEGACY_NOTE)
        write_note('refs/Copy.md', LEGACY_NOTE)
        write_note('Plain.md', '# No entry here\n')
        write_note('Notes.md', 'See [[refs/Old2001]], [[refs/Copy|again]], [[Plain]] and [[Missing]].\n')

        result = manager.build_bibliography('Notes.md')

        assert result.entries == [
            '@article{Old2001,\n  author = {Old, Alice},\n  title = {Ancient Things},\n'
            '  year = {2001},\n  journal = {Past Review},\n}'
        ]
        assert result.skipped == ['Missing']

    def test_removed_link_removed_from_bibliography(self, manager, vault_dir, write_note):
        write_note('refs/Old2001.md', LEGACY_NOTE)
        write_note('refs/Wright2013.md', WRIGHT_NOTE)
        write_note('Notes.md', 'See [[refs/Old2001]] and [[refs/Wright2013]].\n')
        manager.build_bibliography('Notes.md')

        text = (vault_dir / 'Notes.md').read_text(encoding='utf-8')
        write_note('Notes.md', text.replace(' and [[refs/Wright2013]]', ''))
        result = manager.build_bibliography('Notes.md')

        text = (vault_dir / 'Notes.md').read_text(encoding='utf-8')
        assert len(result.entries) == 1
        assert 'Wright2013' not in text
        assert text.count('## Bibliography') == 1

    def test_no_references_leaves_note(self, manager, vault_dir, write_note):
        write_note('Notes.md', 'Nothing linked.\n')
        result = manager.build_bibliography('Notes.md')
        assert result.entries == []
        assert not result.changed
        assert (vault_dir / 'Notes.md').read_text(encoding='utf-8') == 'Nothing linked.\n'

    def test_missing_content_note(self, manager):
        with pytest.raises(UnreadableNoteError):
            manager.build_bibliography('Missing.md')


class TestExport:
    """Test ReferenceManager.export()."""

    def test_modern_and_legacy_notes(self, manager, vault_dir, write_note, wright_entry):
        """Test one canonical entry per reference note."""
        write_note('refs/Wright2013.md', WRIGHT_NOTE)
        write_note('refs/Old2001.md', LEGACY_NOTE)

        result = manager.export()

        legacy = (
            '@article{Old2001,\n  author = {Old, Alice},\n  title = {Ancient Things},\n'
            '  year = {2001},\n  journal = {Past Review},\n}'
        )
        assert result.written
        assert result.path == 'exported-references.bib'
        assert (vault_dir / 'exported-references.bib').read_text(encoding='utf-8') == (
            f'{legacy}\n\n{serialize_entry(wright_entry)}'
        )

    def test_content_note_bibliography_not_exported(self, vault, vault_dir, clipboard_text, wright_entry):
        """Test a LaTeX bibliography in a content note at the vault root is not read as a reference."""
        manager = ReferenceManager(vault, Settings())
        manager.paste(clipboard_text, 'Romans.md')
        manager.build_bibliography('Romans.md')
        assert '```bibtex' in (vault_dir / 'Romans.md').read_text(encoding='utf-8')

        result = manager.export()

        assert result.entries == [serialize_entry(wright_entry)]

    def test_custom_output_and_ignored_files(self, manager, vault_dir, write_note):
        write_note('refs/Wright2013.md', WRIGHT_NOTE)
        write_note('refs/readme.txt', '```bibtex\n@misc{Txt, title = {T}}\n```')
        write_note('refs/Index.md', '# Index\n')

        result = manager.export('out/library.bib')

        assert len(result.entries) == 1
        assert (vault_dir / 'out' / 'library.bib').exists()

    def test_unreadable_note_skipped(self, manager, vault_dir, write_note):
        write_note('refs/Wright2013.md', WRIGHT_NOTE)
        (vault_dir / 'refs' / 'Broken.md').write_bytes(b'\xff\xfe')

        result = manager.export()

        assert result.skipped == ['refs/Broken.md']
        assert len(result.entries) == 1

    def test_empty_folder_writes_nothing(self, manager, vault_dir):
        (vault_dir / 'refs').mkdir()
        result = manager.export()
        assert not result.written
        assert not (vault_dir / 'exported-references.bib').exists()

    def test_missing_folder(self, manager):
        with pytest.raises(ReferenceFolderMissingError):
            manager.export()
