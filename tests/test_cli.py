"""Tests for the refnotes command line."""

import pyperclip
import pytest

from refnotes.cli import main
from refnotes.user_config import UserConfig
from refnotes.utils.clipboard import get_copied_text


@pytest.fixture(autouse=True)
def isolated_config_dir(temp_dir, monkeypatch):
    """Keep default config lookups inside the temporary directory."""
    monkeypatch.chdir(temp_dir)
    monkeypatch.setenv('XDG_CONFIG_HOME', str(temp_dir / 'xdg'))


@pytest.fixture
def run(vault_dir, config_file):
    """Run the CLI against the temporary vault and config file."""
    def _run(*args):
        main(['--vault', str(vault_dir), '--config', str(config_file)] + list(args))
    return _run


class TestPasteCommand:
    """Test `refnotes paste`."""

    def test_paste_text(self, run, vault_dir, config_file, clipboard_text, capsys):
        run('paste', 'Romans', '--text', clipboard_text)

        out = capsys.readouterr().out
        assert 'Cited Wright2013 in Romans.md (^Wright2013-1)' in out
        assert 'Reference note created: Wright2013.md' in out
        assert (vault_dir / 'Romans.md').exists()
        assert UserConfig(config_file).get('citation_counters') == {'Romans.md': 1}

    def test_counter_continues_across_runs(self, run, clipboard_text, capsys):
        run('paste', 'Romans.md', '--text', clipboard_text)
        run('paste', 'Romans.md', '--text', clipboard_text, '--show')

        out = capsys.readouterr().out
        assert '(^Wright2013-2)' in out
        assert '> [[Wright2013.md|Wright2013, p. 123]] ^Wright2013-2' in out

    def test_paste_file(self, run, temp_dir, vault_dir, clipboard_text):
        source = temp_dir / 'copied.txt'
        source.write_text(clipboard_text, encoding='utf-8')
        run('paste', 'Romans', '--file', str(source))
        assert (vault_dir / 'Wright2013.md').exists()

    def test_paste_from_clipboard(self, run, vault_dir, clipboard_text, monkeypatch):
        monkeypatch.setattr(pyperclip, 'paste', lambda: clipboard_text)
        run('paste', 'Romans')
        assert (vault_dir / 'Wright2013.md').exists()

    def test_paste_without_record(self, run, vault_dir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run('paste', 'Romans', '--text', 'Only a passage')

        assert exc_info.value.code == 1
        assert 'Error:' in capsys.readouterr().err
        assert list(vault_dir.iterdir()) == []

    def test_missing_vault(self, temp_dir, config_file, clipboard_text):
        with pytest.raises(SystemExit) as exc_info:
            main(['--vault', str(temp_dir / 'nope'), '--config', str(config_file),
                  'paste', 'Romans', '--text', clipboard_text])
        assert exc_info.value.code == 1

    def test_vault_from_config(self, vault_dir, config_file, clipboard_text):
        UserConfig(config_file).set('vault_directory', str(vault_dir))
        main(['--config', str(config_file), 'paste', 'Romans', '--text', clipboard_text])
        assert (vault_dir / 'Romans.md').exists()


class TestBibliographyAndExport:
    """Test `refnotes bibliography` and `refnotes export`."""

    def test_bibliography(self, run, vault_dir, clipboard_text, capsys):
        run('paste', 'Romans', '--text', clipboard_text)
        run('bibliography', 'Romans')
        run('bibliography', 'Romans')

        out = capsys.readouterr().out
        assert 'Bibliography updated with 1 reference(s)' in out
        assert 'Bibliography already up to date (1 reference(s))' in out
        assert '## Bibliography' in (vault_dir / 'Romans.md').read_text(encoding='utf-8')

    def test_bibliography_missing_note(self, run, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run('bibliography', 'Missing')
        assert exc_info.value.code == 1
        assert 'Could not read Missing.md' in capsys.readouterr().err

    def test_export(self, run, vault_dir, clipboard_text, capsys):
        run('paste', 'Romans', '--text', clipboard_text)
        run('export')

        assert 'Exported 1 reference(s) to exported-references.bib' in capsys.readouterr().out
        assert (vault_dir / 'exported-references.bib').read_text(encoding='utf-8').startswith('@book{Wright2013,')

    def test_export_missing_folder(self, run, capsys):
        run('config', 'set', 'reference_folder', 'refs')
        with pytest.raises(SystemExit) as exc_info:
            run('export')
        assert exc_info.value.code == 1
        assert 'Reference folder not found: refs' in capsys.readouterr().err


class TestConfigCommand:
    """Test `refnotes config`."""

    def test_set_and_show(self, run, capsys):
        run('config', 'set', 'bibliography_format', 'APA')
        run('config', 'show')

        out = capsys.readouterr().out
        assert 'bibliography_format set to: apa' in out
        assert 'Bibliography format: APA' in out

    def test_set_invalid_value(self, run, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run('config', 'set', 'bibliography_format', 'harvard')
        assert exc_info.value.code == 1
        assert 'Unknown citation style' in capsys.readouterr().err

    def test_set_unknown_key(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run('config', 'set', 'citation_counters', '{}')
        assert exc_info.value.code == 1

    def test_reset_requires_confirm(self, run, config_file):
        run('config', 'set', 'reference_folder', 'refs')
        with pytest.raises(SystemExit):
            run('config', 'reset')
        assert UserConfig(config_file).get('reference_folder') == 'refs'

        run('config', 'reset', '--confirm')
        assert UserConfig(config_file).get('reference_folder') == ''

    def test_no_command(self, run):
        with pytest.raises(SystemExit) as exc_info:
            run()
        assert exc_info.value.code == 1


class TestClipboardInput:
    """Test get_copied_text()."""

    def test_argument_wins(self, monkeypatch):
        monkeypatch.setattr(pyperclip, 'paste', lambda: 'from clipboard')
        assert get_copied_text('  from arg ') == 'from arg'

    def test_clipboard_used(self, monkeypatch):
        monkeypatch.setattr(pyperclip, 'paste', lambda: ' copied \n')
        assert get_copied_text() == 'copied'

    def test_empty_clipboard(self, monkeypatch):
        monkeypatch.setattr(pyperclip, 'paste', lambda: '')
        with pytest.raises(ValueError, match="No input provided"):
            get_copied_text()

    def test_file_used(self, temp_dir, monkeypatch):
        monkeypatch.setattr(pyperclip, 'paste', lambda: 'from clipboard')
        source = temp_dir / 'copied.txt'
        source.write_text('passage\n@book{a, title={T}}\n', encoding='utf-8')
        assert get_copied_text(file=str(source)) == 'passage\n@book{a, title={T}}'

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError, match="File not found"):
            get_copied_text(file=str(temp_dir / 'absent.txt'))

    def test_clipboard_unavailable(self, monkeypatch):
        def fail():
            raise pyperclip.PyperclipException("no mechanism")

        monkeypatch.setattr(pyperclip, 'paste', fail)
        with pytest.raises(RuntimeError, match="Failed to read from clipboard"):
            get_copied_text()
