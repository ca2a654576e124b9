"""Pytest configuration and fixtures for refnotes tests."""

import tempfile
import shutil
from pathlib import Path
from typing import Callable, Generator

import pytest

from refnotes.entry import Entry, parse_entry
from refnotes.vault import Vault


WRIGHT_BIBTEX = """@book{Wright2013,
  author = {Wright, N. T.},
  title = {Paul and the Faithfulness of God},
  publisher = {Fortress Press},
  year = {2013}
}"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory that's cleaned up after the test."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def vault_dir(temp_dir: Path) -> Path:
    """Create a directory for the notes vault."""
    vault = temp_dir / "vault"
    vault.mkdir()
    return vault


@pytest.fixture
def vault(vault_dir: Path) -> Vault:
    return Vault(vault_dir)


@pytest.fixture
def config_file(temp_dir: Path) -> Path:
    """Path of a config file outside any project directory."""
    return temp_dir / "config" / "user_config.json"


@pytest.fixture
def wright_bibtex() -> str:
    return WRIGHT_BIBTEX


@pytest.fixture
def wright_entry() -> Entry:
    return parse_entry(WRIGHT_BIBTEX)


@pytest.fixture
def clipboard_text() -> str:
    """Copied passage followed by its BibTeX record, with a page."""
    return (
        "The righteousness of God is revealed.\n"
        "@book{Wright2013,\n"
        "  author = {Wright, N. T.},\n"
        "  title = {Paul and the Faithfulness of God},\n"
        "  publisher = {Fortress Press},\n"
        "  year = {2013},\n"
        "  pages = {123}\n"
        "}"
    )


@pytest.fixture
def write_note(vault_dir: Path) -> Callable[[str, str], Path]:
    """Write a note into the vault and return its path."""
    def _write(note_path: str, text: str) -> Path:
        path = vault_dir / note_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
    return _write
