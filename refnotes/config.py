"""
Configuration for refnotes.

Provides the user config directory and the settings consumed by the note
workflows.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os

from .formatter import CitationStyle
from .notes import DEFAULT_CALLOUT_TYPE

DEFAULT_EXPORT_FILENAME = 'exported-references.bib'


def get_config_dir(app_name: str = 'refnotes') -> Path:
    """Get the user config directory for an application.

    ``%APPDATA%`` on Windows, ``$XDG_CONFIG_HOME`` (default ``~/.config``)
    elsewhere.

    Args:
        app_name: Application name for config subdirectory

    Returns:
        Path to config directory (created if doesn't exist)
    """
    if os.name == 'nt':
        base = Path(os.environ.get('APPDATA', Path.home() / 'AppData' / 'Roaming'))
    else:
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))

    config_dir = base / app_name
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def normalize_folder(folder: Optional[str]) -> str:
    """Trim a folder setting and strip a trailing slash ('' = vault root)."""
    folder = (folder or '').strip()
    return folder.rstrip('/')


@dataclass(frozen=True)
class Settings:
    """Settings read by the note workflows.

    Attributes:
        reference_folder: Folder for reference notes, relative to the vault
            root ('' = root)
        bibliography_format: Style for inline citations and bibliographies
        citation_callout_type: Callout label for quoted passages
        export_filename: Export file path, relative to the vault root
    """
    reference_folder: str = ''
    bibliography_format: CitationStyle = CitationStyle.LATEX
    citation_callout_type: str = DEFAULT_CALLOUT_TYPE
    export_filename: str = DEFAULT_EXPORT_FILENAME

    def __post_init__(self):
        object.__setattr__(self, 'reference_folder', normalize_folder(self.reference_folder))
        object.__setattr__(self, 'bibliography_format', CitationStyle.from_value(self.bibliography_format))
        object.__setattr__(self, 'citation_callout_type', self.citation_callout_type or DEFAULT_CALLOUT_TYPE)

    def reference_path(self, citekey: str) -> str:
        """Note path of the reference note for a citekey."""
        return f'{self.reference_folder}/{citekey}.md' if self.reference_folder else f'{citekey}.md'
