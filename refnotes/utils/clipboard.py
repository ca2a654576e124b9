"""
Reading copied citation text for the command line.

Copied text comes from, in order of priority: a ``--text`` argument, a
``--file`` path, or the system clipboard.
"""

from pathlib import Path
from typing import Optional

import pyperclip


def read_clipboard() -> str:
    """Return the system clipboard contents ('' if empty).

    Raises:
        RuntimeError: If no clipboard mechanism is available
    """
    try:
        return pyperclip.paste() or ''
    except pyperclip.PyperclipException as e:
        raise RuntimeError(f"Failed to read from clipboard: {e}") from e


def get_copied_text(text: Optional[str] = None, file: Optional[str] = None) -> str:
    """Get a copied passage and its BibTeX record.

    Args:
        text: Text given on the command line
        file: Path of a file holding the text

    Returns:
        Trimmed text

    Raises:
        FileNotFoundError: If file is given but does not exist
        ValueError: If no input is available
        RuntimeError: If clipboard access fails
    """
    if text:
        content = text
    elif file:
        path = Path(file).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        content = path.read_text(encoding='utf-8')
    else:
        content = read_clipboard()

    content = content.strip()
    if not content:
        raise ValueError("No input provided. Pass --text/--file or copy a passage with its BibTeX record.")
    return content
