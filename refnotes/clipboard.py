"""
Splitting copied citation text into quote, entry and page.

Reference managers copy a passage followed by its BibTeX record:

    The righteousness of God is revealed...
    @book{Wright2013,
      author = {Wright, N. T.},
      pages = {123},
    }

The ``pages`` field describes the quoted passage, not the work, so it is
extracted and removed before the record is parsed.
"""

from dataclasses import dataclass
from typing import Optional
import re


_ENTRY_START = re.compile(r'\n(?=@)')
_PAGES_VALUE = re.compile(r'\bpages\s*=\s*\{([^}]+)\}', re.IGNORECASE)
_PAGES_FIELD = re.compile(r'\bpages\s*=\s*\{[^}]*\},?\s*', re.IGNORECASE)


@dataclass(frozen=True)
class ClipboardPayload:
    """Parts of a copied citation.

    Attributes:
        main_text: Quoted passage, trimmed
        entry_text: BibTeX record with the pages field removed, or '' if the
            text carried no record
        page: Page or page range of the passage, or None
    """
    main_text: str
    entry_text: str
    page: Optional[str]

    @property
    def has_entry(self) -> bool:
        return bool(self.entry_text)


def split_clipboard(text: str) -> ClipboardPayload:
    """Split copied text into passage, entry text and page.

    The split happens at the first line break that is directly followed by a
    line starting with ``@``. Text without such a line has no entry; this is
    reported through an empty ``entry_text``, not an exception.

    Args:
        text: Raw copied text

    Returns:
        ClipboardPayload

    Example:
        >>> payload = split_clipboard('Quote\\n@book{K, pages = {5}}')
        >>> payload.main_text, payload.page
        ('Quote', '5')
    """
    parts = _ENTRY_START.split(text, maxsplit=1)
    main_text = parts[0].strip()
    if len(parts) < 2:
        return ClipboardPayload(main_text=main_text, entry_text='', page=None)

    entry_text = parts[1].strip()

    # Read the page before the field is removed
    page_match = _PAGES_VALUE.search(entry_text)
    page = page_match.group(1).strip() if page_match else None

    entry_text = _PAGES_FIELD.sub('', entry_text)

    return ClipboardPayload(main_text=main_text, entry_text=entry_text, page=page or None)
