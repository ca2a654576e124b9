"""
BibTeX entry parsing and canonical serialization.

Handles the subset of BibTeX produced by reference managers when copying a
citation to the clipboard:

    @book{Wright2013,
      author = {Wright, N. T.},
      title = {Paul and the Faithfulness of God},
    }

Field values may be brace-delimited with one level of nested braces
(``{The {NT} Letters}``) or quote-delimited. Anything nested deeper is
treated as an absent field rather than an error.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import re

from .exceptions import MissingCiteKeyError


# Recognized fields, in canonical output order
FIELDS: Tuple[str, ...] = (
    'author', 'title', 'year', 'publisher', 'journal',
    'volume', 'number', 'pages', 'address', 'edition',
    'booktitle', 'editor', 'doi', 'isbn', 'issn',
    'url', 'note', 'series', 'chapter', 'organization',
    'school', 'institution', 'howpublished', 'month',
)

DEFAULT_ENTRY_TYPE = 'misc'

# Outer braces count as depth 1
MAX_BRACE_DEPTH = 2

_NON_KEY_CHARS = re.compile(r'[\W_]+', re.ASCII)
_HEADER = re.compile(r'@(\w+)\s*\{')
_FIELD_NAME = re.compile(r'[A-Za-z][\w\-.:]*')


def normalize_citekey(key: str) -> str:
    """Normalize a citation key to letters, digits and single hyphens.

    Args:
        key: Raw citation key (e.g., "Wright_2013 NT")

    Returns:
        Normalized key (e.g., "Wright-2013-NT"), possibly empty
    """
    return _NON_KEY_CHARS.sub('-', key).strip('-')


@dataclass(frozen=True)
class Entry:
    """A parsed citation record.

    Only recognized fields are kept, always in canonical order. The citekey
    is normalized on construction.

    Raises:
        MissingCiteKeyError: If the citekey normalizes to an empty string
    """
    entry_type: str
    citekey: str
    fields: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        citekey = normalize_citekey(self.citekey or '')
        if not citekey:
            raise MissingCiteKeyError(f"Invalid citation key: {self.citekey!r}")

        ordered = {}
        for name in FIELDS:
            value = self.fields.get(name)
            if value:
                ordered[name] = value

        object.__setattr__(self, 'entry_type', (self.entry_type or DEFAULT_ENTRY_TYPE).lower())
        object.__setattr__(self, 'citekey', citekey)
        object.__setattr__(self, 'fields', ordered)

    def get(self, name: str) -> Optional[str]:
        return self.fields.get(name)

    def without(self, *names: str) -> 'Entry':
        """Return a copy of the entry with the given fields removed."""
        kept = {k: v for k, v in self.fields.items() if k not in names}
        return Entry(self.entry_type, self.citekey, kept)


class EntryScanner:
    """Single-pass scanner for one ``@type{key, field = value, ...}`` record.

    The scanner makes the grammar limits explicit:

    - field names are whole tokens compared case-insensitively
    - ``{...}`` values may contain one level of nested braces
    - ``"..."`` values run to the next double quote
    - undelimited values and values nested too deeply are skipped
    - the first occurrence of a field wins
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def scan(self) -> Entry:
        """Scan the header and all fields.

        Returns:
            Parsed Entry

        Raises:
            MissingCiteKeyError: If no ``@type{key,`` header is present
        """
        entry_type, citekey = self.scan_header()
        raw = self.scan_fields()
        return Entry(entry_type, citekey, {k: v for k, v in raw.items() if k in FIELDS})

    def scan_header(self) -> Tuple[str, str]:
        """Scan ``@type{key,`` and leave the position after the comma.

        Returns:
            Tuple of (lower-cased entry type, raw citation key)

        Raises:
            MissingCiteKeyError: If the header or the key is missing
        """
        self._skip_whitespace()
        match = _HEADER.match(self.text, self.pos)
        if not match:
            raise MissingCiteKeyError("Could not extract cite key: no @type{key, header found")

        comma = self.text.find(',', match.end())
        key = self.text[match.end():comma] if comma != -1 else ''
        if not key.strip() or '}' in key:
            raise MissingCiteKeyError("Could not extract cite key")

        self.pos = comma + 1
        return match.group(1).lower(), key.strip()

    def scan_fields(self) -> Dict[str, str]:
        """Scan ``name = value`` pairs until the closing brace.

        Returns:
            Dictionary of lower-cased field name to trimmed value, for every
            field with a non-empty delimited value
        """
        fields: Dict[str, str] = {}
        text = self.text

        while True:
            self._skip_chars(' \t\r\n,')
            if self.pos >= len(text) or text[self.pos] == '}':
                break

            name_match = _FIELD_NAME.match(text, self.pos)
            if not name_match:
                self._skip_to_separator()
                continue

            name = name_match.group(0).lower()
            self.pos = name_match.end()
            self._skip_whitespace()
            if self.pos >= len(text) or text[self.pos] != '=':
                self._skip_to_separator()
                continue

            self.pos += 1
            self._skip_whitespace()
            value = self._scan_value()
            if value is None:
                continue

            value = value.strip()
            if value and name not in fields:
                fields[name] = value

        return fields

    def _scan_value(self) -> Optional[str]:
        if self.pos >= len(self.text):
            return None

        char = self.text[self.pos]
        if char == '{':
            return self._scan_braced()
        if char == '"':
            return self._scan_quoted()

        self._skip_to_separator()
        return None

    def _scan_braced(self) -> Optional[str]:
        text = self.text
        start = self.pos + 1
        depth = 0
        deepest = 0

        for index in range(self.pos, len(text)):
            char = text[index]
            if char == '{':
                depth += 1
                deepest = max(deepest, depth)
            elif char == '}':
                depth -= 1
                if depth == 0:
                    self.pos = index + 1
                    if deepest > MAX_BRACE_DEPTH:
                        return None
                    return text[start:index]

        # Unterminated value
        self.pos = len(text)
        return None

    def _scan_quoted(self) -> Optional[str]:
        end = self.text.find('"', self.pos + 1)
        if end == -1:
            self.pos = len(self.text)
            return None

        value = self.text[self.pos + 1:end]
        self.pos = end + 1
        return value

    def _skip_to_separator(self) -> None:
        """Advance to the next top-level comma or closing brace."""
        depth = 0
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char == '{':
                depth += 1
            elif char == '}':
                if depth == 0:
                    return
                depth -= 1
            elif char == ',' and depth == 0:
                return
            self.pos += 1

    def _skip_whitespace(self) -> None:
        self._skip_chars(' \t\r\n')

    def _skip_chars(self, chars: str) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in chars:
            self.pos += 1


def parse_entry(text: str) -> Entry:
    """Parse a BibTeX record into an Entry.

    Args:
        text: BibTeX record text

    Returns:
        Parsed Entry

    Raises:
        MissingCiteKeyError: If no citation key can be found

    Example:
        >>> entry = parse_entry('@book{Wright2013, year = {2013}}')
        >>> entry.citekey, entry.get('year')
        ('Wright2013', '2013')
    """
    return EntryScanner(text).scan()


def extract_citekey(text: str) -> str:
    """Extract and normalize the citation key of a BibTeX record.

    Raises:
        MissingCiteKeyError: If no citation key can be found
    """
    _, citekey = EntryScanner(text).scan_header()
    key = normalize_citekey(citekey)
    if not key:
        raise MissingCiteKeyError(f"Invalid citation key: {citekey!r}")
    return key


def extract_field(text: str, name: str) -> Optional[str]:
    """Extract a single field value from a BibTeX record.

    Args:
        text: BibTeX record text
        name: Field name (case-insensitive)

    Returns:
        Field value, or None if absent
    """
    scanner = EntryScanner(text)
    try:
        scanner.scan_header()
    except MissingCiteKeyError:
        scanner.pos = 0
    return scanner.scan_fields().get(name.lower())


def serialize_entry(entry: Entry) -> str:
    """Serialize an Entry to canonical BibTeX text.

    Args:
        entry: Entry to serialize

    Returns:
        ``@type{key,`` followed by one ``  field = {value},`` line per present
        field in canonical order, and a closing brace
    """
    lines = [f'@{entry.entry_type}{{{entry.citekey},']
    for name, value in entry.fields.items():
        lines.append(f'  {name} = {{{value}}},')
    lines.append('}')
    return '\n'.join(lines)
