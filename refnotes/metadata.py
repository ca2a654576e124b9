"""
Conversion between entries and note metadata blocks.

A reference note stores its entry as a key/value header:

    ---
    type: book
    citekey: Wright2013
    author: "Wright, N. T."
    title: "Paul and the Faithfulness of God"
    ---

Values are always double-quoted and escaped, so the block is also valid YAML
front matter. Older notes stored the entry in a fenced ```bibtex block
instead; both forms are recognized when reading.
"""

from typing import Dict, Optional
import logging
import re

from .entry import Entry, FIELDS, parse_entry, serialize_entry
from .exceptions import MissingCiteKeyError

logger = logging.getLogger(__name__)

# Escape order matters: backslashes must be doubled before any escape
# sequence introduces new ones.
_ESCAPES = (
    ('\\', '\\\\'),
    ('"', '\\"'),
    ('\n', '\\n'),
    ('\t', '\\t'),
    ('\r', '\\r'),
)

_UNESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '"': '"',
    '\\': '\\',
}

_ESCAPE_SEQUENCE = re.compile(r'\\(.)', re.DOTALL)
_FRONT_MATTER = re.compile(r'\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)', re.DOTALL)
_LEGACY_BLOCK = re.compile(r'```bibtex[ \t]*\r?\n(.*?)```', re.DOTALL)
_BIBLIOGRAPHY_HEADING = '## Bibliography'
# ATX headings and thematic breaks
_SECTION_BOUNDARY = re.compile(r'^ {0,3}(?:#{1,6}(?:[ \t].*)?|([-*_])(?:[ \t]*\1){2,}[ \t]*\r?)$', re.MULTILINE)


def escape_value(value: str) -> str:
    """Escape a field value for a double-quoted metadata line.

    Order: backslash, quote, newline, tab, carriage return.
    """
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def unescape_value(value: str) -> str:
    """Reverse escape_value.

    Each escape sequence is decoded exactly once in a single pass, which
    matches decoding newline, tab, carriage return and quote sequences first
    and backslashes last, without re-reading the output of an earlier step
    (``\\\\n`` stays a backslash followed by ``n``).
    Unknown sequences are left untouched.
    """
    def decode(match):
        char = match.group(1)
        return _UNESCAPES.get(char, match.group(0))

    return _ESCAPE_SEQUENCE.sub(decode, value)


def entry_to_metadata(entry: Entry) -> str:
    """Render an entry as a metadata block (without the ``---`` fences).

    Args:
        entry: Entry to render

    Returns:
        ``type`` and ``citekey`` lines followed by one quoted line per field
    """
    lines = [
        f'type: {entry.entry_type}',
        f'citekey: {entry.citekey}',
    ]
    for name, value in entry.fields.items():
        lines.append(f'{name}: "{escape_value(value)}"')
    return '\n'.join(lines)


def metadata_to_entry(metadata: str) -> Optional[Entry]:
    """Parse a metadata block back into an entry.

    Lines without a colon and unrecognized keys are ignored.

    Args:
        metadata: Metadata block text (without the ``---`` fences)

    Returns:
        Entry, or None if the block lacks ``type`` or ``citekey``
    """
    values: Dict[str, str] = {}

    for line in metadata.strip().split('\n'):
        key, sep, value = line.partition(':')
        if not sep:
            continue

        key = key.strip().lower()
        value = value.strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            quote = value[0]
            value = value[1:-1]
            if quote == '"':
                value = unescape_value(value)
            else:
                value = value.replace("''", "'")

        values[key] = value

    if not values.get('type') or not values.get('citekey'):
        return None

    fields = {name: values[name] for name in FIELDS if values.get(name)}
    try:
        return Entry(values['type'], values['citekey'], fields)
    except MissingCiteKeyError:
        logger.warning(f"Ignoring metadata with invalid citekey: {values['citekey']!r}")
        return None


def split_front_matter(text: str) -> Optional[str]:
    """Return the metadata block at the top of a note, or None."""
    match = _FRONT_MATTER.match(text)
    return match.group(1) if match else None


def extract_legacy_block(text: str) -> Optional[str]:
    """Return the contents of the first fenced ```bibtex block, or None.

    Blocks inside a ``## Bibliography`` section are generated output, not a
    stored entry, and are skipped.
    """
    for match in _LEGACY_BLOCK.finditer(text):
        if _in_bibliography_section(text, match.start()):
            continue
        content = match.group(1).strip()
        return content or None
    return None


def _in_bibliography_section(text: str, position: int) -> bool:
    last = None
    for match in _SECTION_BOUNDARY.finditer(text, 0, position):
        last = match.group(0)
    return last is not None and last.rstrip() == _BIBLIOGRAPHY_HEADING


def extract_reference(text: str) -> Optional[str]:
    """Extract the canonical entry text stored in a reference note.

    The metadata header is tried first. Notes without a usable header fall
    back to the legacy fenced block, which is re-serialized canonically when
    it parses and returned verbatim otherwise.

    Args:
        text: Full note text

    Returns:
        Entry text, or None if the note holds no entry
    """
    block = split_front_matter(text)
    if block is not None:
        entry = metadata_to_entry(block)
        if entry is not None:
            return serialize_entry(entry)

    legacy = extract_legacy_block(text)
    if legacy is None:
        return None

    try:
        return serialize_entry(parse_entry(legacy))
    except MissingCiteKeyError:
        logger.debug("Legacy block has no citation key; using it verbatim")
        return legacy
