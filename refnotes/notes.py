"""
Structured edits of Markdown note bodies.

Two sections are managed:

- ``## Citations`` in a reference note: an append-only list of links back to
  quoted passages. Adding a link that is already listed changes nothing.
- ``## Bibliography`` in a content note: regenerated wholesale from the
  references the note links to.

Section boundaries follow one rule (see ``NoteDocument.find_section``): a
section runs from its exact heading line to the next ATX heading of any
level, optionally to the next thematic break (``---``), or to the end of the
note. Lines inside fenced code blocks never end a section; a fence left open
at the end of the note is read as plain text.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple
import re
import threading

from .entry import Entry, normalize_citekey
from .metadata import entry_to_metadata

CITATIONS_HEADING = '## Citations'
BIBLIOGRAPHY_HEADING = '## Bibliography'
DEFAULT_CALLOUT_TYPE = 'Logos Ref'

_HEADING = re.compile(r'^ {0,3}#{1,6}(?:[ \t]|$)')
_RULE = re.compile(r'^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$')
_FENCE = re.compile(r'^ {0,3}(`{3,}|~{3,})')
_METADATA_KEY = re.compile(r'^[A-Za-z_][\w-]*[ \t]*:')


def is_heading(line: str) -> bool:
    return bool(_HEADING.match(line.rstrip('\r')))


def is_rule(line: str) -> bool:
    return bool(_RULE.match(line.rstrip('\r')))


def _front_matter_end(lines: List[str]) -> int:
    """Index of the first body line (0 if the note has no front matter).

    Front matter is a leading ``---`` block holding at least one ``key:``
    line; a note that merely opens with a thematic break has none.
    """
    if not lines or lines[0].rstrip() != '---':
        return 0
    for index in range(1, len(lines)):
        if lines[index].rstrip() == '---':
            if any(_METADATA_KEY.match(line) for line in lines[1:index]):
                return index + 1
            return 0
    return 0


@dataclass(frozen=True)
class SectionSpan:
    """Line range of a section.

    Attributes:
        start: Index of the heading line
        end: Index of the first line after the section (exclusive)
    """
    start: int
    end: int


class NoteDocument:
    """A note split into lines, with its front matter located.

    ``NoteDocument.parse(text).render() == text`` for every input.
    """

    def __init__(self, lines: List[str], body_start: int = 0, trailing_newline: bool = False):
        self.lines = lines
        self.body_start = body_start
        self.trailing_newline = trailing_newline

    @classmethod
    def parse(cls, text: str) -> 'NoteDocument':
        trailing_newline = text.endswith('\n')
        if trailing_newline:
            text = text[:-1]
        lines = text.split('\n') if (text or trailing_newline) else []
        return cls(lines, _front_matter_end(lines), trailing_newline)

    def render(self) -> str:
        text = '\n'.join(self.lines)
        return text + '\n' if self.trailing_newline else text

    def find_section(self, heading: str, stop_at_rule: bool = False) -> Optional[SectionSpan]:
        """Locate a section by its heading line.

        A fence that is never closed is read as plain text, so headings after
        it are still found.

        Args:
            heading: Exact heading line (e.g., "## Bibliography")
            stop_at_rule: Also end the section at a thematic break

        Returns:
            SectionSpan of the first matching section, or None
        """
        unclosed = set()
        while True:
            span, open_fence = self._scan(heading, stop_at_rule, unclosed)
            if open_fence is None:
                return span
            unclosed.add(open_fence)

    def _scan(self, heading: str, stop_at_rule: bool, unclosed: Set[int]) -> Tuple[Optional[SectionSpan], Optional[int]]:
        """Scan for a section, skipping fenced lines.

        Returns:
            Tuple of (span, index of a fence left open at the end of the note)
        """
        start = None
        fence = None
        fence_start = None

        for index in range(self.body_start, len(self.lines)):
            line = self.lines[index]
            fence_match = _FENCE.match(line)

            if fence is not None:
                if fence_match and fence_match.group(1)[0] == fence[0] and len(fence_match.group(1)) >= len(fence):
                    fence = None
                continue
            if fence_match and index not in unclosed:
                fence = fence_match.group(1)
                fence_start = index
                continue

            if start is None:
                if line.rstrip() == heading:
                    start = index
                continue

            if is_heading(line) or (stop_at_rule and is_rule(line)):
                return SectionSpan(start, index), None

        if fence is not None:
            return None, fence_start
        if start is None:
            return None, None
        return SectionSpan(start, len(self.lines)), None

    def append_block(self, block: List[str]) -> None:
        """Append lines at the end of the note, after one blank line."""
        while len(self.lines) > self.body_start and not self.lines[-1].strip():
            self.lines.pop()
        if self.lines:
            self.lines.append('')
        self.lines.extend(block)


# ---------------------------------------------------------------------------
# Section updates
# ---------------------------------------------------------------------------

def upsert_citation(text: str, citation_line: str) -> str:
    """Add a citation line to the ``## Citations`` section of a note.

    The section is created at the end of the note if missing. Existing lines
    keep their order; the new line goes after the last non-blank line of the
    section. If the line is already listed the note is returned unchanged.

    Args:
        text: Reference note text
        citation_line: Line to add (e.g., "- [[Note#^Key-1]] → p. 5")

    Returns:
        Updated note text
    """
    doc = NoteDocument.parse(text)
    span = doc.find_section(CITATIONS_HEADING)

    if span is None:
        doc.append_block([CITATIONS_HEADING, citation_line])
        return doc.render()

    wanted = citation_line.rstrip()
    region = doc.lines[span.start + 1:span.end]
    if any(line.rstrip() == wanted for line in region):
        return text

    insert_at = span.start + 1
    for index in range(span.end - 1, span.start, -1):
        if doc.lines[index].strip():
            insert_at = index + 1
            break

    doc.lines.insert(insert_at, citation_line)
    return doc.render()


def replace_bibliography(text: str, rendered: str) -> str:
    """Replace the ``## Bibliography`` section of a note.

    The whole section body is replaced. A missing section is appended at the
    end of the note after a blank line. Applying the same rendered list again
    returns identical text.

    Args:
        text: Content note text
        rendered: New section body

    Returns:
        Updated note text
    """
    doc = NoteDocument.parse(text)
    rendered = rendered.strip('\n')
    block = [BIBLIOGRAPHY_HEADING] + (rendered.split('\n') if rendered else [])

    span = doc.find_section(BIBLIOGRAPHY_HEADING, stop_at_rule=True)
    if span is None:
        doc.append_block(block)
    else:
        if span.end < len(doc.lines):
            block.append('')
        doc.lines[span.start:span.end] = block

    return doc.render()


def insert_callout(text: str, callout: str) -> str:
    """Add a callout to a content note.

    The callout is placed before an existing bibliography section, otherwise
    at the end of the note.
    """
    doc = NoteDocument.parse(text)
    block = callout.split('\n')

    span = doc.find_section(BIBLIOGRAPHY_HEADING, stop_at_rule=True)
    if span is None:
        doc.append_block(block)
        doc.trailing_newline = True
        return doc.render()

    block.append('')
    if span.start > doc.body_start and doc.lines[span.start - 1].strip():
        block.insert(0, '')
    doc.lines[span.start:span.start] = block
    return doc.render()


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_callout(
    callout_type: str,
    main_text: str,
    reference_path: str,
    inline_citation: str,
    block_id: str
) -> str:
    """Render a quoted passage as a callout linking to its reference note."""
    quoted = '\n> '.join(main_text.splitlines())
    return '\n'.join([
        f'> [!{callout_type or DEFAULT_CALLOUT_TYPE}]',
        f'> {quoted}',
        f'> [[{reference_path}|{inline_citation}]] ^{block_id}',
    ])


def render_link_back(note_name: str, block_id: str, page: Optional[str] = None) -> str:
    link = f'[[{note_name}#^{block_id}]]'
    return f'{link} → p. {page}' if page else link


def render_citation_line(link_back: str) -> str:
    return f'- {link_back}'


def render_reference_note(entry: Entry, citation_line: str) -> str:
    """Render a new reference note with metadata and one citation."""
    return '\n'.join([
        '---',
        entry_to_metadata(entry),
        '---',
        '',
        CITATIONS_HEADING,
        citation_line,
    ]) + '\n'


# ---------------------------------------------------------------------------
# Block identifiers
# ---------------------------------------------------------------------------

class CounterStore:
    """Per-note counters used to mint unique block identifiers.

    Stores the last number handed out for each note. ``increment`` persists
    the new state through the ``persist`` callback before returning, so a
    number is never handed out twice even if the following note write fails.

    Args:
        counters: Initial state (note key -> last number used). The dict is
            updated in place.
        persist: Called with a copy of the state after every change
    """

    def __init__(
        self,
        counters: Optional[Dict[str, int]] = None,
        persist: Optional[Callable[[Dict[str, int]], None]] = None
    ):
        self._counters = counters if counters is not None else {}
        self._persist = persist
        self._lock = threading.Lock()

    def peek(self, note_key: str) -> int:
        """Return the last number used for a note (0 if none)."""
        return int(self._counters.get(note_key, 0))

    def increment(self, note_key: str) -> int:
        """Reserve and return the next number for a note (starting at 1)."""
        with self._lock:
            value = self.peek(note_key) + 1
            self._counters[note_key] = value
            if self._persist is not None:
                self._persist(dict(self._counters))
            return value

    def as_dict(self) -> Dict[str, int]:
        return dict(self._counters)


def mint_block_id(citekey: str, note_key: str, counters: CounterStore) -> str:
    """Mint a block identifier such as ``Wright2013-3``."""
    return f'{normalize_citekey(citekey)}-{counters.increment(note_key)}'
