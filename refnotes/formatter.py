"""
Inline citations and bibliography entries in several styles.

Supported styles:
    - latex: citekey citations, canonical BibTeX bibliography entries
    - mla: (Last Page) / MLA works-cited entries
    - apa: (Last, Year, p. Page) / APA reference entries
    - chicago: (Last Year, Page) / Chicago author-date entries

Narrative bibliography entries use Markdown ``*italics*`` for titles.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Union
import logging
import re

from bibtexparser.customization import InvalidName, splitname

from .entry import Entry, parse_entry, serialize_entry
from .exceptions import MissingCiteKeyError

logger = logging.getLogger(__name__)


class CitationStyle(str, Enum):
    """Available citation styles."""
    LATEX = 'latex'
    MLA = 'mla'
    APA = 'apa'
    CHICAGO = 'chicago'

    @property
    def label(self) -> str:
        return _STYLE_LABELS[self]

    @classmethod
    def from_value(cls, value: Union[str, 'CitationStyle']) -> 'CitationStyle':
        """Look up a style by name (case-insensitive).

        Raises:
            ValueError: If the name is not a known style
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ', '.join(style.value for style in cls)
            raise ValueError(f"Unknown citation style: {value!r} (choose from {choices})")


_STYLE_LABELS = {
    CitationStyle.LATEX: 'LaTeX (BibTeX)',
    CitationStyle.MLA: 'MLA',
    CitationStyle.APA: 'APA',
    CitationStyle.CHICAGO: 'Chicago',
}


@dataclass(frozen=True)
class FormatResult:
    """Result of formatting a bibliography entry.

    Attributes:
        text: Rendered entry
        fallback: True if the style could not be applied and ``text`` is the
            canonical BibTeX of the entry (or the raw input text)
    """
    text: str
    fallback: bool = False


AUTHOR_SEPARATOR = re.compile(r'\s+and\s+')
APA_MAX_AUTHORS = 20
MLA_MAX_AUTHORS = 2
CHICAGO_MAX_AUTHORS = 3

_NUMERIC_EDITION = re.compile(r'^(\d+)(?:st|nd|rd|th)?\.?(?:\s+ed(?:ition)?\.?)?$', re.IGNORECASE)


def page_label(page: str) -> str:
    """Return 'pp.' for page ranges and 'p.' for single pages."""
    return 'pp.' if ('-' in page or '–' in page) else 'p.'


def ordinal(number: int) -> str:
    """Return a number with its English ordinal suffix (1st, 2nd, 11th, ...)."""
    if number % 100 in (11, 12, 13):
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(number % 10, 'th')
    return f'{number}{suffix}'


def edition_label(edition: str, suppress_first: bool = False) -> Optional[str]:
    """Render an edition field.

    Args:
        edition: Edition value ("2", "3rd", "Revised")
        suppress_first: Return None for a first edition

    Returns:
        Label such as "2nd ed." or "Revised ed.", or None if suppressed
    """
    value = edition.strip()
    match = _NUMERIC_EDITION.match(value)
    if not match:
        return f'{value} ed.'

    number = int(match.group(1))
    if number == 1 and suppress_first:
        return None
    return f'{ordinal(number)} ed.'


def split_authors(author: str) -> List[str]:
    return [name.strip() for name in AUTHOR_SEPARATOR.split(author.strip()) if name.strip()]


def first_author_last_name(author: str) -> str:
    """Last name of the first author ("Last, First" or "First Last")."""
    first = author.split(' and ')[0]
    if ',' in first:
        return first.split(',')[0].strip()
    tokens = first.strip().split(' ')
    return tokens[-1].strip()


# ---------------------------------------------------------------------------
# Inline citations
# ---------------------------------------------------------------------------

def format_inline(entry: Entry, page: Optional[str], style: Union[str, CitationStyle]) -> str:
    """Format an inline citation for a quoted passage.

    Entries without a usable author and year fall back to the citekey form
    in every style.

    Args:
        entry: Cited entry
        page: Page or page range of the passage, or None
        style: Citation style

    Returns:
        Inline citation text

    Example:
        >>> format_inline(entry, '123', 'apa')
        '(Wright, 2013, p. 123)'
    """
    style = CitationStyle.from_value(style)
    author = entry.get('author')
    year = entry.get('year')

    if not author and not year:
        return _citekey_citation(entry, page)

    last_name = first_author_last_name(author) if author else ''
    if not last_name or not year:
        return _citekey_citation(entry, page)

    if style is CitationStyle.APA:
        return f'({last_name}, {year}, p. {page})' if page else f'({last_name}, {year})'
    if style is CitationStyle.CHICAGO:
        return f'({last_name} {year}, {page})' if page else f'({last_name} {year})'
    if style is CitationStyle.MLA:
        return f'({last_name} {page})' if page else f'({last_name})'

    if page:
        return f'{entry.citekey}, {page_label(page)} {page}'
    return entry.citekey


def _citekey_citation(entry: Entry, page: Optional[str]) -> str:
    return f'{entry.citekey}, p. {page}' if page else entry.citekey


# ---------------------------------------------------------------------------
# Author lists
# ---------------------------------------------------------------------------

def format_authors_mla(author: str) -> str:
    authors = split_authors(author)
    if len(authors) == 1:
        return authors[0]
    if len(authors) == MLA_MAX_AUTHORS:
        return f'{authors[0]}, and {authors[1]}'
    return f'{authors[0]}, et al.'


def format_authors_chicago(author: str) -> str:
    authors = split_authors(author)
    if len(authors) == 1:
        return authors[0]
    if len(authors) > CHICAGO_MAX_AUTHORS:
        return f'{authors[0]} et al.'
    return ', '.join(authors[:-1]) + f', and {authors[-1]}'


def format_authors_apa(author: str) -> str:
    """Format an author list as APA ("Last, F. M., & Last, F.")."""
    authors = [format_name_apa(name) for name in split_authors(author)]
    if len(authors) == 1:
        return authors[0]
    if len(authors) == 2:
        return f'{authors[0]}, & {authors[1]}'
    if len(authors) <= APA_MAX_AUTHORS:
        return ', '.join(authors[:-1]) + f', & {authors[-1]}'
    return ', '.join(authors[:APA_MAX_AUTHORS - 1]) + f' . . . {authors[-1]}'


def format_name_apa(name: str) -> str:
    """Format one "Last, First Middle" name as "Last, F. M.".

    Names without a comma are returned unchanged.
    """
    name = name.strip()
    if ',' not in name:
        return name

    try:
        parts = splitname(name)
    except InvalidName:
        parts = None

    if parts and parts.get('last'):
        last = ' '.join(parts.get('von', []) + parts['last'])
        given = parts.get('first', [])
        suffix = ' '.join(parts.get('jr', []))
    else:
        last, _, rest = name.partition(',')
        given = rest.split()
        suffix = ''

    initials = ' '.join(_initial(token) for token in given if _initial(token))
    formatted = f'{last.strip()}, {initials}' if initials else last.strip()
    if suffix:
        formatted += f', {suffix}'
    return formatted


def _initial(token: str) -> str:
    for char in token:
        if char.isalpha():
            return char.upper() + '.'
    return ''


# ---------------------------------------------------------------------------
# Bibliography entries
# ---------------------------------------------------------------------------

def _join_publication(parts: Iterable[Optional[str]], separator: str, year: Optional[str]) -> str:
    """Join publisher/location parts and append the year after a comma."""
    present = [part for part in parts if part]
    text = separator.join(present)
    if year:
        text = f'{text}, {year}' if text else year
    return text


def _mla(entry: Entry) -> str:
    f = entry.fields
    author = format_authors_mla(f['author']) if f.get('author') else ''
    out = f'{author}. ' if author else ''

    if entry.entry_type == 'book':
        if f.get('title'):
            out += f"*{f['title']}*. "
        if f.get('edition'):
            out += f"{edition_label(f['edition'])} "
        publication = _join_publication([f.get('publisher'), f.get('address')], ', ', f.get('year'))
        if publication:
            out += publication + '.'

    elif entry.entry_type == 'article':
        if f.get('title'):
            out += f"\"{f['title']}.\" "
        if f.get('journal'):
            details = []
            if f.get('volume'):
                details.append(f"vol. {f['volume']}")
            if f.get('number'):
                details.append(f"no. {f['number']}")
            if f.get('year'):
                details.append(f['year'])
            if f.get('pages'):
                details.append(f"pp. {f['pages']}")
            out += f"*{f['journal']}*"
            if details:
                out += ', ' + ', '.join(details)
            out += '.'

    elif entry.entry_type in ('incollection', 'inbook'):
        if f.get('title'):
            out += f"\"{f['title']}.\" "
        if f.get('booktitle'):
            details = []
            if f.get('editor'):
                details.append(f"edited by {f['editor']}")
            if f.get('edition'):
                details.append(edition_label(f['edition']))
            for name in ('publisher', 'address', 'year'):
                if f.get(name):
                    details.append(f[name])
            if f.get('pages'):
                details.append(f"pp. {f['pages']}")
            out += f"*{f['booktitle']}*"
            if details:
                out += ', ' + ', '.join(details)
            out += '.'

    else:
        if f.get('title'):
            out += f"*{f['title']}*. "
        details = [f[name] for name in ('publisher', 'year') if f.get(name)]
        if details:
            out += ', '.join(details) + '.'

    return out


def _apa(entry: Entry) -> str:
    f = entry.fields
    out = f"{format_authors_apa(f['author'])} " if f.get('author') else ''
    if f.get('year'):
        out += f"({f['year']}). "

    if entry.entry_type == 'book':
        title = f"*{f['title']}*" if f.get('title') else ''
        edition = edition_label(f['edition'], suppress_first=True) if f.get('edition') else None
        if edition:
            title += f' ({edition})'
        if title:
            out += title.strip() + '. '
        if f.get('publisher'):
            out += f"{f['publisher']}."

    elif entry.entry_type == 'article':
        if f.get('title'):
            out += f"{f['title']}. "
        if f.get('journal'):
            out += f"*{f['journal']}*"
            if f.get('volume'):
                out += f", *{f['volume']}*"
                if f.get('number'):
                    out += f"({f['number']})"
            if f.get('pages'):
                out += f", {f['pages']}"
            out += '.'
        if f.get('doi'):
            out += f" https://doi.org/{f['doi']}"

    elif entry.entry_type in ('incollection', 'inbook'):
        if f.get('title'):
            out += f"{f['title']}. "
        container = ''
        if f.get('editor'):
            container += f"In {f['editor']} (Ed.), "
        if f.get('booktitle'):
            container += f"*{f['booktitle']}*"
        if f.get('pages'):
            container += f" (pp. {f['pages']})"
        container = container.strip().rstrip(',')
        if container:
            out += container + '. '
        if f.get('publisher'):
            out += f"{f['publisher']}."

    else:
        if f.get('title'):
            out += f"*{f['title']}*. "
        if f.get('publisher'):
            out += f"{f['publisher']}."

    return out


def _chicago(entry: Entry) -> str:
    f = entry.fields
    author = format_authors_chicago(f['author']) if f.get('author') else ''
    out = f'{author}. ' if author else ''
    publication = _join_publication([f.get('address'), f.get('publisher')], ': ', f.get('year'))

    if entry.entry_type == 'book':
        if f.get('title'):
            out += f"*{f['title']}*. "
        edition = edition_label(f['edition'], suppress_first=True) if f.get('edition') else None
        if edition:
            out += f'{edition} '
        if publication:
            out += publication + '.'

    elif entry.entry_type == 'article':
        if f.get('title'):
            out += f"\"{f['title']}.\" "
        if f.get('journal'):
            out += f"*{f['journal']}*"
            details = []
            if f.get('volume'):
                details.append(f['volume'])
            if f.get('number'):
                details.append(f"no. {f['number']}")
            if details:
                out += ' ' + ', '.join(details)
        if f.get('year'):
            out += f" ({f['year']})"
        if f.get('pages'):
            out += f": {f['pages']}"
        out += '.'

    elif entry.entry_type in ('incollection', 'inbook'):
        if f.get('title'):
            out += f"\"{f['title']}.\" "
        container = []
        if f.get('booktitle'):
            container.append(f"In *{f['booktitle']}*")
            if f.get('editor'):
                container.append(f"edited by {f['editor']}")
        if f.get('pages'):
            container.append(f['pages'])
        if container:
            out += ', '.join(container) + '. '
        if publication:
            out += publication + '.'

    else:
        if f.get('title'):
            out += f"*{f['title']}*. "
        if publication:
            out += publication + '.'

    return out


_BUILDERS: Dict[CitationStyle, Callable[[Entry], str]] = {
    CitationStyle.MLA: _mla,
    CitationStyle.APA: _apa,
    CitationStyle.CHICAGO: _chicago,
}


def tidy(text: str) -> str:
    """Collapse repeated periods and whitespace in a rendered entry."""
    text = re.sub(r'\.\.+', '.', text)
    text = re.sub(r'([?!])\.', r'\1', text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def format_bibliography(entry: Entry, style: Union[str, CitationStyle]) -> FormatResult:
    """Format a bibliography entry.

    LaTeX returns the canonical BibTeX text. The narrative styles fall back
    to the canonical text if the entry cannot be rendered.

    Args:
        entry: Entry to format
        style: Citation style

    Returns:
        FormatResult
    """
    style = CitationStyle.from_value(style)
    canonical = serialize_entry(entry)
    if style is CitationStyle.LATEX:
        return FormatResult(canonical)

    try:
        text = tidy(_BUILDERS[style](entry))
    except Exception as e:
        logger.warning(f"Could not format {entry.citekey} as {style.value}: {e}")
        return FormatResult(canonical, fallback=True)

    if not text or text == '.':
        logger.debug(f"Nothing to render for {entry.citekey} in {style.value}")
        return FormatResult(canonical, fallback=True)

    return FormatResult(text)


def format_bibliography_text(text: str, style: Union[str, CitationStyle]) -> FormatResult:
    """Format a bibliography entry given as BibTeX text.

    Text without a citation key is returned unchanged as a fallback.
    """
    try:
        entry = parse_entry(text)
    except MissingCiteKeyError:
        logger.warning("Entry has no citation key; keeping it unformatted")
        return FormatResult(text, fallback=True)
    return format_bibliography(entry, style)


def format_bibliography_list(texts: Iterable[str], style: Union[str, CitationStyle]) -> str:
    """Render a bibliography section body.

    LaTeX entries and entries that fell back to BibTeX are wrapped in
    ```bibtex fences; narrative entries are plain paragraphs.

    Args:
        texts: Entry texts in output order
        style: Citation style

    Returns:
        Entries separated by blank lines
    """
    style = CitationStyle.from_value(style)
    rendered = []
    for text in texts:
        result = format_bibliography_text(text, style)
        if style is CitationStyle.LATEX or result.fallback:
            rendered.append(f'```bibtex\n{result.text}\n```')
        else:
            rendered.append(result.text)
    return '\n\n'.join(rendered)
