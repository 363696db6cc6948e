"""
Research Notes

Helpers for the plain-text notes produced by the research stage:
the fixed heading layout, section splitting, source-line extraction
and the best-effort document built straight from lookup results.
"""

import re
from typing import Dict, List, Any, Optional
from urllib.parse import urlparse

NOTE_HEADINGS = [
    'Topic',
    'Scope',
    'Overview',
    'Key facts',
    'Definitions',
    'Recent developments',
    'Numbers',
    'Pros / Cons / Tradeoffs',
    'Risks',
    'Open questions',
    'Sources',
]

# Headings the formatting stage cannot work without
REQUIRED_HEADINGS = ['Topic', 'Scope', 'Overview', 'Key facts', 'Definitions', 'Sources']

NONE_FOUND = 'None found'

_HEADING_ALIASES = {
    'topic': 'Topic',
    'scope': 'Scope',
    'overview': 'Overview',
    'key facts': 'Key facts',
    'definitions': 'Definitions',
    'recent developments': 'Recent developments',
    'numbers': 'Numbers',
    'pros / cons / tradeoffs': 'Pros / Cons / Tradeoffs',
    'pros/cons/tradeoffs': 'Pros / Cons / Tradeoffs',
    'pros / cons': 'Pros / Cons / Tradeoffs',
    'pros/cons': 'Pros / Cons / Tradeoffs',
    'risks': 'Risks',
    'open questions': 'Open questions',
    'sources': 'Sources',
}

_HEADING_NAMES = '|'.join(re.escape(alias) for alias in sorted(_HEADING_ALIASES, key=len, reverse=True))
_HEADING_PREFIX = r'^\s*(?:#{1,6}\s*)?(?:\d{1,2}[).]\s*)?\**\s*'

# "Sources", "## Risks (reliability) + mitigations", "**Key facts:**"
_HEADING_ONLY_RE = re.compile(
    _HEADING_PREFIX + r'(?P<name>' + _HEADING_NAMES + r')'
    r'(?:\s*\([^)\n]*\))?(?:\s*[+&/][^:\n]{0,40})?\s*\**\s*:?\s*\**\s*$',
    re.IGNORECASE,
)
# "Topic: Vendor lock-in"
_HEADING_INLINE_RE = re.compile(
    _HEADING_PREFIX + r'(?P<name>' + _HEADING_NAMES + r')\s*\**\s*:\s*\**\s*(?P<rest>\S.*)$',
    re.IGNORECASE,
)

_URL_RE = re.compile(r'https?://[^\s<>()\[\]"\']+', re.IGNORECASE)
_BARE_DOMAIN_RE = re.compile(
    r'\b(?:www\.)?(?:[a-z0-9-]+\.)+[a-z]{2,24}(?:/[^\s<>()\[\]"\']*)?',
    re.IGNORECASE,
)
_MD_LINK_RE = re.compile(r'\[(?P<title>[^\]]+)\]\((?P<url>[^)\s]+)\)')
_LIST_MARKER_RE = re.compile(r'^\s*(?:[-*•]+|\d{1,2}[).])\s*')
_TRAILING_PUNCT = '.,;:!?)]}>\'"'
_SEPARATORS = ' \t—–-:|'


def _canonical_heading(name: str) -> str:
    return _HEADING_ALIASES[re.sub(r'\s+', ' ', name.lower())]


def split_sections(text: str) -> Dict[str, str]:
    """
    Split notes into {heading: body} using the fixed heading layout.
    Lines before the first recognised heading are ignored; text on the
    heading line itself (e.g. "Topic: Foo") becomes the start of the body.
    """
    sections: Dict[str, List[str]] = {}
    current: Optional[str] = None

    for line in (text or '').splitlines():
        match = _HEADING_ONLY_RE.match(line) or _HEADING_INLINE_RE.match(line)
        if match:
            current = _canonical_heading(match.group('name'))
            sections.setdefault(current, [])
            rest = (match.groupdict().get('rest') or '').strip().strip('*').strip()
            if rest:
                sections[current].append(rest)
            continue
        if current is not None:
            sections[current].append(line)

    return {name: '\n'.join(lines).strip() for name, lines in sections.items()}


def has_headings(text: str) -> bool:
    return bool(split_sections(text))


def normalize_url(raw: str) -> Optional[str]:
    """
    Normalise a URL candidate: strip wrapping punctuation and prefix bare domains with https://.
    Returns None when the candidate cannot be read as a URL.
    """
    candidate = (raw or '').strip().strip('<>').rstrip(_TRAILING_PUNCT)
    if not candidate:
        return None

    if not re.match(r'^https?://', candidate, re.IGNORECASE):
        if not _BARE_DOMAIN_RE.fullmatch(candidate):
            return None
        candidate = f'https://{candidate}'

    parsed = urlparse(candidate)
    if not parsed.netloc or '.' not in parsed.netloc:
        return None
    return candidate


def _parse_source_line(line: str) -> Optional[Dict[str, str]]:
    text = _LIST_MARKER_RE.sub('', line).strip()
    if not text or text.lower().strip('.') == NONE_FOUND.lower():
        return None

    md = _MD_LINK_RE.search(text)
    if md:
        url = normalize_url(md.group('url'))
        return {'title': md.group('title').strip(), 'url': url} if url else None

    match = _URL_RE.search(text) or _BARE_DOMAIN_RE.search(text)
    if not match:
        return None

    url = normalize_url(match.group(0))
    if not url:
        return None

    title = re.sub(r'[{}]', '', text[:match.start()] + ' ' + text[match.end():]).strip(_SEPARATORS)
    if not title:
        title = urlparse(url).netloc
    return {'title': title, 'url': url}


def extract_sources(text: str) -> List[Dict[str, Any]]:
    """
    Extract the source list from research notes.

    Uses the "Sources" section when headings are present, otherwise any URL
    found anywhere in the text. Ids are assigned s1, s2, ... in order of
    appearance; duplicate URLs and unparseable lines are dropped.
    """
    sections = split_sections(text)
    if 'Sources' in sections:
        candidates = [_parse_source_line(line) for line in sections['Sources'].splitlines()]
    else:
        candidates = []
        for match in _URL_RE.finditer(text or ''):
            url = normalize_url(match.group(0))
            if url:
                candidates.append({'title': urlparse(url).netloc, 'url': url})

    sources: List[Dict[str, Any]] = []
    seen = set()
    for candidate in candidates:
        if not candidate or candidate['url'] in seen:
            continue
        seen.add(candidate['url'])
        sources.append({'id': f's{len(sources) + 1}', 'title': candidate['title'], 'url': candidate['url']})
    return sources


def ensure_headings(text: str) -> str:
    """
    Append any required heading the notes are missing. A missing Sources
    section is filled with the URLs found anywhere in the text.
    """
    text = (text or '').strip()
    if not text:
        return ''

    present = split_sections(text)
    additions = []
    for heading in REQUIRED_HEADINGS:
        if heading in present:
            continue
        if heading == 'Sources':
            found = extract_sources(text)
            lines = [f"- {s['title']} — {s['url']}" for s in found] or [f'- {NONE_FOUND}']
            additions.append('Sources\n' + '\n'.join(lines))
        else:
            additions.append(heading)
    if not additions:
        return text
    return text + '\n\n' + '\n\n'.join(additions)


def build_partial_notes(topic: str, context: str, lookup_results: List[Dict[str, Any]]) -> str:
    """
    Best-effort notes assembled from lookup results alone, used when the
    notes model call fails. Every heading is present even when empty.
    """
    facts = []
    for result in lookup_results:
        for excerpt in (result.get('excerpts') or [])[:2]:
            snippet = ' '.join(str(excerpt).split())[:300]
            if snippet:
                facts.append(f'- {snippet}')

    source_lines = [
        f"- {result.get('title') or urlparse(result['url']).netloc} — {result['url']}"
        for result in lookup_results if result.get('url')
    ]

    body = {
        'Topic': topic,
        'Scope': f'Partial notes compiled from web lookup results only. Context: {context}',
        'Overview': 'The notes model was unavailable; the points below are unedited excerpts from the sources.',
        'Key facts': '\n'.join(facts[:15]),
        'Definitions': '',
        'Recent developments': '',
        'Numbers': '',
        'Pros / Cons / Tradeoffs': '',
        'Risks': '- These notes were not synthesised and may be incomplete.',
        'Open questions': f'- What are the most relevant findings about "{topic}" for this thread?',
        'Sources': '\n'.join(source_lines) or f'- {NONE_FOUND}',
    }
    return '\n\n'.join(f'{heading}\n{body[heading]}'.rstrip() for heading in NOTE_HEADINGS)


def format_lookup_results(lookup_results: List[Dict[str, Any]], max_chars: int = 12000) -> str:
    """Compact text rendering of lookup results for the notes prompt"""
    chunks = []
    for index, result in enumerate(lookup_results, start=1):
        excerpts = ' '.join(' '.join(str(e).split()) for e in (result.get('excerpts') or []))
        chunks.append(f"[{index}] {result.get('title') or 'Untitled'} — {result.get('url')}\n{excerpts[:1500]}")
    return '\n\n'.join(chunks)[:max_chars]
