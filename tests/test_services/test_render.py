"""
Brief rendering and citation tests
"""

from app.services.research.render import render_markdown, prune_citations, resolve_citations, source_index
from app.services.research.schemas import validate_brief, Citation
from fakes import make_brief


def _brief_with_dangling_citation():
    payload = make_brief()
    payload['sections'][0]['blocks'][0]['items'].append(
        {'text': 'Unsupported claim', 'citations': [{'source_id': 's9'}, {'source_id': 's1'}]}
    )
    return validate_brief(payload)


def test_resolve_citations_skips_unknown_ids():
    brief = _brief_with_dangling_citation()
    index = source_index(brief)
    numbers = resolve_citations([Citation(source_id='s9'), Citation(source_id='s1'), Citation(source_id='s1')], index)
    assert numbers == [1]


def test_render_markdown_drops_unresolvable_citations_silently():
    markdown = render_markdown(_brief_with_dangling_citation())
    assert '- Unsupported claim[1]' in markdown
    assert 's9' not in markdown
    assert '## Sources' in markdown
    assert '1. [Example](https://example.com)' in markdown


def test_render_markdown_accepts_dict_payload():
    markdown = render_markdown(make_brief('Pricing tiers'))
    assert markdown.startswith('# Research: Pricing tiers')
    assert '## TL;DR' in markdown


def test_render_markdown_callout_and_table():
    payload = make_brief()
    payload['sections'][0]['blocks'] = [
        {'type': 'callout', 'callout_kind': 'warning', 'text': 'Incomplete'},
        {'type': 'table', 'table': {
            'columns': [{'key': 'k', 'label': 'Metric'}],
            'rows': [[{'value': 'a|b', 'citations': [{'source_id': 's1'}]}]]
        }},
    ]
    markdown = render_markdown(payload)
    assert '> **Warning:** Incomplete' in markdown
    assert '| Metric |' in markdown
    assert '| a\\|b[1] |' in markdown


def test_prune_citations_removes_dangling_references_everywhere():
    brief = _brief_with_dangling_citation()
    pruned = prune_citations(brief)
    items = pruned.sections[0].blocks[0].items
    assert [c.source_id for c in items[1].citations] == ['s1']
    # original untouched
    assert len(brief.sections[0].blocks[0].items[1].citations) == 2
