"""
Brief Rendering

Markdown rendering of a formatted brief and citation resolution.
Citations whose source_id is not in the brief's sources are dropped silently.
"""

from typing import Dict, List, Any, Optional, Union
from app.services.research.schemas import FormattedBrief, Citation, validate_brief

CALLOUT_LABELS = {
    'info': 'Info',
    'warning': 'Warning',
    'risk': 'Risk',
    'tip': 'Tip',
    'note': 'Note',
}


def source_index(brief: FormattedBrief) -> Dict[str, int]:
    """Map source id -> 1-based display number"""
    return {source.id: position for position, source in enumerate(brief.sources, start=1)}


def resolve_citations(citations: Optional[List[Citation]], index: Dict[str, int]) -> List[int]:
    """Display numbers for the citations that resolve, in order, without duplicates"""
    numbers: List[int] = []
    for citation in citations or []:
        number = index.get(citation.source_id)
        if number is not None and number not in numbers:
            numbers.append(number)
    return numbers


def prune_citations(brief: FormattedBrief) -> FormattedBrief:
    """
    Return a copy of the brief where every citation resolves to one of its sources
    """
    known = {source.id for source in brief.sources}

    def keep(citations: Optional[List[Citation]]) -> Optional[List[Citation]]:
        if citations is None:
            return None
        return [c for c in citations if c.source_id in known]

    pruned = brief.model_copy(deep=True)
    for section in pruned.sections:
        for block in section.blocks:
            block.citations = keep(block.citations)
            for item in getattr(block, 'items', None) or []:
                item.citations = keep(item.citations)
            for definition in getattr(block, 'definitions', None) or []:
                definition.citations = keep(definition.citations)
            for question in getattr(block, 'questions', None) or []:
                question.citations = keep(question.citations)
            table = getattr(block, 'table', None)
            if table is not None:
                for row in table.rows:
                    for cell in row:
                        cell.citations = keep(cell.citations)
    return pruned


def _marks(citations: Optional[List[Citation]], index: Dict[str, int]) -> str:
    return ''.join(f'[{n}]' for n in resolve_citations(citations, index))


def _cell_text(value: Union[str, int, float, bool, None]) -> str:
    if value is None:
        return ''
    return str(value).replace('|', '\\|')


def _render_block(block, index: Dict[str, int]) -> List[str]:
    own = _marks(block.citations, index)

    if block.type == 'heading':
        level = min(6, max(1, block.level or 1)) + 2
        return [f"{'#' * min(level, 6)} {block.text}{own}"]
    if block.type == 'paragraph':
        return [f'{block.text}{own}']
    if block.type == 'bullets':
        return [f'- {item.text}{_marks(item.citations, index)}' for item in block.items]
    if block.type == 'callout':
        return [f"> **{CALLOUT_LABELS[block.callout_kind]}:** {block.text}{own}"]
    if block.type == 'definition_list':
        return [
            f'- **{item.term}**{_marks(item.citations, index)}: {item.definition}'
            for item in block.definitions
        ]
    if block.type == 'qa_list':
        lines = []
        for qa in block.questions:
            lines.append(f'**Q:** {qa.q}')
            lines.append(f'**A:** {qa.a}{_marks(qa.citations, index)}')
            lines.append('')
        return lines[:-1]
    if block.type == 'table':
        table = block.table
        lines = []
        if table.caption:
            lines.append(f'*{table.caption}*')
        lines.append('| ' + ' | '.join(col.label for col in table.columns) + ' |')
        lines.append('|' + '---|' * len(table.columns))
        for row in table.rows:
            cells = [f'{_cell_text(cell.value)}{_marks(cell.citations, index)}' for cell in row]
            lines.append('| ' + ' | '.join(cells) + ' |')
        return lines
    if block.type == 'divider':
        return ['---']
    return []


def render_markdown(brief: Union[FormattedBrief, Dict[str, Any]]) -> str:
    """
    Render a brief as Markdown with numbered citation marks and a sources list
    """
    if not isinstance(brief, FormattedBrief):
        brief = validate_brief(brief)

    index = source_index(brief)
    lines: List[str] = [f'# {brief.title}']
    if brief.subtitle:
        lines += ['', f'_{brief.subtitle}_']

    if brief.tldr:
        lines += ['', '## TL;DR']
        lines += [f'- {point}' for point in brief.tldr]

    for section in brief.sections:
        lines += ['', f'## {section.title}']
        if section.summary:
            lines += [section.summary]
        for block in section.blocks:
            rendered = _render_block(block, index)
            if rendered:
                lines += [''] + rendered

    if brief.sources:
        lines += ['', '## Sources']
        lines += [f'{index[source.id]}. [{source.title}]({source.url})' for source in brief.sources]

    return '\n'.join(lines).strip() + '\n'
