"""
Research Workflow Engine

Two-stage research pipeline for a single topic:

1. ResearchStage   - produces plain-text research notes under fixed headings,
                     optionally grounded on a web lookup.
2. FormattingStage - turns the notes into a validated FormattedBrief.

ResearchWorkflowEngine.run() wraps both stages in one error boundary with a
timeout ceiling and always returns a WorkflowOutcome carrying a valid brief:
status "ok" for a formatted result, "degraded" for the standard failure brief.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
import httpx
from app.config import Settings
from app.errors import ProviderFailure, SchemaViolation
from app.services.gpt_service import GptService, safe_parse_json
from app.services.parallel_client import ParallelClient
from app.services.research.notes import (
    NOTE_HEADINGS,
    build_partial_notes,
    ensure_headings,
    extract_sources,
    format_lookup_results,
)
from app.services.research.render import prune_citations
from app.services.research.schemas import (
    SCHEMA_VERSION,
    FormattedBrief,
    Section,
    CalloutBlock,
    validate_brief,
)
from app.services.logger import logger

DEFAULT_CONTEXT = 'Email thread analysis'
ERROR_SECTION_ID = 'error'
FAILURE_TLDR = 'Research could not be completed at this time due to an error.'
FAILURE_MESSAGE = 'An error occurred while running the research workflow. Please try again later.'
INCOMPLETE_MESSAGE = 'Research was incomplete: the web lookup failed or returned no usable results, so these notes may be missing facts and sources.'

STATUS_OK = 'ok'
STATUS_DEGRADED = 'degraded'

RESEARCH_INSTRUCTIONS = f"""You are the Content Research Agent.
Do light research on the topic and return a Research Notes document in plain text/Markdown (NOT JSON).

Use exactly these headings, in this order, even when a section is short or empty:
{chr(10).join(f'{i}) {h}' for i, h in enumerate(NOTE_HEADINGS, start=1))}

Guidance:
- Overview: 4-6 sentences. Key facts: 8-15 bullets. Definitions: 5-12 bullets.
- Recent developments and Numbers: include dates and context where relevant.
- Risks: cover reliability and privacy/security, with mitigations.
- Sources: one line per source, formatted as "- Link Name — https://...". No other fields.
  Do not invent links. If there are none, write "- None found".
- If the lookup results are weak or missing, still return the full heading layout with fewer bullets.
  Never answer with only an error message."""

FORMATTING_INSTRUCTIONS = f"""You are the Content Formatting Agent.
Transform the research notes in this conversation into UI-ready JSON for a FormattedBrief.

Output ONLY a JSON object with keys:
schema_version ("{SCHEMA_VERSION}"), title, subtitle, topic, tldr (1-5 short strings), sections, sources.

Each section: {{"id", "kind", "title", "summary", "blocks"}} where kind is one of
why_it_matters, what_it_is, key_points, whats_new, numbers, pros_cons, risks_mitigations, recommendations, faq, custom.
Each block has a "type" of heading, paragraph, bullets, table, callout, definition_list, qa_list or divider:
- heading: {{"type", "text", "level"}}
- paragraph: {{"type", "text"}}
- bullets: {{"type", "items": [{{"text", "citations"}}]}}
- table: {{"type", "table": {{"caption", "columns": [{{"key", "label"}}], "rows": [[{{"value", "citations"}}]]}}}}
- callout: {{"type", "callout_kind" (info|warning|risk|tip|note), "text"}}
- definition_list: {{"type", "definitions": [{{"term", "definition", "citations"}}]}}
- qa_list: {{"type", "questions": [{{"q", "a", "citations"}}]}}
- divider: {{"type"}}
Citations are [{{"source_id": "s1"}}] and may only reference the provided source ids.

Rules:
- No new facts. Only rephrase, reorganise, deduplicate and clarify what is in the notes.
- Anything unresolved becomes an FAQ or open question, never a claim.
- Every FAQ question needs a non-empty answer synthesised from the notes, or a statement that it is unclear.
- Prefer short bullets (3-7 per block) over paragraphs. Skip empty sections.
- Default section order: why_it_matters, what_it_is, key_points, whats_new, numbers, pros_cons,
  risks_mitigations, recommendations (5-10 action-oriented steps), faq.
- If the notes mention an error, still produce a normal brief with a risk callout saying research was incomplete.
- Never use the section id "{ERROR_SECTION_ID}"."""


@dataclass
class ResearchNotes:
    """Output of the research stage"""
    text: str
    partial: bool = False
    lookup_results: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class WorkflowOutcome:
    """Tagged result: both arms carry a brief of the same type"""
    status: str
    brief: FormattedBrief
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


def build_research_request(topic: str, context: str, email_content: str) -> str:
    return (
        f'Research request for topic: "{topic}"\n'
        f'Context: {context}\n\n'
        f'Original Email Content:\n{email_content}\n'
    )


def failure_brief(topic: Optional[str]) -> FormattedBrief:
    """
    The standard brief returned when research could not be completed
    """
    return FormattedBrief(
        schema_version=SCHEMA_VERSION,
        title=f'Research: {topic or "Untitled topic"}',
        topic=topic or None,
        tldr=[FAILURE_TLDR],
        sections=[
            Section(
                id=ERROR_SECTION_ID,
                kind='custom',
                title='Status',
                blocks=[CalloutBlock(type='callout', callout_kind='risk', text=FAILURE_MESSAGE)],
            )
        ],
        sources=[],
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def is_failure_brief(brief: Dict[str, Any]) -> bool:
    """
    Whether a payload is the standard failure brief. Topic views from the identify
    cache carry only tldr, so the failure tldr counts as well as the error section.
    """
    brief = brief or {}
    if any(section.get('id') == ERROR_SECTION_ID for section in brief.get('sections') or []):
        return True
    return brief.get('tldr') == [FAILURE_TLDR]


def reject_reserved_sections(brief: FormattedBrief) -> FormattedBrief:
    """Only failure_brief() may use the error section id"""
    if any(section.id == ERROR_SECTION_ID for section in brief.sections):
        raise SchemaViolation('sections.id', f'"{ERROR_SECTION_ID}" is reserved for failed research')
    return brief


class ResearchStage:
    """Stage 1: research notes (plain text under fixed headings)"""

    def __init__(self, gpt: GptService, parallel: Optional[ParallelClient] = None, model: Optional[str] = None):
        self.gpt = gpt
        self.parallel = parallel
        self.model = model

    async def _lookup(self, topic: str, context: str) -> List[Dict[str, Any]]:
        queries = await self.gpt.craft_search_queries(f'Topic: {topic}\nContext: {context}') or [topic]
        return await self.parallel.search(
            objective=f'Background research on: {topic}',
            search_queries=queries
        )

    async def run(self, topic: str, context: str, email_content: str) -> ResearchNotes:
        request_text = build_research_request(topic, context, email_content)
        lookup_results: List[Dict[str, Any]] = []
        partial = False

        if self.parallel is not None and self.parallel.is_available():
            try:
                lookup_results = await self._lookup(topic, context)
                partial = not lookup_results
            except Exception as error:
                logger.warning(f'[RESEARCH] [{topic}] Web lookup failed, continuing without it: {str(error)}')
                partial = True

        user_content = request_text
        if lookup_results:
            user_content += f'\nWeb lookup results:\n{format_lookup_results(lookup_results)}\n'
        elif partial:
            user_content += '\nWeb lookup failed or returned nothing; work from the email content and general knowledge.\n'

        try:
            text = await self.gpt.call([
                {'role': 'system', 'content': RESEARCH_INSTRUCTIONS},
                {'role': 'user', 'content': user_content},
            ], max_tokens=2048, model=self.model)
        except Exception as error:
            if not lookup_results:
                raise
            logger.warning(f'[RESEARCH] [{topic}] Notes model failed, building notes from lookup results: {str(error)}')
            text = build_partial_notes(topic, context, lookup_results)
            partial = True

        return ResearchNotes(text=ensure_headings(text), partial=partial, lookup_results=lookup_results)


class FormattingStage:
    """Stage 2: research notes -> validated FormattedBrief"""

    def __init__(self, gpt: GptService, model: Optional[str] = None):
        self.gpt = gpt
        self.model = model

    async def run(self, topic: str, request_text: str, notes: ResearchNotes) -> FormattedBrief:
        sources = extract_sources(notes.text)

        raw = await self.gpt.call([
            {'role': 'system', 'content': FORMATTING_INSTRUCTIONS},
            {'role': 'user', 'content': request_text},
            {'role': 'assistant', 'content': notes.text},
            {'role': 'user', 'content': (
                'Format the research notes above. Use exactly these sources (ids are fixed):\n'
                f'{json.dumps(sources, ensure_ascii=False)}'
            )},
        ], max_tokens=8192, model=self.model, response_format={'type': 'json_object'})

        data = safe_parse_json(raw)
        if not isinstance(data, dict):
            raise SchemaViolation('<root>', 'formatting output is not a JSON object')

        data['sources'] = sources
        data['schema_version'] = data.get('schema_version') or SCHEMA_VERSION
        data['topic'] = topic
        data['title'] = data.get('title') or topic or 'Untitled topic'

        brief = reject_reserved_sections(validate_brief(data))

        if notes.partial:
            brief.sections.insert(0, Section(
                id='research_status',
                kind='custom',
                title='Research status',
                blocks=[CalloutBlock(type='callout', callout_kind='warning', text=INCOMPLETE_MESSAGE)],
            ))

        brief.generated_at = datetime.now(timezone.utc).isoformat()
        return prune_citations(brief)


class ResearchWorkflowEngine:
    """
    Runs the research workflow for one topic. run() never raises.
    """

    def __init__(
        self,
        settings: Settings,
        gpt: GptService,
        parallel: Optional[ParallelClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.research_stage = ResearchStage(gpt, parallel, model=settings.OPENAI_MODEL)
        self.formatting_stage = FormattingStage(gpt, model=settings.OPENAI_MODEL)
        self.workflow_url = settings.RESEARCH_WORKFLOW_URL
        self.api_key = settings.OPENAI_API_KEY
        self.timeout = settings.RESEARCH_WORKFLOW_TIMEOUT_SECONDS
        self.transport = transport

    async def run(self, topic: str, context: Optional[str], email_content: str) -> WorkflowOutcome:
        context = context or DEFAULT_CONTEXT
        logger.info(f'[RESEARCH] [{topic}] Starting research workflow', remote=bool(self.workflow_url))

        try:
            brief = await asyncio.wait_for(self._run(topic, context, email_content), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f'[RESEARCH] [{topic}] Workflow exceeded {self.timeout}s')
            return WorkflowOutcome(STATUS_DEGRADED, failure_brief(topic), error='timeout')
        except Exception as error:
            logger.error(
                f'[RESEARCH] [{topic}] Workflow failed: {str(error)}',
                errorType=type(error).__name__,
                exc_info=True
            )
            return WorkflowOutcome(STATUS_DEGRADED, failure_brief(topic), error=str(error))

        logger.info(f'[RESEARCH] [{topic}] Workflow succeeded', sections=len(brief.sections), sources=len(brief.sources))
        return WorkflowOutcome(STATUS_OK, brief)

    async def _run(self, topic: str, context: str, email_content: str) -> FormattedBrief:
        if self.workflow_url:
            return await self._run_remote(topic, context, email_content)

        notes = await self.research_stage.run(topic, context, email_content)
        if not notes.text.strip():
            raise ProviderFailure('Research stage produced no content')

        return await self.formatting_stage.run(
            topic,
            build_research_request(topic, context, email_content),
            notes
        )

    async def _run_remote(self, topic: str, context: str, email_content: str) -> FormattedBrief:
        """Delegate both stages to a deployed workflow service"""
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.workflow_url,
                headers=headers,
                json={
                    'input_as_text': build_research_request(topic, context, email_content),
                    'topic': topic,
                    'context': context,
                }
            )

        if not response.is_success:
            raise ProviderFailure(f'Workflow failed: {response.status_code} - {response.text[:300]}', status_code=response.status_code)

        data = response.json()
        if not isinstance(data, dict):
            raise SchemaViolation('<root>', 'workflow output is not a JSON object')
        data['topic'] = topic
        data.setdefault('sources', [])
        return prune_citations(reject_reserved_sections(validate_brief(data)))


async def research_single_topic(
    engine: ResearchWorkflowEngine,
    topic: str,
    context: Optional[str],
    email_content: str
) -> Dict[str, Any]:
    """Run the workflow and return only the brief payload"""
    outcome = await engine.run(topic, context, email_content)
    return outcome.brief.to_content()
