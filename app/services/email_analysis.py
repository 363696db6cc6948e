"""
Email Analysis Service

Extracts stakeholders, action items, deadlines, decisions, open questions
and suggested replies from a pasted email thread
"""

from typing import List, Literal
from pydantic import BaseModel, Field
from app.services.gpt_service import GptService, safe_parse_json
from app.services.logger import logger

FALLBACK_REPLY = 'Thank you for your email. I will review and respond shortly.'


class Stakeholder(BaseModel):
    name: str
    email: str = ''
    role: str = ''
    evidence: str = ''


class ActionItem(BaseModel):
    description: str
    assignee: str = 'Unassigned'
    priority: Literal['high', 'medium', 'low'] = 'medium'
    evidence: str = ''


class Deadline(BaseModel):
    date: str
    description: str = ''
    evidence: str = ''


class KeyDecision(BaseModel):
    decision: str
    rationale: str = ''
    evidence: str = ''


class OpenQuestion(BaseModel):
    question: str
    context: str = ''
    evidence: str = ''


class SuggestedReply(BaseModel):
    title: str
    content: str


class EmailAnalysis(BaseModel):
    stakeholders: List[Stakeholder] = Field(default_factory=list)
    action_items: List[ActionItem] = Field(default_factory=list)
    deadlines: List[Deadline] = Field(default_factory=list)
    key_decisions: List[KeyDecision] = Field(default_factory=list)
    open_questions: List[OpenQuestion] = Field(default_factory=list)
    suggested_replies: List[SuggestedReply] = Field(default_factory=list)


def fallback_analysis() -> EmailAnalysis:
    return EmailAnalysis(suggested_replies=[SuggestedReply(title='Default Reply', content=FALLBACK_REPLY)])


ANALYSIS_PROMPT = """You are an expert email analyst. Analyze the email thread and extract structured information.

Instructions:
1. Identify all stakeholders mentioned (senders, recipients, people referenced): name, email, role, evidence
2. Extract actionable items: description, assignee ("Unassigned" if unclear), priority (high|medium|low), evidence
3. Find any deadlines or dates: date (ISO 8601, or the descriptive text if no exact date), description, evidence
4. Identify key decisions: decision, rationale, evidence
5. Note open questions: question, context, evidence
6. Generate 3 distinct suggested replies ({title, content}): a "Brief" reply, a "Detailed" reply
   and a "Question-focused" reply

Only include items actually present in the email; use empty arrays for empty categories.
Priorities: "high" for urgent/time-sensitive, "medium" for important but not urgent, "low" for minor items.
Return ONLY a JSON object with keys stakeholders, action_items, deadlines, key_decisions,
open_questions, suggested_replies."""


async def analyze_email_thread(gpt: GptService, content: str, model: str = None) -> EmailAnalysis:
    """
    Analyze an email thread
    Returns:
        EmailAnalysis (a minimal fallback with one default reply when the model call fails)
    """
    try:
        raw = await gpt.call([
            {'role': 'system', 'content': ANALYSIS_PROMPT},
            {'role': 'user', 'content': f'Email Thread:\n{content}'}
        ], max_tokens=4000, model=model, response_format={'type': 'json_object'})

        parsed = safe_parse_json(raw)
        if not isinstance(parsed, dict):
            raise ValueError('analysis output is not a JSON object')
        analysis = EmailAnalysis.model_validate(parsed)
    except Exception as error:
        logger.error(f'[ANALYSIS] Error analyzing email: {str(error)}', errorType=type(error).__name__)
        return fallback_analysis()

    if not analysis.suggested_replies:
        analysis.suggested_replies = fallback_analysis().suggested_replies

    logger.info(
        '[ANALYSIS] Analysis complete',
        stakeholders=len(analysis.stakeholders),
        action_items=len(analysis.action_items),
        deadlines=len(analysis.deadlines)
    )
    return analysis
