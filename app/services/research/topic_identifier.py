"""
Topic Identifier

Turns a raw email thread into a short list of specific research topics
"""

from dataclasses import dataclass, asdict
from typing import List, Dict, Any
from app.services.gpt_service import GptService, safe_parse_json
from app.services.research.schemas import validate_topic_list
from app.services.logger import logger

MAX_TOPICS = 5
DEFAULT_TOPIC_CONTEXT = 'Topic identified from thread analysis'
DEFAULT_TOPIC_PRIORITY = 'high'


@dataclass
class IdentifiedTopic:
    topic: str
    context: str = DEFAULT_TOPIC_CONTEXT
    priority: str = DEFAULT_TOPIC_PRIORITY

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TopicIdentifier:
    def __init__(self, gpt: GptService, model: str = None):
        self.gpt = gpt
        self.model = model

    async def identify(self, email_content: str) -> List[IdentifiedTopic]:
        """
        Identify at most five research topics in an email thread.
        Any failure (provider error, timeout, malformed output) yields an empty list.
        """
        if not email_content or not email_content.strip():
            return []

        try:
            raw = await self.gpt.call([{
                'role': 'system',
                'content': (
                    'You identify research topics in email threads. '
                    'Return ONLY a JSON object of the form {"topics": ["...", "..."]}.'
                )
            }, {
                'role': 'user',
                'content': (
                    f'Analyze the following email thread and identify MAXIMUM {MAX_TOPICS} HIGHLY SPECIFIC '
                    f'research topics or questions.\n\n'
                    f'Email thread:\n{email_content}\n\n'
                    f'Return only a flat list of highly relevant, granular research queries.'
                )
            }], max_tokens=500, model=self.model, response_format={'type': 'json_object'})

            parsed = safe_parse_json(raw)
            # Some models answer with a bare array
            if isinstance(parsed, list):
                parsed = {'topics': parsed}
            topic_list = validate_topic_list(parsed)
        except Exception as error:
            logger.error(f'[TOPICS] Error identifying topics: {str(error)}', errorType=type(error).__name__)
            return []

        titles = [t.strip() for t in topic_list.topics if t and t.strip()]
        if len(titles) > MAX_TOPICS:
            logger.info(f'[TOPICS] Model suggested {len(titles)} topics, keeping the first {MAX_TOPICS}')

        return [IdentifiedTopic(topic=title) for title in titles[:MAX_TOPICS]]
