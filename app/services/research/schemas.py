"""
Research Schemas

Structured-output contracts for every LLM call in the research pipeline:
the topic list and the formatted research brief (sections, blocks, sources).
Model output is validated here before it is persisted or rendered.
"""

from typing import Annotated, List, Optional, Union, Literal, Any, Dict
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from app.errors import SchemaViolation

SCHEMA_VERSION = '1.0.0'
MAX_TLDR_ITEMS = 5

SectionKind = Literal[
    'why_it_matters',
    'what_it_is',
    'key_points',
    'whats_new',
    'numbers',
    'pros_cons',
    'risks_mitigations',
    'recommendations',
    'faq',
    'custom',
]

CalloutKind = Literal['info', 'warning', 'risk', 'tip', 'note']


class _SchemaModel(BaseModel):
    # Flat model output carries nulls for fields of other block types
    model_config = ConfigDict(extra='ignore')


class TopicList(_SchemaModel):
    topics: List[str]


class Citation(_SchemaModel):
    source_id: str
    note: Optional[str] = None
    quoted_text: Optional[str] = None


class Source(_SchemaModel):
    id: str
    title: str
    url: str
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    accessed_date: Optional[str] = None
    notes: Optional[str] = None


class BulletItem(_SchemaModel):
    text: str
    citations: Optional[List[Citation]] = None


class DefinitionItem(_SchemaModel):
    term: str
    definition: str
    citations: Optional[List[Citation]] = None


class QAItem(_SchemaModel):
    q: str
    a: str
    citations: Optional[List[Citation]] = None

    @field_validator('a')
    @classmethod
    def answer_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError('FAQ answers must not be empty')
        return value


class TableColumn(_SchemaModel):
    key: str
    label: str


class TableCell(_SchemaModel):
    value: Union[bool, int, float, str, None] = None
    citations: Optional[List[Citation]] = None


class Table(_SchemaModel):
    caption: Optional[str] = None
    columns: List[TableColumn]
    rows: List[List[TableCell]]


class HeadingBlock(_SchemaModel):
    type: Literal['heading']
    text: str
    level: Optional[int] = None
    citations: Optional[List[Citation]] = None


class ParagraphBlock(_SchemaModel):
    type: Literal['paragraph']
    text: str
    citations: Optional[List[Citation]] = None


class BulletsBlock(_SchemaModel):
    type: Literal['bullets']
    items: List[BulletItem]
    citations: Optional[List[Citation]] = None


class TableBlock(_SchemaModel):
    type: Literal['table']
    table: Table
    citations: Optional[List[Citation]] = None


class CalloutBlock(_SchemaModel):
    type: Literal['callout']
    callout_kind: CalloutKind
    text: str
    citations: Optional[List[Citation]] = None


class DefinitionListBlock(_SchemaModel):
    type: Literal['definition_list']
    definitions: List[DefinitionItem]
    citations: Optional[List[Citation]] = None


class QAListBlock(_SchemaModel):
    type: Literal['qa_list']
    questions: List[QAItem]
    citations: Optional[List[Citation]] = None


class DividerBlock(_SchemaModel):
    type: Literal['divider']
    citations: Optional[List[Citation]] = None


Block = Annotated[
    Union[
        HeadingBlock,
        ParagraphBlock,
        BulletsBlock,
        TableBlock,
        CalloutBlock,
        DefinitionListBlock,
        QAListBlock,
        DividerBlock,
    ],
    Field(discriminator='type'),
]


class Section(_SchemaModel):
    id: str
    kind: SectionKind
    title: str
    summary: Optional[str] = None
    blocks: List[Block]


class FormattedBrief(_SchemaModel):
    schema_version: str = SCHEMA_VERSION
    doc_id: Optional[str] = None
    title: str
    subtitle: Optional[str] = None
    topic: Optional[str] = None
    audience: Optional[str] = None
    tone: Optional[str] = None
    generated_at: Optional[str] = None
    tldr: List[str] = Field(default_factory=list, max_length=MAX_TLDR_ITEMS)
    sections: List[Section] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)
    markdown_fallback: Optional[str] = None

    def to_content(self) -> Dict[str, Any]:
        """JSON-ready dict for persistence and API responses"""
        return self.model_dump(mode='json', exclude_none=True)


def _violation(error: ValidationError) -> SchemaViolation:
    first = error.errors()[0]
    field = '.'.join(str(part) for part in first.get('loc', ())) or '<root>'
    return SchemaViolation(field, first.get('msg', 'invalid value'))


def validate_topic_list(candidate: Any) -> TopicList:
    """
    Validate model output against the topic-list schema
    Raises:
        SchemaViolation: naming the first offending field
    """
    try:
        return TopicList.model_validate(candidate)
    except ValidationError as error:
        raise _violation(error) from error


def validate_brief(candidate: Any) -> FormattedBrief:
    """
    Validate model output against the formatted-brief schema
    Raises:
        SchemaViolation: naming the first offending field
    """
    try:
        return FormattedBrief.model_validate(candidate)
    except ValidationError as error:
        raise _violation(error) from error
