"""Pydantic models for knowledge base entries and the Q&A edit flow."""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Metadata names stored on each knowledge base pair (the service lower-cases them)
METADATA_CREATED_AT = "createdat"
METADATA_CREATED_BY = "createdby"
METADATA_UPDATED_AT = "updatedat"
METADATA_UPDATED_BY = "updatedby"
METADATA_CONVERSATION_ID = "conversationid"
METADATA_ACTIVITY_REFERENCE_ID = "activityreferenceid"

NO_ANSWER_ID = -1

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class KnowledgeBasePartition(str, Enum):
    """Index a lookup runs against: the live published one or the draft."""

    PUBLISHED = "prod"
    TEST = "test"


class AnswerOutcome(str, Enum):
    ANSWERED = "answered"
    NOT_FOUND = "not_found"
    NOT_READY = "not_ready"


class QnaFormCommand(str, Enum):
    SAVE = "save"
    PREVIEW = "preview"
    BACK = "back"


class QnaFormError(str, Enum):
    MARKUP_PRESENT = "markup_present"
    EMPTY_FIELD = "empty_field"
    INVALID_IMAGE_URL = "invalid_image_url"
    INVALID_REDIRECT_URL = "invalid_redirect_url"
    DUPLICATE_QUESTION = "duplicate_question"


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class QueryTag(BaseModel):
    name: str
    value: str


class QnaPrompt(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    display_text: str = Field(alias="displayText")
    qna_id: Optional[int] = Field(default=None, alias="qnaId")
    display_order: int = Field(default=0, alias="displayOrder")


class QnaAnswer(BaseModel):
    """One ranked answer returned by a knowledge base lookup."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = NO_ANSWER_ID
    answer: str = ""
    questions: List[str] = Field(default_factory=list)
    score: float = 0.0
    metadata: List[QueryTag] = Field(default_factory=list)
    prompts: List[QnaPrompt] = Field(default_factory=list)

    @property
    def first_question(self) -> str:
        return self.questions[0] if self.questions else ""

    def metadata_value(self, name: str) -> Optional[str]:
        for tag in self.metadata:
            if tag.name.lower() == name.lower():
                return tag.value
        return None


class AnswerResult(BaseModel):
    """Outcome of a knowledge base lookup.

    NOT_READY means the knowledge base has never been published (or is
    empty); callers reply with a wait message instead of an error.
    """

    outcome: AnswerOutcome
    answers: List[QnaAnswer] = Field(default_factory=list)

    @property
    def top(self) -> Optional[QnaAnswer]:
        return self.answers[0] if self.answers else None

    @classmethod
    def not_ready(cls) -> "AnswerResult":
        return cls(outcome=AnswerOutcome.NOT_READY)

    @classmethod
    def from_answers(cls, answers: List[QnaAnswer]) -> "AnswerResult":
        if answers and answers[0].id != NO_ANSWER_ID:
            return cls(outcome=AnswerOutcome.ANSWERED, answers=answers)
        return cls(outcome=AnswerOutcome.NOT_FOUND, answers=answers)


class AnswerPayload(BaseModel):
    """Answer text of a pair, either plain or a rich card payload.

    Rich answers are stored in the knowledge base as JSON so existing
    entries created by the web editor keep working.
    """

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(default="", alias="Description")
    title: str = Field(default="", alias="Title")
    subtitle: str = Field(default="", alias="Subtitle")
    image_url: str = Field(default="", alias="ImageUrl")
    redirection_url: str = Field(default="", alias="RedirectionUrl")

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @property
    def is_rich(self) -> bool:
        return any(
            field.strip()
            for field in (
                self.title,
                self.subtitle,
                self.image_url,
                self.redirection_url,
            )
        )

    @classmethod
    def parse(cls, answer: str) -> "AnswerPayload":
        """Read a stored answer, falling back to plain text."""
        text = answer or ""
        if text.lstrip().startswith("{"):
            try:
                data = json.loads(text)
            except ValueError:
                data = None
            if isinstance(data, dict):
                return cls.model_validate(data)
        return cls(description=text)

    def to_answer_text(self) -> str:
        """Text to store in the knowledge base."""
        if not self.is_rich:
            return self.description.strip()
        return json.dumps(
            {
                "Description": self.description.strip(),
                "Title": self.title.strip(),
                "Subtitle": self.subtitle.strip(),
                "ImageUrl": self.image_url.strip(),
                "RedirectionUrl": self.redirection_url.strip(),
            }
        )


# ---------------------------------------------------------------------------
# Stored entities
# ---------------------------------------------------------------------------


class QnaPair(BaseModel):
    """A knowledge base pair as returned by a full download."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    answer: str = ""
    questions: List[str] = Field(default_factory=list)
    metadata: List[QueryTag] = Field(default_factory=list)
    source: Optional[str] = None

    @property
    def question(self) -> str:
        return self.questions[0] if self.questions else ""

    def metadata_value(self, name: str) -> Optional[str]:
        for tag in self.metadata:
            if tag.name.lower() == name.lower():
                return tag.value
        return None


class ActivityEntity(BaseModel):
    """Links a knowledge base pair to the card that announced it."""

    activity_reference_id: str
    activity_id: str


# ---------------------------------------------------------------------------
# Edit session
# ---------------------------------------------------------------------------


class QnaEditSession(BaseModel):
    """State of the add/edit form, parsed once from the card submission.

    Each step of the workflow returns a new session rather than mutating the
    received one; re-rendered forms embed ``to_card_data()``.
    """

    model_config = ConfigDict(frozen=True)

    qna_pair_id: Optional[int] = None
    original_question: str = ""
    question: str = ""
    description: str = ""
    title: str = ""
    subtitle: str = ""
    image_url: str = ""
    redirection_url: str = ""
    command: QnaFormCommand = QnaFormCommand.SAVE
    errors: Tuple[QnaFormError, ...] = ()

    @property
    def answer(self) -> AnswerPayload:
        return AnswerPayload(
            description=self.description,
            title=self.title,
            subtitle=self.subtitle,
            image_url=self.image_url,
            redirection_url=self.redirection_url,
        )

    @property
    def is_rich(self) -> bool:
        return self.answer.is_rich

    @property
    def question_changed(self) -> bool:
        return (
            self.question.strip().lower() != self.original_question.strip().lower()
        )

    def has_error(self, error: QnaFormError) -> bool:
        return error in self.errors

    def with_errors(self, *errors: QnaFormError) -> "QnaEditSession":
        return self.model_copy(update={"errors": tuple(errors)})

    def to_card_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "originalQuestion": self.original_question,
            "updatedQuestion": self.question,
            "description": self.description,
            "title": self.title,
            "subtitle": self.subtitle,
            "imageUrl": self.image_url,
            "redirectionUrl": self.redirection_url,
        }
        if self.qna_pair_id is not None:
            data["qnaPairId"] = self.qna_pair_id
        return data

    @classmethod
    def from_card_data(cls, data: Dict[str, Any]) -> "QnaEditSession":
        """Parse a form submission into a session."""

        def text(key: str) -> str:
            value = data.get(key)
            return str(value).strip() if value is not None else ""

        raw_id = data.get("qnaPairId")
        try:
            qna_pair_id = int(raw_id) if raw_id not in (None, "") else None
        except (TypeError, ValueError):
            qna_pair_id = None

        command = QnaFormCommand.SAVE
        raw_command = text("command").lower()
        for candidate in QnaFormCommand:
            if candidate.value == raw_command:
                command = candidate

        return cls(
            qna_pair_id=qna_pair_id,
            original_question=text("originalQuestion"),
            question=text("updatedQuestion"),
            description=text("description"),
            title=text("title"),
            subtitle=text("subtitle"),
            image_url=text("imageUrl"),
            redirection_url=text("redirectionUrl"),
            command=command,
        )

    @classmethod
    def from_pair(cls, pair: QnaPair) -> "QnaEditSession":
        answer = AnswerPayload.parse(pair.answer)
        return cls(
            qna_pair_id=pair.id,
            original_question=pair.question,
            question=pair.question,
            description=answer.description,
            title=answer.title,
            subtitle=answer.subtitle,
            image_url=answer.image_url,
            redirection_url=answer.redirection_url,
        )
