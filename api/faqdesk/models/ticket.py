"""Pydantic models for expert tickets."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TicketStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class TicketAction(str, Enum):
    """Status change requested from the ticket card in the expert channel."""

    REOPEN = "ReopenTicket"
    CLOSE = "CloseTicket"
    ASSIGN_TO_SELF = "AssignToSelf"

    @classmethod
    def parse(cls, token: Optional[str]) -> Optional["TicketAction"]:
        """Map a raw card token to an action, or None when unknown."""
        for action in cls:
            if action.value == token:
                return action
        return None


class FeedbackRating(str, Enum):
    HELPFUL = "Helpful"
    NEEDS_IMPROVEMENT = "NeedsImprovement"
    NOT_HELPFUL = "NotHelpful"


# ---------------------------------------------------------------------------
# Core data models
# ---------------------------------------------------------------------------


class TicketCreate(BaseModel):
    """Fields captured when a user asks an expert."""

    title: str = Field(..., min_length=1, max_length=250)
    description: Optional[str] = Field(None, max_length=4000)
    requester_name: str = ""
    requester_user_principal_name: Optional[str] = None
    requester_given_name: Optional[str] = None
    requester_object_id: Optional[str] = None
    requester_conversation_id: str
    user_question: Optional[str] = None
    knowledge_base_answer: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class Ticket(BaseModel):
    """Full ticket record (database row)."""

    ticket_id: str
    status: TicketStatus = TicketStatus.OPEN
    title: str
    description: Optional[str] = None
    requester_name: str = ""
    requester_user_principal_name: Optional[str] = None
    requester_given_name: Optional[str] = None
    requester_object_id: Optional[str] = None
    requester_conversation_id: str
    user_question: Optional[str] = None
    knowledge_base_answer: Optional[str] = None
    sme_card_activity_id: Optional[str] = None
    sme_thread_conversation_id: Optional[str] = None
    assigned_to_name: Optional[str] = None
    assigned_to_object_id: Optional[str] = None
    date_created: datetime
    date_assigned: Optional[datetime] = None
    date_closed: Optional[datetime] = None
    last_modified_by_name: Optional[str] = None
    last_modified_by_object_id: Optional[str] = None

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_to_object_id)


# ---------------------------------------------------------------------------
# Card payloads
# ---------------------------------------------------------------------------


class ChangeTicketStatusPayload(BaseModel):
    """Submission from the ticket card in the expert channel."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ticket_id: str = Field(..., alias="ticketId")
    action: Optional[str] = None


class AskAnExpertSubmission(BaseModel):
    """Submission of the "ask an expert" form in personal chat."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(default="", alias="Title")
    description: str = Field(default="", alias="Description")
    user_question: Optional[str] = Field(default=None, alias="UserQuestion")
    knowledge_base_answer: Optional[str] = Field(
        default=None, alias="KnowledgeBaseAnswer"
    )

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else (v or "")


class ShareFeedbackSubmission(BaseModel):
    """Submission of the feedback form in personal chat."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rating: Optional[FeedbackRating] = Field(default=None, alias="Rating")
    description: str = Field(default="", alias="DescriptionHelpful")
    user_question: Optional[str] = Field(default=None, alias="UserQuestion")
    knowledge_base_answer: Optional[str] = Field(
        default=None, alias="KnowledgeBaseAnswer"
    )

    @field_validator("rating", mode="before")
    @classmethod
    def empty_rating_to_none(cls, v):
        return v or None
