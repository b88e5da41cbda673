"""Classification of inbound activities into bot intents.

``classify`` is the single place where the shape of an activity (type,
conversation, text, card payload, invoke name) is interpreted. Handlers
receive a typed intent and never look at raw payload keys themselves.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from faqdesk.channels import cards
from faqdesk.models.activity import (
    Activity,
    ActivityType,
    Attachment,
    ConversationType,
)
from faqdesk.models.batch import BatchFileFormat
from faqdesk.models.ticket import (
    AskAnExpertSubmission,
    ChangeTicketStatusPayload,
    ShareFeedbackSubmission,
)

FILE_DOWNLOAD_INFO_CONTENT_TYPE = "application/vnd.microsoft.teams.file.download.info"

MENTION_PATTERN = re.compile(r"<at>.*?</at>", re.IGNORECASE | re.DOTALL)

# Invoke names
MESSAGING_EXTENSION_QUERY = "composeExtension/query"
MESSAGING_EXTENSION_FETCH_TASK = "composeExtension/fetchTask"
MESSAGING_EXTENSION_SUBMIT_ACTION = "composeExtension/submitAction"
TASK_FETCH = "task/fetch"
TASK_SUBMIT = "task/submit"
FILE_CONSENT = "fileConsent/invoke"


# ---------------------------------------------------------------------------
# Conversation updates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WelcomePersonal:
    pass


@dataclass(frozen=True)
class WelcomeTeam:
    team_name: str = ""


# ---------------------------------------------------------------------------
# Personal chat
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnswerQuestion:
    question: str
    previous_qna_id: Optional[int] = None
    previous_question: Optional[str] = None


@dataclass(frozen=True)
class ShowAskAnExpert:
    submission: AskAnExpertSubmission


@dataclass(frozen=True)
class ShowShareFeedback:
    submission: ShareFeedbackSubmission


@dataclass(frozen=True)
class SubmitAskAnExpert:
    submission: AskAnExpertSubmission


@dataclass(frozen=True)
class SubmitShareFeedback:
    submission: ShareFeedbackSubmission


@dataclass(frozen=True)
class PersonalTour:
    pass


@dataclass(frozen=True)
class BatchFile:
    attachment: Attachment


# ---------------------------------------------------------------------------
# Expert team channel
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TeamTour:
    pass


@dataclass(frozen=True)
class ChangeTicketStatus:
    payload: ChangeTicketStatusPayload


@dataclass(frozen=True)
class DeleteQnaPair:
    question: str
    qna_pair_id: Optional[int] = None


@dataclass(frozen=True)
class DeclineDelete:
    pass


@dataclass(frozen=True)
class UnrecognizedTeamInput:
    pass


# ---------------------------------------------------------------------------
# Invokes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MessagingExtensionQuery:
    value: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessagingExtensionFetch:
    value: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessagingExtensionSubmit:
    value: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskFetch:
    value: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskSubmit:
    value: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FileConsent:
    value: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ignore:
    reason: str


Intent = Union[
    WelcomePersonal,
    WelcomeTeam,
    AnswerQuestion,
    ShowAskAnExpert,
    ShowShareFeedback,
    SubmitAskAnExpert,
    SubmitShareFeedback,
    PersonalTour,
    BatchFile,
    TeamTour,
    ChangeTicketStatus,
    DeleteQnaPair,
    DeclineDelete,
    UnrecognizedTeamInput,
    MessagingExtensionQuery,
    MessagingExtensionFetch,
    MessagingExtensionSubmit,
    TaskFetch,
    TaskSubmit,
    FileConsent,
    Ignore,
]

INVOKE_INTENTS = {
    MESSAGING_EXTENSION_QUERY: MessagingExtensionQuery,
    MESSAGING_EXTENSION_FETCH_TASK: MessagingExtensionFetch,
    MESSAGING_EXTENSION_SUBMIT_ACTION: MessagingExtensionSubmit,
    TASK_FETCH: TaskFetch,
    TASK_SUBMIT: TaskSubmit,
    FILE_CONSENT: FileConsent,
}


def strip_mentions(text: Optional[str]) -> str:
    """Remove <at>..</at> mentions and surrounding whitespace."""
    return MENTION_PATTERN.sub("", text or "").strip()


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def find_question_file(activity: Activity) -> Optional[Attachment]:
    """First attachment that is an uploaded file or a question file link."""
    for attachment in activity.attachments:
        if attachment.content_type == FILE_DOWNLOAD_INFO_CONTENT_TYPE:
            return attachment
        if attachment.content_type in (
            BatchFileFormat.CSV.mime_type,
            BatchFileFormat.XLSX.mime_type,
        ) and attachment.content_url:
            return attachment
    return None


def classify(activity: Activity, treat_missing_as_personal: bool = True) -> Intent:
    """Map an inbound activity to exactly one intent.

    Messages without a conversation type count as personal chat only when
    treat_missing_as_personal is set; production deployments clear it.
    """
    if activity.type == ActivityType.CONVERSATION_UPDATE.value:
        return _classify_conversation_update(activity)
    if activity.type == ActivityType.INVOKE.value:
        intent_type = INVOKE_INTENTS.get(activity.name or "")
        if intent_type is None:
            return Ignore(f"unsupported_invoke:{activity.name}")
        return intent_type(activity.value_dict)
    if activity.type != ActivityType.MESSAGE.value:
        return Ignore(f"unsupported_activity:{activity.type}")

    conversation_type = activity.conversation.conversation_type
    if conversation_type == ConversationType.PERSONAL.value or (
        conversation_type is None and treat_missing_as_personal
    ):
        return _classify_personal(activity)
    if conversation_type == ConversationType.CHANNEL.value:
        return _classify_channel(activity)
    return Ignore(f"unsupported_conversation:{conversation_type}")


def _classify_conversation_update(activity: Activity) -> Intent:
    bot_id = activity.recipient.id
    if not any(member.id == bot_id for member in activity.members_added):
        return Ignore("conversation_update")
    if activity.conversation.conversation_type == ConversationType.CHANNEL.value:
        team = activity.channel_data.get("team") or {}
        return WelcomeTeam(team_name=team.get("name") or "")
    return WelcomePersonal()


def _classify_personal(activity: Activity) -> Intent:
    attachment = find_question_file(activity)
    if attachment is not None:
        return BatchFile(attachment)

    text = (activity.text or "").strip()
    command = text.lower()
    value = activity.value_dict

    if value:
        if command == cards.ASK_AN_EXPERT_COMMAND:
            return ShowAskAnExpert(AskAnExpertSubmission.model_validate(value))
        if command == cards.SHARE_FEEDBACK_COMMAND:
            return ShowShareFeedback(ShareFeedbackSubmission.model_validate(value))
        if command == cards.ASK_AN_EXPERT_SUBMIT_COMMAND:
            return SubmitAskAnExpert(AskAnExpertSubmission.model_validate(value))
        if command == cards.SHARE_FEEDBACK_SUBMIT_COMMAND:
            return SubmitShareFeedback(ShareFeedbackSubmission.model_validate(value))
        if value.get("IsPrompt") and text:
            return AnswerQuestion(
                question=text,
                previous_qna_id=_optional_int(value.get("PreviousQnaId")),
                previous_question=value.get("PreviousQuestion"),
            )
        if command == cards.TAKE_A_TOUR_COMMAND:
            return PersonalTour()
        return Ignore("unknown_card_submission")

    if command == cards.TAKE_A_TOUR_COMMAND:
        return PersonalTour()
    if command == cards.ASK_AN_EXPERT_COMMAND:
        return ShowAskAnExpert(AskAnExpertSubmission())
    if command == cards.SHARE_FEEDBACK_COMMAND:
        return ShowShareFeedback(ShareFeedbackSubmission())
    if not text:
        return Ignore("empty_message")
    return AnswerQuestion(question=text)


def _classify_channel(activity: Activity) -> Intent:
    value = activity.value_dict
    if value.get("ticketId"):
        return ChangeTicketStatus(ChangeTicketStatusPayload.model_validate(value))

    command = strip_mentions(activity.text).lower()
    if command == cards.TEAM_TOUR_COMMAND:
        return TeamTour()
    if command == cards.DELETE_COMMAND:
        return DeleteQnaPair(
            question=str(value.get("originalQuestion") or ""),
            qna_pair_id=_optional_int(value.get("qnaPairId")),
        )
    if command == cards.NO_COMMAND:
        return DeclineDelete()
    return UnrecognizedTeamInput()
