"""Adding, editing and deleting knowledge base pairs from the expert team.

The add path comes from the messaging extension, the edit path from the
task module opened on an announcement card. Both take a QnaEditSession and
return a QnaSubmitResult; forms that need to be shown again carry their
errors on the returned session.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from faqdesk.channels import cards, strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.core.exceptions import KnowledgeBaseNotReadyError, RosterLookupError
from faqdesk.metrics.bot_metrics import qna_form_rejections_total, qna_pairs_total
from faqdesk.models.activity import card_message
from faqdesk.models.qna import (
    METADATA_ACTIVITY_REFERENCE_ID,
    AnswerOutcome,
    KnowledgeBasePartition,
    QnaEditSession,
    QnaFormError,
    QnaPair,
)
from faqdesk.services.qna.validators import validate_session
from faqdesk.utils.logging import truncate_for_log

logger = logging.getLogger(__name__)

# Partitions tried, in order, when resolving the pair being edited
EDIT_PARTITIONS = (KnowledgeBasePartition.PUBLISHED, KnowledgeBasePartition.TEST)


class QnaSubmitStatus(str, Enum):
    SAVED = "saved"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class QnaSubmitResult:
    status: QnaSubmitStatus
    session: QnaEditSession

    @property
    def saved(self) -> bool:
        return self.status is QnaSubmitStatus.SAVED


def normalize_conversation_id(conversation_id: str) -> str:
    """Strip the thread suffix (";messageid=...") from a channel conversation id."""
    return conversation_id.split(";", 1)[0]


def new_reference_id() -> str:
    return uuid.uuid4().hex


class QnaEditWorkflow:
    """Validates and persists expert edits to the knowledge base.

    Dependencies injected via constructor:
    - knowledge_base: KnowledgeBaseGateway
    - activity_index: ActivityRepository (reference id -> announcement activity id)
    - authorizer: SmeAuthorizer
    - settings: Settings
    """

    def __init__(self, knowledge_base, activity_index, authorizer, settings):
        self.knowledge_base = knowledge_base
        self.activity_index = activity_index
        self.authorizer = authorizer
        self.settings = settings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def is_expert(self, turn: TurnContext) -> bool:
        """Membership check that treats an unavailable roster as "no"."""
        try:
            return await self.authorizer.is_authorized(turn.user_id, turn.service_url)
        except RosterLookupError:
            logger.warning("Denying expert action for %s: roster unavailable", turn.user_id)
            return False

    def _reject(self, session: QnaEditSession, *errors: QnaFormError) -> QnaSubmitResult:
        for error in errors:
            qna_form_rejections_total.labels(reason=error.value).inc()
        return QnaSubmitResult(QnaSubmitStatus.REJECTED, session.with_errors(*errors))

    def _check(self, session: QnaEditSession) -> Optional[QnaSubmitResult]:
        errors = validate_session(session)
        if errors:
            return self._reject(session, *errors)
        return None

    # ------------------------------------------------------------------
    # Add
    # ------------------------------------------------------------------

    async def add(self, turn: TurnContext, session: QnaEditSession) -> QnaSubmitResult:
        """Add a new pair and announce it in the conversation it came from.

        Raises:
            KnowledgeBaseQuotaExceededError: If the knowledge base is full
        """
        if not await self.is_expert(turn):
            return QnaSubmitResult(QnaSubmitStatus.UNAUTHORIZED, session)

        rejected = self._check(session)
        if rejected:
            return rejected

        try:
            exists = await self.knowledge_base.question_exists(session.question)
        except KnowledgeBaseNotReadyError:
            # Nothing published yet, so this will be the first entry
            logger.info("Knowledge base not published, adding first entry")
            exists = False
        if exists:
            return self._reject(session, QnaFormError.DUPLICATE_QUESTION)

        reference_id = new_reference_id()
        await self.knowledge_base.add_pair(
            question=session.question.strip(),
            answer=session.answer.to_answer_text(),
            author_id=turn.user_object_id,
            conversation_id=turn.conversation_id,
            reference_id=reference_id,
        )
        qna_pairs_total.labels(action="added").inc()
        logger.info(
            "Question added",
            extra={
                "reference_id": reference_id,
                "question": truncate_for_log(session.question),
                "rich": session.is_rich,
            },
        )

        activity_id = await turn.send_card(
            cards.qna_announcement_card(
                session, turn.user_name, strings.ENTRY_CREATED_BY_TEXT
            )
        )
        if activity_id:
            await self.activity_index.add(reference_id, activity_id)
        return QnaSubmitResult(QnaSubmitStatus.SAVED, session)

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    async def edit(self, turn: TurnContext, session: QnaEditSession) -> QnaSubmitResult:
        """Save an edited pair and refresh its announcement card.

        The pair is located by asking the knowledge base for the original
        question. When the published index does not return the same entry
        (it may lag behind recent writes) the draft index is tried once.

        Raises:
            KnowledgeBaseNotReadyError: If the knowledge base was never published
            KnowledgeBaseQuotaExceededError: If the knowledge base is full
        """
        if not await self.is_expert(turn):
            return QnaSubmitResult(QnaSubmitStatus.UNAUTHORIZED, session)

        rejected = self._check(session)
        if rejected:
            return rejected

        if session.question_changed and await self.knowledge_base.question_exists(
            session.question
        ):
            return self._reject(session, QnaFormError.DUPLICATE_QUESTION)

        for attempt, partition in enumerate(EDIT_PARTITIONS):
            if attempt:
                logger.warning(
                    "Pair %s not found by question in %s index, retrying against %s",
                    session.qna_pair_id,
                    EDIT_PARTITIONS[attempt - 1].value,
                    partition.value,
                )
            if await self.save_edit(turn, session, partition):
                return QnaSubmitResult(QnaSubmitStatus.SAVED, session)

        logger.warning("Pair %s could not be resolved for editing", session.qna_pair_id)
        return QnaSubmitResult(QnaSubmitStatus.NOT_FOUND, session)

    async def save_edit(
        self,
        turn: TurnContext,
        session: QnaEditSession,
        partition: KnowledgeBasePartition,
    ) -> bool:
        """Persist an edit if the original question resolves in a partition.

        Returns:
            False when the partition's top answer is not the pair being edited
        """
        result = await self.knowledge_base.generate_answer(
            session.original_question, partition
        )
        if result.outcome is AnswerOutcome.NOT_READY:
            raise KnowledgeBaseNotReadyError("Knowledge base is not published yet")
        top = result.top
        if result.outcome is not AnswerOutcome.ANSWERED or top is None:
            return False
        if top.first_question.strip().upper() != session.original_question.strip().upper():
            return False
        if session.qna_pair_id is not None and top.id != session.qna_pair_id:
            return False

        saved = session.model_copy(update={"qna_pair_id": top.id})
        card = card_message(
            cards.qna_announcement_card(saved, turn.user_name, strings.LAST_EDITED_TEXT)
        )
        conversation_id = normalize_conversation_id(turn.conversation_id)
        reference_id = top.metadata_value(METADATA_ACTIVITY_REFERENCE_ID)
        activity_id = None
        if reference_id:
            activity_id = await self.activity_index.get_by_reference(reference_id)

        if activity_id:
            await self.knowledge_base.update_pair(
                qna_id=top.id,
                answer=saved.answer.to_answer_text(),
                author_id=turn.user_object_id,
                new_question=saved.question.strip(),
                old_question=saved.original_question,
            )
            try:
                await turn.update(activity_id, card, conversation_id=conversation_id)
            except Exception:
                logger.exception("Failed to refresh announcement card %s", activity_id)
        else:
            # Pair predates indexing (or its card was never indexed): announce afresh
            reference_id = reference_id or new_reference_id()
            await self.knowledge_base.update_pair(
                qna_id=top.id,
                answer=saved.answer.to_answer_text(),
                author_id=turn.user_object_id,
                new_question=saved.question.strip(),
                old_question=saved.original_question,
                conversation_id=conversation_id,
                reference_id=reference_id,
            )
            new_activity_id = await turn.send_to_conversation(conversation_id, card)
            if new_activity_id:
                await self.activity_index.add(reference_id, new_activity_id)

        qna_pairs_total.labels(action="updated").inc()
        logger.info(
            "Question updated",
            extra={"qna_id": top.id, "partition": partition.value},
        )
        return True

    # ------------------------------------------------------------------
    # Lookup and delete
    # ------------------------------------------------------------------

    async def _find_pair(
        self, qna_pair_id: Optional[int], question: str
    ) -> Optional[QnaPair]:
        pairs: List[QnaPair] = await self.knowledge_base.download_all(
            partition=KnowledgeBasePartition.TEST
        )
        wanted = question.strip().lower()
        for pair in pairs:
            if qna_pair_id is not None and pair.id == qna_pair_id:
                return pair
            if qna_pair_id is None and wanted and any(
                q.strip().lower() == wanted for q in pair.questions
            ):
                return pair
        return None

    async def load_session(
        self, qna_pair_id: Optional[int], question: str = ""
    ) -> Optional[QnaEditSession]:
        """Build an edit session from the draft copy of a pair."""
        pair = await self._find_pair(qna_pair_id, question)
        if pair is None:
            logger.info("Pair %s not found for editing", qna_pair_id)
            return None
        return QnaEditSession.from_pair(pair)

    async def delete(
        self, turn: TurnContext, qna_pair_id: Optional[int], question: str
    ) -> bool:
        """Delete a pair and report it in the thread.

        Raises:
            KnowledgeBaseNotReadyError: If the knowledge base was never published
        """
        if qna_pair_id is None:
            result = await self.knowledge_base.generate_answer(
                question, KnowledgeBasePartition.TEST
            )
            if result.outcome is AnswerOutcome.NOT_READY:
                raise KnowledgeBaseNotReadyError("Knowledge base is not published yet")
            top = result.top
            if (
                result.outcome is AnswerOutcome.ANSWERED
                and top is not None
                and top.first_question.strip().lower() == question.strip().lower()
            ):
                qna_pair_id = top.id

        if qna_pair_id is None:
            await turn.send(strings.QNA_PAIR_NOT_FOUND)
            return False

        await self.knowledge_base.delete_pair(qna_pair_id)
        qna_pairs_total.labels(action="deleted").inc()
        await turn.send(strings.DELETED_BY_TEXT.format(turn.user_name, question))
        return True
