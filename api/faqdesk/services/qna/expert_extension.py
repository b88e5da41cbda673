"""Messaging extension and task module handlers for the expert team.

Each handler returns the body of the invoke response. Searching and adding
pairs run from the compose box of the expert channel; editing opens a task
module from the announcement card of a pair.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from faqdesk.channels import cards, strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.core.exceptions import (
    KnowledgeBaseNotReadyError,
    KnowledgeBaseQuotaExceededError,
)
from faqdesk.models.qna import (
    AnswerPayload,
    KnowledgeBasePartition,
    QnaEditSession,
    QnaFormCommand,
)
from faqdesk.services.qna.qna_edit_workflow import QnaSubmitStatus

logger = logging.getLogger(__name__)

EDIT_QNA_COMMAND = "editqna"
DEFAULT_PAGE_SIZE = 25
SEARCH_TEXT_PARAMETER = "searchText"

InvokeBody = Dict[str, Any]


def search_parameters(value: Dict[str, Any]) -> Dict[str, str]:
    """Flatten the "parameters" list of a messaging extension query."""
    params = {}
    for parameter in value.get("parameters") or []:
        if isinstance(parameter, dict) and parameter.get("name"):
            params[parameter["name"]] = str(parameter.get("value") or "")
    return params


class ExpertExtensionHandler:
    """Serves the expert-only messaging extension and edit task module.

    Dependencies injected via constructor:
    - workflow: QnaEditWorkflow
    - ticket_repository: TicketRepository
    - knowledge_base: KnowledgeBaseGateway
    - settings: Settings (SME_TEAM_ID, EDIT_FORM_URI)
    """

    def __init__(self, workflow, ticket_repository, knowledge_base, settings):
        self.workflow = workflow
        self.ticket_repository = ticket_repository
        self.knowledge_base = knowledge_base
        self.settings = settings

    def in_expert_team(self, turn: TurnContext) -> bool:
        return bool(self.settings.SME_TEAM_ID) and (
            turn.activity.team_id == self.settings.SME_TEAM_ID
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def query(self, turn: TurnContext, value: Dict[str, Any]) -> InvokeBody:
        """composeExtension/query: search requests or knowledge base pairs."""
        if not self.in_expert_team(turn):
            return cards.messaging_extension_message(strings.NON_SME_ERROR_TEXT)
        if not await self.workflow.is_expert(turn):
            return cards.messaging_extension_message(strings.NON_SME_ERROR_TEXT)

        command_id = value.get("commandId") or ""
        params = search_parameters(value)
        search_text = params.get(SEARCH_TEXT_PARAMETER, "")
        options = value.get("queryOptions") or {}
        count = int(options.get("count") or DEFAULT_PAGE_SIZE)
        skip = int(options.get("skip") or 0)

        if command_id == EDIT_QNA_COMMAND:
            attachments = await self._search_pairs(search_text, count, skip)
        else:
            tickets = await self.ticket_repository.search(
                command_id, search_text, count=count, skip=skip
            )
            attachments = [
                {**cards.sme_ticket_card(t), "preview": cards.ticket_search_preview(t)}
                for t in tickets
            ]
        logger.info(
            "Messaging extension search",
            extra={"command_id": command_id, "results": len(attachments)},
        )
        return cards.messaging_extension_results(attachments)

    async def _search_pairs(
        self, search_text: str, count: int, skip: int
    ) -> List[Dict[str, Any]]:
        pairs = await self.knowledge_base.download_all(
            partition=KnowledgeBasePartition.TEST
        )
        wanted = search_text.strip().lower()
        matches = [
            pair
            for pair in pairs
            if not wanted or any(wanted in q.lower() for q in pair.questions)
        ]
        attachments = []
        for pair in matches[skip : skip + count]:
            preview = cards.qna_search_preview(
                pair.question, AnswerPayload.parse(pair.answer).description
            )
            attachments.append({**preview, "preview": preview})
        return attachments

    # ------------------------------------------------------------------
    # Add (messaging extension action)
    # ------------------------------------------------------------------

    def _form(self, session: QnaEditSession, heading: str) -> InvokeBody:
        return cards.task_module_card(cards.qna_form_card(session, heading), heading)

    def _unauthorized(self) -> InvokeBody:
        return cards.task_module_card(
            cards.unauthorized_card(),
            strings.ACCESS_DENIED_TEXT,
            height=cards.UNAUTHORIZED_HEIGHT,
            width=cards.UNAUTHORIZED_WIDTH,
        )

    async def fetch_add_form(self, turn: TurnContext) -> InvokeBody:
        """composeExtension/fetchTask: open an empty add form."""
        if not self.in_expert_team(turn):
            return self._unauthorized()
        return self._form(QnaEditSession(), strings.ADD_QUESTION_SUBTITLE)

    async def submit_add(self, turn: TurnContext, value: Dict[str, Any]) -> InvokeBody:
        """composeExtension/submitAction: preview, go back or save a new pair."""
        session = QnaEditSession.from_card_data(value.get("data") or {})
        if session.command is QnaFormCommand.BACK:
            return self._form(session, strings.ADD_QUESTION_SUBTITLE)
        if session.command is QnaFormCommand.PREVIEW:
            return cards.task_module_card(
                cards.qna_preview_card(session), strings.PREVIEW_SUBTITLE
            )

        try:
            result = await self.workflow.add(turn, session)
        except KnowledgeBaseQuotaExceededError:
            logger.warning("Knowledge base quota exceeded while adding a pair")
            return cards.task_module_message(strings.QUOTA_EXCEEDED_MESSAGE)

        if result.status is QnaSubmitStatus.UNAUTHORIZED:
            return self._unauthorized()
        if result.status is QnaSubmitStatus.REJECTED:
            return self._form(result.session, strings.ADD_QUESTION_SUBTITLE)
        return {}

    # ------------------------------------------------------------------
    # Edit (task module from an announcement card)
    # ------------------------------------------------------------------

    def _edit_url(self, qna_pair_id: int) -> str:
        return f"{self.settings.EDIT_FORM_URI}/{qna_pair_id}/?rand={uuid.uuid4().hex}"

    async def fetch_edit_form(
        self, turn: TurnContext, value: Dict[str, Any]
    ) -> InvokeBody:
        """task/fetch: open the edit form for the pair on the card."""
        if not self.in_expert_team(turn):
            return self._unauthorized()
        data = value.get("data") or {}
        reference = QnaEditSession.from_card_data(data)
        session = await self.workflow.load_session(
            reference.qna_pair_id, reference.original_question
        )
        if session is None:
            return cards.task_module_message(strings.QNA_PAIR_NOT_FOUND)
        if self.settings.EDIT_FORM_URI and session.qna_pair_id is not None:
            return cards.task_module_url(
                self._edit_url(session.qna_pair_id), strings.EDIT_QUESTION_SUBTITLE
            )
        return self._form(session, strings.EDIT_QUESTION_SUBTITLE)

    async def submit_edit(
        self, turn: TurnContext, value: Dict[str, Any]
    ) -> Optional[InvokeBody]:
        """task/submit: preview, go back or save an edited pair."""
        session = QnaEditSession.from_card_data(value.get("data") or {})
        if session.command is QnaFormCommand.BACK:
            return self._form(session, strings.EDIT_QUESTION_SUBTITLE)
        if session.command is QnaFormCommand.PREVIEW:
            return cards.task_module_card(
                cards.qna_preview_card(session), strings.PREVIEW_SUBTITLE
            )

        try:
            result = await self.workflow.edit(turn, session)
        except KnowledgeBaseNotReadyError:
            return cards.task_module_message(strings.EDIT_NOT_READY_MESSAGE)
        except KnowledgeBaseQuotaExceededError:
            logger.warning("Knowledge base quota exceeded while editing a pair")
            return cards.task_module_message(strings.QUOTA_EXCEEDED_MESSAGE)
        except Exception:
            logger.exception("Failed to save edited pair %s", session.qna_pair_id)
            return cards.task_module_message(strings.ERROR_MESSAGE)

        if result.status is QnaSubmitStatus.UNAUTHORIZED:
            return self._unauthorized()
        if result.status is QnaSubmitStatus.REJECTED:
            return self._form(result.session, strings.EDIT_QUESTION_SUBTITLE)
        if result.status is QnaSubmitStatus.NOT_FOUND:
            return cards.task_module_message(strings.QNA_PAIR_NOT_FOUND)
        return None
