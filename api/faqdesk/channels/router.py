"""Single entry point for every inbound activity.

The router filters foreign tenants, classifies the activity into one
intent and dispatches it to its handler. If a handler fails the user gets
a generic error message and the exception propagates to the caller.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from faqdesk.channels import cards, intents, strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.core.exceptions import KnowledgeBaseNotReadyError, UnsupportedFileTypeError
from faqdesk.metrics.bot_metrics import (
    activities_dropped_total,
    intents_total,
    messages_received_total,
)
from faqdesk.models.activity import Activity, ActivityType

logger = logging.getLogger(__name__)

InvokeBody = Optional[Dict[str, Any]]
Handler = Callable[[TurnContext, Any], Awaitable[InvokeBody]]


class ActivityRouter:
    """Dispatches classified activities to the bot's services.

    Dependencies injected via constructor:
    - settings: Settings
    - transport: Transport used for all replies
    - answers: AnswerService
    - tickets: TicketService
    - workflow: QnaEditWorkflow
    - extension: ExpertExtensionHandler
    - batch: BatchQuestionPipeline
    - file_consent: FileConsentService
    """

    def __init__(
        self,
        settings,
        transport,
        answers,
        tickets,
        workflow,
        extension,
        batch,
        file_consent,
    ):
        self.settings = settings
        self.transport = transport
        self.answers = answers
        self.tickets = tickets
        self.workflow = workflow
        self.extension = extension
        self.batch = batch
        self.file_consent = file_consent
        self._handlers: Dict[type, Handler] = {
            intents.WelcomePersonal: self._welcome_personal,
            intents.WelcomeTeam: self._welcome_team,
            intents.AnswerQuestion: self._answer_question,
            intents.ShowAskAnExpert: self._show_ask_an_expert,
            intents.ShowShareFeedback: self._show_share_feedback,
            intents.SubmitAskAnExpert: self._submit_ask_an_expert,
            intents.SubmitShareFeedback: self._submit_share_feedback,
            intents.PersonalTour: self._personal_tour,
            intents.BatchFile: self._batch_file,
            intents.TeamTour: self._team_tour,
            intents.ChangeTicketStatus: self._change_ticket_status,
            intents.DeleteQnaPair: self._delete_qna_pair,
            intents.DeclineDelete: self._decline_delete,
            intents.UnrecognizedTeamInput: self._unrecognized_team_input,
            intents.MessagingExtensionQuery: self._extension_query,
            intents.MessagingExtensionFetch: self._extension_fetch,
            intents.MessagingExtensionSubmit: self._extension_submit,
            intents.TaskFetch: self._task_fetch,
            intents.TaskSubmit: self._task_submit,
            intents.FileConsent: self._file_consent,
        }

    def is_allowed_tenant(self, activity: Activity) -> bool:
        if not self.settings.tenant_check_enabled:
            return True
        return activity.tenant_id == self.settings.TENANT_ID

    async def handle(self, activity: Activity) -> InvokeBody:
        """Process one inbound activity.

        Returns:
            The invoke response body, or None when there is nothing to return
        """
        if not self.is_allowed_tenant(activity):
            activities_dropped_total.labels(reason="tenant_mismatch").inc()
            logger.warning(
                "Dropping activity from foreign tenant",
                extra={"tenant_id": activity.tenant_id, "activity_type": activity.type},
            )
            return None

        messages_received_total.labels(
            activity_type=activity.type,
            conversation_type=activity.conversation.conversation_type or "none",
        ).inc()

        turn = TurnContext(activity, self.transport)
        intent_name = "unclassified"
        try:
            intent = intents.classify(
                activity, treat_missing_as_personal=not self.settings.is_production
            )
            if isinstance(intent, intents.Ignore):
                activities_dropped_total.labels(reason=intent.reason.split(":")[0]).inc()
                logger.info("Ignoring activity: %s", intent.reason)
                return None

            intent_name = type(intent).__name__
            intents_total.labels(intent=intent_name).inc()
            if activity.type == ActivityType.MESSAGE.value:
                await turn.send_typing()
            return await self._handlers[type(intent)](turn, intent)
        except Exception:
            logger.exception(
                "Failed to handle %s",
                intent_name,
                extra={"activity_id": activity.id, "activity_type": activity.type},
            )
            await self._send_error(turn)
            raise

    async def _send_error(self, turn: TurnContext) -> None:
        try:
            await turn.send(strings.ERROR_MESSAGE)
        except Exception:
            logger.warning("Failed to send error message", exc_info=True)

    # ------------------------------------------------------------------
    # Welcome and tours
    # ------------------------------------------------------------------

    async def _welcome_personal(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_card(
            cards.welcome_card(
                self.settings.WELCOME_MESSAGE_TEXT, self.settings.APP_BASE_URI
            )
        )
        return None

    async def _welcome_team(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_card(
            cards.team_welcome_card(self.settings.PRODUCT_NAME, intent.team_name)
        )
        return None

    async def _personal_tour(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_carousel(cards.personal_tour_cards(self.settings.APP_BASE_URI))
        return None

    async def _team_tour(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_carousel(cards.team_tour_cards(self.settings.APP_BASE_URI))
        return None

    # ------------------------------------------------------------------
    # Personal chat
    # ------------------------------------------------------------------

    async def _answer_question(self, turn: TurnContext, intent) -> InvokeBody:
        await self.answers.answer(
            turn,
            intent.question,
            previous_qna_id=intent.previous_qna_id,
            previous_question=intent.previous_question,
        )
        return None

    async def _show_ask_an_expert(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_card(cards.ask_an_expert_card(intent.submission))
        return None

    async def _show_share_feedback(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_card(cards.share_feedback_card(intent.submission))
        return None

    async def _submit_ask_an_expert(self, turn: TurnContext, intent) -> InvokeBody:
        await self.tickets.ask_an_expert(turn, intent.submission)
        return None

    async def _submit_share_feedback(self, turn: TurnContext, intent) -> InvokeBody:
        await self.tickets.share_feedback(turn, intent.submission)
        return None

    async def _batch_file(self, turn: TurnContext, intent) -> InvokeBody:
        try:
            await self.batch.process_attachment(turn, intent.attachment)
        except UnsupportedFileTypeError as e:
            logger.info("Rejected question file with extension %r", e.extension)
            await turn.send(strings.BATCH_UNSUPPORTED_FILE_TEXT)
        return None

    # ------------------------------------------------------------------
    # Expert channel
    # ------------------------------------------------------------------

    async def _change_ticket_status(self, turn: TurnContext, intent) -> InvokeBody:
        if not await self.workflow.is_expert(turn):
            await turn.send(strings.ACCESS_DENIED_TEXT)
            return None
        await self.tickets.change_status(turn, intent.payload)
        return None

    async def _delete_qna_pair(self, turn: TurnContext, intent) -> InvokeBody:
        if not await self.workflow.is_expert(turn):
            await turn.send(strings.ACCESS_DENIED_TEXT)
            return None
        try:
            await self.workflow.delete(turn, intent.qna_pair_id, intent.question)
        except KnowledgeBaseNotReadyError:
            await turn.send(strings.WAIT_MESSAGE.format(intent.question))
        return None

    async def _decline_delete(self, turn: TurnContext, intent) -> InvokeBody:
        logger.info("Delete declined by %s", turn.user_id)
        return None

    async def _unrecognized_team_input(self, turn: TurnContext, intent) -> InvokeBody:
        await turn.send_card(cards.unrecognized_team_input_card())
        return None

    # ------------------------------------------------------------------
    # Invokes
    # ------------------------------------------------------------------

    async def _extension_query(self, turn: TurnContext, intent) -> InvokeBody:
        return await self.extension.query(turn, intent.value)

    async def _extension_fetch(self, turn: TurnContext, intent) -> InvokeBody:
        return await self.extension.fetch_add_form(turn)

    async def _extension_submit(self, turn: TurnContext, intent) -> InvokeBody:
        return await self.extension.submit_add(turn, intent.value)

    async def _task_fetch(self, turn: TurnContext, intent) -> InvokeBody:
        return await self.extension.fetch_edit_form(turn, intent.value)

    async def _task_submit(self, turn: TurnContext, intent) -> InvokeBody:
        return await self.extension.submit_edit(turn, intent.value)

    async def _file_consent(self, turn: TurnContext, intent) -> InvokeBody:
        await self.file_consent.handle(turn, intent.value)
        return None
