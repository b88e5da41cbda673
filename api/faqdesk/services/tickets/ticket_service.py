"""Expert ticket lifecycle orchestration."""

import logging
from datetime import datetime, timezone
from typing import Optional

from faqdesk.channels import cards, strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.metrics.bot_metrics import (
    feedback_total,
    notification_failures_total,
    ticket_transitions_total,
)
from faqdesk.models.activity import card_message
from faqdesk.models.ticket import (
    AskAnExpertSubmission,
    ChangeTicketStatusPayload,
    ShareFeedbackSubmission,
    Ticket,
    TicketAction,
    TicketCreate,
    TicketStatus,
)
from faqdesk.utils.logging import truncate_for_log

logger = logging.getLogger(__name__)

SME_STATUS_LINES = {
    TicketAction.REOPEN: strings.SME_OPENED_STATUS,
    TicketAction.CLOSE: strings.SME_CLOSED_STATUS,
    TicketAction.ASSIGN_TO_SELF: strings.SME_ASSIGNED_STATUS,
}

USER_NOTIFICATIONS = {
    TicketAction.REOPEN: strings.REOPENED_TICKET_USER_NOTIFICATION,
    TicketAction.CLOSE: strings.CLOSED_TICKET_USER_NOTIFICATION,
    TicketAction.ASSIGN_TO_SELF: strings.ASSIGNED_TICKET_USER_NOTIFICATION,
}


def apply_transition(
    ticket: Ticket,
    action: TicketAction,
    actor_name: str,
    actor_object_id: str,
    now: Optional[datetime] = None,
) -> Ticket:
    """Return the ticket as it stands after an expert action.

    Reopen clears assignment and close dates. Close keeps the assignment.
    AssignToSelf reopens the ticket for the acting expert, replacing any
    previous assignee.
    """
    now = now or datetime.now(timezone.utc)
    if action is TicketAction.REOPEN:
        changes = dict(
            status=TicketStatus.OPEN,
            date_assigned=None,
            assigned_to_name=None,
            assigned_to_object_id=None,
            date_closed=None,
        )
    elif action is TicketAction.CLOSE:
        changes = dict(status=TicketStatus.CLOSED, date_closed=now)
    else:
        changes = dict(
            status=TicketStatus.OPEN,
            date_assigned=now,
            assigned_to_name=actor_name,
            assigned_to_object_id=actor_object_id,
            date_closed=None,
        )
    changes.update(
        last_modified_by_name=actor_name,
        last_modified_by_object_id=actor_object_id,
    )
    return ticket.model_copy(update=changes)


class TicketService:
    """Creates tickets from personal chat and applies expert status changes.

    Dependencies injected via constructor:
    - repository: TicketRepository (async SQLite)
    - settings: Settings (SME_TEAM_ID, TENANT_ID)
    """

    def __init__(self, repository, settings):
        self.repository = repository
        self.settings = settings

    # ------------------------------------------------------------------
    # Ask an expert
    # ------------------------------------------------------------------

    async def ask_an_expert(
        self, turn: TurnContext, submission: AskAnExpertSubmission
    ) -> Optional[Ticket]:
        """Escalate a question to the expert team.

        Posts the request card as a new thread in the expert channel, records
        where it lives, then acknowledges the requester.
        """
        if not submission.title:
            await turn.send_card(cards.ask_an_expert_card(submission, show_validation=True))
            return None

        sender = turn.activity.from_
        ticket = await self.repository.create(
            TicketCreate(
                title=submission.title,
                description=submission.description or None,
                requester_name=sender.name or "",
                requester_user_principal_name=sender.user_principal_name,
                requester_given_name=sender.given_name,
                requester_object_id=sender.aad_object_id,
                requester_conversation_id=turn.conversation_id,
                user_question=submission.user_question,
                knowledge_base_answer=submission.knowledge_base_answer,
            )
        )
        ticket_transitions_total.labels(action="created").inc()
        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.ticket_id,
                "title": truncate_for_log(ticket.title),
            },
        )

        thread_id, card_activity_id = await turn.transport.create_conversation(
            turn.service_url,
            self.settings.SME_TEAM_ID,
            card_message(cards.sme_ticket_card(ticket)),
            tenant_id=turn.activity.tenant_id,
        )
        ticket = ticket.model_copy(
            update={
                "sme_thread_conversation_id": thread_id,
                "sme_card_activity_id": card_activity_id,
            }
        )
        await self.repository.upsert(ticket)

        await turn.send_card(
            cards.user_notification_card(ticket, strings.NOTIFICATION_CARD_CONTENT),
            summary=strings.NOTIFICATION_CARD_CONTENT,
        )
        return ticket

    async def share_feedback(
        self, turn: TurnContext, submission: ShareFeedbackSubmission
    ) -> bool:
        """Forward feedback on an answer to the expert team."""
        if submission.rating is None:
            await turn.send_card(
                cards.share_feedback_card(submission, show_validation=True)
            )
            return False

        await turn.transport.create_conversation(
            turn.service_url,
            self.settings.SME_TEAM_ID,
            card_message(cards.sme_feedback_card(submission, turn.user_name)),
            tenant_id=turn.activity.tenant_id,
        )
        feedback_total.labels(rating=submission.rating.value).inc()
        await turn.send(strings.THANK_YOU_TEXT)
        return True

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def change_status(
        self, turn: TurnContext, payload: ChangeTicketStatusPayload
    ) -> Optional[Ticket]:
        """Apply an expert action from the request card.

        The store is updated first; the card refresh, the thread status line
        and the requester notification are each attempted independently and
        never undo the stored change.
        """
        ticket = await self.repository.get(payload.ticket_id)
        if ticket is None:
            logger.info("Ticket %s not found", payload.ticket_id)
            await turn.send(strings.TICKET_NOT_FOUND.format(payload.ticket_id))
            return None

        action = TicketAction.parse(payload.action)
        if action is None:
            logger.warning(
                "Unknown ticket action %r for ticket %s",
                payload.action,
                payload.ticket_id,
            )
            return None

        ticket = apply_transition(
            ticket, action, turn.user_name, turn.user_object_id
        )
        await self.repository.upsert(ticket)
        ticket_transitions_total.labels(action=action.value).inc()
        logger.info(
            "Ticket status changed",
            extra={
                "ticket_id": ticket.ticket_id,
                "action": action.value,
                "status": ticket.status.value,
            },
        )

        await self._refresh_card(turn, ticket)
        await self._post_status_line(turn, ticket, action)
        await self._notify_requester(turn, ticket, action)
        return ticket

    async def _refresh_card(self, turn: TurnContext, ticket: Ticket) -> None:
        if not ticket.sme_card_activity_id:
            logger.warning("Ticket %s has no request card to update", ticket.ticket_id)
            return
        try:
            await turn.update(
                ticket.sme_card_activity_id,
                card_message(cards.sme_ticket_card(ticket)),
                conversation_id=ticket.sme_thread_conversation_id,
            )
        except Exception:
            notification_failures_total.labels(target="sme_card").inc()
            logger.exception("Failed to update request card for ticket %s", ticket.ticket_id)

    async def _post_status_line(
        self, turn: TurnContext, ticket: Ticket, action: TicketAction
    ) -> None:
        if action is TicketAction.ASSIGN_TO_SELF:
            actor = ticket.assigned_to_name
        else:
            actor = ticket.last_modified_by_name
        try:
            await turn.send(SME_STATUS_LINES[action].format(actor))
        except Exception:
            notification_failures_total.labels(target="sme_thread").inc()
            logger.exception("Failed to post status line for ticket %s", ticket.ticket_id)

    async def _notify_requester(
        self, turn: TurnContext, ticket: Ticket, action: TicketAction
    ) -> None:
        text = USER_NOTIFICATIONS[action]
        try:
            await turn.send_to_conversation(
                ticket.requester_conversation_id,
                card_message(cards.user_notification_card(ticket, text), summary=text),
            )
        except Exception:
            notification_failures_total.labels(target="requester").inc()
            logger.exception("Failed to notify requester of ticket %s", ticket.ticket_id)
