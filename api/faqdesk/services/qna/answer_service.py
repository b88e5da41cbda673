"""Answering questions typed in personal chat."""

import logging
from typing import Optional

from faqdesk.channels import cards
from faqdesk.channels.turn_context import TurnContext
from faqdesk.metrics.bot_metrics import questions_answered_total
from faqdesk.models.qna import AnswerOutcome, AnswerPayload, KnowledgeBasePartition
from faqdesk.utils.logging import truncate_for_log

logger = logging.getLogger(__name__)


class AnswerService:
    """Looks a question up in the published knowledge base and replies with a card."""

    def __init__(self, knowledge_base):
        self.knowledge_base = knowledge_base

    async def answer(
        self,
        turn: TurnContext,
        question: str,
        previous_qna_id: Optional[int] = None,
        previous_question: Optional[str] = None,
    ) -> AnswerOutcome:
        result = await self.knowledge_base.generate_answer(
            question,
            KnowledgeBasePartition.PUBLISHED,
            previous_qna_id=previous_qna_id,
            previous_question=previous_question,
        )
        questions_answered_total.labels(outcome=result.outcome.value).inc()
        logger.info(
            "Answered question",
            extra={
                "outcome": result.outcome.value,
                "question": truncate_for_log(question),
                "follow_up": previous_qna_id is not None,
            },
        )

        top = result.top
        if result.outcome is not AnswerOutcome.ANSWERED or top is None:
            await turn.send_card(cards.unrecognized_input_card(question))
            return result.outcome

        payload = AnswerPayload.parse(top.answer)
        if payload.is_rich:
            card = cards.rich_response_card(top, payload, question)
        else:
            card = cards.response_card(top, question)
        await turn.send_card(card)
        return result.outcome
