"""Tests for activity routing, with the bot services wired as in production."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from faqdesk.channels import cards, strings
from faqdesk.channels.cards import ADAPTIVE_CARD_CONTENT_TYPE
from faqdesk.channels.router import ActivityRouter
from faqdesk.core.exceptions import KnowledgeBaseError, KnowledgeBaseNotReadyError
from faqdesk.models.activity import ChannelAccount
from faqdesk.models.qna import AnswerResult
from faqdesk.models.ticket import TicketStatus
from faqdesk.services.batch.batch_pipeline import BatchQuestionPipeline
from faqdesk.services.batch.file_consent import FileConsentService
from faqdesk.services.membership.membership_cache import MembershipCache
from faqdesk.services.membership.sme_authorizer import SmeAuthorizer
from faqdesk.services.qna.answer_service import AnswerService
from faqdesk.services.qna.expert_extension import ExpertExtensionHandler
from faqdesk.services.qna.qna_edit_workflow import QnaEditWorkflow
from faqdesk.services.tickets.ticket_service import TicketService
from pydantic import ValidationError

from conftest import SME_TEAM_ID


@pytest.fixture
def translator():
    mock = MagicMock()
    mock.default_language_code = "en"
    mock.is_valid_language_code = MagicMock(return_value=False)
    mock.translate_batch = AsyncMock()
    return mock


@pytest.fixture
def make_router(
    knowledge_base,
    translator,
    transport,
    ticket_repository,
    activity_repository,
    result_repository,
    test_settings,
):
    def _make_router(settings=None) -> ActivityRouter:
        settings = settings or test_settings
        authorizer = SmeAuthorizer(
            MembershipCache(ttl_days=1, negative_ttl_seconds=0), transport, settings
        )
        workflow = QnaEditWorkflow(knowledge_base, activity_repository, authorizer, settings)
        return ActivityRouter(
            settings=settings,
            transport=transport,
            answers=AnswerService(knowledge_base),
            tickets=TicketService(ticket_repository, settings),
            workflow=workflow,
            extension=ExpertExtensionHandler(
                workflow, ticket_repository, knowledge_base, settings
            ),
            batch=BatchQuestionPipeline(
                knowledge_base, translator, result_repository, settings
            ),
            file_consent=FileConsentService(result_repository, settings),
        )

    return _make_router


@pytest.fixture
def router(make_router):
    return make_router()


@pytest.fixture
def expert(transport):
    transport.members = [ChannelAccount(id="29:user-1", name="Ada Lovelace")]


def _card_json(transport) -> str:
    return json.dumps(transport.attachments())


class TestTenantFilter:
    @pytest.mark.asyncio
    async def test_foreign_tenant_dropped_silently(
        self, make_router, test_settings, make_activity, transport, knowledge_base
    ):
        settings = test_settings.model_copy(update={"ENFORCE_TENANT_CHECK": True})
        router = make_router(settings)

        result = await router.handle(make_activity(text="Hi", tenant_id="other-tenant"))

        assert result is None
        assert transport.sent == []
        knowledge_base.generate_answer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_own_tenant_processed(
        self, make_router, test_settings, make_activity, knowledge_base
    ):
        settings = test_settings.model_copy(update={"ENFORCE_TENANT_CHECK": True})
        router = make_router(settings)

        await router.handle(make_activity(text="Hi"))

        knowledge_base.generate_answer.assert_awaited_once()


class TestPersonalChat:
    @pytest.mark.asyncio
    async def test_question_answered_with_card(
        self, router, make_activity, transport, knowledge_base
    ):
        await router.handle(make_activity(text="How do I reset my password?"))

        assert transport.typing_count() == 1
        attachments = transport.attachments()
        assert attachments[0]["contentType"] == ADAPTIVE_CARD_CONTENT_TYPE
        assert "Open the settings page and choose Reset." in _card_json(transport)
        assert knowledge_base.generate_answer.await_args.args[0] == (
            "How do I reset my password?"
        )

    @pytest.mark.asyncio
    async def test_follow_up_prompt_passes_context(
        self, router, make_activity, knowledge_base
    ):
        await router.handle(
            make_activity(
                text="Still failing",
                value={"IsPrompt": True, "PreviousQnaId": 7, "PreviousQuestion": "Reset?"},
            )
        )

        kwargs = knowledge_base.generate_answer.await_args.kwargs
        assert kwargs["previous_qna_id"] == 7
        assert kwargs["previous_question"] == "Reset?"

    @pytest.mark.asyncio
    async def test_unanswered_question_offers_expert(
        self, router, make_activity, transport, knowledge_base
    ):
        knowledge_base.generate_answer.return_value = AnswerResult.not_ready()

        await router.handle(make_activity(text="Anything?"))

        assert strings.ASK_AN_EXPERT_BUTTON in _card_json(transport)

    @pytest.mark.asyncio
    async def test_question_then_ask_an_expert_opens_ticket(
        self, router, make_activity, transport, ticket_repository
    ):
        await router.handle(make_activity(text="How do I reset my password?"))
        await router.handle(make_activity(text="ask an expert", value={"UserQuestion": "Reset?"}))
        await router.handle(
            make_activity(
                text="questionforexpert",
                value={"Title": "Reset loop", "Description": "Still stuck", "UserQuestion": "Reset?"},
            )
        )

        tickets = await ticket_repository.search("recents")
        assert len(tickets) == 1
        ticket = tickets[0]
        assert ticket.status is TicketStatus.OPEN
        assert ticket.assigned_to_name is None
        assert ticket.requester_name == "Ada Lovelace"
        assert ticket.user_question == "Reset?"
        assert transport.created[0][0] == SME_TEAM_ID

    @pytest.mark.asyncio
    async def test_unsupported_file_rejected_politely(
        self, router, make_activity, transport
    ):
        activity = make_activity(
            text="",
            attachments=[
                {
                    "contentType": "application/vnd.microsoft.teams.file.download.info",
                    "name": "notes.docx",
                    "content": {"downloadUrl": "https://files.example.com/n"},
                }
            ],
        )

        await router.handle(activity)

        assert transport.texts() == [strings.BATCH_UNSUPPORTED_FILE_TEXT]

    @pytest.mark.asyncio
    async def test_welcome_on_install(self, router, make_activity, transport):
        activity = make_activity(
            activity_type="conversationUpdate", membersAdded=[{"id": "28:bot-1"}]
        )

        await router.handle(activity)

        assert transport.typing_count() == 0
        assert strings.TAKE_A_TOUR_BUTTON in _card_json(transport)


class TestFailures:
    @pytest.mark.asyncio
    async def test_typing_failure_does_not_stop_the_turn(
        self, router, make_activity, transport
    ):
        transport.fail_typing = True

        await router.handle(make_activity(text="How do I reset my password?"))

        assert len(transport.attachments()) == 1

    @pytest.mark.asyncio
    async def test_handler_error_sends_generic_message_and_propagates(
        self, router, make_activity, transport, knowledge_base
    ):
        knowledge_base.generate_answer.side_effect = KnowledgeBaseError("down", 500)

        with pytest.raises(KnowledgeBaseError):
            await router.handle(make_activity(text="Hi"))

        assert transport.texts() == [strings.ERROR_MESSAGE]

    @pytest.mark.asyncio
    async def test_malformed_card_submission_reported(
        self, router, make_activity, transport
    ):
        activity = make_activity(
            text=cards.SHARE_FEEDBACK_SUBMIT_COMMAND, value={"Rating": "Excellent"}
        )

        with pytest.raises(ValidationError):
            await router.handle(activity)

        assert transport.texts() == [strings.ERROR_MESSAGE]

    @pytest.mark.asyncio
    async def test_ignored_activity_sends_nothing(self, router, make_activity, transport):
        assert await router.handle(make_activity(text="   ")) is None
        assert transport.sent == []


class TestExpertChannel:
    @pytest.mark.asyncio
    async def test_non_expert_cannot_change_ticket(
        self, router, make_activity, transport, ticket_repository
    ):
        await router.handle(
            make_activity(
                conversation_type="channel",
                team_id=SME_TEAM_ID,
                value={"ticketId": "t-1", "action": "CloseTicket"},
            )
        )

        assert transport.texts() == [strings.ACCESS_DENIED_TEXT]

    @pytest.mark.asyncio
    async def test_roster_failure_denies(self, router, make_activity, transport, expert):
        transport.fail_members = True

        await router.handle(
            make_activity(
                conversation_type="channel",
                text="delete",
                value={"originalQuestion": "What is VPN?", "qnaPairId": 4},
            )
        )

        assert transport.texts() == [strings.ACCESS_DENIED_TEXT]

    @pytest.mark.asyncio
    async def test_expert_deletes_pair(
        self, router, make_activity, transport, knowledge_base, expert
    ):
        await router.handle(
            make_activity(
                conversation_type="channel",
                text="<at>FAQ Desk</at> delete",
                value={"originalQuestion": "What is VPN?", "qnaPairId": 4},
            )
        )

        knowledge_base.delete_pair.assert_awaited_once_with(4)
        assert transport.texts() == [
            strings.DELETED_BY_TEXT.format("Ada Lovelace", "What is VPN?")
        ]

    @pytest.mark.asyncio
    async def test_delete_before_publish_asks_to_wait(
        self, router, make_activity, transport, knowledge_base, expert
    ):
        knowledge_base.generate_answer.return_value = AnswerResult.not_ready()

        await router.handle(
            make_activity(
                conversation_type="channel",
                text="delete",
                value={"originalQuestion": "What is VPN?"},
            )
        )

        assert transport.texts() == [strings.WAIT_MESSAGE.format("What is VPN?")]
        knowledge_base.delete_pair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_declined_delete_only_logged(self, router, make_activity, transport):
        await router.handle(make_activity(conversation_type="channel", text="no"))

        assert transport.messages() == []

    @pytest.mark.asyncio
    async def test_unrecognized_input_gets_help_card(
        self, router, make_activity, transport
    ):
        await router.handle(make_activity(conversation_type="channel", text="hello"))

        assert len(transport.attachments()) == 1


class TestInvokes:
    @pytest.mark.asyncio
    async def test_extension_query_returns_body(
        self, router, make_activity, transport, expert
    ):
        body = await router.handle(
            make_activity(
                activity_type="invoke",
                name="composeExtension/query",
                conversation_type="channel",
                team_id=SME_TEAM_ID,
                value={"commandId": "openrequests", "parameters": []},
            )
        )

        assert body["composeExtension"]["type"] == "result"
        assert transport.typing_count() == 0

    @pytest.mark.asyncio
    async def test_file_consent_invoke_handled(self, router, make_activity, transport):
        body = await router.handle(
            make_activity(
                activity_type="invoke",
                name="fileConsent/invoke",
                value={"action": "decline", "context": {"filename": "q.csv", "id": "29:user-1"}},
            )
        )

        assert body is None
        assert transport.texts() == [strings.FILE_DECLINED_TEXT.format("q.csv")]

    @pytest.mark.asyncio
    async def test_edit_submit_not_ready(
        self, router, make_activity, knowledge_base, expert
    ):
        knowledge_base.generate_answer.side_effect = KnowledgeBaseNotReadyError("empty")

        body = await router.handle(
            make_activity(
                activity_type="invoke",
                name="task/submit",
                conversation_type="channel",
                team_id=SME_TEAM_ID,
                value={
                    "data": {
                        "qnaPairId": 7,
                        "originalQuestion": "How do I reset my password?",
                        "updatedQuestion": "How do I reset my password?",
                        "description": "Use the portal.",
                    }
                },
            )
        )

        assert body == {"task": {"type": "message", "value": strings.EDIT_NOT_READY_MESSAGE}}
