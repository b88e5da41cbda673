"""Tests for adding, editing and deleting knowledge base pairs."""

from unittest.mock import AsyncMock

import pytest
from faqdesk.channels import strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.core.exceptions import KnowledgeBaseNotReadyError, RosterLookupError
from faqdesk.models.qna import (
    AnswerOutcome,
    AnswerResult,
    KnowledgeBasePartition,
    QnaEditSession,
    QnaFormError,
    QnaPair,
    QueryTag,
)
from faqdesk.services.qna.qna_edit_workflow import (
    QnaEditWorkflow,
    QnaSubmitStatus,
    normalize_conversation_id,
)

from conftest import SME_TEAM_ID


def _make_session(**overrides) -> QnaEditSession:
    data = {
        "qna_pair_id": 7,
        "original_question": "How do I reset my password?",
        "question": "How do I reset my password?",
        "description": "Use the self-service portal.",
    }
    data.update(overrides)
    return QnaEditSession(**data)


@pytest.fixture
def authorizer():
    mock = AsyncMock()
    mock.is_authorized = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def workflow(knowledge_base, activity_repository, authorizer, test_settings):
    return QnaEditWorkflow(knowledge_base, activity_repository, authorizer, test_settings)


@pytest.fixture
def channel_turn(make_activity, transport):
    return TurnContext(
        make_activity(conversation_type="channel", team_id=SME_TEAM_ID, user_name="Grace"),
        transport,
    )


class TestAdd:
    @pytest.mark.asyncio
    async def test_add_announces_and_indexes(
        self, workflow, knowledge_base, activity_repository, channel_turn, transport
    ):
        session = _make_session(qna_pair_id=None, original_question="")

        result = await workflow.add(channel_turn, session)

        assert result.status is QnaSubmitStatus.SAVED
        kwargs = knowledge_base.add_pair.await_args.kwargs
        assert kwargs["question"] == "How do I reset my password?"
        assert kwargs["answer"] == "Use the self-service portal."
        assert kwargs["author_id"] == "aad-user-1"
        # The announcement card id is findable under the stored reference
        sent_id = "sent-1"
        assert await activity_repository.get_by_reference(kwargs["reference_id"]) == sent_id
        assert len(transport.attachments()) == 1

    @pytest.mark.asyncio
    async def test_duplicate_question_rejected(
        self, workflow, knowledge_base, channel_turn
    ):
        knowledge_base.question_exists.return_value = True

        result = await workflow.add(channel_turn, _make_session(qna_pair_id=None))

        assert result.status is QnaSubmitStatus.REJECTED
        assert result.session.errors == (QnaFormError.DUPLICATE_QUESTION,)
        knowledge_base.add_pair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unpublished_knowledge_base_accepts_first_pair(
        self, workflow, knowledge_base, channel_turn
    ):
        knowledge_base.question_exists.side_effect = KnowledgeBaseNotReadyError("empty")

        result = await workflow.add(channel_turn, _make_session(qna_pair_id=None))

        assert result.saved
        knowledge_base.add_pair.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_form_is_returned_with_errors(
        self, workflow, knowledge_base, channel_turn
    ):
        result = await workflow.add(
            channel_turn, _make_session(qna_pair_id=None, description="<b>bold</b>")
        )

        assert result.status is QnaSubmitStatus.REJECTED
        assert result.session.has_error(QnaFormError.MARKUP_PRESENT)
        knowledge_base.question_exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_expert_cannot_add(
        self, workflow, knowledge_base, authorizer, channel_turn
    ):
        authorizer.is_authorized.return_value = False

        result = await workflow.add(channel_turn, _make_session(qna_pair_id=None))

        assert result.status is QnaSubmitStatus.UNAUTHORIZED
        knowledge_base.add_pair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_roster_failure_counts_as_not_expert(
        self, workflow, authorizer, channel_turn
    ):
        authorizer.is_authorized.side_effect = RosterLookupError("down")

        assert await workflow.is_expert(channel_turn) is False


class TestEdit:
    @pytest.mark.asyncio
    async def test_stale_published_index_retries_against_test(
        self, workflow, knowledge_base, make_answer, channel_turn, transport
    ):
        knowledge_base.generate_answer.side_effect = [
            AnswerResult.from_answers([make_answer(id=-1, questions=[])]),
            AnswerResult.from_answers([make_answer()]),
        ]

        result = await workflow.edit(channel_turn, _make_session())

        assert result.saved
        partitions = [
            c.args[1] for c in knowledge_base.generate_answer.await_args_list
        ]
        assert partitions == [
            KnowledgeBasePartition.PUBLISHED,
            KnowledgeBasePartition.TEST,
        ]
        knowledge_base.update_pair.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unindexed_pair_announced_afresh(
        self,
        workflow,
        knowledge_base,
        activity_repository,
        channel_turn,
        transport,
    ):
        result = await workflow.edit(channel_turn, _make_session())

        assert result.saved
        kwargs = knowledge_base.update_pair.await_args.kwargs
        assert kwargs["conversation_id"] == SME_TEAM_ID
        assert kwargs["reference_id"]
        conversation_id, activity = transport.sent[0]
        assert conversation_id == SME_TEAM_ID
        assert await activity_repository.get_by_reference(kwargs["reference_id"]) == "sent-1"
        assert transport.updated == []

    @pytest.mark.asyncio
    async def test_indexed_pair_card_updated_in_place(
        self,
        workflow,
        knowledge_base,
        activity_repository,
        make_answer,
        channel_turn,
        transport,
    ):
        await activity_repository.add("ref-1", "card-9")
        knowledge_base.generate_answer.return_value = AnswerResult.from_answers(
            [make_answer(metadata=[QueryTag(name="activityreferenceid", value="ref-1")])]
        )

        result = await workflow.edit(
            channel_turn, _make_session(question="How can I reset my password?")
        )

        assert result.saved
        kwargs = knowledge_base.update_pair.await_args.kwargs
        assert kwargs["new_question"] == "How can I reset my password?"
        assert kwargs["old_question"] == "How do I reset my password?"
        assert "conversation_id" not in kwargs
        assert transport.updated[0][:2] == (SME_TEAM_ID, "card-9")
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_changed_question_must_be_unique(
        self, workflow, knowledge_base, channel_turn
    ):
        knowledge_base.question_exists.return_value = True

        result = await workflow.edit(
            channel_turn, _make_session(question="What is VPN?")
        )

        assert result.session.errors == (QnaFormError.DUPLICATE_QUESTION,)
        knowledge_base.update_pair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_case_only_change_skips_duplicate_check(
        self, workflow, knowledge_base, channel_turn
    ):
        knowledge_base.question_exists.return_value = True

        result = await workflow.edit(
            channel_turn, _make_session(question="how do i reset my password?")
        )

        assert result.saved
        knowledge_base.question_exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pair_not_found_in_either_partition(
        self, workflow, knowledge_base, make_answer, channel_turn
    ):
        knowledge_base.generate_answer.return_value = AnswerResult.from_answers(
            [make_answer(id=99, questions=["Something else"])]
        )

        result = await workflow.edit(channel_turn, _make_session())

        assert result.status is QnaSubmitStatus.NOT_FOUND
        assert knowledge_base.generate_answer.await_count == 2
        knowledge_base.update_pair.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unpublished_knowledge_base_raises(
        self, workflow, knowledge_base, channel_turn
    ):
        knowledge_base.generate_answer.return_value = AnswerResult.not_ready()

        with pytest.raises(KnowledgeBaseNotReadyError):
            await workflow.edit(channel_turn, _make_session())


class TestDeleteAndLoad:
    @pytest.mark.asyncio
    async def test_delete_by_id(self, workflow, knowledge_base, channel_turn, transport):
        deleted = await workflow.delete(channel_turn, 7, "How do I reset my password?")

        assert deleted is True
        knowledge_base.delete_pair.assert_awaited_once_with(7)
        assert transport.texts() == [
            strings.DELETED_BY_TEXT.format("Grace", "How do I reset my password?")
        ]

    @pytest.mark.asyncio
    async def test_delete_resolves_id_from_question(
        self, workflow, knowledge_base, channel_turn
    ):
        await workflow.delete(channel_turn, None, "how do i reset my password?")

        knowledge_base.delete_pair.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_delete_unknown_question(
        self, workflow, knowledge_base, make_answer, channel_turn, transport
    ):
        knowledge_base.generate_answer.return_value = AnswerResult(
            outcome=AnswerOutcome.NOT_FOUND, answers=[make_answer(id=-1)]
        )

        deleted = await workflow.delete(channel_turn, None, "Unknown?")

        assert deleted is False
        assert transport.texts() == [strings.QNA_PAIR_NOT_FOUND]

    @pytest.mark.asyncio
    async def test_load_session_from_draft(self, workflow, knowledge_base):
        knowledge_base.download_all.return_value = [
            QnaPair(id=3, answer="Plain", questions=["Other?"]),
            QnaPair(
                id=7,
                answer='{"Description": "Rich", "Title": "Reset"}',
                questions=["How do I reset my password?"],
            ),
        ]

        by_id = await workflow.load_session(7)
        by_question = await workflow.load_session(None, "HOW DO I RESET MY PASSWORD?")

        assert by_id.title == "Reset"
        assert by_id.description == "Rich"
        assert by_question.qna_pair_id == 7
        assert await workflow.load_session(42) is None

    @pytest.mark.unit
    def test_normalize_conversation_id(self):
        assert normalize_conversation_id("19:abc@thread.skype;messageid=123") == (
            "19:abc@thread.skype"
        )
        assert normalize_conversation_id("19:abc@thread.skype") == "19:abc@thread.skype"
