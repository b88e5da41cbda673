"""
Pytest configuration and fixtures for the FAQ Desk API.

This module provides:
- Test settings with an isolated data directory
- A recording transport that stands in for the messaging connector
- Activity factories for personal, channel and invoke traffic
- A stub knowledge base gateway
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from faqdesk.core.config import Settings
from faqdesk.core.exceptions import TransportError
from faqdesk.models.activity import Activity, ActivityType, ChannelAccount
from faqdesk.models.qna import AnswerResult, QnaAnswer
from faqdesk.services.batch.batch_result_repository import BatchResultRepository
from faqdesk.services.qna.activity_repository import ActivityRepository
from faqdesk.services.tickets.ticket_repository import TicketRepository

SME_TEAM_ID = "19:sme-team@thread.skype"
TENANT_ID = "tenant-1"
SERVICE_URL = "https://smba.example.com/emea"
BOT_ID = "28:bot-1"


class RecordingTransport:
    """Connector double that records every outbound call."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Activity]] = []
        self.updated: List[Tuple[str, str, Activity]] = []
        self.created: List[Tuple[str, Activity, Optional[str]]] = []
        self.uploads: List[Tuple[str, bytes]] = []
        self.members: List[ChannelAccount] = []
        self.downloads: Dict[str, bytes] = {}
        self.member_calls = 0
        self.fail_typing = False
        self.fail_create = False
        self.fail_update = False
        self.fail_members = False
        self.fail_upload = False
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    async def send(
        self, service_url: str, conversation_id: str, activity: Activity
    ) -> Optional[str]:
        if activity.type == ActivityType.TYPING.value and self.fail_typing:
            raise TransportError("typing failed", status_code=502)
        self.sent.append((conversation_id, activity))
        return self._next_id("sent")

    async def update(
        self,
        service_url: str,
        conversation_id: str,
        activity_id: str,
        activity: Activity,
    ) -> None:
        if self.fail_update:
            raise TransportError("update failed", status_code=404)
        self.updated.append((conversation_id, activity_id, activity))

    async def create_conversation(
        self,
        service_url: str,
        team_channel_id: str,
        activity: Activity,
        tenant_id: Optional[str] = None,
    ) -> Tuple[str, Optional[str]]:
        if self.fail_create:
            raise TransportError("create failed", status_code=500)
        self.created.append((team_channel_id, activity, tenant_id))
        thread = self._next_id("thread")
        return f"{team_channel_id};messageid={thread}", self._next_id("card")

    async def get_conversation_members(
        self, service_url: str, conversation_id: str
    ) -> List[ChannelAccount]:
        self.member_calls += 1
        if self.fail_members:
            raise TransportError("roster unavailable", status_code=503)
        return list(self.members)

    async def upload_file(self, upload_url: str, content: bytes) -> None:
        if self.fail_upload:
            raise TransportError("upload refused", status_code=403)
        self.uploads.append((upload_url, content))

    async def download(self, url: str) -> bytes:
        return self.downloads[url]

    # Helpers for assertions

    def messages(self) -> List[Activity]:
        return [a for _, a in self.sent if a.type == ActivityType.MESSAGE.value]

    def texts(self) -> List[str]:
        return [a.text for a in self.messages() if a.text]

    def attachments(self) -> List[Dict[str, Any]]:
        return [
            att.model_dump(by_alias=True, exclude_none=True)
            for a in self.messages()
            for att in a.attachments
        ]

    def typing_count(self) -> int:
        return sum(1 for _, a in self.sent if a.type == ActivityType.TYPING.value)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with an isolated data directory and fixed team/tenant ids."""
    return Settings(
        DEBUG=True,
        DATA_DIR=str(tmp_path),
        ENVIRONMENT="testing",
        TENANT_ID=TENANT_ID,
        SME_TEAM_ID=SME_TEAM_ID,
        KNOWLEDGE_BASE_ID="kb-1",
        QNA_MAKER_AUTHORING_URL="https://authoring.example.com",
        QNA_MAKER_SUBSCRIPTION_KEY="authoring-key",
        QNA_MAKER_RUNTIME_URL="https://runtime.example.com",
        QNA_MAKER_ENDPOINT_KEY="endpoint-key",
        TRANSLATOR_URL="https://translator.example.com",
        TRANSLATOR_SUBSCRIPTION_KEY="translator-key",
        TRANSLATOR_REGION="westeurope",
        TRANSLATION_LANGUAGES="en,es,fr",
        BOT_ACCESS_TOKEN="bot-token",
        APP_BASE_URI="https://app.example.com",
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def make_activity() -> Callable[..., Activity]:
    """Factory for inbound activities; keyword overrides replace top-level fields."""

    def _make_activity(
        text: Optional[str] = None,
        value: Any = None,
        conversation_type: Optional[str] = "personal",
        activity_type: str = ActivityType.MESSAGE.value,
        name: Optional[str] = None,
        team_id: Optional[str] = None,
        tenant_id: str = TENANT_ID,
        user_id: str = "29:user-1",
        user_name: str = "Ada Lovelace",
        attachments: Optional[List[Dict[str, Any]]] = None,
        **overrides: Any,
    ) -> Activity:
        conversation_id = (
            f"{SME_TEAM_ID};messageid=root-1"
            if conversation_type == "channel"
            else "a:personal-conversation-1"
        )
        channel_data: Dict[str, Any] = {"tenant": {"id": tenant_id}}
        if team_id:
            channel_data["team"] = {"id": team_id, "name": "Experts"}
        payload: Dict[str, Any] = {
            "type": activity_type,
            "id": "activity-1",
            "serviceUrl": SERVICE_URL,
            "channelId": "msteams",
            "from": {"id": user_id, "name": user_name, "aadObjectId": "aad-user-1"},
            "recipient": {"id": BOT_ID, "name": "FAQ Desk"},
            "conversation": {
                "id": conversation_id,
                "conversationType": conversation_type,
                "tenantId": tenant_id,
            },
            "channelData": channel_data,
            "text": text,
            "value": value,
            "name": name,
            "attachments": attachments or [],
        }
        payload.update(overrides)
        return Activity.model_validate(payload)

    return _make_activity


@pytest.fixture
def make_answer() -> Callable[..., QnaAnswer]:
    def _make_answer(**overrides: Any) -> QnaAnswer:
        data: Dict[str, Any] = {
            "id": 7,
            "answer": "Open the settings page and choose Reset.",
            "questions": ["How do I reset my password?"],
            "score": 87.5,
            "metadata": [],
            "prompts": [],
        }
        data.update(overrides)
        return QnaAnswer.model_validate(data)

    return _make_answer


@pytest.fixture
def knowledge_base(make_answer) -> AsyncMock:
    """Knowledge base gateway stub answering every question with one pair."""
    kb = AsyncMock()
    kb.knowledge_base_id = "kb-1"
    kb.generate_answer = AsyncMock(
        return_value=AnswerResult.from_answers([make_answer()])
    )
    kb.question_exists = AsyncMock(return_value=False)
    kb.add_pair = AsyncMock(return_value=None)
    kb.update_pair = AsyncMock(return_value=None)
    kb.delete_pair = AsyncMock(return_value=None)
    kb.is_published = AsyncMock(return_value=True)
    kb.download_all = AsyncMock(return_value=[])
    return kb


@pytest_asyncio.fixture
async def ticket_repository(test_settings) -> TicketRepository:
    repository = TicketRepository(test_settings.TICKETS_DB_PATH)
    await repository.initialize()
    return repository


@pytest_asyncio.fixture
async def activity_repository(test_settings) -> ActivityRepository:
    repository = ActivityRepository(test_settings.ACTIVITY_INDEX_DB_PATH)
    await repository.initialize()
    return repository


@pytest_asyncio.fixture
async def result_repository(test_settings) -> BatchResultRepository:
    repository = BatchResultRepository(test_settings.BATCH_RESULTS_DB_PATH)
    await repository.initialize()
    return repository


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "unit: mark test as a unit test")
