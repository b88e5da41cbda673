"""Outbound messaging through the connector REST API (v3 conversations)."""

import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

import httpx
from faqdesk.core.exceptions import TransportError
from faqdesk.models.activity import Activity, ChannelAccount
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Capabilities the bot needs from the messaging platform."""

    async def send(
        self, service_url: str, conversation_id: str, activity: Activity
    ) -> Optional[str]: ...

    async def update(
        self,
        service_url: str,
        conversation_id: str,
        activity_id: str,
        activity: Activity,
    ) -> None: ...

    async def create_conversation(
        self,
        service_url: str,
        team_channel_id: str,
        activity: Activity,
        tenant_id: Optional[str] = None,
    ) -> Tuple[str, Optional[str]]: ...

    async def get_conversation_members(
        self, service_url: str, conversation_id: str
    ) -> List[ChannelAccount]: ...

    async def upload_file(self, upload_url: str, content: bytes) -> None: ...

    async def download(self, url: str) -> bytes: ...


class BotConnectorClient:
    """httpx implementation of Transport."""

    def __init__(self, settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.timeout = settings.CONNECTOR_TIMEOUT
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("BotConnectorClient HTTP client closed")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.BOT_ACCESS_TOKEN:
            headers["Authorization"] = f"Bearer {self.settings.BOT_ACCESS_TOKEN}"
        return headers

    @staticmethod
    def _conversations_url(service_url: str) -> str:
        return f"{service_url.rstrip('/')}/v3/conversations"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(
        self, method: str, url: str, json_body: Optional[Any] = None
    ) -> httpx.Response:
        client = await self._get_client()
        response = await client.request(
            method, url, headers=self._headers(), json=json_body
        )
        if not response.is_success:
            raise TransportError(
                f"Connector {method} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _response_id(response: httpx.Response) -> Optional[str]:
        if not response.content:
            return None
        try:
            return response.json().get("id")
        except ValueError:
            return None

    async def send(
        self, service_url: str, conversation_id: str, activity: Activity
    ) -> Optional[str]:
        """Post an activity to a conversation; returns the new activity id."""
        response = await self._request(
            "POST",
            f"{self._conversations_url(service_url)}/{conversation_id}/activities",
            activity.dump(),
        )
        return self._response_id(response)

    async def update(
        self,
        service_url: str,
        conversation_id: str,
        activity_id: str,
        activity: Activity,
    ) -> None:
        activity = activity.model_copy(update={"id": activity_id})
        await self._request(
            "PUT",
            f"{self._conversations_url(service_url)}/{conversation_id}"
            f"/activities/{activity_id}",
            activity.dump(),
        )

    async def create_conversation(
        self,
        service_url: str,
        team_channel_id: str,
        activity: Activity,
        tenant_id: Optional[str] = None,
    ) -> Tuple[str, Optional[str]]:
        """Start a new thread in a team channel.

        Returns:
            Tuple of (thread conversation id, id of the first activity)
        """
        body: Dict[str, Any] = {
            "isGroup": True,
            "channelData": {"channel": {"id": team_channel_id}},
            "activity": activity.dump(),
        }
        if tenant_id:
            body["tenantId"] = tenant_id
            body["channelData"]["tenant"] = {"id": tenant_id}
        response = await self._request(
            "POST", self._conversations_url(service_url), body
        )
        data = response.json()
        return data["id"], data.get("activityId")

    async def get_conversation_members(
        self, service_url: str, conversation_id: str
    ) -> List[ChannelAccount]:
        response = await self._request(
            "GET",
            f"{self._conversations_url(service_url)}/{conversation_id}/members",
        )
        return [ChannelAccount.model_validate(m) for m in response.json()]

    async def upload_file(self, upload_url: str, content: bytes) -> None:
        """PUT file bytes to a consent upload URL in a single range."""
        size = len(content)
        headers = {
            "Content-Length": str(size),
            "Content-Range": f"bytes 0-{size - 1}/{size}",
        }
        client = await self._get_client()
        response = await client.put(upload_url, content=content, headers=headers)
        if not response.is_success:
            raise TransportError(
                f"File upload failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

    async def download(self, url: str) -> bytes:
        client = await self._get_client()
        response = await client.get(url, headers=self._headers())
        if not response.is_success:
            raise TransportError(
                f"Attachment download failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content
