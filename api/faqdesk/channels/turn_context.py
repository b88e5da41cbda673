"""Per-turn helper binding an inbound activity to the outbound transport."""

import logging
from typing import Any, Dict, List, Optional, Union

from faqdesk.channels.transport import Transport
from faqdesk.models.activity import (
    Activity,
    ActivityType,
    card_message,
    message,
    typing_activity,
)

logger = logging.getLogger(__name__)


class TurnContext:
    """Everything a handler needs to reply within one inbound activity."""

    def __init__(self, activity: Activity, transport: Transport):
        self.activity = activity
        self.transport = transport

    @property
    def service_url(self) -> str:
        return self.activity.service_url

    @property
    def conversation_id(self) -> str:
        return self.activity.conversation.id

    @property
    def user_id(self) -> str:
        return self.activity.from_.id

    @property
    def user_name(self) -> str:
        return self.activity.from_.name or ""

    @property
    def user_object_id(self) -> str:
        return self.activity.from_.aad_object_id or ""

    def _prepare(self, outbound: Activity) -> Activity:
        return outbound.model_copy(
            update={
                "conversation": self.activity.conversation,
                "recipient": self.activity.from_,
                "from_": self.activity.recipient,
                "reply_to_id": self.activity.id,
                "service_url": self.service_url,
                "channel_id": self.activity.channel_id,
            }
        )

    async def send(self, outbound: Union[Activity, str]) -> Optional[str]:
        """Send a reply in the current conversation; returns its activity id."""
        if isinstance(outbound, str):
            outbound = message(text=outbound)
        return await self.transport.send(
            self.service_url, self.conversation_id, self._prepare(outbound)
        )

    async def send_card(
        self, card: Dict[str, Any], summary: Optional[str] = None
    ) -> Optional[str]:
        return await self.send(card_message(card, summary=summary))

    async def send_carousel(self, cards: List[Dict[str, Any]]) -> Optional[str]:
        return await self.send(message(attachments=cards, layout="carousel"))

    async def send_typing(self) -> None:
        """Send a typing indicator; failures are logged and ignored."""
        try:
            await self.transport.send(
                self.service_url, self.conversation_id, self._prepare(typing_activity())
            )
        except Exception:
            logger.warning(
                "Failed to send typing indicator to %s",
                self.conversation_id,
                exc_info=True,
            )

    async def update(
        self,
        activity_id: str,
        outbound: Activity,
        conversation_id: Optional[str] = None,
    ) -> None:
        """Replace a previously sent activity in place."""
        outbound = self._prepare(outbound).model_copy(
            update={"type": ActivityType.MESSAGE.value}
        )
        await self.transport.update(
            self.service_url,
            conversation_id or self.conversation_id,
            activity_id,
            outbound,
        )

    async def send_to_conversation(
        self, conversation_id: str, outbound: Activity
    ) -> Optional[str]:
        """Send to another conversation on the same service (e.g. the requester's chat)."""
        return await self.transport.send(self.service_url, conversation_id, outbound)
