"""Pydantic models for the connector activity schema.

Only the fields the bot reads or writes are modelled; everything else is
kept through ``extra="allow"`` so inbound payloads round-trip untouched.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityType(str, Enum):
    MESSAGE = "message"
    CONVERSATION_UPDATE = "conversationUpdate"
    INVOKE = "invoke"
    TYPING = "typing"


class ConversationType(str, Enum):
    PERSONAL = "personal"
    CHANNEL = "channel"
    GROUP_CHAT = "groupChat"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ChannelAccount(_CamelModel):
    id: str = ""
    name: Optional[str] = None
    aad_object_id: Optional[str] = Field(default=None, alias="aadObjectId")
    user_principal_name: Optional[str] = Field(default=None, alias="userPrincipalName")
    given_name: Optional[str] = Field(default=None, alias="givenName")
    email: Optional[str] = None


class ConversationAccount(_CamelModel):
    id: str = ""
    conversation_type: Optional[str] = Field(default=None, alias="conversationType")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    is_group: Optional[bool] = Field(default=None, alias="isGroup")
    name: Optional[str] = None


class Attachment(_CamelModel):
    content_type: str = Field(default="", alias="contentType")
    content_url: Optional[str] = Field(default=None, alias="contentUrl")
    content: Optional[Any] = None
    name: Optional[str] = None

    @property
    def download_url(self) -> Optional[str]:
        """Platform download link of an uploaded file, if this is one."""
        if isinstance(self.content, dict) and self.content.get("downloadUrl"):
            return self.content["downloadUrl"]
        return self.content_url

    @property
    def file_type(self) -> str:
        if isinstance(self.content, dict) and self.content.get("fileType"):
            return str(self.content["fileType"]).lower()
        return ""


class Activity(_CamelModel):
    type: str = ActivityType.MESSAGE.value
    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    local_timestamp: Optional[datetime] = Field(default=None, alias="localTimestamp")
    service_url: str = Field(default="", alias="serviceUrl")
    channel_id: str = Field(default="msteams", alias="channelId")
    from_: ChannelAccount = Field(default_factory=ChannelAccount, alias="from")
    conversation: ConversationAccount = Field(default_factory=ConversationAccount)
    recipient: ChannelAccount = Field(default_factory=ChannelAccount)
    text: Optional[str] = None
    summary: Optional[str] = None
    value: Optional[Any] = None
    name: Optional[str] = None
    reply_to_id: Optional[str] = Field(default=None, alias="replyToId")
    attachments: List[Attachment] = Field(default_factory=list)
    attachment_layout: Optional[str] = Field(default=None, alias="attachmentLayout")
    channel_data: Dict[str, Any] = Field(default_factory=dict, alias="channelData")
    members_added: List[ChannelAccount] = Field(
        default_factory=list, alias="membersAdded"
    )
    locale: Optional[str] = None

    @property
    def tenant_id(self) -> Optional[str]:
        tenant = self.channel_data.get("tenant") or {}
        return tenant.get("id") or self.conversation.tenant_id

    @property
    def team_id(self) -> Optional[str]:
        team = self.channel_data.get("team") or {}
        return team.get("id")

    @property
    def value_dict(self) -> Dict[str, Any]:
        """The card submission payload, or an empty dict."""
        return self.value if isinstance(self.value, dict) else {}

    def dump(self) -> Dict[str, Any]:
        """Serialize with wire field names, leaving out unset values."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def message(
    text: Optional[str] = None,
    attachments: Optional[List[Dict[str, Any]]] = None,
    summary: Optional[str] = None,
    layout: Optional[str] = None,
) -> Activity:
    """Build an outbound message activity."""
    return Activity(
        type=ActivityType.MESSAGE.value,
        text=text,
        summary=summary,
        attachments=[Attachment.model_validate(a) for a in attachments or []],
        attachment_layout=layout,
    )


def card_message(card: Dict[str, Any], summary: Optional[str] = None) -> Activity:
    return message(attachments=[card], summary=summary)


def typing_activity() -> Activity:
    return Activity(type=ActivityType.TYPING.value)
