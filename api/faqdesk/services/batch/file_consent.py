"""Second half of a bulk question job: uploading the answers after consent."""

import logging
from typing import Any, Dict

from faqdesk.channels import cards, strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.metrics.batch_metrics import file_consent_total
from faqdesk.models.activity import message
from faqdesk.models.batch import FileConsentContext

logger = logging.getLogger(__name__)

ACCEPT = "accept"
DECLINE = "decline"


class FileConsentService:
    """Handles the user's answer to a file consent card.

    Dependencies injected via constructor:
    - result_store: BatchResultRepository
    - settings: Settings (BATCH_RESULTS_PREFIX)
    """

    def __init__(self, result_store, settings):
        self.result_store = result_store
        self.settings = settings

    async def handle(self, turn: TurnContext, value: Dict[str, Any]) -> bool:
        """Dispatch a fileConsent/invoke value; returns True when a file was uploaded."""
        context = FileConsentContext.model_validate(value.get("context") or {})
        if value.get("action") == ACCEPT:
            return await self.accept(turn, context, value.get("uploadInfo") or {})
        await self.decline(turn, context)
        return False

    async def accept(
        self,
        turn: TurnContext,
        context: FileConsentContext,
        upload_info: Dict[str, Any],
    ) -> bool:
        key = f"{self.settings.BATCH_RESULTS_PREFIX}{context.id}"
        content = await self.result_store.get(key) if context.id else None
        if content is None:
            file_consent_total.labels(result="missing").inc()
            logger.error("No stored batch result for %s", key)
            await turn.send(
                strings.FILE_UPLOAD_FAILED_TEXT.format(strings.FILE_NOT_AVAILABLE_TEXT)
            )
            return False

        try:
            await turn.transport.upload_file(upload_info["uploadUrl"], content)
        except Exception as e:
            file_consent_total.labels(result="upload_failed").inc()
            logger.exception("Failed to upload batch result %s", context.filename)
            await turn.send(strings.FILE_UPLOAD_FAILED_TEXT.format(e))
            return False

        name = upload_info.get("name") or context.filename
        info_card = cards.file_info_card(
            name,
            upload_info.get("contentUrl", ""),
            upload_info.get("uniqueId", ""),
            upload_info.get("fileType", ""),
        )
        await turn.send(
            message(text=strings.FILE_UPLOADED_TEXT.format(name), attachments=[info_card])
        )
        file_consent_total.labels(result="uploaded").inc()
        logger.info("Uploaded batch result %s (%d bytes)", name, len(content))
        return True

    async def decline(self, turn: TurnContext, context: FileConsentContext) -> None:
        file_consent_total.labels(result="declined").inc()
        await turn.send(strings.FILE_DECLINED_TEXT.format(context.filename))
