"""Answering a file of questions in one go.

Rows are translated into the pivot language when the file declares another
language, answered one by one against the published knowledge base, and
translated back. The answered file is stored under the requester's id and
offered through a file consent card, or inline outside production. Nothing
is stored until the whole file has been rendered, so a cancelled job leaves
no result behind.
"""

import base64
import logging
import time
from pathlib import PurePosixPath
from typing import List, Optional

from faqdesk.channels import cards, strings
from faqdesk.channels.turn_context import TurnContext
from faqdesk.metrics.batch_metrics import (
    batch_answer_duration_seconds,
    batch_jobs_total,
    batch_rows_total,
)
from faqdesk.models.activity import Attachment, message
from faqdesk.models.batch import (
    GENERATE_ERROR_ANSWER,
    READ_ERROR_ANSWER,
    AnswerItem,
    BatchFileFormat,
    BatchInput,
)
from faqdesk.models.qna import AnswerOutcome, AnswerPayload, KnowledgeBasePartition, QueryTag
from faqdesk.services.batch import file_codec

logger = logging.getLogger(__name__)


def parse_tags(metadata: Optional[str]) -> Optional[List[QueryTag]]:
    """Parse "name: value | name: value" into query tags.

    Returns:
        The tags, or None when the string holds none

    Raises:
        ValueError: If a segment has no ':' separator
    """
    if not metadata or not metadata.strip():
        return None
    tags = []
    for segment in metadata.split("|"):
        segment = segment.strip()
        if not segment:
            continue
        name, sep, value = segment.partition(":")
        if not sep:
            raise ValueError(f"Malformed tag {segment!r}")
        tags.append(QueryTag(name=name.strip(), value=value.strip()))
    return tags or None


def result_filename(filename: str, activity_id: Optional[str]) -> str:
    path = PurePosixPath(filename)
    return f"{path.stem}{activity_id or ''}{path.suffix}"


class BatchQuestionPipeline:
    """Runs bulk question files from personal chat.

    Dependencies injected via constructor:
    - knowledge_base: KnowledgeBaseGateway
    - translator: TranslatorService
    - result_store: BatchResultRepository
    - settings: Settings (BATCH_PROGRESS_INTERVAL, BATCH_RESULTS_PREFIX, ENVIRONMENT)
    """

    def __init__(self, knowledge_base, translator, result_store, settings):
        self.knowledge_base = knowledge_base
        self.translator = translator
        self.result_store = result_store
        self.settings = settings
        self.progress_interval = settings.BATCH_PROGRESS_INTERVAL

    def result_key(self, user_id: str) -> str:
        return f"{self.settings.BATCH_RESULTS_PREFIX}{user_id}"

    def resolve_language(self, declared: Optional[str]) -> str:
        """Trust a declared language only if the translator allows it."""
        pivot = self.translator.default_language_code
        if declared and declared.strip():
            if self.translator.is_valid_language_code(declared):
                return declared.strip().lower()
            logger.info("Ignoring unsupported language code %r", declared)
        return pivot

    async def read_attachment(self, turn: TurnContext, attachment: Attachment) -> BatchInput:
        file_format = BatchFileFormat.from_filename(attachment.name or "")
        content = await turn.transport.download(attachment.download_url)
        return file_codec.read_questions(content, file_format)

    async def process_attachment(self, turn: TurnContext, attachment: Attachment) -> str:
        """Download, answer and offer back a question file.

        Returns:
            Name of the offered result file
        """
        batch = await self.read_attachment(turn, attachment)
        return await self.run(turn, attachment.name or "questions.csv", batch)

    async def run(self, turn: TurnContext, filename: str, batch: BatchInput) -> str:
        items = batch.items
        file_format = batch.file_format
        language = self.resolve_language(batch.language_code)
        pivot = self.translator.default_language_code

        await turn.send(
            strings.BATCH_RECEIVED_TEXT.format(file_format.value.lstrip("."), len(items))
        )
        await turn.send_typing()

        questions = [item.question for item in items]
        if language != pivot:
            questions = await self._translate(questions, language, pivot, "inbound")

        answers = await self.answer_rows(turn, questions, [i.metadata for i in items])

        if language != pivot:
            answers = await self._translate(answers, pivot, language, "outbound")

        results = [
            AnswerItem(
                question=item.question,
                answer=answer,
                metadata=item.metadata,
                language_code=language,
            )
            for item, answer in zip(items, answers)
        ]
        content = file_codec.write_answers(results, file_format)
        await self.result_store.put(self.result_key(turn.user_id), content)

        new_filename = result_filename(filename, turn.activity.id)
        await self.offer_file(turn, new_filename, file_format, content)
        batch_jobs_total.labels(file_format=file_format.value, result="completed").inc()
        return new_filename

    async def _translate(
        self, texts: List[str], source: str, target: str, direction: str
    ) -> List[str]:
        started = time.perf_counter()
        translated = await self.translator.translate_batch(
            texts, source, target, direction=direction
        )
        logger.info(
            "Translated %d texts %s -> %s in %.2f seconds",
            len(texts),
            source,
            target,
            time.perf_counter() - started,
        )
        return translated

    async def answer_rows(
        self, turn: TurnContext, questions: List[str], metadata: List[str]
    ) -> List[str]:
        """Answer every row in order; one row's failure never stops the rest."""
        started = time.perf_counter()
        answers = []
        for index, (question, tags) in enumerate(zip(questions, metadata)):
            answers.append(await self.answer_row(question, tags))
            if index > 0 and index % self.progress_interval == 0:
                await turn.send(strings.BATCH_PROGRESS_TEXT.format(index))
                await turn.send_typing()

        elapsed = time.perf_counter() - started
        batch_answer_duration_seconds.observe(elapsed)
        logger.info(
            "Queried knowledge base for %d questions in %.2f seconds",
            len(questions),
            elapsed,
        )
        return answers

    async def answer_row(self, question: str, metadata: str) -> str:
        if not question or not question.strip():
            batch_rows_total.labels(outcome="empty").inc()
            return READ_ERROR_ANSWER
        try:
            result = await self.knowledge_base.generate_answer(
                question,
                KnowledgeBasePartition.PUBLISHED,
                tags=parse_tags(metadata),
            )
        except Exception:
            batch_rows_total.labels(outcome="error").inc()
            logger.warning("Failed to answer batch row", exc_info=True)
            return GENERATE_ERROR_ANSWER

        if result.outcome is AnswerOutcome.NOT_READY:
            batch_rows_total.labels(outcome="not_ready").inc()
            return GENERATE_ERROR_ANSWER
        top = result.top
        if result.outcome is AnswerOutcome.NOT_FOUND or top is None:
            batch_rows_total.labels(outcome="not_found").inc()
            return top.answer if top is not None else ""
        batch_rows_total.labels(outcome="answered").inc()
        payload = AnswerPayload.parse(top.answer)
        return payload.description if payload.is_rich else top.answer

    async def offer_file(
        self,
        turn: TurnContext,
        filename: str,
        file_format: BatchFileFormat,
        content: bytes,
    ) -> None:
        """Offer the result through file consent, or inline outside production."""
        if self.settings.is_production:
            card = cards.file_consent_card(
                filename,
                strings.BATCH_DESCRIPTION.format(filename),
                len(content),
                {"filename": filename, "id": turn.user_id},
            )
            await turn.send(message(text=strings.BATCH_READY_TEXT, attachments=[card]))
            return

        attachment = cards.inline_file_attachment(
            filename,
            file_format.mime_type,
            base64.b64encode(content).decode("ascii"),
        )
        await turn.send(message(attachments=[attachment]))
