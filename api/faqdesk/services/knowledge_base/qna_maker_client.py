"""
QnA Maker implementation of the knowledge base gateway.

Answers come from the runtime endpoint (``generateAnswer``); curation goes
through the authoring API, which accepts add/update/delete batches as a
PATCH on the knowledge base.

A 400 from the runtime endpoint is what the service returns for a knowledge
base that has never been published. That case is reported as
``AnswerOutcome.NOT_READY`` after confirming with the authoring API.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from faqdesk.core.exceptions import (
    KnowledgeBaseError,
    KnowledgeBaseNotReadyError,
    KnowledgeBaseQuotaExceededError,
)
from faqdesk.metrics.bot_metrics import knowledge_base_request_duration_seconds
from faqdesk.models.qna import (
    METADATA_ACTIVITY_REFERENCE_ID,
    METADATA_CONVERSATION_ID,
    METADATA_CREATED_AT,
    METADATA_CREATED_BY,
    METADATA_UPDATED_AT,
    METADATA_UPDATED_BY,
    AnswerOutcome,
    AnswerResult,
    KnowledgeBasePartition,
    QnaAnswer,
    QnaPair,
    QueryTag,
)
from faqdesk.utils.logging import truncate_for_log
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_CODE = "QuotaExceeded"
TOP_ANSWERS = 1


def _tags_payload(tags: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"name": name, "value": value} for name, value in tags.items()]


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("code")
    return None


def _metadata_timestamp() -> str:
    # Metadata values may not contain ':'; ticks-style integer timestamps are safe
    return str(int(datetime.now(timezone.utc).timestamp()))


def _metadata_safe(value: str) -> str:
    return quote(value, safe="")


class QnaMakerClient:
    """Async client for a single QnA Maker knowledge base."""

    def __init__(self, settings, client: Optional[httpx.AsyncClient] = None):
        """Initialize the client.

        Args:
            settings: Application settings with the QNA_MAKER_* values
            client: Optional shared httpx client (tests inject a mock transport)
        """
        self.settings = settings
        self.knowledge_base_id: str = settings.KNOWLEDGE_BASE_ID
        self.authoring_url = settings.QNA_MAKER_AUTHORING_URL
        self.runtime_url = settings.QNA_MAKER_RUNTIME_URL
        self.score_threshold = settings.SCORE_THRESHOLD
        self.timeout = settings.KNOWLEDGE_BASE_TIMEOUT
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("QnaMakerClient HTTP client closed")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send(
        self,
        method: str,
        url: str,
        operation: str,
        headers: Dict[str, str],
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        client = await self._get_client()
        started = time.perf_counter()
        try:
            return await client.request(method, url, headers=headers, json=json_body)
        finally:
            knowledge_base_request_duration_seconds.labels(operation=operation).observe(
                time.perf_counter() - started
            )

    def _authoring_headers(self) -> Dict[str, str]:
        return {"Ocp-Apim-Subscription-Key": self.settings.QNA_MAKER_SUBSCRIPTION_KEY}

    def _runtime_headers(self) -> Dict[str, str]:
        return {"Authorization": f"EndpointKey {self.settings.QNA_MAKER_ENDPOINT_KEY}"}

    def _kb_url(self, knowledge_base_id: Optional[str] = None) -> str:
        kb_id = knowledge_base_id or self.knowledge_base_id
        return f"{self.authoring_url}/qnamaker/v4.0/knowledgebases/{kb_id}"

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        code = _error_code(response)
        if code == QUOTA_EXCEEDED_CODE:
            raise KnowledgeBaseQuotaExceededError(
                f"Knowledge base quota exceeded during {operation}",
                status_code=response.status_code,
            )
        raise KnowledgeBaseError(
            f"Knowledge base {operation} failed with HTTP {response.status_code}"
            + (f" ({code})" if code else ""),
            status_code=response.status_code,
        )

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------

    async def generate_answer(
        self,
        question: str,
        partition: KnowledgeBasePartition = KnowledgeBasePartition.PUBLISHED,
        previous_qna_id: Optional[int] = None,
        previous_question: Optional[str] = None,
        tags: Optional[List[QueryTag]] = None,
    ) -> AnswerResult:
        """Ask the knowledge base for the best answer to a question."""
        body: Dict[str, Any] = {
            "question": question.strip(),
            "top": TOP_ANSWERS,
            "isTest": partition is KnowledgeBasePartition.TEST,
            "scoreThreshold": self.score_threshold,
        }
        if tags:
            body["strictFilters"] = [tag.model_dump() for tag in tags]
        if previous_qna_id is not None and previous_qna_id > 0 and previous_question:
            body["context"] = {
                "previousQnAId": previous_qna_id,
                "previousUserQuery": previous_question,
            }

        url = (
            f"{self.runtime_url}/qnamaker/knowledgebases/"
            f"{self.knowledge_base_id}/generateAnswer"
        )
        response = await self._send(
            "POST", url, "generate_answer", self._runtime_headers(), body
        )

        if response.status_code == httpx.codes.BAD_REQUEST:
            if not await self.is_published():
                logger.info(
                    "Knowledge base not published yet, question: %s",
                    truncate_for_log(question),
                )
                return AnswerResult.not_ready()
        self._raise_for_status(response, "generate_answer")

        answers = []
        for raw in response.json().get("answers") or []:
            context = raw.get("context") or {}
            answers.append(
                QnaAnswer(
                    id=raw.get("id", -1),
                    answer=raw.get("answer") or "",
                    questions=raw.get("questions") or [],
                    score=raw.get("score") or 0.0,
                    metadata=raw.get("metadata") or [],
                    prompts=context.get("prompts") or [],
                )
            )
        return AnswerResult.from_answers(answers)

    async def question_exists(self, question: str) -> bool:
        """Case-insensitive exact match of a question against the draft index.

        Raises:
            KnowledgeBaseNotReadyError: If the knowledge base was never published
        """
        result = await self.generate_answer(question, KnowledgeBasePartition.TEST)
        if result.outcome is AnswerOutcome.NOT_READY:
            raise KnowledgeBaseNotReadyError("Knowledge base is not published yet")
        if result.outcome is AnswerOutcome.NOT_FOUND or result.top is None:
            return False
        wanted = question.strip().lower()
        return any(q.strip().lower() == wanted for q in result.top.questions)

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    async def _patch(self, body: Dict[str, Any], operation: str) -> None:
        response = await self._send(
            "PATCH", self._kb_url(), operation, self._authoring_headers(), body
        )
        self._raise_for_status(response, operation)

    async def add_pair(
        self,
        question: str,
        answer: str,
        author_id: str,
        conversation_id: str,
        reference_id: str,
    ) -> None:
        metadata = {
            METADATA_CREATED_BY: author_id,
            METADATA_CREATED_AT: _metadata_timestamp(),
            METADATA_CONVERSATION_ID: _metadata_safe(conversation_id),
            METADATA_ACTIVITY_REFERENCE_ID: reference_id,
        }
        body = {
            "add": {
                "qnaList": [
                    {
                        "id": 0,
                        "answer": answer,
                        "source": "Bot",
                        "questions": [question],
                        "metadata": _tags_payload(metadata),
                    }
                ]
            }
        }
        await self._patch(body, "add_pair")
        logger.info("Added knowledge base pair", extra={"reference_id": reference_id})

    async def update_pair(
        self,
        qna_id: int,
        answer: str,
        author_id: str,
        new_question: str,
        old_question: str,
        conversation_id: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> None:
        metadata = {
            METADATA_UPDATED_BY: author_id,
            METADATA_UPDATED_AT: _metadata_timestamp(),
        }
        if conversation_id:
            metadata[METADATA_CONVERSATION_ID] = _metadata_safe(conversation_id)
        if reference_id:
            metadata[METADATA_ACTIVITY_REFERENCE_ID] = reference_id

        questions: Dict[str, List[str]] = {}
        if new_question != old_question:
            questions = {"add": [new_question], "delete": [old_question]}

        body = {
            "update": {
                "qnaList": [
                    {
                        "id": qna_id,
                        "answer": answer,
                        "source": "Bot",
                        "questions": questions,
                        "metadata": {"add": _tags_payload(metadata)},
                    }
                ]
            }
        }
        await self._patch(body, "update_pair")
        logger.info("Updated knowledge base pair %d", qna_id)

    async def delete_pair(self, qna_id: int) -> None:
        await self._patch({"delete": {"ids": [qna_id]}}, "delete_pair")
        logger.info("Deleted knowledge base pair %d", qna_id)

    async def is_published(self, knowledge_base_id: Optional[str] = None) -> bool:
        """Whether the knowledge base has been published at least once."""
        response = await self._send(
            "GET",
            self._kb_url(knowledge_base_id),
            "is_published",
            self._authoring_headers(),
        )
        self._raise_for_status(response, "is_published")
        return bool(response.json().get("lastPublishedTimestamp"))

    async def download_all(
        self,
        knowledge_base_id: Optional[str] = None,
        partition: KnowledgeBasePartition = KnowledgeBasePartition.TEST,
    ) -> List[QnaPair]:
        environment = "Test" if partition is KnowledgeBasePartition.TEST else "Prod"
        response = await self._send(
            "GET",
            f"{self._kb_url(knowledge_base_id)}/{environment}/qna",
            "download_all",
            self._authoring_headers(),
        )
        self._raise_for_status(response, "download_all")
        documents = response.json().get("qnaDocuments") or []
        return [QnaPair.model_validate(doc) for doc in documents]
