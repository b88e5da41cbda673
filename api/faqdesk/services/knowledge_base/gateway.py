"""Contract every knowledge base backend implements."""

from typing import List, Optional, Protocol, runtime_checkable

from faqdesk.models.qna import AnswerResult, KnowledgeBasePartition, QnaPair, QueryTag


@runtime_checkable
class KnowledgeBaseGateway(Protocol):
    """Question answering and curation operations on one knowledge base.

    ``generate_answer`` reports an unpublished or empty knowledge base as
    ``AnswerOutcome.NOT_READY`` instead of raising. ``question_exists``
    raises ``KnowledgeBaseNotReadyError`` in the same situation because a
    boolean cannot carry the third state.
    """

    knowledge_base_id: str

    async def generate_answer(
        self,
        question: str,
        partition: KnowledgeBasePartition = KnowledgeBasePartition.PUBLISHED,
        previous_qna_id: Optional[int] = None,
        previous_question: Optional[str] = None,
        tags: Optional[List[QueryTag]] = None,
    ) -> AnswerResult: ...

    async def question_exists(self, question: str) -> bool: ...

    async def add_pair(
        self,
        question: str,
        answer: str,
        author_id: str,
        conversation_id: str,
        reference_id: str,
    ) -> None: ...

    async def update_pair(
        self,
        qna_id: int,
        answer: str,
        author_id: str,
        new_question: str,
        old_question: str,
        conversation_id: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> None: ...

    async def delete_pair(self, qna_id: int) -> None: ...

    async def is_published(self, knowledge_base_id: Optional[str] = None) -> bool: ...

    async def download_all(
        self,
        knowledge_base_id: Optional[str] = None,
        partition: KnowledgeBasePartition = KnowledgeBasePartition.TEST,
    ) -> List[QnaPair]: ...
