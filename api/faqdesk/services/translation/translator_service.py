"""Translator Text API client used by the bulk question pipeline."""

import logging
import time
from typing import List, Optional

import httpx
from faqdesk.core.exceptions import TranslationError
from faqdesk.metrics.batch_metrics import (
    translation_errors_total,
    translation_operation_duration_seconds,
    translation_rows_total,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSLATE_PATH = "/translate"
API_VERSION = "3.0"
# The service accepts at most 100 texts per request
MAX_TEXTS_PER_REQUEST = 100


class TranslatorService:
    """Order-preserving batch translation with a language allow-list.

    ``translate_batch`` returns exactly one output per input, in input order.
    Empty strings are passed through without being sent to the service.
    """

    def __init__(self, settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.base_url = settings.TRANSLATOR_URL
        self.timeout = settings.TRANSLATOR_TIMEOUT
        self.default_language_code: str = settings.DEFAULT_LANGUAGE_CODE
        self._valid_codes = set(settings.TRANSLATION_LANGUAGES)
        self._client = client

        logger.info(
            f"TranslatorService initialized (pivot={self.default_language_code}, "
            f"languages={sorted(self._valid_codes)})"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def is_valid_language_code(self, code: Optional[str]) -> bool:
        """Check a language code against the configured allow-list."""
        if not code:
            return False
        return code.strip().lower() in self._valid_codes

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(
        self, texts: List[str], to_language: str, from_language: Optional[str]
    ) -> httpx.Response:
        params = {"api-version": API_VERSION, "to": to_language}
        if from_language:
            params["from"] = from_language
        headers = {
            "Ocp-Apim-Subscription-Key": self.settings.TRANSLATOR_SUBSCRIPTION_KEY,
            "Ocp-Apim-Subscription-Region": self.settings.TRANSLATOR_REGION,
        }
        client = await self._get_client()
        return await client.post(
            f"{self.base_url}{TRANSLATE_PATH}",
            params=params,
            headers=headers,
            json=[{"Text": text} for text in texts],
        )

    async def _translate_chunk(
        self, texts: List[str], to_language: str, from_language: Optional[str]
    ) -> List[str]:
        response = await self._post(texts, to_language, from_language)
        if not response.is_success:
            raise TranslationError(
                f"Translator returned HTTP {response.status_code}"
            )
        try:
            body = response.json()
            translated = [item["translations"][0]["text"] for item in body]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TranslationError("Malformed translator response") from e
        if len(translated) != len(texts):
            raise TranslationError(
                f"Translator returned {len(translated)} texts for {len(texts)}"
            )
        return translated

    async def translate_batch(
        self,
        texts: List[str],
        from_language: Optional[str],
        to_language: str,
        direction: str = "inbound",
    ) -> List[str]:
        """Translate many texts, keeping their order.

        Args:
            texts: Texts to translate
            from_language: Source language code, or None to auto-detect
            to_language: Target language code
            direction: Metrics label ("inbound" or "outbound")

        Returns:
            Translated texts, one per input

        Raises:
            TranslationError: If the service fails or returns a malformed body
        """
        results = list(texts)
        pending = [i for i, text in enumerate(texts) if text and text.strip()]
        if not pending:
            return results

        started = time.perf_counter()
        try:
            for offset in range(0, len(pending), MAX_TEXTS_PER_REQUEST):
                chunk = pending[offset : offset + MAX_TEXTS_PER_REQUEST]
                translated = await self._translate_chunk(
                    [texts[i] for i in chunk], to_language, from_language
                )
                for index, text in zip(chunk, translated):
                    results[index] = text
        except (TranslationError, httpx.HTTPError):
            translation_errors_total.labels(direction=direction).inc()
            logger.exception(
                "Batch translation failed",
                extra={"to": to_language, "from": from_language, "count": len(texts)},
            )
            raise
        finally:
            translation_operation_duration_seconds.labels(direction=direction).observe(
                time.perf_counter() - started
            )

        translation_rows_total.labels(direction=direction).inc(len(pending))
        return results

    async def translate(
        self, text: str, to_language: str, from_language: Optional[str] = None
    ) -> str:
        translated = await self.translate_batch(
            [text], from_language, to_language, direction="single"
        )
        return translated[0]
