"""Field checks for the add/edit question form."""

import re
from typing import Tuple
from urllib.parse import urlparse

from faqdesk.models.qna import QnaEditSession, QnaFormError

MARKUP_PATTERN = re.compile(r"<\s*/?\s*[a-zA-Z!][^>]*>")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp")


def contains_markup(text: str) -> bool:
    return bool(text) and MARKUP_PATTERN.search(text) is not None


def is_valid_image_url(url: str) -> bool:
    """An https link whose path ends in a common image extension."""
    parsed = urlparse(url.strip())
    return (
        parsed.scheme == "https"
        and bool(parsed.netloc)
        and parsed.path.lower().endswith(IMAGE_EXTENSIONS)
    )


def is_valid_redirect_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_session(session: QnaEditSession) -> Tuple[QnaFormError, ...]:
    """Return the errors of the first failing check, or an empty tuple.

    Checks run in order: markup in any field, then empty question or
    answer, then the image and redirect links of a rich answer.
    """
    fields = (
        session.question,
        session.description,
        session.title,
        session.subtitle,
        session.image_url,
        session.redirection_url,
    )
    if any(contains_markup(value) for value in fields):
        return (QnaFormError.MARKUP_PRESENT,)

    if not session.question.strip() or not session.description.strip():
        return (QnaFormError.EMPTY_FIELD,)

    errors = []
    if session.image_url and not is_valid_image_url(session.image_url):
        errors.append(QnaFormError.INVALID_IMAGE_URL)
    if session.redirection_url and not is_valid_redirect_url(session.redirection_url):
        errors.append(QnaFormError.INVALID_REDIRECT_URL)
    return tuple(errors)
