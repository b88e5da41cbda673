import re


def redact_pii(text: str) -> str:
    """
    Redact potential Personally Identifiable Information (PII) from text.

    Applied to user questions and card fields before they are logged.
    Redacts:
    - Email addresses
    - Directory object ids and other UUIDs
    - IP addresses
    - Phone numbers
    - Long numeric sequences and key-like tokens
    """
    if not text:
        return text

    # UUIDs (directory object ids, tenant ids)
    text = re.sub(
        r"\b[a-fA-F0-9]{8}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{12}\b",
        "[OBJECT_ID]",
        text,
    )

    # Email addresses
    text = re.sub(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", "[EMAIL]", text)

    # IP addresses
    text = re.sub(r"\b(?:\d{1,3}\.){3}\d{1,3}\b", "[IP]", text)

    # Phone numbers in various formats
    text = re.sub(
        r"\b(?:\+\d{1,3}[-. ]?)?\(?\d{3}\)?[-. ]?\d{3}[-. ]?\d{4}\b", "[PHONE]", text
    )

    # Long numeric sequences that might be IDs
    text = re.sub(r"\b\d{8,}\b", "[ID]", text)

    # Alphanumeric strings that look like API keys or passwords
    text = re.sub(r"\b[a-zA-Z0-9]{32,}\b", "[KEY]", text)

    return text


def truncate_for_log(text: str, limit: int = 80) -> str:
    """Redact and shorten free text for a single log line."""
    text = redact_pii(text or "")
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
