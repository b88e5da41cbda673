"""Prometheus metrics for bulk question files and bulk translation."""

from prometheus_client import Counter, Histogram

batch_jobs_total = Counter(
    "faqdesk_batch_jobs_total",
    "Bulk question jobs by file format and result",
    ["file_format", "result"],
)

batch_rows_total = Counter(
    "faqdesk_batch_rows_total",
    "Bulk question rows by outcome",
    ["outcome"],
)

batch_answer_duration_seconds = Histogram(
    "faqdesk_batch_answer_duration_seconds",
    "Time spent answering all rows of a bulk question file",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
)

translation_operation_duration_seconds = Histogram(
    "faqdesk_translation_operation_duration_seconds",
    "Duration of bulk translation calls",
    ["direction"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

translation_rows_total = Counter(
    "faqdesk_translation_rows_total",
    "Texts sent for translation",
    ["direction"],
)

translation_errors_total = Counter(
    "faqdesk_translation_errors_total",
    "Translation errors by direction",
    ["direction"],
)

file_consent_total = Counter(
    "faqdesk_file_consent_total",
    "File consent answers and upload results",
    ["result"],
)
