"""Prometheus metrics for conversation handling and knowledge base curation."""

from prometheus_client import Counter, Histogram

messages_received_total = Counter(
    "faqdesk_messages_received_total",
    "Inbound activities by activity type and conversation type",
    ["activity_type", "conversation_type"],
)

activities_dropped_total = Counter(
    "faqdesk_activities_dropped_total",
    "Inbound activities ignored before dispatch",
    ["reason"],
)

intents_total = Counter(
    "faqdesk_intents_total",
    "Classified intents dispatched to a handler",
    ["intent"],
)

questions_answered_total = Counter(
    "faqdesk_questions_answered_total",
    "Single questions by answer outcome",
    ["outcome"],
)

knowledge_base_request_duration_seconds = Histogram(
    "faqdesk_knowledge_base_request_duration_seconds",
    "Duration of knowledge base calls",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

qna_pairs_total = Counter(
    "faqdesk_qna_pairs_total",
    "Knowledge base curation actions",
    ["action"],
)

qna_form_rejections_total = Counter(
    "faqdesk_qna_form_rejections_total",
    "Add/edit submissions re-rendered with an error",
    ["reason"],
)

ticket_transitions_total = Counter(
    "faqdesk_ticket_transitions_total",
    "Ticket lifecycle events",
    ["action"],
)

notification_failures_total = Counter(
    "faqdesk_notification_failures_total",
    "Outbound card or message deliveries that failed",
    ["target"],
)

membership_lookups_total = Counter(
    "faqdesk_membership_lookups_total",
    "Expert membership checks by result",
    ["result"],
)

feedback_total = Counter(
    "faqdesk_feedback_total",
    "Feedback submissions by rating",
    ["rating"],
)
