"""Centralized metrics module for Prometheus instrumentation.

- bot_metrics: conversation, ticket, knowledge base and membership metrics
- batch_metrics: bulk question and bulk translation metrics

Usage:
    from faqdesk.metrics.bot_metrics import messages_received_total
    from faqdesk.metrics.batch_metrics import batch_rows_total
"""
