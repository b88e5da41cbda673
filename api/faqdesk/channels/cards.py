"""Adaptive card and attachment builders.

Every builder returns a connector attachment dict ready to be placed in an
outbound activity. Submit buttons use ``messageBack`` so the chosen command
arrives as the activity text and the card data as the activity value.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from faqdesk.channels import strings
from faqdesk.models.qna import AnswerPayload, QnaAnswer, QnaEditSession, QnaFormError
from faqdesk.models.ticket import (
    AskAnExpertSubmission,
    FeedbackRating,
    ShareFeedbackSubmission,
    Ticket,
    TicketAction,
    TicketStatus,
)

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
HERO_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.hero"
THUMBNAIL_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.thumbnail"
FILE_CONSENT_CONTENT_TYPE = "application/vnd.microsoft.teams.card.file.consent"
FILE_INFO_CONTENT_TYPE = "application/vnd.microsoft.teams.card.file.info"
ADAPTIVE_CARD_VERSION = "1.2"

# Commands carried as messageBack text
ASK_AN_EXPERT_COMMAND = "ask an expert"
SHARE_FEEDBACK_COMMAND = "share feedback"
ASK_AN_EXPERT_SUBMIT_COMMAND = "questionforexpert"
SHARE_FEEDBACK_SUBMIT_COMMAND = "sharefeedback"
TAKE_A_TOUR_COMMAND = "take a tour"
TEAM_TOUR_COMMAND = "team tour"
DELETE_COMMAND = "delete"
NO_COMMAND = "no"

# Task module sizes
TASK_MODULE_HEIGHT = 450
TASK_MODULE_WIDTH = 500
UNAUTHORIZED_HEIGHT = 250
UNAUTHORIZED_WIDTH = 300

FORM_ERROR_TEXTS = {
    QnaFormError.MARKUP_PRESENT: strings.MARKUP_PRESENT_TEXT,
    QnaFormError.EMPTY_FIELD: strings.EMPTY_FIELD_TEXT,
    QnaFormError.INVALID_IMAGE_URL: strings.INVALID_IMAGE_URL_TEXT,
    QnaFormError.INVALID_REDIRECT_URL: strings.INVALID_REDIRECT_URL_TEXT,
    QnaFormError.DUPLICATE_QUESTION: strings.DUPLICATE_QUESTION_TEXT,
}


def _adaptive(body: List[Dict[str, Any]], actions: Optional[List[Dict]] = None):
    content: Dict[str, Any] = {
        "type": "AdaptiveCard",
        "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
        "version": ADAPTIVE_CARD_VERSION,
        "body": body,
    }
    if actions:
        content["actions"] = actions
    return {"contentType": ADAPTIVE_CARD_CONTENT_TYPE, "content": content}


def _text(text: str, **options: Any) -> Dict[str, Any]:
    block = {"type": "TextBlock", "text": text, "wrap": True}
    block.update(options)
    return block


def _message_back(title: str, command: str, data: Optional[Dict] = None) -> Dict:
    payload: Dict[str, Any] = dict(data or {})
    payload["msteams"] = {"type": "messageBack", "displayText": title, "text": command}
    return {"type": "Action.Submit", "title": title, "data": payload}


def _facts(facts: List[tuple]) -> Dict[str, Any]:
    return {
        "type": "FactSet",
        "facts": [{"title": t, "value": v} for t, v in facts if v],
    }


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M UTC")


# ---------------------------------------------------------------------------
# Welcome and tours
# ---------------------------------------------------------------------------


def welcome_card(welcome_text: str, app_base_uri: str) -> Dict[str, Any]:
    body = []
    if app_base_uri:
        body.append(
            {"type": "Image", "url": f"{app_base_uri}/content/AppIcon.png", "size": "Medium"}
        )
    body.append(_text(welcome_text))
    return _adaptive(body, [_message_back(strings.TAKE_A_TOUR_BUTTON, TAKE_A_TOUR_COMMAND)])


def team_welcome_card(product_name: str, team_name: str) -> Dict[str, Any]:
    return _adaptive(
        [
            _text(f"{product_name} is now set up for **{team_name}**.", weight="Bolder"),
            _text(
                "Questions the knowledge base can't answer will be posted here. "
                "Use the messaging extension to add or edit answers."
            ),
        ],
        [_message_back(strings.TAKE_A_TOUR_BUTTON, TEAM_TOUR_COMMAND)],
    )


def _tour_card(title: str, text: str, image: str, app_base_uri: str) -> Dict:
    content: Dict[str, Any] = {"title": title, "text": text}
    if app_base_uri:
        content["images"] = [{"url": f"{app_base_uri}/content/{image}"}]
    return {"contentType": HERO_CARD_CONTENT_TYPE, "content": content}


def personal_tour_cards(app_base_uri: str) -> List[Dict[str, Any]]:
    return [
        _tour_card(
            "Ask a question",
            "Type your question and I'll search the knowledge base for an answer.",
            "Askaquestion.png",
            app_base_uri,
        ),
        _tour_card(
            "Ask an expert",
            "Not the answer you need? Send your question to an expert.",
            "Expertinquiry.png",
            app_base_uri,
        ),
        _tour_card(
            "Bulk questions",
            "Send a .csv or .xlsx file of questions and get a file of answers back.",
            "Bulkquestions.png",
            app_base_uri,
        ),
    ]


def team_tour_cards(app_base_uri: str) -> List[Dict[str, Any]]:
    return [
        _tour_card(
            "Requests",
            "Questions escalated by users appear here as request cards.",
            "Alerts.png",
            app_base_uri,
        ),
        _tour_card(
            "Assign and close",
            "Assign a request to yourself, close it when done, or reopen it.",
            "Assign.png",
            app_base_uri,
        ),
        _tour_card(
            "Curate answers",
            "Add, edit and delete knowledge base answers from the messaging extension.",
            "Curate.png",
            app_base_uri,
        ),
    ]


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


def _followup_actions(user_question: str, answer_text: str) -> List[Dict[str, Any]]:
    data = {"UserQuestion": user_question, "KnowledgeBaseAnswer": answer_text}
    return [
        _message_back(strings.ASK_AN_EXPERT_BUTTON, ASK_AN_EXPERT_COMMAND, data),
        _message_back(strings.SHARE_FEEDBACK_BUTTON, SHARE_FEEDBACK_COMMAND, data),
    ]


def _prompt_actions(answer: QnaAnswer, user_question: str) -> List[Dict[str, Any]]:
    actions = []
    for prompt in sorted(answer.prompts, key=lambda p: p.display_order):
        actions.append(
            _message_back(
                prompt.display_text,
                prompt.display_text,
                {
                    "IsPrompt": True,
                    "PreviousQuestion": user_question,
                    "PreviousQnaId": answer.id,
                },
            )
        )
    return actions


def response_card(answer: QnaAnswer, user_question: str) -> Dict[str, Any]:
    """Answer card for a plain text answer."""
    body = [
        _text(user_question, weight="Bolder"),
        _text(answer.answer),
    ]
    actions = _prompt_actions(answer, user_question)
    actions.extend(_followup_actions(user_question, answer.answer))
    return _adaptive(body, actions)


def rich_response_card(
    answer: QnaAnswer, payload: AnswerPayload, user_question: str
) -> Dict[str, Any]:
    """Answer card for a structured answer with title, image or link."""
    body: List[Dict[str, Any]] = []
    if payload.title:
        body.append(_text(payload.title, weight="Bolder", size="Large"))
    if payload.subtitle:
        body.append(_text(payload.subtitle, isSubtle=True))
    if payload.image_url:
        body.append({"type": "Image", "url": payload.image_url, "size": "Auto"})
    if payload.description:
        body.append(_text(payload.description))
    actions = _prompt_actions(answer, user_question)
    if payload.redirection_url:
        actions.append(
            {"type": "Action.OpenUrl", "title": "Open", "url": payload.redirection_url}
        )
    actions.extend(_followup_actions(user_question, payload.description))
    return _adaptive(body, actions)


def unrecognized_input_card(user_question: str) -> Dict[str, Any]:
    return _adaptive(
        [
            _text(
                "I couldn't find an answer to that. You can rephrase your "
                "question or ask an expert."
            )
        ],
        [
            _message_back(
                strings.ASK_AN_EXPERT_BUTTON,
                ASK_AN_EXPERT_COMMAND,
                {"UserQuestion": user_question},
            )
        ],
    )


# ---------------------------------------------------------------------------
# Ask an expert and feedback
# ---------------------------------------------------------------------------


def ask_an_expert_card(
    submission: AskAnExpertSubmission, show_validation: bool = False
) -> Dict[str, Any]:
    body: List[Dict[str, Any]] = [
        _text("Ask an expert", weight="Bolder", size="Large"),
        _text("Title"),
        {
            "type": "Input.Text",
            "id": "Title",
            "placeholder": "Short summary of your question",
            "value": submission.title or submission.user_question or "",
            "maxLength": 250,
        },
    ]
    if show_validation:
        body.append(_text("A title is required.", color="Attention"))
    body.extend(
        [
            _text("Description"),
            {
                "type": "Input.Text",
                "id": "Description",
                "isMultiline": True,
                "value": submission.description,
            },
        ]
    )
    data = {
        "UserQuestion": submission.user_question,
        "KnowledgeBaseAnswer": submission.knowledge_base_answer,
    }
    return _adaptive(body, [_message_back("Submit", ASK_AN_EXPERT_SUBMIT_COMMAND, data)])


def share_feedback_card(
    submission: ShareFeedbackSubmission, show_validation: bool = False
) -> Dict[str, Any]:
    body: List[Dict[str, Any]] = [
        _text("Share feedback", weight="Bolder", size="Large"),
        {
            "type": "Input.ChoiceSet",
            "id": "Rating",
            "style": "expanded",
            "value": submission.rating.value if submission.rating else "",
            "choices": [
                {"title": "Helpful", "value": FeedbackRating.HELPFUL.value},
                {
                    "title": "Needs improvement",
                    "value": FeedbackRating.NEEDS_IMPROVEMENT.value,
                },
                {"title": "Not helpful", "value": FeedbackRating.NOT_HELPFUL.value},
            ],
        },
    ]
    if show_validation:
        body.append(_text("Please choose a rating.", color="Attention"))
    body.append(
        {
            "type": "Input.Text",
            "id": "DescriptionHelpful",
            "isMultiline": True,
            "placeholder": "Anything else you'd like to tell us?",
            "value": submission.description,
        }
    )
    data = {
        "UserQuestion": submission.user_question,
        "KnowledgeBaseAnswer": submission.knowledge_base_answer,
    }
    return _adaptive(
        body, [_message_back("Submit", SHARE_FEEDBACK_SUBMIT_COMMAND, data)]
    )


def sme_feedback_card(
    submission: ShareFeedbackSubmission, user_name: str
) -> Dict[str, Any]:
    rating = submission.rating.value if submission.rating else ""
    return _adaptive(
        [
            _text(f"{user_name} shared feedback", weight="Bolder"),
            _facts(
                [
                    ("Rating", rating),
                    ("Question", submission.user_question or ""),
                    ("Answer", submission.knowledge_base_answer or ""),
                    ("Comments", submission.description),
                ]
            ),
        ]
    )


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------


def _status_text(ticket: Ticket) -> str:
    if ticket.status is TicketStatus.CLOSED:
        return f"Closed by {ticket.last_modified_by_name or 'an expert'}"
    if ticket.is_assigned:
        return f"Assigned to {ticket.assigned_to_name}"
    return "Unassigned"


def sme_ticket_card(ticket: Ticket) -> Dict[str, Any]:
    """Request card posted to the expert channel; re-rendered on every transition."""
    body = [
        _text(ticket.title, weight="Bolder", size="Large"),
        _text(ticket.description or ""),
        _facts(
            [
                ("Status", _status_text(ticket)),
                ("Requested by", ticket.requester_name),
                ("Created", _format_date(ticket.date_created)),
                ("Question", ticket.user_question or ""),
                ("Answer", ticket.knowledge_base_answer or ""),
                ("Closed", _format_date(ticket.date_closed)),
            ]
        ),
    ]
    if ticket.status is TicketStatus.CLOSED:
        choices = [("Reopen", TicketAction.REOPEN)]
    elif ticket.is_assigned:
        choices = [("Close", TicketAction.CLOSE), ("Assign to me", TicketAction.ASSIGN_TO_SELF)]
    else:
        choices = [("Assign to me", TicketAction.ASSIGN_TO_SELF), ("Close", TicketAction.CLOSE)]
    actions = [
        {
            "type": "Action.ShowCard",
            "title": "Change status",
            "card": {
                "type": "AdaptiveCard",
                "body": [
                    {
                        "type": "Input.ChoiceSet",
                        "id": "action",
                        "value": choices[0][1].value,
                        "choices": [
                            {"title": title, "value": action.value}
                            for title, action in choices
                        ],
                    }
                ],
                "actions": [
                    {
                        "type": "Action.Submit",
                        "title": "Submit",
                        "data": {"ticketId": ticket.ticket_id},
                    }
                ],
            },
        }
    ]
    return _adaptive(body, actions)


def user_notification_card(ticket: Ticket, message: str) -> Dict[str, Any]:
    return _adaptive(
        [
            _text(message, weight="Bolder"),
            _facts(
                [
                    ("Request", ticket.title),
                    ("Status", _status_text(ticket)),
                    ("Created", _format_date(ticket.date_created)),
                ]
            ),
        ]
    )


def unrecognized_team_input_card() -> Dict[str, Any]:
    return _adaptive(
        [_text("I didn't recognize that. Here's what I can do in this channel.")],
        [_message_back(strings.TAKE_A_TOUR_BUTTON, TEAM_TOUR_COMMAND)],
    )


# ---------------------------------------------------------------------------
# Knowledge base curation
# ---------------------------------------------------------------------------


def qna_form_card(session: QnaEditSession, heading: str) -> Dict[str, Any]:
    """Add/edit form; shows one inline message per error on the session."""
    body: List[Dict[str, Any]] = [_text(heading, weight="Bolder", size="Large")]
    for error in session.errors:
        body.append(_text(FORM_ERROR_TEXTS[error], color="Attention"))
    body.extend(
        [
            _text("Question*"),
            {"type": "Input.Text", "id": "updatedQuestion", "value": session.question},
            _text("Answer*"),
            {
                "type": "Input.Text",
                "id": "description",
                "isMultiline": True,
                "value": session.description,
            },
            _text("Title"),
            {"type": "Input.Text", "id": "title", "value": session.title},
            _text("Subtitle"),
            {"type": "Input.Text", "id": "subtitle", "value": session.subtitle},
            _text("Image URL"),
            {"type": "Input.Text", "id": "imageUrl", "value": session.image_url},
            _text("Redirect URL"),
            {"type": "Input.Text", "id": "redirectionUrl", "value": session.redirection_url},
        ]
    )
    hidden = {"originalQuestion": session.original_question}
    if session.qna_pair_id is not None:
        hidden["qnaPairId"] = session.qna_pair_id
    actions = [
        {"type": "Action.Submit", "title": "Preview", "data": {**hidden, "command": "preview"}},
        {"type": "Action.Submit", "title": "Save", "data": {**hidden, "command": "save"}},
    ]
    return _adaptive(body, actions)


def qna_preview_card(session: QnaEditSession) -> Dict[str, Any]:
    answer = session.answer
    body: List[Dict[str, Any]] = [_text(strings.PREVIEW_SUBTITLE, isSubtle=True)]
    if answer.is_rich:
        if answer.title:
            body.append(_text(answer.title, weight="Bolder", size="Large"))
        if answer.subtitle:
            body.append(_text(answer.subtitle, isSubtle=True))
        if answer.image_url:
            body.append({"type": "Image", "url": answer.image_url, "size": "Auto"})
    else:
        body.append(_text(session.question, weight="Bolder"))
    body.append(_text(answer.description))
    data = session.to_card_data()
    actions = [
        {"type": "Action.Submit", "title": "Back", "data": {**data, "command": "back"}},
        {"type": "Action.Submit", "title": "Save", "data": {**data, "command": "save"}},
    ]
    return _adaptive(body, actions)


def qna_announcement_card(
    session: QnaEditSession, actor_name: str, action_text: str
) -> Dict[str, Any]:
    """Card posted in the expert channel for a newly added or edited pair."""
    answer = session.answer
    body: List[Dict[str, Any]] = [_text(session.question, weight="Bolder")]
    if answer.is_rich:
        if answer.title:
            body.append(_text(answer.title, size="Large"))
        if answer.subtitle:
            body.append(_text(answer.subtitle, isSubtle=True))
        if answer.image_url:
            body.append({"type": "Image", "url": answer.image_url, "size": "Auto"})
    body.append(_text(answer.description))
    body.append(_text(action_text.format(actor_name), isSubtle=True, size="Small"))

    actions: List[Dict[str, Any]] = []
    if answer.is_rich and answer.redirection_url:
        actions.append(
            {"type": "Action.OpenUrl", "title": "Open", "url": answer.redirection_url}
        )
    # Freshly added pairs have no id yet; the question identifies them instead
    pair_data: Dict[str, Any] = {"originalQuestion": session.question}
    if session.qna_pair_id is not None:
        pair_data["qnaPairId"] = session.qna_pair_id
    actions.append(
        {
            "type": "Action.Submit",
            "title": "Edit",
            "data": {**pair_data, "msteams": {"type": "task/fetch"}},
        }
    )
    actions.append(
        {
            "type": "Action.ShowCard",
            "title": "Delete",
            "card": {
                "type": "AdaptiveCard",
                "body": [_text("Delete this question from the knowledge base?")],
                "actions": [
                    _message_back("Yes", DELETE_COMMAND, pair_data),
                    _message_back("No", NO_COMMAND),
                ],
            },
        }
    )
    return _adaptive(body, actions)


def unauthorized_card() -> Dict[str, Any]:
    return _adaptive([_text(strings.UNAUTHORIZED_ACTION_TEXT)])


def qna_search_preview(question: str, answer_text: str) -> Dict[str, Any]:
    return {
        "contentType": THUMBNAIL_CARD_CONTENT_TYPE,
        "content": {"title": question, "text": answer_text[:120]},
    }


def ticket_search_preview(ticket: Ticket) -> Dict[str, Any]:
    return {
        "contentType": THUMBNAIL_CARD_CONTENT_TYPE,
        "content": {"title": ticket.title, "text": _status_text(ticket)},
    }


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def file_consent_card(
    filename: str, description: str, size: int, context: Dict[str, Any]
) -> Dict[str, Any]:
    return {
        "contentType": FILE_CONSENT_CONTENT_TYPE,
        "name": filename,
        "content": {
            "description": description,
            "sizeInBytes": size,
            "acceptContext": context,
            "declineContext": context,
        },
    }


def file_info_card(
    name: str, content_url: str, unique_id: str, file_type: str
) -> Dict[str, Any]:
    return {
        "contentType": FILE_INFO_CONTENT_TYPE,
        "contentUrl": content_url,
        "name": name,
        "content": {"uniqueId": unique_id, "fileType": file_type},
    }


def inline_file_attachment(name: str, mime_type: str, content_base64: str) -> Dict:
    return {
        "contentType": mime_type,
        "name": name,
        "contentUrl": f"data:{mime_type};base64,{content_base64}",
    }


# ---------------------------------------------------------------------------
# Invoke responses
# ---------------------------------------------------------------------------


def task_module_card(
    card: Dict[str, Any],
    title: str,
    height: int = TASK_MODULE_HEIGHT,
    width: int = TASK_MODULE_WIDTH,
) -> Dict[str, Any]:
    return {
        "task": {
            "type": "continue",
            "value": {"card": card, "title": title, "height": height, "width": width},
        }
    }


def task_module_url(url: str, title: str) -> Dict[str, Any]:
    return {
        "task": {
            "type": "continue",
            "value": {
                "url": url,
                "title": title,
                "height": TASK_MODULE_HEIGHT,
                "width": TASK_MODULE_WIDTH,
            },
        }
    }


def task_module_message(text: str) -> Dict[str, Any]:
    return {"task": {"type": "message", "value": text}}


def messaging_extension_message(text: str) -> Dict[str, Any]:
    return {"composeExtension": {"type": "message", "text": text}}


def messaging_extension_results(attachments: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "composeExtension": {
            "type": "result",
            "attachmentLayout": "list",
            "attachments": attachments,
        }
    }
