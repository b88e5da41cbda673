"""User-facing texts sent by the bot."""

ERROR_MESSAGE = "Sorry, something went wrong. Please try again in a little while."
THANK_YOU_TEXT = "Thanks for your feedback!"
NOTIFICATION_CARD_CONTENT = "We've sent your question to an expert. You'll hear back here."
NON_SME_ERROR_TEXT = "Only members of the expert team can use this."
UNAUTHORIZED_ACTION_TEXT = (
    "Questions can only be added from the expert team. Please open this from "
    "the expert team channel."
)
ACCESS_DENIED_TEXT = "You don't have permission to do that."
WAIT_MESSAGE = (
    "The knowledge base is still being prepared, so \"{0}\" can't be changed "
    "yet. Please try again in a few minutes."
)
EDIT_NOT_READY_MESSAGE = (
    "Please wait for some time, updates to this question will be available "
    "in short time."
)
QUOTA_EXCEEDED_MESSAGE = (
    "QnA storage limit exceeded and is not able to save the qna pair. Please "
    "contact your system administrator to provision additional storage space."
)
TICKET_NOT_FOUND = "Ticket {0} was not found in the data store"
QNA_PAIR_NOT_FOUND = "That question is no longer in the knowledge base."

# Ticket status lines posted to the expert thread
SME_OPENED_STATUS = "{0} reopened this request."
SME_CLOSED_STATUS = "{0} closed this request."
SME_ASSIGNED_STATUS = "{0} assigned this request to themselves."

# Requester notifications
REOPENED_TICKET_USER_NOTIFICATION = "Your request was reopened."
CLOSED_TICKET_USER_NOTIFICATION = "Your request was closed."
ASSIGNED_TICKET_USER_NOTIFICATION = "An expert is looking at your request."

# Knowledge base curation
ENTRY_CREATED_BY_TEXT = "Entry created by {0}"
LAST_EDITED_TEXT = "Last edited by {0}"
DELETED_BY_TEXT = "{0} deleted the question \"{1}\"."
ADD_QUESTION_SUBTITLE = "Add question"
EDIT_QUESTION_SUBTITLE = "Edit question"
PREVIEW_SUBTITLE = "Preview"
DUPLICATE_QUESTION_TEXT = "This question already exists in the knowledge base."
MARKUP_PRESENT_TEXT = "HTML tags are not allowed."
EMPTY_FIELD_TEXT = "Question and answer are required."
INVALID_IMAGE_URL_TEXT = "Enter a valid image link (https, ending in .png, .jpg, .jpeg or .gif)."
INVALID_REDIRECT_URL_TEXT = "Enter a valid https link."

# Bulk question files
BATCH_RECEIVED_TEXT = (
    "I received your {0} file with {1} questions. One moment while I consult "
    "the knowledge base for the answers"
)
BATCH_PROGRESS_TEXT = "fyi - I've finished {0} so far"
BATCH_READY_TEXT = (
    "I now have the answers for your questions. Please grant permission for me "
    "to upload them to your OneDrive. Thanks!"
)
BATCH_UNSUPPORTED_FILE_TEXT = "I can only answer questions from .csv and .xlsx files."
BATCH_DESCRIPTION = 'Knowledge base answers for "{0}"'
FILE_UPLOADED_TEXT = "File uploaded. Your file **{0}** is ready to download"
FILE_UPLOAD_FAILED_TEXT = "File upload failed. Error: {0}"
FILE_NOT_AVAILABLE_TEXT = "the result file is no longer available"
FILE_DECLINED_TEXT = "Declined. We won't upload file **{0}**."

# Card labels
ASK_AN_EXPERT_BUTTON = "Ask an expert"
SHARE_FEEDBACK_BUTTON = "Share feedback"
TAKE_A_TOUR_BUTTON = "Take a tour"
