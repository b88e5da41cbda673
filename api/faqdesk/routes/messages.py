import logging

from faqdesk.core.exceptions import InvalidActivityError
from faqdesk.models.activity import Activity
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/api/messages")
async def receive_activity(request: Request):
    """Messaging endpoint the connector posts every activity to.

    Invoke activities get their response body back as JSON; everything else
    is acknowledged with an empty 200 once handled.
    """
    try:
        payload = await request.json()
        activity = Activity.model_validate(payload)
    except (ValueError, ValidationError) as e:
        raise InvalidActivityError(f"Malformed activity: {e}") from e

    request.state.activity_type = activity.type
    request.state.activity_id = activity.id

    activity_router = request.app.state.activity_router
    body = await activity_router.handle(activity)
    if body is None:
        return Response(status_code=200)
    return JSONResponse(content=body)
