from uuid import UUID
from fastapi import APIRouter, Depends, Request
from starlette.responses import PlainTextResponse

from hubsub.api.deps import get_controller
from hubsub.core.controller import SubscriptionController
from hubsub.core.validator import WebRequest

router = APIRouter()

@router.api_route(
    "/callback/{subscription_id}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    summary="Hub callback: verification challenges, denials and content pushes",
    response_class=PlainTextResponse,
)
async def hub_callback(
    subscription_id: UUID,
    request: Request,
    controller: SubscriptionController = Depends(get_controller),
):
    web_request = WebRequest(
        method=request.method,
        params=dict(request.query_params),
        # hubs commonly send rel="hub" and rel="self" as two Link headers
        headers={key: ", ".join(request.headers.getlist(key)) for key in request.headers.keys()},
        body=await request.body(),
        content_type=request.headers.get("content-type"),
    )
    response = await controller.handle_web_request(subscription_id, web_request)
    return PlainTextResponse(response.body, status_code=response.status_code)
