from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.adapters.webhook.factory import create_webhook_client
from app.core.rate_limit import get_client_id
from app.schemas.validation import MessageResponse, ValidateRequest, ValidateResponse
from app.services.validation_service import ValidationService

router = APIRouter(tags=["Referral"])

_validation_service = ValidationService(webhook=create_webhook_client())

POST_ONLY_MESSAGE = "This endpoint only accepts POST requests."


@router.post(
    "/validate",
    response_model=ValidateResponse,
    response_model_exclude_none=True,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": ValidateRequest.model_json_schema()}
            },
        }
    },
    responses={
        400: {"model": ValidateResponse, "description": "Missing or malformed code"},
        429: {"model": ValidateResponse, "description": "Rate limit exceeded"},
        500: {"model": ValidateResponse, "description": "Internal error"},
        504: {"model": ValidateResponse, "description": "Webhook timeout or network failure"},
    },
)
async def validate_referral_code(request: Request) -> JSONResponse:
    """Validate a referral code against the referral webhook.

    The body is read raw so that malformed JSON or a wrong ``code`` type is
    reported in the envelope rather than as a framework validation error.
    The upstream status (e.g., 404 for unknown codes) is propagated as-is.

    Args:
        request: Incoming request with a ``{"code": "..."}`` JSON body.

    Returns:
        JSONResponse: Envelope with ``ok``, ``valid`` and the normalized
            fields, using the status code chosen by the validation service.
    """
    result = await _validation_service.validate(
        body=await request.body(),
        client_id=get_client_id(request),
    )
    return JSONResponse(
        status_code=result.status_code,
        content=result.body.to_content(),
        headers=result.headers or None,
    )


@router.get("/validate", status_code=405, response_model=MessageResponse)
def validate_method_not_allowed() -> JSONResponse:
    """Reject GET requests; referral codes are only accepted via POST."""
    return JSONResponse(status_code=405, content={"message": POST_ONLY_MESSAGE})
