from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Any, Dict
import logging

from ..services import registration_service
from ..services.metadata_builder import iso_timestamp
from ..models.registration_models import RegistrationRequest, RegistrationResponse, ErrorResponse
from ..exceptions import RegistrationError, ValidationError

router = APIRouter(
    tags=["IP Registration"],
)

logger = logging.getLogger(__name__)


def response_timestamp() -> str:
    return iso_timestamp(datetime.now(timezone.utc))


def error_response(
    status_code: int,
    message: str,
    details: Dict[str, Any] | None = None,
    stage: str | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=message, details=details, stage=stage, timestamp=response_timestamp())
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post(
    "/register-ip",
    response_model=RegistrationResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse}
    }
)
def register_ip(registration_request: RegistrationRequest):
    """
    Registers a captured image as a Story Protocol IP asset.

    - **imageContentId**: IPFS CID of the captured image (required).
    - **metadataContentId**: IPFS CID of the capture metadata JSON (optional).
    - **depthMetadata**: inline depth metadata (optional).
    - **deviceAddress**: device wallet address used for attribution (required).
    - **mintingFee** / **commercialRevShare**: license overrides; server defaults apply when omitted.
    """
    logger.info(f"Received IP registration request for image: {registration_request.imageContentId}")
    try:
        result = registration_service.register_capture(registration_request)
    except ValidationError as e:
        logger.warning(f"Rejected IP registration request: {e} {e.details}")
        return error_response(status.HTTP_400_BAD_REQUEST, str(e), details=e.details)
    except RegistrationError as e:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), stage=e.stage)
    except Exception as e:
        logger.error(f"Unexpected error registering IP for {registration_request.imageContentId}: {e}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return RegistrationResponse(data=result, timestamp=response_timestamp())
