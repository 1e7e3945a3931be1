"""
Haircut Generation Route

Runs the AI try-on for authenticated users within their monthly quota,
and for anonymous visitors on their first try.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.api.dependencies import (
    GenerationServiceDep,
    OptionalUserDep,
    UsageLedgerDep,
)
from app.domain.models import GenerateHaircutRequest
from app.infrastructure.exceptions import (
    AIServiceError,
    ContentBlockedError,
    UpstreamUnavailableError,
    ValidationError,
)


logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/generate-haircut")
async def generate_haircut(
    body: GenerateHaircutRequest,
    user: OptionalUserDep,
    generator: GenerationServiceDep,
    ledger: UsageLedgerDep,
):
    """
    Generate a try-on image for the requested hairstyle.

    Entitlement is checked before the model is called. Usage is recorded
    only after a successful generation.
    """
    if user is not None:
        if not await ledger.can_generate(user.id):
            logger.info(f"User {user.id} reached the generation limit")
            return _error(402, "Generation limit reached")
    elif not body.is_first_try:
        return _error(402, "Free trial used")

    try:
        image_data = await generator.generate(
            body.user_photo,
            body.haircut_style,
            body.haircut_description,
        )
    except ValidationError as e:
        return _error(400, e.message)
    except ContentBlockedError as e:
        return _error(422, e.message)
    except UpstreamUnavailableError as e:
        return _error(503, e.message)
    except AIServiceError as e:
        logger.error(f"Haircut generation failed: {e.message}")
        return _error(500, e.message)

    if user is not None:
        try:
            await ledger.record_generation(user.id)
        except Exception as e:
            logger.warning(f"Failed to record generation for user {user.id}: {e}")

    return {"success": True, "imageData": image_data}
