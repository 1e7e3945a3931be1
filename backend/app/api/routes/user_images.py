"""
Generated Image Routes

Saved try-on gallery. Each user keeps only their most recent images.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.api.dependencies import CurrentUserDep, GeneratedImageRepoDep
from app.config.settings import get_settings
from app.domain.models import GeneratedImage, SaveImageRequest


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/save-generated-image")
async def save_generated_image(
    body: SaveImageRequest,
    user: CurrentUserDep,
    images: GeneratedImageRepoDep,
):
    """Save a generated image, then prune the gallery to its size cap."""
    saved = await images.create(GeneratedImage(
        user_id=user.id,
        image_url=body.image_url,
        original_image_url=body.original_image_url,
        haircut_style=body.haircut_style,
        gender=body.gender,
    ))

    await images.prune(user.id, keep=get_settings().max_saved_images)

    return {"success": True, "image": saved, "message": "Image saved successfully"}


@router.get("/user-images")
async def list_user_images(user: CurrentUserDep, images: GeneratedImageRepoDep):
    """List the user's saved images, newest first."""
    items = await images.list_for_user(user.id)
    return {"images": items, "count": len(items)}


@router.delete("/user-images/{image_id}")
async def delete_user_image(
    image_id: UUID,
    user: CurrentUserDep,
    images: GeneratedImageRepoDep,
):
    """Delete one of the user's saved images."""
    if not await images.delete(user.id, str(image_id)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Image not found",
        )
    return {"success": True}
