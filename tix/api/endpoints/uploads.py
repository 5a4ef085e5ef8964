import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Request, UploadFile

from tix.api import deps
from tix.core.errors import Forbidden
from tix.core.settings import get_settings
from tix.core.storage import AssetStore, validate_image
from tix.middleware.rate_limiting import UPLOAD_LIMIT, limiter
from tix.models.user import User
from tix.schemas.upload import DeletedImage, UploadedImage

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


async def _store(upload: UploadFile, store: AssetStore, folder: str) -> UploadedImage:
    content = await upload.read()
    content_type = validate_image(content, upload.content_type)
    asset = await store.upload(content, content_type, folder)
    return UploadedImage(url=asset.url, public_id=asset.public_id)


@router.post("/upload-image", response_model=UploadedImage, summary="Upload Event Image")  # type: ignore[misc]
@limiter.limit(UPLOAD_LIMIT)
async def upload_event_image(
    request: Request,
    image: UploadFile = File(...),
    current_user: User = Depends(deps.get_current_user),
    store: AssetStore = Depends(deps.get_asset_store),
) -> Any:
    """
    **Upload an Event Image**

    Multipart field `image`; JPEG, PNG or GIF up to 5 MB. Returns the public
    `url` and the `publicId` used to delete it later.

    **Errors:**
    - `400`: Wrong file type, empty or too large
    - `502`: The image host rejected the upload; retry just this step
    """
    result = await _store(image, store, settings.storage.EVENT_IMAGE_PREFIX)
    logger.info("User %s uploaded event image %s", current_user.id, result.public_id)
    return result


@router.post(
    "/upload-profile-image",
    response_model=UploadedImage,
    summary="Upload Profile Image",
)  # type: ignore[misc]
@limiter.limit(UPLOAD_LIMIT)
async def upload_profile_image(
    request: Request,
    profileImage: UploadFile = File(...),
    store: AssetStore = Depends(deps.get_asset_store),
) -> Any:
    """Open to anonymous callers so the sign-up form can attach a photo."""
    return await _store(profileImage, store, settings.storage.PROFILE_IMAGE_PREFIX)


@router.delete(
    "/delete-image/{public_id:path}",
    response_model=DeletedImage,
    summary="Delete Image",
)  # type: ignore[misc]
async def delete_image(
    public_id: str,
    current_user: User = Depends(deps.get_current_user),
    store: AssetStore = Depends(deps.get_asset_store),
) -> Any:
    folders = (settings.storage.EVENT_IMAGE_PREFIX, settings.storage.PROFILE_IMAGE_PREFIX)
    if not any(public_id.startswith(f"{folder}/") for folder in folders):
        raise Forbidden("Only uploaded event and profile images can be deleted")

    await store.delete(public_id)
    logger.info("User %s deleted image %s", current_user.id, public_id)
    return DeletedImage(message="Image deleted successfully", public_id=public_id)
