import base64
import logging
import re
import uuid

from fastapi import APIRouter, Depends, HTTPException

from ..auth import SupabaseAuth
from ..config import Settings
from ..deps import get_app_settings, get_auth, get_gemini, get_storage, require_user
from ..errors import StorageError, UpstreamError
from ..gemini import IMAGE_MODEL, GeminiClient
from ..models import GenerateAssetRequest
from ..storage import ObjectStorage


logger = logging.getLogger(__name__)

router = APIRouter()

_IMAGE_DATA_URL = re.compile(r"^data:image/\w+;base64,")


@router.post("/generate-asset")
async def generate_asset(
    req: GenerateAssetRequest,
    user_id: str = Depends(require_user),
    gemini: GeminiClient = Depends(get_gemini),
    auth: SupabaseAuth = Depends(get_auth),
    storage: ObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
):
    if not req.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    try:
        image_url = await gemini.generate_image(req.prompt, req.base_image)
    except UpstreamError as e:
        logger.error("Asset generation error: %s", e)
        raise HTTPException(status_code=500, detail="Asset generation failed. Please try again.")

    await auth.track_usage(user_id, "generate-asset", IMAGE_MODEL)

    if not req.project_id:
        return {"imageUrl": image_url}

    key = f"{user_id}/{req.project_id}/{uuid.uuid4()}.png"
    png = base64.b64decode(_IMAGE_DATA_URL.sub("", image_url))
    bucket = settings.generated_assets_bucket
    try:
        await storage.upload(bucket, key, png, "image/png")
    except StorageError as e:
        logger.error("Upload error: %s", e)
        return {"imageUrl": image_url}

    await auth.insert_row(
        "generated_assets",
        {
            "project_id": req.project_id,
            "transformation_id": req.transformation_id,
            "prompt": req.prompt,
            "storage_path": key,
            "model_used": IMAGE_MODEL,
        },
    )
    return {"imageUrl": storage.public_url(bucket, key), "storagePath": key}
