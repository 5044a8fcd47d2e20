"""Single-image generation route."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.ratelimit import limit_generation
from backend.sessions import get_studio, http_error
from seoimg.errors import SeoImgError
from seoimg.schemas.models import TemplateType

logger = logging.getLogger(__name__)
router = APIRouter()


class GenerateRequest(BaseModel):
    template_type: TemplateType
    fields: dict[str, str] = Field(default_factory=dict)


class GenerateResponse(BaseModel):
    image: str  # base64 PNG
    credits: int


@router.post("/generate", response_model=GenerateResponse)
async def generate(request: GenerateRequest, session: dict = Depends(limit_generation)):
    studio = get_studio(session["account_id"])
    try:
        image = await studio.generate_single(request.template_type, request.fields)
    except SeoImgError as e:
        raise http_error(e)
    return GenerateResponse(image=image, credits=studio.balance)
