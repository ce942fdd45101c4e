"""
Short share links: mint a slug for a token, resolve a slug back to its token
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from innet.components.share_links import build_share_alias_url
from innet.core.database import get_db
from innet.core.errors import NotFound, ServiceUnavailable, ShareError, ValidationError
from innet.core.logging_config import LoggingConfig
from innet.services.share_link_service import ShareLinkService
from innet.utils.datetime_utils import to_iso

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/share-link", tags=["share-links"])

_STATUS_BY_ERROR = {
    ValidationError: 400,
    NotFound: 404,
    ServiceUnavailable: 503,
}


class ShareLinkCreateRequest(BaseModel):
    """Request to mint a short link"""
    token: Optional[str] = Field(None, description="Share token (innet-share:...)")


class ShareLinkCreateResponse(BaseModel):
    """Minted (or reused) short link"""
    ok: bool = True
    slug: str
    expiresAt: str
    url: str


class ShareLinkResolveResponse(BaseModel):
    """Token behind an active slug"""
    ok: bool = True
    token: str
    expiresAt: Optional[str]


def get_share_link_service(db: Session = Depends(get_db)) -> ShareLinkService:
    return ShareLinkService.from_settings(db)


def error_response(error: ShareError) -> JSONResponse:
    """``{ok: false, message}`` body with the status matching the error kind"""
    status_code = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(error, cls)),
        500,
    )
    return JSONResponse(status_code=status_code, content={"ok": False, "message": error.message})


@router.post("", response_model=ShareLinkCreateResponse)
async def create_share_link(
    request: ShareLinkCreateRequest,
    service: ShareLinkService = Depends(get_share_link_service)
):
    """Issue a short slug for a share token (reuses an active one)"""
    try:
        record = service.mint(request.token or "")
    except ShareError as e:
        return error_response(e)

    return ShareLinkCreateResponse(
        slug=record.slug,
        expiresAt=to_iso(record.expires_at),
        url=build_share_alias_url(record.slug),
    )


@router.get("", response_model=ShareLinkResolveResponse)
async def resolve_share_link(
    slug: Optional[str] = None,
    service: ShareLinkService = Depends(get_share_link_service)
):
    """Resolve a slug; unknown and expired slugs both return 404"""
    if not slug or not slug.strip():
        return JSONResponse(status_code=400, content={"ok": False, "message": "Short link code is missing"})

    try:
        record = service.resolve(slug)
    except ShareError as e:
        return error_response(e)

    return ShareLinkResolveResponse(token=record.token, expiresAt=to_iso(record.expires_at))
