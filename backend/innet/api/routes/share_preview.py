"""
Server-side check of a scanned code: locate the token, resolve short links,
decode and sanitize the payload
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from innet.api.routes.share_links import error_response, get_share_link_service
from innet.components.share_codec import parse_share_token
from innet.components.token_locator import locate_token
from innet.core.config import get_settings
from innet.core.errors import FormatError
from innet.core.logging_config import LoggingConfig
from innet.services.share_link_service import ShareLinkService

logger = LoggingConfig.get_logger(__name__)

router = APIRouter(prefix="/api/share", tags=["share"])


class SharePreviewRequest(BaseModel):
    """Raw scanner output or a pasted link"""
    input: Optional[str] = Field(None, description="Scanned text, token or share URL")


class SharePreviewResponse(BaseModel):
    ok: bool = True
    token: str
    payload: Dict[str, Any]


@router.post("/preview", response_model=SharePreviewResponse)
async def preview_share(
    request: SharePreviewRequest,
    service: ShareLinkService = Depends(get_share_link_service)
):
    """
    Validate a scanned code and return the sanitized payload

    Decode failures return 422 with the error kind (format/decode/version) so
    the client can tell the user whether to rescan or ask for a new code.
    """
    location = locate_token(request.input, resolve_alias=service.resolve_token)
    if location.error is not None:
        return error_response(location.error)

    token = location.token
    if token is None:
        error = FormatError()
        return JSONResponse(
            status_code=422,
            content={"ok": False, "kind": error.kind, "message": error.message},
        )

    result = parse_share_token(token, fact_text_limit=get_settings().fact_text_limit)
    if not result.ok:
        return JSONResponse(
            status_code=422,
            content={"ok": False, "kind": result.kind, "message": result.error.message},
        )

    return SharePreviewResponse(token=token, payload=result.payload.to_wire())
