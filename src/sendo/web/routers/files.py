from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import Field

from sendo.core.modules.blob.utils import content_disposition
from sendo.core.modules.session.models import FileView, WireModel
from sendo.logging import bind_session
from sendo.web.deps import AppDep, OriginDep, check_upload_length, upload_body_limit
from sendo.web.multipart import MultipartFileReader
from sendo.web.openapi import ErrorResponse

router = APIRouter(tags=["files"])

# The body is parsed incrementally, so the multipart schema is declared by hand
UPLOAD_REQUEST_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "properties": {"file": {"type": "string", "format": "binary"}},
                    "required": ["file"],
                }
            }
        },
    }
}


class UploadResponse(WireModel):
    file: FileView = Field(..., description="Stored file metadata")


@router.post(
    "/upload",
    summary="Upload file",
    description="Upload the session's file as sender. Replaces any previously uploaded file.",
    operation_id="uploadFile",
    dependencies=[Depends(check_upload_length)],
    openapi_extra=UPLOAD_REQUEST_BODY,
    responses={
        200: {"description": "File stored"},
        400: {"model": ErrorResponse, "description": "No file"},
        401: {"model": ErrorResponse, "description": "Sender token does not match"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        410: {"model": ErrorResponse, "description": "Session expired or closed"},
        413: {"model": ErrorResponse, "description": "File too large"},
        415: {"model": ErrorResponse, "description": "File type not allowed"},
    },
)
async def upload_file(
    request: Request,
    app: AppDep,
    session_id: Annotated[str, Query(alias="sessionId")],
    sender_token: Annotated[str | None, Query(alias="senderToken")] = None,
) -> UploadResponse:
    bind_session(session_id)
    reader = MultipartFileReader(request, upload_body_limit(app))
    if not await reader.open():
        stored = await app.upload_file(session_id, sender_token, None, None, None)
    else:
        stored = await app.upload_file(session_id, sender_token, reader.filename, reader.content_type, reader.chunks())
    return UploadResponse(file=stored)


@router.get(
    "/download/{session_id}",
    summary="Download file",
    description=(
        "Download the session's file as receiver. The file is deleted once the transfer completes; "
        "an interrupted transfer leaves it in place for a retry."
    ),
    operation_id="downloadFile",
    response_class=StreamingResponse,
    responses={
        200: {"description": "File content", "content": {"application/octet-stream": {}}},
        401: {"model": ErrorResponse, "description": "Receiver token does not match"},
        404: {"model": ErrorResponse, "description": "Session or file not found"},
    },
)
async def download_file(
    session_id: str,
    app: AppDep,
    receiver_token: Annotated[str | None, Query(alias="receiverToken")] = None,
) -> StreamingResponse:
    bind_session(session_id)
    transfer = await app.open_download(session_id, receiver_token)
    headers = {
        "Content-Disposition": content_disposition(transfer.filename),
        "Content-Length": str(transfer.size),
        "Accept-Ranges": "none",
    }
    return StreamingResponse(transfer.stream(), media_type=transfer.content_type, headers=headers)


@router.get(
    "/qr/{session_id}.png",
    summary="QR image",
    description="PNG QR code encoding the sender join link.",
    operation_id="getQrImage",
    response_class=Response,
    responses={
        200: {"description": "PNG image", "content": {"image/png": {}}},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_qr_image(session_id: str, app: AppDep, origin: OriginDep) -> Response:
    bind_session(session_id)
    png = await app.get_qr_png(session_id, origin)
    # Receiver pages may be served from another origin
    return Response(
        content=png,
        media_type="image/png",
        headers={"Cross-Origin-Resource-Policy": "cross-origin"},
    )
