from datetime import datetime
from typing import Annotated, Literal
from urllib.parse import urlencode

from fastapi import APIRouter, Query
from fastapi.responses import RedirectResponse
from pydantic import Field

from sendo.core.modules.session.models import ReceiverSession, Role, SenderSession, SessionStatusView, WireModel
from sendo.logging import bind_session
from sendo.web.deps import AppDep, OriginDep
from sendo.web.openapi import ErrorResponse

router = APIRouter(tags=["sessions"])
join_router = APIRouter(tags=["sessions"])


class CreateSessionRequest(WireModel):
    """Request to open a session as receiver."""

    role: Literal["receiver"] = Field(..., description="Only receivers open sessions")


class ConnectRequest(WireModel):
    """Sender join by short code (preferred) or session ID."""

    code: str | None = Field(None, description="4-character session code", max_length=16)
    session_id: str | None = Field(None, description="Session ID, used when the code does not resolve")

    model_config = {"json_schema_extra": {"examples": [{"code": "K7PX"}]}}


class JoinRequest(WireModel):
    """Sender join with the token from the QR link."""

    session_id: str = Field(..., description="Session ID")
    token: str = Field(..., description="Sender token embedded in the QR link")


class HeartbeatRequest(WireModel):
    session_id: str = Field(..., description="Session ID")
    role: Role = Field(..., description="Which party is alive")


class HeartbeatResponse(WireModel):
    expires_at: datetime | None = Field(..., description="New expiry deadline, null without TTL")


class DisconnectRequest(WireModel):
    session_id: str = Field(..., description="Session ID")
    by: Role = Field(Role.SENDER, description="Which party is leaving")


class AckResponse(WireModel):
    ok: bool = True


@router.post(
    "/session",
    summary="Create receiver session",
    description="Open a new session as receiver. Returns the short code, the receiver token and the join URL for the QR.",
    operation_id="createSession",
    responses={
        200: {"description": "Session created"},
        400: {"model": ErrorResponse, "description": "Role must be 'receiver'"},
    },
)
async def create_session(_: CreateSessionRequest, app: AppDep, origin: OriginDep) -> ReceiverSession:
    return await app.create_receiver_session(origin)


@router.get(
    "/session/new",
    summary="Create receiver session (GET)",
    description="Same as POST /session, for browsers that can only issue simple GET requests.",
    operation_id="createSessionGet",
)
async def create_session_get(app: AppDep, origin: OriginDep) -> ReceiverSession:
    return await app.create_receiver_session(origin)


@router.post(
    "/connect",
    summary="Connect sender",
    description="Join a session as sender using the short code or session ID. Reconnecting refreshes liveness.",
    operation_id="connectSender",
    responses={
        200: {"description": "Connected; returns the sender token"},
        400: {"model": ErrorResponse, "description": "Neither code nor sessionId given"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        410: {"model": ErrorResponse, "description": "Session expired or closed"},
    },
)
async def connect_sender(req: ConnectRequest, app: AppDep) -> SenderSession:
    bind_session(req.session_id)
    return await app.connect_sender(req.code, req.session_id)


@router.post(
    "/join",
    summary="Join via QR token",
    description="Join a session as sender with the token embedded in the QR link.",
    operation_id="joinSession",
    responses={
        200: {"description": "Connected; returns the sender token"},
        401: {"model": ErrorResponse, "description": "Token does not match"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        410: {"model": ErrorResponse, "description": "Session expired or closed"},
    },
)
async def join_session(req: JoinRequest, app: AppDep) -> SenderSession:
    bind_session(req.session_id)
    return await app.join_via_qr(req.session_id, req.token)


@router.get(
    "/session/{session_id}/status",
    summary="Get session status",
    description="Polled by both parties. Reports closure even before the sweeper has run.",
    operation_id="getSessionStatus",
    responses={
        200: {"description": "Current status"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_session_status(session_id: str, app: AppDep) -> SessionStatusView:
    bind_session(session_id)
    return await app.get_session_status(session_id)


@router.post(
    "/heartbeat",
    summary="Heartbeat",
    description="Keep one party alive and roll the TTL forward.",
    operation_id="heartbeat",
    responses={
        200: {"description": "Liveness refreshed"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        410: {"model": ErrorResponse, "description": "Session closed"},
    },
)
async def heartbeat(req: HeartbeatRequest, app: AppDep) -> HeartbeatResponse:
    bind_session(req.session_id)
    expires_at = await app.heartbeat(req.session_id, req.role)
    return HeartbeatResponse(expires_at=expires_at)


@router.post(
    "/disconnect",
    summary="Disconnect",
    description="Close the session on behalf of one party. Any held file is deleted.",
    operation_id="disconnect",
    responses={
        200: {"description": "Session closed"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def disconnect(req: DisconnectRequest, app: AppDep) -> AckResponse:
    bind_session(req.session_id)
    await app.disconnect(req.session_id, req.by)
    return AckResponse()


@join_router.get(
    "/join",
    summary="Join via QR link",
    description=(
        "Target of the QR code. Joins as sender and redirects to the sender page. "
        "Invalid links fail with an error instead of redirecting."
    ),
    operation_id="joinViaQr",
    status_code=303,
    response_class=RedirectResponse,
    responses={
        303: {"description": "Joined; redirect to the sender page"},
        401: {"model": ErrorResponse, "description": "Token does not match"},
        404: {"model": ErrorResponse, "description": "Session not found"},
        410: {"model": ErrorResponse, "description": "Session expired or closed"},
    },
)
async def join_via_qr(
    app: AppDep,
    session_id: Annotated[str, Query(alias="sessionId")],
    token: Annotated[str, Query(alias="t")],
) -> RedirectResponse:
    bind_session(session_id)
    sender = await app.join_via_qr(session_id, token)
    query = urlencode({"sessionId": sender.session_id, "t": sender.sender_token})
    return RedirectResponse(f"/sender?{query}", status_code=303)
