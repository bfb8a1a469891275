from typing import Annotated, cast

from fastapi import Depends, Request

from sendo.app import App
from sendo.errors import FileTooLargeError
from sendo.web.multipart import MULTIPART_OVERHEAD


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_origin(request: Request) -> str:
    """Public origin of the request, honoring reverse proxy headers."""
    proto = request.headers.get("x-forwarded-proto", "").split(",")[0].strip() or request.url.scheme
    host = request.headers.get("x-forwarded-host", "").split(",")[0].strip() or request.headers.get("host")
    if not host:
        return str(request.base_url).rstrip("/")
    return f"{proto}://{host}"


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
OriginDep = Annotated[str, Depends(get_origin)]


async def check_upload_length(request: Request, app: AppDep) -> None:
    """Reject an upload whose declared length is over the limit before reading its body."""
    content_length = request.headers.get("content-length")
    if content_length is None or not content_length.isdigit():
        return
    if int(content_length) > upload_body_limit(app):
        raise FileTooLargeError(f"File exceeds {app.core.config.max_file_mb} MB limit")


def upload_body_limit(app: App) -> int:
    return app.core.config.max_file_bytes + MULTIPART_OVERHEAD
