"""Incremental multipart parsing for uploads.

Starlette's form parsing spools the whole body before the endpoint runs. The
reader here pulls the request body only as fast as the file part is consumed,
so size limits apply to the bytes actually received.
"""

from collections.abc import AsyncIterator

from fastapi import Request
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from sendo.errors import FileTooLargeError, ValidationError

# Room for boundaries, part headers and small form fields around the file
MULTIPART_OVERHEAD = 64 * 1024


def _decode(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value.decode("latin-1")


class MultipartFileReader:
    """Streams one file field out of a multipart request body.

    Usage: `await reader.open()` reads just far enough to learn the filename
    and content type; `reader.chunks()` then yields the file content while
    pulling the rest of the body on demand.
    """

    def __init__(self, request: Request, max_body_bytes: int, field_name: str = "file") -> None:
        self._body = request.stream().__aiter__()
        self._max_body_bytes = max_body_bytes
        self._field_name = field_name
        self._received = 0
        self._exhausted = False

        self.filename: str | None = None
        self.content_type: str | None = None

        self._headers: dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._in_file = False
        self._file_done = False
        self._pending: list[bytes] = []

        content_type, options = parse_options_header(request.headers.get("content-type"))
        boundary = options.get(b"boundary")
        self._parser: MultipartParser | None = None
        if content_type == b"multipart/form-data" and boundary:
            self._parser = MultipartParser(
                boundary,
                {
                    "on_part_begin": self._on_part_begin,
                    "on_header_field": self._on_header_field,
                    "on_header_value": self._on_header_value,
                    "on_header_end": self._on_header_end,
                    "on_headers_finished": self._on_headers_finished,
                    "on_part_data": self._on_part_data,
                    "on_part_end": self._on_part_end,
                },
            )

    async def open(self) -> bool:
        """Read up to the file part's headers.

        Returns:
            True if the body carries the file field

        Raises:
            FileTooLargeError: If the body grows past the limit before the file starts
            ValidationError: If the body is not valid multipart
        """
        if self._parser is None:
            return False
        while self.filename is None and not self._exhausted:
            await self._pull()
        return self.filename is not None

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the file content, reading the body only as needed.

        Raises:
            FileTooLargeError: If the body exceeds the limit
            ValidationError: If the body ends before the file part does
        """
        while True:
            while self._pending:
                yield self._pending.pop(0)
            if self._file_done:
                return
            if self._exhausted:
                raise ValidationError("Upload incomplete")
            await self._pull()

    async def _pull(self) -> None:
        chunk = await anext(self._body, None)
        if chunk is None:
            self._exhausted = True
            return
        self._received += len(chunk)
        if self._received > self._max_body_bytes:
            raise FileTooLargeError("Upload exceeds size limit")
        if chunk and self._parser is not None:
            try:
                self._parser.write(chunk)
            except MultipartParseError as e:
                raise ValidationError("Malformed multipart body") from e

    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        if self.filename is not None:
            return
        _, options = parse_options_header(self._headers.get(b"content-disposition"))
        name = options.get(b"name")
        filename = options.get(b"filename")
        if name is None or _decode(name) != self._field_name or filename is None:
            return
        self.filename = _decode(filename)
        content_type = self._headers.get(b"content-type")
        self.content_type = content_type.decode("latin-1") if content_type else None
        self._in_file = True

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._in_file:
            self._pending.append(bytes(data[start:end]))

    def _on_part_end(self) -> None:
        if self._in_file:
            self._in_file = False
            self._file_done = True
