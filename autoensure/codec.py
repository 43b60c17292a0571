"""Datagram framing for the connectionless RCON variant used by the server."""

from __future__ import annotations

from .models import CommandResponse, RconError, ResponseKind

OOB_MARKER = b"\xff\xff\xff\xff"
PRINT_HEADER_ARTIFACT = "rint"
RESOURCE_NOT_FOUND_MARKER = "Couldn't find resource"
AUTH_ERROR_MARKER = "Invalid password"


class TransportError(RconError):
    """Raised for malformed packets and unexpected socket failures."""


def encode_command(command: str, credential: str) -> bytes:
    """Frame a console command as an out-of-band ``rcon`` datagram."""

    body = "rcon "
    if credential:
        body += f"{credential} "
    body += f"{command}\n"
    return OOB_MARKER + body.encode("utf-8")


def decode_datagram(data: bytes) -> str:
    """Return the text payload of an inbound datagram.

    The first and last characters of the payload are dropped, which turns a
    ``print <text>\\n`` reply into ``rint <text>``. Callers strip that artifact
    with :func:`strip_print_header`.
    """

    if not data.startswith(OOB_MARKER):
        raise TransportError("Received malformed packet")
    text = data[len(OOB_MARKER):].decode("utf-8", errors="replace")
    return text[1:-1]


def strip_print_header(text: str) -> str:
    """Remove exactly the truncated print-header prefix when present."""

    if text.startswith(PRINT_HEADER_ARTIFACT):
        return text[len(PRINT_HEADER_ARTIFACT):]
    return text


def classify(text: str) -> CommandResponse:
    """Classify a decoded response by its known markers."""

    cleaned = strip_print_header(text)
    if RESOURCE_NOT_FOUND_MARKER in cleaned:
        kind = ResponseKind.RESOURCE_NOT_FOUND
    elif AUTH_ERROR_MARKER in cleaned:
        kind = ResponseKind.AUTH_ERROR
    else:
        kind = ResponseKind.INFORMATIONAL
    return CommandResponse(kind=kind, text=cleaned)


__all__ = [
    "OOB_MARKER",
    "TransportError",
    "classify",
    "decode_datagram",
    "encode_command",
    "strip_print_header",
]
