"""
Decoder for ``multipart/form-data`` upload bodies.

The body may be text or raw bytes; values come back in the same type. Parts
are located with a literal index search for the delimiter, so boundaries
carrying regex-special characters (some mobile clients send ``+``) are
handled like any other.

Example content types::

    multipart/form-data; boundary="----7dd322351017c"; ...
    multipart/form-data; boundary=----7dd322351017c; ...
"""

import re
from typing import Dict, List, Optional, Union

from file_gateway.errors import MalformedContentType

Body = Union[bytes, bytearray, memoryview, str]

BOUNDARY_PATTERN = re.compile(r'boundary=(?:"([^"]*)"|([^;]+))', re.IGNORECASE)
NAME_PATTERN = re.compile(r'^.*name="([^"]*)"$')


def parse_boundary(content_type: Optional[str]) -> str:
    """Return the boundary parameter of a multipart content type."""
    match = BOUNDARY_PATTERN.search(content_type or "")
    if not match:
        raise MalformedContentType("Bad content-type header, no multipart boundary")
    quoted, unquoted = match.groups()
    boundary = quoted if quoted is not None else unquoted.rstrip()
    if not boundary:
        raise MalformedContentType("Bad content-type header, empty multipart boundary")
    return boundary


def _split_on(data, delimiter) -> List:
    segments = []
    position = 0
    while True:
        index = data.find(delimiter, position)
        if index < 0:
            segments.append(data[position:])
            return segments
        segments.append(data[position:index])
        position = index + len(delimiter)


def _field_name(header_line) -> Optional[str]:
    if isinstance(header_line, bytes):
        header_line = header_line.decode("utf-8", errors="replace")
    match = NAME_PATTERN.match(header_line)
    return match.group(1) if match else None


def decode_multipart(body: Body, content_type: Optional[str]) -> Dict[str, Union[bytes, str]]:
    """
    Decode a multipart body into a mapping of field name to content.

    The field name of a part is the last ``name="..."`` style attribute found
    at the end of one of its header lines, so a file part is keyed by its
    ``filename``. A part without such a header is stored under the name of
    the part before it; leading nameless parts are dropped.

    :param body: the request body, as text or raw bytes.
    :param content_type: the request ``Content-Type`` header carrying the boundary.
    :return: field name -> content, in the order the parts appear.
    :raises MalformedContentType: if the header has no boundary parameter.
    """
    boundary = parse_boundary(content_type)

    if isinstance(body, str):
        data = body
        crlf = "\r\n"
        # \r\n is part of the delimiter
        delimiter = "\r\n--" + boundary
    else:
        data = bytes(body)
        crlf = b"\r\n"
        # header values are latin-1 decoded, so this restores the wire bytes
        delimiter = ("\r\n--" + boundary).encode("latin-1", errors="replace")
    blank_line = crlf + crlf

    # A leading delimiter has no \r\n in front of it on the wire
    data = crlf + data

    parts_by_name = {}
    field_name = None
    # First segment is the preamble, last one the closing '--'
    for part in _split_on(data, delimiter)[1:-1]:
        header_end = part.find(blank_line)
        if header_end < 0:
            headers, content = part, part[:0]
        else:
            headers, content = part[:header_end], part[header_end + len(blank_line):]

        # first line is the rest of the boundary line
        for header_line in headers.split(crlf)[1:]:
            name = _field_name(header_line)
            if name:
                field_name = name

        if field_name is not None:
            parts_by_name[field_name] = content

    return parts_by_name
