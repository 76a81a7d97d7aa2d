"""Helpers for the self-contained data: URIs used to carry media while offline."""

import base64
import binascii
import re
from typing import Tuple
from urllib.parse import unquote_to_bytes

_HEADER_RE = re.compile(r'^data:(?P<mime>[^;,]*)(?P<params>(;[^;,]*)*)$')

EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
    'image/heic': 'heic',
    'audio/webm': 'webm',
    'audio/ogg': 'ogg',
    'audio/mpeg': 'mp3',
    'audio/mp4': 'm4a',
    'audio/wav': 'wav',
}


def is_data_uri(value) -> bool:
    return isinstance(value, str) and value.startswith('data:') and ',' in value


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    """
    Decode a data: URI into (bytes, mime type).

    Base64 bodies are decoded as such, anything else is percent-decoded.
    A missing media type defaults to application/octet-stream.
    """
    if not is_data_uri(data_uri):
        raise ValueError("Not a data: URI")

    header, data = data_uri.split(',', 1)
    match = _HEADER_RE.match(header)
    if not match:
        raise ValueError(f"Malformed data URI header: {header[:64]}")

    mime = match.group('mime') or 'application/octet-stream'
    params = [p for p in match.group('params').split(';') if p]

    if 'base64' in params:
        try:
            return base64.b64decode(''.join(data.split()), validate=True), mime
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 body: {e}")
    return unquote_to_bytes(data), mime


def extension_for(mime: str, default: str = 'bin') -> str:
    return EXTENSIONS.get(mime.lower(), default)
