import base64
import binascii
import mimetypes
import os
import time

from utils.error_codes import ChatError, ErrorCodes

MEDIA_TYPES = {"photo": "image/", "video": "video/"}


def file_to_data_url(path: str, kind: str) -> str:
    """Reads a local file into a base64 data URL of the given media kind."""
    mime, _ = mimetypes.guess_type(path)
    expected = MEDIA_TYPES.get(kind)
    if expected is None:
        raise ChatError(ErrorCodes.ERR_SESSION_INVALID, f"Unknown media kind {kind!r}")
    if not mime or not mime.startswith(expected):
        raise ChatError(ErrorCodes.ERR_SESSION_INVALID, f"{path} is not a {kind} file")
    with open(path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def save_data_url(data_url: str, directory: str, kind: str) -> str:
    """Decodes a base64 data URL into `directory` and returns the file path."""
    try:
        header, encoded = data_url.split(",", 1)
        mime = header[len("data:"):].split(";", 1)[0]
        raw = base64.b64decode(encoded, validate=True)
    except (ValueError, binascii.Error):
        raise ChatError(ErrorCodes.ERR_PROTOCOL, "Malformed media payload")

    os.makedirs(directory, exist_ok=True)
    ext = mimetypes.guess_extension(mime) or ".bin"
    path = os.path.join(directory, f"{kind}-{int(time.time() * 1000)}{ext}")
    with open(path, "wb") as f:
        f.write(raw)
    return path
