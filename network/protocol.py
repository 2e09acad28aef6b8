import json

from utils.error_codes import ChatError, ErrorCodes


def encode_frame(event: str, data=None) -> str:
    frame = {"type": event}
    if data is not None:
        frame["data"] = data
    return json.dumps(frame, separators=(",", ":"))


def decode_frame(raw):
    """
    Parses a text frame into (event, data). Binary frames, invalid JSON and
    envelopes without a string `type` raise ChatError(ERR_PROTOCOL).
    """
    if not isinstance(raw, str):
        raise ChatError(ErrorCodes.ERR_PROTOCOL, "Binary frames are not supported")
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        raise ChatError(ErrorCodes.ERR_PROTOCOL, "Frame is not valid JSON")
    if not isinstance(frame, dict):
        raise ChatError(ErrorCodes.ERR_PROTOCOL, "Frame must be a JSON object")
    event = frame.get("type")
    if not isinstance(event, str) or not event:
        raise ChatError(ErrorCodes.ERR_PROTOCOL, "Frame is missing its type")
    return event, frame.get("data")
