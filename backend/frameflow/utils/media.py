import base64, binascii, re
from typing import Tuple

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^,;]+)*),(?P<payload>.*)$", re.DOTALL)


def to_data_url(raw: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


def parse_data_url(url: str) -> Tuple[bytes, str]:
    """
    Decode "data:<mime>;base64,<payload>" into (bytes, mime).
    Raises ValueError for anything else.
    """
    m = _DATA_URL_RE.match(url or "")
    if not m:
        raise ValueError("Not a data URL")
    mime = m.group("mime") or "application/octet-stream"
    payload = m.group("payload")
    if ";base64" not in (m.group("params") or ""):
        return payload.encode("utf-8"), mime
    try:
        return base64.b64decode(payload, validate=True), mime
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 data URL: {e}")


def data_url_bytes(url: str) -> bytes:
    return parse_data_url(url)[0]
