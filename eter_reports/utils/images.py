"""Décodage des signatures data-URI / Data-URI signature decoding."""

import base64
import binascii
import re

SIGNATURE_PREFIX_RE = re.compile(r"^data:image/(png|jpeg|jpg);base64,")


def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Retourne (extension, octets) / Return (extension, raw bytes).

    Lève ValueError si le préfixe ou le base64 est invalide.
    Raises ValueError on a bad prefix or undecodable base64 payload.
    """
    match = SIGNATURE_PREFIX_RE.match(data_uri or "")
    if not match:
        raise ValueError("Signature must be a base64 PNG or JPEG data URI")
    payload = data_uri[match.end():]
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Signature data could not be decoded") from exc
    if not raw:
        raise ValueError("Signature data is empty")
    ext = "jpg" if match.group(1) in ("jpeg", "jpg") else "png"
    return ext, raw
