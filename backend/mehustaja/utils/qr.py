"""QR payloads and label rendering.

Payload format is ``<KIND>_<internal id>``: ``CRATE_…``, ``PALLET_…``,
``SHELF_…``.  Scanners send the payload verbatim, so lookups accept
either the payload or the bare id.
"""

import io

import segno

CRATE = "CRATE"
PALLET = "PALLET"
SHELF = "SHELF"

KINDS = (CRATE, PALLET, SHELF)


def make_payload(kind: str, entity_id: str) -> str:
    if kind not in KINDS:
        raise ValueError(f"Unknown QR kind: {kind}")
    return f"{kind}_{entity_id}"


def render_svg(payload: str, scale: int = 4) -> bytes:
    qr = segno.make(payload, error="m")
    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=scale, border=2)
    return buf.getvalue()
