import io
from urllib.parse import quote

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def tip_link(base_url: str, handle: str) -> str:
    """Deep link that pre-selects ``handle`` as the tip recipient."""
    return f"{base_url.rstrip('/')}/tips?toHandle={quote(handle, safe='')}"


def render_png(data: str, box_size: int = 12, border: int = 1) -> bytes:
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
