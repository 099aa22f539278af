"""
Reference image preprocessing (resize + re-encode before upload to Gemini).
"""
import base64
import io
import re

from PIL import Image

DATA_URL = re.compile(r'^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$', re.DOTALL)


def resize_image(data, max_width=1024, quality=85):
    """
    Shrink to at most `max_width` px wide (aspect kept) and re-encode as JPEG.

    Args:
        data: Raw image bytes
        max_width: Upper bound for the output width
        quality: JPEG quality 1-95

    Returns:
        (base64 str, "image/jpeg")
    """
    img = Image.open(io.BytesIO(data))
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    if img.width > max_width:
        height = round(img.height * max_width / img.width)
        img = img.resize((max_width, height), Image.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return base64.b64encode(buf.getvalue()).decode("ascii"), "image/jpeg"


def decode_data_url(value):
    """
    Accept either a data URL or a bare base64 string.

    Returns:
        (raw bytes, mime type or None)
    """
    match = DATA_URL.match(value.strip())
    if match:
        return base64.b64decode(match.group("data")), match.group("mime")
    return base64.b64decode(value), None
