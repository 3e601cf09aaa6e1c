import html
from typing import Optional

import bleach


def clean_text(value: Optional[str]) -> str:
    """Strip HTML markup and NUL bytes from user-supplied free text (names, tip messages).

    Entities are decoded first so markup hidden as ``&lt;script&gt;`` is
    stripped along with literal tags. The result is bleach's escaped output,
    so stored text never contains a raw ``<``.
    """
    if value is None:
        return ""
    val = html.unescape(value.replace("\x00", ""))
    val = bleach.clean(val, tags=set(), strip=True)
    return val.strip()
