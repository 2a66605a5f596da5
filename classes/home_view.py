# classes/home_view.py
"""
Read-only projections of the gallery for viewers.
"""

import re
from typing import List, Optional, Tuple

from classes.layout_model import renderable_components
from classes.models import AppData

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def home_view(doc: AppData) -> List[dict]:
    """
    The homepage as rendered: every non-empty, non-reserved component with its
    specimens resolved in mineralIds order. A hero shows only its first
    specimen.
    """
    out = []
    for component, resolved in renderable_components(doc.home_page_layout, doc.minerals):
        if component.type == "hero":
            resolved = resolved[:1]
        item = component.to_json_dict()
        if component.type == "carousel":
            item["speed"] = component.effective_speed
        item["minerals"] = [m.to_json_dict() for m in resolved]
        out.append(item)
    return out


def split_data_url(url: str) -> Optional[Tuple[str, str]]:
    match = _DATA_URL_RE.match(url or "")
    if not match:
        return None
    return match.group("mime"), match.group("data")


def accent_source_image(doc: AppData) -> Optional[str]:
    """
    Primary image of the first specimen of the first component, when that
    component is a hero or a carousel. Only inline (data:) images qualify.
    """
    if not doc.home_page_layout:
        return None
    first = doc.home_page_layout[0]
    if first.type not in ("hero", "carousel") or not first.mineral_ids:
        return None
    mineral = next((m for m in doc.minerals if m.id == first.mineral_ids[0]), None)
    if mineral is None or not mineral.image_urls:
        return None
    url = mineral.image_urls[0]
    return url if split_data_url(url) else None


def hex_to_rgb(hex_color: Optional[str]) -> Optional[str]:
    """'#A7B2C4' -> '167, 178, 196'"""
    match = _HEX_RE.match(hex_color or "")
    if not match:
        return None
    return ", ".join(str(int(part, 16)) for part in match.groups())
