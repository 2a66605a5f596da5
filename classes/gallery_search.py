# classes/gallery_search.py

from typing import Iterable, List, Optional

from classes.models import Mineral

ALL = "all"


def _is_wildcard(value: Optional[str]) -> bool:
    return value is None or value == "" or value == ALL


def filter_minerals(
    minerals: Iterable[Mineral],
    query: Optional[str] = None,
    rarity: Optional[str] = None,
    mineral_type: Optional[str] = None,
) -> List[Mineral]:
    """
    Case-insensitive substring match of `query` on name or description, plus
    exact rarity and type filters. None, "" and "all" mean "no filter".
    Collection order is preserved.
    """
    needle = (query or "").strip().lower()
    out = []
    for m in minerals or []:
        if needle and needle not in (m.name or "").lower() and needle not in (m.description or "").lower():
            continue
        if not _is_wildcard(rarity) and m.rarity.value != rarity:
            continue
        if not _is_wildcard(mineral_type) and m.type != mineral_type:
            continue
        out.append(m)
    return out


def mineral_types(minerals: Iterable[Mineral]) -> List[str]:
    """Sorted, de-duplicated specimen types (empty types left out)."""
    return sorted({m.type for m in minerals or [] if m.type})
