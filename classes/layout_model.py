# classes/layout_model.py

import logging
from typing import Dict, Iterable, List, Tuple

from classes.models import (
    RESERVED_COMPONENT_TYPES,
    HomeComponent,
    Mineral,
)

logger = logging.getLogger("gallery_backend")


def _index_minerals(minerals: Iterable[Mineral]) -> Dict[str, Mineral]:
    return {m.id: m for m in (minerals or [])}


def resolve(component: HomeComponent, minerals) -> List[Mineral]:
    """
    Map component.mineral_ids through the store, silently dropping ids with
    no match. `minerals` may be a list of Mineral or an id -> Mineral dict.
    """
    by_id = minerals if isinstance(minerals, dict) else _index_minerals(minerals)
    return [by_id[mid] for mid in component.mineral_ids if mid in by_id]


def is_renderable(component: HomeComponent, minerals) -> bool:
    return len(resolve(component, minerals)) > 0


def prune_for_deleted_mineral(layout: List[HomeComponent], deleted_id: str) -> List[HomeComponent]:
    """
    Remove deleted_id from every component, then drop the components left
    without ids. Surviving components keep their relative order.
    """
    out: List[HomeComponent] = []
    for component in layout or []:
        remaining = [mid for mid in component.mineral_ids if mid != deleted_id]
        if not remaining:
            continue
        out.append(component.model_copy(update={"mineral_ids": remaining}, deep=True))
    return out


def enforce_references(layout: List[HomeComponent], allowed_ids: Iterable[str]) -> List[HomeComponent]:
    """
    Reference-validation pass run at every layout install boundary.

    Ids outside allowed_ids are dropped from their component; a component left
    empty is dropped entirely. Order is preserved and the input is untouched.
    """
    allowed = set(allowed_ids or [])
    out: List[HomeComponent] = []
    for component in layout or []:
        kept = [mid for mid in component.mineral_ids if mid in allowed]
        dropped = len(component.mineral_ids) - len(kept)
        if dropped:
            logger.warning(
                "Layout component %s referenced %d unknown specimen id(s); pruned.",
                component.id, dropped,
            )
        if not kept:
            continue
        out.append(component.model_copy(update={"mineral_ids": kept}, deep=True))

    _warn_on_loose_heroes(out)
    return out


def _warn_on_loose_heroes(layout: List[HomeComponent]) -> None:
    # a hero only presents its first specimen; the rest are kept but ignored
    for component in layout:
        if component.type == "hero" and len(component.mineral_ids) > 1:
            logger.warning(
                "Hero component %s carries %d specimens; only %s will be shown.",
                component.id, len(component.mineral_ids), component.mineral_ids[0],
            )


def referenced_ids(layout: List[HomeComponent]) -> List[str]:
    seen, out = set(), []
    for component in layout or []:
        for mid in component.mineral_ids:
            if mid not in seen:
                seen.add(mid)
                out.append(mid)
    return out


def renderable_components(layout: List[HomeComponent], minerals) -> List[Tuple[HomeComponent, List[Mineral]]]:
    """
    Presentation projection: (component, resolved specimens) pairs, skipping
    empty components and reserved types with no rendering.
    """
    by_id = minerals if isinstance(minerals, dict) else _index_minerals(minerals)
    out = []
    for component in layout or []:
        if component.type in RESERVED_COMPONENT_TYPES:
            continue
        resolved = resolve(component, by_id)
        if not resolved:
            continue
        out.append((component, resolved))
    return out
