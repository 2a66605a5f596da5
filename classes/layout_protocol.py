# classes/layout_protocol.py
"""
Conversational layout generation: context building and validation of the
generator's reply.

The protocol is stateless. Each call is fully described by the current
layout, the mineral list and the instruction; the outcome is one of
LayoutAccepted, LayoutClarification or LayoutNotFulfilled. Nothing here
touches the store: installing an accepted layout is the caller's job.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from classes.layout_model import referenced_ids
from classes.models import (
    ANIMATION_TYPES,
    COMPONENT_TYPES,
    Animation,
    ClarificationOption,
    HomeComponent,
    LayoutAccepted,
    LayoutClarification,
    LayoutNotFulfilled,
    LayoutOutcome,
    Mineral,
)

logger = logging.getLogger("gallery_backend")


def on_display(minerals: Iterable[Mineral]) -> List[Mineral]:
    return [m for m in minerals or [] if m.on_display]


def allowed_ids_for_generation(current_layout: List[HomeComponent], minerals: Iterable[Mineral]) -> Set[str]:
    """
    Ids a generated layout may reference: every on-display specimen, plus
    specimens the current layout already shows (even if since taken off
    display) as long as they still exist.
    """
    minerals = list(minerals or [])
    existing = {m.id for m in minerals}
    allowed = {m.id for m in on_display(minerals)}
    allowed.update(mid for mid in referenced_ids(current_layout) if mid in existing)
    return allowed


def build_generation_context(current_layout: List[HomeComponent], minerals: Iterable[Mineral]) -> Dict[str, Any]:
    """
    What the generator gets to see: the full current layout and a compact
    view (id, name, type) of the on-display specimens only.
    """
    return {
        "current_layout": [c.to_json_dict() for c in current_layout or []],
        "minerals": [{"id": m.id, "name": m.name, "type": m.type} for m in on_display(minerals)],
    }


def clarification_followup(option) -> str:
    """The instruction re-issued after the curator picks a clarification option."""
    name = option.name if isinstance(option, ClarificationOption) else str(option)
    return f'I meant the one named "{name}".'


# -----------------------
# Reply validation
# -----------------------

def _as_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    return None


def _coerce_animation(raw) -> Optional[Animation]:
    if not isinstance(raw, dict) or raw.get("type") not in ANIMATION_TYPES:
        return None
    duration = raw.get("duration")
    if isinstance(duration, bool):
        duration = None
    elif isinstance(duration, (int, float)):
        duration = f"{duration}s"
    elif not isinstance(duration, str):
        duration = None
    return Animation(type=raw["type"], duration=duration)


def _coerce_component(raw) -> Optional[HomeComponent]:
    """
    One generator component to a HomeComponent, or None when it has no usable
    id, type or mineralIds. Optional presentation fields with the wrong type
    are dropped, not fatal.
    """
    if not isinstance(raw, dict):
        return None

    comp_id = raw.get("id")
    if isinstance(comp_id, (int, float)) and not isinstance(comp_id, bool):
        comp_id = str(comp_id)
    if not isinstance(comp_id, str) or not comp_id.strip():
        return None

    comp_type = raw.get("type")
    if comp_type not in COMPONENT_TYPES:
        return None

    mineral_ids = raw.get("mineralIds", raw.get("mineral_ids"))
    if not isinstance(mineral_ids, list):
        return None
    mineral_ids = [str(mid) for mid in mineral_ids if isinstance(mid, (str, int)) and not isinstance(mid, bool)]

    title = raw.get("title")
    speed = _as_number(raw.get("speed"))
    image_scale = _as_number(raw.get("imageScale", raw.get("image_scale")))

    return HomeComponent(
        id=comp_id.strip(),
        type=comp_type,
        mineral_ids=mineral_ids,
        title=title if isinstance(title, str) and title.strip() else None,
        animation=_coerce_animation(raw.get("animation")),
        speed=speed if speed is not None and speed > 0 else None,
        image_scale=image_scale if image_scale is not None and image_scale > 0 else None,
    )


def _dedupe_component_ids(components: List[HomeComponent]) -> List[HomeComponent]:
    seen: Set[str] = set()
    out: List[HomeComponent] = []
    for component in components:
        new_id, n = component.id, 2
        while new_id in seen:
            new_id = f"{component.id}-{n}"
            n += 1
        seen.add(new_id)
        if new_id != component.id:
            logger.warning(f"Duplicate layout component id {component.id!r} renamed to {new_id!r}.")
            component = component.model_copy(update={"id": new_id})
        out.append(component)
    return out


def _parse_clarification(raw) -> Optional[LayoutClarification]:
    if not isinstance(raw, dict):
        return None
    question = raw.get("question")
    if not isinstance(question, str) or not question.strip():
        return None

    options: List[ClarificationOption] = []
    for opt in raw.get("options") or []:
        if not isinstance(opt, dict):
            continue
        opt_id, opt_name = opt.get("id"), opt.get("name")
        if opt_id is None or not isinstance(opt_name, str) or not opt_name.strip():
            continue
        options.append(ClarificationOption(id=str(opt_id), name=opt_name.strip()))
    return LayoutClarification(question=question.strip(), options=options)


def _parse_layout(proposed, summary, allowed: Set[str]):
    if not isinstance(proposed, list) or not isinstance(summary, str) or not summary.strip():
        return LayoutNotFulfilled()

    components: List[HomeComponent] = []
    for item in proposed:
        component = _coerce_component(item)
        if component is None:
            logger.warning(f"Dropping malformed layout component from generator: {item!r}")
            continue
        unknown = [mid for mid in component.mineral_ids if mid not in allowed]
        if unknown or not component.mineral_ids:
            logger.warning(
                f"Dropping layout component {component.id!r}: unresolvable specimen ids {unknown or '[]'}."
            )
            continue
        components.append(component)

    if proposed and not components:
        return LayoutNotFulfilled(reason="The proposed layout did not reference any available specimen.")

    return LayoutAccepted(layout=_dedupe_component_ids(components), summary=summary.strip())


def parse_generation_response(raw, allowed_ids: Iterable[str]) -> LayoutOutcome:
    """
    Turn the generator's parsed JSON reply into a LayoutOutcome.

    - A layout needs a list of components and a non-empty summary; a valid
      one is accepted even when the reply also asks a question.
    - Components referencing any id outside allowed_ids are dropped whole.
    - Without a usable layout, a clarification is returned if there is one.
    - A non-empty proposal that validates down to nothing is NotFulfilled.
    """
    if not isinstance(raw, dict):
        return LayoutNotFulfilled()

    outcome = _parse_layout(raw.get("layout"), raw.get("summary"), set(allowed_ids or []))
    if isinstance(outcome, LayoutAccepted):
        return outcome

    clarification = _parse_clarification(raw.get("clarification"))
    if clarification is not None:
        return clarification
    return outcome
