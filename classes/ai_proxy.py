# classes/ai_proxy.py

import json
import logging
import re
from typing import List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from classes.base_utils import BaseUtils
from classes.cooldown_tracker import IMAGE_EDIT_OPERATIONS
from classes.errors import AiServiceError, ValidationFailure
from classes.gallery_prompts import (
    CLARIFY_IMAGE_PROMPT,
    CLEAN_IMAGE_PROMPT,
    DESCRIPTION_PROMPT,
    DOMINANT_COLOR_PROMPT,
    IDENTIFY_INITIAL_QUESTION,
    IDENTIFY_SYSTEM_PROMPT,
    LAYOUT_REQUEST_PROMPT,
    LAYOUT_SYSTEM_PROMPT,
    RARITY_PROMPT,
    REMOVE_BACKGROUND_PROMPT,
    TYPE_PROMPT,
)
from classes.layout_protocol import (
    allowed_ids_for_generation,
    build_generation_context,
    parse_generation_response,
)
from classes.models import RARITY_LEVELS, HomeComponent, Identification, LayoutOutcome, Mineral, Rarity

logger = logging.getLogger("gallery_backend")

HEX_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)

_EDIT_PROMPTS = {
    "remove_background": REMOVE_BACKGROUND_PROMPT,
    "clean": CLEAN_IMAGE_PROMPT,
    "clarify": CLARIFY_IMAGE_PROMPT,
}


def _preview(text, limit: int = 400) -> str:
    text = str(text)
    return text if len(text) <= limit else text[:limit] + "..."


class AiProxy(BaseUtils):
    """
    One method per AI capability. Every method either returns a structured
    result (possibly "nothing useful", e.g. None) or raises AiServiceError /
    AiRateLimitedError when the external service itself failed.
    """

    # -----------------------
    # Text
    # -----------------------

    def generate_description(self, name: str, type: str = "", location: str = "", rarity: str = "") -> str:
        if not (name or "").strip():
            raise ValidationFailure("A name is required to generate a description.")
        prompt = self.unsafe_string_format(
            DESCRIPTION_PROMPT, name=name, type=type, location=location, rarity=rarity,
        )
        text = self._get_llm().invoke(prompt)
        logger.debug(f"[AI] generate_description -> {_preview(text)}")
        return self.clean_triple_backticks(text or "").strip()

    # -----------------------
    # Image analysis
    # -----------------------

    def _ask_about_image(self, prompt: str, image_base64: str, mime_type: str) -> str:
        message = self._human_message_with_image(prompt, image_base64, mime_type)
        text = self._get_chat_llm().invoke([message])
        return (text or "").strip()

    def suggest_rarity(self, name: str, image_base64: str, mime_type: str) -> str:
        prompt = self.unsafe_string_format(RARITY_PROMPT, name=name or "", rarity_levels=", ".join(RARITY_LEVELS))
        suggested = self._ask_about_image(prompt, image_base64, mime_type).strip(" .\"'")
        for level in RARITY_LEVELS:
            if suggested.lower() == level.lower():
                return level
        logger.warning(f"AI returned invalid rarity: {suggested!r}. Falling back to Common.")
        return Rarity.COMMON.value

    def suggest_type(self, name: str, image_base64: str, mime_type: str) -> str:
        prompt = self.unsafe_string_format(TYPE_PROMPT, name=name or "")
        return self._ask_about_image(prompt, image_base64, mime_type).strip(" .\"'")

    def get_dominant_color(self, image_base64: str, mime_type: str) -> Optional[str]:
        color = self._ask_about_image(DOMINANT_COLOR_PROMPT, image_base64, mime_type).strip(" .`\"'")
        if HEX_COLOR_RE.match(color):
            return color.upper()
        logger.info(f"AI returned an unusable color: {color!r}")
        return None

    def identify_specimen(self, image_base64: str, mime_type: str, history=None, question: Optional[str] = None) -> Identification:
        messages = [SystemMessage(content=IDENTIFY_SYSTEM_PROMPT)]
        messages.extend(self._chat_contents_to_messages(history))
        messages.append(
            self._human_message_with_image((question or "").strip() or IDENTIFY_INITIAL_QUESTION, image_base64, mime_type)
        )

        raw = self._get_chat_llm().invoke(messages)
        logger.debug(f"[AI] identify_specimen -> {_preview(raw)}")

        data = self.load_fault_tolerant_json(raw)
        if not isinstance(data, dict):
            raise AiServiceError("The identification reply was not a JSON object.")

        names = data.get("suggestedNames") or data.get("names") or []
        if not isinstance(names, list):
            names = [names]
        return Identification(
            text=self._coerce_field_to_str(data.get("description") or data.get("text")),
            suggested_names=[str(n).strip() for n in names if str(n).strip()],
        )

    # -----------------------
    # Image edits
    # -----------------------

    def edit_image(self, operation: str, image_base64: str, mime_type: str, mineral_name: Optional[str] = None) -> Optional[str]:
        """
        Returns the edited image as a data: URL, or None when the model
        produced no image.
        """
        if operation not in IMAGE_EDIT_OPERATIONS:
            raise ValidationFailure(f"Unknown image operation: {operation}")
        if operation == "clean" and not (mineral_name or "").strip():
            raise ValidationFailure("mineralName is required to clean an image.")

        image_bytes = self._decode_image(image_base64, mime_type)
        prompt = self.unsafe_string_format(_EDIT_PROMPTS[operation], mineral_name=(mineral_name or "").strip())

        image_url = self._get_image_llm().edit(image_bytes, mime_type, prompt)
        if image_url is None:
            logger.error(f"Image edit '{operation}' response did not contain an image part.")
        return image_url

    # -----------------------
    # Homepage layout
    # -----------------------

    def generate_layout(
        self,
        current_layout: List[HomeComponent],
        minerals: List[Mineral],
        instruction: str,
        history=None,
    ) -> LayoutOutcome:
        """
        Run one round of the layout protocol and return a LayoutOutcome.

        `history` is an optional list of prior LangChain messages; they only
        give the model conversational framing, the layout and mineral list in
        the request are always authoritative.
        """
        if not (instruction or "").strip():
            raise ValidationFailure("Please describe the layout change you want.")

        context = build_generation_context(current_layout, minerals)
        request = self.unsafe_string_format(
            LAYOUT_REQUEST_PROMPT,
            current_layout_json=json.dumps(context["current_layout"], indent=2),
            minerals_json=json.dumps(context["minerals"], indent=2),
            instruction=instruction.strip(),
        )
        messages = [SystemMessage(content=LAYOUT_SYSTEM_PROMPT)]
        messages.extend(history or [])
        messages.append(HumanMessage(content=request))

        raw = self._get_chat_llm().invoke(messages)
        logger.debug(f"[AI] generate_layout -> {_preview(raw)}")

        try:
            data = self.load_fault_tolerant_json(raw, allow_llm_repair=False)
        except AiServiceError as e:
            logger.warning(f"Layout reply could not be parsed: {e}")
            data = None

        return parse_generation_response(data, allowed_ids_for_generation(current_layout, minerals))
