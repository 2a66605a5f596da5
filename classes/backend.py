# classes/backend.py

import json
import logging
import threading
import traceback
from typing import Callable, Optional

from pydantic import ValidationError

from classes.ai_proxy import AiProxy
from classes.config import SAVE_DEBOUNCE_SECONDS
from classes.cooldown_tracker import IMAGE_EDIT_COOLDOWNS, IMAGE_EDIT_OPERATIONS, CooldownTracker
from classes.debounced_writer import DebouncedWriter
from classes.document_store import DocumentStore
from classes.errors import DocumentStoreError, ValidationFailure
from classes.gallery_prompts import IDENTIFY_INITIAL_QUESTION
from classes.gallery_search import filter_minerals, mineral_types
from classes.gallery_state import GalleryStore
from classes.history_cache import GLOBAL_IDENTIFY_CHAT_CACHE, GLOBAL_LAYOUT_CHAT_CACHE, HistoryCache
from classes.home_view import accent_source_image, hex_to_rgb, home_view, split_data_url
from classes.layout_history import LayoutHistory
from classes.layout_protocol import allowed_ids_for_generation, clarification_followup
from classes.models import (
    RARITY_LEVELS,
    AppData,
    ClarificationOption,
    HomeComponent,
    LayoutAccepted,
    LayoutClarification,
    Mineral,
)

logger = logging.getLogger("gallery_backend")

DEFAULT_CONVERSATION_ID = "curator"


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0] if e.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    return f"Invalid {where or 'payload'}: {first.get('msg', str(e))}"


class Backend(AiProxy):
    """
    The curator's session: owns the in-memory gallery, applies every mutation
    through the store reducers, runs the layout protocol and debounces
    persistence of the whole document.
    """

    def __init__(
        self,
        document_store: Optional[DocumentStore] = None,
        cooldowns: Optional[CooldownTracker] = None,
        layout_chats: Optional[HistoryCache] = None,
        identify_chats: Optional[HistoryCache] = None,
        debounce_seconds: float = SAVE_DEBOUNCE_SECONDS,
        timer_factory: Callable[..., object] = threading.Timer,
    ):
        self.document_store = document_store or DocumentStore()
        self.cooldowns = cooldowns or IMAGE_EDIT_COOLDOWNS
        self.layout_chats = layout_chats or GLOBAL_LAYOUT_CHAT_CACHE
        self.identify_chats = identify_chats or GLOBAL_IDENTIFY_CHAT_CACHE

        self.writer = DebouncedWriter(self._flush, delay_seconds=debounce_seconds, timer_factory=timer_factory)
        self.store = GalleryStore()
        self._accent_cache: dict[str, Optional[str]] = {}
        self._accent_lock = threading.Lock()

        self.load()
        self.store.set_mutation_listener(self.writer.schedule)

    # -----------------------
    # Persistence
    # -----------------------

    def load(self) -> AppData:
        """Initial population. Never schedules a write."""
        try:
            doc = self.document_store.load()
        except DocumentStoreError as e:
            logger.error(f"Failed to load data: {e}. Starting with an empty collection.")
            doc = AppData()
        self.store.populate(doc)
        logger.info(
            f"Loaded collection: {len(doc.minerals)} minerals, {len(doc.home_page_layout)} layout components."
        )
        return doc

    def _flush(self) -> None:
        self.document_store.save(self.store.snapshot())

    def shutdown(self) -> None:
        if self.writer.flush_now():
            logger.info("Pending changes saved on shutdown.")

    def get_document(self) -> dict:
        return self.store.snapshot().to_json_dict()

    def replace_document(self, raw: dict) -> dict:
        try:
            doc = AppData.model_validate(raw or {})
        except ValidationError as e:
            raise ValidationFailure(_validation_message(e))
        return self.store.replace_document(doc).to_json_dict()

    # -----------------------
    # Viewer projections
    # -----------------------

    def home(self) -> list[dict]:
        return home_view(self.store.snapshot())

    def search(self, query: Optional[str] = None, rarity: Optional[str] = None, mineral_type: Optional[str] = None) -> dict:
        doc = self.store.snapshot()
        return {
            "minerals": [m.to_json_dict() for m in filter_minerals(doc.minerals, query, rarity, mineral_type)],
            "types": mineral_types(doc.minerals),
            "rarityLevels": RARITY_LEVELS,
        }

    def accent_color(self) -> dict:
        """
        Dominant colour of the homepage's leading image, cached per image.
        """
        url = accent_source_image(self.store.snapshot())
        if url is None:
            return {"color": None, "rgb": None}

        with self._accent_lock:
            cached = url in self._accent_cache
            color = self._accent_cache.get(url)
        if not cached:
            mime_type, data = split_data_url(url)
            color = self.get_dominant_color(data, mime_type)
            with self._accent_lock:
                self._accent_cache[url] = color
        return {"color": color, "rgb": hex_to_rgb(color)}

    # -----------------------
    # Curator requests
    # -----------------------

    def _process_request_data(self, request_data: dict) -> dict:
        """
        Core request handling logic.
        Takes a parsed JSON dict and returns the response_data dict.
        """
        try:
            request_type = request_data.get("type")
            payload = request_data.get("payload") or {}

            try:
                preview = json.dumps(request_data, indent=2)[:2000]
            except Exception:
                preview = str(request_data)[:2000]

            logger.debug(f"process_request request {preview}")

            response_data = {
                "status": "success",
                "message": "",
            }

            if request_type == "load_collection":
                response_data["data"] = self.handle_load_collection()

            elif request_type == "save_mineral":
                response_data["data"] = self.handle_save_mineral(payload)
                response_data["message"] = "Specimen saved."

            elif request_type == "delete_mineral":
                response_data["data"] = self.handle_delete_mineral(payload)
                response_data["message"] = "Specimen deleted."

            elif request_type == "layout_chat":
                response_data["data"] = self.handle_layout_chat(payload)

            elif request_type == "choose_clarification":
                response_data["data"] = self.handle_choose_clarification(payload)

            elif request_type == "update_layout":
                response_data["data"] = self.handle_update_layout(payload)

            elif request_type == "restore_layout":
                response_data["data"] = self.handle_restore_layout(payload)
                response_data["message"] = "Layout restored."

            elif request_type == "layout_history":
                response_data["data"] = self.handle_layout_history()

            elif request_type == "edit_image":
                response_data["data"] = self.handle_edit_image(payload)

            elif request_type == "identify_specimen":
                response_data["data"] = self.handle_identify_specimen(payload)

            else:
                response_data["status"] = "error"
                response_data["message"] = f"Unknown request type: {request_type}"

            try:
                preview = json.dumps(response_data, indent=2)[:2000]
            except Exception:
                preview = str(response_data)[:2000]

            logger.debug(f"response {preview}")

            return response_data

        except ValidationFailure as e:
            logger.info(f"Rejected request: {e}")
            raise
        except Exception as e:
            logger.info(f"Error while processing request data: {e}")
            traceback.print_exc()
            raise

    def handle_load_collection(self) -> dict:
        doc = self.store.snapshot()
        return {
            "collection": doc.to_json_dict(),
            "types": mineral_types(doc.minerals),
            "rarityLevels": RARITY_LEVELS,
        }

    def handle_save_mineral(self, payload: dict) -> dict:
        raw = dict(payload.get("mineral") or {})
        raw.setdefault("id", "")
        try:
            mineral = Mineral.model_validate(raw)
        except ValidationError as e:
            raise ValidationFailure(_validation_message(e))
        return {"mineral": self.store.save_mineral(mineral).to_json_dict()}

    def handle_delete_mineral(self, payload: dict) -> dict:
        if payload.get("confirmed") is False:
            raise ValidationFailure("Deletion was not confirmed.")
        mineral_id = str(payload.get("id") or "").strip()
        if not mineral_id:
            raise ValidationFailure("A specimen id is required.")
        doc = self.store.delete_mineral(mineral_id)
        return {"homePageLayout": [c.to_json_dict() for c in doc.home_page_layout]}

    # --- layout assistant ---

    def handle_layout_chat(self, payload: dict) -> dict:
        text = (payload.get("text") or "").strip()
        if not text:
            raise ValidationFailure("Please describe the layout change you want.")
        conversation_id = str(payload.get("conversationId") or DEFAULT_CONVERSATION_ID)

        with self.layout_chats.request(conversation_id):
            doc = self.store.snapshot()
            history = self.layout_chats.snapshot(conversation_id)

            outcome = self.generate_layout(doc.home_page_layout, doc.minerals, text, history=history)

            result: dict = {"outcome": outcome.to_json_dict()}
            if isinstance(outcome, LayoutAccepted):
                entry = self.store.install_layout(
                    outcome.layout,
                    outcome.summary,
                    allowed_ids=allowed_ids_for_generation(doc.home_page_layout, doc.minerals),
                )
                bot_message = outcome.summary
                result["outcome"]["layout"] = [c.to_json_dict() for c in entry.layout]
                result["historyEntry"] = entry.to_json_dict()
            elif isinstance(outcome, LayoutClarification):
                bot_message = outcome.question
            else:
                bot_message = outcome.reason

            self.layout_chats.append_turn(conversation_id, text, bot_message)

        result["botMessage"] = bot_message
        result["homePageLayout"] = [c.to_json_dict() for c in self.store.snapshot().home_page_layout]
        return result

    def handle_choose_clarification(self, payload: dict) -> dict:
        try:
            option = ClarificationOption.model_validate(payload.get("option") or {})
        except ValidationError as e:
            raise ValidationFailure(_validation_message(e))
        return self.handle_layout_chat({
            "text": clarification_followup(option),
            "conversationId": payload.get("conversationId"),
        })

    def handle_update_layout(self, payload: dict) -> dict:
        try:
            layout = [HomeComponent.model_validate(c) for c in payload.get("layout") or []]
        except ValidationError as e:
            raise ValidationFailure(_validation_message(e))
        summary = (payload.get("summary") or "").strip() or "Manual layout edit."
        entry = self.store.install_layout(layout, summary)
        return {"historyEntry": entry.to_json_dict()}

    def handle_restore_layout(self, payload: dict) -> dict:
        history = LayoutHistory(self.store.snapshot().layout_history)
        try:
            if payload.get("timestamp") is not None:
                entry = history.find(timestamp=int(payload["timestamp"]))
            else:
                entry = history.find(index=int(payload.get("index", -1)))
        except (LookupError, ValueError, TypeError) as e:
            raise ValidationFailure(str(e))
        layout = self.store.restore_layout(entry)
        return {"homePageLayout": [c.to_json_dict() for c in layout]}

    def handle_layout_history(self) -> dict:
        history = LayoutHistory(self.store.snapshot().layout_history)
        return {"entries": [e.to_json_dict() for e in history.for_display()]}

    # --- images ---

    def handle_edit_image(self, payload: dict) -> dict:
        operation = payload.get("operation")
        slot = payload.get("slot", 0)
        image_base64 = payload.get("imageBase64") or ""
        mime_type = payload.get("imageMimeType") or ""
        mineral_name = payload.get("mineralName")

        # reject bad input before it costs a cooldown
        if isinstance(slot, bool) or not isinstance(slot, (int, str)):
            raise ValidationFailure(f"Invalid image slot: {slot!r}")
        if operation not in IMAGE_EDIT_OPERATIONS:
            raise ValidationFailure(f"Unknown image operation: {operation}")
        if operation == "clean" and not (mineral_name or "").strip():
            raise ValidationFailure("mineralName is required to clean an image.")
        self._decode_image(image_base64, mime_type)

        self.cooldowns.begin(slot, operation)
        try:
            image_url = self.edit_image(operation, image_base64, mime_type, mineral_name=mineral_name)
        finally:
            self.cooldowns.finish(slot, operation)

        return {"imageUrl": image_url, "cooldowns": self.cooldowns.snapshot(slot)}

    def handle_identify_specimen(self, payload: dict) -> dict:
        conversation_id = str(payload.get("conversationId") or DEFAULT_CONVERSATION_ID)
        question = (payload.get("question") or "").strip() or None

        with self.identify_chats.request(conversation_id):
            prior = [
                {"role": "model" if m.type == "ai" else "user", "parts": [{"text": str(m.content)}]}
                for m in self.identify_chats.snapshot(conversation_id)
            ]
            identification = self.identify_specimen(
                payload.get("imageBase64") or "",
                payload.get("imageMimeType") or "",
                history=prior,
                question=question,
            )
            self.identify_chats.append_turn(
                conversation_id, question or IDENTIFY_INITIAL_QUESTION, identification.text,
            )
        return identification.to_json_dict()
