import logging
import secrets
import threading
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from classes.backend import Backend
from classes.config import CURATOR_PASSWORD, PORT
from classes.errors import (
    AiRateLimitedError,
    AiServiceError,
    CooldownActiveError,
    DocumentStoreError,
    RequestInFlightError,
    ValidationFailure,
)
from classes.models import CamelModel, ChatContent, HomeComponent, LayoutAccepted, LayoutClarification, Mineral

logger = logging.getLogger("gallery_backend")

_backend: Optional[Backend] = None
_backend_lock = threading.Lock()


def get_backend() -> Backend:
    global _backend
    with _backend_lock:
        if _backend is None:
            _backend = Backend()
        return _backend


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _backend is not None:
        _backend.shutdown()


app = FastAPI(lifespan=lifespan)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------
# Error mapping
# -----------------------

def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})


@app.exception_handler(ValidationFailure)
async def _validation_failure(request: Request, exc: ValidationFailure):
    return _error(400, str(exc))


@app.exception_handler(RequestInFlightError)
async def _request_in_flight(request: Request, exc: RequestInFlightError):
    return _error(409, str(exc))


@app.exception_handler(CooldownActiveError)
async def _cooldown_active(request: Request, exc: CooldownActiveError):
    response = _error(429, str(exc), remainingSeconds=round(exc.remaining_seconds, 1))
    if exc.remaining_seconds > 0:
        response.headers["Retry-After"] = str(int(exc.remaining_seconds) + 1)
    return response


@app.exception_handler(AiRateLimitedError)
async def _ai_rate_limited(request: Request, exc: AiRateLimitedError):
    return _error(429, str(exc))


@app.exception_handler(AiServiceError)
async def _ai_service_error(request: Request, exc: AiServiceError):
    logger.error(f"AI service failure on {request.url.path}: {exc}")
    return _error(502, "The AI service failed to respond. Please try again.")


@app.exception_handler(DocumentStoreError)
async def _document_store_error(request: Request, exc: DocumentStoreError):
    logger.error(f"Document store failure on {request.url.path}: {exc}")
    return _error(503, "The collection could not be read or saved.")


def require_curator(x_curator_password: Optional[str] = Header(default=None)) -> None:
    if not x_curator_password or not secrets.compare_digest(x_curator_password.encode(), CURATOR_PASSWORD.encode()):
        raise HTTPException(status_code=401, detail="Incorrect password.")


# -----------------------
# Request bodies
# -----------------------

class ImageBody(CamelModel):
    image_base64: str
    image_mime_type: str


class NamedImageBody(ImageBody):
    name: str = ""


class DescriptionMineral(CamelModel):
    name: str
    type: str = ""
    location: str = ""
    rarity: str = ""


class DescriptionBody(CamelModel):
    mineral: DescriptionMineral


class IdentifyBody(ImageBody):
    history: List[ChatContent] = Field(default_factory=list)
    question: Optional[str] = None


class EditImageBody(ImageBody):
    slot: Union[int, str] = 0
    mineral_name: str = ""


class LayoutBody(CamelModel):
    current_layout: List[HomeComponent] = Field(default_factory=list)
    minerals: List[Mineral] = Field(default_factory=list)
    prompt: str = ""


class LoginBody(CamelModel):
    password: str = ""


class CuratorRequest(CamelModel):
    type: str
    payload: Optional[Any] = None


# -----------------------
# Persistence
# -----------------------

@app.get("/api/data")
def get_data(backend: Backend = Depends(get_backend)):
    return backend.get_document()


@app.put("/api/data")
@app.post("/api/data")
def replace_data(body: dict, backend: Backend = Depends(get_backend)):
    backend.replace_document(body)
    return {"message": "Data saved successfully"}


# -----------------------
# AI proxy
# -----------------------

@app.post("/api/ai/generate-description")
def generate_description(body: DescriptionBody, backend: Backend = Depends(get_backend)):
    m = body.mineral
    return {"description": backend.generate_description(m.name, m.type, m.location, m.rarity)}


@app.post("/api/ai/suggest-rarity")
def suggest_rarity(body: NamedImageBody, backend: Backend = Depends(get_backend)):
    return {"rarity": backend.suggest_rarity(body.name, body.image_base64, body.image_mime_type)}


@app.post("/api/ai/suggest-type")
def suggest_type(body: NamedImageBody, backend: Backend = Depends(get_backend)):
    return {"type": backend.suggest_type(body.name, body.image_base64, body.image_mime_type)}


@app.post("/api/ai/identify-specimen")
def identify_specimen(body: IdentifyBody, backend: Backend = Depends(get_backend)):
    result = backend.identify_specimen(body.image_base64, body.image_mime_type, body.history, body.question)
    return result.to_json_dict()


def _edit_image(backend: Backend, operation: str, body: EditImageBody) -> dict:
    result = backend.handle_edit_image({
        "slot": body.slot,
        "operation": operation,
        "imageBase64": body.image_base64,
        "imageMimeType": body.image_mime_type,
        "mineralName": body.mineral_name,
    })
    return {"imageUrl": result["imageUrl"]}


@app.post("/api/ai/remove-background")
def remove_background(body: EditImageBody, backend: Backend = Depends(get_backend)):
    return _edit_image(backend, "remove_background", body)


@app.post("/api/ai/clean-image")
def clean_image(body: EditImageBody, backend: Backend = Depends(get_backend)):
    return _edit_image(backend, "clean", body)


@app.post("/api/ai/clarify-image")
def clarify_image(body: EditImageBody, backend: Backend = Depends(get_backend)):
    return _edit_image(backend, "clarify", body)


@app.post("/api/ai/get-dominant-color")
def get_dominant_color(body: ImageBody, backend: Backend = Depends(get_backend)):
    return {"color": backend.get_dominant_color(body.image_base64, body.image_mime_type)}


@app.post("/api/ai/generate-layout")
def generate_layout(body: LayoutBody, backend: Backend = Depends(get_backend)):
    outcome = backend.generate_layout(body.current_layout, body.minerals, body.prompt)
    if isinstance(outcome, LayoutAccepted):
        return {"layout": [c.to_json_dict() for c in outcome.layout], "summary": outcome.summary}
    if isinstance(outcome, LayoutClarification):
        return {"clarification": {"question": outcome.question, "options": [o.to_json_dict() for o in outcome.options]}}
    return None


# -----------------------
# Viewer
# -----------------------

@app.get("/api/home")
def get_home(backend: Backend = Depends(get_backend)):
    return {"components": backend.home()}


@app.get("/api/home/accent-color")
def get_accent_color(backend: Backend = Depends(get_backend)):
    return backend.accent_color()


@app.get("/api/minerals")
def get_minerals(
    q: Optional[str] = None,
    rarity: Optional[str] = None,
    type: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    return backend.search(q, rarity, type)


# -----------------------
# Curator
# -----------------------

@app.post("/api/curator/login")
def curator_login(body: LoginBody):
    if not secrets.compare_digest(body.password.encode(), CURATOR_PASSWORD.encode()):
        raise HTTPException(status_code=401, detail="Incorrect password.")
    return {"ok": True}


@app.post("/api/curator/requests", dependencies=[Depends(require_curator)])
def curator_request(body: CuratorRequest, backend: Backend = Depends(get_backend)):
    response_data = backend._process_request_data({"type": body.type, "payload": body.payload or {}})
    if response_data.get("status") == "error":
        raise HTTPException(status_code=400, detail=response_data.get("message"))
    return response_data


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
