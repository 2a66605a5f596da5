# classes/models.py
"""
Pydantic models for the aggregate gallery document and the AI exchanges.

Field names are snake_case in Python and camelCase on the wire
(`onDisplay`, `imageUrls`, `mineralIds`, `homePageLayout`, ...). Always dump
with `by_alias=True` when producing JSON for clients or storage.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Rarity(str, Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    VERY_RARE = "Very Rare"
    EXCEPTIONAL = "Exceptional"


RARITY_LEVELS: List[str] = [r.value for r in Rarity]


class Mineral(CamelModel):
    id: str
    name: str = ""
    description: str = ""
    type: str = ""
    location: str = ""
    rarity: Rarity = Rarity.COMMON
    on_display: bool = False
    image_urls: List[str] = Field(default_factory=list)


# --- Homepage layout ---

ComponentType = Literal["hero", "carousel", "grid-2", "grid-3", "list"]
COMPONENT_TYPES: tuple = ("hero", "carousel", "grid-2", "grid-3", "list")

# declared in the schema, never rendered
RESERVED_COMPONENT_TYPES: tuple = ("list",)

ANIMATION_TYPES: tuple = ("zoom-in", "none")
DEFAULT_CAROUSEL_SPEED = 8


class Animation(CamelModel):
    type: Literal["zoom-in", "none"] = "none"
    duration: Optional[str] = None


class HomeComponent(CamelModel):
    id: str
    type: ComponentType
    mineral_ids: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    animation: Optional[Animation] = None
    speed: Optional[Union[int, float]] = None
    image_scale: Optional[Union[int, float]] = None

    @property
    def effective_speed(self):
        return self.speed if self.speed is not None else DEFAULT_CAROUSEL_SPEED


HomePageLayout = List[HomeComponent]


class LayoutHistoryEntry(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    layout: List[HomeComponent]
    summary: str
    timestamp: int  # epoch milliseconds


class AppData(CamelModel):
    minerals: List[Mineral] = Field(default_factory=list)
    home_page_layout: List[HomeComponent] = Field(default_factory=list)
    layout_history: List[LayoutHistoryEntry] = Field(default_factory=list)


# --- Layout generation outcomes ---

class ClarificationOption(CamelModel):
    id: str
    name: str


class LayoutAccepted(CamelModel):
    kind: Literal["accepted"] = "accepted"
    layout: List[HomeComponent]
    summary: str


class LayoutClarification(CamelModel):
    kind: Literal["clarification"] = "clarification"
    question: str
    options: List[ClarificationOption] = Field(default_factory=list)


class LayoutNotFulfilled(CamelModel):
    kind: Literal["not_fulfilled"] = "not_fulfilled"
    reason: str = "I'm sorry, I could not fulfill that request. Could you rephrase it?"


LayoutOutcome = Annotated[
    Union[LayoutAccepted, LayoutClarification, LayoutNotFulfilled],
    Field(discriminator="kind"),
]


# --- Specimen identification chat ---

class ChatPart(BaseModel):
    text: str


class ChatContent(BaseModel):
    role: Literal["user", "model"]
    parts: List[ChatPart] = Field(default_factory=list)


class Identification(CamelModel):
    text: str
    suggested_names: List[str] = Field(default_factory=list)
