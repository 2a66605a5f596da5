# classes/seed_data.py
"""
The collection a fresh installation starts with.
"""

from classes.models import AppData


def _picsum(seed: str) -> str:
    return f"https://picsum.photos/seed/{seed}/800/600"


INITIAL_APP_DATA = {
    "minerals": [
        {
            "id": "1",
            "name": "Amethyst Geode",
            "description": (
                "A breathtaking geode from Uruguay, revealing a deep purple crystalline interior. Its majestic "
                "presence is a testament to nature's artistry, a treasure for any connoisseur."
            ),
            "imageUrls": [_picsum("amethyst"), _picsum("amethyst2")],
            "type": "Quartz",
            "location": "Uruguay",
            "rarity": "Uncommon",
            "onDisplay": True,
        },
        {
            "id": "2",
            "name": "Rhodochrosite",
            "description": (
                "An exquisite specimen of Rhodochrosite from the Sweet Home Mine in Colorado. Known for its "
                "stunning raspberry-pink to rose-red color, it is one of the most sought-after minerals by collectors."
            ),
            "imageUrls": [_picsum("rhodo")],
            "type": "Calcite",
            "location": "Colorado, USA",
            "rarity": "Very Rare",
            "onDisplay": True,
        },
        {
            "id": "3",
            "name": "Burmese Tourmaline",
            "description": (
                "A gem-quality Tourmaline crystal from Myanmar, displaying a vibrant spectrum of colors. This piece "
                "embodies the pinnacle of mineralogical perfection and aesthetic allure."
            ),
            "imageUrls": [_picsum("tourmaline")],
            "type": "Tourmaline",
            "location": "Myanmar",
            "rarity": "Exceptional",
            "onDisplay": True,
        },
        {
            "id": "4",
            "name": "Aquamarine on Muscovite",
            "description": (
                "A perfectly terminated, sky-blue Aquamarine crystal stands in stark contrast to its sparkling "
                "Muscovite matrix. Sourced from the high peaks of Pakistan, this specimen is a poem written in stone."
            ),
            "imageUrls": [_picsum("aquamarine"), _picsum("aqua2"), _picsum("aqua3")],
            "type": "Beryl",
            "location": "Pakistan",
            "rarity": "Rare",
            "onDisplay": True,
        },
        {
            "id": "5",
            "name": "Pyrite Sun",
            "description": (
                "A unique formation of Pyrite, radiating from a central point like a golden sun. These fascinating "
                "discs are found in coal mines in Illinois, a brilliant anomaly of the mineral kingdom."
            ),
            "imageUrls": [_picsum("pyrite")],
            "type": "Pyrite",
            "location": "Illinois, USA",
            "rarity": "Rare",
            "onDisplay": False,
        },
        {
            "id": "6",
            "name": "Optical Calcite",
            "description": (
                "A crystal-clear rhomb of Optical Calcite, also known as Iceland Spar. Its remarkable property of "
                "double refraction has fascinated scientists and mystics for centuries. A piece of pure clarity."
            ),
            "imageUrls": [_picsum("calcite")],
            "type": "Calcite",
            "location": "Mexico",
            "rarity": "Common",
            "onDisplay": False,
        },
    ],
    "homePageLayout": [
        {"id": "h1", "type": "hero", "mineralIds": ["1"], "animation": {"type": "zoom-in", "duration": "15s"}},
        {"id": "g1", "type": "grid-2", "mineralIds": ["2", "4"]},
    ],
    "layoutHistory": [],
}


def seed_document() -> AppData:
    return AppData.model_validate(INITIAL_APP_DATA)
