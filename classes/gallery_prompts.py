DESCRIPTION_PROMPT = """
Write a captivating, museum-quality description of a mineral specimen for a private collection website.

- Name: {name}
- Type: {type}
- Location: {location}
- Rarity: {rarity}

The description must be 2-3 sentences long and highlight what makes the specimen appealing to collectors.
Return plain text only: no markdown, no headings, no quotes around the answer.
"""

RARITY_PROMPT = """
Look at the image of this mineral specimen, named "{name}", and suggest a rarity level.
Choose exactly one of: {rarity_levels}.
Return only the chosen rarity level, with no other text.
"""

TYPE_PROMPT = """
Based on the image and the name ("{name}") of this specimen, what is its general mineral classification or type
(e.g. Quartz, Feldspar, Igneous Rock)? Return only the type name.
"""

DOMINANT_COLOR_PROMPT = """
Analyze this image and return its dominant color as a hex code.
Return only the hex code and nothing else, e.g. #A7B2C4
"""

# -----------------------
# Specimen identification chat
# -----------------------

IDENTIFY_SYSTEM_PROMPT = """
You are a friendly, expert gemologist. Your goal is to identify mineral specimens from images and answer the
curator's questions about them. When you identify a mineral, give a brief, interesting description of it and
suggest 3-5 possible specific names for the specimen. Be conversational and helpful.

Always reply with a single JSON object and nothing else:
{
  "description": "<conversational description of the mineral, including key characteristics>",
  "suggestedNames": ["<name 1>", "<name 2>", "<name 3>"]
}
"""

IDENTIFY_INITIAL_QUESTION = (
    "Please identify the mineral in this image. What are its key characteristics? "
    "Suggest some possible names for this specific specimen."
)

# -----------------------
# Image edits
# -----------------------

REMOVE_BACKGROUND_PROMPT = (
    "Professionally photograph this mineral specimen. Place it on a pure black, reflective surface to create a "
    "subtle, mirror-like reflection underneath. The final image should have a clean, museum-quality aesthetic with "
    "a solid black background. Do not include any text or watermarks."
)

CLEAN_IMAGE_PROMPT = (
    "Clean up this image of a {mineral_name} specimen. Remove any distracting elements like stands, labels, or "
    "fingers, but keep the mineral itself untouched and natural-looking."
)

CLARIFY_IMAGE_PROMPT = (
    "Enhance the clarity and definition of this mineral specimen image. "
    "Make the details sharper without making it look unnatural."
)

# -----------------------
# Homepage layout assistant
# -----------------------

LAYOUT_SYSTEM_PROMPT = """
You are an AI assistant that designs the homepage layout of a luxury mineral collection website.

- You are given the current layout, the list of minerals available for display and the curator's request.
- Your task is to produce a new layout that fulfills the request.
- The available component types are 'hero', 'carousel', 'grid-2' (2 columns) and 'grid-3' (3 columns).
- A 'hero' component must contain exactly one mineral. A 'carousel' can contain several minerals.
- For 'hero' and 'carousel' components ALWAYS add a subtle 'zoom-in' animation with a duration between 15s and
  30s, unless the curator explicitly asks for no animation.
- A 'carousel' can also have a 'speed' property: the number of seconds each slide is displayed (default 8).
- Every id in 'mineralIds' MUST come from the available minerals list, or already be in the current layout.
- You can add, remove or reorder components. Keep component ids stable for components you keep.
- If the request is ambiguous (e.g. it names a mineral and several available minerals have similar names) you
  MUST ask for clarification instead of guessing.
- Provide a brief, one-sentence summary of the changes you made.
"""

LAYOUT_REQUEST_PROMPT = """
Current Layout:
{current_layout_json}

Available Minerals (only these can be added to the layout):
{minerals_json}

Curator Request: "{instruction}"

Reply with a single JSON object and nothing else, in ONE of these two shapes.

1) A new layout:
{
  "layout": [
    {
      "id": "<unique component id>",
      "type": "hero" | "carousel" | "grid-2" | "grid-3",
      "mineralIds": ["<mineral id>", ...],
      "title": "<optional title>",
      "animation": {"type": "zoom-in" | "none", "duration": "20s"},
      "speed": <optional integer, carousel only>
    }
  ],
  "summary": "<one sentence describing the change>"
}

2) A clarification request, when the request is ambiguous:
{
  "clarification": {
    "question": "<the question to ask the curator>",
    "options": [{"id": "<mineral id>", "name": "<mineral name>"}]
  }
}
"""
