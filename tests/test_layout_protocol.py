"""Tests for generation context building and validation of generator replies."""

from classes.layout_protocol import (
    allowed_ids_for_generation,
    build_generation_context,
    clarification_followup,
    parse_generation_response,
)
from classes.models import (
    ClarificationOption,
    HomeComponent,
    LayoutAccepted,
    LayoutClarification,
    LayoutNotFulfilled,
)


class TestContext:
    def test_only_on_display_minerals_offered(self, seed_doc):
        context = build_generation_context(seed_doc.home_page_layout, seed_doc.minerals)
        assert [m["id"] for m in context["minerals"]] == ["1", "2", "3", "4"]
        assert set(context["minerals"][0]) == {"id", "name", "type"}
        assert context["current_layout"][0]["mineralIds"] == ["1"]

    def test_existing_off_display_reference_stays_allowed(self, seed_doc):
        layout = [HomeComponent(id="g", type="grid-2", mineral_ids=["5", "deleted"])]
        allowed = allowed_ids_for_generation(layout, seed_doc.minerals)
        assert allowed == {"1", "2", "3", "4", "5"}

    def test_off_display_not_introduced(self, seed_doc):
        assert "6" not in allowed_ids_for_generation(seed_doc.home_page_layout, seed_doc.minerals)


class TestParseAccepted:
    def test_valid_layout(self):
        raw = {
            "layout": [
                {"id": "h1", "type": "hero", "mineralIds": ["1"], "animation": {"type": "zoom-in", "duration": "20s"}},
                {"id": "c1", "type": "carousel", "mineralIds": ["2", "3"], "speed": 6, "title": "Highlights"},
            ],
            "summary": "Added a carousel.",
        }
        outcome = parse_generation_response(raw, {"1", "2", "3"})
        assert isinstance(outcome, LayoutAccepted)
        assert outcome.summary == "Added a carousel."
        assert outcome.layout[0].animation.duration == "20s"
        assert outcome.layout[1].speed == 6

    def test_component_with_unknown_id_dropped(self):
        raw = {
            "layout": [
                {"id": "h1", "type": "hero", "mineralIds": ["1"]},
                {"id": "g1", "type": "grid-2", "mineralIds": ["2", "999"]},
            ],
            "summary": "x",
        }
        outcome = parse_generation_response(raw, {"1", "2"})
        assert [c.id for c in outcome.layout] == ["h1"]
        assert all(mid != "999" for c in outcome.layout for mid in c.mineral_ids)

    def test_malformed_components_dropped_and_bad_fields_removed(self):
        raw = {
            "layout": [
                {"id": "x", "type": "banner", "mineralIds": ["1"]},
                {"type": "hero", "mineralIds": ["1"]},
                "not a component",
                {"id": "c1", "type": "carousel", "mineralIds": ["1"], "speed": "fast",
                 "animation": {"type": "spin", "duration": "5s"}},
            ],
            "summary": "x",
        }
        outcome = parse_generation_response(raw, {"1"})
        assert len(outcome.layout) == 1
        component = outcome.layout[0]
        assert component.speed is None
        assert component.animation is None
        assert component.effective_speed == 8

    def test_duplicate_ids_renamed(self):
        raw = {
            "layout": [
                {"id": "g", "type": "grid-2", "mineralIds": ["1"]},
                {"id": "g", "type": "grid-3", "mineralIds": ["2"]},
            ],
            "summary": "x",
        }
        outcome = parse_generation_response(raw, {"1", "2"})
        assert [c.id for c in outcome.layout] == ["g", "g-2"]

    def test_empty_layout_proposal_is_accepted(self):
        outcome = parse_generation_response({"layout": [], "summary": "Cleared the homepage."}, {"1"})
        assert isinstance(outcome, LayoutAccepted)
        assert outcome.layout == []


class TestParseClarification:
    def test_scenario_c(self):
        raw = {"clarification": {"question": "which Quartz?", "options": [
            {"id": "1", "name": "Amethyst"}, {"id": "6", "name": "Optical Calcite"},
        ]}}
        outcome = parse_generation_response(raw, {"1"})
        assert isinstance(outcome, LayoutClarification)
        assert [o.name for o in outcome.options] == ["Amethyst", "Optical Calcite"]
        assert clarification_followup(outcome.options[0]) == 'I meant the one named "Amethyst".'

    def test_valid_layout_wins_over_clarification(self):
        raw = {
            "layout": [{"id": "h", "type": "hero", "mineralIds": ["1"]}],
            "summary": "Amethyst in the hero.",
            "clarification": {"question": "Which one?", "options": []},
        }
        outcome = parse_generation_response(raw, {"1"})
        assert isinstance(outcome, LayoutAccepted)
        assert [c.id for c in outcome.layout] == ["h"]

    def test_clarification_used_when_layout_unusable(self):
        raw = {
            "layout": [{"id": "h", "type": "hero", "mineralIds": ["99"]}],
            "summary": "x",
            "clarification": {"question": "Which one?", "options": []},
        }
        assert isinstance(parse_generation_response(raw, {"1"}), LayoutClarification)

    def test_followup_accepts_plain_name(self):
        assert clarification_followup(ClarificationOption(id="6", name="Optical Calcite")) == \
            clarification_followup("Optical Calcite")


class TestParseNotFulfilled:
    def test_neither_variant(self):
        assert isinstance(parse_generation_response({"foo": "bar"}, {"1"}), LayoutNotFulfilled)

    def test_not_a_dict(self):
        assert isinstance(parse_generation_response(None, {"1"}), LayoutNotFulfilled)
        assert isinstance(parse_generation_response([1, 2], {"1"}), LayoutNotFulfilled)

    def test_layout_without_summary(self):
        raw = {"layout": [{"id": "h", "type": "hero", "mineralIds": ["1"]}], "summary": ""}
        assert isinstance(parse_generation_response(raw, {"1"}), LayoutNotFulfilled)

    def test_everything_filtered_out(self):
        raw = {"layout": [{"id": "h", "type": "hero", "mineralIds": ["ghost"]}], "summary": "x"}
        assert isinstance(parse_generation_response(raw, {"1"}), LayoutNotFulfilled)
