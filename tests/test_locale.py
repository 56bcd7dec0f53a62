"""Tests for locale text lookup."""

from __future__ import annotations

from epsilon_pipeline.core.state import EngineState
from epsilon_pipeline.i18n.locale import TEXT, LocaleProvider, normalize_locale


class TestLocaleProvider:
    def test_locales_cover_the_same_keys(self):
        assert set(TEXT["en"]) == set(TEXT["es"])

    def test_every_stage_has_text(self, topology):
        state = EngineState(epsilon=0.4)
        for lang in ("en", "es"):
            text = LocaleProvider(lang)
            for stage in topology.stages:
                assert not text.stage_label(stage.id, state).startswith("stage.")
                assert not text.stage_description(stage.id, state).startswith("stage.")

    def test_edge_labels(self, topology):
        text = LocaleProvider("en")
        labels = {e.id: text.edge_label(e) for e in topology.edges}
        assert labels["decision->random-picker"] == "True"
        assert labels["decision->introspector"] == "False"
        assert labels["embedder->history"] == "Embeddings"
        assert labels["database->warmup-note"] is None

    def test_spanish_edge_label(self, topology):
        text = LocaleProvider("es")
        edge = next(e for e in topology.edges if e.id == "iteration-check->update")
        assert text.edge_label(edge) == "Verdadero"

    def test_decision_label_interpolates_draw(self):
        text = LocaleProvider("en")
        below = EngineState(epsilon=0.4, random_draw=0.1234)
        above = EngineState(epsilon=0.4, random_draw=0.8)
        assert text.stage_label("decision", below) == "random(0.123) < epsilon?"
        assert text.stage_label("decision", above) == "random(0.800) ≥ epsilon?"
        assert "(0.4)" in text.stage_description("decision", above)

    def test_warmup_note_follows_phase(self):
        text = LocaleProvider("en")
        warm = EngineState(epsilon=0.4, is_warmup=True)
        done = EngineState(epsilon=0.4, is_warmup=False)
        assert text.stage_label("warmup-note", warm) == "During warmup: always random"
        assert text.stage_label("warmup-note", done) == "After warmup: epsilon-greedy"

    def test_explanation_interpolation(self):
        text = LocaleProvider("es")
        assert text.text("explain.explore", draw="0.100", epsilon="0.4") == (
            "0.100 < 0.4 → Explorar al azar"
        )

    def test_unknown_key_returns_key(self):
        assert LocaleProvider("en").text("no.such.key") == "no.such.key"

    def test_missing_spanish_key_falls_back(self, monkeypatch):
        monkeypatch.setitem(TEXT["en"], "only.english", "hello")
        assert LocaleProvider("es").text("only.english") == "hello"

    def test_state_values(self):
        values = LocaleProvider.state_values(
            EngineState(epsilon=0.25, random_draw=0.5, iteration_count=3)
        )
        assert values == {
            "draw": "0.500", "epsilon": "0.25", "epsilon_pct": "25%", "iteration": 3,
        }


class TestNormalizeLocale:
    def test_known(self):
        assert normalize_locale("ES") == "es"
        assert normalize_locale("es-MX") == "es"
        assert normalize_locale("en_US") == "en"

    def test_unknown_or_missing(self):
        assert normalize_locale("fr") == "en"
        assert normalize_locale(None) == "en"
        assert normalize_locale("") == "en"
