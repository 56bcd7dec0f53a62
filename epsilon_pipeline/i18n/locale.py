"""Locale text lookup.

All display text lives here, keyed by semantic ids.  The engine only hands
over structured values (``random_draw``, ``epsilon``, ``iteration_count``)
and this module formats them into strings.
"""

from __future__ import annotations

from typing import Any, Callable

from ..core.stage import Edge
from ..core.state import EngineState

DEFAULT_LOCALE = "en"
LOCALES = ("en", "es")

TEXT: dict[str, dict[str, str]] = {
    "en": {
        "app.title": "Time Series Forecasting Workflow",
        "app.subtitle": "Guided Variable Selection through Recursive Introspection",
        "controls.play": "Play",
        "controls.pause": "Pause",
        "controls.reset": "Reset",
        "controls.next_iteration": "Next Iteration",
        "controls.language": "Language",
        "status.title": "Epsilon-Greedy Status",
        "status.phase": "Phase",
        "status.epsilon": "Epsilon (ε)",
        "status.random": "Random Value",
        "status.strategy": "Strategy",
        "status.iteration": "Iteration",
        "phase.warmup": "🔥 WARMUP",
        "phase.active": "🎯 ACTIVE",
        "strategy.explore": "🎲 EXPLORE",
        "strategy.exploit": "🧠 EXPLOIT",
        "explain.warmup": "Warmup phase: Always exploring randomly",
        "explain.explore": "{draw} < {epsilon} → Explore randomly",
        "explain.exploit": "{draw} ≥ {epsilon} → Exploit best variables",
        "progress.title": "Progress",
        "progress.step": "Step {current} of {total}",
        "current.title": "Current Step",
        "current.complete": (
            "Pipeline complete! The system continues iterating to improve "
            "performance through metalearning."
        ),
        "details.title": "Node Details",
        "legend.title": "Legend",
        "legend.process": "Process",
        "legend.data": "Data Store",
        "legend.decision_exploit": "Decision (Exploit)",
        "legend.decision_explore": "Decision (Explore)",
        "history.title": "Decision History",
        "history.iteration": "Iteration",
        "history.random_draw": "Random",
        "history.phase": "Phase",
        "history.strategy": "Strategy",
        "edge.true": "True",
        "edge.false": "False",
        "edge.embeddings": "Embeddings",
        "edge.forecast_loss": "Forecast Loss",
        "edge.metalearning": "Meta-learning update using forecast performance",
        "stage.database.label": "Full Time Series DB",
        "stage.database.description": (
            "Complete historical time series data repository containing all "
            "available variables and their temporal patterns."
        ),
        "stage.warmup-note.label.warmup": "During warmup: always random",
        "stage.warmup-note.label.active": "After warmup: epsilon-greedy",
        "stage.warmup-note.description.warmup": (
            "During the warmup phase, the system always explores randomly to "
            "gather initial data."
        ),
        "stage.warmup-note.description.active": (
            "After warmup, the system uses epsilon-greedy strategy to balance "
            "exploration and exploitation."
        ),
        "stage.decision.label.lt": "random({draw}) < epsilon?",
        "stage.decision.label.ge": "random({draw}) ≥ epsilon?",
        "stage.decision.description.lt": (
            "Decision point: Random value {draw} is less than epsilon ({epsilon})"
        ),
        "stage.decision.description.ge": (
            "Decision point: Random value {draw} is greater than or equal to "
            "epsilon ({epsilon})"
        ),
        "stage.introspector.label": "Introspector G [Exploit: AI]",
        "stage.introspector.description": (
            "Neural network that learns to select the most informative "
            "variables based on historical performance."
        ),
        "stage.random-picker.label": "Random Variable Picker",
        "stage.random-picker.description": (
            "Randomly selects variables for exploration to discover "
            "potentially useful new combinations."
        ),
        "stage.selected-vars.label": "Selected Variables",
        "stage.selected-vars.description": (
            "The chosen set of variables from either exploitation or "
            "exploration strategy."
        ),
        "stage.embedder.label": "Series Embedder (with Metadata)",
        "stage.embedder.description": (
            "Transforms selected time series variables into dense vector "
            "representations. Obtains: Embeddings of Selected Variables"
        ),
        "stage.forecasting.label": "Forecasting Model (VAR / RF / NN)",
        "stage.forecasting.description": (
            "VAR, Random Forest, or Neural Network model that generates "
            "predictions. Obtained: Forecast Loss"
        ),
        "stage.history.label": "(Embeddings, Loss) → History Log",
        "stage.history.description": (
            "Stores embeddings and forecast loss for each iteration to enable "
            "metalearning updates."
        ),
        "stage.iteration-check.label": "every U iterations?",
        "stage.iteration-check.description": (
            "Periodic check to determine when to perform metalearning updates "
            "to improve the system."
        ),
        "stage.update.label": "Update: Introspector G & Series Embedder",
        "stage.update.description": (
            "Meta-learning update using forecast performance to improve both "
            "components."
        ),
    },
    "es": {
        "app.title": "Flujo de Pronóstico de Series Temporales",
        "app.subtitle": "Selección Guiada de Variables mediante Introspección Recursiva",
        "controls.play": "Reproducir",
        "controls.pause": "Pausar",
        "controls.reset": "Reiniciar",
        "controls.next_iteration": "Siguiente Iteración",
        "controls.language": "Idioma",
        "status.title": "Estado Epsilon-Greedy",
        "status.phase": "Fase",
        "status.epsilon": "Épsilon (ε)",
        "status.random": "Valor Aleatorio",
        "status.strategy": "Estrategia",
        "status.iteration": "Iteración",
        "phase.warmup": "🔥 CALENTAMIENTO",
        "phase.active": "🎯 ACTIVO",
        "strategy.explore": "🎲 EXPLORAR",
        "strategy.exploit": "🧠 EXPLOTAR",
        "explain.warmup": "Fase de calentamiento: siempre explora al azar",
        "explain.explore": "{draw} < {epsilon} → Explorar al azar",
        "explain.exploit": "{draw} ≥ {epsilon} → Explotar las mejores variables",
        "progress.title": "Progreso",
        "progress.step": "Paso {current} de {total}",
        "current.title": "Paso Actual",
        "current.complete": (
            "¡Flujo completo! El sistema sigue iterando para mejorar su "
            "desempeño mediante metaaprendizaje."
        ),
        "details.title": "Detalles del Nodo",
        "legend.title": "Leyenda",
        "legend.process": "Proceso",
        "legend.data": "Almacén de Datos",
        "legend.decision_exploit": "Decisión (Explotar)",
        "legend.decision_explore": "Decisión (Explorar)",
        "history.title": "Historial de Decisiones",
        "history.iteration": "Iteración",
        "history.random_draw": "Aleatorio",
        "history.phase": "Fase",
        "history.strategy": "Estrategia",
        "edge.true": "Verdadero",
        "edge.false": "Falso",
        "edge.embeddings": "Embeddings",
        "edge.forecast_loss": "Pérdida del Pronóstico",
        "edge.metalearning": "Actualización de metaaprendizaje según el desempeño",
        "stage.database.label": "BD Completa de Series Temporales",
        "stage.database.description": (
            "Repositorio histórico completo con todas las variables "
            "disponibles y sus patrones temporales."
        ),
        "stage.warmup-note.label.warmup": "Durante el calentamiento: siempre al azar",
        "stage.warmup-note.label.active": "Tras el calentamiento: epsilon-greedy",
        "stage.warmup-note.description.warmup": (
            "Durante la fase de calentamiento el sistema siempre explora al "
            "azar para reunir datos iniciales."
        ),
        "stage.warmup-note.description.active": (
            "Tras el calentamiento el sistema usa la estrategia epsilon-greedy "
            "para equilibrar exploración y explotación."
        ),
        "stage.decision.label.lt": "¿aleatorio({draw}) < épsilon?",
        "stage.decision.label.ge": "¿aleatorio({draw}) ≥ épsilon?",
        "stage.decision.description.lt": (
            "Punto de decisión: el valor aleatorio {draw} es menor que "
            "épsilon ({epsilon})"
        ),
        "stage.decision.description.ge": (
            "Punto de decisión: el valor aleatorio {draw} es mayor o igual que "
            "épsilon ({epsilon})"
        ),
        "stage.introspector.label": "Introspector G [Explotar: IA]",
        "stage.introspector.description": (
            "Red neuronal que aprende a seleccionar las variables más "
            "informativas según el desempeño histórico."
        ),
        "stage.random-picker.label": "Selector Aleatorio de Variables",
        "stage.random-picker.description": (
            "Selecciona variables al azar para descubrir nuevas combinaciones "
            "potencialmente útiles."
        ),
        "stage.selected-vars.label": "Variables Seleccionadas",
        "stage.selected-vars.description": (
            "El conjunto de variables elegido por la estrategia de explotación "
            "o de exploración."
        ),
        "stage.embedder.label": "Codificador de Series (con Metadatos)",
        "stage.embedder.description": (
            "Transforma las series seleccionadas en representaciones "
            "vectoriales densas. Obtiene: Embeddings de las Variables"
        ),
        "stage.forecasting.label": "Modelo de Pronóstico (VAR / RF / NN)",
        "stage.forecasting.description": (
            "Modelo VAR, Random Forest o Red Neuronal que genera las "
            "predicciones. Obtiene: Pérdida del Pronóstico"
        ),
        "stage.history.label": "(Embeddings, Pérdida) → Registro Histórico",
        "stage.history.description": (
            "Guarda los embeddings y la pérdida de cada iteración para las "
            "actualizaciones de metaaprendizaje."
        ),
        "stage.iteration-check.label": "¿cada U iteraciones?",
        "stage.iteration-check.description": (
            "Verificación periódica para decidir cuándo aplicar las "
            "actualizaciones de metaaprendizaje."
        ),
        "stage.update.label": "Actualizar: Introspector G y Codificador",
        "stage.update.description": (
            "Actualización de metaaprendizaje según el desempeño del "
            "pronóstico para mejorar ambos componentes."
        ),
    },
}


def _warmup_variant(state: EngineState) -> str:
    return "warmup" if state.is_warmup else "active"


def _comparison_variant(state: EngineState) -> str:
    return "lt" if state.random_draw < state.epsilon else "ge"


# Stages whose text depends on the engine state pick a key suffix here.
_STAGE_VARIANTS: dict[str, Callable[[EngineState], str]] = {
    "warmup-note": _warmup_variant,
    "decision": _comparison_variant,
}


def normalize_locale(locale: str | None) -> str:
    if locale is None:
        return DEFAULT_LOCALE
    code = locale.strip().lower()[:2]
    return code if code in TEXT else DEFAULT_LOCALE


class LocaleProvider:
    """Key -> string lookup for one locale, falling back to English."""

    def __init__(self, locale: str | None = DEFAULT_LOCALE) -> None:
        self.locale = normalize_locale(locale)

    def text(self, key: str, **values: Any) -> str:
        template = TEXT[self.locale].get(key)
        if template is None:
            template = TEXT[DEFAULT_LOCALE].get(key, key)
        return template.format(**values) if values else template

    @staticmethod
    def state_values(state: EngineState) -> dict[str, Any]:
        return {
            "draw": f"{state.random_draw:.3f}",
            "epsilon": f"{state.epsilon:g}",
            "epsilon_pct": f"{state.epsilon * 100:.0f}%",
            "iteration": state.iteration_count,
        }

    def _stage_key(self, stage_id: str, part: str, state: EngineState) -> str:
        key = f"stage.{stage_id}.{part}"
        variant = _STAGE_VARIANTS.get(stage_id)
        if variant is not None:
            key = f"{key}.{variant(state)}"
        return key

    def stage_label(self, stage_id: str, state: EngineState) -> str:
        return self.text(
            self._stage_key(stage_id, "label", state), **self.state_values(state)
        )

    def stage_description(self, stage_id: str, state: EngineState) -> str:
        return self.text(
            self._stage_key(stage_id, "description", state),
            **self.state_values(state),
        )

    def edge_label(self, edge: Edge) -> str | None:
        if edge.label is None:
            return None
        return self.text(edge.label)
