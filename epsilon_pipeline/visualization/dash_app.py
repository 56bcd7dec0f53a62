"""Interactive Dash UI for the epsilon-greedy pipeline sequencer.

Run with:
    python -m epsilon_pipeline.visualization.dash_app

Opens at http://127.0.0.1:7860
"""

from __future__ import annotations

import ipaddress
from typing import Any

import numpy as np
import pandas as pd
import plotly.graph_objects as go

import dash
from dash import dcc, html, ctx, dash_table, Input, Output, State, no_update
from flask import request
from loguru import logger

from ..config import AppConfig
from ..i18n.locale import LOCALES, LocaleProvider
from ..i18n.region import detect_locale, make_preference, resolve_locale
from ..logs import configure_logging
from ..simulation.engine import SequencerEngine
from ..simulation.pipeline import forecasting_pipeline
from ..simulation.scheduler import PlaybackController
from .view_model import EDGE_ACTIVE, EDGE_IDLE, PALETTE, build_view

# ═══════════════════════════════════════════════════════════════════════
#  Dark plotly theme
# ═══════════════════════════════════════════════════════════════════════

_LAYOUT_DEFAULTS = dict(
    template="plotly_dark",
    paper_bgcolor="#0a0a0f",
    plot_bgcolor="#0a0a0f",
    font=dict(family="Inter, -apple-system, sans-serif", color="#e8eaed"),
    margin=dict(l=20, r=20, t=20, b=20),
    height=900,
    uirevision="stable",
)

_SYMBOLS = {"data": "square", "process": "circle", "decision": "diamond", "terminal": "hexagon"}

# Arrow ends stop short of the marker centre, in diagram pixels.
_ARROW_INSET = 34.0


# ═══════════════════════════════════════════════════════════════════════
#  Plotly rendering helpers
# ═══════════════════════════════════════════════════════════════════════


def _edge_annotations(view: dict[str, Any]) -> list[dict[str, Any]]:
    pos = {s["id"]: np.array([s["x"], s["y"]]) for s in view["stages"]}
    notes: list[dict[str, Any]] = []
    for edge in view["edges"]:
        a, b = pos[edge["from"]], pos[edge["to"]]
        delta = b - a
        length = float(np.linalg.norm(delta))
        if length > 2 * _ARROW_INSET:
            unit = delta / length
            a, b = a + unit * _ARROW_INSET, b - unit * _ARROW_INSET
        color = EDGE_ACTIVE if edge["active"] else EDGE_IDLE
        notes.append(dict(
            x=float(b[0]), y=float(b[1]), ax=float(a[0]), ay=float(a[1]),
            xref="x", yref="y", axref="x", ayref="y",
            showarrow=True, arrowhead=2, arrowsize=1.2,
            arrowwidth=3 if edge["active"] else 1.5,
            arrowcolor=color, text="",
        ))
        if edge["label"]:
            mid = (a + b) / 2
            notes.append(dict(
                x=float(mid[0]), y=float(mid[1]), xref="x", yref="y",
                showarrow=False, text=edge["label"], yshift=10,
                font=dict(size=11, color=color),
            ))
    return notes


def _diagram_figure(view: dict[str, Any]) -> go.Figure:
    stages = view["stages"]
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=[s["x"] for s in stages],
            y=[s["y"] for s in stages],
            mode="markers+text",
            marker=dict(
                size=[44 if s["role"] == "decision" else 38 for s in stages],
                symbol=[_SYMBOLS.get(s["role"], "circle") for s in stages],
                color=[s["fill"] for s in stages],
                line=dict(
                    width=[4 if s["selected"] else 2 for s in stages],
                    color=[s["border"] for s in stages],
                ),
                opacity=[1.0 if s["active"] else 0.35 for s in stages],
            ),
            text=[s["label"] for s in stages],
            textposition="middle right",
            textfont=dict(
                size=12,
                color=["#e8eaed" if s["active"] else "#5f6368" for s in stages],
            ),
            customdata=[s["id"] for s in stages],
            hovertext=[f"<b>{s['label']}</b><br>{s['description']}" for s in stages],
            hoverinfo="text",
            showlegend=False,
        )
    )
    fig.update_layout(
        annotations=_edge_annotations(view),
        xaxis=dict(range=[100, 900], visible=False, fixedrange=True),
        yaxis=dict(range=[1110, 0], visible=False, fixedrange=True),
        clickmode="event",
        **_LAYOUT_DEFAULTS,
    )
    return fig


# ═══════════════════════════════════════════════════════════════════════
#  Side panels
# ═══════════════════════════════════════════════════════════════════════


def _row(label: str, value: str, class_name: str = "") -> html.Div:
    return html.Div([
        html.Span(label, className="status-label"),
        html.Span(value, className=f"status-badge {class_name}".strip()),
    ], className="status-row")


def _status_panel(view: dict[str, Any], text: LocaleProvider) -> list[Any]:
    st = view["status"]
    return [
        html.Div(text.text("status.title"), className="section-card-header"),
        _row(text.text("status.phase"), st["phase"], "warm" if st["is_warmup"] else "ok"),
        _row(text.text("status.epsilon"), st["epsilon"]),
        _row(text.text("status.random"), st["random_draw"],
             "ok" if st["draw_below_epsilon"] else "info"),
        _row(text.text("status.strategy"), st["strategy"],
             "ok" if st["is_exploring"] else "info"),
        _row(text.text("status.iteration"), str(st["iteration"])),
        html.Div(st["explanation"], className="status-note"),
    ]


def _progress_panel(view: dict[str, Any], text: LocaleProvider) -> list[Any]:
    progress = view["status"]["progress"]
    return [
        html.Div(text.text("progress.title"), className="section-card-header"),
        html.Div([
            html.Span(progress["text"]),
            html.Span(f"{progress['percent']}%"),
        ], className="status-row"),
        html.Div(
            html.Div(className="progress-fill", style={"width": f"{progress['percent']}%"}),
            className="progress-track",
        ),
    ]


def _current_panel(view: dict[str, Any], text: LocaleProvider) -> list[Any]:
    current = view["current"]
    children: list[Any] = [html.Div(text.text("current.title"), className="section-card-header")]
    if current["label"]:
        children.append(html.Div(current["label"], className="round-badge"))
    children.append(html.P(current["description"], className="panel-text"))
    return children


def _details_panel(view: dict[str, Any], text: LocaleProvider) -> tuple[list[Any], dict]:
    selected = view["selected"]
    if selected is None:
        return [], {"display": "none"}
    return [
        html.Div(text.text("details.title"), className="section-card-header"),
        html.Div(selected["label"], className="round-badge"),
        html.P(selected["description"], className="panel-text"),
    ], {}


def _legend_panel(text: LocaleProvider) -> list[Any]:
    entries = [
        ("legend.process", PALETTE["process"][0]),
        ("legend.data", PALETTE["data"][0]),
        ("legend.decision_exploit", PALETTE["exploit"][0]),
        ("legend.decision_explore", PALETTE["explore"][0]),
    ]
    return [html.Div(text.text("legend.title"), className="section-card-header")] + [
        html.Div([
            html.Span(className="legend-swatch", style={"background": color}),
            html.Span(text.text(key)),
        ], className="legend-row")
        for key, color in entries
    ]


def _history_table(engine: SequencerEngine, text: LocaleProvider) -> tuple[list[dict], list[dict]]:
    frame: pd.DataFrame = engine.history_frame()
    table = pd.DataFrame({
        "iteration": frame["iteration"],
        "random_draw": frame["random_draw"].map(lambda v: f"{v:.3f}"),
        "phase": frame["is_warmup"].map(
            lambda w: text.text("phase.warmup" if w else "phase.active")),
        "strategy": frame["is_exploring"].map(
            lambda e: text.text("strategy.explore" if e else "strategy.exploit")),
    })
    columns = [{"name": text.text(f"history.{c}"), "id": c} for c in table.columns]
    return table.iloc[::-1].to_dict("records"), columns


def _clicked_stage(click_data: dict | None) -> str | None:
    if not click_data or not click_data.get("points"):
        return None
    return click_data["points"][0].get("customdata")


def _client_ip() -> str | None:
    """Public address of the browser, or ``None`` to let the lookup use ours."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    candidate = forwarded.split(",")[0].strip() or request.remote_addr
    if not candidate:
        return None
    try:
        addr = ipaddress.ip_address(candidate)
    except ValueError:
        return None
    if addr.is_private or addr.is_loopback:
        return None
    return candidate


# ═══════════════════════════════════════════════════════════════════════
#  Styles
# ═══════════════════════════════════════════════════════════════════════

_INDEX_STRING = """<!DOCTYPE html>
<html>
<head>
    {%metas%}
    <title>{%title%}</title>
    {%favicon%}
    {%css%}
    <link rel="preconnect" href="https://fonts.googleapis.com">
    <link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>
    <link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap" rel="stylesheet">
    <style>
        :root {
            --bg-base: #0a0a0f;
            --bg-surface: rgba(15, 15, 25, 0.8);
            --bg-elevated: rgba(25, 25, 45, 0.6);
            --bg-hover: rgba(40, 40, 70, 0.5);
            --glass-border: rgba(255, 255, 255, 0.08);
            --glass-border-hover: rgba(255, 255, 255, 0.15);
            --text-primary: #e8eaed;
            --text-secondary: #9aa0a6;
            --text-muted: #5f6368;
            --accent: #7c5cfc;
            --accent-green: #34d399;
            --accent-red: #f87171;
            --accent-blue: #60a5fa;
            --accent-amber: #fbbf24;
            --radius-md: 12px;
            --radius-lg: 16px;
            --shadow-md: 0 4px 16px rgba(0,0,0,0.4);
            --transition: 0.2s cubic-bezier(0.4, 0, 0.2, 1);
        }
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            background: var(--bg-base); color: var(--text-primary);
            font-family: 'Inter', -apple-system, BlinkMacSystemFont, sans-serif;
            line-height: 1.6; -webkit-font-smoothing: antialiased;
        }

        /* ── Sidebar ── */
        .sidebar {
            position: fixed; top: 0; right: 0; bottom: 0; width: 340px;
            background: var(--bg-surface);
            backdrop-filter: blur(24px); -webkit-backdrop-filter: blur(24px);
            border-left: 1px solid var(--glass-border);
            padding: 24px 20px; overflow-y: auto;
        }

        /* ── Main area ── */
        .main-area { margin-right: 340px; padding: 24px 32px; }
        .main-area h1 {
            font-size: 1.8em; font-weight: 700; letter-spacing: -0.02em;
            background: linear-gradient(135deg, #f87171, #fbbf24);
            -webkit-background-clip: text; -webkit-text-fill-color: transparent;
            background-clip: text;
        }
        .subtitle { color: var(--text-secondary); }

        /* ── Buttons ── */
        .control-bar { display: flex; gap: 10px; margin: 16px 0; flex-wrap: wrap; align-items: center; }
        .control-bar button {
            padding: 10px 20px;
            border: 1px solid var(--glass-border); border-radius: var(--radius-md);
            background: var(--bg-elevated); color: var(--text-secondary); cursor: pointer;
            font-family: 'Inter', sans-serif; font-size: 0.85em; font-weight: 500;
            min-width: 88px; transition: all var(--transition);
        }
        .control-bar button:hover {
            background: var(--bg-hover); border-color: var(--glass-border-hover);
            transform: translateY(-2px); box-shadow: var(--shadow-md);
            color: var(--text-primary);
        }
        .control-bar button.primary {
            background: linear-gradient(135deg, #059669, #34d399);
            border-color: rgba(52,211,153,0.3); color: #fff; font-weight: 600;
        }
        .control-bar button.danger {
            background: linear-gradient(135deg, #dc2626, #f87171);
            border-color: rgba(248,113,113,0.3); color: #fff; font-weight: 600;
        }

        /* ── Cards ── */
        .section-card {
            background: var(--bg-elevated); border: 1px solid var(--glass-border);
            border-radius: var(--radius-lg); padding: 14px 16px; margin-bottom: 14px;
        }
        .section-card-header {
            font-size: 0.7em; color: var(--text-muted); text-transform: uppercase;
            letter-spacing: 0.12em; font-weight: 600; margin-bottom: 8px;
        }
        .status-row { display: flex; justify-content: space-between; align-items: center;
                      font-size: 0.85em; margin: 4px 0; }
        .status-label { color: var(--text-secondary); }
        .status-badge { padding: 2px 10px; border-radius: 999px; background: var(--bg-hover); }
        .status-badge.ok { color: var(--accent-green); }
        .status-badge.info { color: var(--accent-blue); }
        .status-badge.warm { color: var(--accent-amber); }
        .status-note { font-size: 0.75em; color: var(--text-secondary); margin-top: 8px;
                       padding: 6px 8px; background: var(--bg-hover); border-radius: 8px; }
        .progress-track { height: 10px; border-radius: 999px; background: var(--bg-hover); overflow: hidden; }
        .progress-fill { height: 100%; background: linear-gradient(90deg, #f87171, #fbbf24);
                         transition: width 0.5s ease; }
        .round-badge {
            display: inline-flex; padding: 4px 12px; margin: 4px 0;
            background: var(--bg-hover); border: 1px solid var(--glass-border);
            border-radius: 999px; color: var(--accent-red); font-weight: 600; font-size: 0.8em;
        }
        .panel-text { font-size: 0.8em; color: var(--text-secondary); }
        .legend-row { display: flex; gap: 8px; align-items: center; font-size: 0.8em; margin: 3px 0; }
        .legend-swatch { width: 14px; height: 14px; border-radius: 4px; display: inline-block; }
    </style>
</head>
<body>
    {%app_entry%}
    <footer>
        {%config%}
        {%scripts%}
        {%renderer%}
    </footer>
</body>
</html>
"""


# ═══════════════════════════════════════════════════════════════════════
#  Page layout
# ═══════════════════════════════════════════════════════════════════════


def _layout(config: AppConfig, text: LocaleProvider) -> html.Div:
    return html.Div([
        dcc.Location(id="url", refresh=False),

        # ── Main area ────────────────────────────────────────────────
        html.Div([
            html.H1(text.text("app.title"), id="app-title"),
            html.P(text.text("app.subtitle"), id="app-subtitle", className="subtitle"),

            html.Div([
                html.Button(text.text("controls.play"), id="btn-play", className="primary", n_clicks=0),
                html.Button(text.text("controls.reset"), id="btn-reset", className="danger", n_clicks=0),
                html.Button(text.text("controls.next_iteration"), id="btn-next", n_clicks=0),
                dcc.RadioItems(
                    id="locale-selector",
                    options=[{"label": code.upper(), "value": code} for code in LOCALES],
                    value=config.default_locale,
                    inline=True,
                    style={"color": "#9aa0a6", "marginLeft": "12px"},
                ),
            ], className="control-bar"),

            dcc.Graph(id="diagram", config={"displayModeBar": False}),
        ], className="main-area"),

        # ── Sidebar ──────────────────────────────────────────────────
        html.Div([
            html.Div(id="status-panel", className="section-card"),
            html.Div(id="progress-panel", className="section-card"),
            html.Div(id="current-panel", className="section-card"),
            html.Div(id="details-panel", className="section-card", style={"display": "none"}),
            html.Div(id="legend-panel", className="section-card"),
            html.Div(className="section-card", children=[
                html.Div(text.text("history.title"), id="history-title",
                         className="section-card-header"),
                dash_table.DataTable(
                    id="history-table",
                    columns=[],
                    data=[],
                    style_table={"overflowX": "auto"},
                    style_cell={"textAlign": "center", "padding": "4px 8px",
                                "fontSize": "0.8em", "backgroundColor": "#14141f",
                                "color": "#e8eaed"},
                    style_header={"backgroundColor": "#1c1c2e", "fontWeight": "600"},
                    page_size=8,
                ),
            ]),
        ], className="sidebar"),

        # Hidden components
        dcc.Interval(id="tick-interval", interval=config.tick_interval_ms, disabled=True),
        dcc.Store(id="locale-pref", storage_type="local"),
    ])


# ═══════════════════════════════════════════════════════════════════════
#  App factory + callbacks
# ═══════════════════════════════════════════════════════════════════════


def create_app(
    config: AppConfig | None = None,
    controller: PlaybackController | None = None,
) -> dash.Dash:
    """Build the Dash app around one playback controller.

    The browser-side ``dcc.Interval`` is the tick scheduler here: it is
    enabled only while the engine runs, so pausing, resetting or finishing
    a run releases it.
    """
    config = config or AppConfig()
    if controller is None:
        engine = SequencerEngine(
            forecasting_pipeline(),
            config.epsilon,
            warmup_iterations=config.warmup_iterations,
        )
        controller = PlaybackController(engine)

    app = dash.Dash(
        __name__,
        title="Epsilon-Greedy Pipeline",
        suppress_callback_exceptions=True,
    )
    app.index_string = _INDEX_STRING
    app.layout = _layout(config, LocaleProvider(config.default_locale))

    # ── CB0: Locale from cache or region lookup ──────────────────────

    @app.callback(
        Output("locale-selector", "value"),
        Output("locale-pref", "data"),
        Input("url", "pathname"),
        State("locale-pref", "data"),
    )
    def init_locale(_pathname, stored):
        def detect() -> str:
            return detect_locale(
                _client_ip(),
                url=config.region_lookup_url,
                timeout=config.region_lookup_timeout,
            )

        lang, record = resolve_locale(stored, detect, max_age_days=config.locale_cache_days)
        return lang, (no_update if record == stored else record)

    # ── CB1: Explicit locale choice ──────────────────────────────────

    @app.callback(
        Output("locale-pref", "data", allow_duplicate=True),
        Input("locale-selector", "value"),
        State("locale-pref", "data"),
        prevent_initial_call=True,
    )
    def save_locale(lang, stored):
        if stored and stored.get("lang") == lang:
            return no_update
        return make_preference(lang)

    # ── CB2: Playback + render ───────────────────────────────────────

    @app.callback(
        Output("diagram", "figure"),
        Output("status-panel", "children"),
        Output("progress-panel", "children"),
        Output("current-panel", "children"),
        Output("details-panel", "children"),
        Output("details-panel", "style"),
        Output("legend-panel", "children"),
        Output("history-table", "data"),
        Output("history-table", "columns"),
        Output("tick-interval", "disabled"),
        Output("btn-play", "children"),
        Output("btn-reset", "children"),
        Output("btn-next", "children"),
        Output("app-title", "children"),
        Output("app-subtitle", "children"),
        Output("history-title", "children"),
        Input("btn-play", "n_clicks"),
        Input("btn-reset", "n_clicks"),
        Input("btn-next", "n_clicks"),
        Input("tick-interval", "n_intervals"),
        Input("diagram", "clickData"),
        Input("locale-selector", "value"),
    )
    def playback(_play, _reset, _next, _ticks, click_data, lang):
        triggered = ctx.triggered_id
        if triggered == "btn-play":
            controller.toggle()
        elif triggered == "btn-reset":
            controller.reset()
        elif triggered == "btn-next":
            controller.next_iteration()
        elif triggered == "tick-interval":
            controller.tick()
        elif triggered == "diagram":
            stage_id = _clicked_stage(click_data)
            if stage_id is not None:
                controller.select_stage(stage_id)

        text = LocaleProvider(lang)
        state = controller.state
        view = build_view(controller.engine, text, state)
        details, details_style = _details_panel(view, text)
        rows, columns = _history_table(controller.engine, text)
        return (
            _diagram_figure(view),
            _status_panel(view, text),
            _progress_panel(view, text),
            _current_panel(view, text),
            details, details_style,
            _legend_panel(text),
            rows, columns,
            not state.is_running,
            text.text("controls.pause" if state.is_running else "controls.play"),
            text.text("controls.reset"),
            text.text("controls.next_iteration"),
            text.text("app.title"),
            text.text("app.subtitle"),
            text.text("history.title"),
        )

    return app


# ═══════════════════════════════════════════════════════════════════════
#  Entry point
# ═══════════════════════════════════════════════════════════════════════


def main() -> None:
    config = AppConfig.from_env()
    configure_logging(config.log_level)
    app = create_app(config)
    logger.info("Serving on {}:{} (epsilon={})", config.host, config.port, config.epsilon)
    app.run(host=config.host, debug=config.debug, port=config.port)


if __name__ == "__main__":
    main()
