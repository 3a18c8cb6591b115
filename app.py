#File: app.py
"""
Atmos - Main Dash Application

This file defines the user interface (UI) and server-side logic for the Atmos
air-quality dashboard. A user searches a city (with autocomplete) or shares
their location; the dashboard then shows the AQI gauge, weather context,
activity guidance, pollutant breakdown and health advice, and an AI assistant
answers follow-up questions.

The application is structured as follows:
- Imports: Loads all necessary libraries and backend functions.
- App Initialization: Sets up the Dash app instance.
- App Layout: Defines the HTML and Dash component structure (built per page load).
- Rendering Helpers: Build the widgets from an AqiData object.
- Callbacks: Make the dashboard dynamic and interactive.
"""

# --- Core Libraries ---
import logging
import math
import os
import uuid

import dash
from dash import ALL, ClientsideFunction, Input, Output, State, ctx, dcc, html, no_update
from dash.exceptions import PreventUpdate
import dash_svg
import pandas as pd
import plotly.graph_objects as go

# --- Import Backend Functions & Project Modules ---
# Importing atmos.config_loader (indirectly) also configures logging and loads .env.
from atmos.api_integration.gemini_client import (
    fetch_aqi_for_city,
    fetch_aqi_for_location,
    fetch_city_suggestions,
)
from atmos.assistant import (
    SUGGESTED_QUESTIONS,
    build_welcome_message,
    handle_user_message,
    refresh_welcome,
    should_offer_suggestions,
)
from atmos.autocomplete import DEBOUNCE_MS, MIN_QUERY_LENGTH, SEARCHING_TEXT, AutocompleteRegistry
from atmos.config_loader import get_setting
from atmos.exceptions import AqiFetchError
from atmos.health_rules.activity import get_activity_guidance
from atmos.health_rules.info import AQI_DEFINITION, AQI_SCALE, get_aqi_info, get_level_color
from atmos.health_rules.pollutants import get_pollutant_description, get_pollutant_status
from atmos.models import AqiData, ChatMessage
from atmos.recent import add_to_recent, clear_recent

log = logging.getLogger(__name__)

# --- Application Configuration ---
APP_TITLE = get_setting('app', 'title', 'Atmos')

CITY_ERROR = "Unable to retrieve AQI data. Please check the city name or try again later."
LOCATION_ERROR = "Unable to retrieve AQI data for your location."
GEOLOCATION_ERRORS = {
    'unsupported': "Geolocation is not supported by your browser.",
    'denied': "Location permission denied. Please enable location services or search by city name.",
}
GEOLOCATION_DEFAULT_ERROR = "Unable to retrieve your location."

autocomplete_sessions = AutocompleteRegistry()

# --- Initialize Dash App ---
app = dash.Dash(__name__, assets_folder='assets', suppress_callback_exceptions=True)
app.title = APP_TITLE
server = app.server


# --- App Layout Definition ---
def serve_layout():
    """Builds the layout; a fresh session id per page load keys the autocomplete state."""
    return html.Div(id='app-shell', className="app-shell theme-dark", children=[
        dcc.Store(id='session-id', data=str(uuid.uuid4())),
        dcc.Store(id='recent-searches-store', storage_type='local', data=[]),
        dcc.Store(id='theme-store', storage_type='local', data='dark'),
        dcc.Store(id='geo-store'),
        dcc.Store(id='debounced-query'),
        dcc.Store(id='autocomplete-settings', data={
            'debounceMs': DEBOUNCE_MS, 'minLength': MIN_QUERY_LENGTH, 'searchingText': SEARCHING_TEXT,
        }),
        dcc.Store(id='chat-store', data=[build_welcome_message().to_dict()]),

        # 1. Theme toggle
        html.Button("☀", id='theme-toggle', className="theme-toggle", title="Toggle light/dark mode"),

        # 2. Header with search bar
        html.Header(className="page-header", children=[
            html.H1(APP_TITLE, className="brand-title"),
            html.P("Monitor air quality in real-time. Protect your health with accurate data "
                   "and actionable insights for any location.", className="brand-tagline"),
            html.Div(className="search-bar", children=[
                html.Div(className="search-input-row", children=[
                    dcc.Input(
                        id='city-input',
                        type='text',
                        placeholder="Search for a city...",
                        debounce=False,
                        autoComplete='off',
                        className="city-input",
                    ),
                    html.Button("✕", id='clear-input-button', className="clear-input-button hidden",
                                title="Clear search"),
                    html.Button("Search", id='search-button', className="search-button"),
                    html.Button("📍", id='locate-button', className="locate-button",
                                title="Use my location"),
                ]),
                html.Ul(id='suggestions-list', className="suggestions-list hidden"),
                html.Div(id='suggestion-status', className="suggestion-status"),
                html.Div(id='recent-searches', className="recent-searches"),
            ]),
        ]),

        # 3. Main content (stores inside the Loading wrapper so fetches show a spinner)
        dcc.Loading(type='circle', className="content-loading", children=[
            dcc.Store(id='aqi-data-store'),
            dcc.Store(id='error-store'),
            html.Div(id='dashboard-content', className="dashboard-content"),
        ]),

        # 4. AI assistant
        html.Button("💬", id='chat-toggle', className="chat-toggle", title="Ask Atmos AI"),
        html.Div(id='chat-panel', className="chat-panel hidden", children=[
            html.Div(className="chat-header", children=[
                html.Div([html.H3("Atmos AI"), html.P("Air quality assistant", className="chat-subtitle")]),
                html.Button("✕", id='chat-close', className="chat-close"),
            ]),
            html.Div(id='chat-messages', className="chat-messages"),
            html.Div("Atmos AI is typing...", id='chat-typing', className="chat-typing hidden"),
            html.Div(id='chat-suggestions', className="chat-suggestions"),
            html.Div(className="chat-input-row", children=[
                dcc.Input(id='chat-input', type='text', placeholder="Ask about air quality...",
                          autoComplete='off', className="chat-input"),
                html.Button("➤", id='chat-send', className="chat-send"),
            ]),
        ]),
    ])


app.layout = serve_layout


# --- Rendering Helpers ---

def describe_arc(x, y, radius, start_angle_deg, end_angle_deg):
    """SVG path for a circular arc drawn clockwise from start to end angle."""
    start_rad = math.radians(start_angle_deg)
    end_rad = math.radians(end_angle_deg)
    start_x = x + radius * math.cos(start_rad)
    start_y = y + radius * math.sin(start_rad)
    end_x = x + radius * math.cos(end_rad)
    end_y = y + radius * math.sin(end_rad)
    angle_diff = end_angle_deg - start_angle_deg
    if angle_diff < 0: angle_diff += 360
    large_arc_flag = "1" if angle_diff > 180 else "0"
    return f"M {start_x} {start_y} A {radius} {radius} 0 {large_arc_flag} 1 {end_x} {end_y}"


def format_timestamp(iso_string):
    if not iso_string:
        return "Time N/A"
    try:
        return pd.to_datetime(iso_string).strftime('%I:%M %p, %b %d')
    except (ValueError, TypeError):
        return str(iso_string)


def _display_value(value, suffix=""):
    return f"{value}{suffix}" if value is not None else "-"


def build_aqi_gauge(data):
    category_info = get_aqi_info(data.aqi) or {}
    aqi_color = category_info.get('color', get_level_color(data.level))

    max_aqi_on_scale = 500.0
    current_aqi_clamped = max(0, min(float(data.aqi), max_aqi_on_scale))
    percentage = current_aqi_clamped / max_aqi_on_scale

    gauge_start_angle_deg = -225
    gauge_total_sweep_deg = 270
    value_end_angle_deg = gauge_start_angle_deg + (percentage * gauge_total_sweep_deg)

    viewbox_size = 280
    center_xy = viewbox_size / 2
    radius = 115
    stroke_width = 22

    background_arc_path = describe_arc(center_xy, center_xy, radius, gauge_start_angle_deg,
                                       gauge_start_angle_deg + gauge_total_sweep_deg)
    foreground_arc_path = describe_arc(center_xy, center_xy, radius, gauge_start_angle_deg, value_end_angle_deg)

    return html.Div(className="widget-card aqi-card", children=[
        html.H2(data.city, className="aqi-city-name"),
        html.Div(className="aqi-gauge-svg-container", children=[
            dash_svg.Svg(viewBox=f"0 0 {viewbox_size} {viewbox_size}", className="aqi-svg-gauge", children=[
                dash_svg.Path(d=background_arc_path, className="aqi-gauge-track", style={'strokeWidth': stroke_width}),
                dash_svg.Path(d=foreground_arc_path, className="aqi-gauge-value",
                              style={'stroke': aqi_color, 'strokeWidth': stroke_width}),
                dash_svg.Text(f"{data.aqi}", x="50%", y="44%", dy=".1em", className="aqi-gauge-value-text"),
                dash_svg.Text(data.level.value, x="50%", y="64%", dy=".1em", className="aqi-gauge-level-text"),
            ]),
        ]),
        html.P(f"Dominant pollutant: {data.dominant_pollutant}", className="aqi-dominant"),
        html.P(category_info.get('implications', ''), className="aqi-implications"),
        html.P(f"Last Updated: {format_timestamp(data.last_updated)}", className="aqi-obs-time"),
    ])


def build_weather_card(data):
    return html.Div(className="widget-card weather-card", children=[
        html.H3("Weather"),
        html.Div(className="weather-grid", children=[
            html.Div([html.Span("Temperature", className="weather-label"),
                      html.Strong(_display_value(data.temperature, "°C"))], className="weather-item"),
            html.Div([html.Span("Humidity", className="weather-label"),
                      html.Strong(_display_value(data.humidity, " %"))], className="weather-item"),
            html.Div([html.Span("UV Index", className="weather-label"),
                      html.Strong(_display_value(data.uv_index))], className="weather-item"),
        ]),
    ])


def build_activity_guide(aqi_value):
    return html.Div(className="activity-guide", children=[
        html.Div(className=f"activity-card status-{card['status']}", children=[
            html.Span(card['icon'], className="activity-icon"),
            html.Span(card['label'], className="activity-label"),
            html.Strong(card['text'], className="activity-text"),
        ]) for card in get_activity_guidance(aqi_value)
    ])


def create_placeholder_figure(message_text, height=320):
    fig = go.Figure()
    fig.update_layout(annotations=[dict(text=message_text, showarrow=False, font=dict(size=14))],
                      xaxis_visible=False, yaxis_visible=False,
                      plot_bgcolor='rgba(0,0,0,0)', paper_bgcolor='rgba(0,0,0,0)', height=height)
    return fig


def build_pollutant_figure(pollutants):
    if not pollutants:
        return create_placeholder_figure("No pollutant breakdown available")

    names, values, colors, hover_texts = [], [], [], []
    for pollutant in pollutants:
        status = get_pollutant_status(pollutant.name, pollutant.value)
        names.append(pollutant.name)
        values.append(pollutant.value)
        colors.append(status['color'])
        hover_texts.append(
            f"<b>{pollutant.name}</b>: {pollutant.value} {pollutant.unit}<br>"
            f"{status['level']} (safe limit {status['safe']})<br>"
            f"{get_pollutant_description(pollutant.name, pollutant.description)}"
        )

    fig = go.Figure(data=[go.Bar(
        x=values, y=names, orientation='h', marker_color=colors,
        text=[f"{v}" for v in values], textposition='outside',
        hovertext=hover_texts, hovertemplate="%{hovertext}<extra></extra>",
    )])
    fig.update_layout(height=320, margin=dict(l=70, r=40, t=10, b=30),
                      plot_bgcolor='rgba(0,0,0,0)', paper_bgcolor='rgba(0,0,0,0)',
                      yaxis=dict(autorange='reversed'), showlegend=False)
    fig.update_xaxes(showgrid=True, gridwidth=1, gridcolor='rgba(148,163,184,0.2)', tickfont_size=10)
    return fig


def build_info_card(data):
    source_items = []
    for url in data.source_urls:
        label = url.split('//')[-1].split('/')[0].replace('www.', '')
        source_items.append(html.Li(html.A(label, href=url, target="_blank", rel="noopener noreferrer")))
    return html.Div(className="widget-card info-card", children=[
        html.H3("Health Advice"),
        html.P(data.health_advice, className="health-advice"),
        html.H4("Sources", className="sources-title") if source_items else None,
        html.Ul(source_items, className="sources-list") if source_items else None,
    ])


def build_scale_legend():
    return html.Details(className="widget-card scale-legend", children=[
        html.Summary("About the AQI scale"),
        dcc.Markdown(AQI_DEFINITION, className="aqi-definition-markdown"),
        html.Div(className="aqi-scale-container", children=[
            html.Div(
                className="aqi-category-card",
                style={'borderColor': category['color'], 'backgroundColor': f"{category['color']}20"},
                children=[
                    html.Strong(f"{category['level'].value} ", className="aqi-category-level"),
                    html.Span(f"({category['range']})", className="aqi-category-range"),
                    html.P(category['implications'], className="aqi-category-implications"),
                ],
            ) for category in AQI_SCALE
        ]),
    ])


def build_dashboard(data):
    return html.Div(className="dashboard", children=[
        html.Div(className="top-row", children=[build_aqi_gauge(data), build_weather_card(data)]),
        build_activity_guide(data.aqi),
        html.Div(className="bottom-row", children=[
            html.Div(className="widget-card pollutant-card", children=[
                html.H3("Pollutant Breakdown"),
                dcc.Graph(figure=build_pollutant_figure(data.pollutants),
                          config={'responsive': True, 'displayModeBar': False}),
            ]),
            build_info_card(data),
        ]),
        build_scale_legend(),
        html.P(["Data retrieved for ", html.Strong(data.city), ". Cached locally."], className="page-footer"),
    ])


def build_empty_state():
    return html.Div(className="empty-state", children=[
        html.Div("📍", className="empty-state-icon"),
        html.P("Ready to scout the skies.", className="empty-state-text"),
    ])


# --- Callbacks ---

app.clientside_callback(
    ClientsideFunction(namespace='atmos', function_name='debounceQuery'),
    Output('debounced-query', 'data'),
    Input('city-input', 'value'),
    State('autocomplete-settings', 'data'),
    prevent_initial_call=True,
)


app.clientside_callback(
    ClientsideFunction(namespace='atmos', function_name='cancelDebounce'),
    Output('debounced-query', 'data', allow_duplicate=True),
    Input('city-input', 'n_submit'),
    Input('search-button', 'n_clicks'),
    Input('clear-input-button', 'n_clicks'),
    Input({'type': 'suggestion', 'index': ALL}, 'n_clicks'),
    prevent_initial_call=True,
)


def render_suggestion_items(suggestions):
    # Ids are list positions; two cities may share a display name.
    return [
        html.Li(html.Button(
            [html.Span(s.name, className="suggestion-name"),
             html.Span(f"AQI {s.aqi}" if s.aqi is not None else "", className="suggestion-aqi")],
            id={'type': 'suggestion', 'index': i}, className="suggestion-item"))
        for i, s in enumerate(suggestions)
    ]


@app.callback(
    Output('suggestions-list', 'children'),
    Output('suggestions-list', 'className'),
    Output('suggestion-status', 'children'),
    Input('debounced-query', 'data'),
    State('session-id', 'data'),
    prevent_initial_call=True,
)
def update_suggestions(query_data, session_id):
    """Looks up autocomplete suggestions for the debounced query; stale answers are dropped."""
    tracker = autocomplete_sessions.get(session_id)
    query = tracker.on_input((query_data or {}).get('value'))
    if query is None:
        return [], "suggestions-list hidden", ""

    request_id = tracker.begin_request()
    try:
        results = fetch_city_suggestions(query)
    except Exception as e:
        log.error(f"Suggestion lookup failed for '{query}': {e}", exc_info=True)
        if tracker.fail(request_id):
            return no_update, no_update, tracker.status_text()
        raise PreventUpdate
    if not tracker.resolve(request_id, results):
        raise PreventUpdate

    class_name = "suggestions-list" if tracker.show_suggestions else "suggestions-list hidden"
    return render_suggestion_items(tracker.suggestions), class_name, tracker.status_text()


def _search_location(geo_data, recent):
    if geo_data.get('error'):
        message = GEOLOCATION_ERRORS.get(geo_data['error'], GEOLOCATION_DEFAULT_ERROR)
        return no_update, message, no_update
    try:
        result = fetch_aqi_for_location(geo_data['lat'], geo_data['lon'])
    except (AqiFetchError, KeyError, TypeError, ValueError) as e:
        log.error(f"Location search failed: {e}")
        return no_update, LOCATION_ERROR, no_update
    return result.to_dict(), None, add_to_recent(recent, result.city)


@app.callback(
    Output('aqi-data-store', 'data'),
    Output('error-store', 'data'),
    Output('recent-searches-store', 'data', allow_duplicate=True),
    Output('city-input', 'value'),
    Output('suggestions-list', 'className', allow_duplicate=True),
    Output('suggestion-status', 'children', allow_duplicate=True),
    Input('search-button', 'n_clicks'),
    Input('city-input', 'n_submit'),
    Input({'type': 'suggestion', 'index': ALL}, 'n_clicks'),
    Input({'type': 'recent-city', 'index': ALL}, 'n_clicks'),
    Input('geo-store', 'data'),
    State('city-input', 'value'),
    State('session-id', 'data'),
    State('recent-searches-store', 'data'),
    prevent_initial_call=True,
)
def run_search(_search_clicks, _submits, _suggestion_clicks, _recent_clicks, geo_data,
               typed_value, session_id, recent):
    """Fetches AQI data for a typed, suggested, recent or geolocated search."""
    trigger = ctx.triggered_id
    tracker = autocomplete_sessions.get(session_id)
    hidden = "suggestions-list hidden"

    if trigger == 'geo-store':
        if not geo_data:
            raise PreventUpdate
        tracker.invalidate()
        data, error, updated_recent = _search_location(geo_data, recent)
        return data, error, updated_recent, no_update, hidden, ""

    if isinstance(trigger, dict):
        # Pattern-matched buttons also fire (with n_clicks None) when they are re-rendered.
        if not ctx.triggered[0].get('value'):
            raise PreventUpdate
        if trigger['type'] == 'suggestion':
            suggestion = tracker.suggestion_at(trigger['index'])
            if suggestion is None:
                raise PreventUpdate
            city = suggestion.name
        else:
            city = trigger['index']
        input_value = city
    else:
        city = (typed_value or '').strip()
        if not city:
            raise PreventUpdate
        input_value = no_update
    tracker.settle(city)

    try:
        result = fetch_aqi_for_city(city)
    except (AqiFetchError, ValueError) as e:
        log.error(f"City search failed for '{city}': {e}")
        return no_update, CITY_ERROR, no_update, input_value, hidden, ""
    return result.to_dict(), None, add_to_recent(recent, result.city), input_value, hidden, ""


@app.callback(
    Output('city-input', 'value', allow_duplicate=True),
    Output('suggestions-list', 'className', allow_duplicate=True),
    Output('suggestion-status', 'children', allow_duplicate=True),
    Input('clear-input-button', 'n_clicks'),
    State('session-id', 'data'),
    prevent_initial_call=True,
)
def clear_search_input(n_clicks, session_id):
    if not n_clicks:
        raise PreventUpdate
    autocomplete_sessions.get(session_id).invalidate()
    return "", "suggestions-list hidden", ""


@app.callback(
    Output('dashboard-content', 'children'),
    Input('aqi-data-store', 'data'),
    Input('error-store', 'data'),
)
def render_dashboard(aqi_data, error):
    if error:
        return html.Div(html.P(error, className="error-text"), className="error-banner")
    if not aqi_data:
        return build_empty_state()
    try:
        return build_dashboard(AqiData.from_dict(aqi_data))
    except Exception as e:
        log.error(f"Failed to render dashboard: {e}", exc_info=True)
        return html.Div(html.P("Error displaying air quality data.", className="error-text"),
                        className="error-banner")


app.clientside_callback(
    ClientsideFunction(namespace='atmos', function_name='locate'),
    Output('geo-store', 'data'),
    Input('locate-button', 'n_clicks'),
    prevent_initial_call=True,
)


@app.callback(
    Output('recent-searches', 'children'),
    Input('recent-searches-store', 'data'),
)
def render_recent_searches(recent):
    if not recent:
        return []
    return [
        html.Span("Recent:", className="recent-label"),
        *[html.Button(city, id={'type': 'recent-city', 'index': city}, className="recent-chip")
          for city in recent],
        html.Button("Clear", id='clear-recent-button', className="recent-clear", title="Clear recent searches"),
    ]


@app.callback(
    Output('recent-searches-store', 'data', allow_duplicate=True),
    Input('clear-recent-button', 'n_clicks'),
    prevent_initial_call=True,
)
def clear_recent_searches(n_clicks):
    if not n_clicks:
        raise PreventUpdate
    return clear_recent()


@app.callback(
    Output('theme-store', 'data'),
    Input('theme-toggle', 'n_clicks'),
    State('theme-store', 'data'),
    prevent_initial_call=True,
)
def toggle_theme(_n_clicks, theme):
    return 'light' if theme == 'dark' else 'dark'


@app.callback(
    Output('app-shell', 'className'),
    Output('theme-toggle', 'children'),
    Input('theme-store', 'data'),
)
def apply_theme(theme):
    theme = theme if theme in ('dark', 'light') else 'dark'
    return f"app-shell theme-{theme}", "☀" if theme == 'dark' else "☾"


@app.callback(
    Output('chat-panel', 'className'),
    Input('chat-toggle', 'n_clicks'),
    Input('chat-close', 'n_clicks'),
    prevent_initial_call=True,
)
def toggle_chat(_open_clicks, _close_clicks):
    return "chat-panel" if ctx.triggered_id == 'chat-toggle' else "chat-panel hidden"


@app.callback(
    Output('chat-store', 'data', allow_duplicate=True),
    Input('aqi-data-store', 'data'),
    State('chat-store', 'data'),
    prevent_initial_call=True,
)
def refresh_chat_welcome(aqi_data, chat_data):
    if not aqi_data:
        raise PreventUpdate
    messages = [ChatMessage.from_dict(m) for m in chat_data or []]
    refreshed = refresh_welcome(messages, AqiData.from_dict(aqi_data))
    return [m.to_dict() for m in refreshed]


app.clientside_callback(
    ClientsideFunction(namespace='atmos', function_name='showTyping'),
    Output('chat-typing', 'className'),
    Input('chat-send', 'n_clicks'),
    Input('chat-input', 'n_submit'),
    Input({'type': 'suggested-question', 'index': ALL}, 'n_clicks'),
    State('chat-input', 'value'),
    prevent_initial_call=True,
)


@app.callback(
    Output('chat-store', 'data', allow_duplicate=True),
    Output('chat-input', 'value'),
    Output('chat-typing', 'className', allow_duplicate=True),
    Input('chat-send', 'n_clicks'),
    Input('chat-input', 'n_submit'),
    Input({'type': 'suggested-question', 'index': ALL}, 'n_clicks'),
    State('chat-input', 'value'),
    State('chat-store', 'data'),
    State('aqi-data-store', 'data'),
    prevent_initial_call=True,
)
def send_chat(_send_clicks, _submits, _question_clicks, text, chat_data, aqi_data):
    trigger = ctx.triggered_id
    if isinstance(trigger, dict):
        if not ctx.triggered[0].get('value'):
            raise PreventUpdate
        text = SUGGESTED_QUESTIONS[trigger['index']]
    if not text or not text.strip():
        raise PreventUpdate

    messages = [ChatMessage.from_dict(m) for m in chat_data or []]
    aqi_context = AqiData.from_dict(aqi_data) if aqi_data else None
    conversation = handle_user_message(messages, text, aqi_context)
    return [m.to_dict() for m in conversation], "", "chat-typing hidden"


@app.callback(
    Output('chat-messages', 'children'),
    Output('chat-suggestions', 'children'),
    Input('chat-store', 'data'),
    Input('aqi-data-store', 'data'),
)
def render_chat(chat_data, aqi_data):
    messages = [ChatMessage.from_dict(m) for m in chat_data or []]
    bubbles = [
        html.Div(html.P(msg.text), className=f"chat-bubble chat-{msg.role}")
        for msg in messages if not msg.is_typing
    ]
    suggestions = []
    if should_offer_suggestions(messages, aqi_data):
        suggestions = [
            html.Button(question, id={'type': 'suggested-question', 'index': i}, className="chat-suggestion")
            for i, question in enumerate(SUGGESTED_QUESTIONS)
        ]
    return bubbles, suggestions


# --- Run the Application ---
if __name__ == '__main__':
    # Compatible with deployment platforms that use the PORT environment variable.
    port = int(os.environ.get("PORT", get_setting('app', 'port', 8050)))
    host = get_setting('app', 'host', '0.0.0.0')
    app.run(host=host, port=port, debug=bool(get_setting('app', 'debug', False)))
