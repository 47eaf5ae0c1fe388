"""Dash UI layout components for the spatial trait viewer."""

from dash import dcc, html
import dash_bootstrap_components as dbc

from traitmap.state import MAX_VIEWS, TRAIT, SECTION, ZOOM_LIMITS

EXPORT_FILENAME = "Spatial_Viewer_Export"

GRAPH_CONFIG = {
    'displayModeBar': True,
    'scrollZoom': True,
    'displaylogo': False,
    'toImageButtonOptions': {
        'format': 'png',
        'filename': EXPORT_FILENAME,
        'scale': 2,
    },
}

LEGEND_CONFIG = {'displayModeBar': False}


def view_id(kind, scope, index):
    """Pattern-matching id for a per-view component."""
    return {'type': kind, 'scope': scope, 'index': index}


def create_layout(dataset, initial_state, enable_compare=True):
    """
    Create the main application layout.

    Args:
        dataset: Loaded SpatialDataset
        initial_state: ViewState the store starts from
        enable_compare: Show the compare button
    """
    return dbc.Container([
        dcc.Store(id='view-state', data=initial_state.to_dict()),

        # Header
        dbc.Row([
            dbc.Col([
                html.H2("Spatial Trait Viewer", className="my-3"),
            ], width=8),
            dbc.Col([
                html.P(
                    f"{dataset.name}: {dataset.n_cells:,} cells, "
                    f"{len(dataset.slices)} sections, {len(dataset.catalog)} traits",
                    className="text-muted text-end mt-4 mb-0",
                ),
            ], width=4),
        ]),

        create_data_warning(dataset),

        # Main content: 3 columns
        dbc.Row([
            # Left panel: trait catalog
            dbc.Col([
                create_trait_panel(enable_compare)
            ], width=3, className="bg-light p-3"),

            # Center: single view
            dbc.Col([
                create_view_panel(scope='single', index=0, height='70vh'),
            ], width=6),

            # Right panel: sections and display options
            dbc.Col([
                create_sections_panel(),
                html.Hr(),
                create_display_panel(initial_state),
            ], width=3, className="bg-light p-3"),
        ]),

        create_compare_dialog(),
        create_compare_viewer(),

    ], fluid=True, id='main-container')


def create_data_warning(dataset):
    """Banner shown when the viewer runs on sample or placeholder data."""
    messages = []
    if dataset.is_fallback:
        messages.append(
            f"No cells could be joined ({dataset.outcome.reason}). "
            "Showing a generated sample dataset instead."
        )
    if dataset.has_placeholder_traits:
        messages.append("No trait columns were found. Trait list shows placeholders only.")

    if not messages:
        return html.Div(id='data-warning')
    return dbc.Alert([html.Div(msg) for msg in messages], id='data-warning', color="warning")


def create_trait_panel(enable_compare=True):
    """Create the left trait search and list panel."""
    return html.Div([
        html.H5("Traits", className="mb-3"),
        dbc.Input(
            id='trait-search',
            type='search',
            placeholder="Search traits...",
            debounce=True,
            className="mb-2",
        ),
        html.Div(
            id='trait-list',
            style={'maxHeight': '60vh', 'overflowY': 'auto'},
        ),
        html.Hr(),
        dbc.Button(
            "Compare...",
            id='open-compare',
            color="primary",
            className="w-100",
            style={} if enable_compare else {'display': 'none'},
        ),
    ])


def create_sections_panel():
    """Create the section list."""
    return html.Div([
        html.H5("Sections", className="mb-3"),
        html.Div(id='section-list', style={'maxHeight': '30vh', 'overflowY': 'auto'}),
    ])


def create_display_panel(initial_state):
    """Create the display options (theme, colouring, point size, zoom)."""
    return html.Div([
        html.Label("Display Options", className="fw-bold mb-2"),
        dbc.ButtonGroup([
            dbc.Button("Light theme", id='theme-toggle', color="secondary", outline=True, size="sm"),
            dbc.Button("Color by region", id='region-color-toggle', color="secondary", outline=True, size="sm"),
        ], className="mb-3 d-flex"),

        html.Label("Point Size", className="fw-bold"),
        dcc.Slider(
            id='point-size',
            min=5,
            max=50,
            step=5,
            value=initial_state.point_size,
            marks={5: '5', 25: '25', 50: '50'},
        ),

        html.Label("Zoom", className="fw-bold"),
        dcc.Slider(
            id='zoom-slider',
            min=ZOOM_LIMITS[0],
            max=ZOOM_LIMITS[1],
            step=0.25,
            value=initial_state.zoom,
            marks={z: str(z) for z in range(int(ZOOM_LIMITS[0]), int(ZOOM_LIMITS[1]) + 1)},
        ),
    ])


def create_view_panel(scope, index, height='40vh'):
    """One view: title, scatter plot with colour bar, region filter."""
    return html.Div([
        html.H5(id=view_id('view-title', scope, index), className="text-center my-2"),
        dbc.Row([
            dbc.Col([
                dcc.Graph(
                    id=view_id('view-graph', scope, index),
                    style={'height': height},
                    config=GRAPH_CONFIG,
                ),
            ], width=10),
            dbc.Col([
                dcc.Graph(
                    id=view_id('view-legend', scope, index),
                    style={'height': height},
                    config=LEGEND_CONFIG,
                    clear_on_unhover=True,
                ),
            ], width=2),
        ], className="g-0"),
        html.Div(id=view_id('region-filter', scope, index), className="mt-2"),
    ])


def create_compare_dialog():
    """Modal to pick up to MAX_VIEWS traits or sections to compare."""
    return dbc.Modal([
        dbc.ModalHeader(dbc.ModalTitle("Compare"), close_button=False),
        dbc.ModalBody([
            dbc.RadioItems(
                id='compare-dimension',
                options=[
                    {'label': 'Traits', 'value': TRAIT},
                    {'label': 'Sections', 'value': SECTION},
                ],
                value=TRAIT,
                inline=True,
                className="mb-2",
            ),
            html.Small(id='compare-selection-count', className="text-muted"),
            html.Div(
                id='compare-options',
                style={'maxHeight': '50vh', 'overflowY': 'auto'},
                className="mt-2",
            ),
        ]),
        dbc.ModalFooter([
            dbc.Button("Cancel", id='compare-cancel', color="secondary", outline=True),
            dbc.Button("Compare", id='compare-confirm', color="primary", disabled=True),
        ]),
    ], id='compare-dialog', is_open=False, backdrop="static", keyboard=False)


def create_compare_viewer():
    """Full-screen modal with one slot per compare view."""
    slots = [
        dbc.Col([
            html.Div(id={'type': 'view-controls', 'index': i}),
            create_view_panel(scope='compare', index=i),
        ], id={'type': 'view-slot', 'index': i}, width=6, style={'display': 'none'})
        for i in range(MAX_VIEWS)
    ]
    return dbc.Modal([
        dbc.ModalHeader([
            dbc.ModalTitle("Compare views"),
            dbc.Button("Close", id='compare-close', color="secondary", outline=True, className="ms-auto"),
        ], close_button=False),
        dbc.ModalBody(dbc.Row(slots)),
    ], id='compare-viewer', is_open=False, fullscreen=True, backdrop="static", keyboard=False)


def create_error_layout(error):
    """Blocking error page shown when the sources cannot be loaded."""
    details = getattr(error, 'errors', {})
    return dbc.Container([
        html.H2("Spatial Trait Viewer", className="my-3"),
        dbc.Alert([
            html.H4("Failed to load data", className="alert-heading"),
            html.P(str(error) if not details else "One or more source files could not be read:"),
            html.Ul([
                html.Li([html.B(source), f": {err}"]) for source, err in details.items()
            ]) if details else None,
        ], color="danger"),
    ], fluid=True)


def create_empty_figure(message='No data selected'):
    """Create an empty placeholder figure."""
    import plotly.graph_objects as go
    fig = go.Figure()
    fig.update_layout(
        xaxis={'visible': False},
        yaxis={'visible': False},
        annotations=[{
            'text': message,
            'xref': 'paper',
            'yref': 'paper',
            'showarrow': False,
            'font': {'size': 14, 'color': 'gray'}
        }],
        margin=dict(l=0, r=0, t=0, b=0)
    )
    return fig
