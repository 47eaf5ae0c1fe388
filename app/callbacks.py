"""Dash callbacks for the spatial trait viewer.

Every interaction callback turns its trigger into one state action, runs it
through ``reduce`` and writes the result back to the 'view-state' store. The
render callbacks only read that store.
"""

from dash import Input, Output, State, ctx, ALL
from dash import html
from dash.exceptions import PreventUpdate
import dash_bootstrap_components as dbc
import numpy as np

from traitmap.catalog import TRAIT_CATEGORIES, group_by_category, search_traits
from traitmap.colors import (
    HIGHLIGHT_COLOR,
    plotly_colorscale,
    region_colors,
    to_css,
    trait_colors,
)
from traitmap.normalize import frame_axis_ranges
from traitmap.ranges import compute_range
from traitmap.state import (
    COMPARE,
    MAX_VIEWS,
    SINGLE,
    TRAIT,
    ClearRegions,
    CancelCompareDialog,
    CloseCompare,
    ConfirmCompare,
    HoverLegend,
    InvalidSelection,
    LeaveLegend,
    OpenCompareDialog,
    SelectSection,
    SelectTrait,
    SetCompareDimension,
    SetPointSize,
    SetTraitQuery,
    SetZoom,
    ShowAllRegions,
    ToggleCompareKey,
    ToggleRegion,
    ToggleRegionColoring,
    ToggleTheme,
    UpdateCompareView,
    ViewContext,
    ViewState,
    reduce,
)

from app.layouts import create_empty_figure, view_id

# Marker size in px per unit of point size at zoom 0
POINT_SIZE_SCALE = 0.2

LIGHT_BACKGROUND = 'white'
DARK_BACKGROUND = '#111111'
LEGEND_STEPS = 50


def view_value_range(cells, state, view_index=0):
    """Colour scale range of a view.

    The single view scans every slice with the shared filter; a compare view
    scans only its own slice with its own filter.
    """
    view = state.views[view_index]
    visible = state.visible_regions(view_index)
    if state.mode == SINGLE:
        return compute_range(cells, view.trait, visible)
    return compute_range(cells, view.trait, visible, slice_key=view.slice)


def view_title(view, dataset):
    trait = dataset.get_trait(view.trait)
    label = trait.label if trait else view.trait
    return f"{view.slice} | {label}"


def create_view_figure(
    cells,
    view,
    visible_regions,
    value_range,
    light_theme=False,
    show_region=False,
    point_size=25,
    zoom=0.0,
    band=None,
):
    """Scatter plot of one slice coloured by a trait (or by region).

    Args:
        cells: Normalized record set
        view: View to render (slice + trait)
        visible_regions: Regions to draw
        value_range: ValueRange of the colour scale
        light_theme: Light or dark colour scale and background
        show_region: Colour by region instead of trait value
        point_size: Marker size before zoom scaling
        zoom: log2 zoom level
        band: (low, high) legend hover band to highlight, or None

    Returns:
        go.Figure-compatible dict
    """
    mask = (cells['slice'] == view.slice) & cells['region'].isin(set(visible_regions))
    slice_df = cells[mask]

    if view.trait in slice_df.columns:
        values = slice_df[view.trait].to_numpy(dtype=float)
    else:
        values = np.full(len(slice_df), np.nan)

    if show_region:
        colors = region_colors(slice_df['region'])
    else:
        rgba = trait_colors(values, value_range.min, value_range.max, light_theme, band=band)
        colors = [to_css(c) for c in rgba]

    background = LIGHT_BACKGROUND if light_theme else DARK_BACKGROUND
    x_range, y_range = frame_axis_ranges(zoom)

    trace = {
        'type': 'scattergl',
        'x': slice_df['x'].tolist(),
        'y': slice_df['y'].tolist(),
        'mode': 'markers',
        'marker': {
            'size': max(1.0, point_size * POINT_SIZE_SCALE * 2 ** zoom),
            'color': colors,
        },
        'showlegend': False,
        'customdata': np.column_stack([
            slice_df['id'].to_numpy(dtype=object),
            slice_df['region'].to_numpy(dtype=object),
            np.where(np.isnan(values), None, np.round(values, 3)).astype(object),
        ]).tolist() if len(slice_df) else [],
        'hovertemplate': (
            '<b>%{customdata[0]}</b><br>Region: %{customdata[1]}'
            f'<br>{view.trait}: ' '%{customdata[2]}<extra></extra>'
        ),
    }

    layout = {
        'margin': dict(l=0, r=0, t=0, b=0),
        'paper_bgcolor': background,
        'plot_bgcolor': background,
        'showlegend': False,
        'uirevision': f'{view.slice}-{zoom}',
        'xaxis': {
            'range': x_range,
            'showticklabels': False,
            'showgrid': False,
            'zeroline': False,
        },
        'yaxis': {
            # Screen coordinates: y grows downwards
            'range': [y_range[1], y_range[0]],
            'showticklabels': False,
            'showgrid': False,
            'zeroline': False,
            'scaleanchor': 'x',
            'scaleratio': 1,
        },
    }
    if slice_df.empty:
        layout['annotations'] = [{
            'text': 'No visible cells',
            'xref': 'paper',
            'yref': 'paper',
            'showarrow': False,
            'font': {'size': 14, 'color': 'gray'},
        }]
    return {'data': [trace], 'layout': layout}


def create_legend_figure(value_range, light_theme=False, band=None, steps=LEGEND_STEPS):
    """Vertical colour bar whose hover y value is the trait value."""
    values = np.linspace(value_range.min, value_range.max, steps)
    background = LIGHT_BACKGROUND if light_theme else DARK_BACKGROUND
    font_color = '#333' if light_theme else '#DDD'

    shapes = []
    if band is not None:
        shapes.append({
            'type': 'rect',
            'xref': 'paper',
            'yref': 'y',
            'x0': 0,
            'x1': 1,
            'y0': band[0],
            'y1': band[1],
            'line': {'color': to_css(HIGHLIGHT_COLOR), 'width': 2},
        })

    return {
        'data': [{
            'type': 'heatmap',
            'z': [[v] for v in values],
            'y': values.tolist(),
            'x': [0],
            'zmin': value_range.min,
            'zmax': value_range.max,
            'colorscale': plotly_colorscale(light_theme),
            'showscale': False,
            'hovertemplate': '%{y:.3f}<extra></extra>',
        }],
        'layout': {
            'margin': dict(l=0, r=40, t=5, b=5),
            'paper_bgcolor': background,
            'plot_bgcolor': background,
            'xaxis': {'visible': False},
            'yaxis': {
                'side': 'right',
                'showgrid': False,
                'zeroline': False,
                'tickfont': {'size': 10, 'color': font_color},
                'range': [value_range.min, value_range.max],
            },
            'shapes': shapes,
        },
    }


def create_region_filter(regions, visible, scope, index):
    """Toggle buttons for every region plus All / Clear."""
    buttons = [
        dbc.Button(
            region,
            id={'type': 'region-toggle', 'scope': scope, 'index': index, 'region': region},
            size="sm",
            color="primary",
            outline=region not in visible,
            className="me-1 mb-1",
        )
        for region in regions
    ]
    return html.Div([
        html.Div(buttons),
        dbc.ButtonGroup([
            dbc.Button("All", id=view_id('region-all', scope, index), size="sm", color="link"),
            dbc.Button("Clear", id=view_id('region-clear', scope, index), size="sm", color="link"),
        ]),
    ])


def create_trait_list(catalog, query, active_trait):
    """Catalog filtered by the search text, grouped by category."""
    matches = search_traits(catalog, query)
    if not matches:
        return html.P("No matching traits", className="text-muted small")

    groups = group_by_category(matches)
    children = []
    for category in TRAIT_CATEGORIES:
        traits = groups.get(category['key'], [])
        if not traits:
            continue
        children.append(html.H6(category['label'], className="text-muted mt-2 mb-1"))
        children.append(dbc.ListGroup([
            dbc.ListGroupItem(
                trait.label,
                id={'type': 'trait-item', 'key': trait.key},
                action=True,
                active=trait.key == active_trait,
                n_clicks=0,
                className="py-1",
            )
            for trait in traits
        ], flush=True))
    return children


def create_section_list(dataset, active_slice):
    """Sections grouped under their tissue."""
    children = []
    for group in dataset.section_groups():
        children.append(html.H6(group['tissue'], className="text-muted mt-2 mb-1"))
        children.append(dbc.ListGroup([
            dbc.ListGroupItem(
                section,
                id={'type': 'section-item', 'key': section},
                action=True,
                active=section == active_slice,
                n_clicks=0,
                className="py-1",
            )
            for section in group['sections']
        ], flush=True))
    return children


def create_compare_options(dataset, dialog):
    """Selectable keys of the current compare dimension."""
    if dialog.dimension == TRAIT:
        options = [(trait.key, trait.label) for trait in dataset.catalog]
    else:
        options = [(section, section) for section in dataset.slices]

    return dbc.ListGroup([
        dbc.ListGroupItem(
            label,
            id={'type': 'compare-key', 'key': key},
            action=True,
            active=key in dialog.selection,
            n_clicks=0,
            className="py-1",
        )
        for key, label in options
    ], flush=True)


def create_view_controls(dataset, view, index):
    """Slice and trait pickers of one compare view."""
    return dbc.Row([
        dbc.Col(dbc.Select(
            id={'type': 'view-slice', 'index': index},
            options=[{'label': s, 'value': s} for s in dataset.slices],
            value=view.slice,
            size="sm",
        ), width=6),
        dbc.Col(dbc.Select(
            id={'type': 'view-trait', 'index': index},
            options=[{'label': t.label, 'value': t.key} for t in dataset.catalog],
            value=view.trait,
            size="sm",
        ), width=6),
    ], className="g-1")


def _clicked():
    """True if the trigger is a real click, not a freshly rendered button."""
    return bool(ctx.triggered) and bool(ctx.triggered[0]['value'])


def region_filter_action(triggered, state):
    """Action for a region filter button id, or None to ignore the click.

    Controls of the inactive mode are hidden but still mounted, so their
    events are dropped.
    """
    if not isinstance(triggered, dict) or triggered.get('scope') != state.mode:
        return None

    index = triggered['index']
    if triggered['type'] == 'region-toggle':
        return ToggleRegion(triggered['region'], view_index=index)
    if triggered['type'] == 'region-all':
        return ShowAllRegions(view_index=index)
    if triggered['type'] == 'region-clear':
        return ClearRegions(view_index=index)
    return None


def legend_hover_action(triggered, hover_data, state, cells):
    """Action for a legend hover event, or None when nothing changes."""
    if not isinstance(triggered, dict) or triggered.get('scope') != state.mode:
        return None

    index = triggered['index']
    if not hover_data or not hover_data.get('points'):
        if state.hover_range(index) is None:
            return None
        return LeaveLegend(view_index=index)

    value = float(hover_data['points'][0]['y'])
    value_range = view_value_range(cells, state, index)
    return HoverLegend(value, (value_range.min, value_range.max), view_index=index)


def register_callbacks(app, dataset):
    """Register all callbacks for the application."""

    cells = dataset.cells
    context = ViewContext.from_dataset(dataset)

    def apply(state_data, action):
        state = ViewState.from_dict(state_data)
        try:
            new_state = reduce(state, action, context)
        except InvalidSelection as err:
            print(f"[{dataset.name}] Ignored {type(action).__name__}: {err}")
            raise PreventUpdate from err
        return new_state.to_dict()

    # ------------------------------------------------------------------
    # Interactions -> state
    # ------------------------------------------------------------------

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input({'type': 'trait-item', 'key': ALL}, 'n_clicks'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def select_trait(_clicks, state_data):
        """Trait list click colours the single view by that trait."""
        if not _clicked():
            raise PreventUpdate
        return apply(state_data, SelectTrait(ctx.triggered_id['key']))

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input({'type': 'section-item', 'key': ALL}, 'n_clicks'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def select_section(_clicks, state_data):
        """Section list click shows that slice in the single view."""
        if not _clicked():
            raise PreventUpdate
        return apply(state_data, SelectSection(ctx.triggered_id['key']))

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input('trait-search', 'value'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def search(query, state_data):
        return apply(state_data, SetTraitQuery(query or ""))

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input('open-compare', 'n_clicks'),
        Input('compare-confirm', 'n_clicks'),
        Input('compare-cancel', 'n_clicks'),
        Input('compare-close', 'n_clicks'),
        Input('compare-dimension', 'value'),
        Input({'type': 'compare-key', 'key': ALL}, 'n_clicks'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def compare_flow(_open, _confirm, _cancel, _close, dimension, _keys, state_data):
        """Compare dialog and compare viewer lifecycle."""
        triggered = ctx.triggered_id
        if triggered == 'compare-dimension':
            return apply(state_data, SetCompareDimension(dimension))
        if not _clicked():
            raise PreventUpdate

        if triggered == 'open-compare':
            action = OpenCompareDialog()
        elif triggered == 'compare-confirm':
            action = ConfirmCompare()
        elif triggered == 'compare-cancel':
            action = CancelCompareDialog()
        elif triggered == 'compare-close':
            action = CloseCompare()
        elif isinstance(triggered, dict) and triggered.get('type') == 'compare-key':
            action = ToggleCompareKey(triggered['key'])
        else:
            raise PreventUpdate
        return apply(state_data, action)

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input({'type': 'region-toggle', 'scope': ALL, 'index': ALL, 'region': ALL}, 'n_clicks'),
        Input({'type': 'region-all', 'scope': ALL, 'index': ALL}, 'n_clicks'),
        Input({'type': 'region-clear', 'scope': ALL, 'index': ALL}, 'n_clicks'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def filter_regions(_toggles, _all, _clear, state_data):
        """Region filter buttons of the view that was clicked."""
        if not _clicked():
            raise PreventUpdate
        action = region_filter_action(ctx.triggered_id, ViewState.from_dict(state_data))
        if action is None:
            raise PreventUpdate
        return apply(state_data, action)

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input({'type': 'view-legend', 'scope': ALL, 'index': ALL}, 'hoverData'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def hover_legend(_hover, state_data):
        """Legend hover highlights cells with values near the pointer."""
        if not ctx.triggered:
            raise PreventUpdate
        action = legend_hover_action(
            ctx.triggered_id,
            ctx.triggered[0]['value'],
            ViewState.from_dict(state_data),
            cells,
        )
        if action is None:
            raise PreventUpdate
        return apply(state_data, action)

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input({'type': 'view-slice', 'index': ALL}, 'value'),
        Input({'type': 'view-trait', 'index': ALL}, 'value'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def update_compare_view(_slices, _traits, state_data):
        """Slice / trait pickers inside the compare viewer."""
        triggered = ctx.triggered_id
        if not isinstance(triggered, dict):
            raise PreventUpdate
        state = ViewState.from_dict(state_data)
        index = triggered['index']
        if state.mode != COMPARE or index >= len(state.views):
            raise PreventUpdate

        value = ctx.triggered[0]['value']
        view = state.views[index]
        if triggered['type'] == 'view-slice':
            if value == view.slice:
                raise PreventUpdate
            action = UpdateCompareView(index, slice=value)
        else:
            if value == view.trait:
                raise PreventUpdate
            action = UpdateCompareView(index, trait=value)
        return apply(state_data, action)

    @app.callback(
        Output('view-state', 'data', allow_duplicate=True),
        Input('theme-toggle', 'n_clicks'),
        Input('region-color-toggle', 'n_clicks'),
        Input('point-size', 'value'),
        Input('zoom-slider', 'value'),
        State('view-state', 'data'),
        prevent_initial_call=True,
    )
    def display_options(_theme, _region, point_size, zoom, state_data):
        """Theme, colouring mode, point size and zoom."""
        triggered = ctx.triggered_id
        if triggered == 'theme-toggle':
            action = ToggleTheme()
        elif triggered == 'region-color-toggle':
            action = ToggleRegionColoring()
        elif triggered == 'point-size':
            action = SetPointSize(point_size)
        elif triggered == 'zoom-slider':
            action = SetZoom(zoom)
        else:
            raise PreventUpdate
        return apply(state_data, action)

    # ------------------------------------------------------------------
    # State -> rendering
    # ------------------------------------------------------------------

    @app.callback(
        Output(view_id('view-graph', SINGLE, 0), 'figure'),
        Output(view_id('view-legend', SINGLE, 0), 'figure'),
        Output(view_id('view-title', SINGLE, 0), 'children'),
        Output(view_id('region-filter', SINGLE, 0), 'children'),
        Input('view-state', 'data'),
    )
    def render_single(state_data):
        state = ViewState.from_dict(state_data)
        view = state.focus
        if not view.slice:
            empty = create_empty_figure('No sections loaded')
            return empty, empty, "", None

        value_range = compute_range(cells, view.trait, state.region_filter)
        band = state.hover_range(0) if state.mode == SINGLE else None
        figure = create_view_figure(
            cells,
            view,
            state.region_filter,
            value_range,
            light_theme=state.light_theme,
            show_region=state.show_region,
            point_size=state.point_size,
            zoom=state.zoom,
            band=band,
        )
        legend = create_legend_figure(value_range, state.light_theme, band)
        regions = create_region_filter(dataset.regions, state.region_filter, SINGLE, 0)
        return figure, legend, view_title(view, dataset), regions

    @app.callback(
        Output('trait-list', 'children'),
        Output('section-list', 'children'),
        Output('theme-toggle', 'outline'),
        Output('region-color-toggle', 'outline'),
        Input('view-state', 'data'),
    )
    def render_lists(state_data):
        state = ViewState.from_dict(state_data)
        return (
            create_trait_list(dataset.catalog, state.trait_query, state.focus.trait),
            create_section_list(dataset, state.focus.slice),
            not state.light_theme,
            not state.show_region,
        )

    @app.callback(
        Output('compare-dialog', 'is_open'),
        Output('compare-options', 'children'),
        Output('compare-selection-count', 'children'),
        Output('compare-confirm', 'disabled'),
        Input('view-state', 'data'),
    )
    def render_compare_dialog(state_data):
        dialog = ViewState.from_dict(state_data).dialog
        if not dialog.is_open:
            return False, None, "", True
        count = f"{len(dialog.selection)} of {MAX_VIEWS} selected"
        return True, create_compare_options(dataset, dialog), count, not dialog.selection

    @app.callback(
        Output('compare-viewer', 'is_open'),
        Output({'type': 'view-slot', 'index': ALL}, 'style'),
        Output({'type': 'view-controls', 'index': ALL}, 'children'),
        Output(view_id('view-title', COMPARE, ALL), 'children'),
        Output(view_id('view-graph', COMPARE, ALL), 'figure'),
        Output(view_id('view-legend', COMPARE, ALL), 'figure'),
        Output(view_id('region-filter', COMPARE, ALL), 'children'),
        Input('view-state', 'data'),
    )
    def render_compare(state_data):
        state = ViewState.from_dict(state_data)
        hidden = {'display': 'none'}
        empty = create_empty_figure()

        styles, controls, titles, figures, legends, filters = [], [], [], [], [], []
        for i in range(MAX_VIEWS):
            if state.mode != COMPARE or i >= len(state.compare_views):
                styles.append(hidden)
                controls.append(None)
                titles.append("")
                figures.append(empty)
                legends.append(empty)
                filters.append(None)
                continue

            view = state.compare_views[i]
            visible = state.compare_filters[i]
            value_range = view_value_range(cells, state, i)
            band = state.hover_range(i)
            styles.append({'display': 'block'})
            controls.append(create_view_controls(dataset, view, i))
            titles.append(view_title(view, dataset))
            figures.append(create_view_figure(
                cells,
                view,
                visible,
                value_range,
                light_theme=state.light_theme,
                show_region=state.show_region,
                point_size=state.point_size,
                zoom=state.zoom,
                band=band,
            ))
            legends.append(create_legend_figure(value_range, state.light_theme, band))
            filters.append(create_region_filter(dataset.regions, visible, COMPARE, i))

        return state.mode == COMPARE, styles, controls, titles, figures, legends, filters
