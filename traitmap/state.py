"""View state for the single and compare viewers.

All UI state lives in one immutable ViewState. Every user interaction is an
action, and ``reduce(state, action, context)`` returns the next state:

    Single:  one focus view, one shared region filter
    Compare: 1-4 views, one region filter per view index

The focus view and its filter survive a compare session untouched.
"""

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Optional, Tuple

from traitmap.ranges import ValueRange, hover_band

MAX_VIEWS = 4

TRAIT = "trait"
SECTION = "section"
DIMENSIONS = (TRAIT, SECTION)

SINGLE = "single"
COMPARE = "compare"

POINT_SIZE_LIMITS = (1, 100)
ZOOM_LIMITS = (-3.0, 2.0)


class InvalidSelection(ValueError):
    """An action referred to something that cannot be selected."""


@dataclass(frozen=True)
class View:
    """One rendering target: a slice coloured by a trait."""
    key: str
    kind: str
    slice: str
    trait: str

    def to_dict(self) -> Dict:
        return {"key": self.key, "kind": self.kind, "slice": self.slice, "trait": self.trait}

    @classmethod
    def from_dict(cls, data: Dict) -> "View":
        return cls(data["key"], data["kind"], data["slice"], data["trait"])


@dataclass(frozen=True)
class ViewContext:
    """What can be selected: the dataset's slices, regions and traits."""
    slices: Tuple[str, ...]
    regions: Tuple[str, ...]
    traits: Tuple[str, ...]

    @classmethod
    def from_dataset(cls, dataset) -> "ViewContext":
        return cls(tuple(dataset.slices), tuple(dataset.regions), tuple(dataset.trait_keys))

    @property
    def first_slice(self) -> str:
        return self.slices[0] if self.slices else ""

    @property
    def first_trait(self) -> str:
        return self.traits[0] if self.traits else ""

    def keys_for(self, dimension: str) -> Tuple[str, ...]:
        return self.traits if dimension == TRAIT else self.slices


@dataclass(frozen=True)
class CompareDialog:
    """Pending compare selection: 0-4 keys along one dimension."""
    is_open: bool = False
    dimension: str = TRAIT
    selection: Tuple[str, ...] = ()

    def toggle(self, key: str) -> "CompareDialog":
        """Add or remove a key.

        Removing the last selected key and adding a fifth are both no-ops.
        """
        if key in self.selection:
            if len(self.selection) <= 1:
                return self
            return replace(self, selection=tuple(k for k in self.selection if k != key))
        if len(self.selection) >= MAX_VIEWS:
            return self
        return replace(self, selection=self.selection + (key,))


@dataclass(frozen=True)
class ViewState:
    """Everything the viewer renders from.

    Attributes:
        focus: The single-mode view
        region_filter: Regions visible in single mode
        compare_views: Views of an open compare session (empty when closed)
        compare_filters: Visible regions per compare view index
        hover_ranges: Legend hover band per view index of the active mode
        dialog: Compare selection dialog
        light_theme: Light or dark colour scale and background
        show_region: Colour points by region instead of trait value
        point_size: Marker size
        zoom: log2 zoom level of the plots
        trait_query: Trait list search text
    """
    focus: View
    region_filter: FrozenSet[str]
    compare_views: Tuple[View, ...] = ()
    compare_filters: Tuple[FrozenSet[str], ...] = ()
    hover_ranges: Tuple[Optional[Tuple[float, float]], ...] = (None,)
    dialog: CompareDialog = field(default_factory=CompareDialog)
    light_theme: bool = False
    show_region: bool = False
    point_size: float = 25
    zoom: float = 0.0
    trait_query: str = ""

    @property
    def mode(self) -> str:
        return COMPARE if self.compare_views else SINGLE

    @property
    def views(self) -> Tuple[View, ...]:
        return self.compare_views if self.compare_views else (self.focus,)

    def visible_regions(self, view_index: int = 0) -> FrozenSet[str]:
        if self.mode == COMPARE:
            return self.compare_filters[view_index]
        return self.region_filter

    def hover_range(self, view_index: int = 0) -> Optional[Tuple[float, float]]:
        if 0 <= view_index < len(self.hover_ranges):
            return self.hover_ranges[view_index]
        return None

    def to_dict(self) -> Dict:
        """JSON-serializable form for dcc.Store."""
        return {
            "focus": self.focus.to_dict(),
            "region_filter": sorted(self.region_filter),
            "compare_views": [view.to_dict() for view in self.compare_views],
            "compare_filters": [sorted(regions) for regions in self.compare_filters],
            "hover_ranges": [list(band) if band else None for band in self.hover_ranges],
            "dialog": {
                "is_open": self.dialog.is_open,
                "dimension": self.dialog.dimension,
                "selection": list(self.dialog.selection),
            },
            "light_theme": self.light_theme,
            "show_region": self.show_region,
            "point_size": self.point_size,
            "zoom": self.zoom,
            "trait_query": self.trait_query,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ViewState":
        dialog = data.get("dialog") or {}
        return cls(
            focus=View.from_dict(data["focus"]),
            region_filter=frozenset(data.get("region_filter", [])),
            compare_views=tuple(View.from_dict(v) for v in data.get("compare_views", [])),
            compare_filters=tuple(frozenset(r) for r in data.get("compare_filters", [])),
            hover_ranges=tuple(
                tuple(band) if band else None for band in data.get("hover_ranges", [None])
            ),
            dialog=CompareDialog(
                is_open=dialog.get("is_open", False),
                dimension=dialog.get("dimension", TRAIT),
                selection=tuple(dialog.get("selection", [])),
            ),
            light_theme=data.get("light_theme", False),
            show_region=data.get("show_region", False),
            point_size=data.get("point_size", 25),
            zoom=data.get("zoom", 0.0),
            trait_query=data.get("trait_query", ""),
        )


def initial_state(context: ViewContext) -> ViewState:
    """First slice coloured by the first trait, every region visible."""
    first_slice = context.first_slice
    return ViewState(
        focus=View(first_slice, SECTION, first_slice, context.first_trait),
        region_filter=frozenset(context.regions),
    )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectTrait:
    trait: str


@dataclass(frozen=True)
class SelectSection:
    slice: str


@dataclass(frozen=True)
class OpenCompareDialog:
    pass


@dataclass(frozen=True)
class SetCompareDimension:
    dimension: str


@dataclass(frozen=True)
class ToggleCompareKey:
    key: str


@dataclass(frozen=True)
class ConfirmCompare:
    pass


@dataclass(frozen=True)
class CancelCompareDialog:
    pass


@dataclass(frozen=True)
class CloseCompare:
    pass


@dataclass(frozen=True)
class UpdateCompareView:
    """Change the slice and/or trait of one compare view."""
    view_index: int
    slice: Optional[str] = None
    trait: Optional[str] = None


@dataclass(frozen=True)
class ToggleRegion:
    region: str
    view_index: int = 0


@dataclass(frozen=True)
class ShowAllRegions:
    view_index: int = 0


@dataclass(frozen=True)
class ClearRegions:
    view_index: int = 0


@dataclass(frozen=True)
class HoverLegend:
    """Pointer over the colour bar of a view at `value`."""
    value: float
    value_range: Tuple[float, float]
    view_index: int = 0


@dataclass(frozen=True)
class LeaveLegend:
    view_index: int = 0


@dataclass(frozen=True)
class ToggleTheme:
    pass


@dataclass(frozen=True)
class ToggleRegionColoring:
    pass


@dataclass(frozen=True)
class SetPointSize:
    size: float


@dataclass(frozen=True)
class SetZoom:
    zoom: float


@dataclass(frozen=True)
class SetTraitQuery:
    query: str


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _check_trait(trait, context):
    if trait not in context.traits:
        raise InvalidSelection(f"Unknown trait: {trait}")


def _check_slice(slice_key, context):
    if slice_key not in context.slices:
        raise InvalidSelection(f"Unknown section: {slice_key}")


def _check_view_index(state, view_index):
    if not 0 <= view_index < len(state.views):
        raise InvalidSelection(
            f"View index {view_index} out of range for {len(state.views)} view(s)"
        )


def _with_filter(state, view_index, regions):
    """Replace the region filter in scope for `view_index`."""
    _check_view_index(state, view_index)
    regions = frozenset(regions)
    if state.mode == SINGLE:
        return replace(state, region_filter=regions)
    filters = list(state.compare_filters)
    filters[view_index] = regions
    return replace(state, compare_filters=tuple(filters))


def _select_trait(state, action, context):
    _check_trait(action.trait, context)
    view = View(action.trait, TRAIT, state.focus.slice, action.trait)
    return replace(state, focus=view)


def _select_section(state, action, context):
    _check_slice(action.slice, context)
    view = View(action.slice, SECTION, action.slice, state.focus.trait)
    return replace(state, focus=view)


def _open_dialog(state, action, context):
    return replace(state, dialog=CompareDialog(is_open=True, dimension=state.dialog.dimension))


def _set_dimension(state, action, context):
    if action.dimension not in DIMENSIONS:
        raise InvalidSelection(f"Unknown compare dimension: {action.dimension}")
    if action.dimension == state.dialog.dimension:
        return state
    return replace(state, dialog=replace(state.dialog, dimension=action.dimension, selection=()))


def _toggle_key(state, action, context):
    if action.key not in context.keys_for(state.dialog.dimension):
        raise InvalidSelection(f"Unknown {state.dialog.dimension}: {action.key}")
    return replace(state, dialog=state.dialog.toggle(action.key))


def _confirm_compare(state, action, context):
    dialog = state.dialog
    if not dialog.selection:
        raise InvalidSelection("Select at least one key to compare")

    views = []
    for key in dialog.selection[:MAX_VIEWS]:
        if dialog.dimension == TRAIT:
            views.append(View(key, TRAIT, context.first_slice, key))
        else:
            views.append(View(key, SECTION, key, context.first_trait))

    all_regions = frozenset(context.regions)
    return replace(
        state,
        compare_views=tuple(views),
        compare_filters=tuple(all_regions for _ in views),
        hover_ranges=tuple(None for _ in views),
        dialog=CompareDialog(dimension=dialog.dimension),
    )


def _cancel_dialog(state, action, context):
    return replace(state, dialog=CompareDialog(dimension=state.dialog.dimension))


def _close_compare(state, action, context):
    if state.mode == SINGLE:
        return state
    return replace(state, compare_views=(), compare_filters=(), hover_ranges=(None,))


def _update_compare_view(state, action, context):
    if state.mode != COMPARE:
        raise InvalidSelection("No compare session is open")
    _check_view_index(state, action.view_index)

    view = state.compare_views[action.view_index]
    if action.slice is not None:
        _check_slice(action.slice, context)
        view = replace(view, slice=action.slice)
    if action.trait is not None:
        _check_trait(action.trait, context)
        view = replace(view, trait=action.trait)

    views = list(state.compare_views)
    views[action.view_index] = view
    hover = list(state.hover_ranges)
    hover[action.view_index] = None
    return replace(state, compare_views=tuple(views), hover_ranges=tuple(hover))


def _toggle_region(state, action, context):
    if action.region not in context.regions:
        raise InvalidSelection(f"Unknown region: {action.region}")
    _check_view_index(state, action.view_index)
    regions = set(state.visible_regions(action.view_index))
    if action.region in regions:
        regions.discard(action.region)
    else:
        regions.add(action.region)
    return _with_filter(state, action.view_index, regions)


def _show_all(state, action, context):
    return _with_filter(state, action.view_index, context.regions)


def _clear_regions(state, action, context):
    return _with_filter(state, action.view_index, ())


def _set_hover(state, view_index, band):
    _check_view_index(state, view_index)
    hover = list(state.hover_ranges) + [None] * (len(state.views) - len(state.hover_ranges))
    hover[view_index] = band
    return replace(state, hover_ranges=tuple(hover))


def _hover_legend(state, action, context):
    band = hover_band(ValueRange(*action.value_range), action.value)
    return _set_hover(state, action.view_index, band)


def _leave_legend(state, action, context):
    return _set_hover(state, action.view_index, None)


def _toggle_theme(state, action, context):
    return replace(state, light_theme=not state.light_theme)


def _toggle_region_coloring(state, action, context):
    return replace(state, show_region=not state.show_region)


def _set_point_size(state, action, context):
    low, high = POINT_SIZE_LIMITS
    return replace(state, point_size=min(high, max(low, action.size)))


def _set_zoom(state, action, context):
    low, high = ZOOM_LIMITS
    return replace(state, zoom=min(high, max(low, float(action.zoom))))


def _set_trait_query(state, action, context):
    return replace(state, trait_query=action.query or "")


_TRANSITIONS = {
    SelectTrait: _select_trait,
    SelectSection: _select_section,
    OpenCompareDialog: _open_dialog,
    SetCompareDimension: _set_dimension,
    ToggleCompareKey: _toggle_key,
    ConfirmCompare: _confirm_compare,
    CancelCompareDialog: _cancel_dialog,
    CloseCompare: _close_compare,
    UpdateCompareView: _update_compare_view,
    ToggleRegion: _toggle_region,
    ShowAllRegions: _show_all,
    ClearRegions: _clear_regions,
    HoverLegend: _hover_legend,
    LeaveLegend: _leave_legend,
    ToggleTheme: _toggle_theme,
    ToggleRegionColoring: _toggle_region_coloring,
    SetPointSize: _set_point_size,
    SetZoom: _set_zoom,
    SetTraitQuery: _set_trait_query,
}


def reduce(state: ViewState, action, context: ViewContext) -> ViewState:
    """Apply one action and return the next state.

    Raises:
        InvalidSelection: the action is not allowed; `state` is unchanged
        TypeError: unknown action type
    """
    handler = _TRANSITIONS.get(type(action))
    if handler is None:
        raise TypeError(f"Unknown action: {action!r}")
    return handler(state, action, context)


class Coordinator:
    """Owns a ViewState and applies actions one at a time.

    Each dispatch runs under a single lock, so hosts that call in from
    several threads never interleave transitions.
    """

    def __init__(self, context: ViewContext, state: Optional[ViewState] = None):
        self.context = context
        self._state = state if state is not None else initial_state(context)
        self._lock = threading.Lock()

    @property
    def state(self) -> ViewState:
        return self._state

    def dispatch(self, action) -> ViewState:
        with self._lock:
            self._state = reduce(self._state, action, self.context)
            return self._state
