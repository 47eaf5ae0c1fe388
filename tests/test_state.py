"""Tests for view-state transitions (traitmap/state.py)."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from traitmap.state import (
    COMPARE,
    MAX_VIEWS,
    SECTION,
    SINGLE,
    TRAIT,
    CancelCompareDialog,
    ClearRegions,
    CloseCompare,
    ConfirmCompare,
    Coordinator,
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
    initial_state,
    reduce,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CONTEXT = ViewContext(
    slices=("s1", "s2", "s3"),
    regions=("A", "B", "C"),
    traits=("g1", "g2", "t1_activity", "g3", "g4"),
)


def _run(*actions, state=None):
    """Apply actions in order starting from the initial state."""
    state = state or initial_state(CONTEXT)
    for action in actions:
        state = reduce(state, action, CONTEXT)
    return state


def _compare(*keys, dimension=TRAIT):
    """State with an open compare session over `keys`."""
    actions = [OpenCompareDialog(), SetCompareDimension(dimension)]
    actions += [ToggleCompareKey(key) for key in keys]
    actions.append(ConfirmCompare())
    return _run(*actions)


# ---------------------------------------------------------------------------
# Tests: single view
# ---------------------------------------------------------------------------


class TestSingleView:
    def test_initial_state(self):
        state = initial_state(CONTEXT)
        assert state.mode == SINGLE
        assert state.focus.slice == "s1"
        assert state.focus.trait == "g1"
        assert state.region_filter == {"A", "B", "C"}
        assert state.point_size == 25
        assert state.zoom == 0.0
        assert not state.light_theme

    def test_select_trait_keeps_slice(self):
        state = _run(SelectSection("s2"), SelectTrait("g2"))
        assert (state.focus.slice, state.focus.trait) == ("s2", "g2")
        assert state.focus.kind == TRAIT

    def test_select_section_keeps_trait(self):
        state = _run(SelectTrait("g3"), SelectSection("s3"))
        assert (state.focus.slice, state.focus.trait) == ("s3", "g3")
        assert state.focus.kind == SECTION

    def test_unknown_trait_rejected(self):
        with pytest.raises(InvalidSelection):
            _run(SelectTrait("nope"))

    def test_unknown_section_rejected(self):
        with pytest.raises(InvalidSelection):
            _run(SelectSection("nope"))

    def test_trait_query(self):
        assert _run(SetTraitQuery("sox")).trait_query == "sox"
        assert _run(SetTraitQuery(None)).trait_query == ""


# ---------------------------------------------------------------------------
# Tests: region filter
# ---------------------------------------------------------------------------


class TestRegionFilter:
    def test_toggle(self):
        state = _run(ToggleRegion("A"))
        assert state.region_filter == {"B", "C"}
        state = _run(ToggleRegion("A"), state=state)
        assert state.region_filter == {"A", "B", "C"}

    def test_clear_and_show_all(self):
        state = _run(ClearRegions())
        assert state.region_filter == frozenset()
        state = _run(ShowAllRegions(), state=state)
        assert state.region_filter == {"A", "B", "C"}

    def test_unknown_region_rejected(self):
        with pytest.raises(InvalidSelection):
            _run(ToggleRegion("Z"))

    def test_bad_view_index_rejected(self):
        with pytest.raises(InvalidSelection):
            _run(ToggleRegion("A", view_index=1))

    def test_compare_filters_independent(self):
        state = _compare("g1", "g2")
        state = _run(ToggleRegion("A", view_index=1), state=state)
        assert state.visible_regions(0) == {"A", "B", "C"}
        assert state.visible_regions(1) == {"B", "C"}
        # Single view filter untouched
        assert state.region_filter == {"A", "B", "C"}

    def test_single_filter_survives_compare(self):
        state = _run(ToggleRegion("C"))
        state = _run(OpenCompareDialog(), ToggleCompareKey("g2"), ConfirmCompare(), state=state)
        # Compare views start with every region visible
        assert state.visible_regions(0) == {"A", "B", "C"}
        state = _run(CloseCompare(), state=state)
        assert state.region_filter == {"A", "B"}


# ---------------------------------------------------------------------------
# Tests: compare dialog
# ---------------------------------------------------------------------------


class TestCompareDialog:
    def test_open_and_cancel(self):
        state = _run(OpenCompareDialog(), ToggleCompareKey("g1"))
        assert state.dialog.is_open
        assert state.dialog.selection == ("g1",)
        state = _run(CancelCompareDialog(), state=state)
        assert not state.dialog.is_open
        assert state.dialog.selection == ()
        assert state.mode == SINGLE

    def test_toggle_off(self):
        state = _run(OpenCompareDialog(), ToggleCompareKey("g1"), ToggleCompareKey("g2"), ToggleCompareKey("g1"))
        assert state.dialog.selection == ("g2",)

    def test_last_key_cannot_be_removed(self):
        state = _run(OpenCompareDialog(), ToggleCompareKey("g1"), ToggleCompareKey("g1"))
        assert state.dialog.selection == ("g1",)

    def test_at_most_four(self):
        keys = ["g1", "g2", "t1_activity", "g3", "g4"]
        state = _run(OpenCompareDialog(), *[ToggleCompareKey(k) for k in keys])
        assert len(state.dialog.selection) == MAX_VIEWS
        assert "g4" not in state.dialog.selection

    def test_dimension_change_resets_selection(self):
        state = _run(OpenCompareDialog(), ToggleCompareKey("g1"), SetCompareDimension(SECTION))
        assert state.dialog.dimension == SECTION
        assert state.dialog.selection == ()

    def test_key_must_match_dimension(self):
        with pytest.raises(InvalidSelection):
            _run(OpenCompareDialog(), SetCompareDimension(SECTION), ToggleCompareKey("g1"))

    def test_unknown_dimension(self):
        with pytest.raises(InvalidSelection):
            _run(SetCompareDimension("region"))

    def test_confirm_empty_rejected(self):
        state = _run(OpenCompareDialog())
        with pytest.raises(InvalidSelection):
            _run(ConfirmCompare(), state=state)


# ---------------------------------------------------------------------------
# Tests: compare session
# ---------------------------------------------------------------------------


class TestCompareSession:
    def test_trait_compare_uses_first_slice(self):
        state = _compare("g2", "g3")
        assert state.mode == COMPARE
        assert [(v.slice, v.trait) for v in state.views] == [("s1", "g2"), ("s1", "g3")]
        assert not state.dialog.is_open

    def test_section_compare_uses_first_trait(self):
        state = _compare("s3", "s2", dimension=SECTION)
        assert [(v.slice, v.trait) for v in state.views] == [("s3", "g1"), ("s2", "g1")]

    def test_focus_preserved(self):
        state = _run(SelectSection("s2"), SelectTrait("g4"))
        state = _run(OpenCompareDialog(), ToggleCompareKey("g1"), ConfirmCompare(), CloseCompare(), state=state)
        assert state.mode == SINGLE
        assert (state.focus.slice, state.focus.trait) == ("s2", "g4")

    def test_update_compare_view(self):
        state = _compare("g1", "g2")
        state = _run(UpdateCompareView(1, slice="s3"), state=state)
        assert (state.views[1].slice, state.views[1].trait) == ("s3", "g2")
        state = _run(UpdateCompareView(0, trait="g4"), state=state)
        assert (state.views[0].slice, state.views[0].trait) == ("s1", "g4")

    def test_update_compare_view_validates(self):
        state = _compare("g1")
        with pytest.raises(InvalidSelection):
            _run(UpdateCompareView(0, slice="nope"), state=state)
        with pytest.raises(InvalidSelection):
            _run(UpdateCompareView(3, slice="s2"), state=state)

    def test_update_requires_compare(self):
        with pytest.raises(InvalidSelection):
            _run(UpdateCompareView(0, slice="s2"))

    def test_close_when_single_is_noop(self):
        state = initial_state(CONTEXT)
        assert _run(CloseCompare(), state=state) == state


# ---------------------------------------------------------------------------
# Tests: legend hover
# ---------------------------------------------------------------------------


class TestLegendHover:
    def test_hover_and_leave(self):
        state = _run(HoverLegend(5.0, (0.0, 10.0)))
        assert state.hover_range(0) == pytest.approx((4.7, 5.3))
        state = _run(LeaveLegend(), state=state)
        assert state.hover_range(0) is None

    def test_hover_per_compare_view(self):
        state = _compare("g1", "g2", "g3")
        state = _run(HoverLegend(1.0, (0.0, 1.0), view_index=2), state=state)
        assert state.hover_range(0) is None
        assert state.hover_range(2) == pytest.approx((0.97, 1.0))

    def test_hover_reset_when_view_changes(self):
        state = _compare("g1", "g2")
        state = _run(HoverLegend(0.5, (0.0, 1.0), view_index=0), UpdateCompareView(0, trait="g3"), state=state)
        assert state.hover_range(0) is None

    def test_hover_bad_index(self):
        with pytest.raises(InvalidSelection):
            _run(HoverLegend(0.5, (0.0, 1.0), view_index=2))


# ---------------------------------------------------------------------------
# Tests: display options
# ---------------------------------------------------------------------------


class TestDisplayOptions:
    def test_toggles(self):
        state = _run(ToggleTheme(), ToggleRegionColoring())
        assert state.light_theme
        assert state.show_region
        state = _run(ToggleTheme(), state=state)
        assert not state.light_theme

    def test_point_size_clamped(self):
        assert _run(SetPointSize(40)).point_size == 40
        assert _run(SetPointSize(0)).point_size == 1
        assert _run(SetPointSize(1000)).point_size == 100

    def test_zoom_clamped(self):
        assert _run(SetZoom(1.5)).zoom == 1.5
        assert _run(SetZoom(-10)).zoom == -3.0
        assert _run(SetZoom(10)).zoom == 2.0


# ---------------------------------------------------------------------------
# Tests: serialization and dispatch
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_round_trip(self):
        state = _compare("g1", "g2")
        state = _run(
            ToggleRegion("B", view_index=1),
            HoverLegend(0.5, (0.0, 1.0), view_index=0),
            ToggleTheme(),
            SetZoom(1.0),
            state=state,
        )
        assert ViewState.from_dict(state.to_dict()) == state

    def test_unknown_action(self):
        with pytest.raises(TypeError):
            reduce(initial_state(CONTEXT), object(), CONTEXT)


class TestCoordinator:
    def test_dispatch(self):
        coordinator = Coordinator(CONTEXT)
        coordinator.dispatch(SelectTrait("g2"))
        assert coordinator.state.focus.trait == "g2"

    def test_rejected_action_leaves_state(self):
        coordinator = Coordinator(CONTEXT)
        before = coordinator.state
        with pytest.raises(InvalidSelection):
            coordinator.dispatch(ConfirmCompare())
        assert coordinator.state is before

    def test_concurrent_dispatch(self):
        """Transitions from many threads are applied one at a time."""
        coordinator = Coordinator(CONTEXT)
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(lambda _: coordinator.dispatch(ToggleTheme()), range(101)))
        assert coordinator.state.light_theme
