import base64
import pytest
import matplotlib
import numpy as np
from matplotlib.figure import Figure
from pyC14.widgets import (
    AffineTransform,
    AxisLimits,
    BindingUsageError,
    BoundingBox,
    ClickablePlot,
    ClickTracker,
    GeometryError,
    PlotGeometry,
    Selection,
    initially,
    plot_click_tracker,
)

WORLD = AxisLimits(x=(0.0, 360.0), y=(-90.0, 90.0))


def full_geometry(width=100.0, height=50.0):
    box = BoundingBox(0.0, 0.0, width, height)
    return PlotGeometry(inner=box, outer=box)


def padded_geometry():
    return PlotGeometry(
        inner=BoundingBox(20.0, 10.0, 160.0, 80.0),
        outer=BoundingBox(0.0, 0.0, 200.0, 100.0),
    )


def world_tracker(draggable=False):
    selection = Selection()
    updates = []
    selection.subscribe(updates.append)
    transform = AffineTransform.from_geometry(full_geometry(), WORLD)
    return ClickTracker(transform, selection, draggable=draggable), updates


def fraction_at_plot_centre(widget):
    inner, outer = widget.geometry.inner, widget.geometry.outer
    return [
        (inner.x0 + inner.width / 2 - outer.x0) / outer.width,
        (inner.y0 + inner.height / 2 - outer.y0) / outer.height,
    ]


def world_figure():
    fig = Figure()
    ax = fig.add_subplot()
    ax.set_xlim(0, 360)
    ax.set_ylim(-90, 90)
    return fig


def test_centre_maps_to_middle_of_limits():
    """Does the image centre land at (180, 0) on a world map?"""
    transform = AffineTransform.from_geometry(full_geometry(), WORLD)
    x, y = transform((0.5, 0.5))
    assert np.abs(x - 180) < 1e-9
    assert np.abs(y) < 1e-9


def test_corners_map_to_limits():
    """Is the top-left corner (xmin, ymax) and the bottom-right (xmax, ymin)?"""
    transform = AffineTransform.from_geometry(full_geometry(), WORLD)
    assert transform((0, 0)) == (0.0, 90.0)
    assert transform((1, 1)) == (360.0, -90.0)


def test_inner_box_offset_is_corrected():
    """Are the margins between layout and plot area accounted for?"""
    transform = AffineTransform.from_geometry(padded_geometry(), WORLD)
    x, y = transform((0.5, 0.5))
    assert np.abs(x - 180) < 1e-9
    assert np.abs(y) < 1e-9
    x, y = transform((0.1, 0.1))
    assert np.abs(x) < 1e-9
    assert np.abs(y - 90) < 1e-9


def test_fractions_stay_within_limits():
    """Do all fractions in the unit square map inside the axis limits?"""
    transform = AffineTransform.from_geometry(padded_geometry(), WORLD)
    for fx in np.linspace(0, 1, 11):
        for fy in np.linspace(0, 1, 11):
            x, y = transform((fx, fy))
            assert 0 <= x <= 360
            assert -90 <= y <= 90


def test_outside_clicks_are_clamped():
    """Are clicks outside the image clamped rather than extrapolated?"""
    transform = AffineTransform.from_geometry(full_geometry(), WORLD)
    x, y = transform((-0.2, 1.3))
    assert x == 0.0
    assert y == -90.0
    x, y = transform((1.5, -0.4))
    assert x == 360.0
    assert y == 90.0


def test_transform_is_deterministic():
    transform = AffineTransform.from_geometry(padded_geometry(), WORLD)
    assert transform((0.37, 0.61)) == transform((0.37, 0.61))


def test_inverted_axis_clamps_to_its_range():
    """Does a depth axis drawn top-down still clamp correctly?"""
    limits = AxisLimits(x=(0.0, 360.0), y=(5000.0, 0.0))
    transform = AffineTransform.from_geometry(full_geometry(), limits)
    assert transform((0.5, 0.0))[1] == 0.0
    assert transform((0.5, 1.0))[1] == 5000.0
    assert transform((0.5, 1.5))[1] == 5000.0


def test_degenerate_geometry_is_rejected():
    """Does a zero-size plot area abort setup?"""
    geometry = PlotGeometry(
        inner=BoundingBox(10.0, 10.0, 0.0, 50.0),
        outer=BoundingBox(0.0, 0.0, 100.0, 100.0),
    )
    with pytest.raises(GeometryError):
        AffineTransform.from_geometry(geometry, WORLD)
    with pytest.raises(ValueError):
        AffineTransform.from_geometry(
            full_geometry(), AxisLimits(x=(1.0, 1.0), y=(-90.0, 90.0))
        )
    with pytest.raises(GeometryError):
        AffineTransform.from_geometry(
            full_geometry(), AxisLimits(x=(0.0, np.nan), y=(-90.0, 90.0))
        )


def test_selection_notifies_and_unsubscribes():
    selection = Selection()
    updates = []
    unsubscribe = selection.subscribe(updates.append)
    selection.set([10, 20])
    unsubscribe()
    selection.set([30, 40])
    assert updates == [(10.0, 20.0)]
    assert selection.value == (30.0, 40.0)


def test_selection_ignores_missing_updates():
    """Is a default kept when a None update arrives?"""
    selection = Selection(default=(160, 0))
    updates = []
    selection.subscribe(updates.append)
    selection.set(None)
    assert selection.value == (160.0, 0.0)
    assert updates == []


def test_click_publishes_once():
    """Does a press-move-release without dragging give exactly one update?"""
    tracker, updates = world_tracker()
    tracker.pointer_down(0.5, 0.5)
    tracker.pointer_move(0.6, 0.6)
    tracker.pointer_up()
    assert len(updates) == 1
    assert np.abs(updates[0][0] - 180) < 1e-9
    assert tracker.state == ClickTracker.IDLE
    assert not tracker.tracking_moves


def test_guard_is_rearmed_by_attach_only():
    """Is a second click ignored until the plot is attached again?"""
    tracker, updates = world_tracker()
    tracker.pointer_down(0.5, 0.5)
    tracker.pointer_up()
    tracker.pointer_down(0.25, 0.5)
    tracker.pointer_up()
    assert len(updates) == 1
    tracker.attach(tracker.transform)
    tracker.pointer_down(0.25, 0.5)
    tracker.pointer_up()
    assert len(updates) == 2
    assert np.abs(updates[1][0] - 90) < 1e-9


def test_drag_publishes_every_move():
    """Does dragging give one update on press and one per move?"""
    tracker, updates = world_tracker(draggable=True)
    tracker.pointer_down(0.5, 0.5)
    assert tracker.state == ClickTracker.PRESSED
    assert tracker.tracking_moves
    tracker.pointer_move(0.6, 0.5)
    assert tracker.state == ClickTracker.DRAGGING
    tracker.pointer_move(0.7, 0.5)
    tracker.pointer_up()
    assert len(updates) == 3
    assert not tracker.tracking_moves
    tracker.pointer_move(0.8, 0.5)
    assert len(updates) == 3


def test_pointer_leave_detaches_move_listener():
    tracker, updates = world_tracker(draggable=True)
    tracker.pointer_down(0.5, 0.5)
    tracker.pointer_leave()
    tracker.pointer_move(0.9, 0.9)
    assert len(updates) == 1
    assert tracker.state == ClickTracker.IDLE


def test_clickable_plot_maps_click_to_value():
    """Does a click on the centre of the axes publish (180, 0)?"""
    widget = ClickablePlot(world_figure())
    assert widget.image
    assert widget.mime == "image/png"
    assert widget.value == []
    widget._handle_pointer(
        widget,
        {"event": "pointerdown", "fraction": fraction_at_plot_centre(widget)},
        [],
    )
    widget._handle_pointer(widget, {"event": "pointerup", "fraction": None}, [])
    x, y = widget.value
    assert np.abs(x - 180) < 1e-6
    assert np.abs(y) < 1e-6
    assert widget.selection.value == (x, y)


def test_clickable_plot_update_recomputes_transform():
    """Does a re-render use the new limits and accept a new click?"""
    widget = plot_click_tracker(world_figure())
    centre = fraction_at_plot_centre(widget)
    widget._handle_pointer(widget, {"event": "pointerdown", "fraction": centre}, [])
    fig = Figure()
    ax = fig.add_subplot()
    ax.set_xlim(0, 100)
    ax.set_ylim(0, 10)
    widget.update_figure(fig)
    assert widget.limits == AxisLimits(x=(0.0, 100.0), y=(0.0, 10.0))
    widget._handle_pointer(widget, {"event": "pointerdown", "fraction": centre}, [])
    x, y = widget.value
    assert np.abs(x - 50) < 1e-6
    assert np.abs(y - 5) < 1e-6


def test_clickable_plot_draggable_flag_reaches_tracker():
    widget = ClickablePlot(world_figure())
    widget.draggable = True
    assert widget.tracker.draggable
    for event, fx in (("pointerdown", 0.5), ("pointermove", 0.6), ("pointermove", 0.7)):
        widget._handle_pointer(widget, {"event": event, "fraction": [fx, 0.5]}, [])
    widget._handle_pointer(widget, {"event": "pointerleave", "fraction": None}, [])
    assert not widget.tracker.tracking_moves


def test_clickable_plot_unknown_event_warns():
    widget = ClickablePlot(world_figure())
    with pytest.warns(UserWarning):
        widget._handle_pointer(widget, {"event": "wheel"}, [])


def test_clickable_plot_needs_axes():
    with pytest.raises(GeometryError):
        ClickablePlot(Figure())


def test_svg_rendering():
    widget = ClickablePlot(world_figure(), image_format="svg")
    assert widget.mime == "image/svg+xml"
    with pytest.raises(ValueError):
        ClickablePlot(world_figure(), image_format="gif")


def test_initially_seeds_value():
    """Does initially() give the widget a value before any click?"""
    widget = initially([160.0, 0.0], ClickablePlot(world_figure()))
    assert widget.value == [160.0, 0.0]
    assert widget.selection.value == (160.0, 0.0)


def test_initially_keeps_existing_selection():
    widget = ClickablePlot(world_figure())
    widget.selection.set((10, 10))
    initially([160.0, 0.0], widget)
    assert widget.selection.value == (10.0, 10.0)


def test_initially_rejects_misuse():
    """Is incorrect usage reported without touching the widget?"""
    widget = ClickablePlot(world_figure())
    with pytest.raises(BindingUsageError, match="Example usage"):
        initially(widget, [160.0, 0.0])
    with pytest.raises(BindingUsageError):
        initially([160.0, 0.0], "not a widget")
    with pytest.raises(BindingUsageError):
        initially([1.0, 2.0, 3.0], widget)
    assert widget.selection.value is None
    assert widget.value == []


def fraction_of(fig, ax, x, y):
    px, py = ax.transData.transform((x, y))
    return [px / fig.bbox.width, (fig.bbox.height - py) / fig.bbox.height]


def test_constrained_layout_is_measured_after_layout():
    """Does a click land on the same data point as in the rendered image?"""
    fig = Figure(layout="constrained")
    ax = fig.add_subplot()
    ax.set_xlim(0, 360)
    ax.set_ylim(-90, 90)
    ax.set_xlabel("Longitude (°E)")
    ax.set_ylabel("Latitude (°N)")
    ax.set_title("a long title that moves the axes down")
    widget = ClickablePlot(fig)
    fraction = fraction_of(fig, ax, 90, 45)
    widget._handle_pointer(widget, {"event": "pointerdown", "fraction": fraction}, [])
    x, y = widget.value
    assert np.abs(x - 90) < 1e-6
    assert np.abs(y - 45) < 1e-6


def test_equal_aspect_is_measured_after_layout():
    """Is the shrunk box of an equal-aspect map used for the transform?"""
    fig = world_figure()
    ax = fig.axes[0]
    ax.set_aspect("equal")
    widget = ClickablePlot(fig)
    fraction = fraction_of(fig, ax, 300, 80)
    widget._handle_pointer(widget, {"event": "pointerdown", "fraction": fraction}, [])
    x, y = widget.value
    assert np.abs(x - 300) < 1e-6
    assert np.abs(y - 80) < 1e-6


def test_tight_savefig_setting_is_ignored():
    """Does the image keep the full figure size under savefig.bbox = tight?"""
    fig = Figure(figsize=(4, 2), dpi=50)
    ax = fig.add_subplot()
    ax.set_xlim(0, 360)
    ax.set_ylim(-90, 90)
    with matplotlib.rc_context({"savefig.bbox": "tight"}):
        widget = ClickablePlot(fig)
    png = base64.b64decode(widget.image)
    assert int.from_bytes(png[16:20], "big") == 200
    assert int.from_bytes(png[20:24], "big") == 100


@pytest.mark.parametrize(
    "content",
    [
        {"event": "pointerdown"},
        {"event": "pointerdown", "fraction": None},
        {"event": "pointermove", "fraction": [0.5]},
        {"event": "pointerdown", "fraction": ["a", "b"]},
    ],
)
def test_malformed_fraction_warns(content):
    widget = ClickablePlot(world_figure(), draggable=True)
    with pytest.warns(UserWarning):
        widget._handle_pointer(widget, content, [])
    assert widget.value == []
