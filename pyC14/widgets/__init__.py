"""
Clickable plot widget for pyC14.

A matplotlib figure is rendered to an image and shown in an anywidget.
Pointer events on the image are normalized to fractions of the image
size in the browser and mapped to data coordinates in Python through an
affine transform captured when the figure was rendered. The selected
coordinate is published through a Selection that other code (or marimo
and Jupyter, via the synced ``value`` trait) can subscribe to.
"""

import io
import math
import base64
import warnings
from dataclasses import dataclass
from typing import NamedTuple

import anywidget
import matplotlib
import traitlets

USAGE = "Example usage:\n\n    initially([160.0, 0.0], plot_click_tracker(fig))\n"


class GeometryError(ValueError):
    """Plot geometry or axis limits do not define a usable transform."""


class BindingUsageError(ValueError):
    """initially() was called with arguments it cannot bind."""


@dataclass(frozen=True)
class BoundingBox:
    """Pixel box with its origin at the top-left corner."""

    x0: float
    y0: float
    width: float
    height: float


@dataclass(frozen=True)
class PlotGeometry:
    """Inner plot area and outer layout boxes of a rendered figure."""

    inner: BoundingBox
    outer: BoundingBox

    @classmethod
    def from_axes(cls, fig, ax):
        # runs the layout engine and fixed aspects, as savefig does
        fig.draw_without_rendering()
        height = fig.bbox.height
        box = ax.get_window_extent()
        return cls(
            inner=BoundingBox(box.x0, height - box.y1, box.width, box.height),
            outer=BoundingBox(0.0, 0.0, fig.bbox.width, height),
        )


class AxisLimits(NamedTuple):
    """Data values at the (left, right) and (bottom, top) plot edges."""

    x: tuple
    y: tuple

    @classmethod
    def from_axes(cls, ax):
        return cls(tuple(ax.get_xlim()), tuple(ax.get_ylim()))


def _clamp(v, a, b):
    lo, hi = min(a, b), max(a, b)
    return min(max(v, lo), hi)


@dataclass(frozen=True)
class AffineTransform:
    """
    Map from image fractions (0-1 from the top-left) to data coordinates.

    Results are clamped to the axis limits, so clicks outside the plot
    area land on its edge instead of being extrapolated.
    """

    x_scale: float
    x_offset: float
    y_scale: float
    y_offset: float
    x_limits: tuple
    y_limits: tuple

    @classmethod
    def from_geometry(cls, geometry: PlotGeometry, limits: AxisLimits):
        inner, outer = geometry.inner, geometry.outer
        for name, box in (("plot area", inner), ("layout", outer)):
            values = (box.x0, box.y0, box.width, box.height)
            if not all(math.isfinite(v) for v in values):
                raise GeometryError(f"The {name} box {box} is not finite.")
            if box.width <= 0 or box.height <= 0:
                raise GeometryError(
                    f"The {name} box has zero size ({box.width} x {box.height} px)."
                )
        (xa, xb), (ya, yb) = limits
        if not all(math.isfinite(v) for v in (xa, xb, ya, yb)):
            raise GeometryError(f"Axis limits {limits} are not finite.")
        if xa == xb or ya == yb:
            raise GeometryError(f"Axis limits {limits} have zero extent.")
        x0 = inner.x0 - outer.x0
        y0 = inner.y0 - outer.y0
        x_range = xb - xa
        y_range = yb - ya
        return cls(
            x_scale=(outer.width / inner.width) * x_range,
            x_offset=xa - x_range * x0 / inner.width,
            y_scale=-(outer.height / inner.height) * y_range,
            y_offset=yb + y_range * y0 / inner.height,
            x_limits=(xa, xb),
            y_limits=(ya, yb),
        )

    def __call__(self, fraction):
        fx, fy = fraction
        return (
            _clamp(fx * self.x_scale + self.x_offset, *self.x_limits),
            _clamp(fy * self.y_scale + self.y_offset, *self.y_limits),
        )


class Selection:
    """
    The current (x, y) selection and the callbacks that depend on it.

    ``None`` updates are ignored, so a seeded default survives a widget
    that has not been clicked yet.
    """

    def __init__(self, default=None):
        self._value = None
        self._subscribers = []
        if default is not None:
            self._value = _as_coordinate(default)

    @property
    def value(self):
        return self._value

    @property
    def defined(self):
        return self._value is not None

    def set(self, value):
        if value is None:
            return
        self._value = _as_coordinate(value)
        for callback in list(self._subscribers):
            callback(self._value)

    def subscribe(self, callback):
        """Call ``callback(value)`` on every update; returns an unsubscriber."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


def _as_coordinate(value):
    x, y = value
    return (float(x), float(y))


class ClickTracker:
    """
    Pointer state machine: idle -> pressed -> dragging -> idle.

    A press publishes the pointer position. In draggable mode the move
    listener is attached on press and every move publishes too; otherwise
    a one-shot guard lets a single update through per attachment.
    """

    IDLE = "idle"
    PRESSED = "pressed"
    DRAGGING = "dragging"

    def __init__(self, transform, selection, draggable=False):
        self.selection = selection
        self.draggable = draggable
        self.state = self.IDLE
        self.tracking_moves = False
        self.attach(transform)

    def attach(self, transform):
        """Use a freshly rendered transform and re-arm the one-shot guard."""
        # TODO: re-arm the guard in pointer_up too, so a second click that
        # arrives before the figure is redrawn is not dropped.
        self.transform = transform
        self.fired = False

    def _handle(self, fx, fy):
        if self.draggable or not self.fired:
            self.fired = True
            self.selection.set(self.transform((fx, fy)))

    def pointer_down(self, fx, fy):
        self.state = self.PRESSED
        if self.draggable:
            self.tracking_moves = True
        self._handle(fx, fy)

    def pointer_move(self, fx, fy):
        if not self.tracking_moves:
            return
        self.state = self.DRAGGING
        self._handle(fx, fy)

    def pointer_up(self):
        self.tracking_moves = False
        self.state = self.IDLE

    pointer_leave = pointer_up


def render_figure(fig, image_format="png"):
    """Render a figure to a base64 string and its MIME type."""
    mimes = {"png": "image/png", "svg": "image/svg+xml"}
    if image_format not in mimes:
        raise ValueError(
            f"image_format must be one of {sorted(mimes)}, got {image_format!r}."
        )
    buffer = io.BytesIO()
    # the image must span the whole figure for the layout box to hold
    with matplotlib.rc_context({"savefig.bbox": "standard"}):
        fig.savefig(buffer, format=image_format, dpi=fig.dpi)
    return base64.b64encode(buffer.getvalue()).decode("ascii"), mimes[image_format]


class ClickablePlot(anywidget.AnyWidget):
    """Static plot image that publishes the data coordinate under the pointer."""

    _esm = """
    function render({ model, el }) {
      const img = document.createElement("img");
      img.draggable = false;
      img.style.maxWidth = "100%";
      img.style.cursor = "crosshair";
      el.appendChild(img);

      const update = () => {
        img.src = `data:${model.get("mime")};base64,${model.get("image")}`;
      };
      model.on("change:image", update);
      update();

      const fraction = (e) => {
        const rect = img.getBoundingClientRect();
        return [
          (e.clientX - rect.left) / rect.width,
          (e.clientY - rect.top) / rect.height,
        ];
      };
      let pressed = false;
      const move = (e) => model.send({ event: "pointermove", fraction: fraction(e) });
      img.addEventListener("pointerdown", (e) => {
        pressed = true;
        if (model.get("draggable")) {
          img.addEventListener("pointermove", move);
        }
        model.send({ event: "pointerdown", fraction: fraction(e) });
      });
      const release = (e) => {
        img.removeEventListener("pointermove", move);
        if (pressed) {
          pressed = false;
          model.send({ event: e.type, fraction: null });
        }
      };
      document.addEventListener("pointerup", release);
      document.addEventListener("pointerleave", release);
      return () => {
        img.removeEventListener("pointermove", move);
        document.removeEventListener("pointerup", release);
        document.removeEventListener("pointerleave", release);
      };
    }
    export default { render };
    """

    image = traitlets.Unicode("").tag(sync=True)
    mime = traitlets.Unicode("image/png").tag(sync=True)
    draggable = traitlets.Bool(False).tag(sync=True)
    value = traitlets.List([]).tag(sync=True)

    def __init__(self, fig, ax=None, draggable=False, image_format="png", **kwargs):
        super().__init__(draggable=draggable, **kwargs)
        self.image_format = image_format
        self.selection = Selection()
        self.selection.subscribe(self._publish)
        self.tracker = None
        self.update_figure(fig, ax)
        self.on_msg(self._handle_pointer)

    def update_figure(self, fig, ax=None):
        """Render ``fig`` and map clicks through the limits of ``ax``."""
        if ax is None:
            if not fig.axes:
                raise GeometryError("The figure has no axes to click on.")
            ax = fig.axes[0]
        image, mime = render_figure(fig, self.image_format)
        geometry = PlotGeometry.from_axes(fig, ax)
        limits = AxisLimits.from_axes(ax)
        transform = AffineTransform.from_geometry(geometry, limits)
        self.geometry, self.limits, self.transform = geometry, limits, transform
        self.image, self.mime = image, mime
        if self.tracker is None:
            self.tracker = ClickTracker(
                self.transform, self.selection, draggable=self.draggable
            )
        else:
            self.tracker.attach(self.transform)

    @traitlets.observe("draggable")
    def _draggable_changed(self, change):
        tracker = getattr(self, "tracker", None)
        if tracker is not None:
            tracker.draggable = change["new"]

    def _publish(self, coordinate):
        self.value = list(coordinate)

    def _handle_pointer(self, widget, content, buffers):
        event = content.get("event")
        match event:
            case "pointerdown" | "pointermove":
                fraction = _as_fraction(content.get("fraction"))
                if fraction is None:
                    warnings.warn(
                        f"Ignoring {event} without a valid fraction: {content.get('fraction')!r}."
                    )
                elif event == "pointerdown":
                    self.tracker.pointer_down(*fraction)
                else:
                    self.tracker.pointer_move(*fraction)
            case "pointerup":
                self.tracker.pointer_up()
            case "pointerleave":
                self.tracker.pointer_leave()
            case _:
                warnings.warn(f"Ignoring unknown pointer event {event!r}.")


def _as_fraction(value):
    try:
        fx, fy = (float(v) for v in value)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(fx) and math.isfinite(fy)):
        return None
    return fx, fy


def plot_click_tracker(fig, draggable: bool = False, ax=None):
    """Wrap a figure in a ClickablePlot."""
    return ClickablePlot(fig, ax=ax, draggable=draggable)


def initially(default, widget):
    """
    Seed the selection of ``widget`` with ``default`` until it is clicked.

    Parameters
    ----------
    default : sequence of two floats
        Initial (x, y) selection.
    widget : ClickablePlot
        Any object with a Selection in its ``selection`` attribute.

    Raises
    ------
    BindingUsageError
        The arguments are swapped, the widget has no selection, or the
        default is not an (x, y) pair. Nothing is modified in that case.

    Returns
    -------
    widget
        The same widget, for display.
    """
    if isinstance(getattr(default, "selection", None), Selection):
        raise BindingUsageError(USAGE)
    selection = getattr(widget, "selection", None)
    if not isinstance(selection, Selection):
        raise BindingUsageError(USAGE)
    try:
        default = _as_coordinate(default)
    except (TypeError, ValueError) as e:
        raise BindingUsageError(USAGE) from e
    if not selection.defined:
        selection.set(default)
    return widget
