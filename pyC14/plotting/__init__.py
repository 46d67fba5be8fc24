"""Plotting recipes for pyC14 tracer fields."""

from dataclasses import dataclass, fields, replace

import numpy as np
import cmocean  # noqa: F401  registers the cmo.* colormaps
from matplotlib import colormaps
from matplotlib.colors import ListedColormap
from matplotlib.figure import Figure

from pyC14.grids import (
    horizontal_slice,
    meridional_slice,
    zonal_average,
    horizontal_average,
    vertical_mean,
    depth_profile,
)
from pyC14.utils import prettylon, prettylat, read_yaml

# tableau-colorblind10 picks: other ocean, then ATL, PAC, IND
BASIN_COLORS = ["#595959", "#5F9ED1", "#FF800E", "#ABABAB"]
BASIN_LABEL_POSITIONS = {"IND": (80, -15), "PAC": (200, 0), "ATL": (315, 30)}


@dataclass(frozen=True)
class PlotOptions:
    """
    Shared look of the age plots.

    Levels are (start, stop, step) triplets, stop included. ``mask`` is an
    optional boolean wet-cell vector restricting every plot to a region.
    """

    clim: tuple = (0.0, 2500.0)
    cmap: str = "cmo.deep"
    reverse_cmap: bool = False
    fill_levels: tuple = (0.0, 2500.0, 125.0)
    contour_levels: tuple = (0.0, 2500.0, 500.0)
    colorbar_label: str = "age (yr)"
    yunit: str = "m"
    mask: object = None

    def __post_init__(self):
        if self.yunit not in ("m", "km"):
            raise ValueError(f"yunit must be 'm' or 'km', got {self.yunit!r}.")
        if len(self.clim) != 2 or self.clim[0] >= self.clim[1]:
            raise ValueError(f"clim must be an increasing pair, got {self.clim}.")
        for name in ("fill_levels", "contour_levels"):
            start, stop, step = getattr(self, name)
            if step <= 0 or stop < start:
                raise ValueError(f"{name} must be (start, stop, step) with step > 0.")

    def colormap(self):
        cmap = colormaps[self.cmap]
        return cmap.reversed() if self.reverse_cmap else cmap

    def levels(self, name="fill_levels"):
        start, stop, step = getattr(self, name)
        return np.arange(start, stop + step / 2, step)

    @property
    def depth_factor(self):
        return 1e-3 if self.yunit == "km" else 1.0

    @property
    def depth_label(self):
        return f"Depth ({self.yunit})"


def load_plot_options(filename, base: PlotOptions = None):
    """Read PlotOptions overrides from a YAML mapping."""
    overrides = read_yaml(filename)
    known = {f.name for f in fields(PlotOptions)} - {"mask"}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(
            f"Unknown plot options in {filename}: {sorted(unknown)}. Known options are {sorted(known)}."
        )
    overrides = {
        k: tuple(v) if isinstance(v, list) else v for k, v in overrides.items()
    }
    return replace(base or PlotOptions(), **overrides)


def _new_axes(ax, figsize=(7, 4)):
    if ax is None:
        ax = Figure(figsize=figsize).add_subplot()
    return ax


def _apply_mask(x, options):
    if options.mask is None:
        return x
    return np.where(np.asarray(options.mask, dtype=bool), x, np.nan)


def _draw_field(ax, X, Y, Z, options, seriestype, colorbar, clabels, **kwargs):
    match seriestype:
        case "pcolormesh":
            artist = ax.pcolormesh(
                X,
                Y,
                Z,
                cmap=options.colormap(),
                vmin=options.clim[0],
                vmax=options.clim[1],
                shading="auto",
                **kwargs,
            )
        case "contourf":
            artist = ax.contourf(
                X,
                Y,
                Z,
                levels=options.levels("fill_levels"),
                cmap=options.colormap(),
                vmin=options.clim[0],
                vmax=options.clim[1],
                extend="both",
                **kwargs,
            )
        case "contour":
            kwargs.setdefault("colors", "k")
            kwargs.setdefault("linewidths", 0.8)
            artist = ax.contour(
                X, Y, Z, levels=options.levels("contour_levels"), **kwargs
            )
            if clabels and artist.levels.size:
                ax.clabel(artist, fmt="%d", fontsize=8)
            colorbar = False
        case _:
            raise ValueError(
                f"seriestype must be 'pcolormesh', 'contourf' or 'contour', got {seriestype!r}."
            )
    if colorbar:
        ax.figure.colorbar(artist, ax=ax, label=options.colorbar_label)
    return artist


def plot_horizontal_slice(
    x,
    grid,
    depth: float,
    ax=None,
    options: PlotOptions = None,
    seriestype="pcolormesh",
    colorbar=True,
    clabels=False,
    **kwargs,
):
    """Map of ``x`` at ``depth`` (m)."""
    options = options or PlotOptions()
    ax = _new_axes(ax)
    da = horizontal_slice(_apply_mask(x, options), grid, depth)
    _draw_field(
        ax, da.lon, da.lat, da.values, options, seriestype, colorbar, clabels,
        **kwargs,
    )
    ax.set_xlabel("Longitude (°E)")
    ax.set_ylabel("Latitude (°N)")
    ax.set_title(f"{da.attrs['depth']:g} m")
    return ax


def plot_meridional_slice(
    x,
    grid,
    lon: float,
    ax=None,
    options: PlotOptions = None,
    seriestype="pcolormesh",
    colorbar=True,
    clabels=False,
    **kwargs,
):
    """Latitude/depth section of ``x`` at longitude ``lon``."""
    options = options or PlotOptions()
    ax = _new_axes(ax)
    da = meridional_slice(_apply_mask(x, options), grid, lon)
    _draw_field(
        ax,
        da.lat,
        da.depth * options.depth_factor,
        da.values.T,
        options,
        seriestype,
        colorbar,
        clabels,
        **kwargs,
    )
    if not ax.yaxis_inverted():
        ax.invert_yaxis()
    ax.set_xlabel("Latitude (°N)")
    ax.set_ylabel(options.depth_label)
    ax.set_title(prettylon(da.attrs["lon"]))
    return ax


def plot_zonal_average(
    x,
    grid,
    mask=None,
    ax=None,
    options: PlotOptions = None,
    seriestype="pcolormesh",
    colorbar=True,
    clabels=False,
    **kwargs,
):
    """Latitude/depth section of the zonal average of ``x``."""
    options = options or PlotOptions()
    ax = _new_axes(ax)
    da = zonal_average(x, grid, mask=mask if mask is not None else options.mask)
    _draw_field(
        ax,
        da.lat,
        da.depth * options.depth_factor,
        da.values.T,
        options,
        seriestype,
        colorbar,
        clabels,
        **kwargs,
    )
    if not ax.yaxis_inverted():
        ax.invert_yaxis()
    ax.set_xlabel("Latitude (°N)")
    ax.set_ylabel(options.depth_label)
    ax.set_title("Zonal average")
    return ax


def plot_vertical_mean(
    x,
    grid,
    mask=None,
    ax=None,
    options: PlotOptions = None,
    seriestype="pcolormesh",
    colorbar=True,
    clabels=False,
    **kwargs,
):
    """Map of the water-column mean of ``x``."""
    options = options or PlotOptions()
    ax = _new_axes(ax)
    da = vertical_mean(x, grid, mask=mask if mask is not None else options.mask)
    _draw_field(
        ax, da.lon, da.lat, da.values, options, seriestype, colorbar, clabels,
        **kwargs,
    )
    ax.set_xlabel("Longitude (°E)")
    ax.set_ylabel("Latitude (°N)")
    ax.set_title("Vertical mean")
    return ax


def plot_horizontal_average(
    x, grid, mask=None, ax=None, options: PlotOptions = None, **kwargs
):
    """Profile of the horizontal average of ``x``."""
    options = options or PlotOptions()
    ax = _new_axes(ax, figsize=(3, 4))
    da = horizontal_average(
        x, grid, mask=mask if mask is not None else options.mask
    )
    ax.plot(da.values, da.depth * options.depth_factor, **kwargs)
    if not ax.yaxis_inverted():
        ax.invert_yaxis()
    ax.set_xlim(*options.clim)
    ax.set_xlabel(f"Horizontally averaged {options.colorbar_label}")
    ax.set_ylabel(options.depth_label)
    return ax


def plot_depth_profile(
    x, grid, lonlat, ax=None, options: PlotOptions = None, xlim=None, **kwargs
):
    """Profile of ``x`` in the water column nearest to (lon, lat)."""
    options = options or PlotOptions()
    ax = _new_axes(ax, figsize=(3, 4))
    da = depth_profile(_apply_mask(x, options), grid, lonlat)
    ax.plot(da.values, da.depth * options.depth_factor, **kwargs)
    if not ax.yaxis_inverted():
        ax.invert_yaxis()
    ax.set_xlim(*(xlim or options.clim))
    ax.set_xlabel(options.colorbar_label)
    ax.set_ylabel(options.depth_label)
    ax.set_title(f"({prettylon(lonlat[0])}, {prettylat(lonlat[1])})")
    return ax


def pretty_horizontal_slice(x, grid, depth, ax=None, options=None, title=None):
    """Heatmap overlaid with filled contours and labelled black contours."""
    options = options or PlotOptions()
    ax = plot_horizontal_slice(x, grid, depth, ax=ax, options=options)
    plot_horizontal_slice(
        x, grid, depth, ax=ax, options=options, seriestype="contourf",
        colorbar=False, antialiased=False,
    )
    plot_horizontal_slice(
        x, grid, depth, ax=ax, options=options, seriestype="contour",
        clabels=True,
    )
    if title is not None:
        ax.set_title(title)
    return ax


def pretty_zonal_average(x, grid, mask=None, ax=None, options=None, title=None):
    """Zonal average heatmap with labelled black contours, depth in km."""
    options = replace(options or PlotOptions(), yunit="km")
    ax = plot_zonal_average(x, grid, mask=mask, ax=ax, options=options)
    plot_zonal_average(
        x, grid, mask=mask, ax=ax, options=options, seriestype="contour",
        clabels=True,
    )
    if title is not None:
        ax.set_title(title)
    return ax


def plot_basins(masks: dict, grid, ax=None):
    """Categorical map of the basins in ``masks`` with their names."""
    ax = _new_axes(ax)
    basin_index = sum(
        k * mask.astype(float) for k, mask in enumerate(masks.values(), start=1)
    )
    options = PlotOptions(clim=(-0.5, len(masks) + 0.5))
    da = vertical_mean(basin_index, grid)
    ax.pcolormesh(
        da.lon,
        da.lat,
        da.values,
        cmap=ListedColormap(BASIN_COLORS[: len(masks) + 1]),
        vmin=options.clim[0],
        vmax=options.clim[1],
        shading="auto",
    )
    for name in masks:
        if name in BASIN_LABEL_POSITIONS:
            ax.annotate(name, BASIN_LABEL_POSITIONS[name], ha="center")
    ax.set_xlabel("Longitude (°E)")
    ax.set_ylabel("Latitude (°N)")
    ax.set_title("Ocean basins")
    return ax


def plot_basin_profiles(x, grid, masks: dict, ax=None, options=None):
    """Horizontally averaged profiles of ``x`` for each basin."""
    options = options or PlotOptions()
    ax = _new_axes(ax, figsize=(4, 5))
    for icolor, (name, mask) in enumerate(masks.items(), start=1):
        plot_horizontal_average(
            x,
            grid,
            mask=mask,
            ax=ax,
            options=options,
            color=BASIN_COLORS[icolor % len(BASIN_COLORS)],
            lw=3,
            label=name,
        )
    ax.set_xlabel(f"Basin averaged {options.colorbar_label}")
    ax.legend(loc="lower left")
    return ax


def slice_and_profile(age, grid, depth, click_coordinate=None, options=None):
    """
    Map of ``age`` at ``depth`` with a colorbar strip underneath and a
    depth profile on the side.

    The profile is taken at ``click_coordinate`` (lon, lat), which is also
    marked on the map, or is the horizontal average when no coordinate is
    given. The map spans 0-360°E and 90°S-90°N.

    Returns
    -------
    fig : matplotlib.figure.Figure
    ax_map : matplotlib.axes.Axes
        The map axes, first in fig.axes, for use with ClickablePlot.
    """
    options = options or PlotOptions()
    fig = Figure(figsize=(8, 4))
    gs = fig.add_gridspec(
        2, 2, width_ratios=(0.8, 0.2), height_ratios=(0.925, 0.075),
        bottom=0.12, hspace=0.35,
    )
    ax_map = fig.add_subplot(gs[0, 0])
    ax_cbar = fig.add_subplot(gs[1, 0])
    ax_pro = fig.add_subplot(gs[:, 1])

    plot_horizontal_slice(age, grid, depth, ax=ax_map, options=options, colorbar=False)
    plot_horizontal_slice(
        age, grid, depth, ax=ax_map, options=options, seriestype="contourf",
        colorbar=False,
    )
    plot_horizontal_slice(
        age, grid, depth, ax=ax_map, options=options, seriestype="contour",
        clabels=True,
    )
    ax_map.set_title(f"Radiocarbon age at {depth:g} m")
    ax_map.set_xlabel("")

    xlim = (options.clim[0], 1.2 * options.clim[1])
    if click_coordinate is not None:
        lon, lat = click_coordinate
        ax_map.scatter([lon], [lat], c="k", zorder=3)
        ax_map.annotate(
            f"{prettylon(lon)}, {prettylat(lat)}",
            (lon, lat - 10),
            color="red",
            ha="center",
            fontsize=10,
        )
        ax_map.axvline(lon, color="red", linestyle="--")
        ax_map.axhline(lat, color="red", linestyle="--")
        plot_depth_profile(
            age, grid, (lon, lat), ax=ax_pro, options=options, xlim=xlim, lw=3
        )
        ax_pro.axhline(depth * options.depth_factor, color="red", linestyle="--")
    else:
        plot_horizontal_average(age, grid, ax=ax_pro, options=options, lw=3)
        ax_pro.set_xlim(*xlim)
        ax_pro.set_xlabel("Age")
    ax_map.set_xlim(0, 360)
    ax_map.set_ylim(-90, 90)

    crange = np.linspace(*options.clim, 100)
    bar = np.vstack([crange, crange])
    ax_cbar.contourf(
        crange,
        [0, 1],
        bar,
        levels=options.levels("fill_levels"),
        cmap=options.colormap(),
        vmin=options.clim[0],
        vmax=options.clim[1],
    )
    ax_cbar.contour(
        crange, [0, 1], bar, levels=options.levels("contour_levels"), colors="k"
    )
    ax_cbar.set_yticks([])
    ax_cbar.set_xlabel(f"Radiocarbon {options.colorbar_label}")
    return fig, ax_map
