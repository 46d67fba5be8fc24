import marimo

__generated_with = "0.13.14"
app = marimo.App()


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    # pyC14 tutorial: Radiocarbon age

    In this notebook, you will simulate the radiocarbon age in the global ocean in just a few minutes!

    ## Introduction

    Radiocarbon, ¹⁴C, is produced by cosmic rays hitting ¹⁴N atoms in the lower stratosphere and upper troposphere.
    ¹⁴C then quickly reacts with oxygen to produce ¹⁴CO₂, which eventually enters the ocean through air–sea gas exchange.

    As it travels the oceans, radiocarbon decays (halflife ~5730 yr).
    Deviations of ¹⁴C concentrations away from atmospheric values serve as a tracer label for the time passed since a water parcel was last in contact with the atmosphere.
    We call this mean time the "radiocarbon age", and we are going to calculate it!

    ## Tracer equation

    After discretization onto a 3D grid and stacking the wet cells into a column vector, the tracer equation is

    $$\frac{\partial \boldsymbol{R}}{\partial t} + \mathbf{T} \, \boldsymbol{R} = \frac{\lambda}{h} (R_\mathsf{atm} - \boldsymbol{R}) (\boldsymbol{z} ≤ h) - \boldsymbol{R} / \tau,$$

    where $\mathbf{T}$ is a sparse matrix representing the ocean circulation. The goal is to solve for the steady state, $\partial \boldsymbol{R} / \partial t = 0$.
    """
    )
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    ### 1. Choose a circulation

    The toy circulation below runs anywhere. To use an OCIM circulation instead, download its `.mat` file and replace the cell with

    ```python
    grid, T = load_circulation("CTL.mat")
    ```
    """
    )
    return


@app.cell
def _(toy_circulation):
    grid, T = toy_circulation(nlat=18, nlon=36)
    return T, grid


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    ### 2. Local sources and sinks, parameters, and the state function

    Air–sea exchange with a piston velocity of 50 m / 10 yr over the top layer and radioactive decay with a timescale of 5730 yr / log(2). The state function $\boldsymbol{F}(\boldsymbol{R}, \boldsymbol{p}) = \partial \boldsymbol{R} / \partial t$ and its Jacobian are built from $\mathbf{T}$ and the local sources.
    """
    )
    return


@app.cell
def _(default_params, grid, radiocarbon_sources, state_function, T):
    p = default_params(grid)
    F, jacobian = state_function(T, radiocarbon_sources(grid))
    return F, jacobian, p


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""### 3. Run the simulation! We start from zeros.""")
    return


@app.cell
def _(F, age_from_concentration, grid, jacobian, np, p, solve_steady_state):
    R = solve_steady_state(F, jacobian, np.zeros(grid.nwet), p, verbose_tf=False).u
    C14age = age_from_concentration(R, p.tau, p.Ratm)
    return (C14age,)


@app.cell(hide_code=True)
def _(mo):
    mo.md(
        r"""
    Since radiocarbon decays with timescale $\tau$, $R = R_\mathsf{atm} \exp(-t/\tau)$, so the age is $t = \tau \log(R_\mathsf{atm} / R)$.

    ## Plot it from all angles

    Move the slider to change the depth of the map, and click (or drag) on the map to select a location.
    """
    )
    return


@app.cell
def _(mo):
    depth_slider = mo.ui.slider(start=0, stop=6000, step=50, value=500, label="depth (m)")
    depth_slider
    return (depth_slider,)


@app.cell
def _(C14age, grid, initially, mo, plot_click_tracker, slice_and_profile):
    # created once; the next cell redraws it so the selection survives depth changes
    _fig, _ = slice_and_profile(C14age, grid, 500)
    mainplot = mo.ui.anywidget(
        initially([160.0, 0.0], plot_click_tracker(_fig, draggable=True))
    )
    mainplot
    return (mainplot,)


@app.cell
def _(C14age, depth_slider, grid, mainplot, slice_and_profile):
    x0 = mainplot.value["value"]
    lon, lat = x0 if x0 else (180.0, 0.0)
    mainplot.widget.update_figure(
        slice_and_profile(C14age, grid, depth_slider.value, (lon, lat))[0]
    )
    return lat, lon


@app.cell
def _(C14age, grid, lon, plot_meridional_slice, plot_options, prettylon):
    _ax = plot_meridional_slice(C14age, grid, lon, options=plot_options)
    plot_meridional_slice(C14age, grid, lon, ax=_ax, options=plot_options, seriestype="contour", clabels=True)
    _ax.set_title(f"Radiocarbon age at {prettylon(lon)}")
    _ax.figure
    return


@app.cell
def _(C14age, grid, lat, lon, plot_depth_profile, plot_options):
    _ax = plot_depth_profile(C14age, grid, (lon, lat), options=plot_options, lw=3)
    _ax.figure
    return


@app.cell
def _(C14age, grid, plot_options, pretty_zonal_average):
    pretty_zonal_average(C14age, grid, options=plot_options, title="Global zonal average of radiocarbon age").figure
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""## Extras: compose with basin masks""")
    return


@app.cell
def _(basin_masks, grid, plot_basins):
    masks = basin_masks(grid)
    plot_basins(masks, grid).figure
    return (masks,)


@app.cell
def _(C14age, grid, masks, plot_basin_profiles, plot_options):
    plot_basin_profiles(C14age, grid, masks, options=plot_options).figure
    return


@app.cell
def _(PlotOptions):
    plot_options = PlotOptions(clim=(0, 2500), cmap="cmo.deep")
    return (plot_options,)


@app.cell
def _():
    import marimo as mo
    import numpy as np
    from pyC14 import age_from_concentration, default_params, radiocarbon_sources
    from pyC14.grids import basin_masks, toy_circulation, load_circulation
    from pyC14.solver import state_function, solve_steady_state
    from pyC14.plotting import (
        PlotOptions,
        slice_and_profile,
        plot_meridional_slice,
        plot_depth_profile,
        pretty_zonal_average,
        plot_basins,
        plot_basin_profiles,
    )
    from pyC14.utils import prettylon
    from pyC14.widgets import initially, plot_click_tracker
    return (
        PlotOptions,
        age_from_concentration,
        basin_masks,
        default_params,
        initially,
        load_circulation,
        mo,
        np,
        plot_basin_profiles,
        plot_basins,
        plot_click_tracker,
        plot_depth_profile,
        plot_meridional_slice,
        pretty_zonal_average,
        prettylon,
        radiocarbon_sources,
        slice_and_profile,
        solve_steady_state,
        state_function,
        toy_circulation,
    )


if __name__ == "__main__":
    app.run()
