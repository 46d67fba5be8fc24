"""
Top level module of pyC14.

radiocarbon_age()
    Solves for the steady-state radiocarbon concentration of a transport
    matrix circulation and converts it into a radiocarbon age.
age_from_concentration()
    Converts radiocarbon concentrations into ages.
"""

import sys
import warnings
import datetime
import platform
from typing import NamedTuple

import numpy as np
import numpy.typing as npt
import xarray as xr

from pyC14.solver import state_function, solve_steady_state
from pyC14.utils import YEAR, NANOMOLAR, params_check, seconds_to_years


class C14Params(NamedTuple):
    """Radiocarbon parameters, all in SI units."""

    lam: float  # piston velocity (m s-1)
    h: float  # air-sea exchange depth (m)
    tau: float  # radioactive decay timescale (s)
    Ratm: float  # atmospheric radiocarbon (mol m-3)


def default_params(grid):
    """
    Default parameters: a piston velocity of 50 m / 10 yr over the top
    layer, a decay timescale of 5730 yr / log(2), and Ratm = 42 nM.
    """
    return C14Params(
        lam=50.0 / (10 * YEAR),
        h=float(grid.depth_thickness[0]),
        tau=5730 * YEAR / np.log(2),
        Ratm=42.0 * NANOMOLAR,
    )


def radiocarbon_sources(grid):
    """Air-sea exchange over the top h meters and radioactive decay."""
    z = grid.depthvec()

    def RHS(R, p):
        return p.lam / p.h * (p.Ratm - R) * (z <= p.h) - R / p.tau

    return RHS


def age_from_concentration(R, tau: float, Ratm: float):
    """
    Radiocarbon age in years from concentrations, since R = Ratm exp(-t/tau)
    implies t = tau log(Ratm / R). Non-positive concentrations give NaN.
    """
    R = np.asarray(R, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(R > 0, tau * np.log(Ratm / R), np.nan)
    return seconds_to_years(t)


def radiocarbon_age(
    grid,
    T,
    params: C14Params = None,
    initial_guess: npt.ArrayLike = None,
    output_filename: str = None,
    verbose_tf=True,
    tol: float = 1e-8,
    maxiter: int = 50,
):
    """
    Simulates the steady-state radiocarbon age of the ocean.

    The discrete tracer equation

        dR/dt + T R = lam / h (Ratm - R) (z <= h) - R / tau

    is solved for dR/dt = 0 and the concentration converted into an age
    t = tau log(Ratm / R).

    Parameters
    ----------
    grid : pyC14.grids.OceanGrid
        Grid of the circulation. Its first layer thickness sets the default
        air-sea exchange depth.
    T : scipy.sparse matrix
        Transport operator (s^-1) acting on wet-cell vectors of grid.
    params : C14Params, optional
        Radiocarbon parameters in SI units.
        The default is default_params(grid).
    initial_guess : ArrayLike, optional
        Initial radiocarbon concentration vector (mol m-3).
        The default is zeros.
    output_filename : str, optional
        Filename for the output to be saved in the current working
        directory. If no filename is given, no file will be saved.
        Presently only NETCDF4 (.nc) files can be saved.
        The default is None.
    verbose_tf : bool, optional
        Flag to control output verbosity. Setting this to False will
        make pyC14 stop printing updates to the command line.  Warnings
        and errors, if any, will be given regardless.
        The default is True.
    tol : float, optional
        Relative residual tolerance of the steady-state solve.
        The default is 1e-8.
    maxiter : int, optional
        Maximum number of solver iterations. The default is 50.

    Raises
    ------
    ValueError
        Inconsistent grid, operator, parameters or initial guess.
    pyC14.solver.ConvergenceError
        The solver did not converge.

    Returns
    -------
    output : xarray.Dataset
        CF-style dataset with the radiocarbon concentration (c14) and age
        (c14_age) on (lat, lon, depth), land as NaN.

    """
    if params is None:
        params = default_params(grid)
    params = params_check(params)

    if T.shape != (grid.nwet, grid.nwet):
        raise ValueError(
            f"Transport operator has shape {T.shape} but the grid has {grid.nwet} wet cells."
        )
    if initial_guess is None:
        initial_guess = np.zeros(grid.nwet)
    initial_guess = np.asarray(initial_guess, dtype=float)
    if initial_guess.shape != (grid.nwet,):
        raise ValueError(
            f"initial_guess must have {grid.nwet} elements, got shape {initial_guess.shape}."
        )

    if verbose_tf:
        print(f"\nSolving for steady-state radiocarbon on {grid.nwet} wet cells.")
    F, jacobian = state_function(T, radiocarbon_sources(grid))
    solution = solve_steady_state(
        F,
        jacobian,
        initial_guess,
        params,
        tol=tol,
        maxiter=maxiter,
        verbose_tf=verbose_tf,
    )
    R = solution.u
    age = age_from_concentration(R, params.tau, params.Ratm)

    output = xr.Dataset(
        data_vars=dict(
            c14=(
                ["lat", "lon", "depth"],
                grid.to_3d(R),
                {
                    "units": "mol m-3",
                    "long_name": "radiocarbon concentration",
                },
            ),
            c14_age=(
                ["lat", "lon", "depth"],
                grid.to_3d(age),
                {
                    "units": "year",
                    "long_name": "radiocarbon age",
                    "standard_name": "radiocarbon_age_of_sea_water",
                },
            ),
        ),
        coords=dict(
            lat=(
                ["lat"],
                grid.lat,
                {
                    "units": "degrees_north",
                    "long_name": "latitude",
                    "standard_name": "latitude",
                    "valid_min": -90,
                    "valid_max": 90,
                },
            ),
            lon=(
                ["lon"],
                grid.lon,
                {
                    "units": "degrees_east",
                    "long_name": "longitude",
                    "standard_name": "longitude",
                    "valid_min": -360,
                    "valid_max": 360,
                },
            ),
            depth=(
                ["depth"],
                grid.depth,
                {
                    "units": "m",
                    "long_name": "depth",
                    "standard_name": "depth_below_sea_surface",
                    "positive": "down",
                },
            ),
        ),
        attrs=dict(
            Conventions="CF-1.10",
            description="Steady-state radiocarbon age of a transport matrix circulation",
            history="pyC14 version 0.1.0, "
            + str(datetime.datetime.now())
            + " Python "
            + sys.version
            + " "
            + platform.platform(),
            date_created=str(datetime.datetime.now()),
            c14_parameters=f"lam: {params.lam} m s-1, h: {params.h} m, tau: {params.tau} s, Ratm: {params.Ratm} mol m-3",
            solver=f"iterations: {solution.iterations}, residual: {solution.residual}",
        ),
    )
    if verbose_tf:
        print("\nRadiocarbon age completed.")
    if output_filename is not None:
        try:
            output.to_netcdf(output_filename)
        except Exception as e:
            warnings.warn(f"File {output_filename} could not be saved: {e}")
    return output
