"""Steady-state solver for tracer models in pyC14."""

from typing import NamedTuple

import numpy as np
import numpy.typing as npt
from scipy import sparse
from scipy.sparse.linalg import splu
from tqdm import tqdm

COMPLEX_STEP = 1e-20


class ConvergenceError(RuntimeError):
    """The steady-state iteration did not reach the requested tolerance."""


class SteadyStateSolution(NamedTuple):
    u: npt.NDArray
    residual: float
    iterations: int


def state_function(T, local_sources):
    """
    Combine a transport operator and local sources into a state function.

    The tracer equation is dx/dt + T x = local_sources(x, p), so the state
    function is F(x, p) = local_sources(x, p) - T x and its Jacobian is
    diag(d local_sources / dx) - T.

    Parameters
    ----------
    T : scipy.sparse matrix
        Square transport operator (s^-1).
    local_sources : callable
        local_sources(x, p) -> array. Must act elementwise on x, since its
        derivative is taken by complex step on the diagonal only.

    Returns
    -------
    F : callable
        F(x, p) -> array, the rate of change of x.
    jacobian : callable
        jacobian(x, p) -> scipy.sparse.csc_matrix.
    """
    T = sparse.csc_matrix(T)
    if T.shape[0] != T.shape[1]:
        raise ValueError(f"Transport operator must be square, got {T.shape}.")

    def F(x, p):
        return local_sources(x, p) - T @ x

    def jacobian(x, p):
        x = np.asarray(x, dtype=float)
        d = np.imag(local_sources(x + 1j * COMPLEX_STEP, p)) / COMPLEX_STEP
        d = np.broadcast_to(d, x.shape)
        return (sparse.diags(d) - T).tocsc()

    return F, jacobian


def solve_steady_state(
    F,
    jacobian,
    x0: npt.ArrayLike,
    p,
    tol: float = 1e-8,
    maxiter: int = 50,
    verbose_tf=True,
):
    """
    Find x such that F(x, p) = 0, starting from x0.

    Shamanskii-type quasi-Newton iteration: the LU factorization of the
    Jacobian is kept while the residual norm at least halves at each step,
    and recomputed at the current iterate otherwise.

    Parameters
    ----------
    F, jacobian : callable
        As returned by state_function.
    x0 : ArrayLike
        Initial guess.
    p : object
        Parameters passed through to F and jacobian.
    tol : float, optional
        Convergence is declared when the residual norm falls below
        tol times the residual norm at x0. The default is 1e-8.
    maxiter : int, optional
        Maximum number of iterations. The default is 50.
    verbose_tf : bool, optional
        Show a progress bar and a summary line. The default is True.

    Raises
    ------
    ConvergenceError
        The residual did not reach tolerance within maxiter iterations, a
        non-finite residual appeared, or the Jacobian is singular.

    Returns
    -------
    solution : SteadyStateSolution
        Named tuple with the root ``u``, the final residual norm and the
        number of iterations.
    """
    x = np.array(x0, dtype=float)
    f = F(x, p)
    if f.shape != x.shape:
        raise ValueError(
            f"State function returned shape {f.shape} for an initial guess of shape {x.shape}."
        )
    fnorm = np.linalg.norm(f)
    if fnorm == 0:
        return SteadyStateSolution(u=x, residual=0.0, iterations=0)
    ftol = tol * fnorm

    lu = None
    ratio = 1.0
    for iteration in tqdm(
        range(1, maxiter + 1), disable=(not verbose_tf), desc="Steady state"
    ):
        if lu is None or ratio > 0.5:
            try:
                lu = splu(jacobian(x, p))
            except RuntimeError as e:
                raise ConvergenceError(
                    f"Jacobian could not be factorized at iteration {iteration}: {e}"
                ) from e
        x = x - lu.solve(f)
        f = F(x, p)
        fnorm_new = np.linalg.norm(f)
        if not np.isfinite(fnorm_new):
            raise ConvergenceError(
                f"Non-finite residual at iteration {iteration}."
            )
        ratio = fnorm_new / fnorm
        fnorm = fnorm_new
        if fnorm <= ftol:
            if verbose_tf:
                print(
                    f"\nSteady state reached after {iteration} iterations (|F| = {fnorm:.3g})."
                )
            return SteadyStateSolution(
                u=x, residual=fnorm, iterations=iteration
            )
    raise ConvergenceError(
        f"No steady state after {maxiter} iterations (|F| = {fnorm:.3g}, target {ftol:.3g})."
    )
