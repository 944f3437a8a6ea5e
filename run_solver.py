"""
Solver Runner - solves the point-charge problem with one method.

Usage:
    uv run python run_solver.py method=conjugate_gradient iterations=20
    uv run python run_solver.py +experiment=comparison --multirun
"""

import logging

import hydra
import numpy as np
from omegaconf import DictConfig

log = logging.getLogger(__name__)

PARAM_KEYS = [
    "method", "iterations", "tolerance", "schedule", "coarse_spacing", "variant",
    "preconditioner_radius_squared", "use_numba", "numba_threads", "experiment_name",
]


def _create_params(cfg: DictConfig):
    """Build SolverParams from the Hydra config."""
    from Hartree import SolverParams

    return SolverParams(**{k: cfg.get(k) for k in PARAM_KEYS if cfg.get(k) is not None})


def _potential_error(cfg: DictConfig, grid, solution: np.ndarray) -> float:
    """Max deviation from Q/r over cells at least two cells from the nucleus."""
    from Hartree import coulomb_potential, distance_from

    exact = coulomb_potential(grid, cfg.charge)
    far = distance_from(grid) >= 2.0 * grid.h
    return float(np.max(np.abs(solution[far] - exact[far])))


def _log_results(cfg: DictConfig, params, result, potential_error: float):
    """Log solver results to MLflow."""
    from utils.mlflow import (
        start_mlflow_run_context,
        log_parameters,
        log_metrics_dict,
        log_timeseries_metrics,
    )
    from Hartree import SolverTimeseries

    run_name = f"{params.method}_N{cfg.N}"
    with start_mlflow_run_context(
        experiment_name=params.experiment_name,
        parent_run_name=f"N{cfg.N}",
        child_run_name=run_name,
    ):
        log_parameters({"N": cfg.N, "h": cfg.h, "charge": cfg.charge, **params.to_mlflow()})
        log_metrics_dict({**result.metrics.to_mlflow(), "potential_error": potential_error})
        log_timeseries_metrics(SolverTimeseries(residual_history=result.residual_history))


@hydra.main(config_path="Experiments/hydra-conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Entry point."""
    from Hartree import Grid, create_solver, point_charge_density, build_right_hand_side

    params = _create_params(cfg)
    grid = Grid(cfg.N, cfg.h)
    log.info(f"{params.method}, N={grid.size}, h={grid.h}, iterations={params.iterations}")

    rho = point_charge_density(grid, cfg.charge)
    b = build_right_hand_side(rho, grid)

    solver = create_solver(params.method, grid, params)
    solver.warmup()
    result = solver.solve(b)
    potential_error = _potential_error(cfg, grid, result.solution)

    log.info(
        f"Done: {result.iterations} iter, residual {result.metrics.initial_residual:.3e} "
        f"-> {result.residual_norm:.3e}, max |phi - Q/r| = {potential_error:.3e}, "
        f"time={result.metrics.wall_time:.3f}s"
    )

    mode = cfg.mlflow.mode
    if mode and mode != "off":
        from utils.mlflow import setup_mlflow_tracking

        setup_mlflow_tracking(mode=mode)
        _log_results(cfg, params, result, potential_error)


if __name__ == "__main__":
    main()
