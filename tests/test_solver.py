"""End-to-end tests for the solver entry points."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from Hartree import (
    CGSolver,
    GaussSeidelSolver,
    JacobiSolver,
    Method,
    MultigridSolver,
    PCGSolver,
    SolverMetrics,
    SolverParams,
    coulomb_potential,
    create_solver,
    distance_from,
    residual_norm,
    setup_point_charge_problem,
    solve,
)


@pytest.fixture(scope="module")
def problem():
    grid, _, b = setup_point_charge_problem(8, 0.25)
    return grid, b


class TestReferenceRuns:
    """Residuals after a fixed budget on the 8^3 unit-charge problem."""

    def test_jacobi(self, problem):
        grid, b = problem
        result = solve("jacobi", b, grid, {"iterations": 20})
        assert result.residual_norm < 50.0
        assert result.residual_norm < result.metrics.initial_residual

    def test_gauss_seidel(self, problem):
        grid, b = problem
        jacobi = solve("jacobi", b, grid, {"iterations": 20})
        gs = solve("gauss_seidel", b, grid, {"iterations": 20})
        assert gs.residual_norm < jacobi.residual_norm

    def test_gauss_seidel_variants_agree(self, problem):
        grid, b = problem
        sweep = solve("gauss_seidel", b, grid, {"iterations": 5, "variant": "sweep"})
        partition = solve("gauss_seidel", b, grid, {"iterations": 5, "variant": "partition"})
        np.testing.assert_allclose(partition.solution, sweep.solution, atol=1e-10)

    def test_conjugate_gradient(self, problem):
        grid, b = problem
        assert solve("conjugate_gradient", b, grid, {"iterations": 20}).residual_norm < 1e-3

    def test_preconditioned_conjugate_gradient(self, problem):
        grid, b = problem
        result = solve("preconditioned_conjugate_gradient", b, grid, {"iterations": 10})
        assert result.residual_norm < 1e-3

    def test_multigrid(self, problem):
        grid, b = problem
        result = solve("multigrid", b, grid, {"iterations": 15, "schedule": "1-4-1"})
        assert result.residual_norm < 1e-3


class TestMonopoleConsistency:
    """Converged potentials reproduce Q/r away from the nucleus."""

    @pytest.mark.parametrize("method", ["preconditioned_conjugate_gradient", "multigrid"])
    def test_matches_coulomb_potential(self, problem, method):
        grid, b = problem
        result = solve(method, b, grid, {"iterations": 40, "tolerance": 1e-8})

        far = distance_from(grid) >= 2.0 * grid.h
        exact = coulomb_potential(grid)
        np.testing.assert_allclose(result.solution[far], exact[far], atol=0.05)

    def test_potential_symmetric(self, problem):
        grid, b = problem
        phi = grid.volume(solve("conjugate_gradient", b, grid, {"iterations": 25}).solution)
        np.testing.assert_allclose(phi, phi[::-1, ::-1, ::-1], atol=1e-8)
        np.testing.assert_allclose(phi, phi.transpose(2, 0, 1), atol=1e-8)


class TestEntryPoints:
    """Dispatch, configuration and validation."""

    @pytest.mark.parametrize(
        "method, cls",
        [
            ("jacobi", JacobiSolver),
            ("gauss_seidel", GaussSeidelSolver),
            ("conjugate_gradient", CGSolver),
            ("preconditioned_conjugate_gradient", PCGSolver),
            (Method.MULTIGRID, MultigridSolver),
        ],
    )
    def test_create_solver(self, problem, method, cls):
        grid, _ = problem
        solver = create_solver(method, grid)
        assert type(solver) is cls
        assert solver.params.method == Method.parse(method).value

    def test_params_method_overridden(self, problem):
        grid, _ = problem
        solver = create_solver("jacobi", grid, SolverParams(method="multigrid", iterations=3))
        assert solver.params.method == "jacobi"
        assert solver.params.iterations == 3

    def test_unknown_method(self, problem):
        grid, b = problem
        with pytest.raises(ValueError, match="Unknown solver method"):
            solve("steepest_descent", b, grid)

    def test_wrong_rhs_length(self, problem):
        grid, _ = problem
        with pytest.raises(ValueError):
            solve("jacobi", np.zeros(64), grid)

    def test_wrong_initial_guess_length(self, problem):
        grid, b = problem
        with pytest.raises(ValueError):
            solve("jacobi", b, grid, x0=np.zeros(10))

    def test_invalid_config(self, problem):
        grid, b = problem
        with pytest.raises(ValueError):
            solve("multigrid", b, grid, {"schedule": "1-4"})
        with pytest.raises(ValueError):
            solve("jacobi", b, grid, {"iterations": -1})
        with pytest.raises(TypeError):
            solve("jacobi", b, grid, {"sweeps": 3})

    def test_initial_guess_used_and_kept(self, problem):
        grid, b = problem
        exact = solve("conjugate_gradient", b, grid, {"iterations": 40, "tolerance": 1e-9}).solution
        x0 = exact.copy()

        result = solve("jacobi", b, grid, {"iterations": 2}, x0=x0)

        assert result.residual_norm < 1e-6
        np.testing.assert_array_equal(x0, exact)

    def test_zero_iterations(self, problem):
        grid, b = problem
        result = solve("multigrid", b, grid, {"iterations": 0})
        assert result.iterations == 0
        np.testing.assert_array_equal(result.solution, 0.0)
        assert result.residual_norm == pytest.approx(np.linalg.norm(b))

    def test_residual_norm_matches_result(self, problem):
        grid, b = problem
        result = solve("gauss_seidel", b, grid, {"iterations": 3})
        assert residual_norm(result.solution, b, grid) == pytest.approx(result.residual_norm)

    def test_metrics(self, problem):
        grid, b = problem
        result = solve("jacobi", b, grid, {"iterations": 4, "tolerance": 1e-12})
        m = result.metrics
        assert m.iterations == 4
        assert not m.converged
        assert m.final_residual == result.residual_norm
        assert m.wall_time > 0.0
        assert len(result.residual_history) == 5

    def test_concurrent_solves_independent(self, problem):
        grid, b = problem
        methods = ["jacobi", "gauss_seidel", "conjugate_gradient", "preconditioned_conjugate_gradient"]
        serial = [solve(m, b, grid, {"iterations": 5}).solution for m in methods]

        with ThreadPoolExecutor(max_workers=4) as pool:
            parallel = list(pool.map(lambda m: solve(m, b, grid, {"iterations": 5}).solution, methods))

        for s, p in zip(serial, parallel):
            np.testing.assert_array_equal(s, p)


class TestDataStructures:
    """Parameter validation and MLflow conversion."""

    def test_params_defaults(self):
        params = SolverParams()
        assert params.method == "multigrid"
        assert params.schedule == (1, 4, 1)
        assert params.coarse_spacing == "galerkin"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"coarse_spacing": "algebraic"},
            {"variant": "lexicographic"},
            {"tolerance": -1.0},
            {"iterations": 2.5},
            {"preconditioner_radius_squared": -1},
        ],
    )
    def test_params_rejected(self, kwargs):
        with pytest.raises(ValueError):
            SolverParams(**kwargs)

    def test_params_to_mlflow(self):
        out = SolverParams(use_numba=True, schedule=(1, 2, 1)).to_mlflow()
        assert out["schedule"] == "1-2-1"
        assert out["use_numba"] == 1
        assert "tolerance" not in out

    def test_metrics_to_mlflow(self):
        out = SolverMetrics(iterations=3, converged=True, final_residual=0.5).to_mlflow()
        assert out == {"iterations": 3, "converged": 1, "final_residual": 0.5}

    def test_method_parse(self):
        assert Method.parse("CONJUGATE_GRADIENT") is Method.CONJUGATE_GRADIENT
        assert Method.parse(Method.JACOBI) is Method.JACOBI
