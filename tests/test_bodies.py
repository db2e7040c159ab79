"""
Convex body tests - H-polytopes, inner balls, ray intersection and generators.

Run with: pytest tests/test_bodies.py -v
"""

import math

import numpy as np
import pytest
import torch

from polywalk import (
    ConvexBody,
    HPolytope,
    PolyhedralBody,
    generate_box,
    generate_cross_polytope,
    generate_cube,
    generate_simplex,
)


def _t(*values):
    return torch.tensor(values, dtype=torch.float64)


# ============================================================================
# H-POLYTOPE
# ============================================================================

class TestHPolytope:

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            HPolytope(np.eye(2), np.ones(3))

    def test_zero_row_raises(self):
        with pytest.raises(ValueError):
            HPolytope([[1.0, 0.0], [0.0, 0.0]], [1.0, 1.0])

    def test_membership(self, square):
        assert square.is_feasible(_t(0.0, 0.0))
        assert square.is_feasible(_t(1.0, -1.0))
        assert not square.is_feasible(_t(1.01, 0.0))
        assert not square.is_feasible(_t(0.0, 0.0, 0.0))

    def test_is_polyhedral(self, square):
        assert isinstance(square, PolyhedralBody)
        A, b = square.constraints()
        assert A.shape == (4, 2)
        assert square.num_facets() == 4

    def test_chebyshev_ball_of_box(self):
        # built directly, so the ball comes from the linear program
        P = HPolytope(np.vstack([np.eye(2), -np.eye(2)]), [3.0, 1.0, 1.0, 1.0])
        center, radius = P.inner_ball()
        assert radius == pytest.approx(1.0, abs=1e-7)
        assert center[1].item() == pytest.approx(0.0, abs=1e-7)
        assert -1.0 + 1.0 - 1e-7 <= center[0].item() <= 3.0 - 1.0 + 1e-7

    def test_chebyshev_ball_of_triangle(self):
        P = HPolytope(np.vstack([-np.eye(2), np.ones((1, 2))]), [0.0, 0.0, 1.0])
        center, radius = P.inner_ball()
        expected = 1.0 / (2.0 + math.sqrt(2.0))
        assert radius == pytest.approx(expected, abs=1e-7)
        assert torch.allclose(center, _t(expected, expected), atol=1e-7)

    def test_unbounded_polytope_raises(self):
        P = HPolytope(np.eye(2), [1.0, 1.0])
        with pytest.raises(ValueError):
            P.inner_ball()

    def test_empty_polytope_raises(self):
        P = HPolytope([[1.0], [-1.0]], [-1.0, -1.0])
        with pytest.raises(ValueError):
            P.inner_ball()

    def test_set_inner_ball_validates(self, square):
        with pytest.raises(ValueError):
            square.set_inner_ball(_t(0.0, 0.0), 0.0)
        with pytest.raises(ValueError):
            square.set_inner_ball(_t(2.0, 0.0), 0.5)

    def test_inner_ball_returns_copy(self, square):
        center, _ = square.inner_ball()
        center[0] = 10.0
        assert square.inner_ball()[0][0].item() == 0.0

    def test_ray_intersection_axis(self, square):
        forward, backward, normal = square.ray_intersection(_t(0.5, 0.0), _t(1.0, 0.0))
        assert forward == pytest.approx(0.5)
        assert backward == pytest.approx(1.5)
        assert torch.allclose(normal, _t(1.0, 0.0))

    def test_ray_intersection_diagonal(self, square):
        u = _t(1.0, 1.0) / math.sqrt(2.0)
        forward, backward, normal = square.ray_intersection(_t(0.0, 0.5), u)
        assert forward == pytest.approx(0.5 * math.sqrt(2.0))
        assert backward == pytest.approx(math.sqrt(2.0))
        assert torch.allclose(normal, _t(0.0, 1.0))

    def test_ray_never_exits(self):
        P = HPolytope([[1.0, 0.0]], [1.0])
        forward, backward, _ = P.ray_intersection(_t(0.0, 0.0), _t(0.0, 1.0))
        assert forward == math.inf
        assert backward == math.inf

    def test_geometry_interface(self):
        assert ConvexBody.__abstractmethods__ == {'dimension', 'is_feasible', 'inner_ball', 'ray_intersection'}
        assert PolyhedralBody.__abstractmethods__ == ConvexBody.__abstractmethods__ | {'constraints'}


# ============================================================================
# GENERATORS
# ============================================================================

class TestGenerators:

    def test_cube(self):
        P = generate_cube(4, half_width=2.0)
        assert P.dimension() == 4
        assert P.num_facets() == 8
        center, radius = P.inner_ball()
        assert torch.allclose(center, torch.zeros(4, dtype=torch.float64))
        assert radius == 2.0
        assert P.is_feasible(2.0 * torch.ones(4, dtype=torch.float64))

    def test_box_inner_ball(self):
        P = generate_box([0.0, -1.0], [4.0, 1.0])
        center, radius = P.inner_ball()
        assert torch.allclose(center, _t(2.0, 0.0))
        assert radius == 1.0

    def test_box_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            generate_box([0.0, 1.0], [1.0, 1.0])

    def test_cross_polytope(self):
        P = generate_cross_polytope(3)
        assert P.num_facets() == 8
        assert P.is_feasible(_t(0.5, 0.25, 0.25))
        assert not P.is_feasible(_t(0.5, 0.5, 0.25))
        _, radius = P.inner_ball()
        assert radius == pytest.approx(1.0 / math.sqrt(3.0))

    def test_cross_polytope_dimension_limit(self):
        with pytest.raises(ValueError):
            generate_cross_polytope(17)

    def test_simplex_inner_ball_matches_linear_program(self):
        P = generate_simplex(3)
        center, radius = P.inner_ball()
        A, b = P.constraints()
        lp = HPolytope(A, b)
        lp_center, lp_radius = lp.inner_ball()
        assert radius == pytest.approx(lp_radius, abs=1e-7)
        assert torch.allclose(center, lp_center, atol=1e-6)
