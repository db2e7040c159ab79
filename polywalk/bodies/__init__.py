from .base import ConvexBody, PolyhedralBody
from .hpolytope import HPolytope
from .generators import generate_box, generate_cross_polytope, generate_cube, generate_simplex

__all__ = [
    'ConvexBody',
    'PolyhedralBody',
    'HPolytope',
    'generate_box',
    'generate_cross_polytope',
    'generate_cube',
    'generate_simplex',
]
