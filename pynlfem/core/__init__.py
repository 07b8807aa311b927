from .mesh import Mesh
from .topology import Edge, Element
from .boundary import EssentialBC, EssentialBCs
from .space import H1Space
from .solution import Solution, vector_to_solution

__all__ = [
    "Mesh", "Edge", "Element", "EssentialBC", "EssentialBCs", "H1Space",
    "Solution", "vector_to_solution",
]
