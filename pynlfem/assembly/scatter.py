"""pynlfem.assembly.scatter
Numba kernels moving element contributions into global storage.

Negative DOF entries denote eliminated (essential-BC) nodes and are skipped.
"""
import numba
import numpy as np


@numba.njit(cache=True)
def scatter_matrix(dofs, Ke, rows, cols, data, pos):
    """Append the free-free block of *Ke* to COO triplets starting at *pos*."""
    n = dofs.shape[0]
    for a in range(n):
        A = dofs[a]
        if A < 0:
            continue
        for b in range(n):
            B = dofs[b]
            if B < 0:
                continue
            rows[pos] = A
            cols[pos] = B
            data[pos] = Ke[a, b]
            pos += 1
    return pos


@numba.njit(cache=True)
def scatter_vector(dofs, Fe, F):
    for a in range(dofs.shape[0]):
        A = dofs[a]
        if A >= 0:
            F[A] += Fe[a]


def triplet_buffers(n_blocks: int, n_loc: int, dtype):
    size = n_blocks * n_loc * n_loc
    return (np.empty(size, dtype=np.int64),
            np.empty(size, dtype=np.int64),
            np.empty(size, dtype=dtype))
