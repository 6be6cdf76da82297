"""Sequence containers backed by flat NumPy arrays for the JIT kernels."""
