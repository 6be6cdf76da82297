"""Shared utilities: resource management and conditional JIT."""
