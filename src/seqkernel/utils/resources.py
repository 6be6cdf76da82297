"""
Resource and optional dependency management.
"""
from contextlib import contextmanager
from functools import cached_property, lru_cache, wraps
from importlib import import_module
from pathlib import Path
from warnings import warn
import os
from typing import Callable


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SeqkernelWarning(Warning): pass
class DependencyWarning(SeqkernelWarning): pass


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Manages process-wide resources such as the CPU count and optional dependencies.

    Attributes:
        package (str): The package name.
    """
    def __init__(self) -> None:
        self.package = Path(__file__).parent.parent.name

    @cached_property
    def available_cpus(self) -> int:
        """Returns the number of available CPUs."""
        try: return os.process_cpu_count()
        except AttributeError: return os.cpu_count()

    @cached_property
    def has_numba(self) -> bool:
        """Whether kernels are compiled with Numba."""
        return self.has_module('numba')

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Checks if a python package is installed."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False


# Decorators -----------------------------------------------------------------------------------------------------------
def require(*packages: str) -> Callable:
    """
    A decorator to check for required optional packages before executing a function.

    Args:
        *packages: Variable number of package names (strings) that are required.

    Returns:
        A decorator that wraps the function. If any required packages are missing,
        it issues a DependencyWarning and returns None. Otherwise, it executes
        the original function.

    Examples:
        >>> @require('numba')
        ... def set_threads(n): ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if missing_deps := [dep for dep in packages if not RESOURCES.has_module(dep)]:
                warn(
                    f"Function '{func.__name__}' requires the following missing dependencies: "
                    f"{', '.join(missing_deps)}. Skipping execution.",
                    DependencyWarning
                )
                return None
            return func(*args, **kwargs)
        return wrapper
    return decorator


def jit(signature_or_function=None, **options) -> Callable:
    """
    Conditional Numba JIT decorator.

    If 'numba' is installed (checked via RESOURCES), this applies `numba.jit`
    with the provided arguments. Otherwise, it returns the original function unmodified,
    ignoring any compilation options.

    Examples:
        >>> @jit  # Bare usage
        ... def func(): ...

        >>> @jit(nopython=True, cache=True)  # Configured usage
        ... def func(): ...
    """
    # 1. Fallback: Numba not installed
    if not RESOURCES.has_numba:
        if callable(signature_or_function): return signature_or_function  # Handle bare @jit
        def passthrough(func: Callable) -> Callable: return func  # Handle @jit(...)
        return passthrough
    # 2. Apply Numba
    from numba import jit as real_jit
    if callable(signature_or_function): return real_jit(signature_or_function)  # Handle bare @jit
    return real_jit(signature_or_function, **options)  # Handle @jit(...)


@require('numba')
def set_threads(n: int = None) -> int:
    """
    Sets the number of threads used by parallel kernels.

    Args:
        n: Requested thread count (default: all available CPUs), clamped to [1, NUMBA_NUM_THREADS].

    Returns:
        The thread count now in effect, or None (with a DependencyWarning) without Numba.
    """
    from numba import config, set_num_threads, get_num_threads
    if n is None: n = RESOURCES.available_cpus or 1
    set_num_threads(max(1, min(int(n), config.NUMBA_NUM_THREADS)))
    return get_num_threads()


@contextmanager
def thread_limit(n: int = None):
    """
    Temporarily sets the number of threads used by parallel kernels.

    The previous thread count is restored on exit. ``None`` leaves the count untouched.

    Examples:
        >>> with thread_limit(2):
        ...     K = kernel_matrix(['HELLO', 'HELP'], SubstitutionMatrix.identity(), 2, 0.5)
    """
    if n is None or not RESOURCES.has_numba:
        yield None if n is None else set_threads(n)  # Without Numba, set_threads warns and returns None
        return
    from numba import get_num_threads
    previous = get_num_threads()
    try:
        yield set_threads(n)
    finally:
        set_threads(previous)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
