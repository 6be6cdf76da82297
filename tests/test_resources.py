import pytest
from seqkernel.utils.resources import RESOURCES, DependencyWarning, jit, require, set_threads, thread_limit


class TestResources:
    def test_has_module(self):
        assert RESOURCES.has_module('numpy')
        assert not RESOURCES.has_module('definitely_not_a_module_xyz')

    def test_package_name(self):
        assert RESOURCES.package == 'seqkernel'

    def test_available_cpus(self):
        assert RESOURCES.available_cpus >= 1


class TestDecorators:
    def test_jit_bare(self):
        @jit
        def add(a, b): return a + b
        assert add(2, 3) == 5

    def test_jit_configured(self):
        @jit(nopython=True, cache=False)
        def mul(a, b): return a * b
        assert mul(2, 3) == 6

    def test_require_missing(self):
        @require('definitely_not_a_module_xyz')
        def needs_missing(): return 1
        with pytest.warns(DependencyWarning, match="definitely_not_a_module_xyz"):
            assert needs_missing() is None

    def test_require_present(self):
        @require('numpy')
        def needs_numpy(): return 1
        assert needs_numpy() == 1

    def test_set_threads(self):
        pytest.importorskip('numba')
        assert set_threads(1) == 1
        assert set_threads(10_000) >= 1

    def test_thread_limit_restores(self):
        numba = pytest.importorskip('numba')
        before = numba.get_num_threads()
        with thread_limit(1) as n:
            assert n == 1
            assert numba.get_num_threads() == 1
        assert numba.get_num_threads() == before

    def test_thread_limit_none(self):
        with thread_limit(None) as n:
            assert n is None
