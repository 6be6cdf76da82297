"""
Gap-weighted subsequence string kernel with soft (substitution-score) matching.

The kernel of order ``kn`` between two sequences weights every pair of
common subsequences of length ``kn`` by ``gap_decay`` raised to the total
span they cover. Intermediate orders of the recursion use exact symbol
equality; the substitution matrix is only applied to the final aligned pair
of each subsequence, which softens the last character comparison.
"""
from dataclasses import dataclass
from math import isfinite
from typing import Union, Iterable, Optional
from warnings import warn

import numpy as np

from seqkernel.containers.seq import Seq, SeqBatch
from seqkernel.core.alphabet import AlphabetError
from seqkernel.engines.substitution import SubstitutionMatrix
from seqkernel.utils.resources import jit, RESOURCES, SeqkernelWarning, thread_limit

if RESOURCES.has_numba:
    from numba import prange
else:
    prange = range


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class KernelError(Exception):
    """Base class for string kernel errors."""


class KernelStateError(KernelError, RuntimeError):
    """Raised when kernel values are requested before any sequence data is available."""


class KernelParameterError(KernelError, ValueError):
    """Raised for invalid kernel parameters or arguments."""


class DegenerateInputWarning(SeqkernelWarning):
    """Emitted when degenerate sequences take part in a computation or lose characters while being encoded."""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class KernelParams:
    """
    Immutable parameters of one kernel computation.

    Attributes:
        kn: Subsequence length (order of the kernel), at least 1.
        gap_decay: Per-position decay ``lambda`` in (0, 1].
        normalize: Cosine-normalize the matrix so the diagonal is 1.
        max_length: Optional upper bound on sequence length; longer sequences are rejected.

    Raises:
        KernelParameterError: If a value is out of range.

    Examples:
        >>> KernelParams(kn=3, gap_decay=0.8)
        KernelParams(kn=3, gap_decay=0.8, normalize=True, max_length=None)
    """
    kn: int
    gap_decay: float
    normalize: bool = True
    max_length: Optional[int] = None

    def __post_init__(self):
        _check_params(self.kn, self.gap_decay)
        if self.max_length is not None and (not _is_int(self.max_length) or self.max_length < 0):
            raise KernelParameterError(f'max_length must be a non-negative integer, got {self.max_length!r}')


class StringKernel:
    """
    Builds the symmetric kernel matrix of a sequence store.

    Sequence data is attached with one of two entry points: ``use()`` borrows
    an existing ``SeqBatch`` (no copy), ``load()`` encodes raw strings into a
    batch owned by this kernel.

    Args:
        params: The kernel parameters.
        matrix: The substitution matrix; its alphabet must match the sequences' alphabet.

    Examples:
        >>> sk = StringKernel(KernelParams(kn=2, gap_decay=0.5), SubstitutionMatrix.identity())
        >>> K = sk.load(['HELLO', 'HELP', 'YELLOW']).compute()
        >>> K.shape
        (3, 3)
    """
    __slots__ = ('params', 'matrix', '_data', '_values', '_norms')

    def __init__(self, params: KernelParams, matrix: SubstitutionMatrix):
        if not isinstance(params, KernelParams): raise TypeError(f'Expected KernelParams, got {type(params)}')
        if not isinstance(matrix, SubstitutionMatrix):
            raise TypeError(f'Expected SubstitutionMatrix, got {type(matrix)}')
        self.params = params
        self.matrix = matrix
        self._data: Optional[SeqBatch] = None
        self._values: Optional[np.ndarray] = None
        self._norms: Optional[np.ndarray] = None

    def __len__(self): return self.size
    def __repr__(self):
        n = 'no data' if self._data is None else f'{len(self._data)} sequences'
        return f"<StringKernel: kn={self.params.kn}, gap_decay={self.params.gap_decay}, {n}>"

    @property
    def size(self) -> int:
        """The dimension N of the N x N kernel.

        Raises:
            KernelStateError: If no sequence data has been attached.
        """
        if self._data is None: raise KernelStateError('No sequence data; call use() or load() first')
        return len(self._data)

    @property
    def data(self) -> Optional[SeqBatch]:
        """The attached sequence store, if any."""
        return self._data

    @property
    def values(self) -> np.ndarray:
        """The computed kernel matrix.

        Raises:
            KernelStateError: If ``compute()`` has not been run on the current data.
        """
        if self._values is None: raise KernelStateError('Kernel has not been computed; call compute() first')
        return self._values

    @property
    def norms(self) -> Optional[np.ndarray]:
        """Unnormalized self-similarities from the last computation, if any."""
        return self._norms

    def use(self, batch: SeqBatch) -> 'StringKernel':
        """
        Borrows an externally built sequence store.

        Args:
            batch: A ``SeqBatch`` over the substitution matrix's alphabet.

        Returns:
            This kernel, for chaining.

        Raises:
            AlphabetError: If the batch alphabet differs from the matrix alphabet.
            KernelParameterError: If a sequence exceeds ``params.max_length``.
        """
        if not isinstance(batch, SeqBatch): raise TypeError(f'Expected SeqBatch, got {type(batch)}')
        self._check_batch(batch)
        self._data, self._values, self._norms = batch, None, None
        return self

    def load(self, strings: Iterable[Union[str, bytes, Seq]]) -> 'StringKernel':
        """
        Encodes raw sequences into a private store owned by this kernel.

        Args:
            strings: Raw sequences, encoded with the matrix alphabet.

        Returns:
            This kernel, for chaining.

        Raises:
            KernelParameterError: If ``strings`` is empty or a sequence exceeds ``params.max_length``.

        Warns:
            DegenerateInputWarning: If characters outside the alphabet were dropped while encoding.
        """
        batch = self._encode(strings)
        if len(batch) == 0: raise KernelParameterError('Cannot load an empty sequence collection')
        self._check_batch(batch)
        self._data, self._values, self._norms = batch, None, None
        return self

    def compute_norms(self) -> np.ndarray:
        """
        Computes the unnormalized self-similarity K(x, x) of every stored sequence.

        Returns:
            A float64 array of length N.

        Raises:
            KernelStateError: If no sequences are attached.
        """
        batch = self._require_data()
        self._norms = kernel_norms(batch, self.matrix, self.params.kn, self.params.gap_decay)
        return self._norms

    def compute(self, return_norms: bool = False, threads: int = None):
        """
        Computes the full N x N kernel matrix.

        Each unordered pair is scored once and written to both triangles. When
        ``params.normalize`` is set, the norms are computed first, the diagonal
        is exactly 1 and off-diagonal entries are divided by
        ``sqrt(norms[i] * norms[j])``; entries whose norm product is not
        positive are 0.

        Args:
            return_norms: Also return the self-similarities (the raw diagonal when unnormalized).
            threads: Optional number of threads for the parallel kernels, restored afterwards.

        Returns:
            The kernel matrix, or ``(matrix, norms)`` if ``return_norms`` is set.

        Raises:
            KernelStateError: If no sequences are attached or the store is empty.
        """
        batch = self._require_data()
        with thread_limit(threads):
            values, norms = self._build(batch)
        self._values, self._norms = values, norms
        return (values, norms) if return_norms else values

    def _build(self, batch: SeqBatch):
        n = len(batch)
        kn, lam = self.params.kn, float(self.params.gap_decay)
        _warn_short(batch.lengths, kn)

        norms = None
        if self.params.normalize:
            norms = _norms_driver(*batch.arrays, self.matrix.data, kn, lam)
            _warn_non_positive(norms, batch.lengths, kn)

        rows, cols = np.triu_indices(n, k=1 if self.params.normalize else 0)
        scores = _pairs_driver(*batch.arrays, *batch.arrays, rows, cols, self.matrix.data, kn, lam)

        values = np.empty((n, n), dtype=np.float64)
        if self.params.normalize:
            scores = _cosine(scores, norms[rows], norms[cols])
            np.fill_diagonal(values, 1.0)
        values[rows, cols] = scores
        values[cols, rows] = scores
        if norms is None: norms = values.diagonal().copy()
        return values, norms

    def transform(self, queries: Union[SeqBatch, Iterable[Union[str, bytes, Seq]]]) -> np.ndarray:
        """
        Computes the M x N cross kernel between new sequences and the stored ones.

        Normalization (if enabled) uses the queries' own self-similarities and
        the stored norms, so ``transform(stored)`` reproduces ``compute()``
        off the diagonal.

        Args:
            queries: A ``SeqBatch`` or raw sequences over the matrix alphabet.

        Returns:
            A float64 array of shape (M, N).

        Raises:
            KernelStateError: If no sequences are attached.
        """
        batch = self._require_data()
        if not isinstance(queries, SeqBatch): queries = self._encode(queries)
        self._check_batch(queries)
        kn, lam = self.params.kn, float(self.params.gap_decay)
        _warn_short(queries.lengths, kn)

        m, n = len(queries), len(batch)
        rows, cols = (a.ravel() for a in np.indices((m, n)))
        scores = _pairs_driver(*queries.arrays, *batch.arrays, rows, cols, self.matrix.data, kn, lam)
        if self.params.normalize:
            if self._norms is None: self.compute_norms()
            q_norms = _norms_driver(*queries.arrays, self.matrix.data, kn, lam)
            scores = _cosine(scores, q_norms[rows], self._norms[cols])
        return scores.reshape(m, n)

    def _encode(self, strings: Iterable[Union[str, bytes, Seq]]) -> SeqBatch:
        """Encodes raw sequences with the matrix alphabet, warning when unknown characters are dropped."""
        if isinstance(strings, (str, bytes)): raise TypeError("Expected an iterable of sequences, not a single string")
        strings = list(strings)
        batch = self.matrix.alphabet.batch_from(strings)
        if n_short := sum(1 for s, n in zip(strings, batch.lengths) if len(s) != n):
            warn(f'{n_short} sequence(s) lost characters outside {self.matrix.alphabet!r} during encoding',
                 DegenerateInputWarning, stacklevel=3)
        return batch

    def _require_data(self) -> SeqBatch:
        if self._data is None: raise KernelStateError('No sequence data; call use() or load() first')
        if len(self._data) == 0: raise KernelStateError('Sequence store is empty')
        return self._data

    def _check_batch(self, batch: SeqBatch):
        if batch.alphabet != self.matrix.alphabet:
            raise AlphabetError(f'Sequences use {batch.alphabet!r} but the substitution matrix uses '
                                f'{self.matrix.alphabet!r}')
        if self.params.max_length is not None and batch.max_length > self.params.max_length:
            raise KernelParameterError(
                f'Sequence of length {batch.max_length} exceeds max_length={self.params.max_length}')


# Functions ------------------------------------------------------------------------------------------------------------
def pairwise_kernel(x: Union[Seq, str, bytes, np.ndarray], y: Union[Seq, str, bytes, np.ndarray],
                    matrix: SubstitutionMatrix, kn: int, gap_decay: float) -> float:
    """
    Computes the unnormalized soft-matching subsequence kernel of two sequences.

    Sequences shorter than ``kn`` score 0 (with a ``DegenerateInputWarning``).

    Args:
        x: First sequence (``Seq``, raw string/bytes, or encoded index array).
        y: Second sequence.
        matrix: Substitution matrix used for the final soft match.
        kn: Subsequence length, at least 1.
        gap_decay: Decay ``lambda`` in (0, 1].

    Returns:
        The kernel value.

    Raises:
        KernelParameterError: If ``kn`` or ``gap_decay`` is out of range.
        AlphabetError: If a ``Seq`` uses a different alphabet than the matrix, or an index array is invalid.

    Examples:
        >>> pairwise_kernel('AA', 'AA', SubstitutionMatrix.identity(), kn=1, gap_decay=0.5)
        1.0
    """
    _check_params(kn, gap_decay)
    x, y = matrix.alphabet.seq_from(x), matrix.alphabet.seq_from(y)
    _warn_short(np.array([len(x), len(y)]), kn)
    return float(_pairwise_kernel(x.encoded, y.encoded, matrix.data, int(kn), float(gap_decay)))


def kernel_norms(batch: SeqBatch, matrix: SubstitutionMatrix, kn: int, gap_decay: float) -> np.ndarray:
    """
    Computes K(x, x) for every sequence of a batch, in parallel.

    Args:
        batch: The sequences.
        matrix: Substitution matrix over the batch alphabet.
        kn: Subsequence length, at least 1.
        gap_decay: Decay ``lambda`` in (0, 1].

    Returns:
        A float64 array with one self-similarity per sequence.
    """
    _check_params(kn, gap_decay)
    if batch.alphabet != matrix.alphabet: raise AlphabetError('Batch and substitution matrix alphabets differ')
    _warn_short(batch.lengths, kn)
    return _norms_driver(*batch.arrays, matrix.data, int(kn), float(gap_decay))


def kernel_matrix(sequences: Union[SeqBatch, Iterable[Union[str, bytes, Seq]]], matrix: SubstitutionMatrix,
                  kn: int, gap_decay: float, normalize: bool = True, return_norms: bool = False,
                  threads: int = None):
    """
    Computes the N x N string kernel matrix of a collection of sequences.

    A ``SeqBatch`` is borrowed as-is; any other iterable is encoded with the
    matrix alphabet into a private batch.

    Args:
        sequences: A ``SeqBatch`` or raw sequences.
        matrix: The substitution matrix.
        kn: Subsequence length, at least 1.
        gap_decay: Decay ``lambda`` in (0, 1].
        normalize: Cosine-normalize the result.
        return_norms: Also return the self-similarities.
        threads: Optional number of threads for the parallel kernels.

    Returns:
        The kernel matrix, or ``(matrix, norms)`` if ``return_norms`` is set.

    Examples:
        >>> K = kernel_matrix(['ACDK', 'ACEK'], SubstitutionMatrix.blosum62(), kn=2, gap_decay=0.5)
        >>> float(K[0, 0])
        1.0
    """
    kernel = StringKernel(KernelParams(kn, gap_decay, normalize), matrix)
    if isinstance(sequences, SeqBatch): kernel.use(sequences)
    else: kernel.load(sequences)
    return kernel.compute(return_norms=return_norms, threads=threads)


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _check_params(kn, gap_decay):
    if not _is_int(kn) or kn < 1: raise KernelParameterError(f'kn must be an integer >= 1, got {kn!r}')
    try:
        gap_decay = float(gap_decay)
    except (TypeError, ValueError) as e:
        raise KernelParameterError(f'gap_decay must be a real number, got {gap_decay!r}') from e
    if not isfinite(gap_decay) or not 0 < gap_decay <= 1:
        raise KernelParameterError(f'gap_decay must lie in (0, 1], got {gap_decay}')


def _warn_short(lengths: np.ndarray, kn: int):
    if n_short := int(np.count_nonzero(lengths < kn)):
        warn(f'{n_short} sequence(s) shorter than kn={kn} score 0 against every sequence',
             DegenerateInputWarning, stacklevel=3)


def _warn_non_positive(norms: np.ndarray, lengths: np.ndarray, kn: int):
    if n_bad := int(np.count_nonzero((norms <= 0) & (lengths >= kn))):
        warn(f'{n_bad} sequence(s) have a non-positive self-similarity; their normalized entries are 0',
             DegenerateInputWarning, stacklevel=3)


def _cosine(scores: np.ndarray, norms_a: np.ndarray, norms_b: np.ndarray) -> np.ndarray:
    """Divides scores by sqrt(norms_a * norms_b), yielding 0 where the product is not positive."""
    product = norms_a * norms_b
    denom = np.sqrt(product, out=np.zeros_like(product), where=product > 0)
    return np.divide(scores, denom, out=np.zeros_like(scores), where=denom > 0)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _pairwise_kernel(x, y, matrix, kn, lam):
    """
    Soft-matching gap-weighted subsequence kernel of two encoded sequences.

    ``kd[i % 2]`` holds the order-i auxiliary kernel K'_i over all prefix pairs,
    with index 0 standing for the empty prefix; two tables rotate by order parity.
    """
    nx = x.shape[0]
    ny = y.shape[0]
    if nx < kn or ny < kn: return 0.0

    kd = np.zeros((2, nx + 1, ny + 1), dtype=np.float64)
    kd[0, :, :] = 1.0  # K'_0 == 1 for every prefix pair

    for i in range(1, kn):
        cur = i % 2
        prev = (i + 1) % 2
        # Prefixes of length i - 1 cannot hold a subsequence of length i
        for j in range(i - 1, nx): kd[cur, j, i - 1] = 0.0
        for j in range(i - 1, ny): kd[cur, i - 1, j] = 0.0

        for j in range(i, nx):
            kdd = 0.0  # left and diagonal contributions along row j
            for k in range(i, ny):
                if x[j - 1] == y[k - 1]:
                    kdd = lam * (kdd + lam * kd[prev, j - 1, k - 1])
                else:
                    kdd = lam * kdd
                kd[cur, j, k] = lam * kd[cur, j - 1, k] + kdd

    last = (kn - 1) % 2
    lam2 = lam * lam
    total = 0.0
    for i in range(kn, nx + 1):
        for j in range(kn, ny + 1):
            total += lam2 * matrix[x[i - 1], y[j - 1]] * kd[last, i - 1, j - 1]
    return total


@jit(nopython=True, cache=True, nogil=True, parallel=True)
def _norms_driver(data, starts, lengths, matrix, kn, lam):
    n = len(starts)
    out = np.empty(n, dtype=np.float64)
    for i in prange(n):
        s = starts[i]
        x = data[s:s + lengths[i]]
        out[i] = _pairwise_kernel(x, x, matrix, kn, lam)
    return out


@jit(nopython=True, cache=True, nogil=True, parallel=True)
def _pairs_driver(q_data, q_starts, q_lengths, t_data, t_starts, t_lengths, rows, cols, matrix, kn, lam):
    # One output slot per (row, col) task, so workers never share a cell
    n = len(rows)
    out = np.empty(n, dtype=np.float64)
    for p in prange(n):
        qs = q_starts[rows[p]]
        ts = t_starts[cols[p]]
        x = q_data[qs:qs + q_lengths[rows[p]]]
        y = t_data[ts:ts + t_lengths[cols[p]]]
        out[p] = _pairwise_kernel(x, y, matrix, kn, lam)
    return out
