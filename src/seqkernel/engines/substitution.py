"""Soft-match substitution tables bound to an explicit alphabet."""
from typing import Union, Mapping

import numpy as np

from seqkernel.core.alphabet import Alphabet, AlphabetError


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SubstitutionMatrixError(ValueError):
    """Raised when a substitution table is malformed or inconsistent with its alphabet."""


# Classes --------------------------------------------------------------------------------------------------------------
class SubstitutionMatrix:
    """
    A dense, read-only table of soft-match scores between alphabet symbols.

    Rows and columns follow the index order of ``alphabet``, so encoded
    sequences index the table directly.

    Attributes:
        _data (np.ndarray): The raw (n, n) float64 matrix.
        _alphabet (Alphabet): The alphabet mapping symbols to rows/columns.

    Examples:
        >>> m = SubstitutionMatrix.identity(Alphabet.LETTERS)
        >>> m.score('A', 'A'), m.score('A', 'B')
        (1.0, 0.0)
    """
    _DTYPE = np.float64
    __slots__ = ('_data', '_alphabet')

    def __init__(self, data, alphabet: Alphabet):
        data = np.array(data, dtype=self._DTYPE)
        if data.ndim != 2 or data.shape[0] != data.shape[1]:
            raise SubstitutionMatrixError(f'Substitution matrix must be square, got shape {data.shape}')
        if data.shape[0] != len(alphabet):
            raise SubstitutionMatrixError(
                f'Substitution matrix size {data.shape[0]} does not match alphabet size {len(alphabet)}')
        if not np.all(np.isfinite(data)):
            raise SubstitutionMatrixError('Substitution matrix contains non-finite scores')
        self._data = np.ascontiguousarray(data)
        self._data.flags.writeable = False
        self._alphabet = alphabet

    def __getitem__(self, item): return self._data[item]
    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __len__(self): return self._data.shape[0]
    def __repr__(self): return f"SubstitutionMatrix{self._data.shape}"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, SubstitutionMatrix): return False
        return self._alphabet == other._alphabet and np.array_equal(self._data, other._data)

    @property
    def shape(self): return self._data.shape

    @property
    def alphabet(self) -> Alphabet: return self._alphabet

    @property
    def data(self) -> np.ndarray:
        """The read-only float64 score table."""
        return self._data

    @property
    def is_symmetric(self) -> bool:
        """Whether score(a, b) == score(b, a) for every pair of symbols."""
        return bool(np.array_equal(self._data, self._data.T))

    def score(self, a: Union[str, bytes, int], b: Union[str, bytes, int]) -> float:
        """
        Returns the soft-match score of an ordered pair of symbols.

        Args:
            a: A symbol (one-character ``str``/``bytes``) or an encoded index.
            b: A symbol (one-character ``str``/``bytes``) or an encoded index.

        Returns:
            The score as a float.

        Raises:
            SubstitutionMatrixError: If a symbol is unknown or an index is out of range.
        """
        return float(self._data[self._resolve(a), self._resolve(b)])

    def _resolve(self, symbol) -> int:
        if isinstance(symbol, (int, np.integer)):
            if not 0 <= symbol < len(self): raise SubstitutionMatrixError(f'Symbol index {symbol} out of range')
            return int(symbol)
        try:
            return self._alphabet.index(symbol)
        except AlphabetError as e:
            raise SubstitutionMatrixError(str(e)) from e

    def reindex(self, alphabet: Alphabet, fill: float = 0.0) -> 'SubstitutionMatrix':
        """
        Projects the table onto another alphabet by symbol.

        Symbols of ``alphabet`` that are missing from this table's alphabet
        receive ``fill`` in every row and column they take part in.

        Examples:
            >>> SubstitutionMatrix.blosum62().reindex(Alphabet.LETTERS).shape
            (26, 26)
        """
        n = len(alphabet)
        data = np.full((n, n), fill, dtype=self._DTYPE)
        src = np.array([self._alphabet.index(s) if s in self._alphabet.symbols else -1
                        for s in alphabet.symbols], dtype=np.int64)
        known = np.flatnonzero(src >= 0)
        data[np.ix_(known, known)] = self._data[np.ix_(src[known], src[known])]
        return self.__class__(data, alphabet)

    @classmethod
    def build(cls, alphabet: Alphabet, match: float = 1.0, mismatch: float = 0.0) -> 'SubstitutionMatrix':
        """Builds a simple match/mismatch matrix."""
        data = np.full((len(alphabet), len(alphabet)), mismatch, dtype=cls._DTYPE)
        np.fill_diagonal(data, match)
        return cls(data, alphabet)

    @classmethod
    def identity(cls, alphabet: Alphabet = Alphabet.LETTERS) -> 'SubstitutionMatrix':
        """Hard matching: 1 for equal symbols, 0 otherwise."""
        return cls.build(alphabet, 1.0, 0.0)

    @classmethod
    def from_dict(cls, alphabet: Alphabet, scores: Mapping, default: float = 0.0,
                  symmetric: bool = True) -> 'SubstitutionMatrix':
        """
        Builds a table from a mapping of symbol pairs to scores.

        Args:
            alphabet: The alphabet defining the row/column order.
            scores: Mapping of ``(a, b)`` symbol pairs (or two-character strings) to scores.
            default: Score for pairs not present in ``scores``.
            symmetric: Also set ``(b, a)`` unless it is given explicitly.

        Raises:
            SubstitutionMatrixError: If a key is malformed or names an unknown symbol.

        Examples:
            >>> m = SubstitutionMatrix.from_dict(Alphabet.DNA, {'AA': 1, 'CC': 1, 'GG': 1, 'TT': 1, 'AG': 0.5})
            >>> m.score('G', 'A')
            0.5
        """
        data = np.full((len(alphabet), len(alphabet)), default, dtype=cls._DTYPE)
        explicit = set()
        for key, value in scores.items():
            if len(key) != 2: raise SubstitutionMatrixError(f'Invalid symbol pair {key!r}')
            try:
                i, j = alphabet.index(key[0]), alphabet.index(key[1])
            except AlphabetError as e:
                raise SubstitutionMatrixError(str(e)) from e
            data[i, j] = value
            explicit.add((i, j))
        if symmetric:
            for i, j in explicit:
                if (j, i) not in explicit: data[j, i] = data[i, j]
        return cls(data, alphabet)

    @classmethod
    def blosum62(cls) -> 'SubstitutionMatrix':
        """Returns the BLOSUM62 matrix over ``Alphabet.AMINO``."""
        data = [
            4, 0, -2, -1, -2, 0, -2, -1, -1, -1, -1, -2, -1, -1, -1, 1, 0, 0, -3, -2,
            0, 9, -3, -4, -2, -3, -3, -1, -3, -1, -1, -3, -3, -3, -3, -1, -1, -1, -2, -2,
            -2, -3, 6, 2, -3, -1, -1, -3, -1, -4, -3, 1, -1, 0, -2, 0, -1, -3, -4, -3,
            -1, -4, 2, 5, -3, -2, 0, -3, 1, -3, -2, 0, -1, 2, 0, 0, -1, -2, -3, -2,
            -2, -2, -3, -3, 6, -3, -1, 0, -3, 0, 0, -3, -4, -3, -3, -2, -2, -1, 1, 3,
            0, -3, -1, -2, -3, 6, -2, -4, -2, -4, -3, 0, -2, -2, -2, 0, -2, -3, -2, -3,
            -2, -3, -1, 0, -1, -2, 8, -3, -1, -3, -2, 1, -2, 0, 0, -1, -2, -3, -2, 2,
            -1, -1, -3, -3, 0, -4, -3, 4, -3, 2, 1, -3, -3, -3, -3, -2, -1, 3, -3, -1,
            -1, -3, -1, 1, -3, -2, -1, -3, 5, -2, -3, 2, 0, -3, -3, 1, 0, -3, -1, 2,
            -1, -1, -4, -3, 0, -4, -3, 2, -2, 4, 2, -3, -3, -2, -2, -2, -1, 1, -2, -1,
            -1, -1, -3, -2, 0, -3, -2, 1, -3, 2, 5, -2, -2, 0, -1, -1, -1, 1, -1, -1,
            -2, -3, 1, 0, -3, 0, 1, -3, 2, -3, -2, 6, -2, -4, -4, -1, 0, -3, -1, -3,
            -1, -3, -1, -1, -4, -2, -2, -3, 0, -3, -2, -2, 7, -1, -2, -1, -1, -2, -4, -3,
            -1, -3, 0, 2, -3, -2, 0, -3, -3, -2, 0, -4, -1, 5, 1, 0, -1, -2, -2, -1,
            -1, -3, -2, 0, -3, -2, 0, -3, -3, -2, -1, -4, -2, 1, 5, -1, -1, -3, -3, -2,
            1, -1, 0, 0, -2, 0, -1, -2, 1, -2, -1, -1, -1, 0, -1, 4, 1, -2, -3, -2,
            0, -1, -1, -1, -2, -2, -2, -1, 0, -1, -1, 0, -1, -1, -1, 1, 5, 0, -2, -2,
            0, -1, -3, -2, -1, -3, -3, 3, -3, 1, 1, -3, -2, -2, -3, -2, 0, 4, -3, -1,
            -3, -2, -4, -3, 1, -2, -2, -3, -1, -2, -1, -1, -4, -2, -3, -3, -2, -3, 11, 2,
            -2, -2, -3, -2, 3, -3, 2, -1, 2, -1, -1, -3, -3, -1, -2, -2, -2, -1, 2, 7
        ]
        return cls(np.array(data, dtype=cls._DTYPE).reshape(20, 20), Alphabet.AMINO)
