"""
Module for representing ASCII sequence alphabets
"""
from typing import Union, Iterable, Final, ClassVar

import numpy as np

from seqkernel.containers.seq import Seq, SeqBatch


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlphabetError(Exception):
    """Raised when an alphabet is invalid or an operation is incompatible with the alphabet."""


# Classes --------------------------------------------------------------------------------------------------------------
class Alphabet:
    """
    A class to represent an alphabet of ASCII symbols.

    Each symbol is encoded as its position in the alphabet, so an alphabet of
    size n maps onto the row/column indices of an n x n substitution matrix.
    Encoding is case-insensitive and silently drops characters outside the
    alphabet (after applying aliases).

    Examples:
        >>> Alphabet.LETTERS.encode(b'ABZ')
        array([ 0,  1, 25], dtype=uint8)
    """
    __slots__ = ('_data', '_lookup_table', '_trans_table', '_delete_bytes', '_decode_table')
    DTYPE: Final = np.uint8
    INVALID: Final = np.iinfo(DTYPE).max
    MAX_LEN: Final = INVALID
    ENCODING: Final = 'ascii'

    LETTERS: ClassVar['Alphabet']
    AMINO: ClassVar['Alphabet']
    DNA: ClassVar['Alphabet']
    RNA: ClassVar['Alphabet']

    def __init__(self, symbols: bytes, aliases: dict[bytes, bytes] = None):
        """
        Initializes an Alphabet.

        Args:
            symbols: The symbols in the alphabet as bytes.
            aliases: Optional mapping of extra characters to valid ones (e.g. {b'X': b'A'}).

        Raises:
            AlphabetError: If symbols are not ASCII, too long, empty or contain duplicates,
                or if an alias is invalid.
        """
        if isinstance(symbols, str): symbols = symbols.encode(self.ENCODING)
        if not symbols: raise AlphabetError('Alphabet must contain at least one symbol')
        if not symbols.isascii(): raise AlphabetError('Alphabet symbols must be a valid ASCII string')
        if len(symbols) > self.MAX_LEN:
            raise AlphabetError(f'Alphabet size cannot exceed {self.MAX_LEN} symbols ({self.DTYPE})')
        if len(set(symbols.upper())) != len(symbols): raise AlphabetError('Alphabet contains duplicate symbols')

        self._data: np.ndarray = np.frombuffer(symbols, dtype=self.DTYPE)

        # Build Lookup Table
        self._lookup_table = np.full(256, self.INVALID, dtype=self.DTYPE)
        indices = np.arange(len(symbols), dtype=self.DTYPE)
        self._lookup_table[np.frombuffer(symbols.upper(), dtype=self.DTYPE)] = indices
        self._lookup_table[np.frombuffer(symbols.lower(), dtype=self.DTYPE)] = indices
        self._lookup_table[self._data] = indices

        # Apply Aliases (Map extra chars to valid indices)
        if aliases:
            for src, dst in aliases.items():
                if len(src) != 1 or len(dst) != 1: raise AlphabetError("Aliases must be single bytes")
                dst_idx = self._lookup_table[ord(dst)]
                if dst_idx == self.INVALID: raise AlphabetError(f"Alias target {dst} not in alphabet")
                self._lookup_table[ord(src.upper())] = dst_idx
                self._lookup_table[ord(src.lower())] = dst_idx

        # Build Translation Tables
        self._trans_table = self._lookup_table.tobytes()
        self._delete_bytes = np.where(self._lookup_table == self.INVALID)[0].astype(self.DTYPE).tobytes()

        # Build Decode Table
        decode_map = np.zeros(256, dtype=self.DTYPE)
        decode_map[:len(self._data)] = self._data
        self._decode_table = decode_map.tobytes()

    def __len__(self): return len(self._data)

    def __contains__(self, item):
        try:
            if isinstance(item, (int, np.integer)): return self._lookup_table[item] != self.INVALID
            if isinstance(item, (str, bytes)):
                if len(item) != 1: return False
                val = ord(item) if isinstance(item, str) else item[0]
                return self._lookup_table[val] != self.INVALID
        except (IndexError, ValueError, TypeError):
            pass
        return False

    def __iter__(self): return iter(self._data)
    def __getitem__(self, item): return self._data[item]
    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __repr__(self): return f"Alphabet({self._data.tobytes().decode(self.ENCODING)})"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, Alphabet): return False
        return np.array_equal(self._data, other._data)

    def __hash__(self): return hash(self._data.tobytes())

    @property
    def symbols(self) -> bytes:
        """The canonical symbols, in index order."""
        return self._data.tobytes()

    def index(self, symbol: Union[str, bytes, int]) -> int:
        """
        Returns the index of a single symbol.

        Args:
            symbol: A one-character ``str``/``bytes`` or an ASCII code.

        Returns:
            The symbol index in ``[0, len(self))``.

        Raises:
            AlphabetError: If the symbol is not part of the alphabet.
        """
        if symbol not in self: raise AlphabetError(f'Symbol {symbol!r} is not in {self!r}')
        if isinstance(symbol, str): symbol = ord(symbol)
        elif isinstance(symbol, bytes): symbol = symbol[0]
        return int(self._lookup_table[symbol])

    def encode(self, text: bytes) -> np.ndarray:
        """
        Zero-copy encoding from Byte String to Array.

        Args:
            text: The text to encode as bytes.

        Returns:
            A numpy array of encoded indices.
        """
        return np.frombuffer(text.translate(self._trans_table, delete=self._delete_bytes), dtype=self.DTYPE)

    def decode(self, encoded: np.ndarray) -> bytes:
        """Decodes an array of indices back to bytes."""
        if encoded.dtype != self.DTYPE: encoded = encoded.astype(self.DTYPE, copy=False)
        return encoded.tobytes().translate(self._decode_table)

    def new_seq(self, data: np.ndarray) -> 'Seq':
        """
        Factory method. The ONLY valid way to create a Seq.
        """
        return Seq(data, self, _validation_token=self)

    def seq_from(self, data: Union['Seq', str, bytes, np.ndarray]) -> 'Seq':
        """Creates a Seq object from various input types, ensuring correct encoding.

        Args:
            data: The input data. Can be a ``Seq``, string, bytes, or numpy array of indices.

        Returns:
            A new ``Seq`` object with this alphabet.

        Raises:
            AlphabetError: If a ``Seq`` has a different alphabet, or an index array is not a
                1-D integer array with values in ``[0, len(self))``.
        """
        if isinstance(data, Seq):
            if data.alphabet != self: raise AlphabetError(f'Sequence has a different alphabet "{data.alphabet}"')
            return data
        # Convention: numpy arrays are already encoded indices
        if isinstance(data, np.ndarray):
            if data.ndim != 1: raise AlphabetError(f'Encoded indices must be 1-D, got shape {data.shape}')
            if data.dtype.kind not in 'iu': raise AlphabetError(f'Encoded indices must be integers, got {data.dtype}')
            if data.size and (int(data.min()) < 0 or int(data.max()) >= len(self)):
                raise AlphabetError(f'Encoded indices exceed the size of {self!r}')
            return self.new_seq(data.astype(self.DTYPE))  # Copy; the caller keeps a writable array
        if isinstance(data, str): data = data.encode(self.ENCODING)
        return self.new_seq(self.encode(data))

    def empty_seq(self) -> 'Seq':
        """Returns an empty sequence with this alphabet."""
        return self.new_seq(np.empty(0, dtype=self.DTYPE))

    def random_seq(self, rng: np.random.Generator = None, length: int = None, min_len: int = 5, max_len: int = 50,
                   weights=None) -> 'Seq':
        """
        Generates a random sequence from this alphabet.

        Args:
            rng: Random number generator (optional).
            length: Exact length of sequence to generate.
            min_len: Minimum length if length is not specified.
            max_len: Maximum length if length is not specified.
            weights: Weights for each symbol (optional).

        Returns:
            A random Seq object.
        """
        if rng is None: rng = np.random.default_rng()
        if length is None: length = int(rng.integers(min_len, max_len))
        n_sym = len(self._data)
        if weights is None: indices = rng.integers(0, n_sym, size=length, dtype=self.DTYPE)
        else: indices = rng.choice(n_sym, size=length, p=weights)
        return self.new_seq(indices.astype(self.DTYPE))

    def new_batch(self, data: np.ndarray, starts: np.ndarray, lengths: np.ndarray):
        """
        Factory method. The ONLY valid way to create a SeqBatch.
        """
        return SeqBatch(data, starts, lengths, self, _validation_token=self)

    def batch_from(self, data: Iterable[Union['Seq', str, bytes]]) -> 'SeqBatch':
        """Creates a SeqBatch from an iterable of sequences.

        Args:
            data: An iterable of ``Seq`` objects (must have this alphabet) or raw strings/bytes,
                which are encoded with this alphabet.

        Returns:
            A new ``SeqBatch``.

        Raises:
            AlphabetError: If any sequence has a different alphabet.
        """
        if isinstance(data, SeqBatch):
            if data.alphabet != self: raise AlphabetError(
                "Can only create a batch from batches with the same alphabet.")
            return self.new_batch(data.encoded.copy(), data.starts.copy(), data.lengths.copy())
        if isinstance(data, (str, bytes)):
            raise TypeError("Expected an iterable of sequences, not a single string")

        items = [self.seq_from(s) if isinstance(s, (str, bytes)) else s for s in data]
        if not items: return self.empty_batch()

        count = len(items)
        lengths = np.empty(count, dtype=np.int32)
        for i, s in enumerate(items):
            if not isinstance(s, Seq) or s.alphabet != self:
                raise AlphabetError("Can only create a batch from sequences with the same alphabet.")
            lengths[i] = len(s)

        starts = np.zeros(count, dtype=np.int32)
        data = items[0].encoded.copy() if count == 1 else np.concatenate([s.encoded for s in items])
        if count > 1: np.cumsum(lengths[:-1], out=starts[1:])
        return self.new_batch(data, starts, lengths)

    def empty_batch(self) -> 'SeqBatch':
        """Returns an empty sequence batch with this alphabet."""
        return self.new_batch(
            np.empty(0, dtype=self.DTYPE), np.empty(0, dtype=np.int32), np.empty(0, dtype=np.int32))

    def random_batch(self, n_seqs: int, rng: np.random.Generator = None, min_len: int = 5,
                     max_len: int = 50) -> 'SeqBatch':
        """Generates a SeqBatch of ``n_seqs`` random sequences."""
        if rng is None: rng = np.random.default_rng()
        return self.batch_from([self.random_seq(rng, min_len=min_len, max_len=max_len) for _ in range(n_seqs)])


# Initialize Standard Alphabets
Alphabet.LETTERS = Alphabet(b'ABCDEFGHIJKLMNOPQRSTUVWXYZ')
Alphabet.AMINO = Alphabet(b'ACDEFGHIKLMNPQRSTVWY',
                          aliases={b'X': b'A', b'B': b'D', b'Z': b'E', b'J': b'L', b'U': b'C', b'O': b'K'})
Alphabet.DNA = Alphabet(b'ACGT', aliases={b'N': b'A', b'U': b'T'})
Alphabet.RNA = Alphabet(b'ACGU', aliases={b'N': b'A', b'T': b'U'})
