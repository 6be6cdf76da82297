"""Immutable sequence containers with alphabet-aware encoding and batch support."""
from typing import Union, Iterable, Generator

import numpy as np

from seqkernel.utils.resources import jit, RESOURCES

if RESOURCES.has_numba:
    from numba import prange
else:
    prange = range


# Classes --------------------------------------------------------------------------------------------------------------
class Seq:
    """
    Immutable, alphabet-aware sequence container storing encoded integers (uint8).

    ``Seq`` objects should be created via ``Alphabet.seq_from()`` rather than directly,
    to ensure encoding consistency.

    Args:
        data: A numpy uint8 array of encoded symbol indices.
        alphabet: The ``Alphabet`` that owns this sequence.
        _validation_token: Internal token (must be the alphabet) to prevent
            direct construction.

    Examples:
        >>> seq = Alphabet.AMINO.seq_from('MKVLA')
        >>> len(seq)
        5
        >>> seq[1:4]
        KVL
    """
    __slots__ = ('_data', '_alphabet', '_hash')
    def __init__(self, data: np.ndarray, alphabet: 'Alphabet', _validation_token: object = None):
        if _validation_token is not alphabet:
            raise PermissionError("Seq objects must be created via an Alphabet")
        self._alphabet = alphabet
        self._data = data
        self._hash = None
        self._data.flags.writeable = False  # Enforce immutability for hashing safety

    @property
    def alphabet(self) -> 'Alphabet':
        """Returns the alphabet used for encoding/decoding."""
        return self._alphabet

    @property
    def encoded(self) -> np.ndarray:
        """Returns the underlying encoded integer array (zero-copy).

        Returns:
            A read-only ``uint8`` numpy array.
        """
        return self._data

    def __array__(self, dtype=None, copy=None):
        return self._data.astype(dtype, copy=False) if dtype else self._data

    def __bytes__(self) -> bytes: return self._alphabet.decode(self._data)
    def __len__(self): return self._data.shape[0]
    def __str__(self): return self.__bytes__().decode('ascii')
    def __iter__(self): return iter(self._data)
    def __bool__(self): return len(self._data) > 0
    def __repr__(self):
        if len(self) <= 14: return str(self)
        head = self._alphabet.decode(self._data[:7]).decode('ascii')
        tail = self._alphabet.decode(self._data[-7:]).decode('ascii')
        return f"{head}...{tail}"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, Seq): return False
        if self._alphabet is not other._alphabet: return False
        return np.array_equal(self._data, other._data)

    def __hash__(self):
        if self._hash is None: self._hash = hash(self._data.tobytes())
        return self._hash

    def __getitem__(self, item: Union[slice, int]) -> Union['Seq', int]:
        """Returns the symbol index at an integer position, or a subsequence for a slice.

        Examples:
            >>> seq = Alphabet.LETTERS.seq_from('HELLO')
            >>> seq[0]
            7
            >>> seq[1:3]
            EL
        """
        if isinstance(item, slice): return self._alphabet.new_seq(self._data[item])
        if isinstance(item, (int, np.integer)): return int(self._data[item])
        raise TypeError(f"Invalid index type: {type(item)}")

    def tobytes(self) -> bytes:
        """Decodes the sequence to raw bytes."""
        return self.__bytes__()


class SeqBatch:
    """
    Flattened batch of sequences for Numba-accelerated parallel processing.

    Stores all encoded symbols in a single contiguous ``uint8`` array with
    per-sequence start/length metadata, enabling zero-copy slicing and
    parallel kernels.

    Args:
        data: Contiguous ``uint8`` array of all encoded symbols.
        starts: ``int32`` array of per-sequence start offsets into *data*.
        lengths: ``int32`` array of per-sequence lengths.
        alphabet: The shared ``Alphabet``.
        _validation_token: Internal token (must be the alphabet).

    Examples:
        >>> batch = Alphabet.AMINO.batch_from(['MKV', 'MKVLA'])
        >>> len(batch)
        2
        >>> batch[1]
        MKVLA
    """
    __slots__ = ('_alphabet', '_data', '_starts', '_lengths', '_count')
    def __init__(self, data: np.ndarray, starts: np.ndarray, lengths: np.ndarray,
                 alphabet: 'Alphabet', _validation_token: object = None):
        if _validation_token is not alphabet:
            raise PermissionError("SeqBatch objects must be created via class methods or an Alphabet")
        self._data = data
        self._starts = starts
        self._lengths = lengths
        self._alphabet = alphabet
        self._count = len(starts)

        # Lock arrays for safety
        self._data.flags.writeable = False
        self._starts.flags.writeable = False
        self._lengths.flags.writeable = False

    @classmethod
    def build(cls, seqs: Iterable['Seq']) -> 'SeqBatch':
        """Creates a SeqBatch from an iterable of Seq objects.

        Infers the alphabet from the first sequence.

        Raises:
            ValueError: If the iterable is empty (use ``Alphabet.empty_batch()``).
        """
        seqs_list = list(seqs)
        if not seqs_list:
            raise ValueError("Cannot create SeqBatch from empty sequence list. Use Alphabet.empty_batch() instead.")
        return seqs_list[0].alphabet.batch_from(seqs_list)

    # --- Numba Accessors ---
    # Properties to unpack into Numba function arguments: *batch.arrays
    @property
    def arrays(self):
        """Returns ``(data, starts, lengths)`` for Numba kernel unpacking."""
        return self._data, self._starts, self._lengths

    @property
    def alphabet(self) -> 'Alphabet': return self._alphabet

    @property
    def encoded(self) -> np.ndarray: return self._data

    @property
    def starts(self) -> np.ndarray: return self._starts

    @property
    def lengths(self) -> np.ndarray: return self._lengths

    @property
    def max_length(self) -> int:
        """Length of the longest sequence (0 for an empty batch)."""
        return int(self._lengths.max()) if self._count else 0

    def __repr__(self): return f"<SeqBatch: {len(self)} sequences>"

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, SeqBatch): return False
        if self._alphabet is not other._alphabet: return False
        if len(self) != len(other): return False
        return all(a == b for a, b in zip(self, other))

    def __len__(self): return self._count
    def __getitem__(self, idx):
        if isinstance(idx, (int, np.integer)):
            if idx < 0: idx += self._count
            if not 0 <= idx < self._count: raise IndexError("SeqBatch index out of range")
            start = self._starts[idx]
            return self._alphabet.new_seq(self._data[start:start + self._lengths[idx]])
        if isinstance(idx, slice): return self._gather(np.arange(*idx.indices(self._count)))
        if isinstance(idx, (np.ndarray, list)):
            indices = np.asanyarray(idx)
            if indices.dtype == bool: indices = np.flatnonzero(indices)
            return self._gather(indices)
        raise TypeError(f"Invalid index type: {type(idx)}")

    def __iter__(self) -> Generator[Seq, None, None]:
        for i in range(self._count):
            start = self._starts[i]
            yield self._alphabet.new_seq(self._data[start:start + self._lengths[i]])

    def _gather(self, indices: np.ndarray) -> 'SeqBatch':
        """Gathers sequences by index array into a new contiguous batch."""
        if len(indices) == 0: return self._alphabet.empty_batch()
        indices = indices.astype(np.int64, copy=False)
        new_lengths = self._lengths[indices]
        new_data = np.empty(new_lengths.sum(), dtype=np.uint8)
        new_starts = np.zeros(len(indices), dtype=np.int32)
        if len(indices) > 1: np.cumsum(new_lengths[:-1], out=new_starts[1:])
        _batch_gather_kernel(self._data, self._starts, self._lengths, indices, new_data, new_starts)
        return self._alphabet.new_batch(new_data, new_starts, new_lengths)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True, parallel=True)
def _batch_gather_kernel(data, starts, lengths, indices, out_data, out_starts):
    n = len(indices)
    for i in prange(n):
        idx = indices[i]
        src_s = starts[idx]
        l = lengths[idx]
        dst_s = out_starts[i]
        out_data[dst_s:dst_s + l] = data[src_s:src_s + l]
