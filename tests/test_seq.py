import numpy as np
import pytest
from seqkernel.core.alphabet import Alphabet
from seqkernel.containers.seq import Seq, SeqBatch


class TestSeq:
    def test_direct_construction_forbidden(self):
        with pytest.raises(PermissionError):
            Seq(np.zeros(3, dtype=np.uint8), Alphabet.DNA)

    def test_immutable(self):
        seq = Alphabet.DNA.seq_from('ACGT')
        assert not seq.encoded.flags.writeable
        with pytest.raises(ValueError):
            seq.encoded[0] = 1

    def test_symbol_access(self):
        seq = Alphabet.LETTERS.seq_from('HELLO')
        assert len(seq) == 5
        assert seq[0] == 7
        assert seq[-1] == 14

    def test_slice(self):
        seq = Alphabet.LETTERS.seq_from('HELLO')
        sub = seq[1:3]
        assert isinstance(sub, Seq)
        assert str(sub) == 'EL'

    def test_equality_and_hash(self):
        a = Alphabet.DNA.seq_from('ACGT')
        b = Alphabet.DNA.seq_from(b'acgt')
        assert a == b
        assert hash(a) == hash(b)
        assert a != Alphabet.RNA.seq_from('ACG')

    def test_hash_usable_in_sets(self):
        seqs = {Alphabet.LETTERS.seq_from(s) for s in ('HELLO', 'hello', 'HELP')}
        assert len(seqs) == 2
        batch = Alphabet.LETTERS.batch_from(['HELP', 'HELLO'])
        assert batch[0] in seqs
        assert hash(batch[1][0:4]) == hash(Alphabet.LETTERS.seq_from('HELL'))

    def test_repr_truncates(self):
        seq = Alphabet.LETTERS.seq_from('A' * 10 + 'B' * 10)
        assert repr(seq) == 'AAAAAAA...BBBBBBB'

    def test_bool(self):
        assert not Alphabet.DNA.empty_seq()
        assert Alphabet.DNA.seq_from('A')


class TestSeqBatch:
    @pytest.fixture
    def batch(self):
        return Alphabet.LETTERS.batch_from(['HELLO', 'HELP', '', 'YELLOW'])

    def test_len_and_lengths(self, batch):
        assert len(batch) == 4
        np.testing.assert_array_equal(batch.lengths, [5, 4, 0, 6])
        assert batch.max_length == 6

    def test_arrays_read_only(self, batch):
        data, starts, lengths = batch.arrays
        assert not data.flags.writeable
        assert not starts.flags.writeable
        assert not lengths.flags.writeable

    def test_getitem(self, batch):
        assert str(batch[0]) == 'HELLO'
        assert str(batch[-1]) == 'YELLOW'
        assert len(batch[2]) == 0
        with pytest.raises(IndexError):
            batch[4]

    def test_iter(self, batch):
        assert [str(s) for s in batch] == ['HELLO', 'HELP', '', 'YELLOW']

    def test_gather(self, batch):
        sub = batch[[3, 0]]
        assert isinstance(sub, SeqBatch)
        assert [str(s) for s in sub] == ['YELLOW', 'HELLO']

    def test_gather_mask_and_slice(self, batch):
        assert [str(s) for s in batch[np.array([True, False, False, True])]] == ['HELLO', 'YELLOW']
        assert [str(s) for s in batch[1:3]] == ['HELP', '']

    def test_build(self):
        seqs = [Alphabet.DNA.seq_from('AC'), Alphabet.DNA.seq_from('GT')]
        batch = SeqBatch.build(seqs)
        assert batch.alphabet is Alphabet.DNA
        assert batch == Alphabet.DNA.batch_from(['AC', 'GT'])

    def test_build_empty(self):
        with pytest.raises(ValueError):
            SeqBatch.build([])

    def test_copy_via_alphabet(self, batch):
        clone = Alphabet.LETTERS.batch_from(batch)
        assert clone == batch
        assert clone.encoded is not batch.encoded
