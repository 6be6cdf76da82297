"""
Gap-weighted subsequence string kernels with soft matching, for margin-based learning on sequences.
"""
from seqkernel.utils.resources import RESOURCES, SeqkernelWarning, DependencyWarning, set_threads, thread_limit
from seqkernel.core.alphabet import Alphabet, AlphabetError
from seqkernel.containers.seq import Seq, SeqBatch
from seqkernel.engines.substitution import SubstitutionMatrix, SubstitutionMatrixError
from seqkernel.engines.kernel import (
    KernelParams, StringKernel, pairwise_kernel, kernel_norms, kernel_matrix,
    KernelError, KernelStateError, KernelParameterError, DegenerateInputWarning
)

__all__ = [
    'RESOURCES', 'SeqkernelWarning', 'DependencyWarning', 'set_threads', 'thread_limit', 'Alphabet', 'AlphabetError',
    'Seq', 'SeqBatch',
    'SubstitutionMatrix', 'SubstitutionMatrixError', 'KernelParams', 'StringKernel', 'pairwise_kernel',
    'kernel_norms', 'kernel_matrix', 'KernelError', 'KernelStateError', 'KernelParameterError',
    'DegenerateInputWarning'
]
