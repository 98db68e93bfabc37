import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from wordvec.config import ProgressListener, Stage, check_cancelled, notify
from wordvec.vocab import Vocabulary

# Huffman coding over the frequency-ordered vocabulary, the way word2vec.c builds it:
# leaves are already sorted by count descending, so the two smallest nodes are always found
# by merging two sorted runs (leaves from the tail, internal nodes in creation order).
# Internal node i is created by merge i and addresses row i of the HS output matrix.

logger = logging.getLogger(__name__)

# Listener / cancellation check period, in merges
PROGRESS_EVERY = 1000


@dataclass(frozen=True)
class HuffmanNode:
    """Huffman code of one vocabulary word.

    Attributes:
        word (str): The word.
        index (int): Vocabulary id.
        count (int): Word count used as leaf weight.
        code (Tuple[int, ...]): Bits from the root down to the leaf (0 = left, 1 = right).
        point (Tuple[int, ...]): Internal-node indices from the root down to the leaf's parent;
            same length as code.
    """

    word: str
    index: int
    count: int
    code: Tuple[int, ...]
    point: Tuple[int, ...]


def _merge_tree(
    counts: np.ndarray,
    listener: Optional[ProgressListener],
    cancel_event: Optional[threading.Event],
) -> Tuple[np.ndarray, np.ndarray]:
    """Run the N - 1 merges; return (parent, binary) arrays over all 2N - 1 nodes."""
    n = len(counts)
    weight = np.empty(2 * n - 1, dtype=np.int64)
    weight[:n] = counts
    parent = np.zeros(2 * n - 1, dtype=np.int64)
    binary = np.zeros(2 * n - 1, dtype=np.int8)

    leaf = n - 1  # next smallest leaf, walking backwards
    inner = n  # next smallest internal node, walking forwards

    def pop_smallest() -> int:
        nonlocal leaf, inner
        # leaf wins only when strictly lighter, so ties go to the earlier-created node
        if leaf >= 0 and (inner >= n + merged or weight[leaf] < weight[inner]):
            leaf -= 1
            return leaf + 1
        inner += 1
        return inner - 1

    merged = 0
    for merged in range(n - 1):
        if merged % PROGRESS_EVERY == 0:
            notify(listener, Stage.BUILD_HUFFMAN, merged / (n - 1))
            check_cancelled(cancel_event)
        min1 = pop_smallest()
        min2 = pop_smallest()
        weight[n + merged] = weight[min1] + weight[min2]
        parent[min1] = n + merged
        parent[min2] = n + merged
        binary[min2] = 1
    return parent, binary


def encode(
    vocab: Vocabulary,
    listener: Optional[ProgressListener] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[HuffmanNode]:
    """Build the Huffman tree and return one node per word, in vocabulary order.

    Args:
        vocab: Frequency-ordered vocabulary.
        listener: Optional progress listener, notified under Stage.BUILD_HUFFMAN.
        cancel_event: Optional cancellation flag, checked periodically.

    Returns:
        List of HuffmanNode, nodes[i] describes vocab.words[i].

    Raises:
        Interrupted: If cancellation is requested; no partial tree is returned.
    """
    n = len(vocab)
    notify(listener, Stage.BUILD_HUFFMAN, 0.0)
    check_cancelled(cancel_event)
    if n == 1:
        # a lone word is the root: empty code, no internal nodes
        notify(listener, Stage.BUILD_HUFFMAN, 1.0)
        return [HuffmanNode(vocab.words[0], 0, int(vocab.counts[0]), (), ())]

    parent, binary = _merge_tree(vocab.counts, listener, cancel_event)
    root = 2 * n - 2

    nodes = []
    max_depth = 0
    for i, word in enumerate(vocab.words):
        code: List[int] = []
        point: List[int] = []
        node = i
        while node != root:
            code.append(int(binary[node]))
            point.append(int(parent[node]) - n)
            node = parent[node]
        code.reverse()
        point.reverse()
        max_depth = max(max_depth, len(code))
        nodes.append(HuffmanNode(word, i, int(vocab.counts[i]), tuple(code), tuple(point)))
        if i % PROGRESS_EVERY == 0:
            check_cancelled(cancel_event)

    notify(listener, Stage.BUILD_HUFFMAN, 1.0)
    logger.info("built huffman tree over %i words with maximum node depth %i", n, max_depth)
    return nodes
