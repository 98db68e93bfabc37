import logging
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from wordvec.errors import ConfigError

# Vocabulary: count tokens, drop rare ones, order by count descending then word ascending.
# The order fixes the Huffman tree shape and the row of every per-word matrix.

logger = logging.getLogger(__name__)


class Vocabulary:
    """Immutable ordered vocabulary with word <-> dense id mapping.

    Attributes:
        words (Tuple[str, ...]): Words in id order.
        counts (np.ndarray): int64 array, counts[i] is the count of words[i].
    """

    def __init__(self, words: Sequence[str], counts: Sequence[int]):
        if len(words) != len(counts):
            raise ConfigError(f"{len(words)} words but {len(counts)} counts")
        self.words = tuple(words)
        self.counts = np.asarray(counts, dtype=np.int64)
        self.counts.setflags(write=False)
        self._index: Dict[str, int] = {w: i for i, w in enumerate(self.words)}
        if len(self._index) != len(self.words):
            raise ConfigError("vocabulary words must be unique")

    def __len__(self) -> int:
        return len(self.words)

    def __contains__(self, word: str) -> bool:
        return word in self._index

    def __iter__(self):
        return iter(self.words)

    def id_of(self, word: str) -> int:
        """Dense id of word; -1 if absent."""
        return self._index.get(word, -1)

    def count_of(self, word: str) -> int:
        i = self._index.get(word)
        return 0 if i is None else int(self.counts[i])

    @property
    def total_count(self) -> int:
        return int(self.counts.sum())


def count_tokens(sentences: Iterable[Iterable[str]]) -> Counter:
    """Count every token over all sentences.

    Args:
        sentences: Iterable of token sequences.

    Returns:
        Counter mapping token -> count.
    """
    counts: Counter = Counter()
    n_sentences = 0
    for sentence in sentences:
        counts.update(sentence)
        n_sentences += 1
    logger.info(
        "collected %i word types from %i sentences (%i raw tokens)",
        len(counts),
        n_sentences,
        sum(counts.values()),
    )
    return counts


def sort_and_filter(counts: Mapping[str, int], min_frequency: int) -> List[Tuple[str, int]]:
    """Keep tokens with count >= min_frequency, sorted by count desc, then token asc."""
    kept = [(w, int(c)) for w, c in counts.items() if c >= min_frequency]
    kept.sort(key=lambda wc: (-wc[1], wc[0]))
    return kept


def build_vocab(counts: Mapping[str, int], min_frequency: int = 5) -> Vocabulary:
    """Build the ordered vocabulary from token counts.

    Args:
        counts: Token -> count multiset (counted from a corpus or supplied externally).
        min_frequency: Minimum count to keep a token. Defaults to 5.

    Returns:
        Vocabulary ordered by descending count, ties by ascending token text.

    Raises:
        ConfigError: If no token survives the filter.
    """
    kept = sort_and_filter(counts, min_frequency)
    if not kept:
        raise ConfigError(
            f"empty vocabulary: no token among {len(counts)} occurs at least {min_frequency} times"
        )
    words, word_counts = zip(*kept)
    logger.info(
        "min_frequency=%i retains %i unique words (%i dropped)",
        min_frequency,
        len(words),
        len(counts) - len(words),
    )
    return Vocabulary(words, word_counts)
