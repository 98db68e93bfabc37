import logging
from typing import Iterable, List

import numpy as np

from wordvec.vocab import Vocabulary

# Data pipeline for training: sentences as id arrays, frequent-word subsampling
# (keep probability sqrt(t/f) + t/f, capped at 1) and the unigram^0.75 table for negatives.

logger = logging.getLogger(__name__)

# Upper bound of the cumulative unigram table, as in gensim's cum_table
CUM_TABLE_DOMAIN = 2**31 - 1


class Corpus:
    """Tokenized corpus as per-sentence vocabulary ids; supports subsampling and sharding.

    Out-of-vocabulary tokens are dropped when sentences are converted to ids.

    Attributes:
        sentences (List[np.ndarray]): One int32 id array per non-empty sentence.
        keep_prob (np.ndarray): Per-word probability of surviving subsampling.
        n_tokens (int): Number of in-vocabulary tokens over all sentences.
    """

    def __init__(self, sentences: List[np.ndarray], vocab: Vocabulary, down_sample_rate: float = 1e-3):
        """Initialize corpus from id sentences and the vocabulary counts.

        Args:
            sentences: One id array per sentence.
            vocab: Vocabulary whose counts define word frequencies.
            down_sample_rate: Subsampling threshold t; 0 disables subsampling. Defaults to 1e-3.
        """
        self.sentences = sentences
        self.vocab_size = len(vocab)
        self.down_sample_rate = down_sample_rate
        self.n_tokens = int(sum(len(s) for s in sentences))
        self.keep_prob = keep_probabilities(vocab.counts, down_sample_rate)

    @classmethod
    def from_sentences(
        cls,
        sentences: Iterable[Iterable[str]],
        vocab: Vocabulary,
        down_sample_rate: float = 1e-3,
    ) -> "Corpus":
        """Map token sentences to id arrays, dropping unknown tokens and empty sentences."""
        id_sentences = []
        for sentence in sentences:
            ids = [vocab.id_of(w) for w in sentence]
            ids = np.array([i for i in ids if i >= 0], dtype=np.int32)
            if len(ids):
                id_sentences.append(ids)
        corpus = cls(id_sentences, vocab, down_sample_rate)
        logger.info(
            "corpus has %i sentences, %i in-vocabulary tokens", len(id_sentences), corpus.n_tokens
        )
        return corpus

    def subsample(self, sentence: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Randomly drop frequent words from one sentence, keeping order.

        Args:
            sentence: Id array.
            rng: Worker's random generator.

        Returns:
            Id array of surviving words (the input itself when subsampling is off).
        """
        if self.down_sample_rate <= 0:
            return sentence
        r = rng.random(len(sentence))
        return sentence[r < self.keep_prob[sentence]]

    def shards(self, n: int) -> List[List[np.ndarray]]:
        """Split sentences into n disjoint contiguous slices (some may be empty)."""
        bounds = np.linspace(0, len(self.sentences), n + 1).astype(np.int64)
        return [self.sentences[bounds[i] : bounds[i + 1]] for i in range(n)]


def keep_probabilities(counts: np.ndarray, down_sample_rate: float) -> np.ndarray:
    """Probability of keeping each word under subsampling (word2vec.c formula).

    With f = count / total: P(keep) = sqrt(t / f) + t / f, capped at 1, so words with
    f <= t are never dropped.

    Args:
        counts: 1D array of vocabulary counts.
        down_sample_rate: Threshold t; 0 keeps everything.

    Returns:
        1D float64 array, same length as counts.
    """
    counts = np.asarray(counts, dtype=np.float64)
    if down_sample_rate <= 0 or counts.sum() <= 0:
        return np.ones(len(counts))
    threshold = down_sample_rate * counts.sum()
    ratio = threshold / np.clip(counts, 1e-12, None)
    return np.minimum(np.sqrt(ratio) + ratio, 1.0)


def negative_sampling_distribution(counts: np.ndarray, power: float = 0.75) -> np.ndarray:
    """Unigram distribution raised to power and normalized (Mikolov et al.: power=0.75).

    Args:
        counts: 1D array of vocabulary counts.
        power: Exponent for counts; 0.75 is standard. Defaults to 0.75.

    Returns:
        1D array of probabilities (sum 1), same length as counts.
    """
    probs = np.power(np.maximum(np.asarray(counts, dtype=np.float64), 1e-10), power)
    probs /= probs.sum()
    return probs


def make_cum_table(counts: np.ndarray, power: float = 0.75, domain: int = CUM_TABLE_DOMAIN) -> np.ndarray:
    """Cumulative unigram table for drawing negatives with searchsorted.

    A uniform integer in [0, table[-1]) maps to word i with probability proportional to
    counts[i] ** power.

    Args:
        counts: 1D array of vocabulary counts.
        power: Exponent for counts. Defaults to 0.75.
        domain: Value of the last table entry. Defaults to 2**31 - 1.

    Returns:
        1D uint32 array, non-decreasing, last entry equal to domain.
    """
    probs = negative_sampling_distribution(counts, power)
    table = np.round(np.cumsum(probs) * domain).astype(np.uint32)
    table[-1] = domain
    return table


def draw_negatives(cum_table: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """Draw k word ids from the unigram table (repeats allowed)."""
    return cum_table.searchsorted(rng.integers(0, cum_table[-1], size=k), side="right")

