import heapq
from typing import Iterable, List, NamedTuple, Sequence, Union

import numpy as np

from wordvec.errors import ConfigError, UnknownWordError
from wordvec.store import VectorStore

# Nearest-neighbour search by cosine similarity over unit-normalized vectors.
# NaN components (corrupt input data) count as zero in norms, dot products and queries.

Query = Union[str, Sequence[str], np.ndarray]


class Match(NamedTuple):
    """One search hit: word, cosine similarity, 0-based rank."""

    word: str
    score: float
    rank: int


def l2_normalize(X: np.ndarray, axis: int = -1) -> np.ndarray:
    """L2-normalize array along the given axis (zero vectors get divisor 1).

    Args:
        X: Input array.
        axis: Axis along which to normalize. Defaults to -1.

    Returns:
        Normalized array, same shape as X.
    """
    norm = np.linalg.norm(X, axis=axis, keepdims=True)
    norm = np.where(norm > 0, norm, 1.0)
    return X / norm


def nan_mean(vectors: np.ndarray) -> np.ndarray:
    """Component-wise mean skipping NaN; a component that is NaN everywhere becomes 0."""
    valid = ~np.isnan(vectors)
    card = valid.sum(axis=0)
    total = np.where(valid, vectors, 0.0).sum(axis=0)
    return np.where(card > 0, total / np.maximum(card, 1), 0.0)


class SearchEngine:
    """Top-K cosine search over a VectorStore; immutable, safe for concurrent readers.

    Attributes:
        store (VectorStore): Source vectors.
        normalized (np.ndarray): float64 unit-length copies of the rows, NaN replaced by 0.
    """

    def __init__(self, store: VectorStore):
        self.store = store
        clean = np.nan_to_num(store.vectors.astype(np.float64), nan=0.0)
        self.normalized = l2_normalize(clean, axis=1)
        self.normalized.setflags(write=False)

    @property
    def layer_size(self) -> int:
        return self.store.layer_size

    def contains(self, word: str) -> bool:
        return self.store.contains(word)

    def _row(self, word: str) -> np.ndarray:
        i = self.store.word_id(word)
        if i is None:
            raise UnknownWordError(word)
        return self.normalized[i]

    def raw_vector(self, word: str) -> np.ndarray:
        """Stored (not normalized) vector of word.

        Raises:
            UnknownWordError: If word is not in the vocabulary.
        """
        return np.array(self.store.vector(word), dtype=np.float64)

    def cosine_distance(self, word1: str, word2: str) -> float:
        """Cosine similarity between two vocabulary words."""
        return float(self._row(word1) @ self._row(word2))

    def query_vector(self, query: Query) -> np.ndarray:
        """Resolve a word, a list of words or a raw vector to a unit-length query vector.

        Raises:
            UnknownWordError: If a query word is not in the vocabulary.
            ConfigError: If a raw vector has the wrong length, or the word list is empty.
        """
        if isinstance(query, str):
            vec = self._row(query)
        elif isinstance(query, np.ndarray) or (
            len(query) and not isinstance(query[0], str)
        ):
            vec = np.array(query, dtype=np.float64).ravel()
            if vec.shape[0] != self.layer_size:
                raise ConfigError(
                    f"query vector has length {vec.shape[0]}, model layer size is {self.layer_size}"
                )
            vec = np.nan_to_num(vec, nan=0.0)
        else:
            if not len(query):
                raise ConfigError("empty query")
            vec = nan_mean(np.stack([self._row(w) for w in query]))
        return l2_normalize(vec)

    def search(self, query: Query, k: int, exclude: Iterable[str] = ()) -> List[Match]:
        """Top-k most similar words, by descending cosine similarity.

        Ties keep vocabulary order. The query word itself is returned unless excluded.

        Args:
            query: A word, several words (averaged) or a raw vector of length D.
            k: Maximum number of matches; k <= 0 returns [].
            exclude: Words never returned.

        Returns:
            Up to k Match entries, rank 0 first.
        """
        q = self.query_vector(query)
        if k <= 0:
            return []
        scores = self.normalized @ q
        excluded = {self.store.word_id(w) for w in exclude} - {None}
        candidates = (i for i in range(len(scores)) if i not in excluded)
        # heap of size k; nlargest is stable, so ties keep ascending id
        best = heapq.nlargest(k, candidates, key=scores.__getitem__)
        return [Match(self.store.vocab[i], float(scores[i]), rank) for rank, i in enumerate(best)]

    def analogy(self, a: str, b: str, c: str, k: int = 1) -> List[Match]:
        """Solve "a is to b as c is to ?" via b - a + c; a, b and c are excluded.

        Raises:
            UnknownWordError: If a, b or c is not in the vocabulary.
        """
        vec = self._row(b) - self._row(a) + self._row(c)
        return self.search(vec, k, exclude=(a, b, c))
