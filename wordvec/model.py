from typing import List, Optional, Sequence

import numpy as np

from wordvec.config import NetworkType
from wordvec.data import draw_negatives
from wordvec.huffman import HuffmanNode

# CBOW / Skip-gram networks with hierarchical-softmax and negative-sampling output layers.
# Updates are applied in place to matrices shared by all worker threads without locks
# (Hogwild SGD): concurrent row updates may interleave and lose increments, so runs are
# bit-reproducible only with a single worker.

# Activations outside [-MAX_EXP, MAX_EXP] are saturated, as in word2vec.c
MAX_EXP = 6.0


def _sigmoid(x: np.ndarray) -> np.ndarray:
    """Numerically stable sigmoid; clips input to avoid overflow in exp.

    Args:
        x: Input array (any shape).

    Returns:
        Sigmoid of x, same shape; values in (0, 1).
    """
    x = np.clip(x, -500.0, 500.0)
    return 1.0 / (1.0 + np.exp(-x))


class NeuralNetwork:
    """Input and output weight matrices plus the per-window training steps.

    Attributes:
        syn0 (np.ndarray): Input vectors, shape (V, D); the final embeddings.
        syn1 (Optional[np.ndarray]): HS output vectors, one per internal Huffman node, (V - 1, D).
        syn1neg (Optional[np.ndarray]): NS output vectors, shape (V, D).
        V (int): Vocabulary size.
        D (int): Layer size.
    """

    def __init__(
        self,
        huffman_nodes: Sequence[HuffmanNode],
        layer_size: int,
        use_hierarchical_softmax: bool,
        negative_samples: int,
        cum_table: Optional[np.ndarray] = None,
        seed: int = 1,
    ):
        """Initialize syn0 uniformly in (-0.5/D, 0.5/D) and the output layers to zero.

        Args:
            huffman_nodes: One node per vocabulary word, in id order.
            layer_size: Embedding dimension D.
            use_hierarchical_softmax: Allocate and train syn1.
            negative_samples: Negatives per positive; 0 disables syn1neg.
            cum_table: Cumulative unigram table; required when negative_samples > 0.
            seed: Seed for the syn0 initialization. Defaults to 1.
        """
        if negative_samples > 0 and cum_table is None:
            raise ValueError("negative sampling requires a unigram table")
        self.V = len(huffman_nodes)
        self.D = layer_size
        rng = np.random.default_rng(seed)
        self.syn0 = rng.uniform(-0.5 / layer_size, 0.5 / layer_size, (self.V, self.D))
        self.syn1 = np.zeros((self.V - 1, self.D)) if use_hierarchical_softmax else None
        self.syn1neg = np.zeros((self.V, self.D)) if negative_samples > 0 else None
        self.negative = negative_samples
        self.cum_table = cum_table
        self.points: List[np.ndarray] = [np.array(n.point, dtype=np.int64) for n in huffman_nodes]
        self.codes: List[np.ndarray] = [np.array(n.code, dtype=np.float64) for n in huffman_nodes]

    def output_step(self, h: np.ndarray, word: int, alpha: float, rng: np.random.Generator) -> np.ndarray:
        """Predict word from hidden vector h; update output rows, return the error on h.

        Args:
            h: Hidden vector, shape (D,).
            word: Id of the word to predict.
            alpha: Current learning rate.
            rng: Worker's generator, used to draw negatives.

        Returns:
            Error gradient on h, already scaled by alpha, shape (D,).
        """
        neu1e = np.zeros(self.D)

        if self.syn1 is not None and len(self.points[word]):
            point = self.points[word]
            l2a = self.syn1[point]  # (codelen, D), copy
            f = l2a @ h
            # nodes whose activation is saturated carry no gradient
            g = (1.0 - self.codes[word] - _sigmoid(f)) * alpha
            g[np.abs(f) >= MAX_EXP] = 0.0
            neu1e += g @ l2a
            self.syn1[point] += np.outer(g, h)

        if self.syn1neg is not None:
            negatives = draw_negatives(self.cum_table, self.negative, rng)
            targets = np.concatenate(([word], negatives[negatives != word]))
            labels = np.zeros(len(targets))
            labels[0] = 1.0
            l2b = self.syn1neg[targets]  # (1 + k', D), copy
            f = l2b @ h
            sig = _sigmoid(f)
            sig[f > MAX_EXP] = 1.0
            sig[f < -MAX_EXP] = 0.0
            g = (labels - sig) * alpha
            neu1e += g @ l2b
            # negatives may repeat: accumulate every draw
            np.add.at(self.syn1neg, targets, np.outer(g, h))

        return neu1e

    def train_cbow(self, sentence: np.ndarray, pos: int, radius: int, alpha: float, rng: np.random.Generator) -> None:
        """CBOW: predict sentence[pos] from the mean of its context within radius."""
        context = np.concatenate(
            (sentence[max(0, pos - radius) : pos], sentence[pos + 1 : pos + radius + 1])
        )
        if not len(context):
            return
        h = self.syn0[context].mean(axis=0)
        neu1e = self.output_step(h, int(sentence[pos]), alpha, rng)
        np.add.at(self.syn0, context, neu1e)

    def train_skip_gram(
        self, sentence: np.ndarray, pos: int, radius: int, alpha: float, rng: np.random.Generator
    ) -> None:
        """Skip-gram: for each context word, predict sentence[pos] from that word's vector."""
        word = int(sentence[pos])
        start = max(0, pos - radius)
        for c in range(start, min(len(sentence), pos + radius + 1)):
            if c == pos:
                continue
            last_word = sentence[c]
            neu1e = self.output_step(self.syn0[last_word].copy(), word, alpha, rng)
            self.syn0[last_word] += neu1e

    def window_step(self, network_type: NetworkType):
        """Training step for the configured network type."""
        if network_type is NetworkType.CBOW:
            return self.train_cbow
        return self.train_skip_gram

    def train_sentence(
        self,
        sentence: np.ndarray,
        step,
        window_size: int,
        alpha: float,
        rng: np.random.Generator,
    ) -> None:
        """Run step at every position with a radius drawn uniformly from [1, window_size]."""
        radii = rng.integers(1, window_size + 1, size=len(sentence))
        for pos in range(len(sentence)):
            step(sentence, pos, int(radii[pos]), alpha, rng)
