import logging
import threading
import time
from typing import Iterable, List, Optional, Sequence

import numpy as np

from wordvec.config import (
    ProgressListener,
    Stage,
    TrainerConfig,
    check_cancelled,
    notify,
)
from wordvec.data import Corpus, make_cum_table
from wordvec.errors import ConfigError
from wordvec.huffman import HuffmanNode, encode
from wordvec.model import NeuralNetwork
from wordvec.store import VectorStore
from wordvec.vocab import Vocabulary, build_vocab, count_tokens

# Training: vocabulary -> Huffman tree -> asynchronous multi-threaded SGD over the corpus.
# Learning rate decays linearly with words processed by all workers, down to 1% of its
# initial value.

logger = logging.getLogger(__name__)

# Minimum learning rate as a fraction of the initial one
MIN_LEARNING_RATE_RATIO = 0.01
# Words between two listener updates
REPORT_EVERY = 10000


class NeuralNetworkTrainer:
    """Runs the worker pool that trains one NeuralNetwork over a Corpus.

    Each worker owns a disjoint contiguous shard of the sentences and runs every pass over
    it. Workers share the weight matrices and the processed-word counter without locks;
    see wordvec.model for the consequences.
    """

    def __init__(
        self,
        config: TrainerConfig,
        vocab: Vocabulary,
        huffman_nodes: Sequence[HuffmanNode],
        listener: Optional[ProgressListener] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.vocab = vocab
        self.listener = listener
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        cum_table = make_cum_table(vocab.counts) if config.negative_samples > 0 else None
        self.network = NeuralNetwork(
            huffman_nodes,
            config.layer_size,
            config.use_hierarchical_softmax,
            config.negative_samples,
            cum_table=cum_table,
            seed=config.seed,
        )
        self._step = self.network.window_step(config.network_type)
        self._word_count_actual = 0
        self._total_words = 0
        self._listener_lock = threading.Lock()

    def current_learning_rate(self) -> float:
        """Learning rate for the current global progress."""
        start = self.config.learning_rate
        progress = self._word_count_actual / (self._total_words + 1)
        return start * max(1.0 - progress, MIN_LEARNING_RATE_RATIO)

    def _report(self) -> None:
        if self.listener is None:
            return
        with self._listener_lock:
            notify(self.listener, Stage.TRAIN_NETWORK, self._word_count_actual / (self._total_words + 1))

    def _worker(self, worker_id: int, shard: List[np.ndarray], corpus: Corpus, errors: list) -> None:
        rng = np.random.default_rng([self.config.seed, worker_id])
        last_report = 0
        try:
            for _ in range(self.config.iterations):
                for sentence in shard:
                    if self.cancel_event.is_set():
                        return
                    # unsynchronized; a lost increment only shifts the lr schedule
                    self._word_count_actual += len(sentence)
                    alpha = self.current_learning_rate()
                    kept = corpus.subsample(sentence, rng)
                    self.network.train_sentence(kept, self._step, self.config.window_size, alpha, rng)
                    if self._word_count_actual - last_report >= REPORT_EVERY:
                        last_report = self._word_count_actual
                        self._report()
        except Exception as e:  # surfaced by train() after join
            errors.append(e)
            self.cancel_event.set()

    def train(self, corpus: Corpus) -> np.ndarray:
        """Train on the corpus and return syn0.

        Args:
            corpus: Corpus built against the same vocabulary.

        Returns:
            Embedding matrix, shape (V, D), float64.

        Raises:
            Interrupted: If cancellation was requested before or during training.
        """
        cfg = self.config
        self._total_words = cfg.iterations * corpus.n_tokens
        self._word_count_actual = 0
        notify(self.listener, Stage.TRAIN_NETWORK, 0.0)
        check_cancelled(self.cancel_event)

        logger.info(
            "training %s on %i tokens: %i passes, %i threads, D=%i, window=%i, hs=%s, negative=%i",
            cfg.network_type.value,
            corpus.n_tokens,
            cfg.iterations,
            cfg.num_threads,
            cfg.layer_size,
            cfg.window_size,
            cfg.use_hierarchical_softmax,
            cfg.negative_samples,
        )
        start = time.time()
        errors: list = []
        workers = [
            threading.Thread(
                target=self._worker, args=(i, shard, corpus, errors), name=f"wordvec-worker-{i}"
            )
            for i, shard in enumerate(corpus.shards(cfg.num_threads))
        ]
        for thread in workers:
            thread.daemon = True
            thread.start()
        for thread in workers:
            thread.join()

        if errors:
            raise errors[0]
        check_cancelled(self.cancel_event)
        notify(self.listener, Stage.TRAIN_NETWORK, 1.0)
        elapsed = time.time() - start
        logger.info(
            "trained on %i words in %.1fs, %.0f effective words/s",
            self._word_count_actual,
            elapsed,
            self._word_count_actual / max(elapsed, 1e-9),
        )
        return self.network.syn0


class Word2VecTrainer:
    """Full training pipeline; holds the cancellation flag so another thread can cancel()."""

    def __init__(self, config: TrainerConfig, listener: Optional[ProgressListener] = None):
        if not isinstance(config, TrainerConfig):
            raise ConfigError(f"expected a TrainerConfig, got {type(config).__name__}")
        self.config = config
        self.listener = listener
        self.cancel_event = threading.Event()

    def cancel(self) -> None:
        """Request cooperative cancellation; the running train() raises Interrupted."""
        self.cancel_event.set()

    def train(self, sentences: Iterable[Iterable[str]]) -> VectorStore:
        """Build the vocabulary, encode it and train the network.

        Args:
            sentences: Token sentences. Materialized once, so a generator is fine.

        Returns:
            VectorStore with float32 vectors in vocabulary order.

        Raises:
            ConfigError: If the vocabulary is empty after filtering.
            Interrupted: If cancelled; no partial model is returned.
        """
        cfg = self.config
        sentences = [list(s) for s in sentences]

        notify(self.listener, Stage.ACQUIRE_VOCAB, 0.0)
        check_cancelled(self.cancel_event)
        counts = cfg.vocab if cfg.vocab is not None else count_tokens(sentences)
        notify(self.listener, Stage.ACQUIRE_VOCAB, 1.0)

        notify(self.listener, Stage.FILTER_SORT_VOCAB, 0.0)
        check_cancelled(self.cancel_event)
        vocab = build_vocab(counts, cfg.min_frequency)
        notify(self.listener, Stage.FILTER_SORT_VOCAB, 1.0)

        huffman_nodes = encode(vocab, self.listener, self.cancel_event)
        corpus = Corpus.from_sentences(sentences, vocab, cfg.down_sample_rate)
        trainer = NeuralNetworkTrainer(cfg, vocab, huffman_nodes, self.listener, self.cancel_event)
        syn0 = trainer.train(corpus)
        return VectorStore(vocab.words, syn0.astype(np.float32))


def train(
    sentences: Iterable[Iterable[str]],
    config: Optional[TrainerConfig] = None,
    listener: Optional[ProgressListener] = None,
    cancel_event: Optional[threading.Event] = None,
) -> VectorStore:
    """Train word vectors on token sentences.

    Args:
        sentences: Iterable of token sequences.
        config: Training configuration. Defaults to TrainerConfig().
        listener: Optional listener(stage, progress).
        cancel_event: Optional event; setting it (from the listener or another thread)
            makes this call raise Interrupted.

    Returns:
        Trained VectorStore.
    """
    trainer = Word2VecTrainer(config if config is not None else TrainerConfig(), listener)
    if cancel_event is not None:
        trainer.cancel_event = cancel_event
    return trainer.train(sentences)

