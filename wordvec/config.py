import enum
import numbers
import os
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from wordvec.errors import ConfigError, Interrupted

# Training configuration and the progress / cancellation hooks shared by all stages.


class NetworkType(enum.Enum):
    """Supported network variants; each carries its default initial learning rate."""

    CBOW = "cbow"  # faster, slightly better for frequent words
    SKIP_GRAM = "skip_gram"  # slower, better for infrequent words

    @property
    def default_learning_rate(self) -> float:
        return 0.05 if self is NetworkType.CBOW else 0.025


class Stage(enum.Enum):
    """Discrete stages reported to a progress listener."""

    ACQUIRE_VOCAB = "AcquireVocab"
    FILTER_SORT_VOCAB = "FilterSortVocab"
    BUILD_HUFFMAN = "BuildHuffman"
    TRAIN_NETWORK = "TrainNetwork"


# listener(stage, progress) with progress in [0, 1]
ProgressListener = Callable[[Stage, float], None]


def notify(listener: Optional[ProgressListener], stage: Stage, progress: float) -> None:
    """Forward a progress update to the listener, if any."""
    if listener is not None:
        listener(stage, min(1.0, max(0.0, progress)))


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Raise Interrupted if cancellation was requested.

    Args:
        cancel_event: Shared cancellation flag, or None when cancellation is not supported.

    Raises:
        Interrupted: If the event is set.
    """
    if cancel_event is not None and cancel_event.is_set():
        raise Interrupted("training was cancelled")


@dataclass(frozen=True)
class TrainerConfig:
    """Validated training configuration.

    Attributes:
        network_type (NetworkType): CBOW or Skip-gram.
        use_hierarchical_softmax (bool): Enable the Huffman-tree output layer.
        negative_samples (int): Negatives per positive example; 0 disables negative sampling.
        layer_size (int): Embedding dimension D.
        window_size (int): Maximum context radius W.
        iterations (int): Passes over the corpus.
        down_sample_rate (float): Subsampling threshold t; 0 disables subsampling.
        num_threads (int): Worker threads; results are reproducible only with 1.
        min_frequency (int): Words seen fewer times are dropped from the vocabulary.
        initial_learning_rate (Optional[float]): None selects the network type's default.
        vocab (Optional[Mapping[str, int]]): Precomputed token counts; skips counting.
        seed (int): Seed for weight initialization and per-worker generators.
    """

    network_type: NetworkType = NetworkType.CBOW
    use_hierarchical_softmax: bool = False
    negative_samples: int = 5
    layer_size: int = 100
    window_size: int = 5
    iterations: int = 5
    down_sample_rate: float = 1e-3
    num_threads: int = os.cpu_count() or 1
    min_frequency: int = 5
    initial_learning_rate: Optional[float] = None
    vocab: Optional[Mapping[str, int]] = None
    seed: int = 1

    def __post_init__(self):
        if not isinstance(self.network_type, NetworkType):
            raise ConfigError(f"network_type must be a NetworkType, got {self.network_type!r}")
        for name in ("layer_size", "window_size", "iterations", "num_threads", "min_frequency"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.negative_samples, int) or self.negative_samples < 0:
            raise ConfigError(f"negative_samples must be an integer >= 0, got {self.negative_samples!r}")
        if not self.use_hierarchical_softmax and self.negative_samples == 0:
            raise ConfigError("enable hierarchical softmax or negative sampling (or both)")
        if not isinstance(self.down_sample_rate, numbers.Real) or self.down_sample_rate < 0:
            raise ConfigError(f"down_sample_rate must be a number >= 0, got {self.down_sample_rate!r}")
        if self.initial_learning_rate is not None and (
            not isinstance(self.initial_learning_rate, numbers.Real) or self.initial_learning_rate <= 0
        ):
            raise ConfigError(
                f"initial_learning_rate must be positive, got {self.initial_learning_rate}"
            )
        if self.vocab is not None:
            for word, count in self.vocab.items():
                if count < 0:
                    raise ConfigError(f"negative count {count} for word '{word}'")

    @property
    def learning_rate(self) -> float:
        """Initial learning rate, falling back to the network type's default."""
        if self.initial_learning_rate is not None:
            return self.initial_learning_rate
        return self.network_type.default_learning_rate
