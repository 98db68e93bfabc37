from wordvec.config import NetworkType, Stage, TrainerConfig
from wordvec.errors import ConfigError, FormatError, Interrupted, UnknownWordError, Word2VecError
from wordvec.huffman import HuffmanNode, encode
from wordvec.search import Match, SearchEngine
from wordvec.store import VectorStore, load_model
from wordvec.train import NeuralNetworkTrainer, Word2VecTrainer, train
from wordvec.vocab import Vocabulary, build_vocab, count_tokens

# word2vec in NumPy: CBOW / Skip-gram with hierarchical softmax or negative sampling,
# C-compatible binary/text vector files, and cosine nearest-neighbour search.

__all__ = [
    "ConfigError",
    "FormatError",
    "HuffmanNode",
    "Interrupted",
    "Match",
    "NetworkType",
    "NeuralNetworkTrainer",
    "SearchEngine",
    "Stage",
    "TrainerConfig",
    "UnknownWordError",
    "VectorStore",
    "Vocabulary",
    "Word2VecError",
    "Word2VecTrainer",
    "build_vocab",
    "count_tokens",
    "encode",
    "load_model",
    "train",
]
