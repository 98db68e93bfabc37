# Error taxonomy shared by training, persistence and search.


class Word2VecError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(Word2VecError, ValueError):
    """Invalid parameters, dimension mismatches, or an empty vocabulary after filtering."""


class FormatError(Word2VecError, ValueError):
    """Malformed model file: bad header, count mismatch, truncated data or missing delimiter."""


class UnknownWordError(Word2VecError, KeyError):
    """Query word absent from the vocabulary.

    Attributes:
        word (str): The word that was looked up.
    """

    def __init__(self, word: str):
        super().__init__(word)
        self.word = word

    def __str__(self) -> str:
        return f"Unknown search word '{self.word}'"


class Interrupted(Word2VecError):
    """Training or Huffman encoding was cancelled; no partial model is returned."""
