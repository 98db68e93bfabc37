import re
from typing import Iterable, Iterator, List

# Token sentences from raw text or files (space/newline separated). No external tokenizer.

# Longest sentence handed to the trainer; longer token runs are split
MAX_SENTENCE_LENGTH = 1000


def tokenize_simple(text: str) -> List[str]:
    """Lowercase and split on non-alphanumeric; keep only letter/digit sequences.

    Args:
        text: Raw input string.

    Returns:
        List of token strings.
    """
    return re.findall(r"[a-zA-Z0-9]+", text.lower())


def partition(tokens: Iterable[str], size: int = MAX_SENTENCE_LENGTH) -> Iterator[List[str]]:
    """Split a token stream into consecutive sentences of at most size tokens."""
    chunk: List[str] = []
    for token in tokens:
        chunk.append(token)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def sentences_from_text(text: str, tokenize: bool = True) -> List[List[str]]:
    """One sentence per non-empty line of text, each capped at MAX_SENTENCE_LENGTH tokens.

    Args:
        text: Raw text.
        tokenize: Apply tokenize_simple; otherwise split on whitespace. Defaults to True.

    Returns:
        List of token lists.
    """
    sentences = []
    for line in text.splitlines():
        tokens = tokenize_simple(line) if tokenize else line.split()
        sentences.extend(partition(tokens))
    return sentences


class LineSentences:
    """Re-iterable sentence stream over a text file: one sentence per line, whitespace tokens.

    Lines longer than max_sentence_length tokens are split.
    """

    def __init__(self, path: str, max_sentence_length: int = MAX_SENTENCE_LENGTH):
        self.path = path
        self.max_sentence_length = max_sentence_length

    def __iter__(self) -> Iterator[List[str]]:
        with open(self.path, encoding="utf-8") as f:
            for line in f:
                yield from partition(line.split(), self.max_sentence_length)


def sentences_from_file(path: str, tokenize: bool = True) -> List[List[str]]:
    """Read a text file and split it as sentences_from_text does."""
    with open(path, encoding="utf-8") as f:
        text = f.read()
    return sentences_from_text(text, tokenize=tokenize)
