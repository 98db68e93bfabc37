import io
import logging
import mmap
import os
from typing import BinaryIO, Dict, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from wordvec.errors import ConfigError, FormatError, UnknownWordError

# Vector store and the word2vec.c file formats.
#
# Binary: "N D\n", then per word: utf-8 bytes, b" ", D float32 (little-endian by default),
# optionally followed by "\n" (C dialect). Text: "N D", then N lines "word v1 ... vD".
# Binary files are read through a sliding memory-mapped window so that no single mapping
# has to cover the whole file.

logger = logging.getLogger(__name__)

ONE_GB = 1024 * 1024 * 1024
PathLike = Union[str, os.PathLike]
# Field and record separators of both formats; a word may not contain them
WORD_DELIMITERS = (" ", "\n", "\r")


class MappedWindow:
    """Sequential reader over a file through fixed-size memory-mapped windows.

    Only one window [base, base + chunk_size) is mapped at a time. When a read runs past
    the end of the window, the window is released and the next one is mapped at
    base + chunk_size, so reads that straddle the boundary (even mid-vector) are stitched
    together from both windows. `offset` is the absolute file position.
    """

    def __init__(self, fileobj: BinaryIO, chunk_size: int = ONE_GB):
        if chunk_size <= 0 or chunk_size % mmap.ALLOCATIONGRANULARITY:
            raise ConfigError(
                f"chunk_size must be a positive multiple of {mmap.ALLOCATIONGRANULARITY}, got {chunk_size}"
            )
        self._fileno = fileobj.fileno()
        self.size = os.fstat(self._fileno).st_size
        self.chunk_size = chunk_size
        self.base = 0
        self.pos = 0  # relative to base
        self.remaps = 0
        self._map: Optional[mmap.mmap] = None
        self._map_at(0)

    @property
    def offset(self) -> int:
        return self.base + self.pos

    def _map_at(self, base: int) -> None:
        if self._map is not None:
            self._map.close()
            self._map = None
        self.base = base
        self.pos = 0
        length = min(self.chunk_size, self.size - base)
        if length > 0:
            self._map = mmap.mmap(self._fileno, length, offset=base, access=mmap.ACCESS_READ)

    def _window_len(self) -> int:
        return 0 if self._map is None else len(self._map)

    def _advance(self) -> bool:
        """Map the next window; False at end of file."""
        next_base = self.base + self.chunk_size
        if next_base >= self.size:
            return False
        self._map_at(next_base)
        self.remaps += 1
        return True

    def read_until(self, delim: bytes) -> bytes:
        """Read up to (excluding) delim and consume delim.

        Raises:
            FormatError: If the file ends before delim.
        """
        parts = []
        while True:
            if self._map is not None:
                found = self._map.find(delim, self.pos)
                if found >= 0:
                    parts.append(self._map[self.pos : found])
                    self.pos = found + 1
                    return b"".join(parts)
                parts.append(self._map[self.pos :])
                self.pos = self._window_len()
            if not self._advance():
                raise FormatError(f"unexpected end of file at byte {self.offset}: missing {delim!r}")

    def read(self, n: int) -> bytes:
        """Read exactly n bytes.

        Raises:
            FormatError: If fewer than n bytes remain.
        """
        parts = []
        while n > 0:
            available = self._window_len() - self.pos
            if available > 0:
                take = min(n, available)
                parts.append(self._map[self.pos : self.pos + take])
                self.pos += take
                n -= take
            elif not self._advance():
                raise FormatError(f"unexpected end of file at byte {self.offset}: {n} bytes missing")
        return b"".join(parts)

    def close(self) -> None:
        if self._map is not None:
            self._map.close()
            self._map = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _check_writable(vocab: Sequence[str]) -> None:
    """Raise FormatError for words that cannot be written unambiguously."""
    for i, word in enumerate(vocab):
        if not word or any(d in word for d in WORD_DELIMITERS):
            raise FormatError(f"word #{i} {word!r} is empty or contains a space or line break")


def _parse_header(line: str, source: str) -> Tuple[int, int]:
    fields = line.split()
    if len(fields) != 2:
        raise FormatError(f"{source}: expected 'N D' header, got {line!r}")
    try:
        vocab_size, layer_size = int(fields[0]), int(fields[1])
    except ValueError:
        raise FormatError(f"{source}: non-integer header {line!r}") from None
    if vocab_size < 0 or layer_size <= 0:
        raise FormatError(f"{source}: invalid header {line!r}")
    return vocab_size, layer_size


class VectorStore:
    """Immutable vocabulary plus its N x D float32 embedding matrix.

    Attributes:
        vocab (Tuple[str, ...]): Words in row order.
        vectors (np.ndarray): float32 matrix, shape (N, D), read-only.
    """

    def __init__(self, vocab: Sequence[str], vectors: np.ndarray):
        vectors = np.array(vectors, dtype=np.float32)
        if vectors.ndim != 2:
            raise ConfigError(f"vectors must be 2-dimensional, got shape {vectors.shape}")
        if vectors.shape[0] != len(vocab):
            raise ConfigError(f"{len(vocab)} words but {vectors.shape[0]} vectors")
        vectors.setflags(write=False)
        self.vocab = tuple(vocab)
        self.vectors = vectors
        self._index: Dict[str, int] = {}
        for i, word in enumerate(self.vocab):
            self._index.setdefault(word, i)
        if len(self._index) < len(self.vocab):
            logger.warning(
                "%i duplicate words in vocabulary; lookups return the first occurrence",
                len(self.vocab) - len(self._index),
            )

    def __len__(self) -> int:
        return len(self.vocab)

    def __contains__(self, word: str) -> bool:
        return word in self._index

    def __repr__(self) -> str:
        return f"VectorStore(words={len(self)}, layer_size={self.layer_size})"

    @property
    def layer_size(self) -> int:
        return self.vectors.shape[1]

    def contains(self, word: str) -> bool:
        return word in self._index

    def word_id(self, word: str) -> Optional[int]:
        return self._index.get(word)

    def vector(self, word: str) -> np.ndarray:
        """Row of word (read-only view).

        Raises:
            UnknownWordError: If word is not in the vocabulary.
        """
        i = self._index.get(word)
        if i is None:
            raise UnknownWordError(word)
        return self.vectors[i]

    def items(self) -> Iterator[Tuple[str, np.ndarray]]:
        return zip(self.vocab, self.vectors)

    def allclose(self, other: "VectorStore", atol: float = 1e-4) -> bool:
        """Same vocabulary order and vectors equal within atol per component."""
        return (
            self.vocab == other.vocab
            and self.vectors.shape == other.vectors.shape
            and bool(np.allclose(self.vectors, other.vectors, rtol=0.0, atol=atol, equal_nan=True))
        )

    def for_search(self):
        """SearchEngine over unit-normalized copies of these vectors."""
        from wordvec.search import SearchEngine

        return SearchEngine(self)

    # --- binary format ---

    @classmethod
    def from_bin_file(
        cls,
        path: PathLike,
        byteorder: str = "<",
        chunk_size: int = ONE_GB,
        unicode_errors: str = "strict",
    ) -> "VectorStore":
        """Read the word2vec.c binary format through memory-mapped windows.

        Newlines in front of a word are ignored, so files with or without a newline after
        each vector both load. The mapping is released before returning.

        Args:
            path: File path.
            byteorder: "<" little-endian (word2vec.c) or ">" big-endian. Defaults to "<".
            chunk_size: Window size in bytes; a multiple of mmap.ALLOCATIONGRANULARITY.
                Defaults to one binary gigabyte.
            unicode_errors: Error handler for decoding words, as for bytes.decode; "replace"
                or "ignore" load files with broken UTF-8. Defaults to "strict".

        Returns:
            VectorStore with the file's vocabulary order.

        Raises:
            FormatError: On a malformed header, truncated data or (with "strict") a word
                that is not valid UTF-8.
        """
        if byteorder not in ("<", ">"):
            raise ConfigError(f"byteorder must be '<' or '>', got {byteorder!r}")
        path = os.fspath(path)
        with open(path, "rb") as f:
            if os.fstat(f.fileno()).st_size == 0:
                raise FormatError(f"{path}: empty file")
            with MappedWindow(f, chunk_size) as window:
                header = window.read_until(b"\n").decode("ascii", errors="replace")
                vocab_size, layer_size = _parse_header(header, path)
                logger.info("loading %i x %i vectors from %s", vocab_size, layer_size, path)
                dtype = np.dtype(byteorder + "f4")
                vocab = []
                vectors = np.empty((vocab_size, layer_size), dtype=np.float32)
                for row in range(vocab_size):
                    word = window.read_until(b" ").replace(b"\n", b"")
                    try:
                        vocab.append(word.decode("utf-8", errors=unicode_errors))
                    except UnicodeDecodeError as e:
                        raise FormatError(
                            f"{path}: word #{row} ending at byte {window.offset} is not UTF-8: {e}"
                        ) from None
                    vectors[row] = np.frombuffer(window.read(4 * layer_size), dtype=dtype)
                if window.remaps:
                    logger.debug("%s: read through %i remapped windows", path, window.remaps)
        return cls(vocab, vectors)

    def to_bin_file(self, dest: Union[PathLike, BinaryIO], newline: bool = True) -> None:
        """Write the word2vec.c binary format (little-endian float32).

        Args:
            dest: Path or binary stream.
            newline: Write "\\n" after each vector, as word2vec.c does. Defaults to True.

        Raises:
            FormatError: If a word is empty or contains a space or line break; nothing is
                written then.
        """
        _check_writable(self.vocab)
        if isinstance(dest, (str, os.PathLike)):
            with open(dest, "wb") as f:
                self.to_bin_file(f, newline=newline)
            return
        dest.write(f"{len(self)} {self.layer_size}\n".encode("utf-8"))
        little = self.vectors.astype("<f4")
        for word, vec in zip(self.vocab, little):
            dest.write(word.encode("utf-8") + b" ")
            dest.write(vec.tobytes())
            if newline:
                dest.write(b"\n")
        dest.flush()

    # --- text format ---

    @classmethod
    def from_text_file(cls, path: PathLike) -> "VectorStore":
        """Read the word2vec.c text format.

        Only "\\n" (optionally preceded by "\\r") ends a line and only " " separates fields, so
        words holding other Unicode separators load as they do from the binary format.

        Raises:
            FormatError: If the header count differs from the number of vector lines, or a
                line does not hold exactly D values.
        """
        path = os.fspath(path)
        try:
            with open(path, encoding="utf-8", newline="") as f:
                lines = [line.rstrip("\r") for line in f.read().split("\n")]
        except UnicodeDecodeError as e:
            raise FormatError(f"{path}: not UTF-8: {e}") from None
        lines = [line for line in lines if line.strip(" ")]
        if not lines:
            raise FormatError(f"{path}: empty file")
        return cls._from_text_lines(path, lines)

    @classmethod
    def _from_text_lines(cls, source: str, lines: Sequence[str]) -> "VectorStore":
        vocab_size, layer_size = _parse_header(lines[0], source)
        if vocab_size != len(lines) - 1:
            raise FormatError(
                f"{source}: header declares {vocab_size} words, but {len(lines) - 1} vector lines found"
            )
        vocab = []
        vectors = np.empty((vocab_size, layer_size), dtype=np.float32)
        for row, line in enumerate(lines[1:]):
            values = [v for v in line.split(" ") if v]
            if len(values) - 1 != layer_size:
                raise FormatError(
                    f"{source}#{row + 1}: layer size is {layer_size}, but found {len(values) - 1} values"
                )
            vocab.append(values[0])
            try:
                vectors[row] = [float(v) for v in values[1:]]
            except ValueError:
                raise FormatError(f"{source}#{row + 1}: non-numeric value") from None
        return cls(vocab, vectors)

    def to_text_file(self, dest: Union[PathLike, io.TextIOBase]) -> None:
        """Write the word2vec.c text format; values round-trip float32 exactly.

        Raises:
            FormatError: If a word is empty or contains a space or line break; nothing is
                written then.
        """
        _check_writable(self.vocab)
        if isinstance(dest, (str, os.PathLike)):
            with open(dest, "w", encoding="utf-8", newline="\n") as f:
                self.to_text_file(f)
            return
        dest.write(f"{len(self)} {self.layer_size}\n")
        for word, vec in zip(self.vocab, self.vectors):
            dest.write(word + " " + " ".join("%.9g" % v for v in vec) + "\n")
        dest.flush()


def load_model(path: PathLike, binary: Optional[bool] = None) -> VectorStore:
    """Load a model file; with binary=None, a ".bin" extension selects the binary format.

    Args:
        path: Model file path.
        binary: Force binary (True) or text (False). Defaults to None.

    Returns:
        VectorStore.
    """
    if binary is None:
        binary = os.fspath(path).lower().endswith(".bin")
    if binary:
        return VectorStore.from_bin_file(path)
    return VectorStore.from_text_file(path)
