import math

import numpy as np
import pytest

from wordvec import run
from wordvec.corpus_utils import (
    LineSentences,
    partition,
    sentences_from_file,
    sentences_from_text,
    tokenize_simple,
)
from wordvec.errors import ConfigError, UnknownWordError
from wordvec.eval import print_nearest, run_analogy_eval
from wordvec.search import SearchEngine, l2_normalize, nan_mean
from wordvec.store import VectorStore, load_model
from wordvec.visualize import pca2, plot_embeddings

# Search, evaluation helpers, CLI and corpus readers.

ROYAL_WORDS = ["man", "king", "woman", "queen", "apple", "stone"]
ROYAL_VECTORS = np.array(
    [
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, 1.0, 1.0],
        [1.0, 0.0, 1.0],
        [-1.0, -1.0, 0.5],
    ],
    dtype=np.float32,
)


@pytest.fixture
def engine() -> SearchEngine:
    return VectorStore(ROYAL_WORDS, ROYAL_VECTORS).for_search()


def test_self_match_ranks_first(engine):
    matches = engine.search("king", 3)
    assert matches[0].word == "king"
    assert matches[0].rank == 0
    assert matches[0].score == pytest.approx(1.0)
    assert [m.rank for m in matches] == [0, 1, 2]


def test_scores_non_increasing(engine):
    matches = engine.search("woman", 10)
    scores = [m.score for m in matches]
    assert scores == sorted(scores, reverse=True)
    assert all(-1.0 - 1e-9 <= s <= 1.0 + 1e-9 for s in scores)


def test_k_larger_than_vocab(engine):
    assert len(engine.search("man", 100)) == len(ROYAL_WORDS)


def test_k_non_positive(engine):
    assert engine.search("man", 0) == []
    assert engine.search("man", -3) == []
    with pytest.raises(UnknownWordError):
        engine.search("nobody", 0)


def test_unknown_word(engine):
    with pytest.raises(UnknownWordError) as info:
        engine.search("castle", 3)
    assert info.value.word == "castle"
    assert "castle" in str(info.value)
    assert isinstance(info.value, KeyError)


def test_raw_vector_query(engine):
    matches = engine.search(np.array([0.0, 1.0, 1.0]), 1)
    assert matches[0].word == "queen"
    assert engine.search([0.0, 1.0, 1.0], 1)[0].word == "queen"
    with pytest.raises(ConfigError):
        engine.search(np.array([1.0, 2.0]), 3)
    with pytest.raises(ConfigError):
        engine.search([], 3)


def test_zero_vector_returns_vocab_order(engine):
    matches = engine.search(np.zeros(3), 4)
    assert [m.word for m in matches] == ROYAL_WORDS[:4]
    assert all(m.score == 0.0 for m in matches)


def test_ties_keep_vocabulary_order():
    store = VectorStore(["x", "y", "z", "w"], np.array([[1, 0], [2, 0], [0, 1], [3, 0]], dtype=np.float32))
    matches = store.for_search().search(np.array([1.0, 0.0]), 3)
    assert [m.word for m in matches] == ["x", "y", "w"]


def test_nan_components_count_as_zero():
    vectors = np.array([[1.0, np.nan], [1.0, 0.0], [0.0, 1.0]], dtype=np.float32)
    engine = VectorStore(["a", "b", "c"], vectors).for_search()
    assert not np.isnan(engine.normalized).any()
    matches = engine.search("a", 3)
    assert [m.word for m in matches[:2]] == ["a", "b"]
    assert matches[1].score == pytest.approx(1.0)
    assert all(not math.isnan(m.score) for m in matches)


def test_multi_word_query_averages(engine):
    expected = l2_normalize(nan_mean(np.stack([engine.normalized[0], engine.normalized[2]])))
    np.testing.assert_allclose(engine.query_vector(["man", "woman"]), expected)
    top = engine.search(["man", "woman"], 1)[0]
    assert top.word == "apple"  # (1, 0, 1) is exactly the average direction
    assert top.score == pytest.approx(1.0)


def test_exclude(engine):
    words = [m.word for m in engine.search("king", 6, exclude=("king", "not-a-word"))]
    assert "king" not in words
    assert len(words) == 5


def test_analogy(engine):
    best = engine.analogy("man", "king", "woman")
    assert best[0].word == "queen"
    assert best[0].score > 0.9
    assert len(best) == 1
    assert {"man", "king", "woman"}.isdisjoint(m.word for m in engine.analogy("man", "king", "woman", k=6))


def test_cosine_distance_and_raw_vector(engine):
    assert engine.cosine_distance("man", "king") == pytest.approx(1.0 / math.sqrt(2.0))
    assert engine.cosine_distance("queen", "queen") == pytest.approx(1.0)
    np.testing.assert_array_equal(engine.raw_vector("king"), [1.0, 1.0, 0.0])
    assert engine.layer_size == 3 and engine.contains("stone") and not engine.contains("gold")


def test_nan_mean():
    x = np.array([[1.0, np.nan, np.nan], [3.0, 2.0, np.nan]])
    np.testing.assert_array_equal(nan_mean(x), [2.0, 2.0, 0.0])


def test_print_nearest(engine, capsys):
    print_nearest(engine, ["king", "castle"], k=2)
    out = capsys.readouterr().out
    assert "'king' ->" in out
    assert "'castle' is not in the vocabulary" in out


def test_run_analogy_eval(engine, capsys):
    correct, total = run_analogy_eval(engine)
    assert (correct, total) == (1, 1)
    assert "Analogy accuracy: 1/1" in capsys.readouterr().out
    custom = [("man", "king", "woman", "apple"), ("x", "y", "z", "queen")]
    assert run_analogy_eval(engine, custom, verbose=False) == (0, 1)


def test_run_main_trains_saves_and_loads(tmp_path, capsys):
    out = tmp_path / "demo.bin"
    store = run.main(["--iter", "2", "--dim", "8", "--output", str(out), "--query", "fox", "dog", "-k", "2"])
    assert out.exists()
    assert "fox" in store and store.layer_size == 8
    loaded = run.main(["--load", str(out), "--query", "dog"])
    assert loaded.allclose(store, atol=0.0)
    assert "'dog' ->" in capsys.readouterr().out


def test_run_main_text_output(tmp_path):
    corpus = tmp_path / "corpus.txt"
    corpus.write_text("a b c d\nb c d a\nc d a b\n" * 5)
    out = tmp_path / "vectors.txt"
    store = run.main(["--file", str(corpus), "--dim", "4", "--iter", "1", "--hs", "--negative", "0",
                      "--skip-gram", "--output", str(out)])
    assert sorted(store.vocab) == ["a", "b", "c", "d"]
    assert load_model(out).allclose(store)


def test_pca2_shapes():
    coords = pca2(np.random.default_rng(0).standard_normal((10, 5)))
    assert coords.shape == (10, 2)
    np.testing.assert_allclose(coords.mean(axis=0), 0.0, atol=1e-9)
    single = pca2(np.array([[1.0], [2.0], [4.0]]))
    assert single.shape == (3, 2)
    np.testing.assert_array_equal(single[:, 1], 0.0)


def test_plot_embeddings(tmp_path):
    pytest.importorskip("matplotlib")
    store = VectorStore(ROYAL_WORDS, ROYAL_VECTORS)
    path = plot_embeddings(store, str(tmp_path / "figs" / "pca.png"))
    assert path is not None
    assert (tmp_path / "figs" / "pca.png").stat().st_size > 0


def test_corpus_readers(tmp_path):
    assert tokenize_simple("Hello, World! 42x") == ["hello", "world", "42x"]
    assert sentences_from_text("The cat.\n\nA dog\n") == [["the", "cat"], ["a", "dog"]]
    assert sentences_from_text("The Cat.", tokenize=False) == [["The", "Cat."]]
    assert list(partition("abcde", 2)) == [["a", "b"], ["c", "d"], ["e"]]

    path = tmp_path / "lines.txt"
    path.write_text("one two three four five\nsix\n\n")
    stream = LineSentences(str(path), max_sentence_length=2)
    expected = [["one", "two"], ["three", "four"], ["five"], ["six"]]
    assert list(stream) == expected
    assert list(stream) == expected  # re-iterable
    assert sentences_from_file(str(path)) == [["one", "two", "three", "four", "five"], ["six"]]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
