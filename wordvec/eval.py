from typing import List, Optional, Tuple

from wordvec.errors import UnknownWordError
from wordvec.search import SearchEngine

# Evaluation: k-NN neighbours and analogy accuracy (a is to b as c is to ?).


def print_nearest(engine: SearchEngine, words: List[str], k: int = 5) -> None:
    """Print k nearest neighbours (cosine) for each query word, skipping unknown words.

    Args:
        engine: SearchEngine to query.
        words: Query words.
        k: Number of neighbours to show. Defaults to 5.
    """
    for w in words:
        if not engine.contains(w):
            print(f"  '{w}' is not in the vocabulary")
            continue
        matches = engine.search(w, k, exclude=(w,))
        nn_str = ", ".join(f"{m.word}({m.score:.3f})" for m in matches)
        print(f"  '{w}' -> {nn_str}")


# Small built-in set (no download). Expand or load from file for full evaluation.
DEFAULT_ANALOGIES = [
    ("man", "king", "woman", "queen"),
    ("france", "paris", "germany", "berlin"),
    ("big", "biggest", "small", "smallest"),
    ("run", "running", "walk", "walking"),
]


def run_analogy_eval(
    engine: SearchEngine,
    analogies: Optional[List[Tuple[str, str, str, str]]] = None,
    verbose: bool = True,
) -> Tuple[int, int]:
    """Run analogy evaluation on (a, b, c, expected_d) quadruples.

    A quadruple counts only when all four words are in the vocabulary.

    Args:
        engine: SearchEngine to query.
        analogies: List of (a, b, c, expected) tuples. Defaults to DEFAULT_ANALOGIES.
        verbose: Print each prediction and the accuracy. Defaults to True.

    Returns:
        Tuple (correct_count, total_count).
    """
    if analogies is None:
        analogies = DEFAULT_ANALOGIES
    correct = 0
    total = 0
    for a, b, c, expected in analogies:
        if not engine.contains(expected):
            continue
        try:
            preds = engine.analogy(a, b, c, k=1)
        except UnknownWordError:
            continue
        if not preds:
            continue
        total += 1
        if preds[0].word.lower() == expected.lower():
            correct += 1
        if verbose:
            print(f"  {a} : {b} :: {c} : {preds[0].word} (expected {expected})")
    if verbose:
        if total > 0:
            print(f"Analogy accuracy: {correct}/{total} = {100.0 * correct / total:.1f}%")
        else:
            print("  (no analogies in vocab; train on a larger corpus for king/queen etc.)")
    return correct, total
