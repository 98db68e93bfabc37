import argparse
import os
from typing import Optional

import numpy as np

from wordvec.config import TrainerConfig
from wordvec.corpus_utils import sentences_from_text
from wordvec.store import VectorStore, load_model
from wordvec.train import train

# 2D PCA figure of word vectors. Run: python -m wordvec.visualize [--load model.bin]

# Repeated so a tiny demo corpus still gives every word a few contexts
DEMO_TEXT = (
    "the quick brown fox jumps over the lazy dog\n"
    "the dog and the fox are animals quick animals jump over lazy dogs\n"
    "brown foxes and lazy dogs the quick brown fox runs the lazy dog sleeps\n"
) * 8


def pca2(X: np.ndarray) -> np.ndarray:
    """Project rows of X onto first 2 principal components (pure NumPy SVD).

    Args:
        X: Array of shape (n_samples, n_features).

    Returns:
        Array of shape (n_samples, 2); missing components (fewer than 2 features or
        samples) are zero.
    """
    X = np.nan_to_num(np.asarray(X, dtype=np.float64), nan=0.0)
    X_centered = X - X.mean(axis=0)
    U, s, Vt = np.linalg.svd(X_centered, full_matrices=False)
    coords = np.zeros((X.shape[0], 2))
    n = min(2, Vt.shape[0])
    coords[:, :n] = X_centered @ Vt[:n].T
    return coords


def plot_embeddings(store: VectorStore, path: str, max_labels: int = 50) -> Optional[str]:
    """Save a labelled PCA scatter plot of the store's vectors.

    Args:
        store: Vectors to plot.
        path: Output image path.
        max_labels: Label at most this many (most frequent) words. Defaults to 50.

    Returns:
        path, or None when matplotlib is not installed.
    """
    coords = pca2(store.vectors)
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        print("matplotlib not installed; skipping PCA plot. pip install matplotlib")
        return None

    plt.figure(figsize=(8, 6))
    plt.scatter(coords[:, 0], coords[:, 1], alpha=0.7, s=20)
    for i in range(min(max_labels, len(store))):
        plt.annotate(store.vocab[i], (coords[i, 0], coords[i, 1]), fontsize=7, alpha=0.9)
    plt.xlabel("PC1")
    plt.ylabel("PC2")
    plt.title("Word vectors (PCA)")
    plt.tight_layout()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    plt.savefig(path, dpi=120)
    plt.close()
    return path


def main() -> None:
    """Train on demo text (or load a model) and save the PCA figure to save_dir."""
    ap = argparse.ArgumentParser()
    ap.add_argument("--save_dir", type=str, default="wordvec/figures")
    ap.add_argument("--load", type=str, default=None)
    ap.add_argument("--dim", type=int, default=32)
    ap.add_argument("--seed", type=int, default=1)
    args = ap.parse_args()

    if args.load and os.path.isfile(args.load):
        store = load_model(args.load)
    else:
        config = TrainerConfig(layer_size=args.dim, min_frequency=1, num_threads=1, seed=args.seed)
        store = train(sentences_from_text(DEMO_TEXT), config)

    out = plot_embeddings(store, os.path.join(args.save_dir, "embeddings_pca.png"))
    if out:
        print(f"Saved {out}")


if __name__ == "__main__":
    main()
