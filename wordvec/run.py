import argparse
import logging
from typing import List, Optional

from wordvec.config import NetworkType, Stage, TrainerConfig
from wordvec.corpus_utils import LineSentences, sentences_from_text
from wordvec.eval import print_nearest, run_analogy_eval
from wordvec.store import VectorStore, load_model
from wordvec.train import train

# Entry point: train on demo text or a file, or load a model; save and query it.
# Usage: python -m wordvec.run [--file path | --load model.bin] [--output out.bin] [--query w ...]

DEMO_TEXT = """
the quick brown fox jumps over the lazy dog
the dog and the fox are animals
quick animals jump over lazy dogs
brown foxes and lazy dogs
the quick brown fox runs
the lazy dog sleeps
"""


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Train or load word2vec vectors and query them")
    ap.add_argument("--text", type=str, default=None, help="Train on this string")
    ap.add_argument("--file", type=str, default=None, help="Train on file (one sentence per line)")
    ap.add_argument("--load", type=str, default=None, help="Load a model instead of training")
    ap.add_argument("--output", type=str, default=None, help="Save vectors (.bin = binary, else text)")
    ap.add_argument("--skip-gram", action="store_true", help="Use Skip-gram instead of CBOW")
    ap.add_argument("--hs", action="store_true", help="Use hierarchical softmax")
    ap.add_argument("--negative", type=int, default=5, help="Negative samples (0 = off)")
    ap.add_argument("--dim", type=int, default=64)
    ap.add_argument("--window", type=int, default=5)
    ap.add_argument("--iter", type=int, default=5, help="Passes over the corpus")
    ap.add_argument("--sample", type=float, default=1e-3, help="Subsampling threshold")
    ap.add_argument("--threads", type=int, default=1)
    ap.add_argument("--min-count", type=int, default=1)
    ap.add_argument("--alpha", type=float, default=None, help="Initial learning rate")
    ap.add_argument("--seed", type=int, default=1)
    ap.add_argument("--query", nargs="*", default=None, help="Words to print neighbours for")
    ap.add_argument("-k", type=int, default=5)
    return ap


def _print_progress(stage: Stage, progress: float) -> None:
    print(f"\r{stage.value}: {100.0 * progress:5.1f}%", end="", flush=True)
    if progress >= 1.0:
        print()


def main(argv: Optional[List[str]] = None) -> VectorStore:
    """Train (or load) a model, optionally save it, and print neighbours and analogies."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.load:
        store = load_model(args.load)
        print(f"Loaded {len(store)} words, layer size {store.layer_size}")
    else:
        sentences = LineSentences(args.file) if args.file else sentences_from_text(args.text or DEMO_TEXT)
        config = TrainerConfig(
            network_type=NetworkType.SKIP_GRAM if args.skip_gram else NetworkType.CBOW,
            use_hierarchical_softmax=args.hs,
            negative_samples=args.negative,
            layer_size=args.dim,
            window_size=args.window,
            iterations=args.iter,
            down_sample_rate=args.sample,
            num_threads=args.threads,
            min_frequency=args.min_count,
            initial_learning_rate=args.alpha,
            seed=args.seed,
        )
        store = train(sentences, config, listener=_print_progress)
        print(f"Vocab size {len(store)}, layer size {store.layer_size}")

    if args.output:
        if args.output.lower().endswith(".bin"):
            store.to_bin_file(args.output)
        else:
            store.to_text_file(args.output)
        print(f"Saved {args.output}")

    engine = store.for_search()
    query = args.query if args.query is not None else list(store.vocab[:3])
    print_nearest(engine, query, k=args.k)
    print("Analogy (a : b :: c : ?):")
    run_analogy_eval(engine)
    return store


if __name__ == "__main__":
    main()
