"""
SPIED - Command-line entry point.

Loads a run configuration and a corpus, bootstraps every label from its seed
dictionary and prints what was learned.
"""

import argparse
import sys

from spied.config import load_config
from spied.controller import BootstrapController
from spied.data.corpus import Corpus
from spied.data.readers import read_jsonl, read_text, read_tsv
from spied.exceptions import SpiedError
from spied.logging_config import close_debug_log, error, info

READERS = {
    'tsv': read_tsv,
    'jsonl': read_jsonl,
    'text': read_text,
}


def main(argv: list[str] | None = None) -> int:
    """Command-line interface for the bootstrapper."""
    parser = argparse.ArgumentParser(
        description="SPIED - Learn entity phrases and patterns from seed dictionaries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Annotated CoNLL-style corpus
  python -m spied.main --config run.yaml --corpus notes.tsv

  # Raw text, annotated with spaCy
  python -m spied.main --config run.yaml --corpus notes.txt --format text --out-dir ./out

  # Debug mode (verbose logging)
  DEBUG=true python -m spied.main --config run.yaml --corpus notes.tsv
        """
    )
    parser.add_argument(
        '--config',
        required=True,
        help='YAML run configuration'
    )
    parser.add_argument(
        '--corpus',
        required=True,
        help='Corpus file'
    )
    parser.add_argument(
        '--format',
        default='tsv',
        choices=sorted(READERS),
        help='Corpus format (default: tsv)'
    )
    parser.add_argument(
        '--out-dir',
        default=None,
        help='Output directory for learned state and justification files (overrides run.out_dir)'
    )
    parser.add_argument(
        '--resume',
        action='store_true',
        help='Continue from the state saved in the output directory'
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        if args.out_dir:
            config.run.out_dir = args.out_dir
        sentences = READERS[args.format](args.corpus)
        corpus = Corpus.from_sentences(
            sentences,
            batch_dir=config.run.batch_dir if config.run.batch_process_sents else None,
            max_sentences_per_batch=config.run.max_sentences_per_batch,
        )
        info(f"Loaded {len(corpus)} sentences from {args.corpus}")

        controller = BootstrapController(config, corpus)
        if args.resume:
            controller.load_saved_state()
        states = controller.run()
    except SpiedError as e:
        error(str(e))
        return 1
    finally:
        close_debug_log()

    print("\n" + "=" * 60)
    print("LEARNED PHRASES")
    print("=" * 60)
    for label, state in states.items():
        print(f"\n{label} ({state.num_learned_words()} phrases, {len(state.all_learned_patterns())} patterns)")
        for iteration in sorted(state.learned_words):
            for phrase, score in state.learned_words[iteration].items():
                print(f"  [{iteration}] {phrase.phrase}\t{score:.4f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
