"""
SPIED Configuration Module
Centralized configuration for the bootstrapping engine.

Module-level constants hold paths, logging settings and defaults. Each
component reads its options from a typed dataclass section; the sections are
composed into BootstrapConfig, which is loaded from YAML and validated before
any corpus work starts.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path

import yaml

from spied.exceptions import ConfigurationError

# Debug Mode Configuration
DEBUG_MODE = os.environ.get('DEBUG', 'false').lower() == 'true'

# Application Paths
APP_NAME = "SPIED"
APPDATA_DIR = Path(os.environ.get('APPDATA', os.path.expanduser('~/.config'))) / APP_NAME
CACHE_DIR = APPDATA_DIR / "cache"
LOGS_DIR = APPDATA_DIR / "logs"
MODELS_DIR = APPDATA_DIR / "models"

# Ensure directories exist
for directory in [APPDATA_DIR, CACHE_DIR, LOGS_DIR, MODELS_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Logging Configuration
LOG_FILE = LOGS_DIR / "processing.log"
DEBUG_FLOW_FILE = LOGS_DIR / "debug_flow.txt"
LOG_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Label written on tokens that carry no category
BACKGROUND_SYMBOL = "O"

# Parallel Processing Configuration
# min(cpu_count, 4) keeps per-shard counter copies within laptop memory
DEFAULT_WORKERS = min(os.cpu_count() or 4, 4)

# Annealing factor applied to every label's pattern threshold when a round
# produces no new patterns and tune_threshold_keep_running is on
THRESHOLD_ANNEAL_FACTOR = 0.8

# Precision cut-off used by the YanGarber02 and LinICML03 pattern scorers
PRECISION_FILTER_THRESHOLD = 0.8

# Edit-distance features ignore phrases shorter than this
EDIT_DISTANCE_MIN_LENGTH = 4
EDIT_DISTANCE_MAX = 3


class PatternType(Enum):
    SURFACE = "surface"
    DEP = "dep"


class PatternScoring(Enum):
    RLOGF = "RlogF"
    RLOGF_POS_NEG = "RlogFPosNeg"
    RLOGF_UNLAB_NEG = "RlogFUnlabNeg"
    RLOGF_NEG = "RlogFNeg"
    YAN_GARBER_02 = "YanGarber02"
    LIN_ICML_03 = "LinICML03"
    POS_NEG_ODDS = "PosNegOdds"
    POS_NEG_UNLAB_ODDS = "PosNegUnlabOdds"
    RATIO_ALL = "RatioAll"
    SQRT_ALL_RATIO = "SqrtAllRatio"
    PH_EVAL_IN_PAT = "PhEvalInPat"
    PH_EVAL_IN_PAT_LOGP = "PhEvalInPatLogP"
    LOGREG = "Logreg"
    LOGREG_LOGP = "LOGREGlogP"


class PhraseScoring(Enum):
    AVERAGE_FEATURES = "average_features"
    LEARNED_CLASSIFIER = "learned_classifier"


class WordScoring(Enum):
    WEIGHTEDNORM = "weightednorm"
    BPB = "bpb"


class FreqNormalization(Enum):
    NONE = "none"
    SQRT = "sqrt"
    LOG = "log"


class IndexBackend(Enum):
    MEMORY = "memory"
    SQLITE = "sqlite"


class PhraseSignal(Enum):
    """Per-phrase signals shared by the phrase scorers and PhEvalInPat."""
    PAT_WT_BY_FREQ = "pat_wt_by_freq"
    SEMANTIC_ODDS = "semantic_odds"
    GOOGLE_NGRAM = "google_ngram"
    DOMAIN_NGRAM = "domain_ngram"
    WORD_CLASS = "word_class"
    WORD_VECTOR = "word_vector"
    EDIT_DIST_SAME = "edit_dist_same"
    EDIT_DIST_OTHER = "edit_dist_other"
    WORD_SHAPE = "word_shape"
    IS_FIRST_CAPITAL = "is_first_capital"
    BOW = "bow"


def _coerce_enum(value, enum_cls, option: str):
    """Accept an enum member, its value or its name (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if value == member.value or str(value).lower() in (member.value.lower(), member.name.lower()):
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(f"Invalid value {value!r} for '{option}'. Allowed: {allowed}")


@dataclass
class PatternConfig:
    """Options for generating and matching context patterns."""
    pattern_type: PatternType = PatternType.SURFACE
    max_window: int = 2
    min_window: int = 1
    use_previous_context: bool = True
    use_next_context: bool = True
    use_lemma_context_tokens: bool = False
    lower_case_context: bool = True
    use_pos: bool = False
    add_pattern_without_pos: bool = True
    use_coarse_pos: bool = True
    use_target_ner_restriction: bool = False
    num_words_compound: int = 2
    use_filler_words: bool = True
    filler_words: list[str] = field(default_factory=lambda: ["a", "an", "the", "`", "``", "'", "''"])
    num_min_stop_words_to_add: int = 3
    word_ignore_regex: str = "[^a-zA-Z]*"
    # label -> allowed POS tag prefixes / NER tags for the target slot
    target_allowed_tags_initials: dict[str, list[str]] = field(default_factory=dict)
    target_allowed_ners: dict[str, list[str]] = field(default_factory=dict)

    def __post_init__(self):
        self.pattern_type = _coerce_enum(self.pattern_type, PatternType, "pattern_type")


@dataclass
class SelectionConfig:
    """Options for scoring and selecting patterns and phrases each round."""
    pattern_scoring: PatternScoring = PatternScoring.POS_NEG_UNLAB_ODDS
    num_patterns: int = 10
    threshold_select_pattern: float = 1.0
    min_pos_phrase_support_for_pattern: int = 1
    min_unlab_phrase_support_for_pattern: int = 0
    sqrt_pattern_score: bool = False
    num_words_to_add: int = 10
    threshold_word_extract: float = 0.2
    threshold_num_patterns_applied: float = 2
    fuzzy_match: bool = False
    min_len_fuzzy: int = 6
    ignore_patterns: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.pattern_scoring = _coerce_enum(self.pattern_scoring, PatternScoring, "pattern_scoring")


@dataclass
class PhraseScoringConfig:
    """Options for the phrase scorers and their auxiliary signals."""
    phrase_scoring: PhraseScoring = PhraseScoring.AVERAGE_FEATURES
    word_scoring: WordScoring = WordScoring.WEIGHTEDNORM
    freq_normalization: FreqNormalization = FreqNormalization.LOG
    phrase_signals: list[PhraseSignal] = field(default_factory=lambda: [PhraseSignal.PAT_WT_BY_FREQ])
    pattern_eval_signals: list[PhraseSignal] = field(default_factory=lambda: [PhraseSignal.EDIT_DIST_OTHER])
    per_select_rand: float = 0.01
    per_select_neg: float = 1.0
    subsample_unk_as_neg_using_sim: bool = False
    positive_similarity_threshold_low_precision: float = 0.5
    # Similarity assumed for a phrase with no word vector. None means
    # "unknown": such phrases are never picked as negatives by similarity.
    missing_vector_similarity: float | None = None
    lr_c: float = 1.0
    random_seed: int = 42
    google_ngram_file: str | None = None
    domain_ngram_file: str | None = None
    word_class_file: str | None = None
    word_vector_file: str | None = None
    ngram_max_words: int = 3
    stats_cache_file: str | None = None

    def __post_init__(self):
        self.phrase_scoring = _coerce_enum(self.phrase_scoring, PhraseScoring, "phrase_scoring")
        self.word_scoring = _coerce_enum(self.word_scoring, WordScoring, "word_scoring")
        self.freq_normalization = _coerce_enum(self.freq_normalization, FreqNormalization, "freq_normalization")
        self.phrase_signals = [_coerce_enum(s, PhraseSignal, "phrase_signals") for s in self.phrase_signals]
        self.pattern_eval_signals = [
            _coerce_enum(s, PhraseSignal, "pattern_eval_signals") for s in self.pattern_eval_signals
        ]

    def uses(self, signal: PhraseSignal) -> bool:
        return signal in self.phrase_signals


@dataclass
class IndexConfig:
    """Sentence index backend selection."""
    backend: IndexBackend = IndexBackend.MEMORY
    index_dir: str | None = None
    save_index: bool = False
    load_index: bool = False

    def __post_init__(self):
        self.backend = _coerce_enum(self.backend, IndexBackend, "backend")


@dataclass
class RunConfig:
    """Options for the iteration controller and its inputs/outputs."""
    seed_words: dict[str, list[str]] = field(default_factory=dict)
    seed_word_files: dict[str, str] = field(default_factory=dict)
    num_iterations: int = 10
    tune_threshold_keep_running: bool = False
    max_extract_num_words: int | None = None
    use_other_labels_words_as_negative: bool = True
    label_matched_tokens: bool = True
    num_threads: int = DEFAULT_WORKERS
    sample_sentences_for_sufficient_stats: float = 1.0
    batch_process_sents: bool = False
    batch_dir: str | None = None
    max_sentences_per_batch: int = 100
    out_dir: str | None = None
    identifier: str = "getpatterns"
    write_matched_tokens_files: bool = False
    stop_words_file: str | None = None
    english_words_file: str | None = None
    common_english_words_file: str | None = None
    other_semantic_classes_file: str | None = None
    random_seed: int = 42


_SECTIONS = {
    "patterns": PatternConfig,
    "selection": SelectionConfig,
    "phrases": PhraseScoringConfig,
    "index": IndexConfig,
    "run": RunConfig,
}


def _build_section(cls, raw: dict | None, section: str):
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Section '{section}' must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(f"Unknown option(s) in '{section}': {', '.join(sorted(unknown))}")
    return cls(**raw)


@dataclass
class BootstrapConfig:
    """
    Complete, validated configuration for one bootstrapping run.

    Example:
        config = load_config("run.yaml")
        config.labels            # ['DISEASE', 'SYMPTOM']
        config.selection.num_patterns
    """
    patterns: PatternConfig = field(default_factory=PatternConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    phrases: PhraseScoringConfig = field(default_factory=PhraseScoringConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    run: RunConfig = field(default_factory=RunConfig)

    def __post_init__(self):
        self._load_seed_files()
        self.validate()

    @classmethod
    def from_dict(cls, data: dict | None) -> "BootstrapConfig":
        """Build a config from a nested mapping (as parsed from YAML)."""
        data = data or {}
        unknown = set(data) - set(_SECTIONS)
        if unknown:
            raise ConfigurationError(f"Unknown config section(s): {', '.join(sorted(unknown))}")
        sections = {
            name: _build_section(section_cls, data.get(name), name)
            for name, section_cls in _SECTIONS.items()
        }
        return cls(**sections)

    @property
    def labels(self) -> list[str]:
        return list(self.run.seed_words.keys())

    def _load_seed_files(self):
        for label, path in self.run.seed_word_files.items():
            seed_path = Path(path)
            if not seed_path.exists():
                raise ConfigurationError(f"Seed dictionary for label '{label}' not found: {seed_path}")
            words = [
                line.strip() for line in seed_path.read_text(encoding='utf-8').splitlines()
                if line.strip()
            ]
            existing = self.run.seed_words.setdefault(label, [])
            existing.extend(w for w in words if w not in existing)

    def validate(self):
        """
        Check every option for consistency.

        Raises:
            ConfigurationError: On the first inconsistency found.
        """
        run = self.run
        if not run.seed_words:
            raise ConfigurationError("At least one label with a seed dictionary is required")
        for label, seeds in run.seed_words.items():
            if not seeds:
                raise ConfigurationError(f"Seed dictionary for label '{label}' is empty")
            if label == BACKGROUND_SYMBOL:
                raise ConfigurationError(f"'{BACKGROUND_SYMBOL}' is reserved for unlabeled tokens")

        positive_ints = {
            "run.num_iterations": run.num_iterations,
            "run.num_threads": run.num_threads,
            "run.max_sentences_per_batch": run.max_sentences_per_batch,
            "selection.num_patterns": self.selection.num_patterns,
            "selection.num_words_to_add": self.selection.num_words_to_add,
            "patterns.max_window": self.patterns.max_window,
            "patterns.num_words_compound": self.patterns.num_words_compound,
        }
        for option, value in positive_ints.items():
            if not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"'{option}' must be a positive integer, got {value!r}")

        if self.patterns.min_window < 0 or self.patterns.min_window > self.patterns.max_window:
            raise ConfigurationError("'patterns.min_window' must be between 0 and 'patterns.max_window'")
        if not (self.patterns.use_previous_context or self.patterns.use_next_context):
            raise ConfigurationError("At least one of use_previous_context / use_next_context must be on")
        if not (self.patterns.use_pos or self.patterns.add_pattern_without_pos):
            raise ConfigurationError("use_pos and add_pattern_without_pos cannot both be false")
        if not 0.0 < run.sample_sentences_for_sufficient_stats <= 1.0:
            raise ConfigurationError("'run.sample_sentences_for_sufficient_stats' must be in (0, 1]")
        if run.max_extract_num_words is not None and run.max_extract_num_words < 1:
            raise ConfigurationError("'run.max_extract_num_words' must be positive when set")
        if run.batch_process_sents and not run.batch_dir:
            raise ConfigurationError("Batch processing requires 'run.batch_dir'")
        if self.index.backend is IndexBackend.SQLITE and not self.index.index_dir:
            raise ConfigurationError("The sqlite index backend requires 'index.index_dir'")
        if (self.index.save_index or self.index.load_index) and not self.index.index_dir:
            raise ConfigurationError("Saving or loading the index requires 'index.index_dir'")
        if self.selection.min_pos_phrase_support_for_pattern < 0 or self.selection.min_unlab_phrase_support_for_pattern < 0:
            raise ConfigurationError("Minimum pattern support values cannot be negative")
        if self.selection.min_len_fuzzy < 0:
            raise ConfigurationError("'selection.min_len_fuzzy' cannot be negative")
        if (
            self.selection.pattern_scoring in (PatternScoring.LOGREG, PatternScoring.LOGREG_LOGP)
            and self.phrases.phrase_scoring is not PhraseScoring.LEARNED_CLASSIFIER
        ):
            raise ConfigurationError(
                f"Pattern scoring '{self.selection.pattern_scoring.value}' requires the learned_classifier phrase scorer"
            )

        phrases = self.phrases
        for option in ("per_select_rand", "per_select_neg"):
            value = getattr(phrases, option)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"'phrases.{option}' must be in [0, 1]")
        if PhraseSignal.WORD_VECTOR in phrases.phrase_signals and not phrases.word_vector_file:
            raise ConfigurationError("The word_vector signal requires 'phrases.word_vector_file'")
        if phrases.subsample_unk_as_neg_using_sim and not phrases.word_vector_file:
            raise ConfigurationError("subsample_unk_as_neg_using_sim requires 'phrases.word_vector_file'")
        if PhraseSignal.WORD_CLASS in phrases.phrase_signals and not phrases.word_class_file:
            raise ConfigurationError("The word_class signal requires 'phrases.word_class_file'")
        if PhraseSignal.DOMAIN_NGRAM in phrases.phrase_signals and not phrases.domain_ngram_file:
            raise ConfigurationError("The domain_ngram signal requires 'phrases.domain_ngram_file'")
        if PhraseSignal.GOOGLE_NGRAM in phrases.phrase_signals and not phrases.google_ngram_file:
            raise ConfigurationError("The google_ngram signal requires 'phrases.google_ngram_file'")

    def to_dict(self) -> dict:
        """Plain-data view of the config (enums as their values), for saving with a run."""
        def _plain(value):
            if isinstance(value, Enum):
                return value.value
            if isinstance(value, list):
                return [_plain(v) for v in value]
            if isinstance(value, dict):
                return {k: _plain(v) for k, v in value.items()}
            return value
        return {name: _plain(asdict(getattr(self, name))) for name in _SECTIONS}


def load_config(path: str | Path) -> BootstrapConfig:
    """
    Load and validate a run configuration from a YAML file.

    Args:
        path: YAML file with optional sections patterns/selection/phrases/index/run.

    Returns:
        Validated BootstrapConfig.

    Raises:
        ConfigurationError: If the file is missing, unparsable or inconsistent.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")
    try:
        with open(config_path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config file {config_path}: {e}") from e
    return BootstrapConfig.from_dict(data)
