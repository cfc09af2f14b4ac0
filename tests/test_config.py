"""
Tests for configuration loading and validation.
"""

import pytest
import yaml

from spied.config import (
    BootstrapConfig,
    IndexBackend,
    PatternScoring,
    PhraseScoring,
    load_config,
)
from spied.exceptions import ConfigurationError


def _base(**run):
    data = {"run": {"seed_words": {"PERSON": ["Obama"]}}}
    data["run"].update(run)
    return data


class TestBootstrapConfig:
    """Building and validating configs from mappings."""

    def test_defaults(self):
        """A config with only seeds gets the documented defaults."""
        config = BootstrapConfig.from_dict(_base())
        assert config.labels == ["PERSON"]
        assert config.selection.pattern_scoring is PatternScoring.POS_NEG_UNLAB_ODDS
        assert config.phrases.phrase_scoring is PhraseScoring.AVERAGE_FEATURES
        assert config.index.backend is IndexBackend.MEMORY
        assert config.run.identifier == "getpatterns"

    def test_enum_values_are_coerced(self):
        """String options become enum members."""
        data = _base()
        data["selection"] = {"pattern_scoring": "RlogF"}
        config = BootstrapConfig.from_dict(data)
        assert config.selection.pattern_scoring is PatternScoring.RLOGF

    def test_invalid_enum_value(self):
        """An unknown scoring name is a configuration error."""
        data = _base()
        data["selection"] = {"pattern_scoring": "kNN"}
        with pytest.raises(ConfigurationError, match="pattern_scoring"):
            BootstrapConfig.from_dict(data)

    def test_unknown_option(self):
        """Misspelled options are rejected."""
        data = _base()
        data["selection"] = {"num_pattern": 3}
        with pytest.raises(ConfigurationError, match="num_pattern"):
            BootstrapConfig.from_dict(data)

    def test_unknown_section(self):
        """Unknown top-level sections are rejected."""
        data = _base()
        data["server"] = {}
        with pytest.raises(ConfigurationError, match="server"):
            BootstrapConfig.from_dict(data)

    def test_missing_seeds(self):
        """At least one label is required."""
        with pytest.raises(ConfigurationError, match="seed"):
            BootstrapConfig.from_dict({})

    def test_empty_seed_dictionary(self):
        """A label with no seeds is rejected."""
        with pytest.raises(ConfigurationError, match="PERSON"):
            BootstrapConfig.from_dict({"run": {"seed_words": {"PERSON": []}}})

    def test_batch_mode_needs_directory(self):
        """Batch processing without a batch directory is inconsistent."""
        with pytest.raises(ConfigurationError, match="batch_dir"):
            BootstrapConfig.from_dict(_base(batch_process_sents=True))

    def test_sqlite_needs_directory(self):
        """The disk-backed index needs a directory."""
        data = _base()
        data["index"] = {"backend": "sqlite"}
        with pytest.raises(ConfigurationError, match="index_dir"):
            BootstrapConfig.from_dict(data)

    def test_logreg_needs_classifier(self):
        """Classifier-based pattern scoring requires the classifier phrase scorer."""
        data = _base()
        data["selection"] = {"pattern_scoring": "Logreg"}
        with pytest.raises(ConfigurationError, match="learned_classifier"):
            BootstrapConfig.from_dict(data)

    def test_seed_file_is_merged(self, tmp_path):
        """Seed files add to the inline seed list without duplicates."""
        seed_file = tmp_path / "person.txt"
        seed_file.write_text("Obama\nClinton\n\n", encoding='utf-8')
        config = BootstrapConfig.from_dict(_base(seed_word_files={"PERSON": str(seed_file)}))
        assert config.run.seed_words["PERSON"] == ["Obama", "Clinton"]

    def test_to_dict_round_trip(self):
        """to_dict gives plain data that from_dict accepts again."""
        config = BootstrapConfig.from_dict(_base())
        again = BootstrapConfig.from_dict(config.to_dict())
        assert again == config


class TestLoadConfig:
    """Loading from YAML files."""

    def test_load_yaml(self, tmp_path):
        """A YAML file is parsed into a validated config."""
        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump({
            "selection": {"num_patterns": 3},
            "run": {"seed_words": {"DISEASE": ["flu"]}, "num_iterations": 2},
        }), encoding='utf-8')
        config = load_config(path)
        assert config.labels == ["DISEASE"]
        assert config.selection.num_patterns == 3
        assert config.run.num_iterations == 2

    def test_missing_file(self, tmp_path):
        """A missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")
