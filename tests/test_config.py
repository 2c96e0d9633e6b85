"""
Configuration loading tests
"""

from pathlib import Path

import pytest
import yaml

from config.config import (
    ConfigError,
    MembershipConfig,
    ProcessorConfig,
    SystemConfig,
    ZKConfig,
    load_config,
    save_config,
)


class TestDefaults:

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.membership_config.tree_depth == 20
        assert config.membership_config.root_grace_period == 3
        assert config.processor_config.max_retries == 3
        assert config.zk_config.dev_mode is False
        assert config.zk_config.current_version in config.zk_config.supported_versions

    def test_debug_mode_forces_debug_logging(self):
        assert SystemConfig(enable_debug_mode=True).log_level == "DEBUG"

    def test_invalid_metrics_history(self):
        with pytest.raises(ValueError):
            SystemConfig(metrics_history=0)

    @pytest.mark.parametrize("kwargs", [
        {"tree_depth": 0},
        {"tree_depth": 33},
        {"root_grace_period": 0},
    ])
    def test_invalid_membership_settings(self, kwargs):
        with pytest.raises(ValueError):
            MembershipConfig(**kwargs)

    def test_invalid_processor_settings(self):
        with pytest.raises(ValueError):
            ProcessorConfig(max_retries=0)

    def test_current_version_cannot_be_vulnerable(self):
        with pytest.raises(ValueError):
            ZKConfig(current_version="omega-v0.1.0", vulnerable_versions=["omega-v0.1.0"])


class TestYaml:

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = SystemConfig(
            zk_config=ZKConfig(
                supported_versions=["omega-v1.0.0", "omega-v0.9.0"],
                deprecated_versions=["omega-v0.9.0"],
                circuits_dir=Path("/srv/circuits"),
            ),
            membership_config=MembershipConfig(tree_depth=16, root_grace_period=5),
            local_user_address="node-1",
            metrics_history=250,
        )
        save_config(config, path)
        loaded = load_config(path)

        assert loaded.zk_config.deprecated_versions == ["omega-v0.9.0"]
        assert loaded.zk_config.circuits_dir == Path("/srv/circuits")
        assert loaded.membership_config.tree_depth == 16
        assert loaded.membership_config.root_grace_period == 5
        assert loaded.local_user_address == "node-1"
        assert loaded.metrics_history == 250

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"processor": {"max_retries": 7}}))
        config = load_config(path)
        assert config.processor_config.max_retries == 7
        assert config.processor_config.retry_backoff_ms == 50

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("membership: [unclosed")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "zk_proofs": {
                "current_version": "omega-v0.1.0",
                "vulnerable_versions": ["omega-v0.1.0"],
            }
        }))
        with pytest.raises(ConfigError):
            load_config(path)
