from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any

DEFAULT_CIRCUIT_VERSION = "omega-v1.0.0"


class ConfigError(Exception):
    """Configuration file could not be loaded"""
    pass


@dataclass
class ZKConfig:
    current_version: str = DEFAULT_CIRCUIT_VERSION
    supported_versions: List[str] = field(
        default_factory=lambda: [DEFAULT_CIRCUIT_VERSION])
    deprecated_versions: List[str] = field(default_factory=list)
    vulnerable_versions: List[str] = field(default_factory=list)
    circuits_dir: Path = field(default_factory=lambda: Path("circuits"))
    dev_mode: bool = False
    verify_g2_subgroup: bool = True

    def __post_init__(self):
        self.circuits_dir = Path(self.circuits_dir)
        if not self.current_version:
            raise ValueError("current_version must be set")
        if self.current_version in self.vulnerable_versions:
            raise ValueError(
                f"Current circuit version {self.current_version} is marked vulnerable")


@dataclass
class MembershipConfig:
    tree_depth: int = 20
    root_grace_period: int = 3

    def __post_init__(self):
        if not 1 <= self.tree_depth <= 32:
            raise ValueError(f"Invalid tree depth: {self.tree_depth}")
        if self.root_grace_period < 1:
            raise ValueError("root_grace_period must be at least 1")


@dataclass
class StorageConfig:
    database_url: str = "sqlite:///./reactions.db"
    echo: bool = False
    worker_threads: int = 8
    busy_timeout_seconds: int = 30

    def __post_init__(self):
        if self.worker_threads < 1:
            raise ValueError("worker_threads must be at least 1")


@dataclass
class ProcessorConfig:
    max_retries: int = 3
    retry_backoff_ms: int = 50

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_backoff_ms < 0:
            raise ValueError("retry_backoff_ms cannot be negative")


@dataclass
class SystemConfig:
    zk_config: ZKConfig = field(default_factory=ZKConfig)
    membership_config: MembershipConfig = field(
        default_factory=MembershipConfig)
    storage_config: StorageConfig = field(default_factory=StorageConfig)
    processor_config: ProcessorConfig = field(default_factory=ProcessorConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    log_level: str = "INFO"
    enable_debug_mode: bool = False
    metrics_history: int = 10000
    local_user_address: Optional[str] = None

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        if self.metrics_history < 1:
            raise ValueError("metrics_history must be at least 1")
        if self.enable_debug_mode:
            self.log_level = "DEBUG"


def _config_from_dict(config_data: Dict[str, Any]) -> SystemConfig:
    zk_data = config_data.get('zk_proofs', {}) or {}
    zk_config = ZKConfig(
        current_version=zk_data.get(
            'current_version', DEFAULT_CIRCUIT_VERSION),
        supported_versions=list(zk_data.get(
            'supported_versions', [DEFAULT_CIRCUIT_VERSION])),
        deprecated_versions=list(zk_data.get('deprecated_versions', [])),
        vulnerable_versions=list(zk_data.get('vulnerable_versions', [])),
        circuits_dir=Path(zk_data.get('circuits_dir', 'circuits')),
        dev_mode=bool(zk_data.get('dev_mode', False)),
        verify_g2_subgroup=bool(zk_data.get('verify_g2_subgroup', True))
    )

    membership_data = config_data.get('membership', {}) or {}
    membership_config = MembershipConfig(
        tree_depth=membership_data.get('tree_depth', 20),
        root_grace_period=membership_data.get('root_grace_period', 3)
    )

    storage_data = config_data.get('storage', {}) or {}
    storage_config = StorageConfig(
        database_url=storage_data.get(
            'database_url', 'sqlite:///./reactions.db'),
        echo=storage_data.get('echo', False),
        worker_threads=storage_data.get('worker_threads', 8),
        busy_timeout_seconds=storage_data.get('busy_timeout_seconds', 30)
    )

    processor_data = config_data.get('processor', {}) or {}
    processor_config = ProcessorConfig(
        max_retries=processor_data.get('max_retries', 3),
        retry_backoff_ms=processor_data.get('retry_backoff_ms', 50)
    )

    return SystemConfig(
        zk_config=zk_config,
        membership_config=membership_config,
        storage_config=storage_config,
        processor_config=processor_config,
        log_dir=Path(config_data.get('log_dir', 'logs')),
        log_level=config_data.get('log_level', 'INFO'),
        enable_debug_mode=config_data.get('enable_debug_mode', False),
        local_user_address=config_data.get('local_user_address'),
        metrics_history=config_data.get('metrics_history', 10000)
    )


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = Path("config.yaml")
    config_path = Path(config_path)

    if not config_path.exists():
        return SystemConfig()

    import yaml

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(
            f"Could not load config file {config_path}: {e}") from e

    if not isinstance(config_data, dict):
        raise ConfigError(
            f"Config file {config_path} must contain a mapping")

    try:
        return _config_from_dict(config_data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    import yaml

    config_data = {
        'zk_proofs': {
            'current_version': config.zk_config.current_version,
            'supported_versions': list(config.zk_config.supported_versions),
            'deprecated_versions': list(config.zk_config.deprecated_versions),
            'vulnerable_versions': list(config.zk_config.vulnerable_versions),
            'circuits_dir': str(config.zk_config.circuits_dir),
            'dev_mode': config.zk_config.dev_mode,
            'verify_g2_subgroup': config.zk_config.verify_g2_subgroup
        },
        'membership': {
            'tree_depth': config.membership_config.tree_depth,
            'root_grace_period': config.membership_config.root_grace_period
        },
        'storage': {
            'database_url': config.storage_config.database_url,
            'echo': config.storage_config.echo,
            'worker_threads': config.storage_config.worker_threads,
            'busy_timeout_seconds': config.storage_config.busy_timeout_seconds
        },
        'processor': {
            'max_retries': config.processor_config.max_retries,
            'retry_backoff_ms': config.processor_config.retry_backoff_ms
        },
        'log_dir': str(config.log_dir),
        'log_level': config.log_level,
        'enable_debug_mode': config.enable_debug_mode,
        'local_user_address': config.local_user_address,
        'metrics_history': config.metrics_history
    }

    with open(config_path, 'w') as f:
        yaml.dump(config_data, f, default_flow_style=False)
