#!/usr/bin/env python3
"""
Run Configuration Management

Typed configuration for a sync run: the source and destination client
settings plus the sync parameters. Can be loaded from and saved to JSON so a
run can be repeated, with command line arguments taking precedence.
"""

import json
from argparse import Namespace
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, TypedDict, cast

from .constants import DEFAULT_MAX_RETRIES, DEFAULT_STAGING_DIR, DEFAULT_TRANSFER_CONCURRENCY


class ConfigError(ValueError):
    """Raised when the run configuration is incomplete or invalid."""

    pass


def _jsonable(obj: Any) -> Any:
    """Paths become strings; nested config dicts are converted recursively."""
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    return str(obj) if isinstance(obj, Path) else obj


class ClientConfig(TypedDict, total=False):
    """Settings used to build one storage client. Credentials stay in the AWS profile chain."""

    profile: str
    region: str
    endpoint_url: str


class SyncConfig(TypedDict):
    bucket: str
    prefix: str | None
    upload_bucket: str | None
    staging_dir: Path
    concurrency: int
    max_retries: int
    dry_run: bool


def default_sync_config(bucket: str = "") -> SyncConfig:
    """Sync configuration with every optional setting at its default."""
    return {
        "bucket": bucket,
        "prefix": None,
        "upload_bucket": None,
        "staging_dir": DEFAULT_STAGING_DIR,
        "concurrency": DEFAULT_TRANSFER_CONCURRENCY,
        "max_retries": DEFAULT_MAX_RETRIES,
        "dry_run": False,
    }


def to_client_config(source: dict[str, Any]) -> ClientConfig:
    """Convert any dict to ClientConfig, keeping only valid, non-empty keys."""
    valid_keys = ClientConfig.__optional_keys__ | ClientConfig.__required_keys__
    filtered = {k: v for k, v in source.items() if k in valid_keys and v}
    return cast(ClientConfig, filtered)


@dataclass
class RunConfig:
    """Configuration for one sync run."""

    source: ClientConfig
    destination: ClientConfig
    sync_config: SyncConfig
    log_file: Path | None = None

    @property
    def bucket(self) -> str:
        return self.sync_config["bucket"]

    @property
    def prefix(self) -> str | None:
        return self.sync_config.get("prefix")

    @property
    def upload_bucket(self) -> str | None:
        return self.sync_config.get("upload_bucket")

    @property
    def staging_dir(self) -> Path:
        return Path(self.sync_config.get("staging_dir", DEFAULT_STAGING_DIR))

    @property
    def concurrency(self) -> int:
        return self.sync_config.get("concurrency", DEFAULT_TRANSFER_CONCURRENCY)

    @property
    def max_retries(self) -> int:
        return self.sync_config.get("max_retries", DEFAULT_MAX_RETRIES)

    @property
    def dry_run(self) -> bool:
        return self.sync_config.get("dry_run", False)

    @property
    def destination_client(self) -> ClientConfig:
        """Destination client settings, with anything unset inherited from the source."""
        merged: dict[str, Any] = dict(self.source)
        merged.update(self.destination)
        return to_client_config(merged)

    def validate(self) -> None:
        """Check the settings the sync engine relies on.

        Raises:
            ConfigError: If a required value is missing or out of range
        """
        if not self.bucket:
            raise ConfigError("A source bucket is required (--bucket or 'bucket' in the config file)")
        if self.concurrency < 1:
            raise ConfigError(f"Concurrency must be at least 1, got {self.concurrency}")
        if self.max_retries < 0:
            raise ConfigError(f"Max retries cannot be negative, got {self.max_retries}")
        if self.upload_bucket is not None and not self.upload_bucket:
            raise ConfigError("Upload bucket name cannot be empty")


def load_run_config(config_path: str | Path) -> RunConfig:
    """Load run configuration from a JSON file."""
    with open(config_path) as f:
        config_dict = json.load(f)

    sync_config = default_sync_config()
    sync_config.update(config_dict.get("sync_config", {}))
    sync_config["staging_dir"] = Path(sync_config["staging_dir"])
    log_file = config_dict.get("log_file")
    return RunConfig(
        source=to_client_config(config_dict.get("source", {})),
        destination=to_client_config(config_dict.get("destination", {})),
        sync_config=sync_config,
        log_file=Path(log_file) if log_file else None,
    )


def save_run_config(config: RunConfig, config_path: str | Path) -> None:
    """Save run configuration as JSON."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_dict = _jsonable(asdict(config))
    with open(config_path, "w") as f:
        json.dump(config_dict, f, indent=2)


def build_run_config_from_args(args: Namespace, base: RunConfig | None = None) -> RunConfig:
    """
    Build the effective run configuration.

    Values from ``base`` (usually a loaded config file) act as defaults;
    arguments that were explicitly provided on the command line override them.
    """
    if base is None:
        base = RunConfig(source={}, destination={}, sync_config=default_sync_config())

    source: dict[str, Any] = dict(base.source)
    destination: dict[str, Any] = dict(base.destination)
    sync_config: SyncConfig = {**default_sync_config(), **base.sync_config}

    for attr, key in (("profile", "profile"), ("region", "region"), ("endpoint_url", "endpoint_url")):
        value = getattr(args, attr, None)
        if value:
            source[key] = value

    for attr, key in (
        ("upload_profile", "profile"),
        ("upload_region", "region"),
        ("upload_endpoint_url", "endpoint_url"),
    ):
        value = getattr(args, attr, None)
        if value:
            destination[key] = value

    overrides = {
        "bucket": getattr(args, "bucket", None),
        "prefix": getattr(args, "prefix", None),
        "upload_bucket": getattr(args, "upload_bucket", None),
        "staging_dir": getattr(args, "download_path", None),
        "concurrency": getattr(args, "concurrency", None),
        "max_retries": getattr(args, "max_retries", None),
    }
    for key, value in overrides.items():
        if value is not None:
            sync_config[key] = value  # type: ignore[literal-required]

    if getattr(args, "dry_run", False):
        sync_config["dry_run"] = True

    sync_config["staging_dir"] = Path(sync_config["staging_dir"])

    log_file = getattr(args, "log_file", None)
    return RunConfig(
        source=to_client_config(source),
        destination=to_client_config(destination),
        sync_config=sync_config,
        log_file=Path(log_file) if log_file else base.log_file,
    )
