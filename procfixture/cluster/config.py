"""
Cluster fixture configuration.

A `Config` can be built in code or parsed from a YAML (or JSON) file. Keys
may be written in kubeadm-style camelCase or in snake_case:

    etcd:
      dataDir: /tmp/etcd
      extraArgs:
        quota-backend-bytes: "8589934592"
    api:
      extraArgs:
        v: "4"
    shape:
      nodeCount: 0
"""
import re
import yaml
import logging
import dataclasses
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union
from procfixture.exceptions import ConfigurationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EtcdConfig:
    data_dir: Optional[str] = None
    extra_args: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class APIConfig:
    extra_args: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Shape:
    """The shape of the cluster to bring up."""

    node_count: int = 0


@dataclass(frozen=True)
class Config:
    etcd: Optional[EtcdConfig] = None
    api: Optional[APIConfig] = None
    shape: Shape = field(default_factory=Shape)


def do_defaulting(config: Config) -> Config:
    """Returns a copy of `config` with every section present."""
    return dataclasses.replace(
        config,
        etcd=config.etcd or EtcdConfig(),
        api=config.api or APIConfig(),
    )


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _section(cls, data: Any, section: str):
    """Builds one config dataclass from a mapping, rejecting unknown keys."""
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"config section '{section}' must be a mapping, got {type(data).__name__}")

    known = {f.name for f in dataclasses.fields(cls)}
    values: Dict[str, Any] = {}
    for key, value in data.items():
        name = _snake_case(str(key))
        if name not in known:
            raise ConfigurationError(f"unknown key '{key}' in config section '{section}'")
        if name == "extra_args":
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"'{section}.{key}' must be a mapping of flag names to values")
            value = {str(k): str(v) for k, v in value.items()}
        values[name] = value

    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigurationError(f"invalid config section '{section}': {e}") from e


def config_from_dict(data: Optional[Mapping[str, Any]]) -> Config:
    """
    Builds a Config from parsed YAML/JSON data.

    :param data: The top-level mapping; None yields an empty Config.
    :return Config: The configuration, without defaulting applied.
    :raises ConfigurationError: On unknown keys or wrongly typed sections.
    """
    data = data or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"cluster config must be a mapping, got {type(data).__name__}")

    unknown = set(data) - {"etcd", "api", "shape"}
    if unknown:
        raise ConfigurationError(f"unknown cluster config keys: {', '.join(sorted(map(str, unknown)))}")

    shape = _section(Shape, data.get("shape"), "shape")
    if not isinstance(shape.node_count, int) or shape.node_count < 0:
        raise ConfigurationError(f"shape.nodeCount must be a non-negative integer, got {shape.node_count!r}")

    return Config(
        etcd=_section(EtcdConfig, data["etcd"], "etcd") if "etcd" in data else None,
        api=_section(APIConfig, data["api"], "api") if "api" in data else None,
        shape=shape,
    )


def load_config(path: Union[str, Path]) -> Config:
    """
    Reads a cluster config from a YAML or JSON file.

    :param path: The file to read.
    :return Config: The parsed configuration.
    :raises ConfigurationError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to load cluster config '{path}': {e}") from e
    log.debug(f"Loaded cluster config from {path}")
    return config_from_dict(data)
