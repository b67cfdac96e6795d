"""
Test cluster framework.

This package provides a consistent abstraction over ways of creating
clusters for testing. To make a test cluster compatible, implement the
Fixture interface; configuration is described by `Config`, which can be
parsed from a YAML or JSON file.
"""
from .config import APIConfig, Config, EtcdConfig, Shape, config_from_dict, do_defaulting, load_config
from .fixture import Fixture
from .lightweight import ControlPlane

__all__ = [
    "APIConfig", "Config", "EtcdConfig", "Shape",
    "config_from_dict", "do_defaulting", "load_config",
    "Fixture", "ControlPlane",
]
