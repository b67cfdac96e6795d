"""
Ready-made fixtures for the servers an integration test usually needs.
"""
from .apiserver import APISERVER_DEFAULT_ARGS, APIServer
from .etcd import ETCD_DEFAULT_ARGS, Etcd, get_etcd_start_message

__all__ = ["APISERVER_DEFAULT_ARGS", "APIServer", "ETCD_DEFAULT_ARGS", "Etcd", "get_etcd_start_message"]
