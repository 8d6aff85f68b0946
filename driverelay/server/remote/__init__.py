"""Remote destinations for finished uploads."""

from driverelay.server.remote.base import RemoteStore
from driverelay.server.remote.factory import get_remote_store

__all__ = [
    "RemoteStore",
    "get_remote_store",
]
