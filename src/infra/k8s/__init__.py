"""Kubernetes infrastructure abstraction layer.

This module provides the cluster side of captain: reading and writing
HelmRequest resources, config maps, deployed releases and events.

Example:
    from src.infra.k8s import get_controller_sync

    cluster = get_controller_sync()
    request = cluster.get_request(RequestIdentity("foo", "default"))
    cluster.close()
"""

from .controller import CaptainController, CaptainControllerSync
from .helpers import get_controller, get_controller_sync

__all__ = [
    # Controller classes
    "CaptainController",
    "CaptainControllerSync",
    # Factories
    "get_controller",
    "get_controller_sync",
]
