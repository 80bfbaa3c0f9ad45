from .client_protocol import (
    BOOKMARK_EVENT,
    MODIFIED_EVENT,
    ClusterClientInterface,
    ClusterClientProtocol,
    WatchEvent,
)
from .fake_client import FakeClusterClient, FakeClusterClientConfig
from .kubernetes_client import KubernetesClusterClient, KubernetesClusterClientConfig

__all__ = [
    "BOOKMARK_EVENT",
    "MODIFIED_EVENT",
    "ClusterClientInterface",
    "ClusterClientProtocol",
    "FakeClusterClient",
    "FakeClusterClientConfig",
    "KubernetesClusterClient",
    "KubernetesClusterClientConfig",
    "WatchEvent",
]
