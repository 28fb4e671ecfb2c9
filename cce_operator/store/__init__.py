"""Record and secret stores.

The Kubernetes store pulls in the ``kubernetes`` client; import it explicitly:

    from cce_operator.store.kube import KubernetesStore
"""

from .base import RecordStore, SecretStore, update_with_retry
from .memory import InMemoryStore

__all__ = ["InMemoryStore", "RecordStore", "SecretStore", "update_with_retry"]
