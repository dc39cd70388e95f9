"""
Application Layer Ports (Interfaces)

Contains Protocol definitions for dependency inversion.
Infrastructure Layer implements these protocols.
"""

from .api_key_pool import ApiKeyPoolProtocol
from .blob_storage import BlobStorageProtocol
from .generation_backend import GenerationBackendProtocol
from .identity import IdentityProviderProtocol
from .push_channel import (
    PushChannelProtocol,
    PushSubscriberProtocol,
    PushSubscriptionProtocol,
)
from .task_lease import TaskLeaseRegistryProtocol

__all__ = [
    "ApiKeyPoolProtocol",
    "BlobStorageProtocol",
    "GenerationBackendProtocol",
    "IdentityProviderProtocol",
    "PushChannelProtocol",
    "PushSubscriberProtocol",
    "PushSubscriptionProtocol",
    "TaskLeaseRegistryProtocol",
]
