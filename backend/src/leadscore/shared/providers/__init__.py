"""Provider resolution framework.

Credential lookup, per-provider locking and sequential priority failover
for any outbound provider call.
"""

from leadscore.shared.providers.credentials import (
    CredentialCache,
    CredentialResolver,
    PendingInvalidations,
    env_key,
)
from leadscore.shared.providers.dispatcher import FailoverDispatcher
from leadscore.shared.providers.locks import KeyedLock

__all__ = [
    "CredentialCache",
    "CredentialResolver",
    "FailoverDispatcher",
    "KeyedLock",
    "PendingInvalidations",
    "env_key",
]
