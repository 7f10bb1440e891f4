"""Client-side management of HelmRequest deployment requests.

Example:
    from src.captain import ReconciliationWatcher, decode_release, merge_values

    values = merge_values(stored_values, {"image": {"tag": "1.2.0"}})
    manifest = decode_release(record).manifest
"""

from .codec import decode_release, encode_data, encode_record
from .errors import (
    CaptainError,
    ConfigurationError,
    DecodeError,
    ReconciliationFailedError,
    ReferenceNotFoundError,
    RequestNotFoundError,
    TransportError,
    WatchError,
    WatchTimeoutError,
)
from .models import (
    DeploymentRequest,
    DeploymentStatus,
    EncodedPackageRecord,
    PackageRecord,
    Phase,
    RequestIdentity,
)
from .values import ValueOptions, merge_values, parse_set
from .watcher import ReconciliationWatcher, RetryBudget, WatchResult, WatchState

__version__ = "1.1.8"

__all__ = [
    # Core operations
    "decode_release",
    "encode_data",
    "encode_record",
    "merge_values",
    "parse_set",
    "ValueOptions",
    "ReconciliationWatcher",
    "RetryBudget",
    "WatchResult",
    "WatchState",
    # Models
    "DeploymentRequest",
    "DeploymentStatus",
    "EncodedPackageRecord",
    "PackageRecord",
    "Phase",
    "RequestIdentity",
    # Errors
    "CaptainError",
    "ConfigurationError",
    "DecodeError",
    "ReconciliationFailedError",
    "ReferenceNotFoundError",
    "RequestNotFoundError",
    "TransportError",
    "WatchError",
    "WatchTimeoutError",
]
