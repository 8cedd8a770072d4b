"""Per-client request admission control: token buckets, their registry and the request filter."""

from admission.bucket import TokenBucket
from admission.client_key import resolve_client_key
from admission.filter import AdmissionFilter
from admission.registry import BucketRegistry
from admission.types import Admit, Decision, Reject, RequestInfo

__all__ = [
    "Admit",
    "AdmissionFilter",
    "BucketRegistry",
    "Decision",
    "Reject",
    "RequestInfo",
    "TokenBucket",
    "resolve_client_key",
]
