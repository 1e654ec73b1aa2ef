"""Routing decision pipeline.

This module provides:
- TagExtractor: agent/workflow marker and session id extraction
- ModelResolver: workflow → agent → default fallback chain
- SessionModelCache: per-session LRU of resolved agent models
- RetryExecutor: classification-aware retries with exponential backoff
"""

from .error_classification import (
    ErrorClassification,
    ErrorKind,
    UpstreamError,
    classify_error,
    describe_error,
    is_retryable_error,
)
from .model_resolver import (
    FALLBACK_DEFAULT_MODEL,
    ModelResolver,
    ResolutionSource,
    RoutingDecision,
)
from .retry_executor import RetryExecutor, RetryPolicy, retrying, with_retry
from .session_cache import (
    DEFAULT_CAPACITY,
    BoundedLRU,
    CacheStats,
    LRUCache,
    SessionModelCache,
)
from .tag_extractor import (
    DEFAULT_SESSION_ID,
    RoutingIds,
    TagExtractor,
    extract_routing_ids,
    extract_session_id,
)

__all__ = [
    # Extraction
    "TagExtractor",
    "RoutingIds",
    "extract_routing_ids",
    "extract_session_id",
    "DEFAULT_SESSION_ID",
    # Resolution
    "ModelResolver",
    "RoutingDecision",
    "ResolutionSource",
    "FALLBACK_DEFAULT_MODEL",
    # Session cache
    "SessionModelCache",
    "BoundedLRU",
    "LRUCache",
    "CacheStats",
    "DEFAULT_CAPACITY",
    # Retry
    "RetryExecutor",
    "RetryPolicy",
    "retrying",
    "with_retry",
    "ErrorKind",
    "ErrorClassification",
    "UpstreamError",
    "classify_error",
    "describe_error",
    "is_retryable_error",
]
