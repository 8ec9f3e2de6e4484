# Pipeline module - Error detection, deduplication and alert delivery
from .dedup import Admission, AdmissionDecision, ErrorDeduplicator, fingerprint
from .directory import ProcessDirectoryCache
from .discovery import RepoInfo, discover_repo, normalize_repo_url, read_repo_info
from .log_buffer import DEFAULT_ERROR_PATTERNS, ErrorClassifier, LogBufferStore
from .pipeline import AlertOutcome, AlertPipeline, HealthReport, extract_stack_trace
from .retry_queue import DeadLetterEntry, QueuedAlert, RetryQueue, queue_key

__all__ = [
    # Log buffers
    "DEFAULT_ERROR_PATTERNS",
    "ErrorClassifier",
    "LogBufferStore",
    # Process directory
    "ProcessDirectoryCache",
    # Deduplication
    "Admission",
    "AdmissionDecision",
    "ErrorDeduplicator",
    "fingerprint",
    # Retry queue
    "RetryQueue",
    "QueuedAlert",
    "DeadLetterEntry",
    "queue_key",
    # Repo discovery
    "RepoInfo",
    "discover_repo",
    "normalize_repo_url",
    "read_repo_info",
    # Orchestrator
    "AlertPipeline",
    "AlertOutcome",
    "HealthReport",
    "extract_stack_trace",
]
