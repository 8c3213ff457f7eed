from .atcoder import AtcoderScraper
from .orchestrator import Orchestrator
from .retry import RetryPolicy
from .samples import extract, extract_samples
from .session_store import SessionStore

__all__ = [
    "AtcoderScraper",
    "Orchestrator",
    "RetryPolicy",
    "SessionStore",
    "extract",
    "extract_samples",
]
