"""
Groundwork Common Module

Shared infrastructure for guide parsing and retrieval.
"""

from .config import GroundworkConfig, load_config
from .embedding_service import EmbeddingGateway
from .embedding_providers import create_embedding_provider
from .worker_pool import WorkerPool

__all__ = [
    "GroundworkConfig",
    "load_config",
    "EmbeddingGateway",
    "create_embedding_provider",
    "WorkerPool",
]
