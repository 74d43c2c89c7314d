"""
Configuration Management for Groundwork

Loads configuration from ~/.groundwork/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger("groundwork.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".groundwork"
CONFIG_PATH = CONFIG_DIR / "config.json"

FAILURE_POLICIES = ("abort", "isolate")


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    mode: str = "femb"  # fastembed (on-device); "openai" or "azure" for hosted
    model: str = "BAAI/bge-small-en-v1.5"
    openai_api_key: str = ""
    openai_model: str = "text-embedding-3-small"
    azure_endpoint: str = ""
    azure_api_key: str = ""
    azure_api_version: str = "2024-10-21"
    azure_deployment: str = ""
    dimensions: Optional[int] = None
    batch_size: int = 64


@dataclass
class RetrieverConfig:
    """Per-request retrieval behaviour"""
    question_threshold: float = 0.6
    combine_threshold: float = 0.5
    max_concurrency: int = 6
    request_timeout: Optional[float] = None  # seconds; None = no deadline
    failure_policy: str = "abort"  # "abort" or "isolate"
    per_source_cap: bool = False
    keyword_fallback: bool = False


@dataclass
class ValidationConfig:
    """Request size limits"""
    max_files: Optional[int] = None
    max_guide_questions: int = 100
    max_guide_chars: int = 50_000
    max_file_chars: int = 1_000_000


@dataclass
class GroundworkConfig:
    """Main Groundwork configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    defaults = EmbeddingConfig()
    return EmbeddingConfig(
        mode=embedding_data.get("mode", defaults.mode),
        model=embedding_data.get("model", defaults.model),
        openai_api_key=embedding_data.get("openai_api_key", ""),
        openai_model=embedding_data.get("openai_model", defaults.openai_model),
        azure_endpoint=embedding_data.get("azure_endpoint", ""),
        azure_api_key=embedding_data.get("azure_api_key", ""),
        azure_api_version=embedding_data.get("azure_api_version", defaults.azure_api_version),
        azure_deployment=embedding_data.get("azure_deployment", ""),
        dimensions=embedding_data.get("dimensions"),
        batch_size=embedding_data.get("batch_size", defaults.batch_size),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    defaults = RetrieverConfig()
    policy = retriever_data.get("failure_policy", defaults.failure_policy)
    if policy not in FAILURE_POLICIES:
        logger.warning("Unknown failure_policy %r, using %r", policy, defaults.failure_policy)
        policy = defaults.failure_policy
    return RetrieverConfig(
        question_threshold=retriever_data.get("question_threshold", defaults.question_threshold),
        combine_threshold=retriever_data.get("combine_threshold", defaults.combine_threshold),
        max_concurrency=retriever_data.get("max_concurrency", defaults.max_concurrency),
        request_timeout=retriever_data.get("request_timeout", defaults.request_timeout),
        failure_policy=policy,
        per_source_cap=retriever_data.get("per_source_cap", defaults.per_source_cap),
        keyword_fallback=retriever_data.get("keyword_fallback", defaults.keyword_fallback),
    )


def _parse_validation_config(data: dict) -> ValidationConfig:
    """Parse validation section from config dict"""
    validation_data = data.get("validation", {})
    defaults = ValidationConfig()
    return ValidationConfig(
        max_files=validation_data.get("max_files", defaults.max_files),
        max_guide_questions=validation_data.get("max_guide_questions", defaults.max_guide_questions),
        max_guide_chars=validation_data.get("max_guide_chars", defaults.max_guide_chars),
        max_file_chars=validation_data.get("max_file_chars", defaults.max_file_chars),
    )


def load_config() -> GroundworkConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (a local .env file is honoured)
    2. Config file (~/.groundwork/config.json)
    3. Default values
    """
    load_dotenv()
    config = GroundworkConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.retriever = _parse_retriever_config(data)
            config.validation = _parse_validation_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Embedding env var overrides (track env-sourced keys)
    _env_embedding_map = {
        "EMBEDDING_MODE": "mode",
        "EMBEDDING_MODEL": "model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_EMBEDDING_MODEL": "openai_model",
        "AZURE_OPENAI_ENDPOINT": "azure_endpoint",
        "AZURE_OPENAI_API_KEY": "azure_api_key",
        "AZURE_OPENAI_API_VERSION": "azure_api_version",
        "AZURE_OPENAI_EMBED_DEPLOYMENT": "azure_deployment",
    }
    for env_var, attr in _env_embedding_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.embedding, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("EMBEDDING_DIMENSIONS"):
        config.embedding.dimensions = int(os.getenv("EMBEDDING_DIMENSIONS"))

    if os.getenv("GROUNDWORK_MAX_CONCURRENCY"):
        config.retriever.max_concurrency = int(os.getenv("GROUNDWORK_MAX_CONCURRENCY"))
    if os.getenv("GROUNDWORK_REQUEST_TIMEOUT"):
        config.retriever.request_timeout = float(os.getenv("GROUNDWORK_REQUEST_TIMEOUT"))
    if os.getenv("GROUNDWORK_FAILURE_POLICY") in FAILURE_POLICIES:
        config.retriever.failure_policy = os.getenv("GROUNDWORK_FAILURE_POLICY")

    return config


def save_config(config: GroundworkConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    embedding_section = {
        "mode": config.embedding.mode,
        "model": config.embedding.model,
        "openai_api_key": config.embedding.openai_api_key,
        "openai_model": config.embedding.openai_model,
        "azure_endpoint": config.embedding.azure_endpoint,
        "azure_api_key": config.embedding.azure_api_key,
        "azure_api_version": config.embedding.azure_api_version,
        "azure_deployment": config.embedding.azure_deployment,
        "dimensions": config.embedding.dimensions,
        "batch_size": config.embedding.batch_size,
    }
    for key in ("openai_api_key", "azure_api_key"):
        if key in env_sourced:
            embedding_section[key] = ""

    data = {
        "embedding": embedding_section,
        "retriever": {
            "question_threshold": config.retriever.question_threshold,
            "combine_threshold": config.retriever.combine_threshold,
            "max_concurrency": config.retriever.max_concurrency,
            "request_timeout": config.retriever.request_timeout,
            "failure_policy": config.retriever.failure_policy,
            "per_source_cap": config.retriever.per_source_cap,
            "keyword_fallback": config.retriever.keyword_fallback,
        },
        "validation": {
            "max_files": config.validation.max_files,
            "max_guide_questions": config.validation.max_guide_questions,
            "max_guide_chars": config.validation.max_guide_chars,
            "max_file_chars": config.validation.max_file_chars,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
