"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "ClaimDossier"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3)
    database_url: str = "postgresql+psycopg://localhost:5432/dossier_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for POST /api/claims/{id}/research

    # LLM
    llm_provider: str = "openai"
    llm_api_key: Optional[str] = None
    llm_model_extraction: str = "gpt-4o-mini"
    llm_model_synthesis: str = "gpt-4o-mini"
    llm_timeout: float = 60.0
    llm_max_retries: int = 3

    # Embeddings (text-embedding-3-small is 1536-dim; column width must match)
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100

    # Literature sources
    ncbi_api_key: Optional[str] = None
    semantic_scholar_api_key: Optional[str] = None
    search_max_results: int = 20
    search_timeout_pubmed: float = 30.0
    search_timeout_arxiv: float = 30.0
    search_timeout_semantic_scholar: float = 30.0

    # Retrieval / extraction
    max_evidence_papers: int = 15
    chunks_per_paper: int = 3
    min_chunk_similarity: float = 0.7

    # Worker pool + queue retry policy
    worker_concurrency: int = 2
    worker_poll_interval: float = 2.0  # seconds between empty-queue polls
    job_max_attempts: int = 3
    job_retry_base_delay: float = 5.0  # seconds, doubled per attempt

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'dossier_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.llm_provider = os.getenv("LLM_PROVIDER", self.llm_provider)
        # OPENAI_API_KEY accepted as a fallback for LLM_API_KEY
        self.llm_api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
        legacy_model = os.getenv("LLM_MODEL")
        self.llm_model_extraction = (
            os.getenv("LLM_MODEL_EXTRACTION") or legacy_model or self.llm_model_extraction
        )
        self.llm_model_synthesis = (
            os.getenv("LLM_MODEL_SYNTHESIS") or legacy_model or self.llm_model_synthesis
        )
        self.llm_timeout = float(os.getenv("LLM_TIMEOUT", str(self.llm_timeout)))
        self.llm_max_retries = int(os.getenv("LLM_MAX_RETRIES", str(self.llm_max_retries)))

        self.embedding_model = os.getenv("EMBEDDING_MODEL", self.embedding_model)
        self.embedding_dimensions = int(
            os.getenv("EMBEDDING_DIMENSIONS", str(self.embedding_dimensions))
        )
        self.embedding_batch_size = int(
            os.getenv("EMBEDDING_BATCH_SIZE", str(self.embedding_batch_size))
        )

        self.ncbi_api_key = os.getenv("NCBI_API_KEY") or None
        self.semantic_scholar_api_key = os.getenv("SEMANTIC_SCHOLAR_API_KEY") or None
        self.search_max_results = int(
            os.getenv("SEARCH_MAX_RESULTS", str(self.search_max_results))
        )
        self.search_timeout_pubmed = float(
            os.getenv("SEARCH_TIMEOUT_PUBMED", str(self.search_timeout_pubmed))
        )
        self.search_timeout_arxiv = float(
            os.getenv("SEARCH_TIMEOUT_ARXIV", str(self.search_timeout_arxiv))
        )
        self.search_timeout_semantic_scholar = float(
            os.getenv(
                "SEARCH_TIMEOUT_SEMANTIC_SCHOLAR",
                str(self.search_timeout_semantic_scholar),
            )
        )

        self.max_evidence_papers = int(
            os.getenv("MAX_EVIDENCE_PAPERS", str(self.max_evidence_papers))
        )
        self.chunks_per_paper = int(os.getenv("CHUNKS_PER_PAPER", str(self.chunks_per_paper)))
        self.min_chunk_similarity = float(
            os.getenv("MIN_CHUNK_SIMILARITY", str(self.min_chunk_similarity))
        )

        self.worker_concurrency = int(
            os.getenv("WORKER_CONCURRENCY", str(self.worker_concurrency))
        )
        self.worker_poll_interval = float(
            os.getenv("WORKER_POLL_INTERVAL", str(self.worker_poll_interval))
        )
        self.job_max_attempts = int(os.getenv("JOB_MAX_ATTEMPTS", str(self.job_max_attempts)))
        self.job_retry_base_delay = float(
            os.getenv("JOB_RETRY_BASE_DELAY", str(self.job_retry_base_delay))
        )
