"""Build a SkillMatchPipeline from Settings."""

from __future__ import annotations

import logging

from stafind.catalog import PostgresSkillRepository, SkillCatalog
from stafind.enricher import HuggingFaceInferenceClient, HuggingFaceSkillExtractor, TextSkillExtractor
from stafind.orchestrator import ExtractionOrchestrator
from stafind.ranker import MatchEngine, PostgresCandidateRepository
from stafind.shared.config import Settings, load_settings
from stafind.shared.database import Database, PostgreSQLDatabase
from stafind.shared.errors import ConfigurationError
from stafind.tracking import (
    AgentRequestService,
    ExtractionJobService,
    PostgresAgentRequestStore,
    PostgresExtractionJobStore,
)

from .skill_match_pipeline import SkillMatchPipeline

logger = logging.getLogger(__name__)


def build_pipeline(
    settings: Settings | None = None,
    database: Database | None = None,
    strict_tracking: bool = False,
) -> SkillMatchPipeline:
    """
    Wire every component against PostgreSQL and the inference API.

    The Hugging Face method is only enabled when an API key is configured;
    without one the orchestrator runs the text extractor alone.

    Args:
        settings: Settings to use; loaded from the environment when None
        database: Database to use; built from DATABASE_URL when None
        strict_tracking: Propagate tracking persistence errors

    Returns:
        Ready-to-use SkillMatchPipeline

    Raises:
        ConfigurationError: If no database is available
    """
    settings = settings or load_settings()
    if database is None:
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is required")
        database = PostgreSQLDatabase(settings.database_url)

    catalog = SkillCatalog(PostgresSkillRepository(database), ttl_seconds=settings.catalog_ttl_seconds)
    text_extractor = TextSkillExtractor(catalog, model_name=settings.spacy_model)

    external_extractor = None
    if settings.huggingface_api_key:
        client = HuggingFaceInferenceClient(
            api_key=settings.huggingface_api_key,
            base_url=settings.huggingface_base_url,
            timeout=settings.huggingface_timeout,
        )
        external_extractor = HuggingFaceSkillExtractor(
            client,
            default_model=settings.huggingface_default_model,
            fallback_model=settings.huggingface_fallback_model,
            catalog=catalog,
            cache_seconds=settings.huggingface_cache_minutes * 60,
        )
    else:
        logger.warning("HUGGINGFACE_API_KEY is not set; Hugging Face extraction is disabled")

    orchestrator = ExtractionOrchestrator(
        text_extractor, external_extractor, timeout=settings.extraction_timeout_seconds
    )
    return SkillMatchPipeline(
        orchestrator,
        candidate_repository=PostgresCandidateRepository(database),
        match_engine=MatchEngine(config_path=settings.matching_config_path),
        job_service=ExtractionJobService(PostgresExtractionJobStore(database)),
        agent_service=AgentRequestService(PostgresAgentRequestStore(database)),
        top_n=settings.match_top_n,
        min_score=settings.match_min_score,
        strict_tracking=strict_tracking,
    )
