"""
Adapter Factory
Centralizes the wiring of storage and grading adapters from configuration.
"""

import logging

from mneme.application.config import AppConfig
from mneme.application.grading.grader import GradingPolicy
from mneme.application.grading.service import GradingService
from mneme.application.session_service import SessionPolicy, StudySessionController
from mneme.domain.interfaces import EssayGrader, StudyRepository
from mneme.infrastructure.adapters.essay_grader import HttpEssayGrader
from mneme.infrastructure.adapters.yaml_store import YamlStudyRepository

logger = logging.getLogger(__name__)


def get_study_repository(config: AppConfig) -> StudyRepository:
    return YamlStudyRepository(config.store_path)


def get_essay_grader(config: AppConfig) -> EssayGrader | None:
    """Returns an HTTP essay grader, or None when escalation is not configured."""
    if not config.escalation_enabled:
        return None
    logger.debug(f"Essay escalation enabled via {config.escalation_url}")
    return HttpEssayGrader(
        url=config.escalation_url,
        api_key=config.escalation_api_key,
        model=config.escalation_model,
        timeout=config.escalation_timeout,
    )


def get_grading_service(config: AppConfig) -> GradingService:
    return GradingService(
        policy=GradingPolicy.from_config(config),
        essay_grader=get_essay_grader(config),
        pass_score=config.escalation_pass_score,
        escalation_band=(config.escalation_min_score, config.escalation_max_score),
    )


def build_controller(
    config: AppConfig, repo: StudyRepository | None = None
) -> StudySessionController:
    return StudySessionController(
        repo or get_study_repository(config),
        grading=get_grading_service(config),
        policy=SessionPolicy.from_config(config),
    )
