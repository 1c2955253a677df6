"""Analysis endpoint: turn extracted document text into a categorized task list."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from src.analysis.orchestrator import DocumentAnalyzer, failure_result
from src.api.models import AnalysisResponse, AnalyzeRequest
from src.config import get_settings
from src.pipeline_config import PipelineConfig

logger = logging.getLogger(__name__)

router = APIRouter()


def build_analyzer() -> DocumentAnalyzer:
    """Analyzer configured from the current application settings."""
    return DocumentAnalyzer(PipelineConfig.from_settings(get_settings()))


@router.post("/api/analyze", response_model=AnalysisResponse)
async def analyze(request: AnalyzeRequest) -> AnalysisResponse:
    """Analyze document text into prioritized, categorized tasks.

    Content problems (empty text, model failures, unparsable replies) never
    produce an error status: the body always carries a usable result, with
    fallback tasks and summary when analysis could not complete. An invalid
    pipeline configuration is reported the same way.
    """
    try:
        analyzer = build_analyzer()
    except ValueError as exc:
        # pydantic's ValidationError is a ValueError too.
        logger.exception("Invalid analysis configuration")
        result = failure_result(f"invalid configuration ({exc})")
    else:
        try:
            result = await analyzer.analyze(request.text)
        finally:
            await analyzer.client.aclose()

    logger.info(
        "Analyzed %s: %d tasks in %d groups",
        request.file_name or "document", result.total_tasks, len(result.groups),
    )
    return AnalysisResponse.from_result(result, file_name=request.file_name)
