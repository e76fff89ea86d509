from __future__ import annotations
import logging
from functools import lru_cache

from fastapi import HTTPException

from .assistant import WritingAssistant
from .llm_client import LLMResponseError, UpstreamError
from .session import SessionRegistry

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_assistant() -> WritingAssistant:
	return WritingAssistant()


_registry = SessionRegistry()


def get_sessions() -> SessionRegistry:
	return _registry


def collaborator_error(err: Exception, fallback: str) -> HTTPException:
	"""Map a failed collaborator call to the HTTP error the client sees."""
	if isinstance(err, UpstreamError):
		return HTTPException(status_code=err.status_code, detail=err.message)
	if isinstance(err, LLMResponseError):
		return HTTPException(status_code=500, detail="Failed to parse AI response as JSON.")
	logger.error("%s: %s", fallback, err)
	return HTTPException(status_code=500, detail=fallback)
