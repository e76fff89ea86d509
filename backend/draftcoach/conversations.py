from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from .schemas import LANGUAGES, Conversation
from .settings import settings

logger = logging.getLogger(__name__)

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data" / "conversations"


class UnsupportedLanguageError(ValueError):
	pass


def conversations_dir() -> Path:
	if settings.conversations_dir:
		return Path(settings.conversations_dir)
	return PACKAGE_DATA_DIR


def normalize_language(language: Optional[str]) -> str:
	code = (language or "en").strip().lower()
	if code not in LANGUAGES:
		raise UnsupportedLanguageError(f"Unsupported language: {language}")
	return code


@lru_cache(maxsize=None)
def _load(directory: str, language: str) -> tuple[Conversation, ...]:
	path = Path(directory) / f"{language}.json"
	if not path.exists():
		logger.warning("No conversation fixture for language %s at %s", language, path)
		return ()
	with path.open(encoding="utf-8") as fh:
		raw = json.load(fh)
	return tuple(Conversation.model_validate(item) for item in raw)


def load_conversations(language: Optional[str]) -> List[Conversation]:
	code = normalize_language(language)
	return list(_load(str(conversations_dir()), code))


def find_conversation(language: Optional[str], conversation_id: str) -> Optional[Conversation]:
	for conv in load_conversations(language):
		if conv.id == conversation_id:
			return conv
	return None


def clear_cache() -> None:
	_load.cache_clear()
