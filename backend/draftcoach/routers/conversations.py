from fastapi import APIRouter, HTTPException
from typing import List, Optional

from ..conversations import UnsupportedLanguageError, load_conversations
from ..schemas import LANGUAGES, Conversation

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/languages")
def list_languages():
	return [{"code": code, "name": name} for code, name in LANGUAGES.items()]


@router.get("", response_model=List[Conversation])
def list_conversations(language: Optional[str] = "en"):
	try:
		return load_conversations(language)
	except UnsupportedLanguageError as e:
		raise HTTPException(status_code=400, detail=str(e))
