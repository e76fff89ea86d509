from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from typing import Any, Optional

from ..assistant import WritingAssistant
from ..dependencies import collaborator_error, get_assistant
from ..journal import build_journal_view
from ..schemas import WireModel

router = APIRouter(tags=["drafts"])


class CompareRequest(WireModel):
	initial_draft: Optional[Any] = Field(default=None, alias="initialDraft")
	final_draft: Optional[Any] = Field(default=None, alias="finalDraft")


class ImageRequest(WireModel):
	final_draft: Optional[Any] = Field(default=None, alias="finalDraft")


class AudioRequest(WireModel):
	text: Optional[str] = None
	language: str = "en"
	id: str | int
	uid: str = "anonymous"
	index: int = 0


class RomanizeRequest(WireModel):
	text: Optional[str] = None


def _non_empty(value: Any) -> bool:
	return isinstance(value, str) and bool(value.strip())


@router.post("/compare")
async def compare_drafts(req: CompareRequest, parsed: bool = False, assistant: WritingAssistant = Depends(get_assistant)):
	if not _non_empty(req.initial_draft) or not _non_empty(req.final_draft):
		raise HTTPException(status_code=400, detail="Initial and Final drafts must be non-empty strings.")
	try:
		journal_data = await assistant.compare(req.initial_draft, req.final_draft)
	except Exception as e:
		raise collaborator_error(e, "Error setting up OpenAI API request.")
	body: dict = {"draftImprovementData": journal_data}
	if parsed:
		body["parsed"] = build_journal_view(journal_data).model_dump(by_alias=True)
	return body


@router.post("/image")
async def generate_image(req: ImageRequest, assistant: WritingAssistant = Depends(get_assistant)):
	if not _non_empty(req.final_draft):
		raise HTTPException(status_code=400, detail="Please provide a valid input")
	try:
		image_url = await assistant.image(req.final_draft)
	except Exception as e:
		raise collaborator_error(e, "Failed to generate image")
	return {"imageUrl": image_url, "success": True}


@router.post("/audio")
async def generate_audio(req: AudioRequest, assistant: WritingAssistant = Depends(get_assistant)):
	if not _non_empty(req.text):
		raise HTTPException(status_code=400, detail="text is required.")
	try:
		url = await assistant.audio(req.text, req.language, str(req.id), uid=req.uid, index=req.index)
	except Exception as e:
		raise collaborator_error(e, "Failed to generate or upload audio file.")
	return {"success": True, "message": "Audio file uploaded successfully.", "url": url}


@router.post("/romanize")
async def romanize(req: RomanizeRequest, assistant: WritingAssistant = Depends(get_assistant)):
	if not _non_empty(req.text):
		raise HTTPException(status_code=400, detail="text is required.")
	try:
		text = await assistant.romanize(req.text)
	except Exception as e:
		raise collaborator_error(e, "Error generating romanized text.")
	return {"text": text}
