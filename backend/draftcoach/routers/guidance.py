from __future__ import annotations
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from typing import Any, Dict, Optional

from ..assistant import WritingAssistant
from ..dependencies import collaborator_error, get_assistant
from ..schemas import FeedbackResponse, WireModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["guidance"])


class GuidanceRequest(WireModel):
	action: Optional[str] = None
	# action == "initialize"
	topic: Optional[str] = None
	setting: Optional[str] = None
	language: Optional[str] = None
	# action == "feedback"
	draft_text: Optional[Any] = Field(default=None, alias="draftText")
	is_first_draft: bool = Field(default=False, alias="isFirstDraft")


class InitialMessageResponse(WireModel):
	id: str
	role: str
	content: str


class DraftRequest(WireModel):
	draft_text: Optional[Any] = Field(default=None, alias="draftText")


def _require_draft(value: Any) -> str:
	if not isinstance(value, str) or not value.strip():
		raise HTTPException(status_code=400, detail="Draft text must be a non-empty string")
	return value


@router.post("/guidance")
async def guidance(req: GuidanceRequest, assistant: WritingAssistant = Depends(get_assistant)):
	if req.action == "initialize":
		if not req.topic or not req.setting:
			raise HTTPException(status_code=400, detail="Missing topic or setting")
		try:
			data = await assistant.initialize(req.topic, req.setting, req.language)
		except Exception as e:
			raise collaborator_error(e, "Error generating system message.")
		return InitialMessageResponse(id=str(data["id"]), role=data["role"], content=data["content"]).model_dump()

	if req.action == "feedback":
		draft = _require_draft(req.draft_text)
		try:
			result: FeedbackResponse = await assistant.feedback(
				draft,
				topic=req.topic,
				setting=req.setting,
				language=req.language,
				is_first_draft=req.is_first_draft,
			)
		except Exception as e:
			raise collaborator_error(e, "Error generating feedback.")
		return result.model_dump(by_alias=True)

	logger.error("Invalid action specified: %s", req.action)
	raise HTTPException(status_code=400, detail="Invalid action specified.")


@router.post("/feedback")
async def structured_feedback(req: DraftRequest, assistant: WritingAssistant = Depends(get_assistant)) -> Dict[str, Any]:
	draft = _require_draft(req.draft_text)
	try:
		return await assistant.structured_feedback(draft)
	except Exception as e:
		raise collaborator_error(e, "Error generating feedback.")
