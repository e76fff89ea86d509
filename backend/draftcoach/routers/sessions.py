"""
Writing Session Router

Endpoints that drive the draft-progression flow of a writing session:

- POST   /sessions                    create a session and fetch the opening instruction
- GET    /sessions/{id}               current state
- POST   /sessions/{id}/messages      send a draft and receive feedback
- POST   /sessions/{id}/submit        accept the candidate final draft
- POST   /sessions/{id}/revise        go back to revising
- POST   /sessions/{id}/journal       compare first and final drafts
- POST   /sessions/{id}/image         illustrate the final draft
- POST   /sessions/{id}/audio         record the final draft
- POST   /sessions/{id}/reset         start over (optionally another conversation/language)
- DELETE /sessions/{id}               forget the session

Every response carries the session snapshot so the client can re-render
from it alone.
"""

from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy.orm import Session

from .. import archive
from ..assistant import WritingAssistant
from ..conversations import UnsupportedLanguageError, find_conversation, load_conversations, normalize_language
from ..db import get_db
from ..dependencies import collaborator_error, get_assistant, get_sessions
from ..schemas import Conversation, WireModel
from ..session import SessionRegistry, SessionStateError, WritingSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


class CreateSessionRequest(WireModel):
	language: Optional[str] = "en"
	conversation_id: Optional[str] = Field(default=None, alias="conversationId")
	uid: str = "anonymous"


class SendMessageRequest(WireModel):
	content: str = ""


class ResetRequest(WireModel):
	language: Optional[str] = None
	conversation_id: Optional[str] = Field(default=None, alias="conversationId")


def _pick_conversation(language: str, conversation_id: Optional[str]) -> Optional[Conversation]:
	if conversation_id:
		conv = find_conversation(language, conversation_id)
		if conv is None:
			raise HTTPException(status_code=404, detail="conversation not found")
		return conv
	conversations = load_conversations(language)
	return conversations[0] if conversations else None


def _language(value: Optional[str]) -> str:
	try:
		return normalize_language(value)
	except UnsupportedLanguageError as e:
		raise HTTPException(status_code=400, detail=str(e))


def _get_session(session_id: str, sessions: SessionRegistry) -> WritingSession:
	session = sessions.get(session_id)
	if session is None:
		raise HTTPException(status_code=404, detail="session not found")
	return session


def _state(session: WritingSession) -> dict:
	return session.snapshot().model_dump(by_alias=True)


@router.post("", status_code=201)
async def create_session(
	req: CreateSessionRequest,
	assistant: WritingAssistant = Depends(get_assistant),
	sessions: SessionRegistry = Depends(get_sessions),
):
	language = _language(req.language)
	conversation = _pick_conversation(language, req.conversation_id)
	session = sessions.add(WritingSession(assistant, conversation, language, uid=req.uid))
	await session.start()
	logger.info("Created session %s (%s, %s)", session.session_id, language, conversation.id if conversation else "-")
	return _state(session)


@router.get("/{session_id}")
async def get_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
	return _state(_get_session(session_id, sessions))


@router.post("/{session_id}/messages")
async def send_message(session_id: str, req: SendMessageRequest, sessions: SessionRegistry = Depends(get_sessions)):
	session = _get_session(session_id, sessions)
	try:
		reply = await session.send_message(req.content)
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	return {"reply": reply.model_dump() if reply else None, "session": _state(session)}


@router.post("/{session_id}/submit")
async def submit_final_draft(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
	session = _get_session(session_id, sessions)
	try:
		await session.submit_final()
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	return _state(session)


@router.post("/{session_id}/revise")
async def revise_draft(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
	session = _get_session(session_id, sessions)
	try:
		await session.revise()
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	return _state(session)


@router.post("/{session_id}/journal")
async def open_journal(
	session_id: str,
	sessions: SessionRegistry = Depends(get_sessions),
	db: Session = Depends(get_db),
):
	session = _get_session(session_id, sessions)
	try:
		view = await session.open_journal()
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except Exception as e:
		raise collaborator_error(e, "Error comparing drafts")
	archive.record_journal(db, session)
	return {
		"draftImprovementData": session.journal_data,
		"journal": view.model_dump(by_alias=True),
		"session": _state(session),
	}


@router.post("/{session_id}/image")
async def add_image(
	session_id: str,
	sessions: SessionRegistry = Depends(get_sessions),
	db: Session = Depends(get_db),
):
	session = _get_session(session_id, sessions)
	try:
		url = await session.add_image()
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except Exception as e:
		raise collaborator_error(e, "Failed to generate image")
	archive.update_media(db, session)
	return {"imageUrl": url, "session": _state(session)}


@router.post("/{session_id}/audio")
async def generate_audio(
	session_id: str,
	sessions: SessionRegistry = Depends(get_sessions),
	db: Session = Depends(get_db),
):
	session = _get_session(session_id, sessions)
	try:
		url = await session.generate_audio()
	except SessionStateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except Exception as e:
		raise collaborator_error(e, "Failed to generate or upload audio file.")
	archive.update_media(db, session)
	return {"url": url, "session": _state(session)}


@router.post("/{session_id}/reset")
async def reset_session(session_id: str, req: ResetRequest, sessions: SessionRegistry = Depends(get_sessions)):
	session = _get_session(session_id, sessions)
	if req.language is not None:
		language = _language(req.language)
		conversation = _pick_conversation(language, req.conversation_id)
		await session.reset(conversation=conversation, language=language)
	elif req.conversation_id is not None:
		await session.reset(conversation=_pick_conversation(session.language, req.conversation_id))
	else:
		await session.reset()
	await session.start()
	return _state(session)


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
	if not sessions.drop(session_id):
		raise HTTPException(status_code=404, detail="session not found")
