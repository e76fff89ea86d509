from __future__ import annotations
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional
from sqlalchemy.orm import Session

from .. import archive
from ..db import get_db
from ..journal import build_journal_view
from ..models import JournalEntry

router = APIRouter(prefix="/journal", tags=["journal"])


class JournalEntryOut(BaseModel):
	id: int
	session_id: str
	conversation_id: Optional[str] = None
	title: Optional[str] = None
	language: str
	initial_draft: str
	final_draft: str
	image_url: Optional[str] = None
	audio_url: Optional[str] = None
	created_at: datetime
	updated_at: datetime

	model_config = {"from_attributes": True}


@router.get("/entries")
def list_entries(language: Optional[str] = None, limit: int = 50, db: Session = Depends(get_db)):
	limit = max(1, min(limit, 200))
	rows = archive.list_entries(db, language=language, limit=limit)
	return [JournalEntryOut.model_validate(r).model_dump() for r in rows]


@router.get("/entries/{entry_id}")
def get_entry(entry_id: int, db: Session = Depends(get_db)):
	row = db.get(JournalEntry, entry_id)
	if row is None:
		raise HTTPException(status_code=404, detail="journal entry not found")
	body = JournalEntryOut.model_validate(row).model_dump()
	body["draftImprovementData"] = row.journal_data
	body["journal"] = build_journal_view(row.journal_data).model_dump(by_alias=True)
	return body
