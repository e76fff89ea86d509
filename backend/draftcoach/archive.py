from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .models import JournalEntry
from .session import WritingSession

logger = logging.getLogger(__name__)


def _find_entry(db: Session, session: WritingSession) -> Optional[JournalEntry]:
	return (
		db.query(JournalEntry)
		.filter(
			JournalEntry.session_id == session.session_id,
			JournalEntry.conversation_uuid == session.conversation_uuid,
		)
		.first()
	)


def record_journal(db: Session, session: WritingSession) -> Optional[JournalEntry]:
	"""Store (or refresh) the journal of the session's current run.

	Storage is best effort: a failing database never fails the writing flow.
	"""
	if session.journal_data is None or not session.initial_draft or not session.final_draft:
		return None
	try:
		row = _find_entry(db, session) or JournalEntry(
			session_id=session.session_id,
			conversation_uuid=session.conversation_uuid,
		)
		row.conversation_id = session.conversation.id if session.conversation else None
		row.title = session.conversation.title if session.conversation else None
		row.language = session.language
		row.initial_draft = session.initial_draft
		row.final_draft = session.final_draft
		row.journal_data = session.journal_data
		row.image_url = session.image_url
		row.audio_url = session.audio_url
		db.add(row)
		db.commit()
		return row
	except Exception:
		db.rollback()
		logger.exception("Failed to store journal for session %s", session.session_id)
		return None


def update_media(db: Session, session: WritingSession) -> None:
	"""Copy image/audio URLs onto an already stored journal entry."""
	try:
		row = _find_entry(db, session)
		if row is None:
			return
		row.image_url = session.image_url
		row.audio_url = session.audio_url
		db.add(row)
		db.commit()
	except Exception:
		db.rollback()
		logger.exception("Failed to update journal media for session %s", session.session_id)


def list_entries(db: Session, *, language: Optional[str] = None, limit: int = 50) -> List[JournalEntry]:
	query = db.query(JournalEntry)
	if language:
		query = query.filter(JournalEntry.language == language)
	return query.order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc()).limit(limit).all()
