from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import JournalEntry


def purge_older_than(db: Session, days: int = 7) -> int:
	threshold = datetime.utcnow() - timedelta(days=days)
	res = db.execute(delete(JournalEntry).where(JournalEntry.updated_at < threshold))
	db.commit()
	return res.rowcount or 0
