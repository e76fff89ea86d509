from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text
from .db import Base


class JournalEntry(Base):
	__tablename__ = "journal_entries"
	id = Column(Integer, primary_key=True, autoincrement=True)
	# One entry per writing session run (session id + conversation uuid)
	session_id = Column(String(64), nullable=False, index=True)
	conversation_uuid = Column(String(64), nullable=False)
	conversation_id = Column(String(128), nullable=True)
	title = Column(String(256), nullable=True)
	language = Column(String(8), nullable=False, index=True)
	initial_draft = Column(Text, nullable=False)
	final_draft = Column(Text, nullable=False)
	journal_data = Column(Text, nullable=False)
	image_url = Column(String(2048), nullable=True)
	audio_url = Column(String(1024), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
