"""
Writing Session
===============

Server-side state machine for one learner working through one conversation
scenario. It drives the draft progression:

1. ``start``: the scenario's opening instruction is fetched and shown.
2. ``send_message``: each draft gets feedback. The first draft is always
   treated as a starting point; a later draft that meets every completion
   criterion becomes the candidate final draft.
3. ``submit_final`` / ``revise``: the learner accepts the candidate or goes
   back to revising.
4. After submission the post-submission actions unlock: the journal (draft
   comparison), an illustration and an audio recording.

Collaborator failures while chatting become System messages in the chat, the
way a chat client would show them; failures of post-submission actions
propagate to the caller after the state has been left consistent.

Sessions live in memory only (see ``SessionRegistry``).
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from .journal import build_journal_view
from .schemas import Conversation, FeedbackResponse, JournalView, Message

logger = logging.getLogger(__name__)


START_ERROR_MESSAGE = "An error occurred while starting the conversation. Please try again later."
FEEDBACK_ERROR_MESSAGE = "An error occurred while fetching feedback. Please try again later."
REVISE_MESSAGE = "You've chosen to revise your draft. Please make the necessary changes."


class SessionStateError(RuntimeError):
	"""The requested operation is not available in the session's current state."""


class Assistant(Protocol):
	async def initial_message(self, topic: str, setting: str, language: Optional[str] = None) -> Message: ...

	async def feedback(
		self,
		draft: str,
		*,
		topic: Optional[str] = None,
		setting: Optional[str] = None,
		language: Optional[str] = None,
		is_first_draft: bool = False,
	) -> FeedbackResponse: ...

	async def compare(self, initial_draft: str, final_draft: str) -> str: ...

	async def image(self, final_draft: str) -> str: ...

	async def audio(self, text: str, language: str, conversation_id: str, *, uid: str = "anonymous", index: int = 0) -> str: ...


class PostSubmissionActions(BaseModel):
	journal: bool
	image: bool
	audio: bool


class SessionSnapshot(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	session_id: str = Field(alias="sessionId")
	language: str
	conversation: Optional[Conversation] = None
	conversation_uuid: str = Field(alias="conversationUuid")
	messages: List[Message]
	user_message_count: int = Field(alias="userMessageCount")
	initial_draft: Optional[str] = Field(default=None, alias="initialDraft")
	final_draft: Optional[str] = Field(default=None, alias="finalDraft")
	all_criteria_met: bool = Field(alias="allCriteriaMet")
	final_submitted: bool = Field(alias="finalSubmitted")
	input_enabled: bool = Field(alias="inputEnabled")
	can_submit: bool = Field(alias="canSubmit")
	actions: PostSubmissionActions
	journal_data: Optional[str] = Field(default=None, alias="journalData")
	image_url: Optional[str] = Field(default=None, alias="imageUrl")
	audio_url: Optional[str] = Field(default=None, alias="audioUrl")
	audio_error: Optional[str] = Field(default=None, alias="audioError")


def _now_ms() -> int:
	return time.time_ns() // 1_000_000


class WritingSession:
	"""Draft-progression state for one conversation.

	Attributes:
		session_id: Registry key.
		uid: Owner label used when storing generated media.
		language: Language code being practised.
		conversation: Selected scenario; None when the language has none.
		conversation_uuid: Identifies the current run of the conversation;
			renewed by every reset.
		messages: Chat transcript, oldest first.
		user_message_count: Drafts sent since the last reset.
		initial_draft: The first draft of the run.
		final_draft: Candidate (or submitted) final draft.
		all_criteria_met: The latest non-first draft met every criterion.
		final_submitted: The learner accepted the final draft.
	"""

	def __init__(
		self,
		assistant: Assistant,
		conversation: Optional[Conversation],
		language: str,
		*,
		session_id: Optional[str] = None,
		uid: str = "anonymous",
	) -> None:
		self.assistant = assistant
		self.session_id = session_id or uuid.uuid4().hex
		self.uid = uid
		self.language = language
		self.conversation = conversation
		self._lock = asyncio.Lock()
		self._last_message_id = 0
		self._clear()

	# ------------------------------------------------------------------
	# state helpers
	# ------------------------------------------------------------------

	def _clear(self) -> None:
		self.conversation_uuid = uuid.uuid4().hex
		self.messages: List[Message] = []
		self.user_message_count = 0
		self.initial_draft: Optional[str] = None
		self.final_draft: Optional[str] = None
		self.all_criteria_met = False
		self.final_submitted = False
		self.journal_data: Optional[str] = None
		self.journal_requested = False
		self.image_url: Optional[str] = None
		self.image_requested = False
		self.audio_url: Optional[str] = None
		self.audio_error: Optional[str] = None
		self.audio_count = 0

	def _next_id(self) -> int:
		self._last_message_id = max(_now_ms(), self._last_message_id + 1)
		return self._last_message_id

	def _append(self, role: str, content: str) -> Message:
		message = Message(id=self._next_id(), role=role, content=content)
		self.messages.append(message)
		return message

	@property
	def can_submit(self) -> bool:
		return self.all_criteria_met and self.final_draft is not None and not self.final_submitted

	@property
	def input_enabled(self) -> bool:
		return not self.final_submitted

	def actions(self) -> PostSubmissionActions:
		submitted = self.final_submitted and bool(self.final_draft)
		return PostSubmissionActions(
			journal=submitted and not self.journal_requested and bool(self.initial_draft),
			image=submitted and not self.image_requested,
			audio=submitted,
		)

	def _require_submitted(self) -> str:
		if not self.final_submitted or not self.final_draft:
			raise SessionStateError("The final draft has not been submitted yet")
		return self.final_draft

	# ------------------------------------------------------------------
	# operations
	# ------------------------------------------------------------------

	async def start(self) -> Optional[Message]:
		"""Fetch the opening instruction; a no-op once the chat has messages."""
		async with self._lock:
			if self.messages or self.conversation is None:
				return None
			conv = self.conversation
			try:
				opening = await self.assistant.initial_message(conv.topic, conv.setting, self.language)
			except Exception:
				logger.exception("Error initializing conversation %s", conv.id)
				return self._append("System", START_ERROR_MESSAGE)
			return self._append("System", opening.content)

	async def send_message(self, text: str) -> Optional[Message]:
		"""Record a draft and ask for feedback on it.

		Returns the System reply (feedback or error message), or None when the
		text is blank.
		"""
		content = (text or "").strip()
		if not content:
			return None
		async with self._lock:
			if self.final_submitted:
				raise SessionStateError("The final draft has already been submitted")
			if self.conversation is None:
				raise SessionStateError("No conversation is selected")
			self.user_message_count += 1
			is_first_draft = self.user_message_count == 1
			self._append("User", content)
			if is_first_draft:
				self.initial_draft = content

			self.all_criteria_met = False
			try:
				result = await self.assistant.feedback(
					content,
					topic=self.conversation.topic,
					setting=self.conversation.setting,
					language=self.language,
					is_first_draft=is_first_draft,
				)
			except Exception:
				logger.exception("Error fetching feedback for session %s", self.session_id)
				return self._append("System", FEEDBACK_ERROR_MESSAGE)

			reply = self._append("System", f" {result.classification}\nFeedback: {result.feedback}")
			logger.debug("all criteria met: %s (first draft: %s)", result.all_criteria_met, is_first_draft)
			if result.all_criteria_met and not is_first_draft:
				self.final_draft = content
				self.all_criteria_met = True
			return reply

	async def submit_final(self) -> str:
		async with self._lock:
			if self.final_submitted:
				raise SessionStateError("The final draft has already been submitted")
			if not self.can_submit:
				raise SessionStateError("No draft has met all criteria yet")
			self.final_submitted = True
			logger.info("Session %s submitted its final draft", self.session_id)
			return self.final_draft or ""

	async def revise(self) -> Message:
		async with self._lock:
			if not self.can_submit:
				raise SessionStateError("There is no candidate final draft to revise")
			self.final_draft = None
			self.all_criteria_met = False
			self.final_submitted = False
			return self._append("System", REVISE_MESSAGE)

	async def open_journal(self) -> JournalView:
		async with self._lock:
			final = self._require_submitted()
			if not self.initial_draft:
				raise SessionStateError("Cannot open the journal because the initial draft is missing")
			if self.journal_requested:
				raise SessionStateError("The journal has already been generated")
			self.journal_data = await self.assistant.compare(self.initial_draft, final)
			self.journal_requested = True
			return build_journal_view(self.journal_data)

	async def add_image(self) -> str:
		async with self._lock:
			final = self._require_submitted()
			if self.image_requested:
				raise SessionStateError("The image has already been generated")
			url = await self.assistant.image(final)
			if not url:
				raise SessionStateError("Unable to retrieve an image URL")
			self.image_url = url
			self.image_requested = True
			return url

	async def generate_audio(self) -> str:
		async with self._lock:
			final = self._require_submitted()
			try:
				url = await self.assistant.audio(
					final,
					self.language,
					self.conversation_uuid,
					uid=self.uid,
					index=self.audio_count,
				)
			except Exception as err:
				self.audio_error = str(err) or "An unknown error occurred"
				raise
			self.audio_count += 1
			self.audio_url = url
			self.audio_error = None
			return url

	async def reset(self, *, conversation: Optional[Conversation] = None, language: Optional[str] = None) -> None:
		"""Start over, optionally on another conversation or language.

		Waits for any pending collaborator call so its answer lands in the run
		being discarded.
		"""
		async with self._lock:
			if language is not None:
				self.language = language
			if conversation is not None or language is not None:
				self.conversation = conversation
			self._clear()
			logger.info("Session %s reset to run %s", self.session_id, self.conversation_uuid)

	def journal_view(self) -> Optional[JournalView]:
		if self.journal_data is None:
			return None
		return build_journal_view(self.journal_data)

	def snapshot(self) -> SessionSnapshot:
		return SessionSnapshot(
			session_id=self.session_id,
			language=self.language,
			conversation=self.conversation,
			conversation_uuid=self.conversation_uuid,
			messages=list(self.messages),
			user_message_count=self.user_message_count,
			initial_draft=self.initial_draft,
			final_draft=self.final_draft,
			all_criteria_met=self.all_criteria_met,
			final_submitted=self.final_submitted,
			input_enabled=self.input_enabled,
			can_submit=self.can_submit,
			actions=self.actions(),
			journal_data=self.journal_data,
			image_url=self.image_url,
			audio_url=self.audio_url,
			audio_error=self.audio_error,
		)


class SessionRegistry:
	def __init__(self) -> None:
		self._sessions: Dict[str, WritingSession] = {}

	def add(self, session: WritingSession) -> WritingSession:
		self._sessions[session.session_id] = session
		return session

	def get(self, session_id: str) -> Optional[WritingSession]:
		return self._sessions.get(session_id)

	def drop(self, session_id: str) -> bool:
		return self._sessions.pop(session_id, None) is not None

	def __len__(self) -> int:
		return len(self._sessions)
