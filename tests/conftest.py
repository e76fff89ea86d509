"""Shared fixtures: a scripted assistant and an API client wired to it."""

import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="draftcoach-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'test.db')}")
os.environ.setdefault("MEDIA_DIR", os.path.join(_TMP, "media"))
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ELEVENLABS_API_KEY", "test-key")

import pytest
from fastapi.testclient import TestClient

from draftcoach.db import Base, SessionLocal, engine
from draftcoach.dependencies import get_assistant, get_sessions
from draftcoach.main import app
from draftcoach.schemas import FeedbackResponse, Message
from draftcoach.session import SessionRegistry


SAMPLE_JOURNAL = (
    "Compare the drafts below:\n\n"
    "First Draft:\n\n"
    '"I go park yesterday. It was fun."\n\n'
    "Revised Draft with highlighted improvements:\n\n"
    '"I *went to the park* yesterday. It was *really* fun."\n\n'
    "Explanations for Improvements:\n\n"
    "1. *went to the park*: Use the past tense and add \"to the\".\n"
    "2. *really*: Adds emphasis."
)


def feedback(classification="On-Track Input", text="Nice work.", met=False):
    return FeedbackResponse(classification=classification, feedback=text, all_criteria_met=met)


class FakeAssistant:
    """Stands in for WritingAssistant; results are scripted per test."""

    def __init__(self):
        self.feedback_results = []
        self.feedback_calls = []
        self.initialize_error = None
        self.compare_error = None
        self.image_error = None
        self.audio_error = None
        self.journal_text = SAMPLE_JOURNAL
        self.image_url = "https://images.example/final.png"
        self.audio_calls = []
        self.compare_calls = []

    async def initialize(self, topic, setting, language=None):
        if self.initialize_error:
            raise self.initialize_error
        return {"id": "abc-123", "role": "System", "content": f"Write about: {topic}"}

    async def initial_message(self, topic, setting, language=None):
        data = await self.initialize(topic, setting, language)
        return Message(id=1, role="System", content=data["content"])

    async def feedback(self, draft, *, topic=None, setting=None, language=None, is_first_draft=False):
        self.feedback_calls.append(
            {"draft": draft, "topic": topic, "setting": setting, "language": language, "is_first_draft": is_first_draft}
        )
        result = self.feedback_results.pop(0) if self.feedback_results else feedback()
        if isinstance(result, Exception):
            raise result
        return result

    async def compare(self, initial_draft, final_draft):
        self.compare_calls.append((initial_draft, final_draft))
        if self.compare_error:
            raise self.compare_error
        return self.journal_text

    async def structured_feedback(self, draft):
        return {"feedback": {"Coherence & Organization": "a", "Content": "b", "Structure": "c"}}

    async def romanize(self, text):
        return "konnichiwa"

    async def image(self, final_draft):
        if self.image_error:
            raise self.image_error
        return self.image_url

    async def audio(self, text, language, conversation_id, *, uid="anonymous", index=0):
        self.audio_calls.append((text, language, conversation_id, uid, index))
        if self.audio_error:
            raise self.audio_error
        return f"/media/generated/{uid}/{language}/{conversation_id}/audio-{index}.mp3"


@pytest.fixture
def fake_assistant():
    return FakeAssistant()


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(fake_assistant, db_session):
    registry = SessionRegistry()
    app.dependency_overrides[get_assistant] = lambda: fake_assistant
    app.dependency_overrides[get_sessions] = lambda: registry
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
