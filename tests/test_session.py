"""Tests for the writing session state machine."""

import asyncio

import pytest

from draftcoach.llm_client import UpstreamError
from draftcoach.schemas import Conversation
from draftcoach.session import (
    FEEDBACK_ERROR_MESSAGE,
    REVISE_MESSAGE,
    START_ERROR_MESSAGE,
    SessionRegistry,
    SessionStateError,
    WritingSession,
)

from conftest import feedback


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def conversation():
    return Conversation(
        id="en-weekend",
        title="My Weekend",
        setting="A chat with a classmate",
        topic="Describe your weekend",
        speaker="Classmate",
    )


@pytest.fixture
def session(fake_assistant, conversation):
    s = WritingSession(fake_assistant, conversation, "en", uid="learner-1")
    run(s.start())
    return s


def reach_final_draft(session, fake_assistant):
    """Send a first draft and an accepted second draft."""
    fake_assistant.feedback_results = [feedback(met=True), feedback(met=True)]
    run(session.send_message("First try."))
    run(session.send_message("A much better second try."))


class TestStart:
    def test_start_appends_instruction(self, session):
        assert len(session.messages) == 1
        assert session.messages[0].role == "System"
        assert session.messages[0].content == "Write about: Describe your weekend"

    def test_start_is_noop_when_chat_has_messages(self, session):
        assert run(session.start()) is None
        assert len(session.messages) == 1

    def test_start_failure_becomes_chat_message(self, fake_assistant, conversation):
        fake_assistant.initialize_error = UpstreamError(500, "boom")
        s = WritingSession(fake_assistant, conversation, "en")
        run(s.start())
        assert s.messages[-1].content == START_ERROR_MESSAGE

    def test_start_without_conversation(self, fake_assistant):
        s = WritingSession(fake_assistant, None, "ko")
        assert run(s.start()) is None
        assert s.messages == []


class TestSendMessage:
    def test_blank_message_is_ignored(self, session, fake_assistant):
        assert run(session.send_message("   ")) is None
        assert session.user_message_count == 0
        assert fake_assistant.feedback_calls == []

    def test_first_draft_sets_initial_draft(self, session, fake_assistant):
        fake_assistant.feedback_results = [feedback("Partially On-Track Input", "Add more.")]
        reply = run(session.send_message("  I went out.  "))
        assert session.initial_draft == "I went out."
        assert session.user_message_count == 1
        assert reply.content == " Partially On-Track Input\nFeedback: Add more."
        assert [m.role for m in session.messages] == ["System", "User", "System"]
        call = fake_assistant.feedback_calls[0]
        assert call["is_first_draft"] is True
        assert call["topic"] == "Describe your weekend"
        assert call["language"] == "en"

    def test_first_draft_never_becomes_final(self, session, fake_assistant):
        fake_assistant.feedback_results = [feedback(met=True)]
        run(session.send_message("Perfect first draft."))
        assert session.all_criteria_met is False
        assert session.final_draft is None
        assert session.can_submit is False

    def test_later_draft_meeting_criteria_becomes_final(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        assert session.final_draft == "A much better second try."
        assert session.initial_draft == "First try."
        assert session.all_criteria_met is True
        assert session.can_submit is True
        assert fake_assistant.feedback_calls[1]["is_first_draft"] is False

    def test_new_draft_clears_previous_criteria(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        fake_assistant.feedback_results = [feedback(met=False)]
        run(session.send_message("Third draft with mistakes."))
        assert session.all_criteria_met is False
        assert session.can_submit is False

    def test_feedback_failure_becomes_chat_message(self, session, fake_assistant):
        fake_assistant.feedback_results = [feedback(), UpstreamError(502, "No response")]
        run(session.send_message("One."))
        reply = run(session.send_message("Two."))
        assert reply.content == FEEDBACK_ERROR_MESSAGE
        assert session.all_criteria_met is False
        assert session.user_message_count == 2

    def test_message_ids_strictly_increase(self, session, fake_assistant):
        for text in ("a", "b", "c"):
            run(session.send_message(text))
        ids = [m.id for m in session.messages]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_sending_after_submission_is_rejected(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        run(session.submit_final())
        with pytest.raises(SessionStateError):
            run(session.send_message("More text"))
        assert session.user_message_count == 2


class TestSubmitAndRevise:
    def test_submit_requires_accepted_draft(self, session):
        with pytest.raises(SessionStateError):
            run(session.submit_final())

    def test_submit_opens_post_submission_actions(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        assert run(session.submit_final()) == "A much better second try."
        assert session.final_submitted is True
        assert session.input_enabled is False
        assert session.can_submit is False
        actions = session.actions()
        assert actions.journal and actions.image and actions.audio

    def test_double_submit_is_rejected(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        run(session.submit_final())
        with pytest.raises(SessionStateError):
            run(session.submit_final())

    def test_revise_clears_candidate(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        message = run(session.revise())
        assert message.content == REVISE_MESSAGE
        assert session.final_draft is None
        assert session.all_criteria_met is False
        assert session.final_submitted is False
        assert session.input_enabled is True
        # the initial draft survives a revision
        assert session.initial_draft == "First try."

    def test_revise_without_candidate_is_rejected(self, session):
        with pytest.raises(SessionStateError):
            run(session.revise())

    def test_revise_after_submission_is_rejected(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        run(session.submit_final())
        with pytest.raises(SessionStateError):
            run(session.revise())


class TestPostSubmission:
    @pytest.fixture
    def submitted(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        run(session.submit_final())
        return session

    def test_actions_locked_before_submission(self, session):
        with pytest.raises(SessionStateError):
            run(session.open_journal())
        with pytest.raises(SessionStateError):
            run(session.add_image())
        with pytest.raises(SessionStateError):
            run(session.generate_audio())

    def test_open_journal(self, submitted, fake_assistant):
        view = run(submitted.open_journal())
        assert fake_assistant.compare_calls == [("First try.", "A much better second try.")]
        assert submitted.journal_requested is True
        assert submitted.journal_data == fake_assistant.journal_text
        assert [h.text for h in view.highlights] == ["went to the park", "really"]
        assert submitted.actions().journal is False

    def test_journal_only_once(self, submitted):
        run(submitted.open_journal())
        with pytest.raises(SessionStateError):
            run(submitted.open_journal())

    def test_journal_failure_can_be_retried(self, submitted, fake_assistant):
        fake_assistant.compare_error = UpstreamError(502, "down")
        with pytest.raises(UpstreamError):
            run(submitted.open_journal())
        assert submitted.journal_requested is False
        fake_assistant.compare_error = None
        run(submitted.open_journal())
        assert submitted.journal_requested is True

    def test_add_image(self, submitted, fake_assistant):
        url = run(submitted.add_image())
        assert url == fake_assistant.image_url
        assert submitted.image_url == url
        assert submitted.actions().image is False
        with pytest.raises(SessionStateError):
            run(submitted.add_image())

    def test_image_failure_keeps_button_available(self, submitted, fake_assistant):
        fake_assistant.image_error = UpstreamError(500, "no image")
        with pytest.raises(UpstreamError):
            run(submitted.add_image())
        assert submitted.image_url is None
        assert submitted.actions().image is True

    def test_audio_is_repeatable(self, submitted, fake_assistant):
        first = run(submitted.generate_audio())
        second = run(submitted.generate_audio())
        assert first.endswith("audio-0.mp3")
        assert second.endswith("audio-1.mp3")
        text, language, conversation_id, uid, index = fake_assistant.audio_calls[0]
        assert text == "A much better second try."
        assert language == "en"
        assert conversation_id == submitted.conversation_uuid
        assert uid == "learner-1"

    def test_audio_failure_is_recorded(self, submitted, fake_assistant):
        fake_assistant.audio_error = UpstreamError(401, "bad key")
        with pytest.raises(UpstreamError):
            run(submitted.generate_audio())
        assert submitted.audio_error == "bad key"
        fake_assistant.audio_error = None
        run(submitted.generate_audio())
        assert submitted.audio_error is None


class TestReset:
    def test_reset_clears_everything(self, session, fake_assistant):
        reach_final_draft(session, fake_assistant)
        run(session.submit_final())
        run(session.open_journal())
        run(session.reset())
        assert session.messages == []
        assert session.user_message_count == 0
        assert session.initial_draft is None
        assert session.final_draft is None
        assert session.final_submitted is False
        assert session.journal_data is None
        assert session.conversation is not None

    def test_reset_starts_a_new_run(self, session):
        previous = session.conversation_uuid
        run(session.reset())
        assert session.conversation_uuid != previous
        run(session.start())
        assert [m.content for m in session.messages] == ["Write about: Describe your weekend"]

    def test_reset_during_pending_feedback(self, session, fake_assistant):
        fake_assistant.feedback_results = [feedback(met=True), feedback(met=True)]
        run(session.send_message("First try."))

        async def scenario():
            release = asyncio.Event()
            answer = fake_assistant.feedback

            async def slow_feedback(*args, **kwargs):
                await release.wait()
                return await answer(*args, **kwargs)

            fake_assistant.feedback = slow_feedback
            sending = asyncio.create_task(session.send_message("A better second try."))
            await asyncio.sleep(0)
            resetting = asyncio.create_task(session.reset())
            await asyncio.sleep(0)
            release.set()
            await asyncio.gather(sending, resetting)
            await session.start()

        run(scenario())
        assert session.user_message_count == 0
        assert session.initial_draft is None
        assert session.final_draft is None
        assert session.can_submit is False
        assert [(m.role, m.content) for m in session.messages] == [("System", "Write about: Describe your weekend")]

    def test_reset_switches_language_and_conversation(self, session, conversation):
        other = conversation.model_copy(update={"id": "fr-week-end"})
        run(session.reset(conversation=other, language="fr"))
        assert session.language == "fr"
        assert session.conversation.id == "fr-week-end"

    def test_snapshot_wire_names(self, session):
        body = session.snapshot().model_dump(by_alias=True)
        assert body["sessionId"] == session.session_id
        assert body["inputEnabled"] is True
        assert body["canSubmit"] is False
        assert body["actions"] == {"journal": False, "image": False, "audio": False}


def test_registry(fake_assistant, conversation):
    registry = SessionRegistry()
    s = registry.add(WritingSession(fake_assistant, conversation, "en"))
    assert registry.get(s.session_id) is s
    assert len(registry) == 1
    assert registry.drop(s.session_id) is True
    assert registry.drop(s.session_id) is False
    assert registry.get(s.session_id) is None
