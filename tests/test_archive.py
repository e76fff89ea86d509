import asyncio
from datetime import datetime, timedelta

from draftcoach import archive
from draftcoach.cleanup import purge_older_than
from draftcoach.conversations import find_conversation
from draftcoach.models import JournalEntry
from draftcoach.session import WritingSession

from conftest import SAMPLE_JOURNAL, feedback


def _submitted_session(fake_assistant):
    fake_assistant.feedback_results = [feedback(met=True), feedback(met=True)]
    session = WritingSession(fake_assistant, find_conversation("en", "en-weekend"), "en", session_id="s1")

    async def run():
        await session.start()
        await session.send_message("first")
        await session.send_message("second")
        await session.submit_final()
        await session.open_journal()

    asyncio.run(run())
    return session


def test_record_journal_upserts_per_run(db_session, fake_assistant):
    session = _submitted_session(fake_assistant)
    first = archive.record_journal(db_session, session)
    second = archive.record_journal(db_session, session)
    assert first is not None and first.id == second.id
    assert first.journal_data == SAMPLE_JOURNAL
    assert first.title == "My Weekend"


def test_record_journal_skips_unfinished_session(db_session, fake_assistant):
    session = WritingSession(fake_assistant, find_conversation("en", "en-weekend"), "en")
    assert archive.record_journal(db_session, session) is None
    assert db_session.query(JournalEntry).count() == 0


def test_update_media(db_session, fake_assistant):
    session = _submitted_session(fake_assistant)
    archive.record_journal(db_session, session)
    session.image_url = "https://images.example/x.png"
    archive.update_media(db_session, session)
    [row] = archive.list_entries(db_session)
    assert row.image_url == "https://images.example/x.png"


def test_list_entries_filters_by_language(db_session, fake_assistant):
    archive.record_journal(db_session, _submitted_session(fake_assistant))
    assert len(archive.list_entries(db_session, language="en")) == 1
    assert archive.list_entries(db_session, language="ja") == []


def test_purge_older_than(db_session):
    old = datetime.utcnow() - timedelta(days=10)
    db_session.add_all(
        [
            JournalEntry(
                session_id="old", conversation_uuid="1", language="en",
                initial_draft="a", final_draft="b", journal_data="c",
                created_at=old, updated_at=old,
            ),
            JournalEntry(
                session_id="new", conversation_uuid="2", language="en",
                initial_draft="a", final_draft="b", journal_data="c",
            ),
        ]
    )
    db_session.commit()
    assert purge_older_than(db_session, 7) == 1
    assert [r.session_id for r in db_session.query(JournalEntry).all()] == ["new"]
