# tests/crud/test_crud_phrase.py
from sqlalchemy.orm import Session

from dictation_room.crud import crud_phrase


def test_create_phrases_appends_in_order(db_session: Session):
    crud_phrase.create_phrases(db_session, [("first", None), ("second", "https://cdn/2.mp3")])
    crud_phrase.create_phrases(db_session, [("third", None)])

    phrases = crud_phrase.get_phrases(db_session)
    assert [p.text for p in phrases] == ["first", "second", "third"]
    assert [p.position for p in phrases] == [1, 2, 3]
    assert phrases[1].audio_url == "https://cdn/2.mp3"
    assert crud_phrase.count_phrases(db_session) == 3


def test_get_phrase_at_and_by_text(db_session: Session):
    crud_phrase.create_phrases(db_session, [("first", None), ("second", None)])

    assert crud_phrase.get_phrase_at(db_session, 1).text == "second"
    assert crud_phrase.get_phrase_at(db_session, 2) is None
    assert crud_phrase.get_phrase_by_text(db_session, "first").position == 1
    assert crud_phrase.get_phrase_by_text(db_session, "missing") is None


def test_delete_phrases(db_session: Session):
    crud_phrase.create_phrases(db_session, [("first", None), ("second", None)])

    assert crud_phrase.delete_phrase_by_text(db_session, "first") is True
    assert crud_phrase.delete_phrase_by_text(db_session, "first") is False
    assert [p.text for p in crud_phrase.get_phrases(db_session)] == ["second"]

    assert crud_phrase.delete_all_phrases(db_session) == 1
    assert crud_phrase.count_phrases(db_session) == 0


def test_replace_all_phrases(db_session: Session):
    crud_phrase.create_phrases(db_session, [("old", None)])
    crud_phrase.replace_all_phrases(db_session, [("new one", None), ("old", "a.mp3")])

    phrases = crud_phrase.get_phrases(db_session)
    assert [(p.text, p.position, p.audio_url) for p in phrases] == [("new one", 1, None), ("old", 2, "a.mp3")]
