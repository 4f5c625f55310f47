# tests/services/test_phrase_service.py
import csv
import io

import pytest

from dictation_room.core.config import settings
from dictation_room.core.exceptions import InvalidPhrase
from dictation_room.models.phrase import PhraseItem
from dictation_room.services import phrase_service
from dictation_room.services.phrase_service import InMemoryPhraseSource, SqlPhraseSource


@pytest.mark.asyncio
async def test_empty_source_is_seeded_with_defaults():
    source = InMemoryPhraseSource()
    phrases = await source.list_phrases()
    assert [p.text for p in phrases] == settings.DEFAULT_PHRASES
    assert len(phrases) == 5


@pytest.mark.asyncio
async def test_add_skips_blanks_and_duplicates(phrase_source):
    added = await phrase_source.add_phrases([
        PhraseItem(text="  delta four "),
        PhraseItem(text="alpha one"),
        PhraseItem(text="   "),
        PhraseItem(text="delta four"),
        PhraseItem(text="epsilon five", audio_url="https://cdn/e.mp3"),
    ])
    assert [p.text for p in added] == ["delta four", "epsilon five"]
    assert added[1].audio_url == "https://cdn/e.mp3"
    assert [p.text for p in await phrase_source.list_phrases()] == [
        "alpha one", "beta two", "gamma three", "delta four", "epsilon five",
    ]


@pytest.mark.asyncio
async def test_get_remove_and_replace(phrase_source):
    assert (await phrase_source.get_phrase(1)).text == "beta two"
    assert await phrase_source.get_phrase(3) is None
    assert await phrase_source.get_phrase(-1) is None

    assert await phrase_source.remove_phrase("beta two") is True
    assert await phrase_source.remove_phrase("beta two") is False
    assert [p.text for p in await phrase_source.list_phrases()] == ["alpha one", "gamma three"]

    replaced = await phrase_source.replace_phrases([PhraseItem(text="only one"), PhraseItem(text="only one")])
    assert [p.text for p in replaced] == ["only one"]

    # An emptied list stays empty
    await phrase_source.replace_phrases([])
    assert await phrase_source.list_phrases() == []


@pytest.mark.asyncio
async def test_sql_phrase_source_round_trip(sql_session_factory):
    source = SqlPhraseSource(sql_session_factory, default_phrases=["first phrase", "second phrase"])

    assert [p.text for p in await source.list_phrases()] == ["first phrase", "second phrase"]
    added = await source.add_phrases([PhraseItem(text="third phrase", audio_url="a.mp3"), PhraseItem(text="first phrase")])
    assert [p.text for p in added] == ["third phrase"]
    assert (await source.get_phrase(2)).audio_url == "a.mp3"

    assert await source.remove_phrase("second phrase") is True
    assert [p.text for p in await source.list_phrases()] == ["first phrase", "third phrase"]

    await source.replace_phrases([PhraseItem(text="z"), PhraseItem(text="y")])
    assert [p.text for p in await source.list_phrases()] == ["z", "y"]


def test_parse_csv_first_column_and_quotes():
    content = 'The lecture was about climate change,extra\n"Hello, world",x\n\n   \n"  padded  "\n'
    assert phrase_service.parse_csv(content) == [
        "The lecture was about climate change",
        "Hello, world",
        "padded",
    ]


def test_parse_csv_skip_header_and_length_limit():
    too_long = "a" * 201
    content = f"WFD Phrases\nshort one\n{too_long}\n{'b' * 200}\n"
    assert phrase_service.parse_csv(content, skip_header=True) == ["short one", "b" * 200]
    assert phrase_service.parse_csv(content)[0] == "WFD Phrases"


def test_parse_csv_bytes_with_bom():
    assert phrase_service.parse_csv("\ufeffOne\nTwo\n".encode("utf-8")) == ["One", "Two"]


def test_parse_csv_rejects_non_utf8():
    with pytest.raises(InvalidPhrase):
        phrase_service.parse_csv(b"\xff\xfe\x00bad")


def test_validate_csv_upload():
    phrase_service.validate_csv_upload("phrases.CSV", 10)
    with pytest.raises(InvalidPhrase):
        phrase_service.validate_csv_upload("phrases.txt", 10)
    with pytest.raises(InvalidPhrase):
        phrase_service.validate_csv_upload(None, 10)
    with pytest.raises(InvalidPhrase):
        phrase_service.validate_csv_upload("big.csv", settings.MAX_CSV_BYTES + 1)


def test_sample_csv():
    content = phrase_service.generate_sample_csv()
    lines = content.splitlines()
    assert lines[0] == "WFD Phrases"
    assert len(lines) == 11
    rows = list(csv.reader(io.StringIO(content)))
    assert rows[1] == ["The lecture was about climate change"]
    # The sample parses back to its ten phrases once the header is skipped
    assert phrase_service.parse_csv(content, skip_header=True) == phrase_service.SAMPLE_PHRASES
