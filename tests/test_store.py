from __future__ import annotations

import asyncio
import json

import pytest

from conftest import FakeGenerator, make_record
from hzcli.errors import (
    AlreadyExistsError,
    ArgumentError,
    CorruptedError,
    NoResultError,
    NotFoundError,
    ProtectedError,
)
from hzcli.models import Deck, PhraseRecord
from hzcli.store import open_store, parse_level


def seed_words(store, name, **words):
    deck = store.get_deck(name)
    for word, record in words.items():
        deck.words[word] = record
    store.repository.save(name, deck)


# Bootstrap


def test_fresh_store_has_only_default_deck(store):
    assert store.deck_names == ["default"]
    deck = store.get_deck("default")
    assert deck.words == {}
    assert deck.phrases == {}
    assert deck.description == "Default Deck"

    metadata = json.loads(store.store_path.read_text(encoding="utf-8"))
    assert metadata["deckNames"] == ["default"]


def test_reopening_keeps_state(tmp_path, generator):
    store = open_store(tmp_path / "home", base_decks_dir=None, generator=generator)
    store.add_deck("hsk1", "HSK level 1")

    reopened = open_store(tmp_path / "home", base_decks_dir=None)
    assert reopened.deck_names == ["default", "hsk1"]
    assert reopened.get_deck("hsk1").description == "HSK level 1"


def test_starter_decks_are_seeded_once(tmp_path, base_decks_dir):
    home = tmp_path / "home"
    store = open_store(home, base_decks_dir=base_decks_dir)
    assert store.deck_names == ["default", "starter"]
    assert list(store.list_words("starter")) == ["我"]

    store.remove_deck("starter")
    reopened = open_store(home, base_decks_dir=base_decks_dir)
    assert reopened.deck_names == ["default"]


def test_default_open_seeds_bundled_starter_deck(tmp_path):
    store = open_store(tmp_path / "home")
    assert store.deck_names == ["default", "starter"]
    assert store.get_deck("default").words == {}
    assert store.count_words("starter") > 0


def test_corrupted_metadata(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    (home / "store.json").write_text("", encoding="utf-8")

    with pytest.raises(CorruptedError):
        open_store(home, base_decks_dir=None)


def test_api_key_persisted(tmp_path, store, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert store.api_key == ""

    store.set_api_key("sk-test")
    reopened = open_store(store.store_path.parent, base_decks_dir=None)
    assert reopened.api_key == "sk-test"


def test_api_key_falls_back_to_environment(store, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert store.api_key == "sk-env"


# Decks


def test_add_and_remove_deck(store):
    store.add_deck("hsk1")
    assert store.has_deck("hsk1")
    assert store.repository.exists("hsk1")

    store.remove_deck("hsk1")
    assert not store.has_deck("hsk1")
    assert not store.repository.exists("hsk1")


def test_add_existing_deck(store):
    store.add_deck("hsk1")
    with pytest.raises(AlreadyExistsError):
        store.add_deck("hsk1")


@pytest.mark.parametrize("name", ["", "  ", "../evil", "a/b", ".hidden"])
def test_invalid_deck_names(store, name):
    with pytest.raises(ArgumentError):
        store.add_deck(name)


def test_default_deck_is_protected(store):
    store.add_deck("hsk1")
    with pytest.raises(ProtectedError):
        store.remove_deck("default")
    assert store.has_deck("default")


def test_remove_unknown_deck(store):
    with pytest.raises(NotFoundError):
        store.remove_deck("nope")


def test_registered_deck_with_missing_file_is_corrupted(store):
    store.add_deck("hsk1")
    store.repository.path_for("hsk1").unlink()

    with pytest.raises(CorruptedError):
        store.get_deck("hsk1")


def test_unregistered_deck_file_is_not_found(store):
    store.repository.save("orphan", Deck())
    with pytest.raises(NotFoundError):
        store.get_deck("orphan")


def test_list_decks(store):
    store.add_deck("hsk1", "first")
    decks = store.list_decks()
    assert list(decks) == ["default", "hsk1"]
    assert decks["hsk1"].description == "first"


def test_merge_keeps_target_words(store):
    store.add_deck("a")
    store.add_deck("b")
    seed_words(store, "a", 你=make_record("nǐ", ["you"]), 好=make_record("hǎo", ["good"]))
    seed_words(store, "b", 好=make_record("hǎo", ["fine"]), 我=make_record("wǒ", ["I"]))

    copied = store.merge_decks("b", "a")

    words = store.list_words("b")
    assert copied == 1
    assert set(words) == {"好", "我", "你"}
    assert words["好"].translations == ["fine"]
    assert store.has_deck("a")


def test_merge_twice_is_same_as_once(store):
    store.add_deck("a")
    store.add_deck("b")
    seed_words(store, "a", 你=make_record("nǐ", ["you"]), 好=make_record("hǎo", ["good"]))
    seed_words(store, "b", 好=make_record("hǎo", ["fine"]))

    store.merge_decks("b", "a")
    once = store.get_deck("b")
    store.merge_decks("b", "a")

    assert store.get_deck("b") == once


def test_merge_and_delete_source(store):
    store.add_deck("a")
    store.add_deck("b")
    seed_words(store, "a", 你=make_record("nǐ", ["you"]))

    store.merge_decks("b", "a", delete_source=True)

    assert not store.has_deck("a")
    assert not store.repository.exists("a")
    assert "你" in store.list_words("b")


def test_merge_errors(store):
    store.add_deck("a")
    with pytest.raises(NotFoundError):
        store.merge_decks("a", "nope")
    with pytest.raises(NotFoundError):
        store.merge_decks("nope", "a")
    with pytest.raises(ArgumentError):
        store.merge_decks("a", "a")
    with pytest.raises(ProtectedError):
        store.merge_decks("a", "default", delete_source=True)


def test_clone_is_independent(store):
    store.add_deck("src", "source deck")
    seed_words(store, "src", 你=make_record("nǐ", ["you"]))
    store.save_phrase("src", "你好", PhraseRecord(pinyin="nǐ hǎo", translation="hello"))

    store.clone_deck("copy", "src")
    assert store.get_deck("copy") == store.get_deck("src")

    store.set_level("copy", "你", 5)
    store.set_word_comment("copy", "你", "changed")
    store.remove_word("copy", "你")
    store.list_words("copy")

    source = store.get_deck("src")
    assert source.words["你"].level == -1
    assert source.words["你"].comment == ""
    assert source.description == "source deck"


def test_clone_errors(store):
    store.add_deck("a")
    with pytest.raises(AlreadyExistsError):
        store.clone_deck("a", "default")
    with pytest.raises(NotFoundError):
        store.clone_deck("b", "nope")


# Import / export


def test_import_new_deck(store):
    store.import_deck("hsk1", {"words": {"我": {"pinyin": "wǒ", "translations": ["I"]}}})
    assert store.has_deck("hsk1")
    assert store.get_word("hsk1", "我").pinyin == "wǒ"


def test_import_existing_without_flags(store):
    store.add_deck("hsk1")
    seed_words(store, "hsk1", 我=make_record("wǒ", ["I"]))

    with pytest.raises(AlreadyExistsError):
        store.import_deck("hsk1", {"words": {"我": {"pinyin": "wǒ"}}})


def test_import_merge_and_replace_conflict(store):
    with pytest.raises(ArgumentError):
        store.import_deck("new", {"words": {}}, merge=True, replace=True)
    assert not store.has_deck("new")


def test_import_merge(store):
    store.add_deck("hsk1")
    seed_words(store, "hsk1", 我=make_record("wǒ", ["I"]))

    store.import_deck(
        "hsk1",
        {"words": {"我": {"pinyin": "wo"}, "你": {"pinyin": "nǐ"}}},
        merge=True,
    )

    words = store.list_words("hsk1")
    assert words["我"].pinyin == "wǒ"
    assert words["你"].pinyin == "nǐ"
    assert store.deck_names == ["default", "hsk1"]
    assert sorted(p.name for p in store.repository.decks_dir.iterdir()) == [
        "default.json",
        "hsk1.json",
    ]


def test_import_merge_leaves_deck_with_staging_like_name_alone(store):
    store.add_deck("hsk1")
    store.add_deck("hsk1-import-staging", "my real deck")
    seed_words(store, "hsk1-import-staging", 他=make_record("tā", ["he"]))
    store.repository.save("hsk1-import-staging-1", Deck(description="stray file"))

    store.import_deck("hsk1", {"words": {"你": {"pinyin": "nǐ"}}}, merge=True)

    kept = store.get_deck("hsk1-import-staging")
    assert kept.description == "my real deck"
    assert list(kept.words) == ["他"]
    assert store.repository.load("hsk1-import-staging-1").description == "stray file"
    assert list(store.list_words("hsk1")) == ["你"]
    assert not store.repository.exists("hsk1-import-staging-2")


def test_import_replace(store):
    store.add_deck("hsk1")
    seed_words(store, "hsk1", 我=make_record("wǒ", ["I"]))

    store.import_deck("hsk1", {"words": {"你": {"pinyin": "nǐ"}}}, replace=True)

    assert list(store.list_words("hsk1")) == ["你"]
    assert store.deck_names.count("hsk1") == 1


def test_import_invalid_shape(store):
    with pytest.raises(CorruptedError):
        store.import_deck("bad", ["not", "a", "deck"])
    with pytest.raises(CorruptedError):
        store.import_deck("bad", {"words": {"我": {"level": 99}}})


def test_export_then_import_replace_round_trip(store, tmp_path):
    store.add_deck("hsk1", "HSK 1")
    seed_words(store, "hsk1", 我=make_record("wǒ", ["I"], level=2), 你=make_record("nǐ", ["you"]))
    original = store.list_words("hsk1")

    out_dir = tmp_path / "exports"
    path = store.export_deck("hsk1", out_dir)
    assert path == out_dir / "hsk1.json"

    store.reset_words("hsk1")
    store.import_deck_file(path, replace=True)

    assert store.list_words("hsk1") == original


def test_export_refuses_to_overwrite(store, tmp_path):
    store.export_deck("default", tmp_path)
    with pytest.raises(AlreadyExistsError):
        store.export_deck("default", tmp_path)
    store.export_deck("default", tmp_path, force=True)


def test_import_file_errors(store, tmp_path):
    with pytest.raises(ArgumentError):
        store.import_deck_file(tmp_path / "deck.txt")
    with pytest.raises(NotFoundError):
        store.import_deck_file(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")
    with pytest.raises(CorruptedError):
        store.import_deck_file(bad)


# Words


def test_add_word_uses_generator(store, generator):
    record = asyncio.run(store.add_word("default", "你好"))

    assert generator.word_calls == ["你好"]
    assert record.pinyin == "nǐ hǎo"
    assert record.tone == "3"
    assert record.translations == ["hello", "hi"]
    assert record.sentence_pinyin == "nǐ hǎo, péngyou."
    assert record.comment == "generated comment"
    assert record.level == -1
    assert record.created_at
    assert store.get_word("default", "你好") == record


def test_add_word_overrides(store):
    record = asyncio.run(store.add_word("default", "你好", comment="mine", level=4))
    assert record.comment == "mine"
    assert record.level == 4


def test_add_word_rejects_duplicates_before_generating(store, generator):
    asyncio.run(store.add_word("default", "谢谢"))
    with pytest.raises(AlreadyExistsError):
        asyncio.run(store.add_word("default", "谢谢"))
    assert generator.word_calls == ["谢谢"]


def test_add_word_errors(store):
    with pytest.raises(NotFoundError):
        asyncio.run(store.add_word("nope", "你好"))
    with pytest.raises(ArgumentError):
        asyncio.run(store.add_word("default", "你好", level=11))
    with pytest.raises(ArgumentError):
        asyncio.run(store.add_word("default", " "))


def test_word_crud(store):
    seed_words(store, "default", 我=make_record("wǒ", ["I"]))

    assert store.has_word("default", "我")
    assert not store.has_word("default", "你")
    assert store.count_words("default") == 1

    record = store.get_word("default", "我")
    record.note = "pronoun"
    store.update_word("default", "我", record)
    assert store.get_word("default", "我").note == "pronoun"

    store.set_word_comment("default", "我", "easy")
    assert store.get_word("default", "我").comment == "easy"

    store.remove_word("default", "我")
    assert store.count_words("default") == 0


def test_missing_word_operations(store):
    for call in (
        lambda: store.get_word("default", "我"),
        lambda: store.remove_word("default", "我"),
        lambda: store.update_word("default", "我", make_record()),
        lambda: store.set_word_comment("default", "我", "x"),
        lambda: store.level_up("default", "我"),
    ):
        with pytest.raises(NotFoundError):
            call()
    with pytest.raises(NotFoundError):
        store.list_words("nope")


def test_copy_word(store):
    store.add_deck("other")
    seed_words(store, "default", 我=make_record("wǒ", ["I"]))
    seed_words(store, "other", 我=make_record("wo", ["me"]))

    with pytest.raises(AlreadyExistsError):
        store.copy_word("default", "other", "我")

    store.copy_word("default", "other", "我", force=True)
    assert store.get_word("other", "我").pinyin == "wǒ"


def test_reset_words(store):
    seed_words(store, "default", 我=make_record("wǒ"), 你=make_record("nǐ"))
    assert store.reset_words("default") == 2
    assert store.list_words("default") == {}


# Levels


@pytest.mark.parametrize("value,expected", [("-1", -1), ("0", 0), (" 7 ", 7), (10, 10)])
def test_parse_level(value, expected):
    assert parse_level(value) == expected


@pytest.mark.parametrize("value", ["-2", "11", "abc", "", None, "3.5"])
def test_parse_level_rejects(value):
    with pytest.raises(ArgumentError):
        parse_level(value)


def test_level_adjustments(store):
    seed_words(store, "default", 我=make_record("wǒ"))

    with pytest.raises(ArgumentError):
        store.set_level("default", "我", -2)
    with pytest.raises(ArgumentError):
        store.set_level("default", "我", 11)

    assert store.set_level("default", "我", 10).level == 10
    assert store.level_up("default", "我").level == 10

    assert store.set_level("default", "我", 0).level == 0
    assert store.level_down("default", "我").level == 0

    assert store.level_up("default", "我").level == 1
    assert store.unset_level("default", "我").level == -1
    assert store.get_word("default", "我").level == -1


def test_list_words_by_level(store):
    seed_words(
        store,
        "default",
        我=make_record("wǒ", level=3),
        你=make_record("nǐ"),
        他=make_record("tā", level=3),
    )

    assert set(store.list_words("default", level=3)) == {"我", "他"}
    assert set(store.list_words("default", level=-1)) == {"你"}
    assert store.list_words("default", level=0) == {}
    with pytest.raises(ArgumentError):
        store.list_words("default", level=12)


# Phrases


def test_generate_phrase(tmp_path):
    generator = FakeGenerator(
        phrases=[{"phrase": " 你好我 ", "pinyin": "nǐ hǎo wǒ", "translation": "hello me", "meaningful": True}]
    )
    store = open_store(tmp_path / "home", base_decks_dir=None, generator=generator)

    phrase, record = asyncio.run(
        store.generate_phrase("default", ["你好", "我"], ["旧的"], focus_word="我", about="greetings")
    )

    assert phrase == "你好我"
    assert record == PhraseRecord(pinyin="nǐ hǎo wǒ", translation="hello me", note="")
    assert generator.phrase_calls == [(["你好", "我"], ["旧的"], "我", "greetings")]

    store.save_phrase("default", phrase, record)
    assert store.list_phrases("default") == {"你好我": record}


def test_generate_phrase_no_result(store):
    with pytest.raises(NoResultError):
        asyncio.run(store.generate_phrase("default", ["你好"], []))


def test_generate_phrase_errors(store, generator):
    with pytest.raises(ArgumentError):
        asyncio.run(store.generate_phrase("default", [], []))
    with pytest.raises(NotFoundError):
        asyncio.run(store.generate_phrase("nope", ["你好"], []))
    assert generator.phrase_calls == []


# Scenario


def test_scenario_default_protected_and_import_conflict(store, tmp_path):
    assert store.deck_names == ["default"]

    store.add_deck("hsk1")
    seed_words(store, "hsk1", 我=make_record("wǒ", ["I"]))
    with pytest.raises(ProtectedError):
        store.remove_deck("default")

    path = tmp_path / "hsk1.json"
    path.write_text(json.dumps({"words": {"我": {"pinyin": "wǒ"}}}), encoding="utf-8")
    with pytest.raises(AlreadyExistsError):
        store.import_deck_file(path)
