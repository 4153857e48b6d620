from __future__ import annotations

from typing import Optional

import pytest

from hzcli.models import GeneratedPhrase, WordData, WordRecord
from hzcli.store import Store, open_store


class FakeGenerator:
    """In-memory content generator recording every call."""

    def __init__(self, words: dict[str, dict] | None = None, phrases: list[dict] | None = None):
        self.words = words or {}
        self.phrases = list(phrases or [])
        self.word_calls: list[str] = []
        self.phrase_calls: list[tuple] = []

    async def fetch_word_data(self, word: str) -> WordData:
        self.word_calls.append(word)
        return WordData.model_validate(self.words.get(word, {"pinyin": "", "translations": []}))

    async def generate_phrase(
        self,
        words: list[str],
        previous_phrases: list[str],
        focus_word: Optional[str] = None,
        about: Optional[str] = None,
    ) -> GeneratedPhrase:
        self.phrase_calls.append((list(words), list(previous_phrases), focus_word, about))
        if not self.phrases:
            return GeneratedPhrase(meaningful=False)
        return GeneratedPhrase.model_validate(self.phrases.pop(0))


def make_record(pinyin: str = "", translations: list[str] | None = None, **kwargs) -> WordRecord:
    return WordRecord(pinyin=pinyin, translations=translations or [], **kwargs)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(
        words={
            "你好": {
                "pinyin": "nǐ hǎo",
                "tone": 3,
                "translations": [" hello ", "hi"],
                "sentence": "你好，朋友。",
                "sentencePinyin": "nǐ hǎo, péngyou.",
                "sentenceTranslation": "Hello, friend.",
                "comment": "generated comment",
            },
            "谢谢": {"pinyin": "xièxie", "tone": "4", "translations": ["thank you"]},
        }
    )


@pytest.fixture
def store(tmp_path, generator) -> Store:
    return open_store(tmp_path / "home", base_decks_dir=None, generator=generator)


@pytest.fixture
def base_decks_dir(tmp_path):
    path = tmp_path / "base_decks"
    path.mkdir()
    (path / "starter.json").write_text(
        '{"words": {"我": {"pinyin": "wǒ", "translations": ["I"]}}, "description": "Starter"}',
        encoding="utf-8",
    )
    return path
