"""Pydantic data models for stores, decks, words and phrases."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

import config


class CamelModel(BaseModel):
    """Base model persisted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoreMetadata(CamelModel):
    """Registry of known decks and shared settings, persisted in store.json."""

    api_key: str = ""
    deck_names: list[str] = Field(default_factory=list)
    seeded_decks: list[str] = Field(default_factory=list)


class WordData(CamelModel):
    """Linguistic metadata returned by the content generator for a headword."""

    pinyin: str = ""
    tone: str = "-"
    translations: list[str] = Field(default_factory=list)
    note: str = ""
    sentence: str = ""
    sentence_pinyin: str = ""
    sentence_translation: str = ""
    sentence_definition: str = ""
    comment: str = ""

    @field_validator("tone", mode="before")
    @classmethod
    def _coerce_tone(cls, value):
        if value is None or value == "":
            return "-"
        return str(value)

    @field_validator("translations", mode="before")
    @classmethod
    def _split_translations(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [t for t in value.split(",") if t.strip()]
        return value

    @field_validator(
        "pinyin",
        "note",
        "sentence",
        "sentence_pinyin",
        "sentence_translation",
        "sentence_definition",
        "comment",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class WordRecord(WordData):
    """A vocabulary entry stored in a deck, keyed by its headword."""

    level: int = Field(default=config.LEVEL_UNSET, ge=config.LEVEL_UNSET, le=config.LEVEL_MAX)
    created_at: str = ""


class PhraseRecord(CamelModel):
    """A generated phrase stored in a deck, keyed by the phrase text."""

    pinyin: str = ""
    translation: str = ""
    note: str = ""


class GeneratedPhrase(CamelModel):
    """Phrase payload returned by the content generator."""

    phrase: str = ""
    pinyin: str = ""
    translation: str = ""
    meaningful: bool = True
    note: str = ""

    @field_validator("phrase", "pinyin", "translation", "note", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    def to_record(self) -> PhraseRecord:
        return PhraseRecord(pinyin=self.pinyin, translation=self.translation, note=self.note)


class Deck(CamelModel):
    """A named collection of words and phrases, one JSON file per deck."""

    words: dict[str, WordRecord] = Field(default_factory=dict)
    phrases: dict[str, PhraseRecord] = Field(default_factory=dict)
    description: Optional[str] = ""

    @field_validator("phrases", mode="before")
    @classmethod
    def _phrases_default(cls, value):
        return {} if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, value):
        return "" if value is None else value
