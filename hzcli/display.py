"""Table rendering for words, decks and phrases."""

from datetime import datetime

import pandas as pd

from hzcli.models import Deck, PhraseRecord, WordRecord

GREEN_TICK = "\x1b[32m✓\x1b[0m"
RED_CROSS = "\x1b[31m✗\x1b[0m"


def _or_dash(value) -> str:
    return str(value) if value else "-"


def format_date(created_at: str) -> str:
    if not created_at:
        return "-"
    try:
        return datetime.fromisoformat(created_at.replace("Z", "+00:00")).strftime("%Y-%m-%d")
    except ValueError:
        return created_at


def render_table(rows: list[dict]) -> str:
    if not rows:
        return ""
    return pd.DataFrame(rows).to_string(index=False)


def format_words(words: dict[str, WordRecord]) -> str:
    rows = [
        {
            "Name": word,
            "Pinyin": _or_dash(record.pinyin),
            "Tone": _or_dash(record.tone),
            "Translations": _or_dash(", ".join(record.translations)),
            "Note": _or_dash(record.note),
            "Example Sentence": _or_dash(record.sentence),
            "Sentence Pinyin": _or_dash(record.sentence_pinyin),
            "Sentence Translation": _or_dash(record.sentence_translation),
            "Sentence Definition": _or_dash(record.sentence_definition),
            "Level": str(record.level) if record.level >= 0 else "-",
            "Comment": _or_dash(record.comment),
            "Created": format_date(record.created_at),
        }
        for word, record in words.items()
    ]
    return render_table(rows)


def format_decks(decks: dict[str, Deck]) -> str:
    rows = [
        {
            "Name": name,
            "Description": _or_dash(deck.description),
            "Words": len(deck.words),
            "Phrases": len(deck.phrases),
        }
        for name, deck in decks.items()
    ]
    return render_table(rows)


def format_phrases(phrases: dict[str, PhraseRecord]) -> str:
    rows = [
        {
            "Phrase": phrase,
            "Pinyin": _or_dash(record.pinyin),
            "Translation": _or_dash(record.translation),
            "Note": _or_dash(record.note),
        }
        for phrase, record in phrases.items()
    ]
    return render_table(rows)
