"""File-backed storage for decks, one JSON file per deck."""

import json
from pathlib import Path

from pydantic import ValidationError

import config
from hzcli.errors import CorruptedError, InvalidStateError, NotFoundError
from hzcli.logger import get_logger
from hzcli.models import Deck


def deck_to_json(deck: Deck, indent: int | None = None) -> str:
    """Serialize a deck to its on-disk/interchange JSON shape."""
    return json.dumps(deck.model_dump(by_alias=True), ensure_ascii=False, indent=indent)


def deck_from_json(content: str, name: str) -> Deck:
    """
    Parse deck JSON content.

    Args:
        content: Raw file content
        name: Deck name, used in error messages

    Returns:
        Parsed Deck

    Raises:
        CorruptedError: If the content is empty or cannot be parsed
    """
    if not content or not content.strip():
        raise CorruptedError(f'Deck file "{name}" is empty or corrupted.')
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CorruptedError(f'Deck file "{name}" is not valid JSON: {e}') from e
    return deck_from_data(data, name)


def deck_from_data(data: object, name: str) -> Deck:
    """Validate already-parsed deck data."""
    if not isinstance(data, dict):
        raise CorruptedError(f'Deck "{name}" must be a JSON object.')
    try:
        return Deck.model_validate(data)
    except ValidationError as e:
        raise CorruptedError(f'Deck "{name}" has an invalid shape: {e}') from e


class DeckRepository:
    """Loads, saves and deletes deck files inside a decks directory."""

    def __init__(self, decks_dir: Path = config.DECKS_DIR):
        """
        Initialize deck repository.

        Args:
            decks_dir: Directory holding <deckName>.json files
        """
        self.decks_dir = decks_dir
        self.logger = get_logger()

    def ensure_dir(self) -> None:
        self.decks_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.decks_dir / f"{name}{config.DECK_FILE_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def load(self, name: str) -> Deck:
        """
        Load a deck from its file.

        Raises:
            NotFoundError: If the deck file does not exist
            CorruptedError: If the file is empty or unparseable
        """
        path = self.path_for(name)
        if not path.is_file():
            raise NotFoundError(f'Deck file for "{name}" does not exist.')

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
        self.logger.debug(f"Loaded deck file: {path}")
        return deck_from_json(content, name)

    def save(self, name: str, deck: Deck) -> None:
        """
        Overwrite a deck file with the given deck.

        Raises:
            InvalidStateError: If the serialized content is empty
        """
        content = deck_to_json(deck)
        if not content:
            raise InvalidStateError(f'Cannot save empty deck "{name}".')

        self.ensure_dir()
        path = self.path_for(name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        self.logger.debug(f"Saved deck file: {path}")

    def delete(self, name: str) -> None:
        """
        Remove a deck file.

        Raises:
            NotFoundError: If the deck file does not exist
        """
        path = self.path_for(name)
        if not path.is_file():
            raise NotFoundError(f'Deck file for "{name}" does not exist.')
        path.unlink()
        self.logger.debug(f"Deleted deck file: {path}")
