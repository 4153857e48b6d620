"""Store: the deck registry and every deck/word operation built on it."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

import config
from hzcli.deck_repository import DeckRepository, deck_from_data, deck_from_json, deck_to_json
from hzcli.errors import (
    AlreadyExistsError,
    ArgumentError,
    CorruptedError,
    NoResultError,
    NotFoundError,
    ProtectedError,
)
from hzcli.llm_client import ContentGenerator, LLMClient
from hzcli.logger import get_logger
from hzcli.models import Deck, PhraseRecord, StoreMetadata, WordRecord


def parse_level(value) -> int:
    """
    Parse a word confidence level.

    Args:
        value: Level as int or string

    Returns:
        Level in [-1, 10], where -1 means unset

    Raises:
        ArgumentError: If the value is not an integer in range
    """
    try:
        level = int(str(value).strip())
    except (TypeError, ValueError):
        raise ArgumentError(
            f"Level must be a number between {config.LEVEL_UNSET} (not set) "
            f"and {config.LEVEL_MAX} (max confidence)."
        )
    if level < config.LEVEL_UNSET or level > config.LEVEL_MAX:
        raise ArgumentError(
            f"Level must be a number between {config.LEVEL_UNSET} (not set) "
            f"and {config.LEVEL_MAX} (max confidence)."
        )
    return level


def validate_deck_name(name: str) -> str:
    """Reject deck names that cannot be used as a file name in the decks directory."""
    if not name or not name.strip():
        raise ArgumentError("Deck name must not be empty.")
    if "/" in name or "\\" in name or os.sep in name or name.startswith("."):
        raise ArgumentError(f'Invalid deck name "{name}".')
    return name


def validate_headword(word: str) -> str:
    if not word or not word.strip():
        raise ArgumentError("Word must not be empty.")
    return word


def merge_deck_into(target: Deck, source: Deck) -> int:
    """
    Copy words and phrases missing from target out of source.

    Entries already present in target are never overwritten.

    Returns:
        Number of words copied
    """
    copied = 0
    for word, record in source.words.items():
        if word not in target.words:
            target.words[word] = record.model_copy(deep=True)
            copied += 1
    for phrase, record in source.phrases.items():
        if phrase not in target.phrases:
            target.phrases[phrase] = record.model_copy(deep=True)
    return copied


def load_metadata(store_path: Path) -> StoreMetadata:
    """Load store metadata, raising CorruptedError on unreadable content."""
    with open(store_path, "r", encoding="utf-8") as f:
        content = f.read()
    if not content.strip():
        raise CorruptedError(f"Store file {store_path} is empty.")
    try:
        return StoreMetadata.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as e:
        raise CorruptedError(f"Store file {store_path} is corrupted: {e}") from e


def save_metadata(metadata: StoreMetadata, store_path: Path) -> None:
    store_path.parent.mkdir(parents=True, exist_ok=True)
    with open(store_path, "w", encoding="utf-8") as f:
        json.dump(metadata.model_dump(by_alias=True), f, ensure_ascii=False, indent=2)


class Store:
    """
    Handle on a store directory.

    The metadata registry is authoritative for which decks exist; each
    deck's file is authoritative for its content. Every mutating operation
    loads the relevant file, mutates it and persists it before returning.
    """

    def __init__(
        self,
        metadata: StoreMetadata,
        store_path: Path = config.STORE_PATH,
        decks_dir: Path = config.DECKS_DIR,
        generator: Optional[ContentGenerator] = None,
    ):
        """
        Initialize a store handle. Use open_store() to bootstrap from disk.

        Args:
            metadata: Loaded store metadata
            store_path: Path of the metadata file
            decks_dir: Directory holding deck files
            generator: Content generator; an LLMClient using the configured
                API key is created on first use if omitted
        """
        self.metadata = metadata
        self.store_path = store_path
        self.repository = DeckRepository(decks_dir)
        self._generator = generator
        self.logger = get_logger()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the handle. Every mutation has already been persisted."""
        self.logger.debug(f"Closed store {self.store_path}")

    # Settings

    @property
    def api_key(self) -> str:
        return self.metadata.api_key or os.environ.get(config.LLM_API_KEY_ENV, "")

    @property
    def generator(self) -> ContentGenerator:
        if self._generator is None:
            self._generator = LLMClient(self.api_key)
        return self._generator

    def set_api_key(self, api_key: str) -> None:
        self.metadata.api_key = api_key
        if isinstance(self._generator, LLMClient):
            self._generator = LLMClient(api_key)
        self._persist_metadata()
        self.logger.info("LLM API key set successfully.")

    # Registry

    @property
    def deck_names(self) -> list[str]:
        return list(self.metadata.deck_names)

    def has_deck(self, name: str) -> bool:
        return name in self.metadata.deck_names

    def _persist_metadata(self) -> None:
        save_metadata(self.metadata, self.store_path)
        self.logger.debug(f"Saved store metadata: {self.store_path}")

    def _register(self, name: str) -> None:
        if name not in self.metadata.deck_names:
            self.metadata.deck_names.append(name)

    def _require_deck(self, name: str) -> None:
        if not self.has_deck(name):
            raise NotFoundError(f'Deck with name "{name}" does not exist.')

    def _load_deck(self, name: str) -> Deck:
        self._require_deck(name)
        try:
            return self.repository.load(name)
        except NotFoundError as e:
            raise CorruptedError(f'Deck "{name}" is registered but its file is missing.') from e

    def _save_deck(self, name: str, deck: Deck) -> None:
        self.repository.save(name, deck)

    # Decks

    def list_decks(self) -> dict[str, Deck]:
        return {name: self._load_deck(name) for name in self.metadata.deck_names}

    def get_deck(self, name: str) -> Deck:
        return self._load_deck(name)

    def add_deck(self, name: str, description: Optional[str] = None) -> None:
        validate_deck_name(name)
        if self.has_deck(name):
            raise AlreadyExistsError(f'Deck with name "{name}" already exists.')

        self._save_deck(name, Deck(description=description or ""))
        self._register(name)
        self._persist_metadata()
        self.logger.info(f'Added deck "{name}".')

    def remove_deck(self, name: str) -> None:
        """
        Remove a deck and its file.

        Raises:
            ProtectedError: For the default deck
            NotFoundError: If the deck is not registered
        """
        if name == config.DEFAULT_DECK_NAME:
            raise ProtectedError("Cannot remove the default deck.")
        self._require_deck(name)

        if self.repository.exists(name):
            self.repository.delete(name)
        else:
            self.logger.warning(f'Deck file for "{name}" was already missing.')

        self.metadata.deck_names.remove(name)
        self._persist_metadata()
        self.logger.info(f'Removed deck "{name}".')

    def merge_decks(self, target: str, source: str, delete_source: bool = False) -> int:
        """
        Merge the words of source into target. Target wins on conflicts.

        Args:
            target: Deck receiving the words
            source: Deck providing the words
            delete_source: Remove the source deck afterwards

        Returns:
            Number of words copied into target
        """
        if target == source:
            raise ArgumentError("Cannot merge a deck into itself.")
        if delete_source and source == config.DEFAULT_DECK_NAME:
            raise ProtectedError("Cannot remove the default deck.")
        if not self.has_deck(target):
            raise NotFoundError(f'Target deck "{target}" does not exist.')
        if not self.has_deck(source):
            raise NotFoundError(f'Source deck "{source}" does not exist.')

        target_deck = self._load_deck(target)
        source_deck = self._load_deck(source)

        copied = merge_deck_into(target_deck, source_deck)
        self._save_deck(target, target_deck)
        self.logger.info(f'Merged {copied} words from "{source}" into "{target}".')

        if delete_source:
            self.remove_deck(source)

        return copied

    def import_deck(
        self,
        name: str,
        deck_data: Deck | dict,
        merge: bool = False,
        replace: bool = False,
    ) -> None:
        """
        Register a deck from interchange data.

        Args:
            name: Deck name
            deck_data: Parsed interchange JSON or a Deck
            merge: Merge into an existing deck of the same name (existing words win)
            replace: Replace an existing deck of the same name

        Raises:
            ArgumentError: If both merge and replace are requested
            AlreadyExistsError: If the deck exists and neither flag is set
            CorruptedError: If deck_data does not have the deck shape
        """
        if merge and replace:
            raise ArgumentError("Use merge or replace, not both.")
        validate_deck_name(name)
        deck = deck_data if isinstance(deck_data, Deck) else deck_from_data(deck_data, name)

        if self.has_deck(name):
            if merge:
                self._merge_import(name, deck)
                return
            if not replace:
                raise AlreadyExistsError(
                    f'Deck with name "{name}" already exists. Use merge or replace.'
                )
            if self.repository.exists(name):
                self.repository.delete(name)
            self._save_deck(name, deck)
            self.logger.info(f'Replaced deck "{name}" with {len(deck.words)} imported words.')
            return

        self._save_deck(name, deck)
        self._register(name)
        self._persist_metadata()
        self.logger.info(f'Imported deck "{name}" with {len(deck.words)} words.')

    def _staging_name(self, name: str) -> str:
        """First "<name>-import-staging[-N]" that is neither registered nor on disk."""
        staging = name + config.IMPORT_STAGING_SUFFIX
        counter = 1
        while self.has_deck(staging) or self.repository.exists(staging):
            staging = f"{name}{config.IMPORT_STAGING_SUFFIX}-{counter}"
            counter += 1
        return staging

    def _merge_import(self, name: str, deck: Deck) -> None:
        staging = self._staging_name(name)
        self.repository.save(staging, deck)
        try:
            staged = self.repository.load(staging)
            target_deck = self._load_deck(name)
            copied = merge_deck_into(target_deck, staged)
            self._save_deck(name, target_deck)
        finally:
            self.repository.delete(staging)
        self.logger.info(f'Merged {copied} imported words into "{name}".')

    def import_deck_file(self, path: Path, merge: bool = False, replace: bool = False) -> str:
        """
        Import a <deckName>.json interchange file.

        Returns:
            Name of the imported deck
        """
        path = Path(path)
        if path.suffix != config.DECK_FILE_SUFFIX:
            raise ArgumentError("Input file must be a .json file.")
        if not path.is_file():
            raise NotFoundError(f'File "{path}" does not exist.')

        name = path.stem
        with open(path, "r", encoding="utf-8") as f:
            deck = deck_from_json(f.read(), name)
        self.import_deck(name, deck, merge=merge, replace=replace)
        return name

    def export_deck(
        self,
        name: str = config.DEFAULT_DECK_NAME,
        output_dir: Path = Path("."),
        force: bool = False,
    ) -> Path:
        """
        Write a deck to <output_dir>/<name>.json in interchange format.

        Raises:
            AlreadyExistsError: If the output file exists and force is False
        """
        deck = self._load_deck(name)
        output = Path(output_dir) / f"{name}{config.DECK_FILE_SUFFIX}"
        if output.exists() and not force:
            raise AlreadyExistsError(
                f'File "{output}" already exists. Use --force to overwrite it.'
            )

        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", encoding="utf-8") as f:
            f.write(deck_to_json(deck, indent=2))
        self.logger.info(f'Deck "{name}" exported successfully to "{output}".')
        return output

    def clone_deck(self, target: str, source: str) -> None:
        """Create target as an independent deep copy of source."""
        validate_deck_name(target)
        if self.has_deck(target):
            raise AlreadyExistsError(f'Deck with name "{target}" already exists.')
        if not self.has_deck(source):
            raise NotFoundError(f'Source deck "{source}" does not exist.')

        clone = self._load_deck(source).model_copy(deep=True)
        self._save_deck(target, clone)
        self._register(target)
        self._persist_metadata()
        self.logger.info(f'Cloned deck "{source}" into "{target}".')

    # Words

    def _require_word(self, deck: Deck, name: str, word: str) -> WordRecord:
        record = deck.words.get(word)
        if record is None:
            raise NotFoundError(f'Word "{word}" does not exist in deck "{name}".')
        return record

    def get_word(self, name: str, word: str) -> WordRecord:
        return self._require_word(self._load_deck(name), name, word)

    def has_word(self, name: str, word: str) -> bool:
        return word in self._load_deck(name).words

    def list_words(self, name: str, level: Optional[int] = None) -> dict[str, WordRecord]:
        """
        List the words of a deck.

        Args:
            name: Deck name
            level: Only return words at exactly this level; -1 selects unset words

        Returns:
            Mapping of headword to record, in insertion order
        """
        words = self._load_deck(name).words
        if level is None:
            return words
        level = parse_level(level)
        return {word: record for word, record in words.items() if record.level == level}

    def count_words(self, name: str) -> int:
        return len(self._load_deck(name).words)

    async def add_word(
        self,
        name: str,
        word: str,
        comment: Optional[str] = None,
        level: Optional[int] = None,
    ) -> WordRecord:
        """
        Add a word to a deck with generated metadata.

        Args:
            name: Deck name
            word: Headword (Chinese text)
            comment: Optional comment, overriding the generator's
            level: Optional confidence level, -1 (unset) if omitted

        Returns:
            The stored record
        """
        validate_headword(word)
        level = config.LEVEL_UNSET if level is None else parse_level(level)

        deck = self._load_deck(name)
        if word in deck.words:
            raise AlreadyExistsError(f'Word "{word}" already exists in deck "{name}".')

        data = await self.generator.fetch_word_data(word)
        fields = data.model_dump()
        fields.update(
            translations=[t.strip() for t in data.translations],
            comment=comment or data.comment or "",
            level=level,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        record = WordRecord.model_validate(fields)

        deck.words[word] = record
        self._save_deck(name, deck)
        self.logger.info(f'Added word "{word}" to deck "{name}".')
        return record

    def copy_word(self, source: str, dest: str, word: str, force: bool = False) -> WordRecord:
        """Copy a word record from one deck to another."""
        record = self.get_word(source, word)
        dest_deck = self._load_deck(dest)
        if word in dest_deck.words and not force:
            raise AlreadyExistsError(
                f'Word "{word}" already exists in deck "{dest}". Use --force to overwrite it.'
            )

        dest_deck.words[word] = record.model_copy(deep=True)
        self._save_deck(dest, dest_deck)
        self.logger.info(f'Copied word "{word}" from "{source}" to "{dest}".')
        return dest_deck.words[word]

    def remove_word(self, name: str, word: str) -> None:
        deck = self._load_deck(name)
        self._require_word(deck, name, word)
        del deck.words[word]
        self._save_deck(name, deck)
        self.logger.info(f'Removed word "{word}" from deck "{name}".')

    def reset_words(self, name: str) -> int:
        """Remove every word from a deck. Returns the number removed."""
        deck = self._load_deck(name)
        removed = len(deck.words)
        deck.words = {}
        self._save_deck(name, deck)
        self.logger.info(f'All words in deck "{name}" have been reset.')
        return removed

    def update_word(self, name: str, word: str, record: WordRecord) -> WordRecord:
        deck = self._load_deck(name)
        self._require_word(deck, name, word)
        deck.words[word] = record
        self._save_deck(name, deck)
        self.logger.debug(f'Updated word "{word}" in deck "{name}".')
        return record

    def set_word_comment(self, name: str, word: str, comment: str) -> WordRecord:
        deck = self._load_deck(name)
        record = self._require_word(deck, name, word)
        record.comment = comment
        self._save_deck(name, deck)
        return record

    def _change_level(self, name: str, word: str, change: Callable[[int], int]) -> WordRecord:
        deck = self._load_deck(name)
        record = self._require_word(deck, name, word)
        record.level = change(record.level)
        self._save_deck(name, deck)
        self.logger.debug(f'Level of "{word}" in deck "{name}" is now {record.level}.')
        return record

    def set_level(self, name: str, word: str, level) -> WordRecord:
        level = parse_level(level)
        return self._change_level(name, word, lambda _: level)

    def level_up(self, name: str, word: str) -> WordRecord:
        return self._change_level(name, word, lambda lvl: min(lvl + 1, config.LEVEL_MAX))

    def level_down(self, name: str, word: str) -> WordRecord:
        return self._change_level(name, word, lambda lvl: max(lvl - 1, config.LEVEL_MIN))

    def unset_level(self, name: str, word: str) -> WordRecord:
        return self._change_level(name, word, lambda _: config.LEVEL_UNSET)

    # Phrases

    async def generate_phrase(
        self,
        name: str,
        words: list[str],
        previous_phrases: list[str],
        focus_word: Optional[str] = None,
        about: Optional[str] = None,
    ) -> tuple[str, PhraseRecord]:
        """
        Generate a phrase from words of a deck.

        Args:
            name: Deck name
            words: Candidate words
            previous_phrases: Phrases generated earlier, to avoid repeats
            focus_word: Word the phrase must include
            about: Optional topic

        Returns:
            Tuple of (phrase, PhraseRecord)

        Raises:
            ArgumentError: If words is empty
            NoResultError: If no meaningful or novel phrase could be generated
        """
        self._require_deck(name)
        if not words:
            raise ArgumentError("No words provided for phrase generation.")

        generated = await self.generator.generate_phrase(
            words, previous_phrases, focus_word=focus_word, about=about
        )
        if not generated.phrase.strip():
            raise NoResultError(
                "No more meaningful phrase could be generated with the provided words."
            )
        return generated.phrase.strip(), generated.to_record()

    def save_phrase(self, name: str, phrase: str, record: PhraseRecord) -> None:
        deck = self._load_deck(name)
        deck.phrases[phrase] = record
        self._save_deck(name, deck)
        self.logger.debug(f'Saved phrase "{phrase}" to deck "{name}".')

    def list_phrases(self, name: str) -> dict[str, PhraseRecord]:
        return self._load_deck(name).phrases


def seed_base_decks(
    metadata: StoreMetadata,
    repository: DeckRepository,
    base_decks_dir: Path,
    store_path: Path,
) -> list[str]:
    """
    Copy bundled starter decks that have never been seeded into the store.

    Returns:
        Names of the decks seeded on this call
    """
    logger = get_logger()
    seeded = []
    if not base_decks_dir.is_dir():
        return seeded

    for path in sorted(base_decks_dir.glob(f"*{config.DECK_FILE_SUFFIX}")):
        name = path.stem
        if name in metadata.seeded_decks or name in metadata.deck_names:
            continue

        if not repository.exists(name):
            with open(path, "r", encoding="utf-8") as f:
                repository.save(name, deck_from_json(f.read(), name))
        metadata.deck_names.append(name)
        metadata.seeded_decks.append(name)
        save_metadata(metadata, store_path)
        seeded.append(name)
        logger.debug(f"Added base deck: {name}")

    return seeded


def open_store(
    home: Optional[Path] = None,
    base_decks_dir: Optional[Path] = config.BASE_DECKS_DIR,
    generator: Optional[ContentGenerator] = None,
) -> Store:
    """
    Open a store, creating it on first run.

    Args:
        home: Store directory; config.CONFIG_DIR paths are used if omitted
        base_decks_dir: Bundled starter decks to seed, or None to skip seeding
        generator: Content generator to inject

    Returns:
        Store handle
    """
    store_path = config.STORE_PATH if home is None else Path(home) / "store.json"
    decks_dir = config.DECKS_DIR if home is None else Path(home) / "decks"

    # Create store file
    if not store_path.exists():
        save_metadata(StoreMetadata(deck_names=[config.DEFAULT_DECK_NAME]), store_path)

    metadata = load_metadata(store_path)
    repository = DeckRepository(decks_dir)
    repository.ensure_dir()

    # Create default deck
    if not repository.exists(config.DEFAULT_DECK_NAME):
        repository.save(
            config.DEFAULT_DECK_NAME,
            Deck(description=config.DEFAULT_DECK_DESCRIPTION),
        )
    if config.DEFAULT_DECK_NAME not in metadata.deck_names:
        metadata.deck_names.insert(0, config.DEFAULT_DECK_NAME)
        save_metadata(metadata, store_path)

    if base_decks_dir is not None:
        seed_base_decks(metadata, repository, base_decks_dir, store_path)

    return Store(metadata, store_path=store_path, decks_dir=decks_dir, generator=generator)
