#!/usr/bin/env python3
"""hzcli - Chinese vocabulary flashcards from the command line."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from tqdm import tqdm

import config
from hzcli.display import GREEN_TICK, RED_CROSS, format_decks, format_phrases, format_words
from hzcli.errors import ArgumentError, HzcliError, NoResultError
from hzcli.logger import setup_logger
from hzcli.quiz import Question, QuizCategory, QuizSession, parse_category
from hzcli.store import Store, open_store, parse_level


# Command handlers


def cmd_llm_set_key(store: Store, args, logger: logging.Logger) -> None:
    store.set_api_key(args.api_key)


def cmd_deck_list(store: Store, args, logger: logging.Logger) -> None:
    decks = store.list_decks()
    if not decks:
        logger.info("No decks available.")
    else:
        logger.info(format_decks(decks))


def cmd_deck_add(store: Store, args, logger: logging.Logger) -> None:
    store.add_deck(args.name, args.description)


def cmd_deck_remove(store: Store, args, logger: logging.Logger) -> None:
    store.remove_deck(args.name)


def cmd_deck_merge(store: Store, args, logger: logging.Logger) -> None:
    store.merge_decks(args.dest, args.source, delete_source=args.delete_source)


def cmd_deck_clone(store: Store, args, logger: logging.Logger) -> None:
    store.clone_deck(args.dest, args.source)


def cmd_deck_export(store: Store, args, logger: logging.Logger) -> None:
    store.export_deck(args.name, Path("."), force=args.force)


def cmd_deck_import(store: Store, args, logger: logging.Logger) -> None:
    name = store.import_deck_file(Path(args.input), merge=args.merge, replace=args.replace)
    logger.info(f'Deck "{name}" imported successfully from "{args.input}".')


def cmd_word_list(store: Store, args, logger: logging.Logger) -> None:
    words = store.list_words(args.deck, level=args.level)
    if not words:
        logger.info(f'No words available in deck "{args.deck}".')
    else:
        logger.info(format_words(words))


def cmd_word_count(store: Store, args, logger: logging.Logger) -> None:
    logger.info(str(store.count_words(args.deck)))


def cmd_word_reset(store: Store, args, logger: logging.Logger) -> None:
    store.reset_words(args.deck)


def cmd_word_add(store: Store, args, logger: logging.Logger) -> None:
    async def add_all() -> dict:
        added = {}
        words = args.words if len(args.words) == 1 else tqdm(args.words, desc="  Adding")
        for word in words:
            added[word] = await store.add_word(args.deck, word, args.comment, args.level)
        return added

    logger.info(format_words(asyncio.run(add_all())))


def cmd_word_show(store: Store, args, logger: logging.Logger) -> None:
    logger.info(format_words({args.word: store.get_word(args.deck, args.word)}))


def cmd_word_copy(store: Store, args, logger: logging.Logger) -> None:
    record = store.copy_word(args.source, args.dest, args.word, force=args.force)
    logger.info(format_words({args.word: record}))


def cmd_word_remove(store: Store, args, logger: logging.Logger) -> None:
    store.remove_word(args.deck, args.word)


def cmd_word_set_level(store: Store, args, logger: logging.Logger) -> None:
    logger.info(format_words({args.word: store.set_level(args.deck, args.word, args.level)}))


def cmd_word_level_up(store: Store, args, logger: logging.Logger) -> None:
    logger.info(format_words({args.word: store.level_up(args.deck, args.word)}))


def cmd_word_level_down(store: Store, args, logger: logging.Logger) -> None:
    logger.info(format_words({args.word: store.level_down(args.deck, args.word)}))


def cmd_word_unset_level(store: Store, args, logger: logging.Logger) -> None:
    logger.info(format_words({args.word: store.unset_level(args.deck, args.word)}))


def cmd_word_comment(store: Store, args, logger: logging.Logger) -> None:
    record = store.set_word_comment(args.deck, args.word, args.comment)
    logger.info(format_words({args.word: record}))


def cmd_phrase_generate(store: Store, args, logger: logging.Logger) -> None:
    words = list(store.list_words(args.deck))
    if not words:
        logger.info(f'No words available in deck "{args.deck}".')
        return

    count = max(args.number, 1)

    async def generate_all() -> None:
        generated: list[str] = []
        for i in tqdm(range(count), desc="  Generating", disable=count == 1):
            try:
                phrase, record = await store.generate_phrase(
                    args.deck, words, generated, focus_word=args.word, about=args.about
                )
            except NoResultError as e:
                logger.warning(str(e))
                break
            generated.append(phrase)
            if args.save:
                store.save_phrase(args.deck, phrase, record)

            logger.info(f"Phrase: {phrase}")
            logger.info(f"Pinyin: {record.pinyin}")
            logger.info(f"Translation: {record.translation}")
            logger.info(f"Note: {record.note or '-'}")
            if i < count - 1:
                logger.info("---")

    asyncio.run(generate_all())


def cmd_phrase_list(store: Store, args, logger: logging.Logger) -> None:
    phrases = store.list_phrases(args.deck)
    if not phrases:
        logger.info(f'No phrases saved in deck "{args.deck}".')
    else:
        logger.info(format_phrases(phrases))


def cmd_quiz(store: Store, args, logger: logging.Logger) -> None:
    category = parse_category(args.kind)
    words = store.list_words(args.deck)
    if not words:
        logger.info(f'No words available in deck "{args.deck}".')
        return

    session = QuizSession(words, category=category)

    def ask(question: Question) -> str:
        if question.number > 1:
            logger.info("")
        return input(question.prompt)

    def report(question: Question, response: str, correct: bool) -> None:
        if correct:
            logger.info(f'{GREEN_TICK} Correct! The answer is "{question.expected}".')
        else:
            logger.info(f'{RED_CROSS} Incorrect! The correct answer is "{question.expected}".')

    result = session.run(args.number, ask, report)
    if result.asked < args.number:
        logger.info("No more words available for testing in this deck.")

    logger.info("\nTest completed!")
    logger.info(f"Total words tested: {result.asked}")
    logger.info(f"{GREEN_TICK} Successfully answered: {result.correct} words")
    logger.info(f"{RED_CROSS} Total errors: {result.total_errors} words")
    for kind in QuizCategory:
        failed = result.failures[kind]
        line = f"{kind.label} errors: {len(failed)} words"
        if failed:
            line += f" ({', '.join(failed)})"
        logger.info(line)


# Argument parsing


def level_arg(value: str) -> int:
    try:
        return parse_level(value)
    except ArgumentError as e:
        raise argparse.ArgumentTypeError(str(e))


def add_deck_option(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument("-d", "--deck", default=config.DEFAULT_DECK_NAME, help=help_text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hzcli",
        description="Chinese vocabulary flashcards with AI-generated word data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Store the API key used to generate word data
  hzcli llm set-key sk-...

  # Add words and quiz yourself
  hzcli word add 你好 谢谢 -d default
  hzcli quiz -n 20

  # Share a deck
  hzcli deck export hsk1
  hzcli deck import hsk1.json --merge
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    commands = parser.add_subparsers(dest="command", required=True)

    # llm
    llm = commands.add_parser("llm", help="Manage LLM settings")
    llm_cmds = llm.add_subparsers(dest="llm_command", required=True)
    p = llm_cmds.add_parser("set-key", aliases=["sk"], help="Set the LLM API key")
    p.add_argument("api_key")
    p.set_defaults(handler=cmd_llm_set_key)

    # deck
    deck = commands.add_parser("deck", aliases=["decks", "d"], help="Manage your decks")
    deck_cmds = deck.add_subparsers(dest="deck_command", required=True)

    p = deck_cmds.add_parser("list", aliases=["ls"], help="List all decks")
    p.set_defaults(handler=cmd_deck_list)

    p = deck_cmds.add_parser("add", aliases=["a"], help="Add a new deck")
    p.add_argument("name")
    p.add_argument("-d", "--description", help="Description of the deck")
    p.set_defaults(handler=cmd_deck_add)

    p = deck_cmds.add_parser("remove", aliases=["rm"], help="Remove a deck")
    p.add_argument("name")
    p.set_defaults(handler=cmd_deck_remove)

    p = deck_cmds.add_parser("merge", aliases=["m"], help="Merge the source deck into the destination deck")
    p.add_argument("source")
    p.add_argument("dest")
    p.add_argument("-d", "--delete-source", action="store_true", help="Delete the source deck after merging")
    p.set_defaults(handler=cmd_deck_merge)

    p = deck_cmds.add_parser("clone", aliases=["c"], help="Clone the source deck into a new destination deck")
    p.add_argument("source")
    p.add_argument("dest")
    p.set_defaults(handler=cmd_deck_clone)

    p = deck_cmds.add_parser("export", aliases=["e"], help="Export a deck to <name>.json")
    p.add_argument("name", nargs="?", default=config.DEFAULT_DECK_NAME)
    p.add_argument("-f", "--force", action="store_true", help="Overwrite an existing file")
    p.set_defaults(handler=cmd_deck_export)

    p = deck_cmds.add_parser("import", aliases=["i"], help="Import a deck from <name>.json")
    p.add_argument("input")
    p.add_argument("-m", "--merge", action="store_true", help="Merge into an existing deck of the same name")
    p.add_argument("-r", "--replace", action="store_true", help="Replace an existing deck of the same name")
    p.set_defaults(handler=cmd_deck_import)

    # word
    word = commands.add_parser("word", aliases=["words", "w"], help="Manage your words")
    word_cmds = word.add_subparsers(dest="word_command", required=True)

    p = word_cmds.add_parser("list", aliases=["ls"], help="List the words of a deck")
    add_deck_option(p, "Deck to list words from")
    p.add_argument("-l", "--level", type=level_arg, help="Filter by level (0-10, -1 for unset)")
    p.set_defaults(handler=cmd_word_list)

    p = word_cmds.add_parser("count", aliases=["c"], help="Count the words of a deck")
    add_deck_option(p, "Deck to count words in")
    p.set_defaults(handler=cmd_word_count)

    p = word_cmds.add_parser("reset", help="Remove every word of a deck")
    add_deck_option(p, "Deck to reset")
    p.set_defaults(handler=cmd_word_reset)

    p = word_cmds.add_parser("add", aliases=["a"], help="Add words with generated data")
    p.add_argument("words", nargs="+")
    add_deck_option(p, "Deck to add the words to")
    p.add_argument("-c", "--comment", help="Comment about the word")
    p.add_argument("-l", "--level", type=level_arg, default=config.LEVEL_UNSET,
                   help="Level of the word (0-10, -1 to unset level)")
    p.set_defaults(handler=cmd_word_add)

    p = word_cmds.add_parser("show", help="Show a single word")
    p.add_argument("word")
    add_deck_option(p, "Deck holding the word")
    p.set_defaults(handler=cmd_word_show)

    p = word_cmds.add_parser("copy", aliases=["cp"], help="Copy a word from one deck to another")
    p.add_argument("word")
    p.add_argument("source")
    p.add_argument("dest")
    p.add_argument("-f", "--force", action="store_true", help="Overwrite the word in the destination deck")
    p.set_defaults(handler=cmd_word_copy)

    p = word_cmds.add_parser("remove", aliases=["rm"], help="Remove a word")
    p.add_argument("word")
    add_deck_option(p, "Deck to remove the word from")
    p.set_defaults(handler=cmd_word_remove)

    p = word_cmds.add_parser("set-level", aliases=["sl"], help="Set the level of a word")
    p.add_argument("word")
    p.add_argument("level")
    add_deck_option(p, "Deck holding the word")
    p.set_defaults(handler=cmd_word_set_level)

    for name, alias, handler, help_text in (
        ("level-up", "up", cmd_word_level_up, "Increase the level of a word"),
        ("level-down", "down", cmd_word_level_down, "Decrease the level of a word"),
        ("unset-level", "ul", cmd_word_unset_level, "Unset the level of a word"),
    ):
        p = word_cmds.add_parser(name, aliases=[alias], help=help_text)
        p.add_argument("word")
        add_deck_option(p, "Deck holding the word")
        p.set_defaults(handler=handler)

    p = word_cmds.add_parser("comment", help="Add or change the comment of a word")
    p.add_argument("word")
    p.add_argument("comment")
    add_deck_option(p, "Deck holding the word")
    p.set_defaults(handler=cmd_word_comment)

    # phrase
    phrase = commands.add_parser("phrase", aliases=["p"], help="Generate phrases")
    phrase_cmds = phrase.add_subparsers(dest="phrase_command", required=True)

    p = phrase_cmds.add_parser("generate", aliases=["gen"], help="Generate phrases from deck words")
    add_deck_option(p, "Deck to generate phrases from")
    p.add_argument("-w", "--word", help="Include a specific word in the phrase")
    p.add_argument("-n", "--number", type=int, default=1, help="Number of phrases to generate")
    p.add_argument("--about", help="Topic of the phrase")
    p.add_argument("--save", action="store_true", help="Save generated phrases to the deck")
    p.set_defaults(handler=cmd_phrase_generate)

    p = phrase_cmds.add_parser("list", aliases=["ls"], help="List saved phrases")
    add_deck_option(p, "Deck to list phrases from")
    p.set_defaults(handler=cmd_phrase_list)

    # quiz
    p = commands.add_parser("quiz", aliases=["test"], help="Test your knowledge of a deck")
    add_deck_option(p, "Deck to test words from")
    p.add_argument("-k", "--kind", default="mixed",
                   choices=["mixed"] + [c.value for c in QuizCategory], help="Test kind")
    p.add_argument("-n", "--number", type=int, default=config.DEFAULT_QUIZ_QUESTIONS,
                   help="Number of questions")
    p.set_defaults(handler=cmd_quiz)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger = setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        with open_store() as store:
            args.handler(store, args, logger)
    except (KeyboardInterrupt, EOFError):
        logger.warning("Interrupted by user.")
        return 130
    except HzcliError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
