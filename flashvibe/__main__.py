"""CLI interface for Flashvibe.

Usage:
    python -m flashvibe add "2+2" "4" -c math       Add a flashcard
    python -m flashvibe list [--folder ID]          List flashcards
    python -m flashvibe study [--category math]     Start a study session
    python -m flashvibe stats                       Show your statistics
    python -m flashvibe folder add "Bio"            Manage folders
    python -m flashvibe category delete math        Manage categories
"""

import argparse
import asyncio
import logging
from collections.abc import Callable

from backend.database import async_session, engine, init_db
from backend.models.records import Difficulty, FlashcardDraft
from backend.store.card_store import UNFILED, CardStore
from backend.store.storage import SqlKeyValueStorage
from backend.study.session import StartOutcome, StudySessionEngine


async def open_store() -> CardStore:
    """Create tables if needed and return a fully loaded store."""
    await init_db()
    store = CardStore(SqlKeyValueStorage(async_session))
    await store.load()
    return store


def _folder_filter(args: argparse.Namespace) -> str | None:
    return UNFILED if getattr(args, "unfiled", False) else getattr(args, "folder", None)


def cmd_add(store: CardStore, args: argparse.Namespace) -> None:
    """Add a flashcard."""
    card = store.create_flashcard(
        FlashcardDraft(
            front=args.front,
            back=args.back,
            category=args.category,
            difficulty=Difficulty(args.difficulty),
            is_latex=args.latex,
            folder_id=args.folder,
        )
    )
    if card is None:
        print("  Both front and back need some text.")
        return
    if card.category not in store.categories:
        print(f"  Note: '{card.category}' is not a known category.")
    print(f"  Added card {card.id}")


def cmd_list(store: CardStore, args: argparse.Namespace) -> None:
    """List flashcards."""
    cards = store.filter_flashcards(category=args.category, folder=_folder_filter(args))
    if not cards:
        print("  No flashcards yet.")
        return
    folder_names = {folder.id: folder.name for folder in store.folders}
    for card in cards:
        folder = folder_names.get(card.folder_id or "", "-")
        latex = " [LaTeX]" if card.is_latex else ""
        print(f"  {card.id}  {card.front}{latex}")
        print(
            f"      {card.category} / {card.difficulty.value} / folder: {folder}"
            f" / {card.correct_count} right, {card.incorrect_count} wrong"
        )


def cmd_delete(store: CardStore, args: argparse.Namespace) -> None:
    if store.delete_flashcard(args.card_id):
        print("  Deleted.")
    else:
        print("  No such card.")


def cmd_move(store: CardStore, args: argparse.Namespace) -> None:
    """Move a card into a folder, or out of any folder."""
    if args.folder_id and store.get_folder(args.folder_id) is None:
        print("  No such folder.")
        return
    if store.move_card_to_folder(args.card_id, args.folder_id) is None:
        print("  No such card.")
        return
    print("  Moved." if args.folder_id else "  Card is now unfiled.")


def cmd_study(store: CardStore, args: argparse.Namespace) -> None:
    """Run an interactive study session."""
    deck = store.filter_flashcards(category=args.category, folder=_folder_filter(args))
    session = StudySessionEngine(store)
    if session.start_session(deck) is StartOutcome.EMPTY_DECK:
        print("\n  No flashcards to study. Add some with `add` first.\n")
        return

    print("\n  Study Session")
    print(f"  {session.total_cards} cards, shuffled")
    print("  Type 'q' to quit\n")

    while not session.is_complete:
        card = session.current_card
        if card is None:
            break
        label = f"[{session.position + 1}/{session.total_cards}]"
        print(f"  {label} {card.category} ({card.difficulty.value})")
        print(f"  Q: {card.front}{'  [LaTeX]' if card.is_latex else ''}")
        if input("\n  Enter to reveal: ").strip().lower() == "q":
            print("\n  Session ended early.")
            break
        session.flip()
        print(f"  A: {card.back}")

        verdict = ""
        while verdict not in ("y", "n", "q"):
            verdict = input("  Did you get it right? [y/n]: ").strip().lower()
        if verdict == "q":
            print("\n  Session ended early.")
            break
        session.answer(verdict == "y")
        print()

    record = session.session
    if session.is_complete and record is not None:
        print("\n  Session Complete!")
        print(
            f"  Correct: {record.correct_answers}  Incorrect: {record.incorrect_answers}"
            f"  Accuracy: {session.accuracy()}%  Time: {session.duration_minutes()} min\n"
        )


def cmd_stats(store: CardStore, args: argparse.Namespace) -> None:
    """Show overall statistics."""
    stats = store.get_stats()
    print("\n  Flashvibe Statistics")
    print(f"  {'Total cards:':<20} {stats.total_cards}")
    print(f"  {'Studied today:':<20} {stats.studied_today}")
    print(f"  {'Average accuracy:':<20} {stats.average_accuracy:.0f}%")
    print(f"  {'Folders:':<20} {len(store.folders)}")
    print(f"  {'Sessions:':<20} {len(store.study_sessions)}")
    for category, count in sorted(stats.category_breakdown.items()):
        print(f"    {category:<18} {count}")
    print()


def cmd_folder(store: CardStore, args: argparse.Namespace) -> None:
    if args.action == "add":
        folder_id = store.create_folder(args.name, args.color)
        print(f"  Created folder {folder_id}" if folder_id else "  Folder name is empty.")
    elif args.action == "delete":
        if store.delete_folder(args.folder_id):
            print("  Deleted; its cards are now unfiled.")
        else:
            print("  No such folder.")
    else:
        if not store.folders:
            print("  No folders yet.")
        for folder in store.folders:
            print(f"  {folder.id}  {folder.name} ({folder.card_count} cards, {folder.color})")


def cmd_category(store: CardStore, args: argparse.Namespace) -> None:
    if args.action == "add":
        if store.create_category(args.name):
            print(f"  Added '{args.name}'.")
        else:
            print("  Category name is empty.")
    elif args.action == "delete":
        if store.delete_category(args.name):
            print(f"  Deleted; its cards moved to '{store.fallback_category}'.")
        else:
            print("  No such category (or it is the fallback category).")
    else:
        for category in store.categories:
            print(f"  {category}")


COMMANDS: dict[str, Callable[[CardStore, argparse.Namespace], None]] = {
    "add": cmd_add,
    "list": cmd_list,
    "delete": cmd_delete,
    "move": cmd_move,
    "study": cmd_study,
    "stats": cmd_stats,
    "folder": cmd_folder,
    "category": cmd_category,
}


async def run_command(args: argparse.Namespace) -> None:
    store = await open_store()
    if store.unreadable_keys:
        unreadable = ", ".join(store.unreadable_keys)
        print(f"  Warning: could not read {unreadable}; changes to them won't be saved.")
    try:
        COMMANDS[args.command](store, args)
    finally:
        await store.flush()
        await engine.dispose()


def _add_deck_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--category", default=None, help="Only this category")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("-f", "--folder", default=None, help="Only this folder id")
    group.add_argument("--unfiled", action="store_true", help="Only cards in no folder")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flashvibe", description="Flashvibe flashcards")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    add_parser = subparsers.add_parser("add", help="Add a flashcard")
    add_parser.add_argument("front", help="Question side")
    add_parser.add_argument("back", help="Answer side")
    add_parser.add_argument("-c", "--category", default="general")
    add_parser.add_argument(
        "-d", "--difficulty", choices=[d.value for d in Difficulty], default=Difficulty.MEDIUM.value
    )
    add_parser.add_argument("--latex", action="store_true", help="Sides are LaTeX markup")
    add_parser.add_argument("-f", "--folder", default=None, help="Folder id")

    _add_deck_filters(subparsers.add_parser("list", help="List flashcards"))
    _add_deck_filters(subparsers.add_parser("study", help="Start a study session"))

    delete_parser = subparsers.add_parser("delete", help="Delete a flashcard")
    delete_parser.add_argument("card_id")

    move_parser = subparsers.add_parser("move", help="Move a card to a folder (omit to unfile)")
    move_parser.add_argument("card_id")
    move_parser.add_argument("folder_id", nargs="?", default=None)

    subparsers.add_parser("stats", help="Show your statistics")

    folder_parser = subparsers.add_parser("folder", help="Manage folders")
    folder_actions = folder_parser.add_subparsers(dest="action")
    folder_actions.add_parser("list")
    folder_add = folder_actions.add_parser("add")
    folder_add.add_argument("name")
    folder_add.add_argument("--color", default=None, help="Display color, e.g. #10B981")
    folder_delete = folder_actions.add_parser("delete")
    folder_delete.add_argument("folder_id")

    category_parser = subparsers.add_parser("category", help="Manage categories")
    category_actions = category_parser.add_subparsers(dest="action")
    category_actions.add_parser("list")
    category_add = category_actions.add_parser("add")
    category_add.add_argument("name")
    category_delete = category_actions.add_parser("delete")
    category_delete.add_argument("name")

    return parser


def main() -> None:
    """Entry point for the Flashvibe CLI application."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    asyncio.run(run_command(args))


if __name__ == "__main__":
    main()
