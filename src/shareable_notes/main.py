#!/usr/bin/env python
"""Command-line entry point for Shareable Notes."""
import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

from shareable_notes import __version__
from shareable_notes.config import NotesConfig, config
from shareable_notes.exceptions import ConfigurationError, NotesError, NoteValidationError
from shareable_notes.models.schema import Note
from shareable_notes.observability import configure_logging
from shareable_notes.services.crypto_service import ConfidentialityEngine, generate_password
from shareable_notes.services.note_service import NoteService
from shareable_notes.storage.base import StorageBackend
from shareable_notes.storage.file_backend import FileStorageBackend, is_valid_key
from shareable_notes.storage.note_repository import NoteRepository
from shareable_notes.storage.note_store import NoteStore
from shareable_notes.storage.sqlite_backend import SqliteStorageBackend

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="shareable-notes", description="Personal notes with optional password protection"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--data-dir",
        help="Directory holding the note collection",
        type=str,
        default=None,
    )
    parser.add_argument(
        "--backend",
        help="Storage medium for the collection",
        choices=["json", "sqlite"],
        default=None,
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="List notes, pinned first")
    group = list_cmd.add_mutually_exclusive_group()
    group.add_argument("--pinned", action="store_true", help="Only pinned notes")
    group.add_argument("--unpinned", action="store_true", help="Only unpinned notes")

    show = sub.add_parser("show", help="Print a note")
    show.add_argument("note_id")
    show.add_argument("--password", help="Password for an encrypted note")

    create = sub.add_parser("create", help="Create a note")
    create.add_argument("--title", default=None)
    create.add_argument("--content", default="")
    create.add_argument("--tag", action="append", dest="tags", default=[])
    create.add_argument("--pin", action="store_true")

    edit = sub.add_parser("edit", help="Change a note's title or content")
    edit.add_argument("note_id")
    edit.add_argument("--title", default=None)
    edit.add_argument("--content", default=None)

    delete = sub.add_parser("delete", help="Delete a note")
    delete.add_argument("note_id")

    pin = sub.add_parser("pin", help="Toggle a note's pinned flag")
    pin.add_argument("note_id")

    search = sub.add_parser("search", help="Search titles, content and tags")
    search.add_argument("query")

    for name, help_text in (("encrypt", "Password-protect a note"), ("decrypt", "Remove a note's protection")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("note_id")
        cmd.add_argument("--password", help="Password (prompted for when omitted)")

    tag = sub.add_parser("tag", help="Add a tag to a note")
    tag.add_argument("note_id")
    tag.add_argument("tag")

    untag = sub.add_parser("untag", help="Remove a tag from a note")
    untag.add_argument("note_id")
    untag.add_argument("tag")

    gen = sub.add_parser("gen-password", help="Print a random password")
    gen.add_argument("--length", type=int, default=16)

    return parser.parse_args(argv)


def update_config(args: argparse.Namespace, cfg: NotesConfig) -> None:
    """Apply command line overrides to the config."""
    if args.data_dir:
        cfg.data_dir = Path(args.data_dir)
    if args.backend:
        cfg.storage_backend = args.backend
    if args.log_level:
        cfg.log_level = args.log_level


def build_backend(cfg: NotesConfig) -> StorageBackend:
    """Create the storage backend selected by the config.

    Raises:
        ConfigurationError: If the storage key cannot name a file.
    """
    if cfg.storage_backend == "sqlite":
        return SqliteStorageBackend(cfg.get_db_url())
    if not is_valid_key(cfg.storage_key):
        raise ConfigurationError(
            f"Storage key {cfg.storage_key!r} may only contain letters, digits, '_', '-' and '.'",
            config_key="storage_key",
        )
    return FileStorageBackend(cfg.get_data_dir())


def build_service(cfg: NotesConfig) -> NoteService:
    """Wire backend, repository and engine into a NoteService."""
    store = NoteStore(build_backend(cfg), key=cfg.storage_key, default_title=cfg.default_title)
    return NoteService(
        NoteRepository(store),
        engine=ConfidentialityEngine(kdf_iterations=cfg.kdf_iterations),
        default_title=cfg.default_title,
    )


def _read_password(args: argparse.Namespace, confirm: bool = False) -> str:
    if args.password is not None:
        return args.password
    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Repeat password: ") != password:
        raise SystemExit("Passwords do not match")
    return password


def _new_password(length: int) -> str:
    try:
        return generate_password(length)
    except ValueError as e:
        raise NoteValidationError(f"Invalid password length: {e}", field="length") from e


def _display_order(notes: List[Note]) -> List[Note]:
    """Pinned notes first, each group newest first."""
    return sorted(notes, key=lambda n: (not n.pinned, -n.updated_at.timestamp()))


def _print_summary(service: NoteService, notes: List[Note]) -> None:
    for note in _display_order(notes):
        flags = ("P" if note.pinned else "-") + ("E" if note.encrypted else "-")
        tags = f" [{', '.join(note.tags)}]" if note.tags else ""
        print(f"{note.id}  {flags}  {note.title}{tags}  {service.preview(note, 60)}")


def _print_note(note: Note) -> None:
    print(f"# {note.title}")
    print(f"id: {note.id}")
    print(f"created: {note.created_at.isoformat()}  updated: {note.updated_at.isoformat()}")
    if note.tags:
        print(f"tags: {', '.join(note.tags)}")
    print()
    print(note.content)


def run_command(service: NoteService, args: argparse.Namespace) -> int:
    """Execute one parsed command against the service."""
    if args.command == "list":
        if args.pinned:
            notes = service.pinned()
        elif args.unpinned:
            notes = service.unpinned()
        else:
            notes = service.get_all()
        _print_summary(service, notes)
    elif args.command == "show":
        note = service.get(args.note_id)
        if note is None:
            print(f"Note {args.note_id} not found", file=sys.stderr)
            return 1
        if note.encrypted:
            note = service.unlock(args.note_id, _read_password(args))
        _print_note(note)
    elif args.command == "create":
        note = service.create(
            title=args.title, content=args.content, tags=args.tags, pinned=args.pin
        )
        print(note.id)
    elif args.command == "edit":
        service.update(args.note_id, title=args.title, content=args.content)
    elif args.command == "delete":
        service.delete(args.note_id)
    elif args.command == "pin":
        note = service.toggle_pin(args.note_id)
        print("pinned" if note.pinned else "unpinned")
    elif args.command == "search":
        _print_summary(service, service.search(args.query))
    elif args.command == "encrypt":
        service.encrypt(args.note_id, _read_password(args, confirm=True))
    elif args.command == "decrypt":
        service.decrypt(args.note_id, _read_password(args))
    elif args.command == "tag":
        service.add_tag(args.note_id, args.tag)
    elif args.command == "untag":
        service.remove_tag(args.note_id, args.tag)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the Shareable Notes command line."""
    args = parse_args(argv)
    if args.command == "gen-password":
        try:
            print(_new_password(args.length))
        except NotesError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        return 0

    update_config(args, config)

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    try:
        configure_logging(log_dir=config.get_log_dir(), level=log_level)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=logging.WARNING)
        logger.warning(f"Failed to configure file logging: {e}")

    try:
        service = build_service(config)
        return run_command(service, args)
    except NotesError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
