import argparse
import getpass
import json
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

from relaychat.chat import ChatController
from relaychat.config import ChatConfig, ConfigError
from relaychat.images import load_image
from relaychat.kvstore import JsonFileKeyValueStore
from relaychat.repl import ChatREPL, format_message, format_session_line
from relaychat.service import ChatCompletionService
from relaychat.storage import StorageManager


TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
THIRD_PARTY_LOGGERS = ("httpx", "httpcore", "PIL")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record; tracebacks go under ``error``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def log_level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    return logging.DEBUG if verbose else logging.WARNING


def setup_logging(level: int, log_format: str = "text") -> None:
    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_LOG_FORMAT, datefmt="%H:%M:%S"))
    logging.basicConfig(level=level, handlers=[handler])

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def load_config() -> ChatConfig:
    config = ChatConfig.from_env()
    config.validate()
    return config


def build_storage(config: ChatConfig) -> StorageManager:
    return StorageManager(JsonFileKeyValueStore(config.data_file), namespace=config.namespace)


def cmd_chat(args: argparse.Namespace) -> int:
    config = load_config()
    storage = build_storage(config)
    service = ChatCompletionService(config)
    controller = ChatController(storage, service)

    try:
        if args.session:
            if not controller.load_session(args.session):
                print(f"Error: no chat with id {args.session}")
                return 1
        elif args.latest:
            controller.load_latest_session()
        else:
            controller.start_new_chat()

        image = None
        if args.image:
            try:
                image = load_image(args.image)
            except OSError as e:
                print(f"Error: could not open image: {e}")
                return 1

        message = " ".join(args.message).strip()
        if message or image is not None:
            reply = controller.send_message(message, image)
            if reply is not None:
                print(reply.text)
            if not args.interactive:
                return 0

        ChatREPL(controller, model_name=config.model).run()
        return 0
    finally:
        service.close()


def cmd_list(args: argparse.Namespace) -> int:
    storage = build_storage(load_config())
    sessions = storage.load_sessions()
    if args.json:
        print(
            json.dumps(
                [
                    {
                        "id": s.id,
                        "last_modified": s.last_modified.isoformat(),
                        "preview": s.preview_text,
                        "messages": len(s.messages),
                    }
                    for s in sessions
                ],
                indent=2,
            )
        )
        return 0
    if not sessions:
        print("No past chats found.")
        return 0
    for session in sessions:
        print(format_session_line(session))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    storage = build_storage(load_config())
    session = storage.load_session(args.session_id)
    if session is None:
        print(f"Error: no chat with id {args.session_id}")
        return 1
    for message in session.messages:
        print(format_message(message))
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    storage = build_storage(load_config())
    if storage.load_session(args.session_id) is None:
        print(f"Error: no chat with id {args.session_id}")
        return 1
    storage.delete_session(args.session_id)
    print(f"Deleted chat {args.session_id}")
    return 0


def _confirm(prompt: str, assume_yes: bool) -> bool:
    if assume_yes:
        return True
    answer = input(f"{prompt} This action cannot be reversed. [y/N] ").strip().lower()
    return answer in ("y", "yes")


def cmd_clear(args: argparse.Namespace) -> int:
    storage = build_storage(load_config())
    if not _confirm("Delete all chat history?", args.yes):
        print("Aborted")
        return 1
    storage.delete_all_sessions()
    print("All chat history cleared.")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    storage = build_storage(load_config())
    if not _confirm("Delete all chat history and the saved API key?", args.yes):
        print("Aborted")
        return 1
    storage.delete_all_data()
    print("All data deleted.")
    return 0


def cmd_key(args: argparse.Namespace) -> int:
    storage = build_storage(load_config())
    if args.key_command == "set":
        value = args.value or getpass.getpass("API key: ")
        value = value.strip()
        if not value:
            print("Error: API key must not be empty")
            return 1
        storage.save_api_key(value)
        print("API key saved.")
    elif args.key_command == "delete":
        storage.delete_api_key()
        print("API key deleted.")
    else:
        key = storage.load_api_key()
        if key:
            print(f"API key is set (ends with ...{key[-4:]})")
        else:
            print("No API key saved.")
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="relaychat",
        description="Chat with a completions API, keeping history on disk",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log format (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    chat_parser = subparsers.add_parser("chat", help="Start or continue a chat")
    chat_parser.add_argument("message", nargs="*", help="Send this message and print the reply")
    group = chat_parser.add_mutually_exclusive_group()
    group.add_argument("--session", help="Continue the chat with this id")
    group.add_argument("--latest", action="store_true", help="Continue the latest chat")
    chat_parser.add_argument("--image", help="Attach an image to the message")
    chat_parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Stay in the interactive prompt after sending the message",
    )
    chat_parser.set_defaults(func=cmd_chat)

    list_parser = subparsers.add_parser("list", help="List saved chats")
    list_parser.add_argument("--json", action="store_true", help="Print JSON")
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser("show", help="Print a chat transcript")
    show_parser.add_argument("session_id", help="Chat id")
    show_parser.set_defaults(func=cmd_show)

    delete_parser = subparsers.add_parser("delete", help="Delete a chat")
    delete_parser.add_argument("session_id", help="Chat id")
    delete_parser.set_defaults(func=cmd_delete)

    clear_parser = subparsers.add_parser("clear", help="Delete all chats")
    clear_parser.add_argument("-y", "--yes", action="store_true", help="Do not ask")
    clear_parser.set_defaults(func=cmd_clear)

    reset_parser = subparsers.add_parser("reset", help="Delete all chats and the API key")
    reset_parser.add_argument("-y", "--yes", action="store_true", help="Do not ask")
    reset_parser.set_defaults(func=cmd_reset)

    key_parser = subparsers.add_parser("key", help="Manage the API key")
    key_sub = key_parser.add_subparsers(dest="key_command")
    key_set = key_sub.add_parser("set", help="Save the API key")
    key_set.add_argument("value", nargs="?", help="Key value (prompted when omitted)")
    key_sub.add_parser("delete", help="Delete the saved API key")
    key_sub.add_parser("status", help="Show whether a key is saved")
    key_parser.set_defaults(func=cmd_key)

    args = parser.parse_args(argv)
    setup_logging(log_level(args.verbose, args.quiet), args.log_format)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except ConfigError as e:
        logging.getLogger(__name__).error(f"Configuration error: {e}")
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
