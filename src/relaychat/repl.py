from PIL import Image

from relaychat.chat import ChatController
from relaychat.images import load_image
from relaychat.models import ChatSession, Message

HELP_TEXT = """Commands:
  /new            start a new chat
  /history        list saved chats
  /load ID        open a saved chat
  /image PATH     attach an image to the next message
  /clear-image    drop the pending image
  /help           show this help
  /quit           exit"""


def format_message(message: Message) -> str:
    speaker = "you" if message.is_from_user else "model"
    marker = " [image]" if message.image else ""
    return f"{speaker}{marker}: {message.text}"


def format_session_line(session: ChatSession, width: int = 60) -> str:
    preview = " ".join(session.preview_text.split())
    if len(preview) > width:
        preview = preview[: width - 3] + "..."
    modified = session.last_modified.astimezone().strftime("%Y-%m-%d %H:%M")
    return f"{session.id}  {modified}  {preview}"


class ChatREPL:
    def __init__(self, controller: ChatController, model_name: str = ""):
        self.controller = controller
        self.model_name = model_name
        self.pending_image: Image.Image | None = None

    def run(self) -> None:
        print(f"relaychat (model: {self.model_name})")
        print("Type /help for commands")

        if self.controller.messages:
            for message in self.controller.messages:
                print(format_message(message))

        while True:
            try:
                user_input = input("\n> ").strip()
            except (KeyboardInterrupt, EOFError):
                print()
                break

            if not user_input:
                continue
            if user_input.startswith("/"):
                if not self.handle_command(user_input):
                    break
                continue
            self.send(user_input)

    def send(self, text: str) -> None:
        image, self.pending_image = self.pending_image, None
        print("thinking...")
        reply = self.controller.send_message(text, image)
        if reply is not None:
            print(format_message(reply))

    def handle_command(self, line: str) -> bool:
        name, _, arg = line[1:].partition(" ")
        arg = arg.strip()

        if name in ("quit", "exit"):
            return False
        if name == "help":
            print(HELP_TEXT)
        elif name == "new":
            self.pending_image = None
            self.controller.start_new_chat()
            print("Started a new chat")
        elif name == "history":
            sessions = self.controller.storage.load_sessions()
            if not sessions:
                print("No past chats found.")
            for session in sessions:
                print(format_session_line(session))
        elif name == "load":
            if not arg:
                print("Usage: /load ID")
            elif self.controller.load_session(arg):
                for message in self.controller.messages:
                    print(format_message(message))
            else:
                print(f"No chat with id {arg}; started a new chat")
        elif name == "image":
            if not arg:
                print("Usage: /image PATH")
            else:
                try:
                    self.pending_image = load_image(arg)
                except OSError as e:
                    print(f"Could not open image: {e}")
                else:
                    print(f"Image attached: {arg}")
        elif name == "clear-image":
            self.pending_image = None
            print("Image removed")
        else:
            print(f"Unknown command: /{name}. Type /help for available commands.")
        return True
