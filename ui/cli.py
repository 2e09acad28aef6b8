from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.panel import Panel
from rich.theme import Theme

from core.session_manager import SessionManager
from utils.error_codes import ChatError
from utils.validators import validate_server_uri

custom_theme = Theme({
    "info": "dim cyan",
    "warning": "magenta",
    "danger": "bold red",
    "success": "bold green",
    "chat_peer": "green",
    "chat_self": "cyan",
})

console = Console(theme=custom_theme)

HELP = (
    "[bold]/agree[/bold] accept the rules   [bold]/find[/bold] look for a stranger\n"
    "[bold]/next[/bold] skip to someone new   [bold]/stop[/bold] leave the chat   [bold]/report[/bold] report and leave\n"
    "[bold]/photo <path>[/bold] [bold]/video <path>[/bold] offer media\n"
    "[bold]/accept <photo|video>[/bold] [bold]/decline <photo|video>[/bold] answer an offer   [bold]/quit[/bold]"
)

RULES = (
    "[bold]Be respectful.[/bold] Chats are anonymous and not stored.\n"
    "Ten reports from different people ban you for 24 hours.\n"
    "Type [bold]/agree[/bold] to continue."
)


class ChatCLI:
    def __init__(self, uri="ws://localhost:3000", download_dir="downloads"):
        self.uri = uri
        self.session_manager = SessionManager(self.ui_callback, uri=uri, download_dir=download_dir)
        self.session = PromptSession()
        self.running = True

    def ui_callback(self, event_type, data=None):
        # Called from the asyncio loop when state changes or messages arrive
        if event_type == "CONNECTING":
            console.print(f"[info]Connecting to {self.uri}...[/info]")
        elif event_type == "NEED_AGREE":
            console.print(Panel(RULES, title="Rules", expand=False))
        elif event_type == "IDLE":
            console.print("[info]Type /find to meet someone.[/info]")
        elif event_type == "SEARCHING":
            console.print("[info]Looking for a stranger...[/info]")
        elif event_type == "MATCHED":
            console.print(Panel("[bold green]You're now chatting with a stranger. Say hi![/bold green]", expand=False))
        elif event_type == "MESSAGE":
            console.print(f"[chat_peer]Stranger:[/chat_peer] {data}")
        elif event_type == "MEDIA_REQUEST":
            console.print(f"[warning]Stranger wants to send you a {data}. /accept {data} or /decline {data}[/warning]")
        elif event_type == "MEDIA_SAVED":
            console.print(f"[success]Saved to {data}[/success]")
        elif event_type == "INFO":
            console.print(f"[info]{data}[/info]")
        elif event_type == "BANNED":
            console.print("[danger]You are temporarily banned.[/danger]")
            self.running = False
        elif event_type == "DISCONNECTED":
            console.print("[danger]Disconnected from relay.[/danger]")
            self.running = False
        elif event_type == "DESTROYED":
            console.print("[danger]Session closed. Exiting...[/danger]")
            self.running = False
        elif event_type == "ERROR":
            console.print(f"[danger]Error: {data}[/danger]")

    async def run_command(self, line: str):
        command, _, arg = line.partition(" ")
        command = command.lower()
        arg = arg.strip()
        sm = self.session_manager

        if command == "/quit":
            await sm.destroy_session()
        elif command == "/help":
            console.print(Panel(HELP, title="Commands", expand=False))
        elif command == "/agree":
            await sm.agree()
        elif command == "/find":
            await sm.find()
        elif command == "/stop":
            await sm.stop()
        elif command == "/next":
            await sm.next()
        elif command == "/report":
            await sm.report()
        elif command in ("/photo", "/video"):
            if not arg:
                console.print(f"[warning]Usage: {command} <path>[/warning]")
                return
            await sm.offer_media(command[1:], arg)
        elif command in ("/accept", "/decline"):
            kind = arg.lower() or next(iter(sm.pending_media), "")
            if kind not in ("photo", "video"):
                console.print(f"[warning]Usage: {command} <photo|video>[/warning]")
                return
            if command == "/accept":
                await sm.accept_media(kind)
            else:
                await sm.decline_media(kind)
        else:
            console.print("[warning]Unknown command. Try /help[/warning]")

    async def run(self):
        console.clear()
        console.print(Panel.fit("[bold white]STRANGER CHAT[/bold white]\n[dim]Anonymous. One to one. Nothing stored.[/dim]", style="blue"))

        if not validate_server_uri(self.uri):
            console.print(f"[danger]Invalid relay address {self.uri!r}. Use ws://host:port[/danger]")
            return

        # 1. Connect
        try:
            await self.session_manager.start_session()
        except ChatError as e:
            console.print(f"[danger]Failed to start: {e.message}[/danger]")
            return

        # 2. Chat Loop
        with patch_stdout():
            while self.running:
                try:
                    text = (await self.session.prompt_async("You: ")).strip()
                except (EOFError, KeyboardInterrupt):
                    await self.session_manager.destroy_session()
                    break

                if not self.running:
                    break
                if not text:
                    continue

                try:
                    if text.startswith("/"):
                        await self.run_command(text)
                    elif not self.session_manager.state_machine.chatting:
                        console.print("[warning]Not in a chat. Type /find first.[/warning]")
                    elif await self.session_manager.send_message(text):
                        console.print(f"[chat_self]You:[/chat_self] {text}")
                except ChatError as e:
                    console.print(f"[danger]{e.message}[/danger]")
