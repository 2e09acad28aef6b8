import logging

from core.state_machine import AppState, StateMachine
from network.transport import TransportLayer
from security.rate_limiter import RateLimiter
from utils.error_codes import ChatError, ErrorCodes
from utils.media_files import MEDIA_TYPES, file_to_data_url, save_data_url
from utils.validators import clean_message

logger = logging.getLogger(__name__)

# Server notices shown to the user as plain info lines
NOTICES = {
    "report_received": "Report received. Chat ended.",
    "photo_sent": "Photo offered, waiting for your partner.",
    "video_sent": "Video offered, waiting for your partner.",
    "photo_accepted": "Your photo was accepted.",
    "photo_declined": "Your photo was declined.",
    "video_accepted": "Your video was accepted.",
    "video_declined": "Your video was declined.",
    "rate_limited": "Slow down, messages are being dropped.",
    "partner_left": "Your partner left the chat.",
    "stopped": "Chat stopped.",
}


class SessionManager:
    def __init__(self, ui_callback=None, uri="ws://localhost:3000", download_dir="downloads",
                 transport=None):
        self.state_machine = StateMachine()
        self.transport = transport or TransportLayer(uri)
        self.ui_callback = ui_callback
        self.download_dir = download_dir
        self.rate_limiter = RateLimiter(max_calls=5, period=1.0)  # 5 msgs/sec
        self.pending_media = set()

        # Wire up transport callbacks
        self.transport.on_event_callback = self.on_server_event
        self.transport.on_closed_callback = self.on_closed

    def notify(self, event_type, data=None):
        if self.ui_callback:
            self.ui_callback(event_type, data)

    async def start_session(self):
        self.state_machine.transition_to(AppState.CONNECTING)
        self.notify("CONNECTING")
        await self.transport.connect()

    async def on_server_event(self, event, data=None):
        logger.debug("Server event %s", event)
        new_state = self.state_machine.apply_event(event, data)
        if new_state is not None:
            if new_state is not AppState.MATCHED:
                # Offers never outlive the chat they came from
                self.pending_media.clear()
            self.notify(new_state.name, data)

        if event == "message":
            text = clean_message(data)
            if text is not None:
                self.notify("MESSAGE", text)
        elif event.endswith("_request") and event[:-len("_request")] in MEDIA_TYPES:
            kind = event[:-len("_request")]
            self.pending_media.add(kind)
            self.notify("MEDIA_REQUEST", kind)
        elif event.endswith("_deliver") and event[:-len("_deliver")] in MEDIA_TYPES:
            self.save_media(event[:-len("_deliver")], data)
        elif event == "reported_and_banned" and new_state is None:
            self.notify("INFO", "The user you reported has been banned.")
        elif event in NOTICES:
            self.notify("INFO", NOTICES[event])

    def save_media(self, kind, data):
        data_url = data.get("dataUrl") if isinstance(data, dict) else None
        if not isinstance(data_url, str):
            return
        try:
            path = save_data_url(data_url, self.download_dir, kind)
        except (ChatError, OSError) as e:
            self.notify("ERROR", f"Could not save {kind}: {e}")
            return
        self.notify("MEDIA_SAVED", path)

    def on_closed(self, code=None, reason=None):
        if self.state_machine.current_state in (AppState.BANNED, AppState.DISCONNECTED):
            return
        self.state_machine.transition_to(AppState.DISCONNECTED)
        self.notify("DISCONNECTED", reason)

    # ----- commands -----

    async def agree(self):
        await self.transport.send_event("agree")

    async def find(self):
        await self.transport.send_event("find")

    async def stop(self):
        await self.transport.send_event("stop")

    async def next(self):
        await self.transport.send_event("next")

    async def report(self):
        await self.transport.send_event("report")

    async def send_message(self, text: str) -> bool:
        if not self.state_machine.chatting:
            return False

        if not self.rate_limiter.check():
            self.notify("ERROR", "Rate limit exceeded. Slow down.")
            return False

        await self.transport.send_event("message", text)
        return True

    async def offer_media(self, kind: str, path: str):
        if not self.state_machine.chatting:
            raise ChatError(ErrorCodes.ERR_SESSION_INVALID, "You are not in a chat")
        try:
            data_url = file_to_data_url(path, kind)
        except OSError as e:
            raise ChatError(ErrorCodes.ERR_SESSION_INVALID, f"Could not read {path}: {e.strerror}")
        await self.transport.send_event(f"{kind}_offer", data_url)

    async def accept_media(self, kind: str):
        self.pending_media.discard(kind)
        await self.transport.send_event(f"{kind}_accept")

    async def decline_media(self, kind: str):
        self.pending_media.discard(kind)
        await self.transport.send_event(f"{kind}_decline")

    async def destroy_session(self):
        self.state_machine.transition_to(AppState.DISCONNECTED)
        await self.transport.disconnect()
        self.notify("DESTROYED")
