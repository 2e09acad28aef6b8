from enum import Enum, auto


class AppState(Enum):
    INIT = auto()
    CONNECTING = auto()
    NEED_AGREE = auto()
    IDLE = auto()
    SEARCHING = auto()
    MATCHED = auto()
    BANNED = auto()
    DISCONNECTED = auto()


# Server events that move the client session to a new state
EVENT_STATES = {
    "need_agree": AppState.NEED_AGREE,
    "agreed_ok": AppState.IDLE,
    "searching": AppState.SEARCHING,
    "matched": AppState.MATCHED,
    "stopped": AppState.IDLE,
    "partner_left": AppState.IDLE,
    "banned": AppState.BANNED,
}

TERMINAL = {AppState.BANNED, AppState.DISCONNECTED}


class StateMachine:
    def __init__(self):
        self.current_state = AppState.INIT

    def transition_to(self, new_state: AppState) -> bool:
        # Nothing leaves a terminal state except reconnecting
        if self.current_state in TERMINAL and new_state is not AppState.CONNECTING:
            return False
        self.current_state = new_state
        return True

    def apply_event(self, event: str, data=None):
        """
        Applies a server event and returns the new state, or None when the
        event does not change state.
        """
        if event == "reported_and_banned":
            # The reporter gets the same notice without an expiry
            new_state = AppState.BANNED if isinstance(data, dict) and data.get("until") else None
        else:
            new_state = EVENT_STATES.get(event)
        if new_state is None or new_state is self.current_state:
            return None
        return new_state if self.transition_to(new_state) else None

    @property
    def chatting(self) -> bool:
        return self.current_state is AppState.MATCHED
