class ErrorCodes:
    SUCCESS = 0
    ERR_NETWORK = 101
    ERR_PROTOCOL = 102
    ERR_CONFIG = 201
    ERR_RATE_LIMITED = 301
    ERR_SESSION_INVALID = 302
    ERR_PEER_DISCONNECT = 303
    ERR_BANNED = 401
    ERR_INTERNAL = 500


class CloseCodes:
    # Websocket close codes sent by the relay server
    NORMAL = 1000
    PROTOCOL = 1002
    POLICY = 1008
    BANNED = 4003


class ChatError(Exception):
    def __init__(self, code, message):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")
