"""Error taxonomy shared by the store, the chat layer and the HTTP routes.

Every error carries a stable ``code`` that clients can switch on and a
human-readable ``message``. Errors are reported to the triggering connection
only.
"""


class ChatError(Exception):
    code = "CHAT_ERROR"
    status_code = 400
    default_message = "Chat request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"code": self.code, "message": self.message}


class AuthenticationRequired(ChatError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401
    default_message = "Authentication token required"


class InvalidCredential(ChatError):
    code = "INVALID_CREDENTIAL"
    status_code = 401
    default_message = "Invalid authentication token"


class InvalidEvent(ChatError):
    code = "INVALID_EVENT"
    default_message = "Malformed event payload"


class NotJoined(ChatError):
    code = "NOT_JOINED"
    status_code = 409
    default_message = "Please join a room first"


class EmptyMessage(ChatError):
    code = "EMPTY_MESSAGE"
    default_message = "Message cannot be empty"


class AccessDenied(ChatError):
    code = "ACCESS_DENIED"
    status_code = 403
    default_message = "Access denied to this chat room"


class RoomNotFound(ChatError):
    code = "ROOM_NOT_FOUND"
    status_code = 404
    default_message = "Chat room not found"


class AlreadyClosed(ChatError):
    code = "ALREADY_CLOSED"
    status_code = 409
    default_message = "Chat room is already closed"


class StoreUnavailable(ChatError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
    default_message = "Chat storage is unavailable"
