"""Error kinds raised by the post and user services.

Every error belongs to one of five kinds. The adapters pick a status code
from the kind (the class hierarchy), never from the message text.
"""


class BlogError(Exception):
    status_code = 500
    rpc_code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(BlogError):
    status_code = 400
    rpc_code = "BAD_REQUEST"
    default_message = "Invalid input"


class NotFound(BlogError):
    status_code = 404
    rpc_code = "NOT_FOUND"
    default_message = "Not found"


class NotAuthorized(BlogError):
    status_code = 403
    rpc_code = "FORBIDDEN"
    default_message = "Not authorized"


class Unauthenticated(BlogError):
    status_code = 401
    rpc_code = "UNAUTHORIZED"
    default_message = "Authentication required"


class InternalError(BlogError):
    pass


# ---- InvalidInput ----

class InvalidLimit(InvalidInput):
    default_message = "Invalid limit"


class InvalidPage(InvalidInput):
    default_message = "Invalid page"


class InvalidAuthorId(InvalidInput):
    default_message = "Invalid authorId"


class InvalidId(InvalidInput):
    default_message = "Invalid post id"


class InvalidUserId(InvalidInput):
    default_message = "Invalid user id"


class InvalidTitle(InvalidInput):
    default_message = "Invalid title"


class InvalidContent(InvalidInput):
    default_message = "Invalid content"


class InvalidPublishedFlag(InvalidInput):
    default_message = "Invalid published flag"


class NoFieldsToUpdate(InvalidInput):
    default_message = "No fields to update"


class InvalidEmail(InvalidInput):
    default_message = "Invalid email"


class InvalidName(InvalidInput):
    default_message = "Invalid name"


class EmailRequired(InvalidInput):
    default_message = "Email is required"


class PasswordHashRequired(InvalidInput):
    default_message = "Password hash is required"


class EmailAlreadyRegistered(InvalidInput):
    default_message = "Email already registered"


# ---- NotFound ----

class PostNotFound(NotFound):
    default_message = "Post not found"


class AuthorNotFound(NotFound):
    default_message = "Author not found"


# ---- Unauthenticated ----

class InvalidCredentials(Unauthenticated):
    default_message = "Invalid credentials"


def classify(exc):
    """Return ``(status_code, rpc_code, message)`` for any exception.

    Anything outside the known kinds is internal and its details stay
    hidden from the client.
    """
    if isinstance(exc, BlogError):
        return exc.status_code, exc.rpc_code, exc.message
    return InternalError.status_code, InternalError.rpc_code, InternalError.default_message
