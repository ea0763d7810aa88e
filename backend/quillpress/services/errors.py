"""Service-layer exceptions.

Routers map :class:`NotFoundError` to 404 and :class:`ValidationFailure`
to 400. Anything else raised from a service is an unexpected storage
failure and is reported to clients as an opaque 500.
"""

from __future__ import annotations


class NotFoundError(LookupError):
    """The addressed post or comment does not exist."""

    message_key = "common.not_found"


class PostNotFoundError(NotFoundError):
    message_key = "post.not_found"


class CommentNotFoundError(NotFoundError):
    message_key = "comment.not_found"


class ValidationFailure(ValueError):
    """A recoverable rule violation the caller should show to the user.

    Args:
        message_key: Key into :mod:`quillpress.utils.messages`.
        detail: Untranslated English description, used for logs and ``str()``.
        **params: Interpolation values for the translated message.
    """

    def __init__(self, message_key: str, detail: str = "", **params: object) -> None:
        super().__init__(detail or message_key)
        self.message_key = message_key
        self.params = params


class CommentValidationError(ValidationFailure):
    pass


class SlugValidationError(ValidationFailure):
    pass
