"""Error taxonomy shared by the repository, the forms and the views.

Every error carries a user-facing message and the HTTP status the central
error handler answers with.
"""


class LibraryError(Exception):
    """Base class for all expected application errors."""

    status_code = 500
    message = "Ein unerwarteter Fehler ist aufgetreten."

    def __init__(self, message=None):
        if message:
            self.message = message
        super().__init__(self.message)


class NotFound(LibraryError):
    status_code = 404
    message = "Eintrag nicht gefunden."


class ValidationError(LibraryError):
    """Raised with every failing field, not only the first one."""

    status_code = 400
    message = "Bitte die markierten Felder korrigieren."

    def __init__(self, errors, message=None):
        self.errors = dict(errors)
        super().__init__(message)

    @property
    def fields(self):
        return sorted(self.errors)


class UniqueConstraintViolation(LibraryError):
    status_code = 409
    message = "Eintrag existiert bereits."
