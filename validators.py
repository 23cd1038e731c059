"""
Form validation for the catalog.

Every field goes through the same chain: trim, required/length check,
markup escaping, character-class check. Optional dates are parsed only when
a value was given. Errors are collected for all fields, one per field, and
returned together with the sanitized values.
"""
import re
from collections import namedtuple
from datetime import date, datetime

from markupsafe import escape

FieldError = namedtuple("FieldError", ["field", "message"])

NAME_MAX_LENGTH = 100
GENRE_MIN_LENGTH = 3

_ALPHA = re.compile(r"[A-Za-z]+")


def parse_date(date_str: str) -> date | None:
    """
    Parse an ISO-8601 date ('YYYY-MM-DD', optionally with a time part).

    Returns:
         datetime.date or None for an empty value.

    Raises:
        ValueError: the value is not an ISO-8601 date.
    """
    date_str = (date_str or "").strip()
    if not date_str:
        return None
    return datetime.fromisoformat(date_str).date()


def normalize_genre(value) -> list:
    """
    A single checkbox arrives as a scalar, none at all as nothing.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class FormValidator:
    """
    Collects sanitized values and errors for one submitted form.
    """

    def __init__(self, form):
        self.form = form or {}
        self.data = {}
        self.errors = []

    def _raw(self, field):
        value = self.form.get(field)
        return "" if value is None else str(value).strip()

    def fail(self, field, message):
        self.errors.append(FieldError(field, message))

    def text(self, field, message, min_length=1, max_length=None,
             alpha=False, alpha_message=None):
        value = self._raw(field)
        if len(value) < min_length:
            self.fail(field, message)
        elif max_length is not None and len(value) > max_length:
            self.fail(field, f"{message} (at most {max_length} characters)")
        elif alpha and not _ALPHA.fullmatch(value):
            self.fail(field, alpha_message or message)
        self.data[field] = str(escape(value))
        return self.data[field]

    def sanitize(self, field):
        """Escape only; an empty value is allowed."""
        self.data[field] = str(escape(self._raw(field)))
        return self.data[field]

    def sanitize_list(self, field):
        values = normalize_genre(self.form.get(field))
        self.data[field] = [str(escape(str(v).strip())) for v in values]
        return self.data[field]

    def optional_date(self, field, message="Invalid date"):
        value = self._raw(field)
        try:
            self.data[field] = parse_date(value)
        except ValueError:
            self.fail(field, message)
            self.data[field] = None
        return self.data[field]

    @property
    def valid(self):
        return not self.errors


def validate_author(form):
    v = FormValidator(form)
    v.text("first_name", "First name must be specified.",
           max_length=NAME_MAX_LENGTH,
           alpha_message="First name must contain letters only.")
    v.text("family_name", "Family name must be specified.",
           max_length=NAME_MAX_LENGTH,
           alpha_message="Family name must contain letters only.")
    v.optional_date("date_of_birth", "Invalid date of birth")
    v.optional_date("date_of_death", "Invalid date of death")
    return v.data, v.errors


def validate_genre(form):
    v = FormValidator(form)
    v.text("name", "Genre name must contain at least 3 characters.",
           min_length=GENRE_MIN_LENGTH)
    return v.data, v.errors


def validate_book(form):
    v = FormValidator(form)
    v.text("title", "Title must not be empty.")
    v.text("author", "Author must not be empty.")
    v.text("summary", "Summary must not be empty.")
    v.text("isbn", "ISBN must not be empty.")
    v.sanitize_list("genre")
    return v.data, v.errors


def validate_book_instance(form):
    v = FormValidator(form)
    v.text("book", "Book must be specified.")
    v.text("imprint", "Imprint must be specified.")
    v.sanitize("status")
    v.optional_date("due_back", "Invalid due date")
    return v.data, v.errors
