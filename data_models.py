import sqlite3
import unicodedata
from datetime import date

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import validates

db = SQLAlchemy()

STATUS_CHOICES = ("Available", "Maintenance", "Loaned", "Reserved")
DEFAULT_STATUS = "Maintenance"


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite leaves foreign keys unchecked unless asked per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()


def format_date_med(value: date | None) -> str:
    """
    Format a date the way the catalog pages show it, e.g. 'Oct 19, 2026'.
    """
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def fold_name(name: str | None) -> str:
    """
    Case and accent insensitive comparison key for genre names.
    """
    decomposed = unicodedata.normalize("NFKD", name or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


book_genres = db.Table(
    "book_genres",
    db.Column("book_id", db.Integer, db.ForeignKey("books.id"), primary_key=True),
    db.Column("genre_id", db.Integer, db.ForeignKey("genres.id"), primary_key=True),
)


class Author(db.Model):
    """
    Author with optional life dates. Books reference their author.
    """
    __tablename__ = 'authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(100), nullable=False)
    family_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    date_of_death = db.Column(db.Date, nullable=True)

    books = db.relationship("Book", back_populates="author")

    @property
    def url(self):
        return f"/catalog/author/{self.id}"

    @property
    def display_name(self):
        """'family_name, first_name', or empty when either part is missing."""
        if self.first_name and self.family_name:
            return f"{self.family_name}, {self.first_name}"
        return ""

    @property
    def birthdate_formatted(self):
        return format_date_med(self.date_of_birth)

    @property
    def deathdate_formatted(self):
        return format_date_med(self.date_of_death)

    @property
    def lifespan_label(self):
        """
        'birth – death', 'birth – Alive' when only the birth date is known,
        otherwise empty.
        """
        born = self.birthdate_formatted
        died = self.deathdate_formatted
        if born and died:
            return f"{born} – {died}"
        if born:
            return f"{born} – Alive"
        return ""

    def __repr__(self):
        return f"Author(id = {self.id}, name = {self.display_name})"

    def __str__(self):
        return self.display_name


class Genre(db.Model):
    """
    Book genre. Names are kept unique case-insensitively by the catalog,
    using name_key as the lookup column.
    """
    __tablename__ = 'genres'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    name_key = db.Column(db.String(100), nullable=False, index=True)

    books = db.relationship("Book", secondary=book_genres, back_populates="genre")

    @validates("name")
    def _set_name_key(self, key, value):
        self.name_key = fold_name(value)
        return value

    @property
    def url(self):
        return f"/catalog/genre/{self.id}"

    def __repr__(self):
        return f"<Genre id={self.id} name='{self.name}'>"

    def __str__(self):
        return self.name


class Book(db.Model):
    """
    Book with its author, summary, ISBN and any number of genres.
    """
    __tablename__ = 'books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(200), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    isbn = db.Column(db.String(20), nullable=False)

    author_id = db.Column(db.Integer, db.ForeignKey("authors.id"), nullable=False)

    author = db.relationship("Author", back_populates="books")
    genre = db.relationship("Genre", secondary=book_genres, back_populates="books",
                            order_by="Genre.name")
    instances = db.relationship("BookInstance", back_populates="book")

    @property
    def url(self):
        return f"/catalog/book/{self.id}"

    def __repr__(self):
        return f"<Book id={self.id} title='{self.title}'>"

    def __str__(self):
        return self.title


class BookInstance(db.Model):
    """
    A physical copy of a book, with its imprint, loan status and due date.
    """
    __tablename__ = 'book_instances'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False)
    imprint = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=DEFAULT_STATUS)
    dueback = db.Column(db.Date, nullable=False, default=date.today)

    book = db.relationship("Book", back_populates="instances")

    @validates("status")
    def validate_status(self, key, value):
        """Only the four known states may be stored."""
        if value not in STATUS_CHOICES:
            raise ValueError(f"Invalid book instance status: {value!r}")
        return value

    @property
    def url(self):
        return f"/catalog/bookinstance/{self.id}"

    @property
    def dueback_formatted(self):
        return format_date_med(self.dueback)

    @property
    def due_back_yyyy_mm_dd(self):
        return self.dueback.isoformat() if self.dueback else ""

    def __repr__(self):
        return f"<BookInstance id={self.id} status='{self.status}'>"

    def __str__(self):
        return f"{self.imprint} ({self.status})"
