"""
Catalog use-cases for authors, books, genres and book instances.

Each service is built around an explicit SQLAlchemy session handed in at
construction time. Dependency and duplicate checks are read-then-write and
are not atomic.
"""
import logging
from collections import namedtuple
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from data_models import (
    Author, Book, BookInstance, Genre, DEFAULT_STATUS, STATUS_CHOICES, fold_name,
)
from errors import BlockedByDependents, NotFound, StoreFailure, ValidationFailed
from validators import (
    normalize_genre, validate_author, validate_book, validate_book_instance,
    validate_genre,
)

logger = logging.getLogger(__name__)

MIN_ID, MAX_ID = -2 ** 63, 2 ** 63 - 1

GenreOption = namedtuple("GenreOption", ["genre", "checked"])


def _as_id(value):
    """Form references arrive as strings; anything non-numeric resolves to nothing."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class _Service:
    kind = None
    model = None

    def __init__(self, session):
        self.session = session

    def _lookup(self, model, entity_id):
        # ids beyond a signed 64-bit INTEGER cannot exist in the store
        if isinstance(entity_id, int) and not MIN_ID <= entity_id <= MAX_ID:
            return None
        return self.session.get(model, entity_id)

    def get(self, entity_id):
        entity = self._lookup(self.model, entity_id)
        if entity is None:
            raise NotFound(self.kind, entity_id)
        return entity

    def _resolve(self, model, value, label):
        entity_id = _as_id(value)
        entity = self._lookup(model, entity_id) if entity_id is not None else None
        if entity is None:
            raise StoreFailure(f"Unknown {label} reference: {value!r}")
        return entity

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreFailure(str(exc)) from exc

    def _remove(self, entity):
        entity_id = entity.id
        self.session.delete(entity)
        self._commit()
        logger.info("Deleted %s %s", self.kind, entity_id)


class AuthorService(_Service):
    kind = "Author"
    model = Author

    def list(self):
        return self.session.query(Author).order_by(Author.family_name.asc()).all()

    def _books_by(self, author_id):
        return (self.session.query(Book)
                .options(selectinload(Book.genre))
                .filter_by(author_id=author_id)
                .order_by(Book.title.asc())
                .all())

    def detail(self, author_id):
        """Author plus all of their books."""
        author = self.get(author_id)
        return author, self._books_by(author_id)

    delete_preview = detail

    @staticmethod
    def _build(data, author=None):
        author = author or Author()
        author.first_name = data["first_name"]
        author.family_name = data["family_name"]
        author.date_of_birth = data["date_of_birth"]
        author.date_of_death = data["date_of_death"]
        return author

    def create(self, fields):
        data, errors = validate_author(fields)
        if errors:
            raise ValidationFailed(self._build(data), errors)

        author = self._build(data)
        self.session.add(author)
        self._commit()
        logger.info("Created author %s (%s)", author.id, author.display_name)
        return author

    def update(self, author_id, fields):
        existing = self.get(author_id)
        data, errors = validate_author(fields)
        if errors:
            draft = self._build(data)
            draft.id = author_id
            raise ValidationFailed(draft, errors)

        self._build(data, existing)
        self._commit()
        logger.info("Updated author %s", author_id)
        return existing

    def delete(self, author_id):
        author, books = self.detail(author_id)
        if books:
            logger.warning("Refused to delete author %s: %d book(s) attached",
                           author_id, len(books))
            raise BlockedByDependents(
                author, books, "Delete the following books before deleting this author.")
        self._remove(author)


class GenreService(_Service):
    kind = "Genre"
    model = Genre

    def list(self):
        return self.session.query(Genre).order_by(Genre.name.asc()).all()

    def _books_in(self, genre_id, with_relations=False):
        query = self.session.query(Book).filter(Book.genre.any(Genre.id == genre_id))
        if with_relations:
            query = query.options(joinedload(Book.author), selectinload(Book.genre))
        return query.order_by(Book.title.asc()).all()

    def detail(self, genre_id):
        genre = self.get(genre_id)
        return genre, self._books_in(genre_id)

    def delete_preview(self, genre_id):
        genre = self.get(genre_id)
        return genre, self._books_in(genre_id, with_relations=True)

    def find_by_name(self, name):
        """Case and accent insensitive lookup."""
        return self.session.query(Genre).filter_by(name_key=fold_name(name)).first()

    def create(self, fields):
        """
        Create a genre, or return the existing one when the name is already
        taken (ignoring case and accents).
        """
        data, errors = validate_genre(fields)
        if errors:
            raise ValidationFailed(Genre(name=data["name"]), errors)

        existing = self.find_by_name(data["name"])
        if existing is not None:
            logger.info("Genre '%s' already exists as %s", data["name"], existing.id)
            return existing

        genre = Genre(name=data["name"])
        self.session.add(genre)
        self._commit()
        logger.info("Created genre %s (%s)", genre.id, genre.name)
        return genre

    def update(self, genre_id, fields):
        """
        Rename a genre. When another genre already carries the new name the
        rename is skipped and that other genre is returned instead.
        """
        genre = self.get(genre_id)
        data, errors = validate_genre(fields)
        if errors:
            draft = Genre(name=data["name"])
            draft.id = genre_id
            raise ValidationFailed(draft, errors)

        existing = self.find_by_name(data["name"])
        if existing is not None and existing.id != genre.id:
            logger.info("Genre %s not renamed: '%s' already exists as %s",
                        genre_id, data["name"], existing.id)
            return existing

        genre.name = data["name"]
        self._commit()
        logger.info("Updated genre %s", genre_id)
        return genre

    def delete(self, genre_id):
        genre, books = self.delete_preview(genre_id)
        if books:
            logger.warning("Refused to delete genre %s: %d book(s) attached",
                           genre_id, len(books))
            raise BlockedByDependents(
                genre, books, "Delete the following books before deleting this genre.")
        self._remove(genre)


class BookService(_Service):
    kind = "Book"
    model = Book

    def list(self):
        return (self.session.query(Book)
                .options(joinedload(Book.author))
                .order_by(Book.title.asc())
                .all())

    def _instances_of(self, book_id):
        return self.session.query(BookInstance).filter_by(book_id=book_id).all()

    def detail(self, book_id):
        """Book with its author and genres, plus every copy of it."""
        book = self.get(book_id)
        return book, self._instances_of(book_id)

    delete_preview = detail

    def form_options(self, selected_genre_ids=()):
        """
        Authors and genres for the book form; genres listed in
        selected_genre_ids come back checked.
        """
        selected = {str(genre_id) for genre_id in selected_genre_ids}
        authors = self.session.query(Author).order_by(Author.first_name.asc()).all()
        genres = self.session.query(Genre).order_by(Genre.name.asc()).all()
        return {
            "authors": authors,
            "genres": [GenreOption(g, str(g.id) in selected) for g in genres],
        }

    def edit_form(self, book_id):
        book = self.get(book_id)
        return book, self.form_options([g.id for g in book.genre])

    def _validated(self, fields, book_id=None):
        fields = dict(fields or {})
        fields["genre"] = normalize_genre(fields.get("genre"))
        data, errors = validate_book(fields)
        if errors:
            draft = Book(title=data["title"], summary=data["summary"],
                         isbn=data["isbn"], author_id=_as_id(data["author"]))
            draft.id = book_id
            context = self.form_options(data["genre"])
            context["selected_genres"] = data["genre"]
            raise ValidationFailed(draft, errors, context)
        return data

    def _fill(self, book, data):
        # resolve references first so a bad one leaves the book untouched
        author = self._resolve(Author, data["author"], "author")
        genres = [self._resolve(Genre, g, "genre") for g in data["genre"]]
        book.title = data["title"]
        book.summary = data["summary"]
        book.isbn = data["isbn"]
        book.author = author
        book.genre = genres
        return book

    def create(self, fields):
        data = self._validated(fields)
        book = self._fill(Book(), data)
        self.session.add(book)
        self._commit()
        logger.info("Created book %s (%s)", book.id, book.title)
        return book

    def update(self, book_id, fields):
        book = self.get(book_id)
        data = self._validated(fields, book_id)
        self._fill(book, data)
        self._commit()
        logger.info("Updated book %s", book_id)
        return book

    def delete(self, book_id):
        book, instances = self.detail(book_id)
        if instances:
            logger.warning("Refused to delete book %s: %d copy(ies) attached",
                           book_id, len(instances))
            raise BlockedByDependents(
                book, instances, "Delete the following copies before deleting this book.")
        self._remove(book)


class BookInstanceService(_Service):
    kind = "BookInstance"
    model = BookInstance

    def list(self):
        return (self.session.query(BookInstance)
                .options(joinedload(BookInstance.book))
                .order_by(BookInstance.id.asc())
                .all())

    def detail(self, instance_id):
        return self.get(instance_id)

    def delete_preview(self, instance_id):
        return self.get(instance_id), []

    def form_options(self):
        return {"books": self.session.query(Book).order_by(Book.title.asc()).all()}

    def _validated(self, fields, instance_id=None):
        data, errors = validate_book_instance(fields)
        if errors:
            status = data["status"] if data["status"] in STATUS_CHOICES else DEFAULT_STATUS
            draft = BookInstance(book_id=_as_id(data["book"]), imprint=data["imprint"],
                                 status=status, dueback=data["due_back"] or date.today())
            draft.id = instance_id
            context = self.form_options()
            context["selected_book"] = data["book"]
            raise ValidationFailed(draft, errors, context)
        return data

    def _fill(self, instance, data):
        book = self._resolve(Book, data["book"], "book")
        # the model rejects unknown states before anything else is assigned
        try:
            instance.status = data["status"] or DEFAULT_STATUS
        except ValueError as exc:
            raise StoreFailure(str(exc)) from exc
        instance.book = book
        instance.imprint = data["imprint"]
        instance.dueback = data["due_back"] or date.today()
        return instance

    def create(self, fields):
        data = self._validated(fields)
        instance = self._fill(BookInstance(), data)
        self.session.add(instance)
        self._commit()
        logger.info("Created book instance %s of book %s", instance.id, instance.book_id)
        return instance

    def update(self, instance_id, fields):
        instance = self.get(instance_id)
        data = self._validated(fields, instance_id)
        self._fill(instance, data)
        self._commit()
        logger.info("Updated book instance %s", instance_id)
        return instance

    def delete(self, instance_id):
        """Only copies that are Available may be deleted."""
        instance = self.get(instance_id)
        if instance.status != "Available":
            logger.warning("Refused to delete book instance %s with status %s",
                           instance_id, instance.status)
            raise BlockedByDependents(
                instance, [],
                f"This copy is {instance.status} and can only be deleted once Available.")
        self._remove(instance)


class Catalog:
    """
    Entry point bundling one service per entity kind over the same session.
    """

    def __init__(self, session):
        self.session = session
        self.authors = AuthorService(session)
        self.genres = GenreService(session)
        self.books = BookService(session)
        self.book_instances = BookInstanceService(session)

    def counts(self):
        return {
            "book_count": self.session.query(Book).count(),
            "bookinstance_count": self.session.query(BookInstance).count(),
            "bookinstance_available_count": (
                self.session.query(BookInstance).filter_by(status="Available").count()),
            "author_count": self.session.query(Author).count(),
            "genre_count": self.session.query(Genre).count(),
        }
