"""
LocalLibrary - a library catalog built with Flask and SQLAlchemy.

Features:
- Browse authors, books, genres and book copies
- Create, update and delete each of them through validated forms
- Deletes are refused while other records still depend on the entry
  (and copies can only be deleted once Available)
- Genre names stay unique regardless of case and accents
"""
import logging
import os

from flask import (
    Blueprint, Flask, current_app, flash, redirect, render_template, request, url_for,
)
from sqlalchemy.exc import SQLAlchemyError

from catalog import Catalog
from config import Config
from data_models import STATUS_CHOICES, db
from errors import BlockedByDependents, NotFound, StoreFailure, ValidationFailed

logger = logging.getLogger(__name__)

bp = Blueprint("catalog", __name__, url_prefix="/catalog")


def create_app(config=Config):
    """
    Application factory. The catalog services are built once here and kept
    in app.extensions["catalog"].
    """
    app = Flask(__name__)
    app.config.from_object(config)
    logging.basicConfig(level=app.config["LOG_LEVEL"])

    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri.startswith("sqlite:///"):
        os.makedirs(os.path.dirname(uri[len("sqlite:///"):]) or ".", exist_ok=True)

    db.init_app(app)
    with app.app_context():
        db.create_all()
        app.extensions["catalog"] = Catalog(db.session)

    app.register_blueprint(bp)
    app.add_url_rule("/", "root", lambda: redirect(url_for("catalog.index")))
    register_error_handlers(app)
    return app


def register_error_handlers(app):
    @app.errorhandler(NotFound)
    def handle_not_found(exc):
        return render_template("error.html", title="Not found", message=str(exc)), 404

    @app.errorhandler(404)
    def handle_unknown_url(exc):
        return render_template("error.html", title="Not found",
                               message="The page you requested does not exist."), 404

    @app.errorhandler(StoreFailure)
    @app.errorhandler(SQLAlchemyError)
    def handle_store_failure(exc):
        db.session.rollback()
        logger.exception("Store failure while handling %s %s", request.method, request.path)
        return render_template("error.html", title="Something went wrong",
                               message="The catalog could not complete your request."), 500


def get_catalog() -> Catalog:
    return current_app.extensions["catalog"]


def form_fields():
    """
    Submitted form as a plain dict. A key sent several times (genre
    checkboxes) maps to a list, a key sent once to its single value.
    """
    return {key: values[0] if len(values) == 1 else values
            for key, values in request.form.lists()}


@bp.route("/")
def index():
    """
    Homepage: counts of every record kind.
    """
    return render_template("index.html", title="Local Library Home", **get_catalog().counts())


# --- Authors ---

@bp.route("/authors")
def author_list():
    """List all authors."""
    return render_template("author_list.html", title="Author List",
                           author_list=get_catalog().authors.list())


@bp.route("/author/<int:author_id>")
def author_detail(author_id):
    """Show an author detail page (including their books)."""
    author, books = get_catalog().authors.detail(author_id)
    return render_template("author_detail.html", title="Author Detail",
                           author=author, author_books=books)


@bp.route("/author/create", methods=["GET", "POST"])
def author_create():
    """Add a new author to the catalog."""
    if request.method == "POST":
        try:
            author = get_catalog().authors.create(form_fields())
        except ValidationFailed as exc:
            return render_template("author_form.html", title="Create Author",
                                   author=exc.entity, errors=exc.errors)
        return redirect(author.url)

    return render_template("author_form.html", title="Create Author")


@bp.route("/author/<int:author_id>/delete", methods=["GET", "POST"])
def author_delete(author_id):
    """
    Confirm and delete an author. Refused while the author still has books.
    """
    authors = get_catalog().authors
    if request.method == "POST":
        try:
            authors.delete(author_id)
        except BlockedByDependents as exc:
            return render_template("author_delete.html", title="Delete Author",
                                   author=exc.entity, author_books=exc.dependents,
                                   message=exc.reason)
        flash("Author was deleted successfully.", "success")
        return redirect(url_for("catalog.author_list"))

    author, books = authors.delete_preview(author_id)
    return render_template("author_delete.html", title="Delete Author",
                           author=author, author_books=books)


@bp.route("/author/<int:author_id>/update", methods=["GET", "POST"])
def author_update(author_id):
    """Edit an author. The whole record is replaced by the form values."""
    authors = get_catalog().authors
    if request.method == "POST":
        try:
            author = authors.update(author_id, form_fields())
        except ValidationFailed as exc:
            return render_template("author_form.html", title="Update Author",
                                   author=exc.entity, errors=exc.errors)
        return redirect(author.url)

    return render_template("author_form.html", title="Update Author",
                           author=authors.get(author_id))


# --- Genres ---

@bp.route("/genres")
def genre_list():
    """List all genres."""
    return render_template("genre_list.html", title="Genre List",
                           genre_list=get_catalog().genres.list())


@bp.route("/genre/<int:genre_id>")
def genre_detail(genre_id):
    """Show a genre and the books filed under it."""
    genre, books = get_catalog().genres.detail(genre_id)
    return render_template("genre_detail.html", title="Genre Detail",
                           genre=genre, genre_books=books)


@bp.route("/genre/create", methods=["GET", "POST"])
def genre_create():
    """
    Create a genre. A name that already exists (ignoring case) leads to the
    existing genre instead.
    """
    if request.method == "POST":
        try:
            genre = get_catalog().genres.create(form_fields())
        except ValidationFailed as exc:
            return render_template("genre_form.html", title="Create Genre",
                                   genre=exc.entity, errors=exc.errors)
        return redirect(genre.url)

    return render_template("genre_form.html", title="Create Genre")


@bp.route("/genre/<int:genre_id>/delete", methods=["GET", "POST"])
def genre_delete(genre_id):
    """Confirm and delete a genre. Refused while books still use it."""
    genres = get_catalog().genres
    if request.method == "POST":
        try:
            genres.delete(genre_id)
        except BlockedByDependents as exc:
            return render_template("genre_delete.html", title="Delete Genre",
                                   genre=exc.entity, genre_books=exc.dependents,
                                   message=exc.reason)
        flash("Genre was deleted successfully.", "success")
        return redirect(url_for("catalog.genre_list"))

    genre, books = genres.delete_preview(genre_id)
    return render_template("genre_delete.html", title="Delete Genre",
                           genre=genre, genre_books=books)


@bp.route("/genre/<int:genre_id>/update", methods=["GET", "POST"])
def genre_update(genre_id):
    """Rename a genre. A name taken by another genre leads to that genre instead."""
    genres = get_catalog().genres
    if request.method == "POST":
        try:
            genre = genres.update(genre_id, form_fields())
        except ValidationFailed as exc:
            return render_template("genre_form.html", title="Update Genre",
                                   genre=exc.entity, errors=exc.errors)
        return redirect(genre.url)

    return render_template("genre_form.html", title="Update Genre",
                           genre=genres.get(genre_id))


# --- Books ---

@bp.route("/books")
def book_list():
    """
    All books sorted by title, with their authors.
    """
    return render_template("book_list.html", title="Book List",
                           book_list=get_catalog().books.list())


@bp.route("/book/<int:book_id>")
def book_detail(book_id):
    """Show a book with its author, genres and copies."""
    book, instances = get_catalog().books.detail(book_id)
    return render_template("book_detail.html", title="Book Detail",
                           book=book, book_instances=instances)


@bp.route("/book/create", methods=["GET", "POST"])
def book_create():
    """Add a new book. A single checked genre is accepted as well as several."""
    books = get_catalog().books
    if request.method == "POST":
        try:
            book = books.create(form_fields())
        except ValidationFailed as exc:
            return render_template("book_form.html", title="Create Book",
                                   book=exc.entity, errors=exc.errors, **exc.context)
        return redirect(book.url)

    return render_template("book_form.html", title="Create Book", **books.form_options())


@bp.route("/book/<int:book_id>/delete", methods=["GET", "POST"])
def book_delete(book_id):
    """Confirm and delete a book. Refused while copies of it exist."""
    books = get_catalog().books
    if request.method == "POST":
        try:
            books.delete(book_id)
        except BlockedByDependents as exc:
            return render_template("book_delete.html", title="Delete Book",
                                   book=exc.entity, book_instances=exc.dependents,
                                   message=exc.reason)
        flash("Book was deleted successfully.", "success")
        return redirect(url_for("catalog.book_list"))

    book, instances = books.delete_preview(book_id)
    return render_template("book_delete.html", title="Delete Book",
                           book=book, book_instances=instances)


@bp.route("/book/<int:book_id>/update", methods=["GET", "POST"])
def book_update(book_id):
    """Edit a book, replacing its author and genres."""
    books = get_catalog().books
    if request.method == "POST":
        try:
            book = books.update(book_id, form_fields())
        except ValidationFailed as exc:
            return render_template("book_form.html", title="Update Book",
                                   book=exc.entity, errors=exc.errors, **exc.context)
        return redirect(book.url)

    book, options = books.edit_form(book_id)
    return render_template("book_form.html", title="Update Book", book=book, **options)


# --- Book instances ---

@bp.route("/bookinstances")
def bookinstance_list():
    """List every copy together with its book."""
    return render_template("bookinstance_list.html", title="Book Instance List",
                           bookinstance_list=get_catalog().book_instances.list())


@bp.route("/bookinstance/<int:instance_id>")
def bookinstance_detail(instance_id):
    """Show a single copy."""
    instance = get_catalog().book_instances.detail(instance_id)
    return render_template("bookinstance_detail.html", title="Book Instance",
                           bookinstance=instance)


@bp.route("/bookinstance/create", methods=["GET", "POST"])
def bookinstance_create():
    """Add a new copy of a book."""
    instances = get_catalog().book_instances
    if request.method == "POST":
        try:
            instance = instances.create(form_fields())
        except ValidationFailed as exc:
            return render_template("bookinstance_form.html", title="Create Book Instance",
                                   bookinstance=exc.entity, errors=exc.errors,
                                   statuses=STATUS_CHOICES, **exc.context)
        return redirect(instance.url)

    return render_template("bookinstance_form.html", title="Create Book Instance",
                           statuses=STATUS_CHOICES, **instances.form_options())


@bp.route("/bookinstance/<int:instance_id>/delete", methods=["GET", "POST"])
def bookinstance_delete(instance_id):
    """
    Confirm and delete a copy. Only Available copies can be deleted.
    """
    instances = get_catalog().book_instances
    if request.method == "POST":
        try:
            instances.delete(instance_id)
        except BlockedByDependents as exc:
            return render_template("bookinstance_delete.html", title="Delete Book Instance",
                                   bookinstance=exc.entity, message=exc.reason)
        flash("Book instance was deleted successfully.", "success")
        return redirect(url_for("catalog.bookinstance_list"))

    instance, _ = instances.delete_preview(instance_id)
    return render_template("bookinstance_delete.html", title="Delete Book Instance",
                           bookinstance=instance)


@bp.route("/bookinstance/<int:instance_id>/update", methods=["GET", "POST"])
def bookinstance_update(instance_id):
    """Edit a copy, including its status and due date."""
    instances = get_catalog().book_instances
    if request.method == "POST":
        try:
            instance = instances.update(instance_id, form_fields())
        except ValidationFailed as exc:
            return render_template("bookinstance_form.html", title="Update Book Instance",
                                   bookinstance=exc.entity, errors=exc.errors,
                                   statuses=STATUS_CHOICES, **exc.context)
        return redirect(instance.url)

    instance = instances.get(instance_id)
    return render_template("bookinstance_form.html", title="Update Book Instance",
                           bookinstance=instance, selected_book=str(instance.book_id),
                           statuses=STATUS_CHOICES, **instances.form_options())


if __name__ == "__main__":
    create_app().run(debug=True)
