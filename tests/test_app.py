from conftest import book_form
from data_models import Author, BookInstance, Genre, db


def test_root_redirects_to_catalog(client):
    response = client.get("/")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/catalog/")


def test_index_shows_counts(client, book):
    response = client.get("/catalog/")
    assert response.status_code == 200
    assert b"Books:</strong> 1" in response.data


def test_create_author_redirects_to_detail(client):
    response = client.post("/catalog/author/create",
                           data={"first_name": "Terry", "family_name": "Pratchett",
                                 "date_of_birth": "1948-04-28"})
    author = db.session.query(Author).one()
    assert response.status_code == 302
    assert response.headers["Location"] == author.url

    page = client.get(author.url)
    assert b"Pratchett, Terry" in page.data
    assert b"Apr 28, 1948 \xe2\x80\x93 Alive" in page.data


def test_invalid_author_form_is_shown_again(client):
    response = client.post("/catalog/author/create",
                           data={"first_name": "Terry", "family_name": "Pr4tchett"})
    assert response.status_code == 200
    assert b"Family name must contain letters only." in response.data
    assert b'value="Terry"' in response.data
    assert db.session.query(Author).count() == 0


def test_missing_entities_are_404(client):
    for url in ["/catalog/author/9", "/catalog/book/9", "/catalog/genre/9",
                "/catalog/bookinstance/9", "/catalog/book/9/update"]:
        assert client.get(url).status_code == 404


def test_unknown_url_is_404(client):
    assert client.get("/catalog/nothing-here").status_code == 404


def test_genre_create_twice_lands_on_same_genre(client):
    first = client.post("/catalog/genre/create", data={"name": "Fantasy"})
    second = client.post("/catalog/genre/create", data={"name": "fantasy"})
    assert first.headers["Location"] == second.headers["Location"]
    assert db.session.query(Genre).count() == 1


def test_genre_delete_blocked_page(client, fantasy, book):
    response = client.post(f"/catalog/genre/{fantasy.id}/delete")
    assert response.status_code == 200
    assert b"Delete the following books before deleting this genre." in response.data
    assert b"A Wizard of Earthsea" in response.data
    assert db.session.query(Genre).count() == 1


def test_author_delete_redirects_to_list(client, author):
    response = client.post(f"/catalog/author/{author.id}/delete")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/catalog/authors")
    assert db.session.query(Author).count() == 0


def test_book_create_with_checked_genres(client, author, fantasy):
    poetry = client.post("/catalog/genre/create", data={"name": "Poetry"})
    assert poetry.status_code == 302
    form = book_form(author, genre=[str(fantasy.id), "2"])
    response = client.post("/catalog/book/create", data=form)
    assert response.status_code == 302
    page = client.get(response.headers["Location"])
    assert b"Fantasy" in page.data and b"Poetry" in page.data


def test_book_form_errors_keep_genre_checked(client, author, fantasy):
    response = client.post("/catalog/book/create",
                           data=book_form(author, title="", genre=str(fantasy.id)))
    assert response.status_code == 200
    assert b"Title must not be empty." in response.data
    assert b"checked" in response.data


def test_book_update_form_prefilled(client, book):
    response = client.get(f"/catalog/book/{book.id}/update")
    assert response.status_code == 200
    assert b"A Wizard of Earthsea" in response.data


def test_loaned_copy_delete_is_refused(client, catalog, book):
    instance = catalog.book_instances.create({"book": str(book.id), "imprint": "Parnassus",
                                              "status": "Loaned"})
    response = client.post(f"/catalog/bookinstance/{instance.id}/delete")
    assert response.status_code == 200
    assert b"can only be deleted once Available" in response.data
    assert db.session.query(BookInstance).count() == 1


def test_available_copy_delete(client, catalog, book):
    instance = catalog.book_instances.create({"book": str(book.id), "imprint": "Parnassus",
                                              "status": "Available"})
    response = client.post(f"/catalog/bookinstance/{instance.id}/delete")
    assert response.status_code == 302
    assert db.session.query(BookInstance).count() == 0


def test_bookinstance_pages(client, catalog, book):
    instance = catalog.book_instances.create({"book": str(book.id), "imprint": "Parnassus",
                                              "due_back": "2026-11-02"})
    assert b"Nov 2, 2026" in client.get("/catalog/bookinstances").data
    form = client.get(f"/catalog/bookinstance/{instance.id}/update")
    assert b'value="2026-11-02"' in form.data


def test_store_failure_is_500(client, author):
    response = client.post("/catalog/book/create", data=book_form(author, author="77"))
    assert response.status_code == 500
    assert b"could not complete your request" in response.data


def test_out_of_range_id_is_404(client):
    huge = "99999999999999999999"
    for url in [f"/catalog/author/{huge}", f"/catalog/genre/{huge}/update",
                f"/catalog/book/{huge}/delete", f"/catalog/bookinstance/{huge}"]:
        assert client.get(url).status_code == 404


def test_unchanged_genre_edit_keeps_name(client, catalog):
    genre = catalog.genres.create({"name": "R&B"})
    form = client.get(f"/catalog/genre/{genre.id}/update")
    assert b'value="R&amp;B"' in form.data

    # the browser sends the decoded attribute value back
    response = client.post(f"/catalog/genre/{genre.id}/update", data={"name": "R&B"})
    assert response.status_code == 302
    assert catalog.genres.get(genre.id).name == "R&amp;B"

    again = client.post("/catalog/genre/create", data={"name": "r&b"})
    assert again.headers["Location"] == genre.url
    assert db.session.query(Genre).count() == 1


def test_unchanged_book_edit_keeps_title(client, catalog, author):
    book = catalog.books.create(book_form(author, title="Tom & Jerry"))
    form = client.get(f"/catalog/book/{book.id}/update")
    assert b'value="Tom &amp; Jerry"' in form.data
    assert b"&amp;amp;" not in form.data

    client.post(f"/catalog/book/{book.id}/update",
                data=book_form(author, title="Tom & Jerry"))
    assert catalog.books.get(book.id).title == "Tom &amp; Jerry"
    assert b"<h2>Tom &amp; Jerry</h2>" in client.get(book.url).data


def test_book_update_errors_show_form_again(client, book, author, fantasy):
    response = client.post(f"/catalog/book/{book.id}/update",
                           data=book_form(author, summary="", genre=str(fantasy.id)))
    assert response.status_code == 200
    assert b"Summary must not be empty." in response.data
    assert b"checked" in response.data
