import pytest
from sqlalchemy.exc import IntegrityError

from campus_library.errors import ConflictError, InvariantViolation, NotFoundError, ValidationError
from campus_library.extensions import db
from campus_library.models import Book, BookCopy, CopyStatus
from campus_library.services.catalog_service import CatalogService
from campus_library.services.lookup_service import LookupIndex


def test_create_book_provisions_numbered_copies(college, make_book, consistent):
    book = make_book(college, copies=3, code="PHY101")

    assert book.total_copies == 3
    assert book.available_copies == 3
    copies = BookCopy.query.filter_by(book_id=book.id).order_by(BookCopy.copy_number).all()
    assert [c.copy_number for c in copies] == [1, 2, 3]
    assert {c.status for c in copies} == {CopyStatus.AVAILABLE}
    assert all(c.college_id == college.id for c in copies)
    consistent()


@pytest.mark.parametrize("copies", [0, -2, "many", None, True])
def test_create_book_rejects_bad_copy_count(college, copies):
    with pytest.raises(ValidationError):
        CatalogService.create_book(college.id, {"title": "T", "author": "A", "genre": "G"}, copies)
    assert Book.query.count() == 0


def test_create_book_requires_title_author_genre(college):
    with pytest.raises(ValidationError, match="title"):
        CatalogService.create_book(college.id, {"author": "A", "genre": "G"}, 1)
    with pytest.raises(ValidationError, match="genre"):
        CatalogService.create_book(college.id, {"title": "T", "author": "A", "genre": "  "}, 1)


def test_create_book_generates_code_when_missing(app, college, make_book):
    book = make_book(college, copies=1)

    assert book.unique_code is not None
    assert len(book.unique_code) == app.config["LIBRARY_CODE_LENGTH"]
    assert book.unique_code.isalnum() and book.unique_code.upper() == book.unique_code


def test_same_code_in_two_colleges_resolves_to_distinct_books(college, other_college, make_book):
    a = make_book(college, code="PHY101", title="Physics Vol 1")
    b = make_book(other_college, code="PHY101", title="Fisica Basica")

    assert LookupIndex.resolve(college.id, "PHY101").id == a.id
    assert LookupIndex.resolve(other_college.id, "PHY101").id == b.id
    assert a.id != b.id


def test_duplicate_code_within_college_conflicts(college, make_book):
    make_book(college, code="PHY101")

    with pytest.raises(ConflictError):
        make_book(college, code="PHY101", title="Another physics book")
    assert Book.query.filter_by(college_id=college.id).count() == 1
    assert BookCopy.query.count() == 1


def test_resolve_strips_whitespace_and_reports_missing(college, make_book):
    book = make_book(college, code="CHEM7")

    assert CatalogService.find_book_by_unique_code(college.id, "  CHEM7 ").id == book.id
    with pytest.raises(NotFoundError):
        LookupIndex.resolve(college.id, "NOPE")
    with pytest.raises(ValidationError):
        LookupIndex.resolve(college.id, "   ")


def test_assign_code_to_existing_book(college, make_book):
    book = make_book(college, code="BIO1")
    with pytest.raises(ConflictError):
        CatalogService.assign_unique_code(book.id)

    book.unique_code = None
    db.session.commit()
    updated = CatalogService.assign_unique_code(book.id)
    assert updated.unique_code and updated.unique_code != "BIO1"


def test_adjust_availability_stays_in_range(college, make_book):
    book = make_book(college, copies=2)

    assert CatalogService.adjust_availability(book.id, -1).available_copies == 1
    assert CatalogService.adjust_availability(book.id, +1).available_copies == 2

    with pytest.raises(InvariantViolation):
        CatalogService.adjust_availability(book.id, +1)
    with pytest.raises(InvariantViolation):
        CatalogService.adjust_availability(book.id, -3)
    assert CatalogService.get_book(book.id).available_copies == 2


def test_adjust_availability_unknown_book(app):
    with pytest.raises(NotFoundError):
        CatalogService.adjust_availability(999, -1)


def test_list_books_filters_by_college_and_text(college, other_college, make_book):
    make_book(college, title="Organic Chemistry", genre="Chemistry")
    make_book(college, title="Quantum Physics")
    make_book(other_college, title="Organic Chemistry II")

    result = CatalogService.list_books(college.id, query="organic")
    assert [b.title for b in result.items] == ["Organic Chemistry"]

    result = CatalogService.list_books(college.id, genre="Chemistry")
    assert result.total == 1
    assert CatalogService.list_books(college.id).total == 2


def test_numeric_code_is_stored_and_resolved_as_text(college, make_book):
    book = make_book(college, code=101)

    assert book.unique_code == "101"
    assert LookupIndex.resolve(college.id, 101).id == book.id
    assert LookupIndex.resolve(college.id, " 101 ").id == book.id
    with pytest.raises(ValidationError):
        LookupIndex.resolve(college.id, True)


def test_missing_college_is_not_reported_as_a_code_conflict(app):
    data = {"title": "T", "author": "A", "genre": "G", "unique_code": "PHY101"}

    with pytest.raises(IntegrityError):
        CatalogService.create_book(None, data, 1)
    assert Book.query.count() == 0


def test_update_book_metadata(college, make_book, consistent):
    book = make_book(college, copies=2, code="PHY101", title="Physics")

    updated = CatalogService.update_book(book.id, {
        "title": "  Physics, 2nd ed. ",
        "publish_year": "2021",
        "location": "Rack B",
        "unique_code": " PHY102 ",
    })

    assert updated.title == "Physics, 2nd ed."
    assert updated.publish_year == 2021
    assert updated.location == "Rack B"
    assert updated.unique_code == "PHY102"
    assert LookupIndex.resolve(college.id, "PHY102").id == book.id
    assert (updated.total_copies, updated.available_copies) == (2, 2)
    consistent()


def test_update_book_keeps_own_code_and_rejects_taken_code(college, other_college, make_book):
    book = make_book(college, code="PHY101")
    make_book(college, code="CHEM1", title="Chemistry")
    make_book(other_college, code="BIO1", title="Biology")

    assert CatalogService.update_book(book.id, {"unique_code": "PHY101"}).unique_code == "PHY101"
    # another college's code is free here
    assert CatalogService.update_book(book.id, {"unique_code": "BIO1"}).unique_code == "BIO1"

    with pytest.raises(ConflictError):
        CatalogService.update_book(book.id, {"unique_code": "CHEM1"})
    assert CatalogService.get_book(book.id).unique_code == "BIO1"


@pytest.mark.parametrize(
    "data",
    [
        {"total_copies": 10},
        {"available_copies": 0},
        {"title": "  "},
        {"language": ""},
        {"unique_code": ""},
        {"pages": "many"},
        {},
    ],
)
def test_update_book_rejects(college, make_book, data):
    book = make_book(college, copies=2, code="PHY101")

    with pytest.raises(ValidationError):
        CatalogService.update_book(book.id, data)

    book = CatalogService.get_book(book.id)
    assert (book.title, book.unique_code, book.total_copies, book.available_copies) == (
        "Concepts of Physics", "PHY101", 2, 2
    )


def test_update_unknown_book(app):
    with pytest.raises(NotFoundError):
        CatalogService.update_book(999, {"title": "T"})


def test_genres_are_distinct_and_scoped_to_college(college, other_college, make_book):
    make_book(college, genre="Science")
    make_book(college, genre="History", title="World History")
    make_book(college, genre="Science", title="Biology")
    make_book(other_college, genre="Poetry", title="Odes")

    assert CatalogService.list_genres(college.id) == ["History", "Science"]
    assert CatalogService.list_genres(other_college.id) == ["Poetry"]
