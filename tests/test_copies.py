import pytest

from campus_library.errors import InvalidStateError, NoAvailableCopyError, NotFoundError, ValidationError
from campus_library.models import BookCopy, CopyStatus
from campus_library.repositories.copy_repo import CopyRepo
from campus_library.services.catalog_service import CatalogService
from campus_library.services.circulation_service import CirculationService
from campus_library.services.copy_service import CopyService


def _copies(book):
    return BookCopy.query.filter_by(book_id=book.id).order_by(BookCopy.copy_number).all()


def test_acquired_copies_continue_numbering(college, make_book, consistent):
    book = make_book(college, copies=2)

    book = CirculationService.acquire_copies(book.id, 3)

    assert [c.copy_number for c in _copies(book)] == [1, 2, 3, 4, 5]
    assert book.total_copies == 5
    assert book.available_copies == 5
    consistent()


def test_provision_rejects_unknown_condition(college, make_book):
    book = make_book(college)
    with pytest.raises(ValidationError):
        CopyService.provision_copies(book.id, college.id, 1, condition="shredded")


def test_allocate_takes_lowest_available_copy_number(college, make_book):
    book = make_book(college, copies=3)
    first = _copies(book)[0]
    CopyRepo.claim(first.id)

    copy = CopyService.allocate_free_copy(book.id)

    assert copy.copy_number == 2
    assert copy.status == CopyStatus.BORROWED


def test_claim_is_conditional_on_available(college, make_book):
    book = make_book(college, copies=1)
    copy = _copies(book)[0]

    assert CopyRepo.claim(copy.id) is True
    assert CopyRepo.claim(copy.id) is False


def test_loser_of_a_claim_race_moves_to_next_candidate(college, make_book, monkeypatch):
    book = make_book(college, copies=2)
    c1, c2 = _copies(book)
    stale = [c1.id, c2.id]
    monkeypatch.setattr(CopyRepo, "available_ids", staticmethod(lambda book_id: list(stale)))

    # another worker wins copy #1 after our candidate list was read
    assert CopyRepo.claim(c1.id)
    copy = CopyService.allocate_free_copy(book.id)

    assert copy.id == c2.id


def test_last_copy_race_has_exactly_one_winner(college, make_book, monkeypatch):
    book = make_book(college, copies=1)
    (only,) = _copies(book)
    # both workers read the same candidate list before either claims
    monkeypatch.setattr(CopyRepo, "available_ids", staticmethod(lambda book_id: [only.id]))

    winner = CopyService.allocate_free_copy(book.id)
    with pytest.raises(NoAvailableCopyError):
        CopyService.allocate_free_copy(book.id)

    assert winner.id == only.id


def test_allocate_with_no_copies_available(college, make_book):
    book = make_book(college, copies=1)
    CopyService.allocate_free_copy(book.id)

    with pytest.raises(NoAvailableCopyError):
        CopyService.allocate_free_copy(book.id)


def test_release_requires_borrowed(college, make_book):
    book = make_book(college, copies=1)
    copy = _copies(book)[0]

    with pytest.raises(InvalidStateError):
        CopyService.release_copy(copy.id)
    with pytest.raises(NotFoundError):
        CopyService.release_copy(12345)

    CopyRepo.claim(copy.id)
    assert CopyService.release_copy(copy.id).status == CopyStatus.AVAILABLE


def test_borrowed_copy_cannot_be_retired(college, make_book):
    book = make_book(college, copies=1)
    copy = CopyService.allocate_free_copy(book.id)

    with pytest.raises(InvalidStateError):
        CopyService.mark_lost(copy.id)
    with pytest.raises(InvalidStateError):
        CopyService.mark_maintenance(copy.id)


def test_retire_and_restore_keep_counter_in_sync(college, make_book, consistent):
    book = make_book(college, copies=2)
    c1, c2 = _copies(book)

    CirculationService.retire_copy(c1.id, CopyStatus.MAINTENANCE)
    assert CatalogService.get_book(book.id).available_copies == 1
    consistent()

    # maintenance -> lost does not touch the counter again
    CirculationService.retire_copy(c1.id, CopyStatus.LOST)
    assert CopyService.get_copy(c1.id).status == CopyStatus.LOST
    assert CatalogService.get_book(book.id).available_copies == 1
    consistent()

    CirculationService.restore_copy(c1.id)
    assert CatalogService.get_book(book.id).available_copies == 2
    consistent()

    with pytest.raises(InvalidStateError):
        CirculationService.restore_copy(c2.id)
    with pytest.raises(ValidationError):
        CirculationService.retire_copy(c2.id, CopyStatus.BORROWED)
    consistent()


def test_update_copy_details(college, make_book, consistent):
    book = make_book(college, copies=1)
    (copy,) = _copies(book)

    updated = CirculationService.update_copy_details(copy.id, condition="poor", notes="  spine torn ")

    assert updated.condition == "poor"
    assert updated.notes == "spine torn"
    assert updated.status == CopyStatus.AVAILABLE
    assert CopyService.update_details(copy.id, notes="").notes is None
    consistent()


@pytest.mark.parametrize(
    "kwargs",
    [{"condition": "shredded"}, {"notes": 42}, {"notes": "x" * 501}, {}],
)
def test_update_copy_details_rejects(college, make_book, kwargs):
    book = make_book(college, copies=1)
    (copy,) = _copies(book)

    with pytest.raises(ValidationError):
        CirculationService.update_copy_details(copy.id, **kwargs)
    assert CopyService.get_copy(copy.id).condition == "good"
