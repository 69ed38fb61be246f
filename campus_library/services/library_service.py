from flask import current_app

from campus_library.errors import AuthorizationError, ValidationError
from campus_library.models.book_copy import CopyStatus
from campus_library.models.user import Role
from campus_library.repositories.book_repo import BookRepo
from campus_library.repositories.copy_repo import CopyRepo
from campus_library.services.catalog_service import CatalogService
from campus_library.services.circulation_service import CirculationService
from campus_library.services.copy_service import CopyService
from campus_library.services.user_service import UserService


class LibraryService:
    """
    Narrow interface other campus modules (and our blueprints) talk to.
    Resolves the acting user, checks role and college, then delegates.
    """

    @staticmethod
    def _staff(actor_id):
        actor = UserService.resolve_actor(actor_id)
        UserService.require_staff(actor)
        if not actor.college_id:
            raise ValidationError("User is not associated with a college")
        return actor

    @staticmethod
    def _staff_for_book(actor_id, book_id):
        actor = LibraryService._staff(actor_id)
        book = CatalogService.get_book(book_id)
        UserService.require_staff(actor, book.college_id)
        return actor, book

    # ---- circulation
    @staticmethod
    def lend_book(actor_id, student_id, due_date, book_id=None, unique_code=None, now=None):
        actor = LibraryService._staff(actor_id)
        if (book_id is None) == (unique_code is None):
            raise ValidationError("Provide exactly one of bookId or uniqueCode")

        if unique_code is not None:
            return CirculationService.create_borrowing_by_code(
                unique_code, student_id, due_date, actor.college_id, now=now
            )

        book = CatalogService.get_book(book_id)
        UserService.require_staff(actor, book.college_id)
        return CirculationService.create_borrowing(book.id, student_id, due_date, now=now)

    @staticmethod
    def request_return(borrowing_id, actor_id, now=None):
        return CirculationService.request_return(borrowing_id, actor_id, now=now)

    @staticmethod
    def approve_return(borrowing_id, actor_id, now=None):
        return CirculationService.approve_return(borrowing_id, actor_id, now=now)

    @staticmethod
    def get_library_stats(college_id, today=None) -> dict:
        total_books, available = BookRepo.college_totals(college_id)
        return {
            "totalBooks": total_books,
            "availableBooks": available,
            "borrowedBooks": CopyRepo.count_in_college(college_id, CopyStatus.BORROWED),
            "overdueBooks": CirculationService.get_overdue_count(college_id, today=today),
        }

    @staticmethod
    def stats_for_actor(actor_id, today=None) -> dict:
        actor = LibraryService._staff(actor_id)
        return LibraryService.get_library_stats(actor.college_id, today=today)

    @staticmethod
    def list_borrowings(actor_id, scope: str = "mine", status: str = None, page: int = 1, per_page: int = 10, today=None):
        actor = UserService.resolve_actor(actor_id)
        if scope == "mine":
            return CirculationService.list_borrowings(page, per_page, student_id=actor.id, status=status)
        if scope not in ("pending", "overdue", "all"):
            raise ValidationError("scope must be one of mine, pending, overdue, all")
        if actor.role not in Role.LIBRARY_STAFF:
            raise AuthorizationError("Only librarians and HODs can view college borrowings")
        if scope == "overdue":
            return CirculationService.list_overdue(actor.college_id, page, per_page, today=today)
        if scope == "pending":
            status = "return-requested"
        return CirculationService.list_borrowings(page, per_page, college_id=actor.college_id, status=status)

    # ---- catalog / inventory
    @staticmethod
    def add_book(actor_id, data: dict, copies):
        actor = LibraryService._staff(actor_id)
        return CatalogService.create_book(actor.college_id, data, copies, created_by=actor.id)

    @staticmethod
    def list_books(actor_id, page=1, per_page=10, query="", genre=""):
        actor = UserService.resolve_actor(actor_id)
        if not actor.college_id:
            raise ValidationError("User is not associated with a college")
        return CatalogService.list_books(actor.college_id, page, per_page, query, genre)

    @staticmethod
    def update_book(actor_id, book_id, data: dict):
        LibraryService._staff_for_book(actor_id, book_id)
        return CatalogService.update_book(book_id, data)

    @staticmethod
    def list_genres(actor_id) -> list:
        actor = UserService.resolve_actor(actor_id)
        if not actor.college_id:
            raise ValidationError("User is not associated with a college")
        return CatalogService.list_genres(actor.college_id)

    @staticmethod
    def get_book(actor_id, book_id):
        actor = UserService.resolve_actor(actor_id)
        book = CatalogService.get_book(book_id)
        if actor.college_id != book.college_id:
            raise AuthorizationError("You do not have permission to view this book")
        return book

    @staticmethod
    def find_by_code(actor_id, code):
        actor = UserService.resolve_actor(actor_id)
        return CatalogService.find_book_by_unique_code(actor.college_id, code)

    @staticmethod
    def assign_code(actor_id, book_id):
        LibraryService._staff_for_book(actor_id, book_id)
        return CatalogService.assign_unique_code(book_id)

    @staticmethod
    def list_copies(actor_id, book_id):
        LibraryService.get_book(actor_id, book_id)
        return CopyService.list_copies(book_id)

    @staticmethod
    def acquire_copies(actor_id, book_id, count, condition="good"):
        LibraryService._staff_for_book(actor_id, book_id)
        return CirculationService.acquire_copies(book_id, count, condition)

    @staticmethod
    def set_copy_status(actor_id, copy_id, status: str):
        copy = CopyService.get_copy(copy_id)
        actor, _book = LibraryService._staff_for_book(actor_id, copy.book_id)
        current_app.logger.info(f"[library] user={actor.id} sets copy={copy_id} to {status}")
        if status == CopyStatus.AVAILABLE:
            return CirculationService.restore_copy(copy_id)
        if status in CopyStatus.RETIRED:
            return CirculationService.retire_copy(copy_id, status)
        raise ValidationError("status must be one of available, maintenance, lost")

    @staticmethod
    def update_copy(actor_id, copy_id, status: str = None, condition: str = None, notes: str = None):
        """Status change and/or condition/notes edit of one copy."""
        copy = CopyService.get_copy(copy_id)
        LibraryService._staff_for_book(actor_id, copy.book_id)
        if status is None and condition is None and notes is None:
            raise ValidationError("Provide status, condition or notes")
        if status is not None and status != CopyStatus.AVAILABLE and status not in CopyStatus.RETIRED:
            raise ValidationError("status must be one of available, maintenance, lost")

        if condition is not None or notes is not None:
            copy = CirculationService.update_copy_details(copy_id, condition=condition, notes=notes)
        if status is not None and status != copy.status:
            copy = LibraryService.set_copy_status(actor_id, copy_id, status)
        return copy
