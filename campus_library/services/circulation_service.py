from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from campus_library.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from campus_library.extensions import db
from campus_library.models.book_copy import CopyStatus
from campus_library.models.borrowing import BookBorrowing, BorrowingStatus
from campus_library.models.user import Role
from campus_library.repositories.book_repo import BookRepo
from campus_library.repositories.borrowing_repo import BorrowingRepo
from campus_library.services.catalog_service import CatalogService
from campus_library.services.copy_service import CopyService
from campus_library.services.lookup_service import LookupIndex
from campus_library.services.user_service import UserService
from campus_library.utils.dates import start_of_day, to_naive_utc

_ROLLBACK_ATTEMPTS = 3
_ON_BEHALF_ROLES = (Role.FACULTY, Role.LIBRARIAN, Role.HOD)


class CirculationService:
    """
    Lend -> return-requested -> returned.

    The only writer of copy status and of Book.available_copies. Each public
    operation is one database transaction: it either commits every record it
    touched or rolls all of them back.
    """

    @staticmethod
    def compute_fine(due_date, returned_at, fine_per_day) -> Decimal:
        # whole calendar days, truncated at midnight, never negative
        days_late = max(0, (returned_at.date() - due_date.date()).days)
        return (Decimal(str(fine_per_day)) * days_late).quantize(Decimal("0.01"))

    @staticmethod
    def _get_borrowing(borrowing_id: int):
        borrowing = BorrowingRepo.get(borrowing_id)
        if not borrowing:
            raise NotFoundError("Borrowing not found")
        return borrowing

    @staticmethod
    def _roll_back(reason: str):
        """Undo everything the current transaction did; retried because a copy left
        borrowed without its borrowing is worse than a failed lend."""
        for attempt in range(1, _ROLLBACK_ATTEMPTS + 1):
            try:
                db.session.rollback()
                current_app.logger.warning(f"[circulation] rolled back: {reason}")
                return
            except SQLAlchemyError as ex:
                current_app.logger.exception(f"[circulation] rollback attempt {attempt} failed ({reason}): {ex}")
        current_app.logger.critical(f"[circulation] could not roll back ({reason}); run the inventory audit")

    # ------------------------------------------------------------------
    # Lending
    # ------------------------------------------------------------------
    @staticmethod
    def create_borrowing(book_id: int, student_id: int, due_date, now: datetime = None):
        now = now or datetime.utcnow()
        student = UserService.resolve_student(student_id)
        due_date = to_naive_utc(due_date)
        if due_date <= now:
            raise ValidationError("Due date must be after the issue date")

        book = CatalogService.get_book(book_id)
        if BorrowingRepo.find_active(book.id, student.id):
            raise ConflictError("Student already has an active borrowing for this book")

        # NoAvailableCopyError leaves the catalog untouched
        copy = CopyService.allocate_free_copy(book.id)
        copy_id, copy_number = copy.id, copy.copy_number
        try:
            CatalogService.adjust_availability(book.id, -1)
            borrowing = BorrowingRepo.create(BookBorrowing(
                book_id=book.id,
                copy_id=copy_id,
                student_id=student.id,
                issue_date=now,
                due_date=due_date,
                status=BorrowingStatus.BORROWED,
            ))
            BorrowingRepo.commit()
        except IntegrityError:
            CirculationService._roll_back(f"lend book={book_id} copy=#{copy_number}")
            raise InvalidStateError(f"Copy #{copy_number} already has an active borrowing")
        except Exception:
            CirculationService._roll_back(f"lend book={book_id} copy=#{copy_number}")
            raise

        current_app.logger.info(
            f"[circulation] borrowing={borrowing.id} book={book_id} copy=#{copy_number} "
            f"student={student.id} due={due_date.date()} lent"
        )
        return borrowing

    @staticmethod
    def create_borrowing_by_code(unique_code: str, student_id: int, due_date, college_id: int, now: datetime = None):
        book = LookupIndex.resolve(college_id, unique_code)
        return CirculationService.create_borrowing(book.id, student_id, due_date, now=now)

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------
    @staticmethod
    def request_return(borrowing_id: int, requesting_user_id: int, now: datetime = None):
        now = now or datetime.utcnow()
        borrowing = CirculationService._get_borrowing(borrowing_id)
        requester = UserService.resolve_actor(requesting_user_id)

        if requester.id != borrowing.student_id:
            if requester.role not in _ON_BEHALF_ROLES:
                raise AuthorizationError("Only the borrower or library/faculty staff can request this return")
            if requester.college_id != borrowing.book.college_id:
                raise AuthorizationError("You cannot request returns for another college's books")

        if borrowing.status == BorrowingStatus.RETURN_REQUESTED and borrowing.return_requested_by == requester.id:
            current_app.logger.info(f"[circulation] borrowing={borrowing.id} return already requested by user={requester.id}")
            return borrowing
        if borrowing.status != BorrowingStatus.BORROWED:
            raise InvalidStateError(f"Borrowing is {borrowing.status}, not borrowed")

        changed = BorrowingRepo.transition(borrowing.id, (BorrowingStatus.BORROWED,), {
            "status": BorrowingStatus.RETURN_REQUESTED,
            "return_requested": now,
            "return_requested_by": requester.id,
        })
        if changed != 1:
            db.session.rollback()
            borrowing = BorrowingRepo.reload(borrowing_id)
            if borrowing.status == BorrowingStatus.RETURN_REQUESTED and borrowing.return_requested_by == requester.id:
                return borrowing
            raise InvalidStateError(f"Borrowing is {borrowing.status}, not borrowed")

        BorrowingRepo.commit()
        current_app.logger.info(f"[circulation] borrowing={borrowing_id} return requested by user={requester.id}")
        return BorrowingRepo.reload(borrowing_id)

    @staticmethod
    def approve_return(borrowing_id: int, approver_id: int, now: datetime = None):
        now = now or datetime.utcnow()
        borrowing = CirculationService._get_borrowing(borrowing_id)
        approver = UserService.resolve_actor(approver_id)
        UserService.require_staff(approver, borrowing.book.college_id)

        if borrowing.status not in BorrowingStatus.ACTIVE:
            raise InvalidStateError("Borrowing has already been returned")

        book_id, copy_id = borrowing.book_id, borrowing.copy_id
        fine = CirculationService.compute_fine(
            borrowing.due_date, now, current_app.config["LIBRARY_FINE_PER_DAY"]
        )

        # a concurrent approval that got here first leaves no row to update
        changed = BorrowingRepo.transition(borrowing.id, BorrowingStatus.ACTIVE, {
            "status": BorrowingStatus.RETURNED,
            "return_date": now,
            "return_approved": now,
            "approved_by": approver.id,
            "fine": fine,
        })
        if changed != 1:
            db.session.rollback()
            raise InvalidStateError("Borrowing has already been returned")

        try:
            CopyService.release_copy(copy_id)
            CatalogService.adjust_availability(book_id, +1)
            BorrowingRepo.commit()
        except Exception:
            CirculationService._roll_back(f"approve borrowing={borrowing_id}")
            raise

        current_app.logger.info(
            f"[circulation] borrowing={borrowing_id} returned, approved by user={approver.id} fine={fine}"
        )
        return BorrowingRepo.reload(borrowing_id)

    # ------------------------------------------------------------------
    # Inventory changes
    # ------------------------------------------------------------------
    @staticmethod
    def acquire_copies(book_id: int, count, condition: str = "good"):
        book = CatalogService.get_book(book_id)
        try:
            count = int(count)
        except (TypeError, ValueError):
            raise ValidationError("count must be an integer")
        if count < 1:
            raise ValidationError("count must be at least 1")

        try:
            CopyService.provision_copies(book.id, book.college_id, count, condition)
            BookRepo.add_stock(book.id, count)
            BookRepo.commit()
        except Exception:
            CirculationService._roll_back(f"acquire {count} copies of book={book_id}")
            raise
        current_app.logger.info(f"[circulation] book={book_id} acquired {count} copies")
        return BookRepo.reload(book_id)

    @staticmethod
    def retire_copy(copy_id: int, status: str):
        if status not in CopyStatus.RETIRED:
            raise ValidationError("status must be lost or maintenance")
        copy = CopyService.get_copy(copy_id)
        book_id = copy.book_id
        try:
            if status == CopyStatus.LOST:
                previous = CopyService.mark_lost(copy_id)
            else:
                previous = CopyService.mark_maintenance(copy_id)
            if previous == CopyStatus.AVAILABLE:
                CatalogService.adjust_availability(book_id, -1)
            BookRepo.commit()
        except Exception:
            CirculationService._roll_back(f"retire copy={copy_id} to {status}")
            raise
        current_app.logger.info(f"[circulation] copy={copy_id} {previous} -> {status}")
        return CopyService.get_copy(copy_id)

    @staticmethod
    def restore_copy(copy_id: int):
        copy = CopyService.get_copy(copy_id)
        book_id = copy.book_id
        try:
            CopyService.restore_copy(copy_id)
            CatalogService.adjust_availability(book_id, +1)
            BookRepo.commit()
        except Exception:
            CirculationService._roll_back(f"restore copy={copy_id}")
            raise
        current_app.logger.info(f"[circulation] copy={copy_id} back in circulation")
        return CopyService.get_copy(copy_id)

    @staticmethod
    def update_copy_details(copy_id: int, condition: str = None, notes: str = None):
        try:
            copy = CopyService.update_details(copy_id, condition=condition, notes=notes)
            BookRepo.commit()
        except Exception:
            CirculationService._roll_back(f"update copy={copy_id} details")
            raise
        current_app.logger.info(f"[circulation] copy={copy_id} condition={copy.condition} details updated")
        return CopyService.get_copy(copy_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @staticmethod
    def get_overdue_count(college_id: int, today=None) -> int:
        today = today or datetime.utcnow().date()
        return BorrowingRepo.count_overdue(college_id, start_of_day(today))

    @staticmethod
    def list_overdue(college_id: int, page: int = 1, per_page: int = 10, today=None):
        """Active borrowings due before today's midnight, most overdue first."""
        today = today or datetime.utcnow().date()
        return BorrowingRepo.paginate_overdue(college_id, start_of_day(today), page, per_page)

    @staticmethod
    def list_borrowings(page: int = 1, per_page: int = 10, college_id: int = None, student_id: int = None, status: str = None):
        if status and status not in BorrowingStatus.ALL:
            raise ValidationError(f"status must be one of {', '.join(BorrowingStatus.ALL)}")
        return BorrowingRepo.paginate(page, per_page, college_id=college_id, student_id=student_id, status=status)
