from flask import current_app

from campus_library.errors import InvalidStateError, NoAvailableCopyError, NotFoundError, ValidationError
from campus_library.models.book_copy import BookCopy, CopyStatus, COPY_CONDITIONS
from campus_library.repositories.copy_repo import CopyRepo


class CopyService:
    """
    Ledger of physical copies. Every status change is a conditional UPDATE on
    the expected current status, so two callers can never both move the same
    copy. Nothing here commits: the circulation engine owns the transaction.
    """

    @staticmethod
    def get_copy(copy_id: int):
        copy = CopyRepo.get(copy_id)
        if not copy:
            raise NotFoundError("Book copy not found")
        return copy

    @staticmethod
    def list_copies(book_id: int):
        return CopyRepo.list_by_book(book_id)

    @staticmethod
    def provision_copies(book_id: int, college_id: int, count: int, condition: str = "good"):
        if count < 1:
            raise ValidationError("count must be at least 1")
        if condition not in COPY_CONDITIONS:
            raise ValidationError(f"condition must be one of {', '.join(COPY_CONDITIONS)}")

        start = CopyRepo.max_copy_number(book_id) + 1
        copies = [
            BookCopy(
                book_id=book_id,
                college_id=college_id,
                copy_number=start + i,
                status=CopyStatus.AVAILABLE,
                condition=condition,
            )
            for i in range(count)
        ]
        CopyRepo.add_all(copies)
        current_app.logger.info(f"[copies] book={book_id} provisioned #{start}..#{start + count - 1}")
        return copies

    @staticmethod
    def allocate_free_copy(book_id: int):
        # lowest copy number first; a candidate claimed by someone else in
        # between is skipped and the next one is tried
        for copy_id in CopyRepo.available_ids(book_id):
            if CopyRepo.claim(copy_id):
                copy = CopyRepo.reload(copy_id)
                current_app.logger.info(f"[copies] book={book_id} copy=#{copy.copy_number} claimed")
                return copy
        raise NoAvailableCopyError("No available copies of this book")

    @staticmethod
    def release_copy(copy_id: int):
        if CopyRepo.transition(copy_id, (CopyStatus.BORROWED,), CopyStatus.AVAILABLE) != 1:
            copy = CopyService.get_copy(copy_id)
            raise InvalidStateError(f"Copy #{copy.copy_number} is {copy.status}, not borrowed")
        return CopyRepo.reload(copy_id)

    @staticmethod
    def _set_retired(copy_id: int, to_status: str) -> str:
        """Moves a non-borrowed copy to lost/maintenance; returns the previous status."""
        copy = CopyService.get_copy(copy_id)
        previous = copy.status
        if previous == CopyStatus.BORROWED:
            raise InvalidStateError("Cannot change status of a currently borrowed copy. It must be returned first.")
        if previous == to_status:
            return previous
        if CopyRepo.transition(copy_id, (previous,), to_status) != 1:
            raise InvalidStateError(f"Copy #{copy.copy_number} changed state concurrently")
        CopyRepo.reload(copy_id)
        return previous

    @staticmethod
    def mark_lost(copy_id: int) -> str:
        return CopyService._set_retired(copy_id, CopyStatus.LOST)

    @staticmethod
    def mark_maintenance(copy_id: int) -> str:
        return CopyService._set_retired(copy_id, CopyStatus.MAINTENANCE)

    @staticmethod
    def update_details(copy_id: int, condition: str = None, notes: str = None):
        """Condition and notes only; status moves through the transitions above."""
        copy = CopyService.get_copy(copy_id)
        if condition is None and notes is None:
            raise ValidationError("Nothing to update")
        if condition is not None:
            if condition not in COPY_CONDITIONS:
                raise ValidationError(f"condition must be one of {', '.join(COPY_CONDITIONS)}")
            copy.condition = condition
        if notes is not None:
            if not isinstance(notes, str):
                raise ValidationError("notes must be text")
            if len(notes) > 500:
                raise ValidationError("notes must be at most 500 characters")
            copy.notes = notes.strip() or None
        return copy

    @staticmethod
    def restore_copy(copy_id: int):
        if CopyRepo.transition(copy_id, CopyStatus.RETIRED, CopyStatus.AVAILABLE) != 1:
            copy = CopyService.get_copy(copy_id)
            raise InvalidStateError(f"Copy #{copy.copy_number} is {copy.status}; only lost or maintenance copies can be restored")
        return CopyRepo.reload(copy_id)
