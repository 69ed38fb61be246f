from flask import current_app

from campus_library.errors import InvariantViolation
from campus_library.repositories.book_repo import BookRepo
from campus_library.repositories.copy_repo import CopyRepo


class InventoryAuditService:
    """
    Reconciles each book's cached counters with its copy rows.
    Reports mismatches; never corrects them.
    """

    @staticmethod
    def find_mismatches(college_id: int = None) -> list:
        counts = CopyRepo.counts_by_book(college_id)
        mismatches = []
        for book_id in BookRepo.list_ids(college_id):
            book = BookRepo.get(book_id)
            total, available = counts.get(book_id, (0, 0))
            if book.available_copies != available or book.total_copies != total:
                mismatches.append({
                    "bookId": book_id,
                    "collegeId": book.college_id,
                    "cachedAvailable": book.available_copies,
                    "actualAvailable": available,
                    "cachedTotal": book.total_copies,
                    "actualTotal": total,
                })
        return mismatches

    @staticmethod
    def assert_consistent(college_id: int = None):
        mismatches = InventoryAuditService.find_mismatches(college_id)
        if mismatches:
            ids = ", ".join(str(m["bookId"]) for m in mismatches)
            current_app.logger.critical(f"[audit] {len(mismatches)} book(s) out of sync: {ids}")
            raise InvariantViolation(f"Availability counters out of sync for book(s): {ids}")
        current_app.logger.info("[audit] inventory consistent")
