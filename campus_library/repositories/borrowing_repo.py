from datetime import datetime

from campus_library.models.book import Book
from campus_library.models.borrowing import BookBorrowing, BorrowingStatus
from campus_library.extensions import db


class BorrowingRepo:
    @staticmethod
    def get(borrowing_id: int):
        return db.session.get(BookBorrowing, borrowing_id)

    @staticmethod
    def reload(borrowing_id: int):
        return db.session.get(BookBorrowing, borrowing_id, populate_existing=True)

    @staticmethod
    def create(borrowing: BookBorrowing):
        db.session.add(borrowing)
        db.session.flush()
        return borrowing

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def find_active(book_id: int, student_id: int):
        return BookBorrowing.query.filter(
            BookBorrowing.book_id == book_id,
            BookBorrowing.student_id == student_id,
            BookBorrowing.status.in_(BorrowingStatus.ACTIVE),
        ).first()

    @staticmethod
    def transition(borrowing_id: int, from_statuses, values: dict) -> int:
        """UPDATE ... WHERE id = ? AND status IN (...); returns affected rows."""
        return BookBorrowing.query.filter(
            BookBorrowing.id == borrowing_id,
            BookBorrowing.status.in_(tuple(from_statuses)),
        ).update(
            dict(values, updated_at=datetime.utcnow()),
            synchronize_session=False,
        )

    @staticmethod
    def paginate(page: int, per_page: int, college_id: int = None, student_id: int = None, status: str = None):
        q = BookBorrowing.query
        if college_id is not None:
            q = q.join(Book, BookBorrowing.book_id == Book.id).filter(Book.college_id == college_id)
        if student_id is not None:
            q = q.filter(BookBorrowing.student_id == student_id)
        if status:
            q = q.filter(BookBorrowing.status == status)
        return q.order_by(BookBorrowing.id.desc()).paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def _overdue_query(college_id: int, cutoff: datetime):
        return (
            BookBorrowing.query
            .join(Book, BookBorrowing.book_id == Book.id)
            .filter(
                Book.college_id == college_id,
                BookBorrowing.status.in_(BorrowingStatus.ACTIVE),
                BookBorrowing.due_date < cutoff,
            )
        )

    @staticmethod
    def count_overdue(college_id: int, cutoff: datetime) -> int:
        return BorrowingRepo._overdue_query(college_id, cutoff).count()

    @staticmethod
    def paginate_overdue(college_id: int, cutoff: datetime, page: int, per_page: int):
        """Most overdue first."""
        q = BorrowingRepo._overdue_query(college_id, cutoff)
        return q.order_by(BookBorrowing.due_date.asc(), BookBorrowing.id.asc()).paginate(
            page=page, per_page=per_page, error_out=False
        )
