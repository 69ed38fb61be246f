from datetime import datetime

from sqlalchemy import case, func

from campus_library.models.book_copy import BookCopy, CopyStatus
from campus_library.extensions import db


class CopyRepo:
    @staticmethod
    def get(copy_id: int):
        return db.session.get(BookCopy, copy_id)

    @staticmethod
    def reload(copy_id: int):
        return db.session.get(BookCopy, copy_id, populate_existing=True)

    @staticmethod
    def add_all(copies):
        db.session.add_all(copies)
        db.session.flush()
        return copies

    @staticmethod
    def list_by_book(book_id: int):
        return BookCopy.query.filter_by(book_id=book_id).order_by(BookCopy.copy_number.asc()).all()

    @staticmethod
    def max_copy_number(book_id: int) -> int:
        value = db.session.query(func.max(BookCopy.copy_number)).filter(BookCopy.book_id == book_id).scalar()
        return int(value or 0)

    @staticmethod
    def available_ids(book_id: int):
        rows = (
            db.session.query(BookCopy.id)
            .filter(BookCopy.book_id == book_id, BookCopy.status == CopyStatus.AVAILABLE)
            .order_by(BookCopy.copy_number.asc())
            .all()
        )
        return [r[0] for r in rows]

    @staticmethod
    def transition(copy_id: int, from_statuses, to_status: str) -> int:
        """Conditional status change; returns affected rows (0 = lost the race or wrong state)."""
        return BookCopy.query.filter(
            BookCopy.id == copy_id,
            BookCopy.status.in_(tuple(from_statuses)),
        ).update(
            {BookCopy.status: to_status, BookCopy.updated_at: datetime.utcnow()},
            synchronize_session=False,
        )

    @staticmethod
    def claim(copy_id: int) -> bool:
        return CopyRepo.transition(copy_id, (CopyStatus.AVAILABLE,), CopyStatus.BORROWED) == 1

    @staticmethod
    def count_in_college(college_id: int, status: str) -> int:
        return BookCopy.query.filter_by(college_id=college_id, status=status).count()

    @staticmethod
    def counts_by_book(college_id: int = None):
        """{book_id: (total copies, available copies)} from the live copy rows."""
        available = func.sum(case((BookCopy.status == CopyStatus.AVAILABLE, 1), else_=0))
        q = db.session.query(BookCopy.book_id, func.count(BookCopy.id), available)
        if college_id is not None:
            q = q.filter(BookCopy.college_id == college_id)
        return {row[0]: (int(row[1]), int(row[2] or 0)) for row in q.group_by(BookCopy.book_id).all()}
