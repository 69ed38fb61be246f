from datetime import datetime
from campus_library.extensions import db


class BorrowingStatus:
    BORROWED = "borrowed"
    RETURN_REQUESTED = "return-requested"
    RETURNED = "returned"

    ALL = (BORROWED, RETURN_REQUESTED, RETURNED)
    ACTIVE = (BORROWED, RETURN_REQUESTED)


_ACTIVE_COPY = "status IN ('borrowed', 'return-requested')"


class BookBorrowing(db.Model):
    __tablename__ = "book_borrowings"

    id = db.Column(db.Integer, primary_key=True)

    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    copy_id = db.Column(db.Integer, db.ForeignKey("book_copies.id"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    issue_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    due_date = db.Column(db.DateTime, nullable=False)

    return_requested = db.Column(db.DateTime, nullable=True)
    return_requested_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    return_approved = db.Column(db.DateTime, nullable=True)
    return_date = db.Column(db.DateTime, nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=BorrowingStatus.BORROWED)
    fine = db.Column(db.Numeric(10, 2), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    book = db.relationship("Book", backref="borrowings")
    copy = db.relationship("BookCopy", backref="borrowings")
    student = db.relationship("User", foreign_keys=[student_id])
    approver = db.relationship("User", foreign_keys=[approved_by])

    __table_args__ = (
        db.Index("ix_book_borrowings_copy_status", "copy_id", "status"),
        db.Index("ix_book_borrowings_student_status", "student_id", "status"),
        # at most one active borrowing per physical copy
        db.Index(
            "uq_book_borrowings_active_copy",
            "copy_id",
            unique=True,
            sqlite_where=db.text(_ACTIVE_COPY),
            postgresql_where=db.text(_ACTIVE_COPY),
            mssql_where=db.text(_ACTIVE_COPY),
        ),
    )
