from datetime import datetime
from campus_library.extensions import db


class CopyStatus:
    AVAILABLE = "available"
    BORROWED = "borrowed"
    MAINTENANCE = "maintenance"
    LOST = "lost"

    ALL = (AVAILABLE, BORROWED, MAINTENANCE, LOST)
    RETIRED = (MAINTENANCE, LOST)


COPY_CONDITIONS = ("new", "good", "fair", "poor")


class BookCopy(db.Model):
    __tablename__ = "book_copies"

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    college_id = db.Column(db.Integer, db.ForeignKey("colleges.id"), nullable=False, index=True)

    copy_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=CopyStatus.AVAILABLE)
    condition = db.Column(db.String(10), nullable=False, default="good")

    acquired_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    barcode = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    book = db.relationship("Book", backref=db.backref("copies", order_by="BookCopy.copy_number"))

    __table_args__ = (
        db.UniqueConstraint("book_id", "copy_number", name="uq_book_copies_book_copy_number"),
        db.Index("ix_book_copies_book_status_number", "book_id", "status", "copy_number"),
    )
