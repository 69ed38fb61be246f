from datetime import datetime
from campus_library.extensions import db


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)
    college_id = db.Column(db.Integer, db.ForeignKey("colleges.id"), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=False, index=True)
    isbn = db.Column(db.String(32), nullable=True, index=True)
    unique_code = db.Column(db.String(32), nullable=True)

    publisher = db.Column(db.String(200), nullable=True)
    publish_year = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    genre = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    language = db.Column(db.String(50), nullable=False, default="English")
    pages = db.Column(db.Integer, nullable=True)
    location = db.Column(db.String(100), nullable=True)  # shelf / rack

    total_copies = db.Column(db.Integer, nullable=False, default=1)
    # denormalized: count of copies with status=available
    available_copies = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    college = db.relationship("College", backref="books")

    __table_args__ = (
        db.CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_books_available_range",
        ),
        db.Index(
            "uq_books_college_unique_code",
            "college_id",
            "unique_code",
            unique=True,
            sqlite_where=db.text("unique_code IS NOT NULL"),
            postgresql_where=db.text("unique_code IS NOT NULL"),
            mssql_where=db.text("unique_code IS NOT NULL"),
        ),
    )
