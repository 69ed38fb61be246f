from sqlalchemy import func, or_

from campus_library.models.book import Book
from campus_library.extensions import db


class BookRepo:
    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def reload(book_id: int):
        return db.session.get(Book, book_id, populate_existing=True)

    @staticmethod
    def create(book: Book):
        db.session.add(book)
        db.session.flush()
        return book

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def find_by_unique_code(college_id: int, code: str):
        return Book.query.filter_by(college_id=college_id, unique_code=code).first()

    @staticmethod
    def code_exists(college_id: int, code: str) -> bool:
        return BookRepo.find_by_unique_code(college_id, code) is not None

    @staticmethod
    def paginate_by_college(college_id: int, page: int, per_page: int, text: str = "", genre: str = ""):
        q = Book.query.filter(Book.college_id == college_id)
        if text:
            like = f"%{text}%"
            q = q.filter(or_(
                Book.title.ilike(like),
                Book.author.ilike(like),
                Book.isbn.ilike(like),
                Book.unique_code.ilike(like),
            ))
        if genre:
            q = q.filter(Book.genre == genre)
        return q.order_by(Book.id.desc()).paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def adjust_available(book_id: int, delta: int) -> int:
        """
        available_copies += delta as one conditional UPDATE.
        Returns the affected row count (0 when the book is missing or the
        result would leave [0, total_copies]).
        """
        new_value = Book.available_copies + delta
        return Book.query.filter(
            Book.id == book_id,
            new_value >= 0,
            new_value <= Book.total_copies,
        ).update(
            {Book.available_copies: new_value},
            synchronize_session=False,
        )

    @staticmethod
    def add_stock(book_id: int, count: int) -> int:
        return Book.query.filter(Book.id == book_id).update(
            {
                Book.total_copies: Book.total_copies + count,
                Book.available_copies: Book.available_copies + count,
            },
            synchronize_session=False,
        )

    @staticmethod
    def college_totals(college_id: int):
        """(book records, sum of available_copies) for a college."""
        row = db.session.query(
            func.count(Book.id),
            func.coalesce(func.sum(Book.available_copies), 0),
        ).filter(Book.college_id == college_id).one()
        return int(row[0]), int(row[1])

    @staticmethod
    def list_ids(college_id: int = None):
        q = db.session.query(Book.id)
        if college_id is not None:
            q = q.filter(Book.college_id == college_id)
        return [row[0] for row in q.order_by(Book.id).all()]

    @staticmethod
    def distinct_genres(college_id: int):
        rows = (
            db.session.query(Book.genre)
            .filter(Book.college_id == college_id)
            .distinct()
            .order_by(Book.genre.asc())
            .all()
        )
        return [r[0] for r in rows]
