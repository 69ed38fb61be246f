import secrets
import string

from flask import current_app
from sqlalchemy.exc import IntegrityError

from campus_library.errors import ConflictError, InvariantViolation, NotFoundError, ValidationError
from campus_library.extensions import db
from campus_library.models.book import Book
from campus_library.repositories.book_repo import BookRepo
from campus_library.services.copy_service import CopyService
from campus_library.services.lookup_service import LookupIndex

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_INDEX = "uq_books_college_unique_code"

_REQUIRED_FIELDS = ("title", "author", "genre")
_OPTIONAL_FIELDS = ("isbn", "publisher", "description", "category", "language", "location")
_INT_FIELDS = ("publish_year", "pages")
_COUNTER_FIELDS = ("total_copies", "available_copies")


def _parse_copy_count(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("copies must be an integer")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError("copies must be an integer")
    if count < 1:
        raise ValidationError("A book needs at least one copy")
    return count


def _is_code_conflict(error: IntegrityError) -> bool:
    # MSSQL/PostgreSQL name the index; SQLite names the columns
    message = str(error.orig)
    return _CODE_INDEX in message or "books.unique_code" in message


def _commit_book_changes(code):
    try:
        BookRepo.commit()
    except IntegrityError as e:
        db.session.rollback()
        if _is_code_conflict(e):
            raise ConflictError(f"Unique code {code} is already in use")
        raise


class CatalogService:
    @staticmethod
    def get_book(book_id: int):
        book = BookRepo.get(book_id)
        if not book:
            raise NotFoundError("Book not found")
        return book

    @staticmethod
    def list_books(college_id: int, page: int = 1, per_page: int = 10, query: str = "", genre: str = ""):
        return BookRepo.paginate_by_college(college_id, page, per_page, (query or "").strip(), (genre or "").strip())

    @staticmethod
    def list_genres(college_id: int) -> list:
        return BookRepo.distinct_genres(college_id)

    @staticmethod
    def find_book_by_unique_code(college_id: int, code: str):
        return LookupIndex.resolve(college_id, code)

    @staticmethod
    def generate_unique_code(college_id: int) -> str:
        length = current_app.config["LIBRARY_CODE_LENGTH"]
        for _ in range(current_app.config["LIBRARY_CODE_ATTEMPTS"]):
            code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))
            if not BookRepo.code_exists(college_id, code):
                return code
        raise ConflictError("Failed to generate unique book code after multiple attempts")

    @staticmethod
    def create_book(college_id: int, data: dict, copy_count, created_by: int = None):
        """
        Creates the catalog entry and its physical copies (numbered 1..N) in one
        transaction. available_copies starts equal to total_copies.
        """
        data = data or {}
        missing = [f for f in _REQUIRED_FIELDS if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        count = _parse_copy_count(copy_count)

        code = data.get("unique_code")
        if code is not None and str(code).strip():
            code = LookupIndex.normalize(code)
            if BookRepo.code_exists(college_id, code):
                raise ConflictError(f"Unique code {code} is already in use")
        else:
            code = CatalogService.generate_unique_code(college_id)

        book = Book(
            college_id=college_id,
            created_by=created_by,
            title=str(data["title"]).strip(),
            author=str(data["author"]).strip(),
            genre=str(data["genre"]).strip(),
            unique_code=code,
            total_copies=count,
            available_copies=count,
        )
        for field in _OPTIONAL_FIELDS:
            value = data.get(field)
            if value is not None and str(value).strip():
                setattr(book, field, str(value).strip())
        for field in _INT_FIELDS:
            if data.get(field) not in (None, ""):
                try:
                    setattr(book, field, int(data[field]))
                except (TypeError, ValueError):
                    raise ValidationError(f"{field} must be an integer")

        try:
            BookRepo.create(book)
            CopyService.provision_copies(book.id, college_id, count)
        except IntegrityError as e:
            db.session.rollback()
            if _is_code_conflict(e):
                raise ConflictError(f"Unique code {code} is already in use")
            raise
        _commit_book_changes(code)

        current_app.logger.info(f"[catalog] book={book.id} college={college_id} code={code} copies={count} created")
        return book

    @staticmethod
    def update_book(book_id: int, data: dict):
        """
        Edits catalog metadata. Copy counts only move through copy
        acquisition and circulation, never through here.
        """
        data = data or {}
        touched = [f for f in _COUNTER_FIELDS if f in data]
        if touched:
            raise ValidationError("Copy counts cannot be edited directly; add or retire copies instead")

        book = CatalogService.get_book(book_id)
        changes = {}

        for field in _REQUIRED_FIELDS:
            if field in data:
                value = str(data[field] or "").strip()
                if not value:
                    raise ValidationError(f"{field} cannot be empty")
                changes[field] = value

        for field in _OPTIONAL_FIELDS:
            if field in data:
                value = str(data[field]).strip() if data[field] is not None else ""
                if not value and field == "language":
                    raise ValidationError("language cannot be empty")
                changes[field] = value or None

        for field in _INT_FIELDS:
            if field in data:
                if data[field] in (None, ""):
                    changes[field] = None
                    continue
                try:
                    changes[field] = int(data[field])
                except (TypeError, ValueError):
                    raise ValidationError(f"{field} must be an integer")

        if "unique_code" in data:
            if data["unique_code"] is None or not str(data["unique_code"]).strip():
                raise ValidationError("Unique code cannot be cleared")
            code = LookupIndex.normalize(data["unique_code"])
            existing = BookRepo.find_by_unique_code(book.college_id, code)
            if existing and existing.id != book.id:
                raise ConflictError(f"Unique code {code} is already in use")
            changes["unique_code"] = code

        if not changes:
            raise ValidationError("Nothing to update")

        for field, value in changes.items():
            setattr(book, field, value)
        _commit_book_changes(book.unique_code)

        current_app.logger.info(f"[catalog] book={book.id} updated: {', '.join(sorted(changes))}")
        return BookRepo.reload(book.id)

    @staticmethod
    def assign_unique_code(book_id: int):
        book = CatalogService.get_book(book_id)
        if book.unique_code:
            raise ConflictError("Book already has a unique code")
        book.unique_code = CatalogService.generate_unique_code(book.college_id)
        _commit_book_changes(book.unique_code)
        current_app.logger.info(f"[catalog] book={book.id} code={book.unique_code} assigned")
        return book

    @staticmethod
    def adjust_availability(book_id: int, delta: int):
        """
        Atomic available_copies += delta at the storage layer.
        The caller owns the transaction.
        """
        if BookRepo.adjust_available(book_id, delta) != 1:
            book = BookRepo.reload(book_id)
            if not book:
                raise NotFoundError("Book not found")
            current_app.logger.critical(
                f"[catalog] book={book_id} available={book.available_copies} total={book.total_copies} "
                f"rejected delta={delta}"
            )
            raise InvariantViolation(
                f"available copies of book {book_id} would leave [0, {book.total_copies}]"
            )
        return BookRepo.reload(book_id)
