from campus_library.errors import NotFoundError, ValidationError
from campus_library.repositories.book_repo import BookRepo


class LookupIndex:
    """Resolves the code printed on a physical book to its catalog entry."""

    @staticmethod
    def normalize(code) -> str:
        # JSON clients may send a numeric code (101); it is stored as "101"
        if isinstance(code, bool) or not isinstance(code, (str, int)):
            raise ValidationError("Unique code is required")
        code = str(code).strip()
        if not code:
            raise ValidationError("Unique code is required")
        return code

    @staticmethod
    def resolve(college_id: int, code: str):
        code = LookupIndex.normalize(code)
        book = BookRepo.find_by_unique_code(college_id, code)
        if not book:
            raise NotFoundError(f"Book not found with code {code} in your college")
        return book
