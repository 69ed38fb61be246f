from campus_library.models.college import College
from campus_library.models.user import User, Role
from campus_library.models.book import Book
from campus_library.models.book_copy import BookCopy, CopyStatus
from campus_library.models.borrowing import BookBorrowing, BorrowingStatus
