# campus_library/controllers/book_controller.py

from flask import Blueprint, g, jsonify, request

from campus_library.models.user import Role
from campus_library.services.library_service import LibraryService
from campus_library.utils.decorators import role_required
from campus_library.utils.pagination import page_args, page_meta

book_bp = Blueprint("books", __name__)

_BOOK_FIELDS = {
    # request key -> model field
    "title": "title",
    "author": "author",
    "isbn": "isbn",
    "ISBN": "isbn",
    "uniqueCode": "unique_code",
    "publisher": "publisher",
    "publishYear": "publish_year",
    "description": "description",
    "genre": "genre",
    "category": "category",
    "language": "language",
    "pages": "pages",
    "location": "location",
}


_COUNTER_KEYS = {"copies": "total_copies", "totalCopies": "total_copies", "availableCopies": "available_copies"}


def _book_json(b):
    return {
        "id": b.id,
        "collegeId": b.college_id,
        "title": b.title,
        "author": b.author,
        "isbn": b.isbn,
        "uniqueCode": b.unique_code,
        "publisher": b.publisher,
        "publishYear": b.publish_year,
        "genre": b.genre,
        "category": b.category,
        "language": b.language,
        "pages": b.pages,
        "location": b.location,
        "copies": b.total_copies,
        "availableCopies": b.available_copies,
    }


def _copy_json(c):
    return {
        "id": c.id,
        "bookId": c.book_id,
        "copyNumber": c.copy_number,
        "status": c.status,
        "condition": c.condition,
        "notes": c.notes,
        "acquiredDate": c.acquired_date.isoformat() if c.acquired_date else None,
    }


@book_bp.post("/books")
@role_required(*Role.LIBRARY_STAFF)
def create_book():
    data = request.get_json(silent=True) or {}
    metadata = {field: data[key] for key, field in _BOOK_FIELDS.items() if key in data}
    book = LibraryService.add_book(g.actor.id, metadata, data.get("copies", 1))
    return jsonify({"success": True, "data": _book_json(book)}), 201


@book_bp.get("/books")
@role_required()
def list_books():
    page, per_page = page_args()
    result = LibraryService.list_books(
        g.actor.id, page, per_page,
        query=request.args.get("query", ""),
        genre=request.args.get("genre", ""),
    )
    return jsonify({"success": True, "data": [_book_json(b) for b in result.items], **page_meta(result)})


@book_bp.get("/books/genres")
@role_required()
def list_genres():
    return jsonify({"success": True, "data": LibraryService.list_genres(g.actor.id)})


@book_bp.get("/books/<int:book_id>")
@role_required()
def get_book(book_id: int):
    b = LibraryService.get_book(g.actor.id, book_id)
    return jsonify({"success": True, "data": _book_json(b)})


@book_bp.patch("/books/<int:book_id>")
@role_required(*Role.LIBRARY_STAFF)
def update_book(book_id: int):
    data = request.get_json(silent=True) or {}
    metadata = {field: data[key] for key, field in _BOOK_FIELDS.items() if key in data}
    # counters are rejected by the service, not silently dropped
    metadata.update({field: data[key] for key, field in _COUNTER_KEYS.items() if key in data})
    b = LibraryService.update_book(g.actor.id, book_id, metadata)
    return jsonify({"success": True, "message": "Book updated", "data": _book_json(b)})


@book_bp.get("/books/by-code/<string:code>")
@role_required()
def get_book_by_code(code: str):
    b = LibraryService.find_by_code(g.actor.id, code)
    return jsonify({"success": True, "data": _book_json(b)})


@book_bp.post("/books/<int:book_id>/code")
@role_required(*Role.LIBRARY_STAFF)
def generate_code(book_id: int):
    b = LibraryService.assign_code(g.actor.id, book_id)
    return jsonify({"success": True, "data": {"id": b.id, "uniqueCode": b.unique_code}})


@book_bp.get("/books/<int:book_id>/copies")
@role_required()
def list_copies(book_id: int):
    copies = LibraryService.list_copies(g.actor.id, book_id)
    return jsonify({"success": True, "data": [_copy_json(c) for c in copies]})


@book_bp.post("/books/<int:book_id>/copies")
@role_required(*Role.LIBRARY_STAFF)
def add_copies(book_id: int):
    data = request.get_json(silent=True) or {}
    b = LibraryService.acquire_copies(g.actor.id, book_id, data.get("count"), data.get("condition", "good"))
    return jsonify({"success": True, "data": _book_json(b)}), 201


@book_bp.patch("/copies/<int:copy_id>")
@role_required(*Role.LIBRARY_STAFF)
def update_copy(copy_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    c = LibraryService.update_copy(
        g.actor.id,
        copy_id,
        status=status.strip() if isinstance(status, str) else status,
        condition=data.get("condition"),
        notes=data.get("notes"),
    )
    return jsonify({"success": True, "data": _copy_json(c)})
