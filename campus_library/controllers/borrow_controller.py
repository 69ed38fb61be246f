from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request

from campus_library.errors import ValidationError
from campus_library.models.user import Role
from campus_library.services.audit_service import InventoryAuditService
from campus_library.services.library_service import LibraryService
from campus_library.utils.dates import parse_datetime
from campus_library.utils.decorators import role_required
from campus_library.utils.pagination import page_args, page_meta

borrow_bp = Blueprint("borrow", __name__)


def _iso(value):
    return value.isoformat() if value else None


def _borrowing_json(x):
    return {
        "id": x.id,
        "bookId": x.book_id,
        "bookTitle": x.book.title if x.book else None,
        "copyId": x.copy_id,
        "copyNumber": x.copy.copy_number if x.copy else None,
        "studentId": x.student_id,
        "issueDate": _iso(x.issue_date),
        "dueDate": _iso(x.due_date),
        "returnRequested": _iso(x.return_requested),
        "returnApproved": _iso(x.return_approved),
        "returnDate": _iso(x.return_date),
        "approvedBy": x.approved_by,
        "status": x.status,
        "fine": float(x.fine) if x.fine is not None else None,
    }


def _int_field(data, key):
    value = data.get(key)
    if value is None:
        raise ValidationError(f"{key} is required")
    # JSON true/false would otherwise pass as 1/0
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


def _present(data, key):
    """Empty strings count as absent, like a missing key."""
    value = data.get(key)
    if isinstance(value, str):
        value = value.strip()
    return value not in (None, "")


@borrow_bp.post("/borrowings/lend")
@role_required(*Role.LIBRARY_STAFF)
def lend_book():
    data = request.get_json(silent=True) or {}
    student_id = _int_field(data, "studentId")
    if data.get("dueDate"):
        due_date = parse_datetime(data["dueDate"], "dueDate")
    else:
        due_date = datetime.utcnow() + timedelta(days=current_app.config["LIBRARY_DEFAULT_LOAN_DAYS"])

    book_id = _int_field(data, "bookId") if _present(data, "bookId") else None
    unique_code = str(data["uniqueCode"]).strip() if _present(data, "uniqueCode") else None
    b = LibraryService.lend_book(
        g.actor.id,
        student_id,
        due_date,
        book_id=book_id,
        unique_code=unique_code,
    )
    return jsonify({"success": True, "message": "Book copy lent", "data": _borrowing_json(b)}), 201


@borrow_bp.get("/borrowings")
@role_required()
def list_borrowings():
    page, per_page = page_args()
    result = LibraryService.list_borrowings(
        g.actor.id,
        scope=request.args.get("scope", "mine"),
        status=request.args.get("status") or None,
        page=page,
        per_page=per_page,
    )
    return jsonify({"success": True, "data": [_borrowing_json(x) for x in result.items], **page_meta(result)})


@borrow_bp.put("/borrowings/<int:borrowing_id>/return-request")
@role_required(Role.STUDENT, Role.FACULTY, Role.LIBRARIAN, Role.HOD)
def request_return(borrowing_id: int):
    b = LibraryService.request_return(borrowing_id, g.actor.id)
    return jsonify({"success": True, "message": "Return request submitted", "data": _borrowing_json(b)})


@borrow_bp.put("/borrowings/<int:borrowing_id>/approve-return")
@role_required(*Role.LIBRARY_STAFF)
def approve_return(borrowing_id: int):
    b = LibraryService.approve_return(borrowing_id, g.actor.id)
    return jsonify({"success": True, "message": "Return approved", "data": _borrowing_json(b)})


@borrow_bp.get("/stats")
@role_required(*Role.LIBRARY_STAFF)
def library_stats():
    return jsonify({"success": True, "data": LibraryService.stats_for_actor(g.actor.id)})


@borrow_bp.get("/audit")
@role_required(*Role.LIBRARY_STAFF)
def inventory_audit():
    mismatches = InventoryAuditService.find_mismatches(g.actor.college_id)
    return jsonify({"success": True, "consistent": not mismatches, "data": mismatches})
