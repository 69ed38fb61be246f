# campus_library/tasks/inventory_audit.py
from flask import current_app

from campus_library.errors import InvariantViolation
from campus_library.extensions import db
from campus_library.services.audit_service import InventoryAuditService


def run_inventory_audit_job(app):
    """
    Compares every book's available/total counters with its copy rows.
    Mismatches are logged as critical and left untouched for a librarian to
    investigate. Returns the mismatch list.
    """
    with app.app_context():
        try:
            InventoryAuditService.assert_consistent()
            return []
        except InvariantViolation as e:
            mismatches = InventoryAuditService.find_mismatches()
            for m in mismatches:
                current_app.logger.critical(
                    f"[audit] book={m['bookId']} college={m['collegeId']} "
                    f"available cached={m['cachedAvailable']} actual={m['actualAvailable']} "
                    f"total cached={m['cachedTotal']} actual={m['actualTotal']}"
                )
            current_app.logger.error(f"[audit] {e.message}")
            return mismatches
        finally:
            # read-only job: never leave a transaction open on the pooled connection
            db.session.rollback()
