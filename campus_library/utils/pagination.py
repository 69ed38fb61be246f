from flask import current_app, request

from campus_library.errors import ValidationError


def page_args():
    """(page, per_page) from ?page=&limit=, clamped to LIBRARY_MAX_PAGE_SIZE."""
    try:
        page = int(request.args.get("page", 1))
        per_page = int(request.args.get("limit", current_app.config["LIBRARY_PAGE_SIZE"]))
    except ValueError:
        raise ValidationError("page and limit must be integers")
    if page < 1 or per_page < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(per_page, current_app.config["LIBRARY_MAX_PAGE_SIZE"])


def page_meta(pagination) -> dict:
    return {
        "page": pagination.page,
        "limit": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }
