# ems_api/common/paging.py
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 10
MAX_SIZE = 100


def page_limit(default_size=DEFAULT_SIZE):
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("limit", request.args.get("size", default_size)))
        size = max(1, min(size, MAX_SIZE))
    except Exception:
        size = default_size
    return page, size


def page_meta(page: int, size: int, total: int) -> dict:
    return {
        "currentPage": page,
        "totalPages": (total + size - 1) // size if size else 0,
        "totalItems": total,
        "pageSize": size,
    }
