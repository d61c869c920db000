# hrms_backend/common/paging.py
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 50
MAX_SIZE = 200


def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("size", DEFAULT_SIZE))
        size = max(1, min(size, MAX_SIZE))
    except Exception:
        size = DEFAULT_SIZE
    return page, size


def paginate(items):
    """Slice an already-filtered list for ?page & ?size; returns (page_items, meta)."""
    page, size = page_limit()
    start = (page - 1) * size
    return items[start:start + size], {"page": page, "size": size, "total": len(items)}


def query_filters(*names):
    """Pick non-empty query-string args into a dict."""
    out = {}
    for n in names:
        v = request.args.get(n)
        if v not in (None, ""):
            out[n] = v
    return out
