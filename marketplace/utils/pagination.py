"""Pagination helpers for list endpoints."""
import math

MAX_LIMIT = 100


def _to_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_pagination(args, default_limit: int = 10):
    """Read page/limit from query args, clamped to sane bounds."""
    page = max(1, _to_int(args.get('page'), 1))
    limit = min(MAX_LIMIT, max(1, _to_int(args.get('limit'), default_limit)))
    return page, limit


def build_meta(page: int, limit: int, total: int) -> dict:
    total_pages = max(1, math.ceil(total / limit))
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }
