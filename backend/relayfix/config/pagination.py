"""Page size limits for list endpoints (relay desks poll these, keep pages small)."""
DEFAULT_LIMIT = 25
MAX_LIMIT = 100


def normalize_pagination(limit_raw, offset_raw):
    """Clamp raw query values; ValueError when either is not an integer."""
    try:
        limit = int(limit_raw) if limit_raw not in (None, '') else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw not in (None, '') else 0
    except (TypeError, ValueError):
        raise ValueError('limit/offset must be int')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)


def page_meta(total: int, limit: int, offset: int, returned: int) -> dict:
    return {
        'total': total,
        'limit': limit,
        'offset': offset,
        'returned': returned,
        'has_more': offset + returned < total,
    }
