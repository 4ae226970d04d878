import math
from typing import Any, List, Tuple

from sqlalchemy.orm import Query


def pagination_meta(total: int, page: int, size: int) -> dict:
    total_pages = math.ceil(total / size) if size > 0 else 0
    return {
        "total": total,
        "page": page,
        "size": size,
        "total_pages": total_pages,
    }


def paginate(query: Query, page: int, size: int) -> Tuple[List[Any], dict]:
    """Apply offset/limit to an already ordered query and build the metadata."""
    total = query.count()
    offset = (page - 1) * size
    items = query.offset(offset).limit(size).all()
    return items, pagination_meta(total, page, size)
