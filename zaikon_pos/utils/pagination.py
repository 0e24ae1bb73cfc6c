from typing import Any, NamedTuple


class Paging(NamedTuple):
    page: int
    page_size: int
    offset: int


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def normalize_paging(page: Any, page_size: Any, max_page_size: int = 100, default_size: int = 20) -> Paging:
    """Clamp raw (possibly string) paging args; junk falls back to page 1 / default size."""
    p = max(_to_int(page), 1)
    ps = _to_int(page_size)
    ps = min(ps if ps > 0 else default_size, max_page_size)
    return Paging(p, ps, (p - 1) * ps)
