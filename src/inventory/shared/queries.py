"""Helpers for reading whole result sets through Protean's paginated queries."""

PAGE_SIZE = 100


def fetch_all(query, page_size=PAGE_SIZE) -> list:
    """Materialise every match of ``query``, one page at a time.

    Protean caps a query at a default page size, so aggregates over a product's
    full history must walk the pages. Pass an ordered query for stable paging.
    """
    results = []
    offset = 0
    while True:
        items = query.offset(offset).limit(page_size).all().items
        results.extend(items)
        if len(items) < page_size:
            return results
        offset += page_size
