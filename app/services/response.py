class ListResponseMixin:
    """Adds ``list_response`` to service classes exposing a paginated ``list``.

    ``limit`` and ``offset`` are the last two positional arguments of every
    ``list`` signature, so they are echoed back alongside the page.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict:
        items = cls.list(db, *args, **kwargs)
        limit = kwargs.get("limit", args[-2] if len(args) >= 2 else len(items))
        offset = kwargs.get("offset", args[-1] if args else 0)
        return {
            "items": items,
            "count": len(items),
            "limit": limit,
            "offset": offset,
        }
