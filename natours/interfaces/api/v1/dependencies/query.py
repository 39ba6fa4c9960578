from typing import Any

from fastapi import Request

from natours.interfaces.http.query_string import parse_query


def get_query_params(request: Request) -> dict[str, Any]:
    """The sanitized, nested query built by the request pipeline."""
    query = getattr(request.state, "query", None)
    if query is None:
        return parse_query(request.url.query)
    return query
