from fastapi import Request

from app.services.context import ServiceContext


def get_context(request: Request) -> ServiceContext:
    return request.app.state.context
