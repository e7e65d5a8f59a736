"""Request dependencies."""

from fastapi import Request

from sendswap.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
