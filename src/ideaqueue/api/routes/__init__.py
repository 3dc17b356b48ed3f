"""Admin API routers."""

from fastapi import Request

from ideaqueue.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
