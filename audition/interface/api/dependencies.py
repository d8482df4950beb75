from fastapi import Request

from audition.core.config import Settings
from .store import AuditionStore


def get_store(request: Request) -> AuditionStore:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
