# tutor/dependencies.py
# Collaborators live on app.state; handlers reach them through these dependencies.
from fastapi import Request

from tutor.config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_store(request: Request):
    return request.app.state.user_store


def get_session_store(request: Request):
    return request.app.state.session_store


def get_context_store(request: Request):
    return request.app.state.context_store


def get_relay(request: Request):
    return request.app.state.relay


def get_llm_client(request: Request):
    return request.app.state.llm_client


def get_tts_client(request: Request):
    return request.app.state.tts_client


def get_billing(request: Request):
    return request.app.state.billing
