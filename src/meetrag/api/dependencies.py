"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from meetrag.chat import ChatOrchestrator
from meetrag.gateway import IngestionGateway
from meetrag.services import Services
from meetrag.sessions import SessionManager


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_session_manager(request: Request) -> SessionManager:
    return get_services(request).sessions


def get_gateway(request: Request) -> IngestionGateway:
    return get_services(request).gateway


def get_chat(request: Request) -> ChatOrchestrator:
    return get_services(request).chat


__all__ = [
    "get_chat",
    "get_gateway",
    "get_services",
    "get_session_manager",
]
