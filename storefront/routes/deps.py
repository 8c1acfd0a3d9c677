"""Shared route dependencies"""

from fastapi import Depends, HTTPException, Request

from ..core.session import SessionManager, ShoppingSession


def get_session_manager(request: Request) -> SessionManager:
    """Session manager created in the app lifespan"""
    return request.app.state.session_manager


def get_shopping_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> ShoppingSession:
    """Resolve the session from the path, 404 if unknown"""
    session = manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session
