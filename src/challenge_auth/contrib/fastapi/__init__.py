"""FastAPI integration for challenge-auth."""

from .router import create_password_reset_router

__all__: list[str] = ["create_password_reset_router"]
