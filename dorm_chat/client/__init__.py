from .session_store import ClientSessionStore, GuestSession

__all__ = ["ClientSessionStore", "GuestSession"]
