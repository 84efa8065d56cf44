from workflow_builder.store.session_store import SessionStore, get_session_store

__all__ = ["SessionStore", "get_session_store"]
