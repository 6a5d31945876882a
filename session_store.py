import logging
from typing import Dict, List, Optional

from models import DEFAULT_MODEL, ChatSession, Message, SessionInfo

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


class SessionStore:
    """In-memory chat sessions plus the active view of the current one.

    The store owns every ChatSession. ``view`` is the message list shown to the
    user; it is only ever changed by the operations below so that it stays equal
    to the current session's stored log.
    """

    def __init__(self):
        default = ChatSession(id=DEFAULT_SESSION_ID, name="New Chat", model=DEFAULT_MODEL)
        self._sessions: Dict[str, ChatSession] = {default.id: default}
        self.current_id: str = default.id
        self.view: List[Message] = []
        self.error: Optional[str] = None

    @property
    def current(self) -> ChatSession:
        return self._sessions[self.current_id]

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    def sessions(self) -> List[ChatSession]:
        return list(self._sessions.values())

    def list_sessions(self) -> List[SessionInfo]:
        return [
            SessionInfo(
                id=s.id,
                name=s.name,
                created_at=s.created_at,
                model=s.model,
                message_count=len(s.messages),
            )
            for s in self._sessions.values()
        ]

    def create_session(self, model: str = DEFAULT_MODEL) -> ChatSession:
        """Create an empty session and make it current."""
        session = ChatSession(name=f"Chat {len(self._sessions) + 1}", model=model)
        self._sessions[session.id] = session
        self.current_id = session.id
        self.view = []
        self.error = None
        logger.info(f"Created new session: {session.id}")
        return session

    def add_session(self, session: ChatSession) -> ChatSession:
        """Register an already built session (e.g. an import) and make it current."""
        self._sessions[session.id] = session
        self.current_id = session.id
        self.view = list(session.messages)
        self.error = None
        logger.info(f"Added session {session.id} with {len(session.messages)} messages")
        return session

    def switch_session(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug(f"Ignoring switch to unknown session: {session_id}")
            return False

        self.current_id = session_id
        self.view = list(session.messages)
        self.error = None
        logger.info(f"Switched to session: {session_id}")
        return True

    def clear_current(self):
        self.view = []
        self.current.messages = []
        logger.info(f"Cleared session: {self.current_id}")

    def append_to_session(self, session_id: str, *messages: Message) -> bool:
        """Append to a session's stored log, and to the view when it is the current one."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning(f"Dropping {len(messages)} messages for unknown session {session_id}")
            return False

        session.messages = session.messages + list(messages)
        if session_id == self.current_id:
            self.view = self.view + list(messages)
        for msg in messages:
            logger.debug(f"Saved {msg.role} message to session {session_id}")
        return True

    def append_to_current(self, *messages: Message) -> bool:
        return self.append_to_session(self.current_id, *messages)
