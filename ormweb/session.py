import secrets
import threading

from fastapi import Request

# In-process Session Store
# sid -> data
_SESSIONS = {}
_LOCK = threading.Lock()

class Session:
    """
    Session of a browser, identified by the session_id cookie. Holds the
    content locale and the flash messages.
    """
    def __init__(self, sid):
        self.sid = sid
        self.context = {}
        self.messages = []

    def __repr__(self):
        return f"<Session {self.sid[:8]}>"

    @classmethod
    def new(cls):
        # High Entropy Session ID
        sess = cls(secrets.token_urlsafe(32))
        sess.save()
        return sess

    @classmethod
    def load(cls, sid):
        with _LOCK:
            data = _SESSIONS.get(sid)
        if data is None:
            return None
        sess = cls(sid)
        sess.context = dict(data.get('context', {}))
        sess.messages = list(data.get('messages', []))
        return sess

    @classmethod
    def clear(cls):
        with _LOCK:
            _SESSIONS.clear()

    def save(self):
        with _LOCK:
            _SESSIONS[self.sid] = {
                'context': dict(self.context),
                'messages': list(self.messages),
            }

    def get_content_locale(self):
        return self.context.get('lang')

    def set_content_locale(self, locale):
        self.context['lang'] = locale

    def add_message(self, type, message):
        """
        :param type: success, error, warning or information
        """
        self.messages.append({'type': type, 'message': message})

    def pop_messages(self):
        messages = self.messages
        self.messages = []
        return messages


# Dependency for Session
async def get_session(request: Request):
    sid = request.cookies.get('session_id')
    session = None
    if sid:
        session = Session.load(sid)

    if not session:
        session = Session.new()

    return session
