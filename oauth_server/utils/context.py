from contextvars import ContextVar

from oauth_server.models.auth import AuthContext

# Authentication context of the request being served. Set by OAuthMiddleware so
# resource handlers can read the validated token without receiving the request.
auth_context_var: ContextVar[AuthContext | None] = ContextVar("auth_context", default=None)
