"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; route handlers translate them into HTTP responses using
``status_code``. All of them are ``ValueError`` subclasses.
"""

from __future__ import annotations


class MarketplaceError(ValueError):
    status_code: int = 400


class InvalidArgumentError(MarketplaceError):
    """Malformed or missing input (e.g. a non-positive bid)."""

    status_code = 400


class NotFoundError(MarketplaceError):
    """A referenced user, project, application or message does not exist."""

    status_code = 404


class ForbiddenError(MarketplaceError):
    """The actor lacks the role or ownership needed for the action."""

    status_code = 403


class ConflictError(MarketplaceError):
    """Duplicate application, or a lost race on project assignment."""

    status_code = 409


class InvalidStateError(MarketplaceError):
    """The project or application is in a state that disallows the action."""

    status_code = 400
