"""Request context and ownership checks.

The requester identity is passed explicitly to every memory operation.
A context without a user means access control is disabled: conversations
are created without an owner, listings are unfiltered and every ownership
check passes.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller issuing a memory operation.

    Attributes:
        user: Requester name, or None when access control is disabled.
    """
    user: Optional[str] = None

    @property
    def access_control_enabled(self) -> bool:
        return self.user is not None


ANONYMOUS = RequestContext()


def owner_matches(ctx: RequestContext, owner: Optional[str]) -> bool:
    """Whether ``ctx`` may act on a document owned by ``owner``."""
    if not ctx.access_control_enabled:
        return True
    return ctx.user == owner
