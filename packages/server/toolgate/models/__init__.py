# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import Profile  # noqa: F401
from .membership import Membership  # noqa: F401
from .subscription import Subscription  # noqa: F401
from .tool import Tool, ToolAccessLevel  # noqa: F401
from .access_request import AccessRequest  # noqa: F401
from .invitation import Invitation  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
