"""Connection engine exports."""

from . import audit, policy  # noqa: F401
from .capacity import CapacityGuard, CapacityResult  # noqa: F401
from .models import (  # noqa: F401
	TRANSITIONS,
	Connection,
	ConnectionEvent,
	ConnectionPeer,
	ConnectionState,
	ConnectionType,
	EndedReason,
)
from .repo import ConnectionRepository  # noqa: F401
from .service import ConnectionService  # noqa: F401
