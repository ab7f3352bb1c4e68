"""hostrelease: release publishing, deployment, and rollback for an agent host.

Each update publishes an immutable, version-control-free snapshot of one
source revision under ``<root>/releases/<revision-id>``, deploys it, restarts
the service if it was running, verifies the runtime reports the new revision,
and only then atomically repoints ``current`` (keeping the old release as
``previous``). Rollback redeploys an already-published release the same way.
"""

__version__ = "0.1.0"
__description__ = "Atomic release publishing, deployment, and rollback for an always-on agent host"

from hostrelease.core.rollback import RollbackController
from hostrelease.core.update import UpdateController
from hostrelease.cli.app import app as cli

__all__ = ["UpdateController", "RollbackController", "cli", "__version__"]
