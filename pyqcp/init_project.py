"""Project initialization: config file, source directory and .gitignore."""

import logging

from .api import SalesforceClient
from .config import ConfigStore, OrgInfo
from .exceptions import PersistenceError
from .workspace import QCP_DIR, Workspace

logger = logging.getLogger(__name__)

GITIGNORE_CONTENTS = f"""

# Added by pyqcp
{QCP_DIR}

"""


def update_gitignore(workspace: Workspace) -> bool:
    """Add the .qcp directory to the workspace .gitignore.

    Returns:
        True if .gitignore was created or changed
    """
    path = workspace.root / ".gitignore"
    if path.exists():
        existing = path.read_text(encoding="utf-8")
        if any(line.strip().strip("/") == QCP_DIR for line in existing.splitlines()):
            return False
        path.write_text(existing.rstrip("\n") + GITIGNORE_CONTENTS, encoding="utf-8")
    else:
        path.write_text(GITIGNORE_CONTENTS.lstrip("\n"), encoding="utf-8")
    logger.debug(f"Updated {path}")
    return True


def initialize_project(store: ConfigStore, org_info: OrgInfo) -> list[str]:
    """Write the org settings and create the project skeleton.

    Existing file mappings are kept when a project is re-initialized.

    Args:
        store: Config store of the workspace
        org_info: New connection settings

    Returns:
        Names of the files and directories created or updated
    """
    workspace = store.workspace
    changed: list[str] = []

    if store.exists():
        try:
            store.load()
        except PersistenceError as e:
            logger.warning(f"Replacing unreadable configuration: {e}")

    store.config.org_info = org_info
    store.save()
    changed.append(workspace.relative(store.path))

    if not workspace.src_dir.exists():
        workspace.src_dir.mkdir(parents=True)
        changed.append(workspace.relative(workspace.src_dir))

    if update_gitignore(workspace):
        changed.append(".gitignore")

    logger.info(f"Initialized project in {workspace.root}")
    return changed


def check_credentials(org_info: OrgInfo) -> None:
    """Log in with the given settings.

    Raises:
        SalesforceAPIError: If the credentials are missing or rejected
    """
    with SalesforceClient.from_org_info(org_info) as client:
        client.login()
