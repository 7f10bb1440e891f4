"""CLI command modules.

Commands:
- create: Create a HelmRequest
- upgrade: Upgrade a HelmRequest
- get-manifest: Print the manifest of a deployed release
- version: Print the captain version
"""

from .requests import create, manifest, upgrade
from .version import version

__all__ = [
    "create",
    "upgrade",
    "manifest",
    "version",
]
