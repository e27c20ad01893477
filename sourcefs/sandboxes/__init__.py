"""Path sandboxes confining tool access to a collection."""

from sourcefs.sandboxes.base import BaseSandbox, resolve_sandbox_path
from sourcefs.sandboxes.virtual_sandbox import VirtualSandbox

__all__ = ["BaseSandbox", "VirtualSandbox", "resolve_sandbox_path"]
