"""Shell Session module for cloudterm.

Owns an SSH connection to one resolved address, negotiates an
interactive pseudo-terminal, and exposes a duplex text stream plus a
resize control.
"""

from cloudterm.shell.base import ClosedError, ShellError, ShellSession
from cloudterm.shell.ssh import SSHShellSession

__all__ = ["ClosedError", "SSHShellSession", "ShellError", "ShellSession"]
