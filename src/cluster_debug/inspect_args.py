"""Detection of the debugger port the primary process was started with.

Recognized forms, first match wins::

    --inspect-port=9229
    --inspect=9229          --inspect-brk=9229
    --inspect=:9229         --inspect-brk=:9229
    --inspect=0.0.0.0:9229  --inspect-brk=127.0.0.1:9229

Anything else resolves to the default inspector port.
"""

import re
import sys
from typing import Iterable, List

DEFAULT_INSPECT_PORT = 9229

_INSPECT_PORT_RE = re.compile(r"--inspect-port=(?P<port>\d+)", re.ASCII)
_INSPECT_BARE_PORT_RE = re.compile(r"--inspect(?:-brk)?=:?(?P<port>\d{1,5})(?:\s|$)", re.ASCII)
_INSPECT_HOST_PORT_RE = re.compile(r"--inspect(?:-brk)?=(?P<host>.*?):(?P<port>\d{1,5})", re.ASCII)

_PATTERNS = (_INSPECT_PORT_RE, _INSPECT_BARE_PORT_RE, _INSPECT_HOST_PORT_RE)

_INSPECT_FLAG_RE = re.compile(r"^--inspect(?:-brk|-port)?(?:=.*)?$")


def resolve_primary_debug_port(args: str = "") -> int:
    """Find the debugger port in a space-joined argument string.

    Args:
        args: Process start arguments joined with spaces

    Returns:
        The explicit port if one of the recognized flags is present,
        otherwise DEFAULT_INSPECT_PORT
    """
    for pattern in _PATTERNS:
        match = pattern.search(args)
        if match:
            return int(match.group("port"))
    return DEFAULT_INSPECT_PORT


def primary_exec_args() -> str:
    """Get this process's own start arguments, space-joined."""
    return " ".join(sys.argv[1:])


def strip_inspect_flags(args: Iterable[str]) -> List[str]:
    """Drop every --inspect, --inspect-brk and --inspect-port flag."""
    return [arg for arg in args if not _INSPECT_FLAG_RE.match(arg)]
