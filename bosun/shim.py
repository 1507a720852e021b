"""
Entry point of the generated interception shim.

The shim installed by bosun.proxy.install() runs

    python -m bosun.shim git <args...>

in place of the real "git". This module rebuilds the DryRunProxy from the exported
environment (BOSUN_GIT_BIN holds the real executable) and exits with the real
command's status.
"""
import os
import sys

from loguru import logger

from .logs import setup_logging
from .proxy import DryRunProxy, EXECUTABLE


def main(argv=None, /):
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        print("usage: python -m bosun.shim COMMAND [ARGS...]", file=sys.stderr)
        return 2

    setup_logging()
    command, *args = argv
    if not (executable := os.environ.get(EXECUTABLE)):
        logger.error("{} is not set; the {} interception was not installed by bosun", EXECUTABLE, command)
        return 127

    return DryRunProxy(command, executable)(command, *args)


if __name__ == "__main__":
    sys.exit(main())
