import os.path
import sys

from rich.pretty import pprint

from bosun import *
from bosun.utils import resolvedir

dispatcher = Dispatcher([
    "--action=(prepare|publish|show)",
    # the version number of the release, e.g. 1.2.12 or 1.2.12-rc.1
    r"--version-number=([0-9]+\.[0-9]+\.[0-9]+(-[a-z]+\.[0-9]+)?)",
    "[--repositories=[\\w.,-]+]",
])

REPOSITORIES = []


@dispatcher.init
def init(argv):
    workspace = resolvedir("..")
    names = getvar("REPOSITORIES") or "bower-angular,bower-angular-sanitize"
    REPOSITORIES[:] = [os.path.join(workspace, name) for name in names.split(",")]


@dispatcher.action
def prepare(argv):
    version = "v" + getvar("VERSION_NUMBER")
    for repository in REPOSITORIES:
        for args in (("add", "-A"), ("commit", "-m", version), ("tag", version)):
            if status := run("git", *args, cwd=repository):
                sys.exit(status)


@dispatcher.action
def publish(argv):
    version = "v" + getvar("VERSION_NUMBER")
    for repository in REPOSITORIES:
        for ref in ("master", version):
            if status := run("git", "push", "origin", ref, cwd=repository):
                sys.exit(status)


@dispatcher.action
def show(argv):
    pprint(dispatcher)
    pprint(dispatcher.variables)


if __name__ == '__main__':
    dispatcher.run()
