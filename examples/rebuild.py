#!/usr/bin/env python3
"""
shipit - Jenkins rebuild example

Re-runs a single Jenkins build with the parameters it was started with,
the same call the retry engine makes for a failed pull request build.

Environment:
    JENKINS_BUILD_URL   URL of the build to repeat
    JENKINS_USERNAME    Jenkins user
    JENKINS_PASSWORD    Password or API token
"""

import asyncio
import os
import sys

from shipit.exceptions import ShipitError
from shipit.jenkins import AsyncJenkinsClient


async def rebuild(build_url: str, username: str, password: str) -> None:
    async with AsyncJenkinsClient(username, password) as jenkins:
        await jenkins.rebuild(build_url)


def main() -> int:
    try:
        build_url = os.environ["JENKINS_BUILD_URL"]
        username = os.environ["JENKINS_USERNAME"]
        password = os.environ["JENKINS_PASSWORD"]
    except KeyError as e:
        print(f"{e.args[0]} not set", file=sys.stderr)
        return 1

    try:
        asyncio.run(rebuild(build_url, username, password))
    except ShipitError as e:
        print(f"Rebuild failed: {e}", file=sys.stderr)
        return 1

    print("Rebuilt")
    return 0


if __name__ == "__main__":
    sys.exit(main())
