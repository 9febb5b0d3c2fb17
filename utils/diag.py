from __future__ import annotations
import os, sys, subprocess, time
from importlib import metadata
from typing import Optional

_PACKAGES = ("aiohttp", "asyncpg", "aiosmtplib", "aiogram")
_STARTED_AT = time.strftime("%Y-%m-%d %H:%M:%S")


def _git(cmd: list[str]) -> Optional[str]:
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL).decode().strip()
        return out or None
    except (OSError, subprocess.CalledProcessError):
        return None


def git_commit_short() -> Optional[str]:
    return _git(["git", "rev-parse", "--short", "HEAD"])


def package_version(name: str) -> Optional[str]:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return None


def build_info() -> dict:
    return {
        "engine": package_version("adz-notifications"),
        "python": sys.version.split()[0],
        "pid": os.getpid(),
        "git": git_commit_short(),
        "started": _STARTED_AT,
        "libs": {name: package_version(name) for name in _PACKAGES},
    }
