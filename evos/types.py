"""Core types shared across all evos subsystems."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import TypeAlias

# ── ID Types ──────────────────────────────────────────────────────────────────

VfsPath: TypeAlias = str
CapabilityName: TypeAlias = str


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ── Bootstrap Stages ─────────────────────────────────────────────────────────


class StageName(str, Enum):
    BOOTSTRAP = "bootstrap"
    OS = "os"
    APP = "app"


class StageState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    COMPILING = "compiling"
    RUNNING = "running"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Which error tier a stage failure belongs to."""

    CAPABILITY = "capability"
    COMPILE = "compile"
    RUNTIME = "runtime"


# ── Module Cells ─────────────────────────────────────────────────────────────


class CellStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
