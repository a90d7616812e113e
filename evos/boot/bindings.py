"""Default capability bindings handed to the source tree."""

from __future__ import annotations

from types import SimpleNamespace

from rich.columns import Columns
from rich.console import Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from evos.config import EvosSettings
from evos.llm.anthropic import create_provider
from evos.loader.capabilities import CapabilityBridge


def ui_binding() -> SimpleNamespace:
    """Rendering handle: the rich renderables stage code may build."""
    return SimpleNamespace(
        Columns=Columns,
        Group=Group,
        Markdown=Markdown,
        Panel=Panel,
        Syntax=Syntax,
        Table=Table,
        Text=Text,
        Tree=Tree,
    )


def default_bridge(config: EvosSettings) -> CapabilityBridge:
    bridge = CapabilityBridge()
    bridge.provide("ui", ui_binding())
    # Optional: without an API key evos still boots, evolution is disabled.
    bridge.provide_factory(
        "llm",
        lambda: create_provider(config.anthropic_api_key, config.default_model),
        required=False,
    )
    return bridge
