"""Built-in seed tree — what a fresh or factory-reset project boots from."""

from __future__ import annotations

BOOTLOADER = '''\
"""OS layer. Launches the application layer and frames its output."""

ui = require("ui")
status = require("../components/status")


async def default(handoff):
    app = await handoff.launch_next()
    header = status.header(handoff)
    if app.ok:
        body = app.output
    else:
        body = ui.Panel(
            ui.Text(app.diagnostic, style="red"),
            title="Application Error",
            subtitle="fix the file or run: evos reset",
            border_style="red",
        )
    return ui.Group(header, body)
'''

KERNEL = '''\
"""Application layer: a file explorer over the source tree."""

ui = require("ui")
explorer = require("../components/file_explorer")


def default(handoff):
    tree = explorer.build_tree(handoff.files)
    hint = ui.Text("Run: evos evolve GOAL --path FILE to change any file", style="dim")
    return ui.Panel(ui.Group(tree, hint), title="Kernel", border_style="cyan")
'''

STATUS = '''\
ui = require("ui")


def header(handoff):
    text = ui.Text.assemble(
        ("evos", "bold magenta"),
        "  Evolvable OS  ",
        (str(len(handoff.files)) + " files", "dim"),
    )
    return ui.Panel(text, border_style="magenta")
'''

FILE_EXPLORER = '''\
ui = require("ui")


def build_tree(files):
    root = ui.Tree("/", guide_style="dim")
    nodes = {"": root}
    for path in sorted(files):
        parts = path.strip("/").split("/")
        for depth in range(1, len(parts)):
            key = "/".join(parts[:depth])
            if key not in nodes:
                parent = nodes["/".join(parts[:depth - 1])]
                nodes[key] = parent.add(parts[depth - 1] + "/", style="bold blue")
        nodes["/".join(parts[:-1])].add(parts[-1])
    return root
'''

PREVIEW_MAIN = '''\
"""Live preview entry. Runs in the isolated preview process."""

greeting = require("./components/greeting")


def default():
    print(greeting.render("evos"))
'''

GREETING = '''\
textwrap = require("textwrap")


def render(name):
    return textwrap.fill(
        "Hello from " + name + "! This output comes from the preview bundle. "
        "Edit /main.py and run evos preview again.",
        width=60,
    )
'''

SEED_TREE: dict[str, str] = {
    "/boot/bootloader.py": BOOTLOADER,
    "/boot/kernel.py": KERNEL,
    "/components/status.py": STATUS,
    "/components/file_explorer.py": FILE_EXPLORER,
    "/components/greeting.py": GREETING,
    "/main.py": PREVIEW_MAIN,
}
