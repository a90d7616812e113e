"""Tests for preview bundling and in-process bundle execution."""

import pytest

from evos.exceptions import BundleError
from evos.preview.bundler import PreviewBundle, build_bundle, check_body
from evos.preview.runner import run_bundle
from evos.vfs.seed import SEED_TREE

ALLOWED = ["json", "math", "textwrap"]


def test_seed_bundles():
    bundle = build_bundle(SEED_TREE, "/main.py", allowed_capabilities=ALLOWED)
    assert bundle.entry == "/main.py"
    assert set(bundle.modules) == set(SEED_TREE)
    assert bundle.allowed_capabilities == sorted(ALLOWED)


def test_non_module_files_are_skipped():
    files = {"/main.py": "def default():\n    print('hi')\n", "/README.md": "# not python ("}
    bundle = build_bundle(files, "/main.py")
    assert list(bundle.modules) == ["/main.py"]


def test_missing_entry():
    with pytest.raises(BundleError, match="Entry point /main.py not found"):
        build_bundle({"/other.py": ""}, "/main.py")


def test_compile_error_rejects_bundle():
    with pytest.raises(BundleError, match="/main.py"):
        build_bundle({"/main.py": "def default(:\n"}, "/main.py")


def test_disallowed_import_rejected():
    files = {"/main.py": "import os\ndef default():\n    return os.getcwd()\n"}
    with pytest.raises(BundleError, match="import of 'os' is not allowed"):
        build_bundle(files, "/main.py", allowed_capabilities=ALLOWED)


def test_allowed_import_accepted():
    files = {"/main.py": "import json\ndef default():\n    return json.dumps([1])\n"}
    assert build_bundle(files, "/main.py", allowed_capabilities=ALLOWED).modules


@pytest.mark.parametrize("call", ["exec('1')", "eval('1')", "open('/etc/passwd')", "__import__('os')"])
def test_blocked_calls(call):
    issues = check_body("/main.py", f"x = {call}\n", set(ALLOWED))
    assert len(issues) == 1
    assert "is not allowed" in issues[0]


def test_relative_from_import_rejected():
    issues = check_body("/main.py", "from . import sibling\n", set(ALLOWED))
    assert issues


def test_run_seed_bundle_in_process():
    bundle = build_bundle(SEED_TREE, "/main.py", allowed_capabilities=ALLOWED)
    result = run_bundle(bundle)
    assert result["success"], result
    assert "Hello from evos!" in result["output"]


def test_run_bundle_prints_return_value():
    bundle = build_bundle({"/main.py": "def default():\n    return 6 * 7\n"}, "/main.py")
    assert run_bundle(bundle)["output"] == "42\n"


def test_run_bundle_reports_errors():
    files = {"/main.py": "def default():\n    print('before')\n    return 1 / 0\n"}
    result = run_bundle(build_bundle(files, "/main.py"))
    assert not result["success"]
    assert result["output"] == "before\n"
    assert result["error"].startswith("ZeroDivisionError")
    assert "Traceback" in result["traceback"]


def test_builtins_reference_rejected():
    body = "imp = __builtins__['__import__']\nos = imp('os')\n"
    issues = check_body("/main.py", body, {"textwrap"})
    assert any("__builtins__" in issue for issue in issues)


@pytest.mark.parametrize("expr", ["random._os", "().__class__.__subclasses__()"])
def test_private_attribute_access_rejected(expr):
    issues = check_body("/main.py", f"x = {expr}\n", {"random"})
    assert any("access to attribute" in issue for issue in issues)


def _unchecked_bundle(body: str, allowed=("textwrap",)) -> PreviewBundle:
    # Built directly so only the run-time restrictions are in play.
    return PreviewBundle(entry="/main.py", modules={"/main.py": body}, allowed_capabilities=list(allowed))


def test_builtins_import_is_allow_listed_at_run_time():
    body = (
        "table = __builtins__\n"
        "imp = table['__import__'] if isinstance(table, dict) else table.__import__\n"
        "os = imp('os')\n"
        "def default():\n"
        "    print('escaped:', os is not None)\n"
    )
    result = run_bundle(_unchecked_bundle(body))
    assert not result["success"]
    assert "escaped" not in result["output"]
    assert "import of 'os' is not allowed" in result["error"]


@pytest.mark.parametrize("body", [
    "def default():\n    return open('/etc/hostname').read()\n",
    "def default():\n    return eval('1 + 1')\n",
    "def default():\n    return getattr(require('textwrap'), 're')\n",
])
def test_dangerous_builtins_are_absent_at_run_time(body):
    result = run_bundle(_unchecked_bundle(body))
    assert not result["success"]
    assert result["error"].startswith("NameError")


def test_allow_listed_import_still_works_at_run_time():
    body = "import textwrap\ndef default():\n    return textwrap.fill('a b c', width=20)\n"
    result = run_bundle(_unchecked_bundle(body))
    assert result["success"], result
    assert result["output"] == "a b c\n"
