"""Synthetic go.mod rendering."""

from typing import Iterable

from .module import ModuleIdentity


def render_manifest(identity: ModuleIdentity, requires: Iterable[ModuleIdentity], go_version: str) -> str:
    """Render a go.mod declaring ``identity`` and requiring each of ``requires``.

    Requirements are written in the order given; callers pass them sorted by
    npm dependency name so output is reproducible.
    """
    lines = [f"module {identity.path}", "", f"go {go_version}"]
    requires = list(requires)
    if requires:
        lines.append("")
        lines.append("require (")
        lines.extend(f"\t{req.path} {req.version}" for req in requires)
        lines.append(")")
    return "\n".join(lines) + "\n"
