"""Container identity helpers."""

import re
import shlex

from pywitr import commands
from pywitr.cgroup import ContainerRef

# runtime -> CLI used to turn an opaque ID into a name
_INSPECT = {
    "docker": ("docker", "inspect", "--format", "{{.Name}}"),
    "podman": ("podman", "inspect", "--format", "{{.Name}}"),
    "kubernetes": (
        "crictl",
        "inspect",
        "--output",
        "go-template",
        "--template",
        "{{.status.metadata.name}}",
    ),
    "containerd": ("nerdctl", "inspect", "--format", "{{.Name}}"),
}

_HEX_ID = re.compile(r"\b[0-9a-f]{64}\b")


def resolve_name(ref: ContainerRef) -> str:
    """Look up a human-readable name for a container ID, '' if unresolved."""
    if not ref.id:
        return ""
    if ref.runtime == "lxc":
        return ref.id
    inspect = _INSPECT.get(ref.runtime)
    if inspect is None:
        return ""
    out = commands.run(*inspect, ref.id)
    if out is None:
        return ""
    return out.strip().lstrip("/")


def label(ref: ContainerRef) -> str:
    """'docker: web', falling back to 'docker (0123456789ab)'."""
    name = resolve_name(ref)
    if name:
        return f"{ref.runtime}: {name}"
    if ref.id:
        return f"{ref.runtime} ({ref.short_id})"
    return ref.runtime


def _flag_value(args: list[str], *flags: str) -> str:
    """Value following the first of `flags`, also in --flag=value form."""
    for i, arg in enumerate(args):
        for flag in flags:
            if arg == flag and i + 1 < len(args):
                return args[i + 1]
            if arg.startswith(flag + "="):
                return arg.split("=", 1)[1]
    return ""


def from_cmdline(cmdline: str) -> str:
    """Guess the container a process belongs to from its own command line."""
    if not cmdline:
        return ""
    lower = cmdline.lower()
    try:
        args = shlex.split(cmdline, posix=False)
    except ValueError:
        args = cmdline.split()

    if "kubepods" in lower:
        match = _HEX_ID.search(lower)
        if match:
            ref = ContainerRef(runtime="kubernetes", id=match.group(0))
            name = resolve_name(ref)
            return f"k8s: {name}" if name else f"k8s ({ref.short_id})"
        return "kubernetes"

    for needle, prefix, flags in (
        ("docker", "docker", ("--name",)),
        ("podman", "podman", ("--name",)),
        ("minikube", "k8s", ("-p", "--profile")),
        ("kind", "k8s", ("--name",)),
        ("nerdctl", "containerd", ("--name",)),
        ("containerd", "containerd", ("--name",)),
    ):
        if needle in lower:
            value = _flag_value(args, *flags)
            if value:
                return f"{prefix}: {value}"
            return "kubernetes" if prefix == "k8s" else prefix
    return ""
