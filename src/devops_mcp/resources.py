"""Read-only resources: snapshots of the Docker engine and the host.

Both are recomputed on every read.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .errors import ActionFailure
from .responses import format_error
from .shell import ShellExecutor

logger = logging.getLogger(__name__)


async def system_facts(shell: ShellExecutor) -> dict[str, str]:
    """Hostname, uptime, memory and root-disk usage; unavailable facts are marked as such."""
    free = await shell.capture(["free", "-h"]) or ""
    disk = await shell.capture(["df", "-h", "/"]) or ""
    memory = next((line for line in free.splitlines() if line.startswith("Mem")), "")
    disk_lines = disk.splitlines()
    return {
        "Hostname": await shell.capture(["hostname"]) or "unavailable",
        "Uptime": await shell.capture(["uptime", "-p"]) or "unavailable",
        "Memory": " ".join(memory.split()) or "unavailable",
        "Disk": " ".join(disk_lines[-1].split()) if len(disk_lines) > 1 else "unavailable",
    }


def _is_running(container: dict[str, Any]) -> bool:
    if "State" in container:
        return container["State"] == "running"
    return str(container.get("Status", "")).startswith("Up")


async def docker_status(shell: ShellExecutor) -> str:
    info_result = await shell.execute_command("docker", ["info", "--format", "{{json .}}"])
    if not info_result.succeeded:
        detail = info_result.error or info_result.stderr.strip() or f"exit code {info_result.exit_code}"
        raise ActionFailure(
            f"Failed to read Docker status: {detail}",
            hint="Check whether the Docker daemon is running: systemctl status docker",
        )
    ps_result = await shell.execute_command("docker", ["ps", "-a", "--format", "{{json .}}"])
    if not ps_result.succeeded:
        raise ActionFailure(f"Failed to list containers: {ps_result.error or ps_result.stderr.strip()}")

    try:
        info = json.loads(info_result.stdout)
        containers = [json.loads(line) for line in ps_result.stdout.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise ActionFailure(f"Unexpected output from docker: {e}") from e

    running = [c for c in containers if _is_running(c)]
    mem_gb = round(info.get("MemTotal", 0) / 1024 / 1024 / 1024)
    running_list = "\n".join(f"- {c.get('Names')}: {c.get('Image')}" for c in running)

    return (
        "Docker status:\n\n"
        f"Server: {info.get('ServerVersion', 'unknown')}\n"
        f"Containers: {len(running)} running / {len(containers)} total\n"
        f"Images: {info.get('Images', 'unknown')}\n"
        f"Memory: {mem_gb}GB\n"
        f"Driver: {info.get('Driver', 'unknown')}\n\n"
        "Running containers:\n"
        f"{running_list or 'No containers running'}\n\n"
        'Use "list_docker_containers" to see all of them.'
    )


async def system_info(shell: ShellExecutor) -> str:
    facts = await system_facts(shell)
    return "System information:\n\n" + "\n".join(f"{k}: {v}" for k, v in facts.items())


@dataclass(frozen=True)
class ResourceSpec:
    uri: str
    name: str
    description: str
    render: Callable[[ShellExecutor], Awaitable[str]]


RESOURCES = [
    ResourceSpec(
        "docker://status",
        "docker_status",
        "Container engine summary: running/total containers, images, memory and running names.",
        docker_status,
    ),
    ResourceSpec(
        "system://info",
        "system_info",
        "Host summary: hostname, uptime, memory and root disk usage.",
        system_info,
    ),
]


def find_resource(uri: str) -> ResourceSpec:
    key = uri.rstrip("/")
    for spec in RESOURCES:
        if spec.uri == key:
            return spec
    raise ValueError(f"Unknown resource: {uri}")


async def read_resource(uri: str, shell: ShellExecutor) -> str:
    """Render the snapshot for ``uri``; failures are returned as error text."""
    spec = find_resource(uri)
    try:
        return await spec.render(shell)
    except ActionFailure as e:
        logger.info("Resource %s unavailable: %s", uri, e.message)
        return format_error(e)[0].text
