"""Human-readable rendering of a ClusterDescriptor."""

from __future__ import annotations

from rich.console import Console, Group, RenderableType
from rich.table import Table
from rich.text import Text

from autoserver.descriptors import ClusterDescriptor


def _capacity_table(descriptor: ClusterDescriptor) -> Table:
    table = Table(title="Capacity groups", title_justify="left", expand=False)
    table.add_column("Group", style="bold")
    table.add_column("Instance")
    table.add_column("Price")
    table.add_column("Min/Desired/Max", justify="right")
    table.add_column("Schedule", style="dim")

    for group in descriptor.capacity_groups:
        price = f"spot <= ${group.price_ceiling}/hr" if group.price_ceiling is not None else "on-demand"
        schedule = ", ".join(f"{a.name} '{a.schedule.expression}'" for a in group.schedule_actions)
        table.add_row(
            group.ref,
            f"{group.instance_class} ({group.vcpus} vCPU, {group.memory_mib} MiB)",
            price,
            f"{group.min_capacity}/{group.desired_capacity}/{group.max_capacity}",
            schedule or "-",
        )
    return table


def _server_table(descriptor: ClusterDescriptor) -> Table:
    table = Table(title="Servers", title_justify="left", expand=False)
    table.add_column("Server", style="bold")
    table.add_column("Image")
    table.add_column("CPU", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("Ports")
    table.add_column("Mount", style="dim")

    for server in descriptor.servers:
        table.add_row(
            server.ref,
            server.image,
            f"{server.cpu:g}",
            f"{server.memory_mib} MiB",
            f"udp/{server.game_port} tcp/{server.rcon_port}",
            f"{server.mount_ref} -> {server.container_path}",
        )
    return table


def _rules_table(descriptor: ClusterDescriptor) -> Table:
    table = Table(title="Ingress rules", title_justify="left", expand=False)
    table.add_column("Boundary")
    table.add_column("Rule")
    table.add_column("Source")
    table.add_column("Description", style="dim")

    for rule in (*descriptor.ingress_rules, *descriptor.admin_ingress_rules):
        table.add_row(rule.boundary_ref, f"{rule.protocol}/{rule.port}", rule.source, rule.description)
    return table


def render_summary(descriptor: ClusterDescriptor) -> RenderableType:
    header = Text()
    header.append(descriptor.cluster_id, style="bold yellow")
    header.append(" > ", style="dim")
    header.append(descriptor.network_ref)
    header.append(" > ", style="dim")
    header.append(f"{descriptor.storage.strategy} (retained)")

    footer = Text(
        f"{len(descriptor.startup_edges)} startup edges · "
        f"policy {descriptor.policy.name} attached to "
        f"{', '.join(descriptor.policy_attachments) or 'nobody'}",
        style="dim",
    )
    return Group(
        header,
        _capacity_table(descriptor),
        _server_table(descriptor),
        _rules_table(descriptor),
        footer,
    )


def print_summary(descriptor: ClusterDescriptor, console: Console | None = None) -> None:
    (console or Console()).print(render_summary(descriptor))
