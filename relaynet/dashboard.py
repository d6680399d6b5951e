# Make sure to install rich: pip install rich

import asyncio
import time
from typing import TYPE_CHECKING

from rich import box
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from .logger import recent_log_handler

if TYPE_CHECKING:
    from .RelayNetProxyServer import RelayNetProxyServer

MAX_ROWS = 15


def format_bytes(num):
    for unit in ['bytes', 'KB', 'MB', 'GB', 'TB']:
        if num < 1024.0:
            return f"{num:.2f} {unit}"
        num /= 1024.0
    return f"{num:.2f} PB"


def build_dashboard(server: "RelayNetProxyServer"):
    elapsed = int(time.time() - server.start_time) if server.start_time else 0
    relays = server.registry.snapshot()

    # Status Panel
    status = "[bold green]🟢 Running[/bold green]" if server.running else "[bold red]🔴 Stopped[/bold red]"
    status_panel = Panel(
        f"{status}\n"
        f"[bold]Listening:[/bold] {server.context.address}:{server.port}\n"
        f"[bold]Uptime:[/bold] {elapsed} sec\n"
        f"[bold]Active Connections:[/bold] {len(relays)}\n"
        f"[bold]Total Connections:[/bold] {server.total_connections}",
        title="🌐 [bold cyan]Status[/bold cyan]",
        border_style="green",
        padding=(1, 2),
    )

    # Traffic Panel, finished relays plus the ones still open
    sent = server.traffic_sent + sum(relay.bytes_up for relay in relays)
    received = server.traffic_received + sum(relay.bytes_down for relay in relays)
    traffic_panel = Panel(
        f"[bold]↑ Sent:[/bold] {format_bytes(sent)}\n"
        f"[bold]↓ Received:[/bold] {format_bytes(received)}",
        title="📊 [bold blue]Traffic[/bold blue]",
        border_style="blue",
        padding=(1, 2),
    )

    # Connections Table
    conn_table = Table(title="🔌 [bold yellow]Connections[/bold yellow]", expand=True, box=box.SIMPLE)
    conn_table.add_column("ID", style="bold", justify="right")
    conn_table.add_column("State", style="cyan")
    conn_table.add_column("Target", style="white")
    conn_table.add_column("↑", justify="right")
    conn_table.add_column("↓", justify="right")
    conn_table.add_column("Age", justify="right")
    for relay in relays[-MAX_ROWS:]:
        conn_table.add_row(
            str(relay.connection_id),
            relay.state.value,
            relay.target_label,
            format_bytes(relay.bytes_up),
            format_bytes(relay.bytes_down),
            f"{int(relay.age)}s",
        )

    # Logs Table
    log_table = Table(title="🧾 [bold red]Recent Logs[/bold red]", expand=True, box=box.SIMPLE)
    log_table.add_column("Level", style="bold cyan", justify="center")
    log_table.add_column("Message", style="dim white", justify="left")
    handler = recent_log_handler()
    if handler is not None:
        for level, msg in list(handler.records):
            log_table.add_row(level, msg)

    # Dashboard Layout
    grid = Table.grid(expand=True)
    grid.add_row(status_panel, traffic_panel)
    grid.add_row(conn_table)
    grid.add_row(log_table)

    return grid


async def run_dashboard(server: "RelayNetProxyServer", refresh: float = 1.0):
    """Redraw the dashboard until cancelled."""
    with Live(build_dashboard(server), refresh_per_second=1, screen=True) as live:
        while True:
            await asyncio.sleep(refresh)
            live.update(build_dashboard(server))
