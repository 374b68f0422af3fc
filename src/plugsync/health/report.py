"""
Table formatting for plug status output.
"""

from typing import Optional

from plugsync.core.state import DeviceStatus


def format_status_table(rows: list[DeviceStatus]) -> str:
    """
    Format manager status snapshots as a table.

    Args:
        rows: Status of each managed plug

    Returns:
        Formatted table string
    """
    if not rows:
        return "No plugs managed."

    lines = []
    header = f"{'LABEL':<20} {'LINK':<8} {'POWER':<8} {'DESIRED':<8} {'SYNC':<6} {'ADDRESS':<15}"
    lines.append(header)
    lines.append("-" * len(header))

    for row in sorted(rows, key=lambda r: r.label):
        link = "up" if row.connected else "down"
        sync = "\u2713" if row.in_sync else "\u2717"
        lines.append(
            f"{row.label:<20} {link:<8} {_format_state(row.observed):<8} "
            f"{_format_state(row.desired):<8} {sync:<6} {row.address or '-':<15}"
        )

    return "\n".join(lines)


def format_discovery_table(rows: list[tuple[str, Optional[str], Optional[bool]]]) -> str:
    """
    Format discovery results as a table.

    Args:
        rows: (address, label, power state) per discovered outlet; label and
            state are None when they could not be read

    Returns:
        Formatted table string
    """
    if not rows:
        return "No plugs found."

    lines = []
    header = f"{'LABEL':<20} {'ADDRESS':<20} {'POWER':<8}"
    lines.append(header)
    lines.append("-" * len(header))
    for address, label, state in rows:
        lines.append(f"{label or '?':<20} {address:<20} {_format_state(state):<8}")
    return "\n".join(lines)


def _format_state(state: Optional[bool]) -> str:
    if state is None:
        return "-"
    return "ON" if state else "OFF"
