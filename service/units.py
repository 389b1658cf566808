from typing import Union


def bytes_to_human(byte_count: Union[int, float, None], system: str = "IEC") -> str:
    """Convert bytes to a human-readable string.

    system:
      - 'IEC': base 1024 with labels KiB, MiB, GiB, TiB
      - 'SI' : base 1000 with labels KB, MB, GB, TB
    """
    if byte_count is None:
        return "N/A"
    value = max(float(byte_count), 0.0)
    if value == 0:
        return "0 B"
    if (system or "IEC").upper() == "SI":
        power, labels = 1000.0, ["B", "KB", "MB", "GB", "TB"]
    else:
        power, labels = 1024.0, ["B", "KiB", "MiB", "GiB", "TiB"]
    idx = 0
    while value >= power and idx < len(labels) - 1:
        value /= power
        idx += 1
    return f"{value:.2f} {labels[idx]}"


def format_data_limit(byte_count: int) -> str:
    """Registry data limit, where 0 means no limit."""
    return "unlimited" if byte_count == 0 else bytes_to_human(byte_count)


def format_connections(count: int) -> str:
    return "unlimited" if count == 0 else str(count)


def format_expire_time(seconds: int) -> str:
    """Registry expire time, where 0 means the identity never expires."""
    if seconds == 0:
        return "never"
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
