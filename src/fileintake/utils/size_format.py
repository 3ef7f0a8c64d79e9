SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_file_size(size: int) -> str:
    """Formats a byte count as a short human-readable string, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 Bytes"

    k = 1024
    i = 0
    while size >= k ** (i + 1) and i < len(SIZE_UNITS) - 1:
        i += 1

    value = round(size / k**i, 2)
    # 1.50 -> 1.5, 2.00 -> 2
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def percent(part: float, whole: float) -> int:
    """Rounded percentage of ``part`` in ``whole``; 0 when ``whole`` is empty."""
    if whole <= 0:
        return 0
    return round(part / whole * 100)
