import sys


def log(message: str, indent: int = 0, padding_top: int = 0, err: bool = False) -> None:
    """
    Console print with indentation and top padding.

    Messages flagged with ``err`` go to stderr so that they survive stdout redirection.
    """
    stream = sys.stderr if err else sys.stdout
    for _ in range(padding_top):
        print(file=stream)
    prefix = "  " * indent

    output_message = f"{prefix}{message}"
    try:
        print(output_message, file=stream)
    except UnicodeEncodeError:
        # Windows consoles without UTF-8 support
        print(output_message.encode("ascii", errors="replace").decode("ascii"), file=stream)
