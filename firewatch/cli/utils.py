"""
Helpers shared by the CLI commands.
"""
import asyncio
import functools
import sys

from redis.exceptions import RedisError
from rich.console import Console

from firewatch.core.secrets import CredentialError

console = Console()


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def handle_async_command(async_func):
    """
    Run an async click command with ``asyncio.run``.

    Known failures are reported on one line and exit with status 1 instead
    of dumping a traceback.
    """
    @functools.wraps(async_func)
    def wrapper(*args, **kwargs):
        try:
            return asyncio.run(async_func(*args, **kwargs))
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            sys.exit(1)
        except CredentialError as e:
            fail(f"{e} Check FIREWATCH_MASTER_KEY.")
        except (RedisError, OSError) as e:
            fail(f"Redis unavailable: {e}")
        except Exception as e:
            fail(str(e))
    return wrapper
