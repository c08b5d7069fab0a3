"""Entry point for FractalTask.

This module allows running FractalTask as a module:
    python -m fractaltask show

Or as an installed command:
    fractaltask show
"""

import asyncio
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape

from fractaltask.logging_config import setup_logging, get_logger

logger = get_logger(__name__)


def main(args: Optional[list[str]] = None) -> int:
    """Main entry point for FractalTask.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args is None:
        args = sys.argv[1:]

    # Import here to keep logging setup ahead of module-level loggers
    from fractaltask.cli import CommandError, build_parser, run_command
    from fractaltask.config import Config
    from fractaltask.services.task_engine import TaskEngineError
    from fractaltask.services.tree_validation import TreeIntegrityError

    options = build_parser().parse_args(args)

    setup_logging(log_level=options.log_level, use_console_handler=options.verbose)

    console = Console()
    try:
        return asyncio.run(run_command(options, Config(options.config), console))
    except (TaskEngineError, CommandError, TreeIntegrityError) as e:
        logger.info(f"Command rejected: {e}")
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1
    except KeyboardInterrupt:
        logger.info("FractalTask interrupted by user (Ctrl+C)")
        return 0
    except Exception:
        logger.error("Error running FractalTask", exc_info=True)
        console.print("[red]Unexpected error, see the log file for details.[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
