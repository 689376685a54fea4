"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
import click
from functools import wraps
from typing import Any, Generator

from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .format_utils import FORMATS, format_output, get_format_from_env

logger = logging.getLogger(__name__)


def get_flow():
    """
    Flow instance for the running command.

    Built lazily from the root context's options; tests may place a ready
    instance under ``obj['flow']``.
    """
    from .api import Flow
    from .config import load_config, configure_logging

    ctx = click.get_current_context().find_root()
    obj = ctx.ensure_object(dict)
    if 'flow' not in obj:
        config = load_config(obj.get('config_path'))
        configure_logging(config, verbose=obj.get('verbose', False))
        obj['flow'] = Flow(
            backend=obj.get('backend'),
            repo_path=obj.get('repo', '.'),
            config=config,
        )
    return obj['flow']


def _emit(result: Any, output_format: str) -> None:
    if isinstance(result, Generator):
        items = result
    elif isinstance(result, (list, tuple)):
        items = iter(result)
    elif isinstance(result, dict):
        items = iter([result])
    else:
        # Raw output
        print(result, flush=True)
        return
    for line in format_output(items, output_format):
        print(line, flush=True)


def standard_command():
    """
    Decorator that provides standard CLI behavior:
    - Clean JSON output on stdout, logs on stderr
    - Automatic --quiet/-q handling to suppress data output
    - Consistent error handling: every CommandError exits with its own
      exit code after printing a JSON error object
    """
    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            quiet = kwargs.get('quiet', False)
            output_format = kwargs.get('format', None)

            # Get format from env if not specified
            if output_format is None:
                output_format = get_format_from_env('jsonl')
                if 'format' in kwargs:
                    kwargs['format'] = output_format

            try:
                result = func(*args, **kwargs)

                if quiet or result is None:
                    # Command handled its own output (or none wanted)
                    pass
                elif output_format == 'table':
                    # Table output is rendered by the command itself
                    pass
                else:
                    _emit(result, output_format)

                sys.exit(SUCCESS)

            except KeyboardInterrupt:
                logger.error("Interrupted by user")
                sys.exit(INTERRUPTED)
            except click.ClickException:
                # Click exceptions already have their exit code
                raise
            except CommandError as e:
                logger.error(str(e))
                if not quiet:
                    print(json.dumps(e.to_dict(), ensure_ascii=False), flush=True)
                sys.exit(e.exit_code)
            except Exception as e:
                logger.error(f"Command failed: {e}")
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__
                    }
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                # Exit with appropriate code
                sys.exit(get_exit_code_for_exception(e))

        return wrapper
    return decorator


# Standard options that many commands share
common_options = {
    'quiet': click.option('-q', '--quiet', is_flag=True,
                         help='Suppress data output'),
    'format': click.option('-f', '--format',
                         type=click.Choice(list(FORMATS)),
                         help='Output format (default: jsonl, or from FLOWGATE_FORMAT env)'),
    'table_format': click.option('-f', '--format',
                         type=click.Choice(['table'] + list(FORMATS)),
                         help='Output format (default: jsonl, or from FLOWGATE_FORMAT env)'),
    'actor': click.option('--as', 'actor', metavar='ACTOR',
                         help='Actor recorded on the operation (default: $FLOWGATE_ACTOR or $USER)'),
    'keep': click.option('-k', '--keep', is_flag=True,
                         help='Keep the source branch after merging'),
    'fetch': click.option('--fetch', is_flag=True,
                         help='Pull source and target from the remote before merging'),
    'push': click.option('--push', is_flag=True,
                         help='Push merged targets to the remote afterwards'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('quiet', 'format')
        def my_command(quiet, format):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
