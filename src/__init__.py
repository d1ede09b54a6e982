"""DeepSeek Chat Proxy

An OpenAI-compatible chat completion server backed by the DeepSeek web chat.
"""

import os
import sys
from typing import Mapping, Optional, Sequence

from dotenv import load_dotenv

ENV_FILE_VARIABLE = "DEEPSEEK_PROXY_ENV_FILE"

# flag -> how its value becomes a dotenv path
_ENV_FLAGS = {
    "--env-file": lambda value: value,
    "--env": lambda name: f".env.{name}",
}


def env_file_from_args(args: Sequence[str]) -> Optional[str]:
    """Return the env file named by ``--env-file PATH`` or ``--env NAME``.

    Both ``--flag value`` and ``--flag=value`` forms are accepted; the first
    matching flag wins.
    """
    for index, arg in enumerate(args):
        flag, sep, inline = arg.partition("=")
        to_path = _ENV_FLAGS.get(flag)
        if to_path is None:
            continue
        if sep:
            return to_path(inline)
        if index + 1 < len(args):
            return to_path(args[index + 1])
    return None


def select_env_file(environ: Mapping[str, str], args: Sequence[str]) -> Optional[str]:
    return environ.get(ENV_FILE_VARIABLE) or env_file_from_args(args)


def load_environment(
    environ: Optional[Mapping[str, str]] = None, args: Optional[Sequence[str]] = None
) -> Optional[str]:
    chosen = select_env_file(
        os.environ if environ is None else environ, sys.argv if args is None else args
    )
    if not chosen:
        load_dotenv()
        return None

    # A named file beats whatever the shell already exported.
    if not load_dotenv(dotenv_path=chosen, override=True):
        print(f"Env file not found or empty: {chosen}")
    else:
        print(f"Using env file: {chosen}")
    return chosen


load_environment()

__version__ = "1.0.0"
__author__ = "DeepSeek Chat Proxy"
