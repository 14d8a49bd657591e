"""GitHub Actions runtime helpers: inputs, outputs and runner labels."""

from __future__ import annotations

import os
import random
import string
from collections.abc import Mapping

from loguru import logger

from .exceptions import ConfigurationError

_LABEL_ALPHABET = string.ascii_lowercase + string.digits
LABEL_LENGTH = 5


def input_env_name(name: str) -> str:
    """Environment variable GitHub uses for an action input.

    Spaces become underscores, hyphens are kept: ``github-token`` is
    ``INPUT_GITHUB-TOKEN``.
    """
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(
    name: str,
    env: Mapping[str, str] | None = None,
    *,
    required: bool = False,
) -> str:
    """Read an action input, trimmed. Missing inputs read as an empty string."""
    env = os.environ if env is None else env
    value = env.get(input_env_name(name), "").strip()
    if required and not value:
        raise ConfigurationError(f"Input required and not supplied: {name}")
    return value


def set_output(name: str, value: str, env: Mapping[str, str] | None = None) -> None:
    """Publish a step output through the ``GITHUB_OUTPUT`` file."""
    env = os.environ if env is None else env
    output_path = env.get("GITHUB_OUTPUT")
    if not output_path:
        logger.info(f"Output {name}={value} (GITHUB_OUTPUT is not set)")
        return

    if "\n" in value:
        raise ValueError(f"Output {name} must be a single line")

    with open(output_path, "a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")


def generate_unique_label() -> str:
    """Short random label used to target the runner with ``runs-on``."""
    return "".join(random.choices(_LABEL_ALPHABET, k=LABEL_LENGTH))
