import os
from typing import Dict

from dotenv import dotenv_values

from .env import Env, PrimaryType


def load_env(
    default: type[Env] = Env,
    env_file: str | None = None,
    override: Env | None = None,
    configure_logging: bool = True,
) -> Env:
    """
    Build settings from a dotenv file and the process environment.

    Process environment variables win over the dotenv file, and fields set
    on override win over both. Durations are validated as the model is
    built, so a malformed "HYPERLEASE_LEASE_TTL" fails here rather than at
    the first acquire. Unless told otherwise, the resulting log level is
    applied to LoggingConfig.
    """
    if env_file is None:
        env_file = ".env"

    file_values: Dict[str, str | None] = {}
    if os.path.exists(env_file):
        file_values = dotenv_values(dotenv_path=env_file)

    values: Dict[str, PrimaryType] = {}
    for envar_name, envar_type in default.types_map().items():
        raw_value = os.getenv(envar_name) or file_values.get(envar_name)
        if raw_value:
            values[envar_name] = envar_type(raw_value)

    if override:
        values.update(override.model_dump(exclude_unset=True, exclude_none=True))

    env = default(**values)

    if configure_logging:
        env.configure_logging()

    return env
