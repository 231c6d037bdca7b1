"""Tree options: defaults, overridable from the environment."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_ENV_PREFIX = "CONVTREE_"


class TreeOptions(BaseModel):
    max_nodes: int = Field(default=1000, ge=1)
    auto_prune: bool = False
    max_branches: int | None = Field(default=None, ge=1)
    max_depth: int | None = Field(default=None, ge=1)
    title_max_length: int = Field(default=50, ge=1)
    id_prefix: str = "node"

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "TreeOptions":
        """Build options from ``CONVTREE_*`` variables.

        If ``env_file`` is given it is loaded first; variables already set in
        the process environment win over the file.
        """
        if env_file is not None:
            load_dotenv(env_file)

        values: dict[str, str] = {}
        for field_name in cls.model_fields:
            raw = os.environ.get(_ENV_PREFIX + field_name.upper())
            if raw is not None and raw != "":
                values[field_name] = raw
        return cls.model_validate(values)
