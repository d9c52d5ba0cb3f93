"""
Connection settings for the Neo4j query runner.

Settings can be built directly, read from ``NEO4J_*`` environment variables,
or loaded from a YAML file. String fields support ``${VAR}`` references that
are expanded from the environment, so credentials need not live in files.

Example YAML:
    neo4j:
      uri: "neo4j://localhost:7687"
      username: "neo4j"
      password: "${NEO4J_PASSWORD}"
      database: "neo4j"
      max_retries: 3
      query_timeout: 30
"""

import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


VALID_URI_SCHEMES = (
    "bolt://",
    "bolt+s://",
    "bolt+ssc://",
    "neo4j://",
    "neo4j+s://",
    "neo4j+ssc://",
)

_ENV_VAR = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: Optional[str]) -> Optional[str]:
    """Replace ``${VAR}`` references with environment values (missing -> "")."""
    if value is None:
        return None
    return _ENV_VAR.sub(lambda m: os.environ.get(m.group(1), ""), str(value))


class RunnerSettings(BaseModel):
    """
    Pydantic model for Neo4j runner configuration.

    Attributes:
        uri: Connection URI (bolt, bolt+s, bolt+ssc, neo4j, neo4j+s, neo4j+ssc)
        username: Username for basic authentication
        password: Password for basic authentication
        bearer_token: Token for bearer authentication (takes precedence)
        database: Target database name
        max_connection_pool_size: Maximum pooled connections
        max_connection_lifetime: Maximum connection lifetime in seconds
        connection_acquisition_timeout: Seconds to wait for a pooled connection
        max_retries: Attempts for transient driver failures
        retry_delay: Initial backoff in seconds (doubled per attempt)
        query_timeout: Default per-query timeout in seconds (None = server default)

    Example:
        >>> settings = RunnerSettings(uri="bolt://db:7687", username="neo4j", password="pw")
        >>> settings.database
        'neo4j'
    """

    uri: str = Field(default="bolt://localhost:7687", description="Connection URI")
    username: Optional[str] = Field(default=None, description="Basic auth username")
    password: Optional[str] = Field(default=None, repr=False, description="Basic auth password")
    bearer_token: Optional[str] = Field(default=None, repr=False, description="Bearer token")
    database: str = Field(default="neo4j", min_length=1, description="Database name")

    max_connection_pool_size: int = Field(default=50, ge=1)
    max_connection_lifetime: int = Field(default=3600, ge=0)
    connection_acquisition_timeout: float = Field(default=60.0, gt=0)

    max_retries: int = Field(default=3, ge=1, le=20)
    retry_delay: float = Field(default=0.5, ge=0, le=60)
    query_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("uri", "username", "password", "bearer_token", mode="before")
    @classmethod
    def expand_environment(cls, v):
        """Expand ``${VAR}`` references; empty credentials become None."""
        if v is None:
            return None
        expanded = expand_env_vars(v)
        return expanded if expanded != "" else None

    @field_validator("uri")
    @classmethod
    def validate_scheme(cls, v):
        if v is None or not any(v.startswith(scheme) for scheme in VALID_URI_SCHEMES):
            raise ValueError(
                f"Invalid URI scheme. Supported schemes: {', '.join(VALID_URI_SCHEMES)}"
            )
        return v

    @model_validator(mode="after")
    def validate_auth(self):
        if bool(self.username) != bool(self.password):
            raise ValueError(
                "Both username and password are required for basic authentication"
            )
        return self

    @classmethod
    def from_env(
        cls, prefix: str = "NEO4J_", environ: Optional[Mapping[str, str]] = None
    ) -> "RunnerSettings":
        """
        Build settings from environment variables.

        Reads ``{prefix}URI``, ``{prefix}USERNAME`` (or ``{prefix}USER``),
        ``{prefix}PASSWORD``, ``{prefix}BEARER_TOKEN`` and ``{prefix}DATABASE``;
        unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        names = {
            "uri": ["URI"],
            "username": ["USERNAME", "USER"],
            "password": ["PASSWORD"],
            "bearer_token": ["BEARER_TOKEN"],
            "database": ["DATABASE"],
        }
        values = {}
        for field_name, suffixes in names.items():
            for suffix in suffixes:
                value = env.get(prefix + suffix)
                if value:
                    values[field_name] = value
                    break
        return cls(**values)


def load_settings(path: Union[str, Path]) -> RunnerSettings:
    """
    Load RunnerSettings from a YAML file.

    The file may hold the settings at the top level or under a ``neo4j:`` key.

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if the document is not a mapping
        pydantic.ValidationError: if a setting is invalid
    """
    text = Path(path).read_text(encoding="utf-8")
    data: Any = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"settings file {path} must contain a mapping")
    section = data.get("neo4j", data)
    if not isinstance(section, dict):
        raise ValueError(f"'neo4j' section in {path} must be a mapping")
    return RunnerSettings(**section)


__all__ = ["RunnerSettings", "VALID_URI_SCHEMES", "expand_env_vars", "load_settings"]
