"""Configuration models used by the execution engine.

EngineConfig

`python_executable` (`str`)
: Interpreter used to run the synthesized notebook session. The interpreter
  must be able to import IPython.

`session_languages` (`list[str]`)
: Fragment languages executed inside the shared interpreter session.

`compiled_languages` (`list[str]`)
: Fragment languages built with a native toolchain and executed afterwards.

`build_file_languages` (`dict[str, str]`)
: Fragment languages written verbatim as build files, mapped to the default
  filename used when the fragment declares none.

`execute_option` (`str`)
: Option that marks a fragment as executable.

`enable_attribute` (`str`)
: Document attribute that must be present for any fragment to run.

`cache_attribute` (`str`)
: Document attribute enabling the result cache. Its value is the cache
  directory; an empty value selects `default_cache_dir`.

`default_cache_dir` (`Path`)
: Cache directory used when the cache attribute carries no value.

`workspace` (`Path`)
: Root directory receiving per-document sources and build artifacts.

`timeout` (`float | None`)
: Upper bound, in seconds, for every external invocation. `None` disables it.

`max_buffer` (`int`)
: Maximum number of characters captured on each output stream.

`default_compile` (`str`)
: Build strategy applied when a compiled fragment declares none.

`default_processes` (`int`)
: Process count forwarded to the MPI launcher when `np` is omitted.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
import yaml


COMPILE_STRATEGIES = ("sh", "cpp", "c", "make", "mpi", "openmp", "cmake")


class EngineConfig(BaseModel):
    """Settings shared by every processor of a conversion pass."""

    model_config = ConfigDict(extra="forbid")

    python_executable: str = "python3"
    session_languages: list[str] = Field(default_factory=lambda: ["python"])
    compiled_languages: list[str] = Field(default_factory=lambda: ["c", "cpp"])
    build_file_languages: dict[str, str] = Field(
        default_factory=lambda: {
            "cmake": "CMakeLists.txt",
            "make": "Makefile",
            "makefile": "Makefile",
        }
    )
    execute_option: str = "dynamic"
    enable_attribute: str = "dynamic-blocks"
    cache_attribute: str = "dynamic-blocks-cache-result"
    default_cache_dir: Path = Path(".cache")
    workspace: Path = Path(".runsmith")
    timeout: float | None = Field(default=600.0, gt=0)
    max_buffer: int = Field(default=50 * 1024 * 1024, gt=0)
    default_compile: str = "make"
    default_processes: int = Field(default=2, ge=1)

    @field_validator("session_languages", "compiled_languages")
    @classmethod
    def normalise_languages(cls, value: list[str]) -> list[str]:
        """Lowercase language tags so lookups are case-insensitive."""
        return [item.strip().lower() for item in value if item.strip()]

    @field_validator("default_compile")
    @classmethod
    def check_strategy(cls, value: str) -> str:
        """Reject build strategies the orchestrator cannot drive."""
        candidate = value.strip().lower()
        if candidate not in COMPILE_STRATEGIES:
            allowed = ", ".join(COMPILE_STRATEGIES)
            raise ValueError(f"Unknown compile strategy '{value}' (expected one of {allowed})")
        return candidate


def load_engine_config(path: Path | str | None = None, **overrides: Any) -> EngineConfig:
    """Load engine settings from a YAML file, applying keyword overrides last.

    The file may either hold the settings at the top level or nest them under a
    ``runsmith`` key so that the engine can share a project configuration file.
    """
    data: dict[str, Any] = {}
    if path is not None:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file '{path}' must contain a mapping.")
        section = raw.get("runsmith", raw)
        if not isinstance(section, dict):
            raise ValueError(f"The 'runsmith' section of '{path}' must be a mapping.")
        data.update(section)

    data.update({key: value for key, value in overrides.items() if value is not None})
    return EngineConfig.model_validate(data)


__all__ = ["COMPILE_STRATEGIES", "EngineConfig", "load_engine_config"]
