"""Environment checks for meetrag.

Verifies that ffprobe is reachable and that every configured provider has
an API key.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from meetrag.core.config import MeetRAGConfig


@dataclass
class DependencyCheck:
    """Result of checking a single dependency.

    Attributes:
        name: What was checked (e.g. "ffprobe", "groq_api_key")
        available: Whether the dependency is usable
        detail: Path of the executable or the provider that needs the key
        required: Whether this dependency is required for operation
    """

    name: str
    available: bool
    detail: str | None
    required: bool = True


@dataclass
class DoctorResult:
    checks: list[DependencyCheck] = field(default_factory=list)

    @property
    def all_ok(self) -> bool:
        """Return True if all required dependencies are available."""
        return all(check.available or not check.required for check in self.checks)


def _required_keys(config: MeetRAGConfig) -> dict[str, list[str]]:
    needed: dict[str, list[str]] = {}

    def need(key: str, role: str) -> None:
        needed.setdefault(key, []).append(role)

    need(f"{config.stt_provider}_api_key", "stt")
    if config.refinement_provider == "groq":
        need("groq_api_key", "refinement")
    need("openai_api_key" if config.embedding_provider == "openai" else "google_api_key", "embedding")
    need("openai_api_key" if config.generation_provider == "openai" else "google_api_key", "generation")
    return needed


def check_dependencies(config: MeetRAGConfig) -> DoctorResult:
    """Check the ffprobe binary and the API keys the configuration needs."""
    checks: list[DependencyCheck] = []

    ffprobe = shutil.which(config.ffprobe_path)
    checks.append(DependencyCheck(name="ffprobe", available=ffprobe is not None, detail=ffprobe))

    for key, roles in sorted(_required_keys(config).items()):
        checks.append(
            DependencyCheck(
                name=key,
                available=bool(getattr(config, key, "")),
                detail=", ".join(roles),
            )
        )

    return DoctorResult(checks=checks)
