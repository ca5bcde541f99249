"""
Cache cleanup inside the running DeepWiki container.

DeepWiki keeps three kinds of per-project artifacts under its cache root:
generated wiki pages (``wikicache/*.json``), embedding databases
(``databases/*.pkl``) and cloned repositories (``repos/<name>/``). The pruner
lists or deletes them by running commands in the container.
"""
import logging
import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Pattern, Tuple

import docker
from docker.errors import APIError, DockerException, NotFound

from deepwiki_deploy import console
from deepwiki_deploy.errors import ExternalCallFailure, PreconditionMissing

logger = logging.getLogger(__name__)

COMPOSE_SERVICE_LABEL = "com.docker.compose.service"


class CacheScope(str, Enum):
    WIKI = "wiki"
    DATABASE = "database"
    REPOS = "repos"


# wiki pages are named deepwiki_cache_<repo type>_<owner>_<repo>_<language>.json
WIKI_LANGUAGE_SUFFIX = re.compile(r"_[a-z]{2}(?:-[a-z]{2,4})?$")


@dataclass(frozen=True)
class ScopeLayout:
    """Where a scope's artifacts live and what they look like."""
    directory: str
    pattern: str
    kind: str  # find -type: "f" or "d"
    title: str
    display_prefixes: Tuple[str, ...] = ()
    display_suffix: str = ""
    display_trailer: Optional[Pattern] = None

    def display_name(self, name: str) -> str:
        """Project name as ``--project`` takes it (owner_repo for wiki pages)."""
        for prefix in self.display_prefixes:
            if name.startswith(prefix):
                name = name[len(prefix):]
                break
        if self.display_suffix and name.endswith(self.display_suffix):
            name = name[:-len(self.display_suffix)]
        if self.display_trailer is not None:
            name = self.display_trailer.sub("", name)
        return name


SCOPE_LAYOUTS: Dict[CacheScope, ScopeLayout] = {
    CacheScope.WIKI: ScopeLayout("wikicache", "*.json", "f", "Wiki Cache",
                                 display_prefixes=("deepwiki_cache_github_", "deepwiki_cache_"),
                                 display_suffix=".json",
                                 display_trailer=WIKI_LANGUAGE_SUFFIX),
    CacheScope.DATABASE: ScopeLayout("databases", "*.pkl", "f", "Database Cache",
                                     display_suffix=".pkl"),
    CacheScope.REPOS: ScopeLayout("repos", "*", "d", "Downloaded Repositories"),
}


@dataclass
class ClearResult:
    """What a clear call removed."""
    scope: CacheScope
    removed: List[str] = field(default_factory=list)
    warning: Optional[str] = None


def select_scopes(clear_all: bool, wiki: bool, database: bool, repos: bool,
                  project: Optional[str]) -> List[CacheScope]:
    """Scopes selected by the command-line flags.

    ``--all``, or a project name with no scope flag, selects every scope.
    """
    if clear_all:
        return list(CacheScope)
    selected = [
        scope for scope, flag in (
            (CacheScope.WIKI, wiki),
            (CacheScope.DATABASE, database),
            (CacheScope.REPOS, repos),
        ) if flag
    ]
    if not selected and project:
        return list(CacheScope)
    return selected


def find_service_container(client: Any, service_name: str) -> Any:
    """Running container of a docker compose service.

    Falls back to a container named ``service_name``.

    Raises:
        PreconditionMissing: no running container was found
    """
    containers = client.containers.list(
        filters={"label": f"{COMPOSE_SERVICE_LABEL}={service_name}", "status": "running"}
    )
    if containers:
        return containers[0]

    try:
        container = client.containers.get(service_name)
    except NotFound:
        container = None
    if container is not None and container.status == "running":
        return container

    raise PreconditionMissing(
        f"DeepWiki container '{service_name}' is not running. "
        "Please start it with 'docker compose up -d'"
    )


class CachePruner:
    """Lists and deletes cache artifacts inside a container."""

    def __init__(self, container: Any, cache_root: str):
        self.container = container
        self.cache_root = cache_root.rstrip("/")

    @classmethod
    def connect(cls, service_name: str, cache_root: str) -> "CachePruner":
        """Attach to the running container of ``service_name``."""
        try:
            client = docker.from_env()
        except DockerException as e:
            raise PreconditionMissing(f"Docker is not available: {e}") from e
        container = find_service_container(client, service_name)
        logger.info(f"Using container {container.name} for service {service_name}")
        return cls(container, cache_root)

    def _exec(self, *command: str) -> Tuple[int, str]:
        logger.debug(f"exec: {' '.join(command)}")
        try:
            result = self.container.exec_run(list(command))
        except APIError as e:
            raise ExternalCallFailure(f"Command '{command[0]}' failed in container: {e}") from e
        output = result.output.decode("utf-8", errors="replace") if result.output else ""
        return result.exit_code, output

    def scope_directory(self, scope: CacheScope) -> str:
        return posixpath.join(self.cache_root, SCOPE_LAYOUTS[scope].directory)

    def list_artifacts(self, scope: CacheScope, project: Optional[str] = None) -> Optional[List[str]]:
        """Artifact names of ``scope``, filtered to names containing ``project``.

        Returns None when the scope's directory does not exist. Read-only.
        """
        layout = SCOPE_LAYOUTS[scope]
        directory = self.scope_directory(scope)

        exit_code, _ = self._exec("test", "-d", directory)
        if exit_code != 0:
            return None

        exit_code, output = self._exec(
            "find", directory, "-mindepth", "1", "-maxdepth", "1",
            "-type", layout.kind, "-name", layout.pattern,
        )
        if exit_code != 0:
            raise ExternalCallFailure(f"Could not list {directory}: {output.strip()}")

        names = sorted(posixpath.basename(path) for path in output.splitlines() if path.strip())
        if project:
            names = [name for name in names if project in name]
        return names

    def list_cached(self, project: Optional[str] = None) -> Dict[CacheScope, Optional[List[str]]]:
        """Artifacts of every scope. Never deletes anything."""
        return {scope: self.list_artifacts(scope, project) for scope in CacheScope}

    def show_listing(self, project: Optional[str] = None) -> Dict[CacheScope, Optional[List[str]]]:
        console.step("Listing Cached Projects")
        listing = self.list_cached(project)
        for scope, names in listing.items():
            layout = SCOPE_LAYOUTS[scope]
            console.line()
            console.info(f"{layout.title}:")
            if not names:
                console.line(f"  No {layout.title.lower()} found")
                continue
            for name in names:
                console.line(f"  {layout.display_name(name)}")
        console.line()
        return listing

    def clear(self, scope: CacheScope, project: Optional[str] = None) -> ClearResult:
        """Delete the artifacts of ``scope`` (only those containing ``project`` if given).

        A missing directory or no matching artifact is reported as a warning.

        Raises:
            ExternalCallFailure: the delete command failed
        """
        layout = SCOPE_LAYOUTS[scope]
        target = f"{layout.title} for Project: {project}" if project else f"All {layout.title}"
        console.step(f"Clearing {target}")
        result = ClearResult(scope)

        names = self.list_artifacts(scope, project)
        if names is None:
            result.warning = f"{layout.title} directory not found"
        elif not names:
            result.warning = (f"{layout.title} not found for {project}" if project
                              else f"No {layout.title.lower()} to clear")
        if result.warning:
            console.warning(result.warning)
            return result

        directory = self.scope_directory(scope)
        paths = [posixpath.join(directory, name) for name in names]
        remove = ["rm", "-rf"] if layout.kind == "d" else ["rm", "-f"]
        exit_code, output = self._exec(*remove, *paths)
        if exit_code != 0:
            raise ExternalCallFailure(f"Failed to clear {layout.title.lower()}: {output.strip()}")

        result.removed = names
        console.success(f"Cleared {len(names)} {layout.title.lower()} item(s)"
                        + (f" for {project}" if project else ""))
        return result
