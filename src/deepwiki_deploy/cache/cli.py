"""deepwiki-clear-cache: clear DeepWiki caches inside the running container."""
import logging

import click

from deepwiki_deploy import console
from deepwiki_deploy.cache.pruner import CachePruner, select_scopes
from deepwiki_deploy.cli import configure_logging
from deepwiki_deploy.errors import DeploymentError
from deepwiki_deploy.settings import get_settings

logger = logging.getLogger(__name__)

EXAMPLES = """\b
Examples:
  deepwiki-clear-cache --all                           # Clear all caches
  deepwiki-clear-cache --wiki                          # Clear wikicache only
  deepwiki-clear-cache --project owner_repo            # Clear one project
  deepwiki-clear-cache --list                          # List cached projects
"""


class ClearCacheCommand(click.Command):
    """Reports command-line usage errors with exit status 1."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


@click.command(cls=ClearCacheCommand, context_settings={"help_option_names": ["-h", "--help"]},
               epilog=EXAMPLES)
@click.option("-a", "--all", "clear_all", is_flag=True,
              help="Clear all caches (wikicache + databases + repos)")
@click.option("-w", "--wiki", is_flag=True, help="Clear wikicache only")
@click.option("-d", "--database", is_flag=True, help="Clear database cache only")
@click.option("-r", "--repos", is_flag=True, help="Clear downloaded repositories")
@click.option("-p", "--project", metavar="NAME",
              help="Clear cache for a specific project (format: owner_repo)")
@click.option("-l", "--list", "list_projects", is_flag=True, help="List cached projects")
@click.option("--verbose", is_flag=True, help="Verbose logging")
@click.pass_context
def clear_cache(ctx, clear_all, wiki, database, repos, project, list_projects, verbose):
    """Clear DeepWiki wiki, database and repository caches."""
    if not (clear_all or wiki or database or repos or list_projects or project):
        click.echo(ctx.get_help())
        ctx.exit(1)

    settings = get_settings()
    configure_logging(settings, verbose)
    console.banner("DeepWiki Cache Cleanup Tool")

    try:
        pruner = CachePruner.connect(settings.cache_service_name, settings.cache_root)

        if list_projects:
            pruner.show_listing(project)
            return

        for scope in select_scopes(clear_all, wiki, database, repos, project):
            pruner.clear(scope, project)
    except DeploymentError as e:
        console.error(str(e))
        logger.debug("Cache cleanup failed", exc_info=True)
        ctx.exit(e.exit_code)

    console.line()
    console.success("Cache cleanup completed!")
    console.info("To see the current state of cached projects, run:")
    console.line("  deepwiki-clear-cache --list")


if __name__ == "__main__":
    clear_cache()
