import logging
import sys
import threading
from typing import Callable, Optional

import click

from deepwiki_deploy import console
from deepwiki_deploy.errors import DeploymentError
from deepwiki_deploy.prompts import InteractivePrompter, Prompter, ScriptedPrompter
from deepwiki_deploy.settings import Settings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger('deepwiki_deploy').setLevel(level)
    # third-party loggers stay at WARNING
    for noisy in ('botocore', 'boto3', 'urllib3', 'docker'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_orchestrator(settings: Settings, prompter: Prompter,
                       cancel_event: Optional[threading.Event] = None):
    from deepwiki_deploy.aws.orchestration.deploy import DeploymentOrchestrator
    from deepwiki_deploy.aws.utils.aws_clients import AWSClientManager

    return DeploymentOrchestrator(settings, prompter, AWSClientManager(settings), cancel_event=cancel_event)


def run_guarded(action: Callable[[], None], cancel_event: threading.Event) -> None:
    """Run ``action``, turning deployment errors and Ctrl-C into exit codes."""
    try:
        action()
    except DeploymentError as e:
        console.error(str(e))
        logger.debug("Deployment step failed", exc_info=True)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        cancel_event.set()
        console.line()
        console.warning("Interrupted. A CloudFormation operation may still be in progress; "
                        "check the stack status before re-running.")
        sys.exit(1)


@click.group()
@click.option('--yes', '-y', 'assume_yes', is_flag=True,
              help='Answer yes to every confirmation (API keys must come from the environment)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, assume_yes: bool, verbose: bool):
    """DeepWiki AWS deployment CLI"""
    settings = get_settings()
    configure_logging(settings, verbose)
    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings
    ctx.obj['prompter'] = ScriptedPrompter(confirm_answer=True) if assume_yes else InteractivePrompter()
    ctx.obj['cancel_event'] = threading.Event()


def _context(ctx):
    return ctx.obj['settings'], ctx.obj['prompter'], ctx.obj['cancel_event']


@cli.command()
@click.option('--mode', type=click.Choice(['full', 'infra', 'app', 'image']), default=None,
              help='Deployment mode; asks interactively when omitted')
@click.pass_context
def deploy(ctx, mode: Optional[str]):
    """Deploy DeepWiki to AWS (VPC, EFS, ECS and the Docker image)"""
    from deepwiki_deploy.aws.orchestration.deploy import DeploymentMode

    settings, prompter, cancel_event = _context(ctx)

    def action():
        orchestrator = build_orchestrator(settings, prompter, cancel_event)
        selected = DeploymentMode(mode) if mode else orchestrator.select_mode()
        orchestrator.check_prerequisites(selected)
        summary = orchestrator.run(selected)
        logger.info(f"Deployment summary: {summary}")

    run_guarded(action, cancel_event)


@cli.command()
@click.pass_context
def vpc(ctx):
    """Deploy or update the VPC network stack"""
    settings, prompter, cancel_event = _context(ctx)
    run_guarded(lambda: build_orchestrator(settings, prompter, cancel_event).deploy_vpc(), cancel_event)


@cli.command()
@click.pass_context
def efs(ctx):
    """Deploy or update the EFS stack (requires the VPC stack)"""
    settings, prompter, cancel_event = _context(ctx)
    run_guarded(lambda: build_orchestrator(settings, prompter, cancel_event).deploy_efs(), cancel_event)


@cli.command()
@click.pass_context
def ecs(ctx):
    """Deploy or update the ECS stack (requires the VPC and EFS stacks)"""
    settings, prompter, cancel_event = _context(ctx)
    run_guarded(lambda: build_orchestrator(settings, prompter, cancel_event).deploy_ecs(), cancel_event)


@cli.command()
@click.pass_context
def image(ctx):
    """Build the Docker image and push it to ECR"""
    settings, prompter, cancel_event = _context(ctx)
    run_guarded(lambda: build_orchestrator(settings, prompter, cancel_event).publish_image(), cancel_event)


@cli.command()
@click.pass_context
def status(ctx):
    """Show stack states and the ECS service status"""
    settings, prompter, cancel_event = _context(ctx)

    def action():
        orchestrator = build_orchestrator(settings, prompter, cancel_event)
        rows = []
        for label, stack_name in settings.stack_names.items():
            stack = orchestrator.prober.probe(stack_name)
            rows.append({'Stack': label, 'Name': stack_name, 'Status': stack.describe()})
        console.table(rows, ['Stack', 'Name', 'Status'], title="CloudFormation Stacks")
        if orchestrator.prober.probe(settings.ecs_stack_name).exists:
            orchestrator.monitor.show_deployment_info()

    run_guarded(action, cancel_event)


@cli.command('show-config')
@click.pass_context
def show_config(ctx):
    """Show the effective configuration (secrets masked)"""
    settings = ctx.obj['settings']
    console.key_values(settings.get_display_dict(), title="DeepWiki Deployment Configuration")


if __name__ == '__main__':
    cli()
