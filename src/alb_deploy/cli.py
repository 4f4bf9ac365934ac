# cli.py
import os
import logging
import functools

import click
from botocore.exceptions import BotoCoreError, ClientError

from alb_deploy.aws.clients import AWSClientManager
from alb_deploy.config.settings import get_settings
from alb_deploy.errors import AlbDeployError
from alb_deploy.lifecycle import BindingLifecycle
from alb_deploy.prompts import ClickPrompter

# Configure logging
logger = logging.getLogger(__name__)


def reports_errors(func):
    """Turn known failures into a one-line diagnostic and exit code 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (AlbDeployError, ClientError, BotoCoreError) as e:
            click.echo(f"❌ {e}", err=True)
            raise SystemExit(1)
    return wrapper


def make_lifecycle(ctx: click.Context) -> BindingLifecycle:
    settings = get_settings()
    clients = AWSClientManager(ctx.obj["region"], settings)
    return BindingLifecycle(
        ctx.obj["project_directory"],
        clients,
        prompter=ClickPrompter(settings.entry_module_suffix),
        settings=settings,
    )


stage_option = click.option("--stage", "-s", required=True,
                            help="The stage to use for deployment ex: dev")


@click.group()
@click.option("--project-directory", "-p",
              default=os.getcwd,
              type=click.Path(exists=True, file_okay=False),
              help="Path to project directory, defaults to cwd")
@click.option("--region", "-r",
              default=None,
              help="The aws region to access (defaults to AWS_REGION or us-east-1)")
@click.pass_context
def cli(ctx, project_directory, region):
    """Manage ALBs and their Lambda targets"""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ctx.obj = {
        "project_directory": project_directory,
        "region": region or settings.aws_region,
    }


@cli.command()
@click.pass_context
@reports_errors
def init(ctx):
    """Initialize an alb and lambda target"""
    config = make_lifecycle(ctx).init()
    if config is None:
        click.echo("Load balancer not created; nothing saved")
        return
    click.echo(f"✅ Saved binding for {config.service_name} on {config.load_balancer}")


@cli.command()
@stage_option
@click.pass_context
@reports_errors
def update(ctx, stage):
    """Update function code and ALB routes"""
    result = make_lifecycle(ctx).update(stage)
    click.echo(f"Version {result.version} deployed to {result.identity.safe_name}")
    if result.rule is not None:
        click.echo(f"✅ Accessible at: {result.rule.url} (priority {result.rule.priority})")
    else:
        click.echo("✅ Existing route kept")


@cli.command()
@stage_option
@click.pass_context
@reports_errors
def deregister(ctx, stage):
    """Deregister an ALB route"""
    result = make_lifecycle(ctx).unregister(stage)
    click.echo(f"Rule deleted: {result.rule_deleted}")
    click.echo(f"Target group deleted: {result.target_group_deleted}")
    click.echo(f"Permission removed: {result.permission_removed}")


@cli.command()
@stage_option
@click.pass_context
@reports_errors
def status(ctx, stage):
    """Show whether a stage is bound and routed"""
    result = make_lifecycle(ctx).status(stage)
    click.echo(f"{result.identity.safe_name} ({result.route_path}): {result.state.value}")


if __name__ == "__main__":
    cli()
