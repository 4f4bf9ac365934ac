"""Interactive operator questions for init."""
import os
import logging
from typing import Callable, List

import click

from alb_deploy.aws.inventory import ResourceInventory
from alb_deploy.aws.provisioning import (
    LoadBalancerAnswers, validate_existing_load_balancer,
    validate_security_groups, validate_subnets,
)
from alb_deploy.errors import ValidationError
from alb_deploy.lifecycle import FunctionAnswers, validate_bundle_dir, validate_entry_module
from alb_deploy.naming import validate_path_template
from alb_deploy.project import ProjectManifest

logger = logging.getLogger(__name__)

DEFAULT_PATH_TEMPLATE = "/{service}/{stage}/{version}"


def split_ids(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def checked(validate: Callable, convert: Callable = lambda v: v):
    """Build a click value_proc that re-prompts on ValidationError."""
    def proc(value):
        converted = convert(value)
        try:
            validate(converted)
        except ValidationError as e:
            raise click.BadParameter(str(e))
        return converted
    return proc


class ClickPrompter:
    """Asks init questions on the terminal."""

    def __init__(self, entry_module_suffix: str = ".py"):
        self.entry_module_suffix = entry_module_suffix

    def ask_load_balancer(self, inventory: ResourceInventory) -> LoadBalancerAnswers:
        name = click.prompt(
            "Name of the loadbalancer you want to use",
            value_proc=checked(lambda v: validate_existing_load_balancer(inventory, v)),
        )
        if name in inventory.load_balancers:
            return LoadBalancerAnswers(load_balancer_name=name)

        if not click.confirm("This load balancer does not exist. Create it?", default=True):
            return LoadBalancerAnswers(load_balancer_name=name, create_new=False)

        vpc_id = inventory.default_vpc_id
        click.echo("Available subnets:")
        for subnet in inventory.subnets_in_vpc(vpc_id):
            click.echo(f"  {subnet.subnet_id} - {subnet.availability_zone}")
        subnets = click.prompt(
            "Subnets for the ALB (comma separated). May not be from the same AZ. Select at least 2",
            value_proc=checked(lambda v: validate_subnets(inventory, v), split_ids),
        )

        click.echo("Available security groups:")
        for group in inventory.security_groups_in_vpc(vpc_id):
            click.echo(f"  {group.group_id} - {group.group_name}")
        security_groups = click.prompt(
            "Security Groups for the ALB (comma separated). Select at least one",
            value_proc=checked(lambda v: validate_security_groups(inventory, v), split_ids),
        )

        return LoadBalancerAnswers(
            load_balancer_name=name,
            create_new=True,
            subnets=subnets,
            security_groups=security_groups,
        )

    def ask_function(self, manifest: ProjectManifest, project_dir: str) -> FunctionAnswers:
        service_name = click.prompt("Service name. This can optionally be used in the path",
                                    default=manifest.name)
        path_template = click.prompt(
            "Path template for routes. ex: /{service}/{stage}/{version}",
            default=DEFAULT_PATH_TEMPLATE,
            value_proc=checked(validate_path_template),
        )
        function_name = click.prompt("Lambda function name", default=manifest.name)
        bundle_dir = click.prompt(
            "Directory containing lambda entrypoint",
            default=os.path.dirname(manifest.main) if manifest.main else None,
            value_proc=checked(lambda v: validate_bundle_dir(project_dir, v)),
        )
        entry_module = click.prompt(
            "File containing handler",
            default=os.path.basename(manifest.main) if manifest.main else None,
            value_proc=checked(
                lambda v: validate_entry_module(project_dir, bundle_dir, v, self.entry_module_suffix)
            ),
        )
        create_function = click.confirm("Create and upload now", default=True)

        return FunctionAnswers(
            service_name=service_name,
            path_template=path_template,
            function_name=function_name,
            bundle_dir=bundle_dir,
            entry_module=entry_module,
            create_function=create_function,
        )
