"""Decide between reusing a load balancer and creating one with its listener."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from alb_deploy.aws.inventory import LoadBalancerInfo, ResourceInventory
from alb_deploy.errors import ValidationError
from alb_deploy.utils.decorators import log_operation

logger = logging.getLogger(__name__)

APPLICATION_TYPE = "application"
MIN_SUBNETS = 2
MIN_SECURITY_GROUPS = 1


@dataclass
class LoadBalancerAnswers:
    """Operator answers for the load balancer questions.

    ``create_new`` is None when the named balancer already exists.
    """
    load_balancer_name: str
    create_new: Optional[bool] = None
    subnets: List[str] = field(default_factory=list)
    security_groups: List[str] = field(default_factory=list)


def validate_existing_load_balancer(inventory: ResourceInventory, name: str) -> None:
    """An existing balancer can only be reused if it is an ALB."""
    info = inventory.load_balancers.get(name)
    if info is not None and info.type != APPLICATION_TYPE:
        raise ValidationError(f"Existing load balancer {name} must be an ALB, not {info.type!r}")


def validate_subnets(inventory: ResourceInventory, subnet_ids: List[str]) -> None:
    """At least two known subnets, no two in the same availability zone."""
    if len(subnet_ids) < MIN_SUBNETS:
        raise ValidationError(f"Must select at least {MIN_SUBNETS} subnets")

    seen_zones = set()
    for subnet_id in subnet_ids:
        subnet = inventory.subnets.get(subnet_id)
        if subnet is None:
            raise ValidationError(f"Unknown subnet: {subnet_id}")
        if subnet.availability_zone in seen_zones:
            raise ValidationError(f"Only one subnet per AZ ({subnet.availability_zone} selected twice)")
        seen_zones.add(subnet.availability_zone)


def validate_security_groups(inventory: ResourceInventory, group_ids: List[str]) -> None:
    if len(group_ids) < MIN_SECURITY_GROUPS:
        raise ValidationError(f"Must select at least {MIN_SECURITY_GROUPS} security group")
    for group_id in group_ids:
        if group_id not in inventory.security_groups:
            raise ValidationError(f"Unknown security group: {group_id}")


class ProvisioningSelector:
    """Resolves the load balancer to bind to, creating it when asked."""

    def __init__(self, elbv2_client, inventory: ResourceInventory,
                 listener_port: int = 80, listener_protocol: str = "HTTP"):
        self.elbv2_client = elbv2_client
        self.inventory = inventory
        self.listener_port = listener_port
        self.listener_protocol = listener_protocol

    def resolve(self, answers: LoadBalancerAnswers) -> Optional[LoadBalancerInfo]:
        """Return the balancer to use, or None if the operator declined creating it."""
        existing = self.inventory.load_balancers.get(answers.load_balancer_name)
        if existing is not None:
            validate_existing_load_balancer(self.inventory, answers.load_balancer_name)
            logger.info(f"Using existing load balancer: {existing.name}")
            return existing

        if not answers.create_new:
            logger.info(f"Load balancer {answers.load_balancer_name} does not exist and was not created")
            return None

        validate_subnets(self.inventory, answers.subnets)
        validate_security_groups(self.inventory, answers.security_groups)

        load_balancer = self._create_load_balancer(answers)
        self._create_default_listener(load_balancer)
        return load_balancer

    @log_operation("Creating load balancer")
    def _create_load_balancer(self, answers: LoadBalancerAnswers) -> LoadBalancerInfo:
        response = self.elbv2_client.create_load_balancer(
            Name=answers.load_balancer_name,
            Subnets=answers.subnets,
            SecurityGroups=answers.security_groups,
            Type=APPLICATION_TYPE,
            IpAddressType="ipv4",
            Scheme="internet-facing",
        )
        load_balancer = LoadBalancerInfo.from_response(response['LoadBalancers'][0])
        self.inventory.load_balancers[load_balancer.name] = load_balancer
        logger.info(f"Created load balancer: {load_balancer.name} ({load_balancer.dns_name})")
        return load_balancer

    @log_operation("Creating default listener")
    def _create_default_listener(self, load_balancer: LoadBalancerInfo) -> str:
        # Unmatched paths fall through to a fixed 404
        response = self.elbv2_client.create_listener(
            LoadBalancerArn=load_balancer.arn,
            Protocol=self.listener_protocol,
            Port=self.listener_port,
            DefaultActions=[
                {
                    'Type': 'fixed-response',
                    'FixedResponseConfig': {
                        'StatusCode': '404',
                    },
                },
            ],
        )
        listener_arn = response['Listeners'][0]['ListenerArn']
        logger.info(f"Created {self.listener_protocol} listener on port {self.listener_port}")
        return listener_arn
