"""Read-only snapshot of networking and load balancer resources in a region."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from alb_deploy.errors import InventoryFetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadBalancerInfo:
    name: str
    arn: str
    type: str
    dns_name: str = ""
    scheme: str = ""
    vpc_id: Optional[str] = None

    @classmethod
    def from_response(cls, lb: dict) -> 'LoadBalancerInfo':
        return cls(
            name=lb['LoadBalancerName'],
            arn=lb['LoadBalancerArn'],
            type=lb.get('Type', ''),
            dns_name=lb.get('DNSName', ''),
            scheme=lb.get('Scheme', ''),
            vpc_id=lb.get('VpcId'),
        )


@dataclass(frozen=True)
class SubnetInfo:
    subnet_id: str
    vpc_id: str
    availability_zone: str


@dataclass(frozen=True)
class SecurityGroupInfo:
    group_id: str
    group_name: str
    vpc_id: Optional[str]


@dataclass(frozen=True)
class VpcInfo:
    vpc_id: str
    is_default: bool


@dataclass
class ResourceInventory:
    """Indexed view of a region's load balancers, subnets, security groups and VPCs."""
    region: str
    load_balancers: Dict[str, LoadBalancerInfo] = field(default_factory=dict)
    subnets: Dict[str, SubnetInfo] = field(default_factory=dict)
    security_groups: Dict[str, SecurityGroupInfo] = field(default_factory=dict)
    vpcs: Dict[str, VpcInfo] = field(default_factory=dict)

    @property
    def default_vpc_id(self) -> Optional[str]:
        for vpc in self.vpcs.values():
            if vpc.is_default:
                return vpc.vpc_id
        return None

    def subnets_in_vpc(self, vpc_id: Optional[str]) -> List[SubnetInfo]:
        return [s for s in self.subnets.values() if s.vpc_id == vpc_id]

    def security_groups_in_vpc(self, vpc_id: Optional[str]) -> List[SecurityGroupInfo]:
        return [g for g in self.security_groups.values() if g.vpc_id == vpc_id]


class InventoryLoader:
    """Builds a ResourceInventory from EC2 and ELBv2 describe calls. No retries."""

    def __init__(self, ec2_client, elbv2_client, region: str):
        self.ec2_client = ec2_client
        self.elbv2_client = elbv2_client
        self.region = region

    def _paginate(self, client, operation: str, result_key: str) -> List[dict]:
        items = []
        for page in client.get_paginator(operation).paginate():
            items.extend(page.get(result_key, []))
        return items

    def fetch(self) -> ResourceInventory:
        logger.info(f"Loading current state for region {self.region}")
        inventory = ResourceInventory(region=self.region)

        try:
            for lb in self._paginate(self.elbv2_client, 'describe_load_balancers', 'LoadBalancers'):
                inventory.load_balancers[lb['LoadBalancerName']] = LoadBalancerInfo.from_response(lb)

            for subnet in self._paginate(self.ec2_client, 'describe_subnets', 'Subnets'):
                inventory.subnets[subnet['SubnetId']] = SubnetInfo(
                    subnet_id=subnet['SubnetId'],
                    vpc_id=subnet['VpcId'],
                    availability_zone=subnet['AvailabilityZone'],
                )

            for sg in self._paginate(self.ec2_client, 'describe_security_groups', 'SecurityGroups'):
                inventory.security_groups[sg['GroupId']] = SecurityGroupInfo(
                    group_id=sg['GroupId'],
                    group_name=sg.get('GroupName', ''),
                    vpc_id=sg.get('VpcId'),
                )

            for vpc in self._paginate(self.ec2_client, 'describe_vpcs', 'Vpcs'):
                inventory.vpcs[vpc['VpcId']] = VpcInfo(
                    vpc_id=vpc['VpcId'],
                    is_default=bool(vpc.get('IsDefault')),
                )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to load inventory for {self.region}: {e}")
            raise InventoryFetchError(f"Could not load resources for region {self.region}: {e}") from e

        logger.info(
            f"Found {len(inventory.load_balancers)} load balancers, {len(inventory.subnets)} subnets, "
            f"{len(inventory.security_groups)} security groups, {len(inventory.vpcs)} VPCs"
        )
        return inventory
