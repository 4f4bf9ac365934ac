"""Listener rule priority allocation and path rule installation."""
import logging
from dataclasses import dataclass
from typing import Iterable, List

from alb_deploy.aws.lookup import Found, NotFound, TransportFailure, match_unique, require_one, try_find
from alb_deploy.errors import NotFoundError, RemoteLookupError
from alb_deploy.utils.decorators import log_operation

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = "default"


@dataclass(frozen=True)
class RouteResult:
    rule_arn: str
    priority: int
    path_pattern: str
    url: str


def next_priority(rules: Iterable[dict]) -> int:
    """One more than the highest numeric priority; the default rule is ignored."""
    current = 0
    for rule in rules:
        priority = rule.get('Priority')
        if priority is None or priority == DEFAULT_PRIORITY:
            continue
        current = max(current, int(priority))
    return current + 1


def forwards_to(rule: dict, target_group_arn: str) -> bool:
    """Whether any action of ``rule`` forwards to ``target_group_arn``."""
    for action in rule.get('Actions', []):
        if action.get('TargetGroupArn') == target_group_arn:
            return True
        forward = action.get('ForwardConfig') or {}
        for group in forward.get('TargetGroups', []):
            if group.get('TargetGroupArn') == target_group_arn:
                return True
    return False


class RoutingRuleManager:
    """Reads a balancer's first listener and installs path-pattern rules on it.

    Priorities are read then written without locking, so simultaneous updates
    against the same listener can pick the same priority.
    """

    def __init__(self, elbv2_client):
        self.elbv2_client = elbv2_client

    @log_operation("Retrieve load balancer")
    def resolve_load_balancer(self, name: str) -> dict:
        lookup = try_find(
            lambda: self.elbv2_client.describe_load_balancers(Names=[name]),
            not_found_codes={"LoadBalancerNotFound"},
        )
        if isinstance(lookup, TransportFailure):
            raise RemoteLookupError(f"load balancer {name}", lookup.error)

        load_balancers = lookup.value.get('LoadBalancers', []) if isinstance(lookup, Found) else []
        return require_one(match_unique(load_balancers, f"load balancer named {name}"))

    @log_operation("Retrieve listener")
    def resolve_listener(self, load_balancer: dict) -> dict:
        response = self.elbv2_client.describe_listeners(LoadBalancerArn=load_balancer['LoadBalancerArn'])
        listeners = response.get('Listeners', [])
        if not listeners:
            raise NotFoundError(f"Load balancer {load_balancer['LoadBalancerName']} has no listener")
        return listeners[0]

    @log_operation("Retrieve rules")
    def list_rules(self, listener_arn: str) -> List[dict]:
        rules = []
        kwargs = {'ListenerArn': listener_arn}
        while True:
            response = self.elbv2_client.describe_rules(**kwargs)
            rules.extend(response.get('Rules', []))
            marker = response.get('NextMarker')
            if not marker:
                return rules
            kwargs['Marker'] = marker

    def find_rule(self, rules: Iterable[dict], target_group_arn: str):
        """Match rules forwarding to a target group (NotFound, ExactlyOne or Ambiguous)."""
        return match_unique(
            (rule for rule in rules if forwards_to(rule, target_group_arn)),
            f"rule forwarding to {target_group_arn}",
        )

    def has_rule_for(self, load_balancer_name: str, target_group_arn: str) -> bool:
        load_balancer = self.resolve_load_balancer(load_balancer_name)
        listener = self.resolve_listener(load_balancer)
        match = self.find_rule(self.list_rules(listener['ListenerArn']), target_group_arn)
        return not isinstance(match, NotFound)

    def install_rule(self, load_balancer_name: str, target_group_arn: str, path: str) -> RouteResult:
        """Forward ``path*`` to the target group at the next free priority."""
        load_balancer = self.resolve_load_balancer(load_balancer_name)
        listener = self.resolve_listener(load_balancer)
        rules = self.list_rules(listener['ListenerArn'])

        priority = next_priority(rules)
        logger.info(f"Current priority is: {priority - 1}")
        path_pattern = path + "*"
        rule_arn = self._create_rule(listener['ListenerArn'], target_group_arn, path_pattern, priority)

        url = f"{listener['Protocol'].lower()}://{load_balancer['DNSName']}{path}"
        logger.info(f"Accessible at: {url}")
        return RouteResult(rule_arn=rule_arn, priority=priority, path_pattern=path_pattern, url=url)

    @log_operation("Create rule")
    def _create_rule(self, listener_arn: str, target_group_arn: str, path_pattern: str, priority: int) -> str:
        response = self.elbv2_client.create_rule(
            ListenerArn=listener_arn,
            Conditions=[
                {
                    'Field': 'path-pattern',
                    'Values': [path_pattern],
                },
            ],
            Actions=[
                {
                    'Type': 'forward',
                    'TargetGroupArn': target_group_arn,
                },
            ],
            Priority=priority,
        )
        return response['Rules'][0]['RuleArn']
