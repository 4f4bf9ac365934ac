"""Removal of the rule, target group and permission of one deployment identity."""
import logging
from dataclasses import dataclass
from typing import Optional

from alb_deploy.aws.lookup import (
    Ambiguous, ExactlyOne, Found, NotFound, TransportFailure,
    match_unique, try_find,
)
from alb_deploy.aws.routing import RoutingRuleManager
from alb_deploy.errors import AmbiguousMatchError, RemoteLookupError
from alb_deploy.naming import DeploymentIdentity
from alb_deploy.utils.decorators import log_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TeardownPlan:
    """Everything teardown will delete, resolved before the first deletion."""
    target_group_arn: Optional[str]
    rule_arn: Optional[str]


@dataclass(frozen=True)
class TeardownResult:
    rule_deleted: bool
    target_group_deleted: bool
    permission_removed: bool


class TeardownCoordinator:
    """Deletes rule, then target group, then permission.

    A failure part way leaves the earlier deletions in place; there is no
    compensation.
    """

    def __init__(self, lambda_client, elbv2_client, routing: RoutingRuleManager = None):
        self.lambda_client = lambda_client
        self.elbv2_client = elbv2_client
        self.routing = routing or RoutingRuleManager(elbv2_client)

    def find_target_group(self, identity: DeploymentIdentity):
        lookup = try_find(
            lambda: self.elbv2_client.describe_target_groups(Names=[identity.safe_name]),
            not_found_codes={"TargetGroupNotFound"},
        )
        if isinstance(lookup, TransportFailure):
            raise RemoteLookupError(f"target group {identity.safe_name}", lookup.error)
        groups = lookup.value.get('TargetGroups', []) if isinstance(lookup, Found) else []
        return match_unique(groups, f"target group named {identity.safe_name}")

    @log_operation("Resolving resources to delete")
    def plan(self, load_balancer_name: str, identity: DeploymentIdentity) -> TeardownPlan:
        """Resolve balancer, listener, rules and target group.

        Raises:
            NotFoundError: If the balancer or its listener is missing
            AmbiguousMatchError: If the target group or rule match is not unique
        """
        load_balancer = self.routing.resolve_load_balancer(load_balancer_name)
        listener = self.routing.resolve_listener(load_balancer)
        rules = self.routing.list_rules(listener['ListenerArn'])

        group_match = self.find_target_group(identity)
        if isinstance(group_match, Ambiguous):
            raise AmbiguousMatchError(group_match.description, len(group_match.values))
        if isinstance(group_match, NotFound):
            logger.warning(f"Target group {identity.safe_name} not found; skipping rule and target group")
            return TeardownPlan(target_group_arn=None, rule_arn=None)

        target_group_arn = group_match.value['TargetGroupArn']
        rule_match = self.routing.find_rule(rules, target_group_arn)
        if isinstance(rule_match, ExactlyOne):
            rule_arn = rule_match.value['RuleArn']
        elif isinstance(rule_match, NotFound):
            logger.warning(f"No rule forwards to {target_group_arn}; skipping rule")
            rule_arn = None
        else:
            raise AmbiguousMatchError(rule_match.description, len(rule_match.values))

        return TeardownPlan(target_group_arn=target_group_arn, rule_arn=rule_arn)

    def unbind(self, function_name: str, load_balancer_name: str, identity: DeploymentIdentity) -> TeardownResult:
        plan = self.plan(load_balancer_name, identity)

        if plan.rule_arn:
            self.delete_rule(plan.rule_arn)
        if plan.target_group_arn:
            self.delete_target_group(plan.target_group_arn)
        permission_removed = self.remove_permission(function_name, identity)

        return TeardownResult(
            rule_deleted=plan.rule_arn is not None,
            target_group_deleted=plan.target_group_arn is not None,
            permission_removed=permission_removed,
        )

    @log_operation("Delete rule")
    def delete_rule(self, rule_arn: str) -> None:
        self.elbv2_client.delete_rule(RuleArn=rule_arn)

    @log_operation("Delete target group")
    def delete_target_group(self, target_group_arn: str) -> None:
        self.elbv2_client.delete_target_group(TargetGroupArn=target_group_arn)

    @log_operation("Delete lambda permissions")
    def remove_permission(self, function_name: str, identity: DeploymentIdentity) -> bool:
        lookup = try_find(
            lambda: self.lambda_client.remove_permission(
                FunctionName=function_name,
                StatementId=identity.statement_id,
                Qualifier=identity.safe_name,
            ),
            not_found_codes={"ResourceNotFoundException"},
        )
        if isinstance(lookup, TransportFailure):
            raise lookup.error
        if not isinstance(lookup, Found):
            logger.warning(f"Permission {identity.statement_id} not found; nothing to remove")
            return False
        return True
