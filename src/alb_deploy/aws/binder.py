"""Invoke permission and target group reconciliation for one deployment identity.

The permission statement is the only signal that a binding exists. When it is
present nothing is created; when it is absent the target group, the permission
and the alias target are created in that order.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import ClientError

from alb_deploy.aws.lookup import Absent, Found, error_code, try_find, unwrap
from alb_deploy.aws.publisher import qualified_arn
from alb_deploy.errors import StaleBindingError
from alb_deploy.naming import DeploymentIdentity
from alb_deploy.utils.decorators import log_operation

logger = logging.getLogger(__name__)

ELB_PRINCIPAL = "elasticloadbalancing.amazonaws.com"
INVOKE_ACTION = "lambda:InvokeFunction"


@dataclass(frozen=True)
class BindingResult:
    already_bound: bool
    target_group_arn: Optional[str] = None
    target_id: Optional[str] = None


class PermissionTargetBinder:
    """Ensures exactly one invoke permission and one target group per identity."""

    def __init__(self, lambda_client, elbv2_client):
        self.lambda_client = lambda_client
        self.elbv2_client = elbv2_client

    def find_permission(self, function_name: str, identity: DeploymentIdentity):
        """Look up the alias policy for the identity's statement.

        Returns:
            Found(statement), Absent() or TransportFailure(error)
        """
        lookup = try_find(
            lambda: self.lambda_client.get_policy(FunctionName=function_name, Qualifier=identity.safe_name),
            not_found_codes={"ResourceNotFoundException"},
        )
        if not isinstance(lookup, Found):
            return lookup

        policy = json.loads(lookup.value['Policy'])
        for statement in policy.get('Statement', []):
            if statement.get('Sid') == identity.statement_id:
                return Found(statement)
        return Absent()

    @log_operation("Checking current permissions")
    def is_bound(self, function_name: str, identity: DeploymentIdentity) -> bool:
        statement = unwrap(
            self.find_permission(function_name, identity),
            f"invoke permission {identity.statement_id}",
        )
        return statement is not None

    def bind(self, function_name: str, function_arn: str, identity: DeploymentIdentity) -> BindingResult:
        """Create the target group, permission and target unless already bound.

        Raises:
            RemoteLookupError: If the permission policy could not be read
            StaleBindingError: If the target group exists without a permission
        """
        if self.is_bound(function_name, identity):
            logger.info(f"Binding {identity.safe_name} already exists; only the alias version changes")
            return BindingResult(already_bound=True)

        target_group_arn = self.create_target_group(identity)
        self.add_permission(function_name, identity, target_group_arn)

        target_id = qualified_arn(function_arn, identity.safe_name)
        self.register_target(target_group_arn, target_id)
        return BindingResult(already_bound=False, target_group_arn=target_group_arn, target_id=target_id)

    @log_operation("Creating target group")
    def create_target_group(self, identity: DeploymentIdentity) -> str:
        # CreateTargetGroup returns an identical existing group instead of failing
        existing = unwrap(
            try_find(
                lambda: self.elbv2_client.describe_target_groups(Names=[identity.safe_name]),
                not_found_codes={"TargetGroupNotFound"},
            ),
            f"target group {identity.safe_name}",
        )
        if existing is not None and existing.get('TargetGroups'):
            raise StaleBindingError(
                f"Target group {identity.safe_name} already exists without permission "
                f"{identity.statement_id}; remove it or run deregister first"
            )

        try:
            response = self.elbv2_client.create_target_group(
                Name=identity.safe_name,
                TargetType="lambda",
            )
        except ClientError as e:
            if error_code(e) == "DuplicateTargetGroupName":
                raise StaleBindingError(f"Target group {identity.safe_name} already exists") from e
            raise

        target_group_arn = response['TargetGroups'][0]['TargetGroupArn']
        logger.info(f"Created target group: {target_group_arn}")
        return target_group_arn

    @log_operation("Adding invoke permission")
    def add_permission(self, function_name: str, identity: DeploymentIdentity, target_group_arn: str) -> None:
        self.lambda_client.add_permission(
            FunctionName=function_name,
            StatementId=identity.statement_id,
            Action=INVOKE_ACTION,
            Principal=ELB_PRINCIPAL,
            SourceArn=target_group_arn,
            Qualifier=identity.safe_name,
        )

    @log_operation("Registering target")
    def register_target(self, target_group_arn: str, target_id: str) -> None:
        logger.info(f"Register target: {target_id}")
        self.elbv2_client.register_targets(
            TargetGroupArn=target_group_arn,
            Targets=[{'Id': target_id}],
        )
