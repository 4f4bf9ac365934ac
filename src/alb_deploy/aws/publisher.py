"""Publishing function code, versions and per-deployment aliases."""
import json
import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from botocore.exceptions import ClientError

from alb_deploy.aws.lookup import error_code, try_find, unwrap
from alb_deploy.errors import RoleNotReadyError
from alb_deploy.packaging import pack
from alb_deploy.utils.decorators import RetryPolicy, log_operation, retry_call

logger = logging.getLogger(__name__)

ROUTE_PATH_VARIABLE = "PATH_PREFIX"
LOG_POLICY_NAME = "CloudWatchAccess"

DEFAULT_LAMBDA_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Action": [
                "logs:CreateLogGroup",
                "logs:CreateLogStream",
                "logs:PutLogEvents",
            ],
            "Resource": "*",
        },
    ],
}

LAMBDA_TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Action": "sts:AssumeRole",
            "Effect": "Allow",
            "Principal": {
                "Service": "lambda.amazonaws.com",
            },
        },
    ],
}

# Lambda reports a role it cannot assume yet as an invalid parameter
ROLE_NOT_READY_CODE = "InvalidParameterValueException"
ROLE_NOT_READY_MESSAGE = "cannot be assumed"


@dataclass(frozen=True)
class PublishedFunction:
    function_name: str
    function_arn: str
    version: str
    alias_arn: Optional[str] = None


def is_role_not_ready(error: ClientError) -> bool:
    """Whether ``error`` is Lambda rejecting a role that has not propagated yet."""
    message = error.response.get('Error', {}).get('Message', '')
    return error_code(error) == ROLE_NOT_READY_CODE and ROLE_NOT_READY_MESSAGE in message


def qualified_arn(function_arn: str, qualifier: str) -> str:
    """Replace (or append) the qualifier segment of a function ARN."""
    parts = function_arn.split(":")
    # arn:aws:lambda:region:account:function:name[:qualifier]
    if len(parts) > 7:
        parts[7] = qualifier
        parts = parts[:8]
    else:
        parts.append(qualifier)
    return ":".join(parts)


class FunctionPublisher:
    """Creates functions and moves per-deployment aliases to new versions."""

    def __init__(self, lambda_client, iam_client, retry_policy: RetryPolicy = None,
                 runtime: str = "python3.11", timeout: int = 30, memory: int = 512,
                 handler_function: str = "handler",
                 packer: Callable[[str], bytes] = pack,
                 sleep: Callable[[float], None] = time.sleep):
        self.lambda_client = lambda_client
        self.iam_client = iam_client
        self.retry_policy = retry_policy or RetryPolicy()
        self.runtime = runtime
        self.timeout = timeout
        self.memory = memory
        self.handler_function = handler_function
        self.packer = packer
        self.sleep = sleep

    @log_operation("Creating execution role")
    def create_execution_role(self, function_name: str) -> str:
        """Create a role that only allows the function to write logs."""
        role_name = f"{function_name}-execution"
        logger.info(f"Creating role: {role_name}")
        role_response = self.iam_client.create_role(
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(LAMBDA_TRUST_POLICY),
            Description=f"Execution role for {function_name}",
        )

        logger.info("Updating policy")
        self.iam_client.put_role_policy(
            RoleName=role_name,
            PolicyName=LOG_POLICY_NAME,
            PolicyDocument=json.dumps(DEFAULT_LAMBDA_POLICY),
        )
        return role_response['Role']['Arn']

    @log_operation("Creating function")
    def create_function(self, function_name: str, bundle_dir: str, module: str) -> PublishedFunction:
        """Create the role and the first version of a function.

        Creation is retried while the new role propagates through IAM.

        Raises:
            RoleNotReadyError: If the role is still not assumable after the retry budget
        """
        role_arn = self.create_execution_role(function_name)
        bundle = self.packer(bundle_dir)

        def attempt():
            try:
                return self.lambda_client.create_function(
                    FunctionName=function_name,
                    Runtime=self.runtime,
                    Role=role_arn,
                    Handler=f"{module}.{self.handler_function}",
                    Code={'ZipFile': bundle},
                    Timeout=self.timeout,
                    MemorySize=self.memory,
                    Publish=True,
                )
            except ClientError as e:
                if is_role_not_ready(e):
                    raise RoleNotReadyError(f"Role {role_arn} cannot be assumed by Lambda yet: {e}") from e
                raise

        response = retry_call(attempt, self.retry_policy, exceptions=(RoleNotReadyError,),
                              sleep=self.sleep, logger_name=__name__)
        # Configuration updates are rejected while the function is still Pending
        self.lambda_client.get_waiter('function_active_v2').wait(FunctionName=function_name)
        logger.info(f"Created function {function_name} version {response.get('Version')}")
        return PublishedFunction(
            function_name=function_name,
            function_arn=response['FunctionArn'],
            version=response.get('Version', '$LATEST'),
        )

    @log_operation("Setting function configuration")
    def set_route_path(self, function_name: str, route_path: str) -> None:
        self.lambda_client.update_function_configuration(
            FunctionName=function_name,
            Environment={
                'Variables': {
                    ROUTE_PATH_VARIABLE: route_path,
                },
            },
        )
        # Code updates are rejected while the configuration update is in progress
        self.lambda_client.get_waiter('function_updated').wait(FunctionName=function_name)

    @log_operation("Publishing function version")
    def publish_version(self, function_name: str, bundle_dir: str) -> PublishedFunction:
        response = self.lambda_client.update_function_code(
            FunctionName=function_name,
            ZipFile=self.packer(bundle_dir),
            Publish=True,
        )
        logger.info(f"Version: {response['Version']}")
        return PublishedFunction(
            function_name=function_name,
            function_arn=response['FunctionArn'],
            version=response['Version'],
        )

    @log_operation("Pointing alias")
    def point_alias(self, function_name: str, alias_name: str, version: str) -> str:
        """Move ``alias_name`` to ``version``, creating the alias if it does not exist."""
        existing = unwrap(
            try_find(
                lambda: self.lambda_client.get_alias(FunctionName=function_name, Name=alias_name),
                not_found_codes={"ResourceNotFoundException"},
            ),
            f"alias {alias_name} of {function_name}",
        )

        if existing is not None:
            logger.info(f"Update alias {alias_name}: {existing.get('FunctionVersion')} -> {version}")
            response = self.lambda_client.update_alias(
                FunctionName=function_name,
                Name=alias_name,
                FunctionVersion=version,
            )
        else:
            logger.info(f"Create alias {alias_name} -> {version}")
            response = self.lambda_client.create_alias(
                FunctionName=function_name,
                Name=alias_name,
                FunctionVersion=version,
            )
        return response['AliasArn']

    def update_binding(self, function_name: str, bundle_dir: str,
                       alias_name: str, route_path: str) -> PublishedFunction:
        """Deploy path: set the route path, publish a version and point the alias at it."""
        self.set_route_path(function_name, route_path)
        published = self.publish_version(function_name, bundle_dir)
        alias_arn = self.point_alias(function_name, alias_name, published.version)
        return PublishedFunction(
            function_name=published.function_name,
            function_arn=published.function_arn,
            version=published.version,
            alias_arn=alias_arn,
        )
