import json

import pytest
from botocore.exceptions import ClientError

from alb_deploy.aws.publisher import FunctionPublisher, is_role_not_ready, qualified_arn, ROUTE_PATH_VARIABLE
from alb_deploy.errors import RemoteLookupError, RoleNotReadyError
from alb_deploy.utils.decorators import RetryPolicy
from tests.consts import TEST_FUNCTION
from tests.fixtures.fake_aws import FakeAWS, client_error

ROLE_NOT_READY = client_error(
    'InvalidParameterValueException', 'The role defined for the function cannot be assumed by Lambda.',
    'CreateFunction',
)


def make_publisher(aws, attempts=3, sleeps=None):
    return FunctionPublisher(
        aws.lambda_client,
        aws.iam,
        retry_policy=RetryPolicy(max_attempts=attempts, delay=1.0, backoff=2.0, max_delay=1.5),
        packer=lambda directory: b"zip:" + directory.encode(),
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


def test_qualified_arn_replaces_version():
    arn = "arn:aws:lambda:us-east-1:123456789012:function:orders-api:7"
    assert qualified_arn(arn, "alias") == "arn:aws:lambda:us-east-1:123456789012:function:orders-api:alias"


def test_qualified_arn_appends_to_unqualified():
    arn = "arn:aws:lambda:us-east-1:123456789012:function:orders-api"
    assert qualified_arn(arn, "alias") == arn + ":alias"


def test_create_function_grants_log_only_role():
    aws = FakeAWS()
    published = make_publisher(aws).create_function(TEST_FUNCTION, "/bundle", "handler")

    assert published.version == "1"
    role = aws.iam.roles[f"{TEST_FUNCTION}-execution"]
    policy = aws.iam.role_policies[(role['RoleName'], 'CloudWatchAccess')]
    assert policy['Statement'][0]['Action'] == ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"]
    trust = json.loads(aws.iam.called('create_role')[0]['AssumeRolePolicyDocument'])
    assert trust['Statement'][0]['Principal'] == {'Service': 'lambda.amazonaws.com'}

    created = aws.lambda_client.called('create_function')[0]
    assert created['Handler'] == "handler.handler"
    assert created['Role'] == role['Arn']
    assert created['Code'] == {'ZipFile': b"zip:/bundle"}


def test_create_function_retries_until_role_propagates():
    aws = FakeAWS()
    aws.lambda_client.fail('create_function', ROLE_NOT_READY, times=2)
    sleeps = []

    published = make_publisher(aws, attempts=5, sleeps=sleeps).create_function(TEST_FUNCTION, "/bundle", "handler")

    assert published.function_name == TEST_FUNCTION
    assert sleeps == [1.0, 1.5]
    assert len(aws.iam.called('create_role')) == 1


def test_create_function_gives_up_with_role_not_ready():
    aws = FakeAWS()
    aws.lambda_client.fail('create_function', ROLE_NOT_READY)

    with pytest.raises(RoleNotReadyError):
        make_publisher(aws, attempts=3).create_function(TEST_FUNCTION, "/bundle", "handler")
    assert TEST_FUNCTION not in aws.lambda_client.functions


def test_create_function_other_errors_are_not_retried():
    aws = FakeAWS()
    aws.lambda_client.fail('create_function', client_error('AccessDeniedException', 'no', 'CreateFunction'))
    sleeps = []

    with pytest.raises(ClientError):
        make_publisher(aws, sleeps=sleeps).create_function(TEST_FUNCTION, "/bundle", "handler")
    assert sleeps == []


def test_update_binding_creates_alias_when_absent():
    aws = FakeAWS()
    aws.lambda_client.seed_function(TEST_FUNCTION)

    published = make_publisher(aws).update_binding(TEST_FUNCTION, "/bundle", "1-0-0-dev-orders", "/orders/dev/1.0.0")

    function = aws.lambda_client.functions[TEST_FUNCTION]
    assert function['config']['Environment'] == {'Variables': {ROUTE_PATH_VARIABLE: "/orders/dev/1.0.0"}}
    assert published.version == "2"
    assert function['aliases']["1-0-0-dev-orders"]['FunctionVersion'] == "2"
    assert published.alias_arn.endswith(f":function:{TEST_FUNCTION}:1-0-0-dev-orders")
    assert aws.lambda_client.called('update_alias') == []
    assert aws.lambda_client.waiter.waits == [{'FunctionName': TEST_FUNCTION}]


def test_update_binding_moves_existing_alias():
    aws = FakeAWS()
    aws.lambda_client.seed_function(TEST_FUNCTION, versions=3)
    aws.lambda_client.seed_alias(TEST_FUNCTION, "1-0-0-dev-orders", "3")

    published = make_publisher(aws).update_binding(TEST_FUNCTION, "/bundle", "1-0-0-dev-orders", "/orders/dev/1.0.0")

    assert published.version == "4"
    assert aws.lambda_client.functions[TEST_FUNCTION]['aliases']["1-0-0-dev-orders"]['FunctionVersion'] == "4"
    assert aws.lambda_client.called('create_alias') == []


def test_update_binding_aborts_when_alias_lookup_fails():
    aws = FakeAWS()
    aws.lambda_client.seed_function(TEST_FUNCTION)
    aws.lambda_client.fail('get_alias', client_error('ServiceException', 'boom', 'GetAlias'))

    with pytest.raises(RemoteLookupError):
        make_publisher(aws).update_binding(TEST_FUNCTION, "/bundle", "1-0-0-dev-orders", "/orders/dev/1.0.0")
    assert aws.lambda_client.called('create_alias') == []
    assert aws.lambda_client.called('update_alias') == []


def test_create_function_waits_until_active():
    aws = FakeAWS()
    make_publisher(aws).create_function(TEST_FUNCTION, "/bundle", "handler")

    assert aws.lambda_client.waiter.names == ['function_active_v2']
    assert aws.lambda_client.waiter.waits == [{'FunctionName': TEST_FUNCTION}]


def test_invalid_parameter_unrelated_to_role_is_not_retried():
    aws = FakeAWS()
    aws.lambda_client.fail('create_function', client_error(
        'InvalidParameterValueException', 'The runtime parameter of python2.7 is no longer supported',
        'CreateFunction',
    ))
    sleeps = []

    with pytest.raises(ClientError) as excinfo:
        make_publisher(aws, attempts=5, sleeps=sleeps).create_function(TEST_FUNCTION, "/bundle", "handler")

    assert not isinstance(excinfo.value, RoleNotReadyError)
    assert sleeps == []
    assert len(aws.lambda_client.called('create_function')) == 0


def test_is_role_not_ready():
    assert is_role_not_ready(ROLE_NOT_READY)
    assert not is_role_not_ready(client_error('InvalidParameterValueException', 'Bad handler', 'CreateFunction'))
    assert not is_role_not_ready(client_error('AccessDeniedException', 'cannot be assumed', 'CreateFunction'))


def test_publish_and_alias_against_moto(aws_clients, project_dir, test_settings):
    publisher = FunctionPublisher(aws_clients.lambda_client, aws_clients.iam,
                                  retry_policy=test_settings.role_retry_policy)
    bundle = str(project_dir / "app")
    created = publisher.create_function(TEST_FUNCTION, bundle, "handler")

    first = publisher.update_binding(TEST_FUNCTION, bundle, "1-0-0-dev-orders", "/orders/dev/1.0.0")
    second = publisher.update_binding(TEST_FUNCTION, bundle, "1-0-0-dev-orders", "/orders/dev/1.0.0")

    assert int(first.version) == int(created.version) + 1
    assert int(second.version) == int(first.version) + 1
    alias = aws_clients.lambda_client.get_alias(FunctionName=TEST_FUNCTION, Name="1-0-0-dev-orders")
    assert alias['FunctionVersion'] == second.version
    assert second.alias_arn == first.alias_arn == alias['AliasArn']
    config = aws_clients.lambda_client.get_function_configuration(FunctionName=TEST_FUNCTION)
    assert config['Environment']['Variables'] == {ROUTE_PATH_VARIABLE: "/orders/dev/1.0.0"}
    assert config['Handler'] == "handler.handler"
