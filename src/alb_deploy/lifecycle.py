"""init / update / unregister / status orchestration for a project's binding."""
import os
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from alb_deploy.aws.binder import PermissionTargetBinder
from alb_deploy.aws.inventory import InventoryLoader
from alb_deploy.aws.lookup import Ambiguous, ExactlyOne, unwrap
from alb_deploy.aws.provisioning import ProvisioningSelector
from alb_deploy.aws.publisher import FunctionPublisher
from alb_deploy.aws.routing import RouteResult, RoutingRuleManager
from alb_deploy.aws.teardown import TeardownCoordinator, TeardownResult
from alb_deploy.config.binding import BINDING_CONFIG_KEY, BindingConfig, FunctionConfig
from alb_deploy.config.settings import Settings, get_settings
from alb_deploy.config.store import ConfigStore
from alb_deploy.errors import AmbiguousMatchError, ConfigError, ValidationError
from alb_deploy.naming import DeploymentIdentity, render, validate_path_template, validate_route_path
from alb_deploy.project import ProjectManifest

logger = logging.getLogger(__name__)


class BindingState(str, Enum):
    UNBOUND = "unbound"
    BOUND_UNROUTED = "bound-unrouted"
    ROUTED = "routed"


@dataclass
class FunctionAnswers:
    """Operator answers describing the function to bind."""
    service_name: str
    path_template: str
    function_name: str
    bundle_dir: str
    entry_module: str
    create_function: bool = True


@dataclass(frozen=True)
class UpdateResult:
    identity: DeploymentIdentity
    route_path: str
    version: str
    alias_arn: Optional[str]
    already_bound: bool
    rule: Optional[RouteResult] = None


@dataclass(frozen=True)
class BindingStatus:
    identity: DeploymentIdentity
    route_path: str
    state: BindingState


def resolve_bundle_dir(project_dir: str, bundle_dir: str) -> str:
    """Relative bundle directories are taken from the project directory."""
    if os.path.isabs(bundle_dir):
        return bundle_dir
    return os.path.join(project_dir, bundle_dir)


def validate_bundle_dir(project_dir: str, bundle_dir: str) -> str:
    path = resolve_bundle_dir(project_dir, bundle_dir)
    if not os.path.exists(path):
        raise ValidationError(f"Bundle directory must exist: {bundle_dir}")
    if not os.path.isdir(path):
        raise ValidationError(f"Must be a directory: {bundle_dir}")
    return bundle_dir


def validate_entry_module(project_dir: str, bundle_dir: str, entry_module: str, suffix: str = ".py") -> str:
    path = os.path.join(resolve_bundle_dir(project_dir, bundle_dir), entry_module)
    if not os.path.isfile(path):
        raise ValidationError(f"Entry module must exist: {path}")
    if Path(entry_module).suffix != suffix:
        raise ValidationError(f"Entry module must be a {suffix} file")
    return entry_module


class BindingLifecycle:
    """Runs the binding commands for one project directory.

    ``clients`` exposes ``ec2``, ``elbv2``, ``iam``, ``lambda_client`` and
    ``region``; ``prompter`` is only needed by ``init``.
    """

    def __init__(self, project_dir: str, clients, prompter=None,
                 store: ConfigStore = None, settings: Settings = None,
                 manifest: ProjectManifest = None):
        self.project_dir = project_dir
        self.clients = clients
        self.prompter = prompter
        self.store = store or ConfigStore()
        self.settings = settings or get_settings()
        self._manifest = manifest

    @property
    def manifest(self) -> ProjectManifest:
        if self._manifest is None:
            self._manifest = ProjectManifest.load(self.project_dir)
        return self._manifest

    def publisher(self) -> FunctionPublisher:
        return FunctionPublisher(
            self.clients.lambda_client,
            self.clients.iam,
            retry_policy=self.settings.role_retry_policy,
            runtime=self.settings.lambda_runtime,
            timeout=self.settings.lambda_timeout,
            memory=self.settings.lambda_memory,
            handler_function=self.settings.handler_function,
        )

    def load_config(self) -> BindingConfig:
        raw = self.store.get(BINDING_CONFIG_KEY, self.project_dir)
        if raw is None:
            raise ConfigError("Missing alb configuration; run init first")
        try:
            config = BindingConfig.model_validate(raw)
        except ModelValidationError as e:
            raise ConfigError(f"Invalid alb configuration: {e}") from e

        if config.region != self.clients.region:
            logger.warning(f"Binding was created in {config.region} but commands target {self.clients.region}")
        return config

    def identity(self, config: BindingConfig, stage: str) -> DeploymentIdentity:
        return DeploymentIdentity.derive(self.manifest.version, stage, config.service_name)

    def route_path(self, config: BindingConfig, stage: str) -> str:
        path = render(config.path_template, {
            'service': config.service_name,
            'version': self.manifest.version,
            'stage': stage,
        })
        return validate_route_path(path)

    def init(self) -> Optional[BindingConfig]:
        """Choose or create the load balancer, optionally create the function, save the binding."""
        if self.store.get(BINDING_CONFIG_KEY, self.project_dir) is not None:
            raise ConfigError("Config already contains ALB section")
        if self.prompter is None:
            raise ConfigError("init needs a prompter for operator answers")

        inventory = InventoryLoader(self.clients.ec2, self.clients.elbv2, self.clients.region).fetch()
        selector = ProvisioningSelector(
            self.clients.elbv2,
            inventory,
            listener_port=self.settings.listener_port,
            listener_protocol=self.settings.listener_protocol,
        )
        load_balancer = selector.resolve(self.prompter.ask_load_balancer(inventory))
        if load_balancer is None:
            return None

        answers = self.prompter.ask_function(self.manifest, self.project_dir)
        validate_path_template(answers.path_template)
        validate_bundle_dir(self.project_dir, answers.bundle_dir)
        validate_entry_module(self.project_dir, answers.bundle_dir, answers.entry_module,
                              self.settings.entry_module_suffix)

        module = Path(answers.entry_module).stem
        if answers.create_function:
            self.publisher().create_function(
                answers.function_name,
                resolve_bundle_dir(self.project_dir, answers.bundle_dir),
                module,
            )

        config = BindingConfig(
            service_name=answers.service_name,
            path_template=answers.path_template,
            load_balancer=load_balancer.name,
            region=self.clients.region,
            function=FunctionConfig(
                role="",
                name=answers.function_name,
                module=module,
                dir=answers.bundle_dir,
            ),
        )

        logger.info("Saving config")
        self.store.set(BINDING_CONFIG_KEY, config.to_dict(), self.project_dir)
        logger.info("Done")
        return config

    def update(self, stage: str) -> UpdateResult:
        """Publish a version for ``stage`` and bind/route it if not yet bound."""
        config = self.load_config()
        identity = self.identity(config, stage)
        route_path = self.route_path(config, stage)
        function_name = config.function.name
        logger.info(f"Updating {identity.safe_name} at {route_path}")

        published = self.publisher().update_binding(
            function_name,
            resolve_bundle_dir(self.project_dir, config.function.dir),
            identity.safe_name,
            route_path,
        )

        binding = PermissionTargetBinder(self.clients.lambda_client, self.clients.elbv2).bind(
            function_name, published.function_arn, identity
        )

        rule = None
        if not binding.already_bound:
            rule = RoutingRuleManager(self.clients.elbv2).install_rule(
                config.load_balancer, binding.target_group_arn, route_path
            )

        logger.info("Done")
        return UpdateResult(
            identity=identity,
            route_path=route_path,
            version=published.version,
            alias_arn=published.alias_arn,
            already_bound=binding.already_bound,
            rule=rule,
        )

    def unregister(self, stage: str) -> TeardownResult:
        """Remove the rule, target group and permission for ``stage``."""
        config = self.load_config()
        identity = self.identity(config, stage)
        logger.info(f"Deregistering {identity.safe_name}")

        result = TeardownCoordinator(self.clients.lambda_client, self.clients.elbv2).unbind(
            config.function.name, config.load_balancer, identity
        )
        logger.info("Done")
        return result

    def status(self, stage: str) -> BindingStatus:
        """Read-only view of where ``stage`` is in Unbound -> BoundUnrouted -> Routed."""
        config = self.load_config()
        identity = self.identity(config, stage)
        route_path = self.route_path(config, stage)

        binder = PermissionTargetBinder(self.clients.lambda_client, self.clients.elbv2)
        statement = unwrap(
            binder.find_permission(config.function.name, identity),
            f"invoke permission {identity.statement_id}",
        )
        if statement is None:
            return BindingStatus(identity, route_path, BindingState.UNBOUND)

        routing = RoutingRuleManager(self.clients.elbv2)
        teardown = TeardownCoordinator(self.clients.lambda_client, self.clients.elbv2, routing)
        group_match = teardown.find_target_group(identity)
        if isinstance(group_match, Ambiguous):
            raise AmbiguousMatchError(group_match.description, len(group_match.values))
        if isinstance(group_match, ExactlyOne) and routing.has_rule_for(
                config.load_balancer, group_match.value['TargetGroupArn']):
            return BindingStatus(identity, route_path, BindingState.ROUTED)
        return BindingStatus(identity, route_path, BindingState.BOUND_UNROUTED)
