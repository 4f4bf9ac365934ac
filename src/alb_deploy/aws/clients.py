"""AWS client management."""
import boto3
import logging
from typing import Any, Dict, Optional

from alb_deploy.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Per-command holder of the boto3 clients used by the binding components."""

    def __init__(self, region: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.region = region or self.settings.aws_region
        self.endpoint_url = self.settings.aws_endpoint_url
        self._clients: Dict[str, Any] = {}

        session_kwargs = {'region_name': self.region}
        if self.settings.aws_profile:
            session_kwargs['profile_name'] = self.settings.aws_profile
        self.session = boto3.Session(**session_kwargs)

        logger.info("Initializing AWSClientManager")
        logger.info(f"  Region: {self.region}")
        logger.info(f"  Profile: {self.settings.aws_profile}")
        logger.info(f"  Endpoint: {self.endpoint_url}")

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {'region_name': self.region}
        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url

        client = self.session.client(service_name, **client_kwargs)
        self._clients[service_name] = client
        logger.debug(f"Created {service_name} client")
        return client

    @property
    def ec2(self):
        return self.get_client('ec2')

    @property
    def elbv2(self):
        return self.get_client('elbv2')

    @property
    def iam(self):
        return self.get_client('iam')

    @property
    def lambda_client(self):
        return self.get_client('lambda')
