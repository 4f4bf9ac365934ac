"""Persisted binding configuration."""
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from alb_deploy.naming import validate_path_template

BINDING_CONFIG_KEY = "alb"


class FunctionConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str = ""
    name: str
    module: str
    dir: str


class BindingConfig(BaseModel):
    """One load balancer binding per project, written by ``init``."""
    model_config = ConfigDict(populate_by_name=True)

    service_name: str = Field(alias="serviceName")
    path_template: str = Field(alias="pathTemplate")
    load_balancer: str = Field(alias="loadBalancer")
    region: str
    function: FunctionConfig = Field(alias="lambda")

    @field_validator('path_template')
    @classmethod
    def check_path_template(cls, v):
        return validate_path_template(v)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
