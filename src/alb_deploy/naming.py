"""Path templates and deployment identity naming."""
import re
import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from alb_deploy.errors import TemplateError, ValidationError

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{([A-Za-z0-9_]+?)\}")
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]+")

STATEMENT_ID_PREFIX = "ALBDEPLOY"
TEMPLATE_PLACEHOLDERS = ("service", "stage", "version")

# Target group names are limited to 32 characters
MAX_NAME_LENGTH = 32
DIGEST_LENGTH = 8


def render(template: str, values: Dict[str, Optional[str]]) -> str:
    """Substitute ``{name}`` placeholders in ``template`` from ``values``.

    Raises:
        TemplateError: If a placeholder has no value
    """
    def replace(match):
        key = match.group(1)
        value = values.get(key)
        if value is None:
            raise TemplateError(f"Invalid template key: {key}")
        return str(value)

    return TEMPLATE_PATTERN.sub(replace, template)


def validate_route_path(path: str) -> str:
    """Check a rendered route path starts with '/' and does not end with one."""
    if not path.startswith("/"):
        raise ValidationError(f"Route path must start with a '/': {path!r}")
    if path.endswith("/"):
        raise ValidationError(f"Route path must not end with a '/': {path!r}")
    return path


def validate_path_template(template: str) -> str:
    """Validate a path template against sample placeholder values.

    Only ``service``, ``stage`` and ``version`` are allowed.
    """
    try:
        path = render(template, {key: key for key in TEMPLATE_PLACEHOLDERS})
    except TemplateError as e:
        raise ValidationError(
            f"Invalid path template. Allowed params: {', '.join(TEMPLATE_PLACEHOLDERS)} ({e})"
        ) from e
    validate_route_path(path)
    return template


def sanitize(value: str) -> str:
    """Collapse every run of non-alphanumeric characters into a single '-'."""
    return UNSAFE_CHARS.sub("-", value).strip("-")


@dataclass(frozen=True)
class DeploymentIdentity:
    """Names shared by the alias, target group and permission of one deployment."""
    version: str
    environment: str
    service: str
    safe_name: str
    statement_id: str

    @classmethod
    def derive(cls, version: str, environment: str, service: str) -> 'DeploymentIdentity':
        name = safe_name(version, environment, service)
        return cls(
            version=version,
            environment=environment,
            service=service,
            safe_name=name,
            statement_id=statement_id(name),
        )


def safe_name(version: str, environment: str, service: str) -> str:
    """Build the resource name for a (version, environment, service) triple.

    The readable part is truncated to fit; the digest of the raw triple keeps
    distinct triples apart even when they sanitize to the same text.
    """
    raw = "\x00".join((version, environment, service))
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]

    readable = "-".join(part for part in (sanitize(version), sanitize(environment), sanitize(service)) if part)
    readable = readable[:MAX_NAME_LENGTH - DIGEST_LENGTH - 1].strip("-")
    if not readable:
        return f"alb-{digest}"
    return f"{readable}-{digest}"


def statement_id(name: str) -> str:
    """Permission statement id for a safe name."""
    return f"{STATEMENT_ID_PREFIX}_{name.replace('-', '_')}"
