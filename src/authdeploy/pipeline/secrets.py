"""Secret material: generation, ordered resolution, tfvars access."""

import base64
import re
import secrets
import shutil
from pathlib import Path
from typing import Callable

from authdeploy.config import AuthDeployConfig
from authdeploy.core.exceptions import AuthDeployError
from authdeploy.core.logging import get_logger
from authdeploy.pipeline.models import (
    DB_HOST,
    DB_NAME,
    DB_PASSWORD,
    DB_USER,
    REDIS_HOST,
    SIGNING_KEY,
    ResolvedValue,
    SecretBundle,
)

logger = get_logger(__name__)

_STRIPPED = str.maketrans("", "", "=+/")

SOURCE_GENERATED = "generated"
SOURCE_PLACEHOLDER = "placeholder"
SOURCE_CONFIG = "config"
SOURCE_TFVARS = "terraform.tfvars"


def generate_random(length: int) -> str:
    """Random alphanumeric string of exactly ``length`` characters.

    Base64-encodes fresh random bytes and drops the padding and symbol
    characters, topping up until the target length is reached.
    """
    out = ""
    while len(out) < length:
        raw = base64.b64encode(secrets.token_bytes(length)).decode("ascii")
        out += raw.translate(_STRIPPED)
    return out[:length]


def generate_signing_key(length: int = 50) -> str:
    return generate_random(length)


def strip_port(endpoint: str | None) -> str | None:
    """Drop a trailing ``:port`` from an endpoint."""
    if not endpoint:
        return endpoint
    host, sep, port = endpoint.rpartition(":")
    if sep and port.isdigit():
        return host
    return endpoint


class TfvarsFile:
    """Reads and rewrites ``name = "value"`` lines in terraform.tfvars."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def _pattern(self, name: str) -> re.Pattern[str]:
        return re.compile(rf'^(\s*{re.escape(name)}\s*=\s*)"((?:[^"\\]|\\.)*)"', re.MULTILINE)

    def get(self, name: str) -> str | None:
        """Value of a string variable, or None if absent or unreadable."""
        if not self.exists():
            return None
        try:
            text = self.path.read_text()
        except OSError as e:
            logger.warning("Cannot read tfvars", path=str(self.path), error=str(e))
            return None
        match = self._pattern(name).search(text)
        if not match:
            return None
        return re.sub(r"\\(.)", r"\1", match.group(2))

    def update(self, values: dict[str, str]) -> list[str]:
        """Replace the values of variables already declared in the file.

        Variables not present are left out. The previous file is kept as
        ``<name>.bak``. Nothing happens if the file does not exist.

        Returns:
            Names of the variables that were rewritten
        """
        if not self.exists():
            return []

        text = self.path.read_text()
        updated: list[str] = []
        for name, value in values.items():
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            text, count = self._pattern(name).subn(
                lambda m, v=escaped: f'{m.group(1)}"{v}"', text
            )
            if count:
                updated.append(name)

        if updated:
            shutil.copy2(self.path, self.path.with_name(self.path.name + ".bak"))
            self.path.write_text(text)
        return updated


Source = tuple[str, Callable[[], str | None]]


class SecretResolver:
    """Tries sources in order and records which one produced each value."""

    def resolve(self, field: str, sources: list[Source]) -> ResolvedValue:
        for name, fetch in sources:
            value = fetch()
            if value:
                logger.info("Resolved secret value", field=field, source=name)
                return ResolvedValue(value=value, source=name)
            logger.debug("Secret source empty", field=field, source=name)
        raise AuthDeployError(f"No source produced a value for {field}")


def build_bundle(
    config: AuthDeployConfig,
    terraform,
    tfvars: TfvarsFile,
    rotate_db_password: bool = False,
    resolver: SecretResolver | None = None,
) -> SecretBundle:
    """Compute the credential bundle.

    Args:
        config: Loaded configuration
        terraform: TerraformCLI used to read infra outputs
        tfvars: Local declared-configuration file
        rotate_db_password: Generate a new database password instead of
            reading the current one
    """
    resolver = resolver or SecretResolver()
    cluster = config.cluster.get_name()
    region = config.cluster.get_region()
    lengths = config.secrets

    def generated(length: int) -> Callable[[], str]:
        return lambda: generate_random(length)

    bundle = SecretBundle()
    bundle.set(
        SIGNING_KEY,
        resolver.resolve(
            SIGNING_KEY,
            [(SOURCE_GENERATED, lambda: generate_signing_key(lengths.signing_key_length))],
        ),
    )
    bundle.set(
        DB_HOST,
        resolver.resolve(
            DB_HOST,
            [
                ("terraform output rds_endpoint", lambda: strip_port(terraform.output("rds_endpoint"))),
                (SOURCE_PLACEHOLDER, lambda: f"{cluster}-authentik-db.{region}.rds.amazonaws.com"),
            ],
        ),
    )
    bundle.set(DB_NAME, resolver.resolve(DB_NAME, [(SOURCE_CONFIG, lambda: config.secrets.db_name)]))
    bundle.set(DB_USER, resolver.resolve(DB_USER, [(SOURCE_CONFIG, lambda: config.secrets.db_user)]))

    password_sources: list[Source] = []
    if not rotate_db_password:
        password_sources = [
            ("terraform output db_password", lambda: terraform.output("db_password")),
            (SOURCE_TFVARS, lambda: tfvars.get("db_password")),
        ]
    password_sources.append((SOURCE_GENERATED, generated(lengths.db_password_length)))
    bundle.set(DB_PASSWORD, resolver.resolve(DB_PASSWORD, password_sources))

    bundle.set(
        REDIS_HOST,
        resolver.resolve(
            REDIS_HOST,
            [
                ("terraform output redis_endpoint", lambda: terraform.output("redis_endpoint")),
                (SOURCE_PLACEHOLDER, lambda: f"{cluster}-authentik-redis.{region}.cache.amazonaws.com"),
            ],
        ),
    )
    return bundle


def write_back(tfvars: TfvarsFile, bundle: SecretBundle) -> list[str]:
    """Best-effort update of the local tfvars with the bundle's secrets."""
    values = {
        "db_password": bundle.get(DB_PASSWORD) or "",
        "authentik_secret_key": bundle.get(SIGNING_KEY) or "",
    }
    return tfvars.update({k: v for k, v in values.items() if v})
