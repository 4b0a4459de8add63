"""Tests for secret generation, resolution and tfvars access."""

import re
from unittest.mock import MagicMock

import pytest

from authdeploy.config import AuthDeployConfig, SecretsConfig
from authdeploy.core.exceptions import AuthDeployError, K8sError
from authdeploy.pipeline.models import (
    DB_HOST,
    DB_NAME,
    DB_PASSWORD,
    DB_USER,
    REDIS_HOST,
    SIGNING_KEY,
)
from authdeploy.pipeline.secrets import (
    SecretResolver,
    TfvarsFile,
    build_bundle,
    generate_random,
    generate_signing_key,
    strip_port,
    write_back,
)
from authdeploy.pipeline.stages import store_bundle

ALNUM = re.compile(r"^[A-Za-z0-9]+$")


def terraform_with(outputs: dict[str, str]) -> MagicMock:
    terraform = MagicMock()
    terraform.output.side_effect = lambda name: outputs.get(name)
    return terraform


class TestGenerateRandom:
    """Tests for random value generation."""

    @pytest.mark.parametrize("length", [16, 32, 50, 64, 200])
    def test_exact_length_and_alphanumeric(self, length):
        for _ in range(20):
            value = generate_random(length)
            assert len(value) == length
            assert ALNUM.match(value)

    def test_signing_key_default_length(self):
        key = generate_signing_key()
        assert len(key) == 50
        assert ALNUM.match(key)

    def test_values_differ(self):
        assert generate_random(50) != generate_random(50)


class TestStripPort:
    def test_strips_port(self):
        assert strip_port("db.abc.ap-south-1.rds.amazonaws.com:5432") == "db.abc.ap-south-1.rds.amazonaws.com"

    def test_no_port(self):
        assert strip_port("redis.cache.amazonaws.com") == "redis.cache.amazonaws.com"

    def test_none(self):
        assert strip_port(None) is None


class TestTfvarsFile:
    """Tests for reading and rewriting terraform.tfvars."""

    def test_get_value(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        path.write_text('region = "eu-west-1"\ndb_password = "s3cret"\n')
        assert TfvarsFile(path).get("db_password") == "s3cret"

    def test_get_ignores_commented_and_prefixed_names(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        path.write_text('# db_password = "old"\nmy_db_password = "other"\n')
        assert TfvarsFile(path).get("db_password") is None

    def test_get_unescapes_quotes(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        path.write_text('db_password = "a\\"b"\n')
        assert TfvarsFile(path).get("db_password") == 'a"b'

    def test_get_missing_file(self, tmp_path):
        assert TfvarsFile(tmp_path / "missing.tfvars").get("db_password") is None

    def test_update_rewrites_existing_lines_and_keeps_backup(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        original = 'db_password = "old"\nauthentik_secret_key = "old-key"\nregion = "ap-south-1"\n'
        path.write_text(original)

        updated = TfvarsFile(path).update({"db_password": "new", "authentik_secret_key": "newkey"})

        assert updated == ["db_password", "authentik_secret_key"]
        assert path.read_text() == 'db_password = "new"\nauthentik_secret_key = "newkey"\nregion = "ap-south-1"\n'
        assert (tmp_path / "terraform.tfvars.bak").read_text() == original

    def test_update_does_not_add_missing_variables(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        path.write_text('region = "ap-south-1"\n')

        assert TfvarsFile(path).update({"db_password": "new"}) == []
        assert path.read_text() == 'region = "ap-south-1"\n'
        assert not (tmp_path / "terraform.tfvars.bak").exists()

    def test_update_escapes_special_characters(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        path.write_text('db_password = "old"\n')
        tfvars = TfvarsFile(path)

        tfvars.update({"db_password": 'p\\a"ss'})

        assert tfvars.get("db_password") == 'p\\a"ss'

    def test_update_missing_file_is_skipped(self, tmp_path):
        path = tmp_path / "terraform.tfvars"
        assert TfvarsFile(path).update({"db_password": "new"}) == []
        assert not path.exists()


class TestSecretResolver:
    def test_first_non_empty_source_wins(self):
        resolved = SecretResolver().resolve(
            "field",
            [("a", lambda: None), ("b", lambda: ""), ("c", lambda: "value"), ("d", lambda: "later")],
        )
        assert resolved.value == "value"
        assert resolved.source == "c"

    def test_no_source_raises(self):
        with pytest.raises(AuthDeployError):
            SecretResolver().resolve("field", [("a", lambda: None)])


class TestBuildBundle:
    """Tests for the ordered fallback chains."""

    @pytest.fixture
    def bundle_config(self) -> AuthDeployConfig:
        return AuthDeployConfig()

    def test_terraform_outputs_preferred(self, bundle_config, tmp_path):
        tfvars = TfvarsFile(tmp_path / "terraform.tfvars")
        tfvars.path.write_text('db_password = "from-tfvars"\n')
        terraform = terraform_with({
            "rds_endpoint": "authentik.xyz.ap-south-1.rds.amazonaws.com:5432",
            "redis_endpoint": "authentik.abc.cache.amazonaws.com",
            "db_password": "from-output",
        })

        bundle = build_bundle(bundle_config, terraform, tfvars)

        assert bundle.get(DB_HOST) == "authentik.xyz.ap-south-1.rds.amazonaws.com"
        assert bundle.get(REDIS_HOST) == "authentik.abc.cache.amazonaws.com"
        assert bundle.get(DB_PASSWORD) == "from-output"
        assert bundle.provenance()[DB_PASSWORD] == "terraform output db_password"
        assert bundle.get(DB_NAME) == "authentik"
        assert bundle.get(DB_USER) == "authentik"

    def test_tfvars_password_when_no_output(self, bundle_config, tmp_path):
        tfvars = TfvarsFile(tmp_path / "terraform.tfvars")
        tfvars.path.write_text('db_password = "from-tfvars"\n')

        bundle = build_bundle(bundle_config, terraform_with({}), tfvars)

        assert bundle.get(DB_PASSWORD) == "from-tfvars"
        assert bundle.provenance()[DB_PASSWORD] == "terraform.tfvars"

    def test_generated_password_as_last_resort(self, bundle_config, tmp_path):
        tfvars = TfvarsFile(tmp_path / "missing.tfvars")

        bundle = build_bundle(bundle_config, terraform_with({}), tfvars)

        password = bundle.get(DB_PASSWORD)
        assert len(password) == 32
        assert ALNUM.match(password)
        assert bundle.provenance()[DB_PASSWORD] == "generated"

    def test_empty_tfvars_password_falls_through(self, bundle_config, tmp_path):
        tfvars = TfvarsFile(tmp_path / "terraform.tfvars")
        tfvars.path.write_text('db_password = ""\n')

        bundle = build_bundle(bundle_config, terraform_with({}), tfvars)

        assert bundle.provenance()[DB_PASSWORD] == "generated"

    def test_rotate_ignores_existing_password(self, bundle_config, tmp_path):
        tfvars = TfvarsFile(tmp_path / "terraform.tfvars")
        tfvars.path.write_text('db_password = "from-tfvars"\n')
        terraform = terraform_with({"db_password": "from-output"})

        bundle = build_bundle(bundle_config, terraform, tfvars, rotate_db_password=True)

        assert bundle.get(DB_PASSWORD) not in ("from-output", "from-tfvars")
        assert bundle.provenance()[DB_PASSWORD] == "generated"

    def test_placeholders_use_cluster_and_region(self, bundle_config, tmp_path, monkeypatch):
        monkeypatch.setenv("CLUSTER_NAME", "auth-prod")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")

        bundle = build_bundle(bundle_config, terraform_with({}), TfvarsFile(tmp_path / "x"))

        assert bundle.get(DB_HOST) == "auth-prod-authentik-db.eu-west-1.rds.amazonaws.com"
        assert bundle.get(REDIS_HOST) == "auth-prod-authentik-redis.eu-west-1.cache.amazonaws.com"
        assert bundle.provenance()[DB_HOST] == "placeholder"

    def test_signing_key_regenerated_each_time(self, bundle_config, tmp_path):
        tfvars = TfvarsFile(tmp_path / "x")
        first = build_bundle(bundle_config, terraform_with({}), tfvars)
        second = build_bundle(bundle_config, terraform_with({}), tfvars)

        assert first.get(SIGNING_KEY) != second.get(SIGNING_KEY)
        assert len(first.get(SIGNING_KEY)) == 50
        assert ALNUM.match(first.get(SIGNING_KEY))

    def test_configured_lengths(self, tmp_path):
        config = AuthDeployConfig(secrets=SecretsConfig(signing_key_length=64, db_password_length=20))

        bundle = build_bundle(config, terraform_with({}), TfvarsFile(tmp_path / "x"))

        assert len(bundle.get(SIGNING_KEY)) == 64
        assert len(bundle.get(DB_PASSWORD)) == 20

    def test_write_back(self, bundle_config, tmp_path):
        path = tmp_path / "terraform.tfvars"
        path.write_text('db_password = ""\nauthentik_secret_key = ""\n')
        tfvars = TfvarsFile(path)
        bundle = build_bundle(bundle_config, terraform_with({}), tfvars)

        assert write_back(tfvars, bundle) == ["db_password", "authentik_secret_key"]
        assert tfvars.get("authentik_secret_key") == bundle.get(SIGNING_KEY)
        assert tfvars.get("db_password") == bundle.get(DB_PASSWORD)


class TestStoreBundle:
    """Tests for storing the bundle in the cluster."""

    def test_rerun_replaces_secret(self, context, tools, config):
        tools.k8s.upsert_secret.side_effect = ["created", "replaced"]
        tfvars = TfvarsFile(config.paths.tfvars_path)

        first = store_bundle(context, build_bundle(config, tools.terraform, tfvars), tfvars)
        second = store_bundle(context, build_bundle(config, tools.terraform, tfvars), tfvars)

        assert (first, second) == ("created", "replaced")
        assert tools.k8s.upsert_secret.call_count == 2

    def test_namespace_required(self, context, tools, config):
        tools.k8s.namespace_exists.return_value = False
        tfvars = TfvarsFile(config.paths.tfvars_path)

        with pytest.raises(K8sError, match="Namespace authentik not found"):
            store_bundle(context, build_bundle(config, tools.terraform, tfvars), tfvars)
        tools.k8s.upsert_secret.assert_not_called()

    def test_missing_tfvars_skips_update(self, context, tools, config):
        config.paths.tfvars_path.unlink()
        tfvars = TfvarsFile(config.paths.tfvars_path)

        assert store_bundle(context, build_bundle(config, tools.terraform, tfvars), tfvars) == "created"
        assert not config.paths.tfvars_path.exists()
