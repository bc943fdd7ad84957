"""Production configuration guards."""

import pytest

from readiness.config import ProductionConfig


@pytest.fixture()
def prod_env(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://app@db/readiness")
    monkeypatch.setenv("SECRET_KEY", "s3cret")
    monkeypatch.setenv("CRON_SECRET", "cron-s3cret")
    return monkeypatch


def test_production_requires_cron_secret(prod_env):
    prod_env.delenv("CRON_SECRET")
    with pytest.raises(RuntimeError, match="CRON_SECRET"):
        ProductionConfig()


def test_production_requires_secret_key(prod_env):
    prod_env.delenv("SECRET_KEY")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        ProductionConfig()


def test_production_accepts_complete_environment(prod_env):
    cfg = ProductionConfig()
    assert cfg.DEBUG is False
