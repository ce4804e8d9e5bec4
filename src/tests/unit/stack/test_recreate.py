"""Tests for the container recreation engine."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import httpx
import pytest

from containerflow.config import AppConfig
from containerflow.errors import (
    ContainerNotFoundError,
    DockerError,
    InvalidRequestError,
    NameCollisionError,
    OperationInProgressError,
    ValidationPostConditionError,
)
from containerflow.stack import presets
from containerflow.stack.engine import StackEngine
from containerflow.stack.grouping import container_url
from containerflow.stack.guard import OperationGuard
from containerflow.stack.naming import StackNaming
from containerflow.stack.recreate import (
    CloneMutation,
    ConfigMutation,
    RecreationEngine,
    UrlChangeMutation,
)

if TYPE_CHECKING:
    from conftest import FakeEngine

OLD_DOMAIN = "old.example.com"
NEW_DOMAIN = "new.example.com"


@pytest.fixture
def recreation(engine: StackEngine, guard: OperationGuard, naming: StackNaming) -> RecreationEngine:
    return RecreationEngine(engine, guard, naming)


@pytest.fixture
def site(fake_engine: FakeEngine, app_config: AppConfig, naming: StackNaming) -> str:
    """Running wordpress-blog-1 routed to old.example.com."""
    spec = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw")
    fake_engine.add_container(spec)
    return spec.name


class TestMutations:
    def test_url_change_rewrites_host_rules_only(
        self, app_config: AppConfig, naming: StackNaming
    ) -> None:
        spec = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw")

        updated = UrlChangeMutation(domain=NEW_DOMAIN).apply(spec)

        assert updated.labels["traefik.http.routers.blog.rule"] == f'Host("{NEW_DOMAIN}")'
        assert updated.labels["traefik.http.routers.blog.entrypoints"] == "web"
        assert updated.binds == spec.binds
        assert updated.name == spec.name

    def test_clone_keeps_everything_but_name(
        self, app_config: AppConfig, naming: StackNaming
    ) -> None:
        spec = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw")

        clone = CloneMutation(name="wordpress-blog-2").apply(spec)

        assert clone.name == "wordpress-blog-2"
        assert clone.model_dump(exclude={"name"}) == spec.model_dump(exclude={"name"})

    def test_config_replaces_env_by_key(self, app_config: AppConfig, naming: StackNaming) -> None:
        spec = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw")

        updated = ConfigMutation(env={"WORDPRESS_DB_PASSWORD": "new"}, labels={"x": "y"}).apply(spec)

        assert updated.env_value("WORDPRESS_DB_PASSWORD") == "new"
        assert len(updated.env) == len(spec.env)
        assert updated.labels["x"] == "y"


class TestClone:
    async def test_clone_next_to_source(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        created = await recreation.clone(site)

        assert created.name == "wordpress-blog-2"
        assert created.running
        source = fake_engine.by_name(site)
        assert source["State"]["Running"]
        assert ("stop", site) not in fake_engine.calls
        assert ("remove", site) not in fake_engine.calls

    async def test_clone_numbers_after_highest(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        app_config: AppConfig,
        naming: StackNaming,
        site: str,
    ) -> None:
        spec = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw", number=4)
        fake_engine.add_container(spec)

        created = await recreation.clone(site)

        assert created.name == "wordpress-blog-5"

    async def test_clone_name_collision(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        mock_container_api: AsyncMock,
        app_config: AppConfig,
        naming: StackNaming,
        site: str,
    ) -> None:
        """A container already holding the target name is reported, not replaced."""
        source_id = fake_engine.by_name(site)["Id"]
        holder = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw", number=2)
        fake_engine.add_container(holder)
        # The listing misses the holder, as when it was created concurrently
        mock_container_api.list.side_effect = None
        mock_container_api.list.return_value = [{"Id": source_id, "Names": [f"/{site}"]}]

        with pytest.raises(NameCollisionError):
            await recreation.clone(site)

        assert not any(call[0] in ("create", "remove") for call in fake_engine.calls)

    async def test_clone_overwrite_replaces_holder(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        mock_container_api: AsyncMock,
        app_config: AppConfig,
        naming: StackNaming,
        site: str,
    ) -> None:
        source_id = fake_engine.by_name(site)["Id"]
        holder = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw", number=2)
        holder_id = fake_engine.add_container(holder)
        mock_container_api.list.side_effect = None
        mock_container_api.list.return_value = [{"Id": source_id, "Names": [f"/{site}"]}]

        created = await recreation.clone(site, overwrite=True)

        assert created.name == "wordpress-blog-2"
        assert created.id != holder_id

    async def test_missing_source(self, recreation: RecreationEngine) -> None:
        with pytest.raises(ContainerNotFoundError):
            await recreation.clone("wordpress-ghost-1")

    async def test_rollback_on_failed_validation(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        """A clone failing validation is removed; the source is untouched."""
        source_before = copy.deepcopy(fake_engine.by_name(site))

        def drop_labels(payload: dict) -> None:
            payload["Config"]["Labels"] = {}

        fake_engine.on_create = drop_labels

        with pytest.raises(ValidationPostConditionError) as exc_info:
            await recreation.clone(site)

        assert exc_info.value.container == "wordpress-blog-2"
        assert exc_info.value.restored is False
        assert ("remove", "wordpress-blog-2") in fake_engine.calls
        assert fake_engine.by_name("wordpress-blog-2") is None
        assert fake_engine.by_name(site) == source_before
        assert ("stop", site) not in fake_engine.calls

    async def test_start_failure_removes_half_created_clone(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        fake_engine.fail_start.add("wordpress-blog-2")

        with pytest.raises(DockerError):
            await recreation.clone(site)

        assert fake_engine.by_name("wordpress-blog-2") is None
        assert fake_engine.by_name(site)["State"]["Running"]

    @pytest.mark.parametrize("shared", ["proxy", "database"])
    async def test_shared_infrastructure_is_not_cloned(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        app_config: AppConfig,
        shared: str,
    ) -> None:
        if shared == "proxy":
            spec = presets.proxy_spec(app_config.stack)
        else:
            spec = presets.database_spec(app_config.stack, app_config.mysql)
        fake_engine.add_container(spec)

        with pytest.raises(InvalidRequestError):
            await recreation.clone(spec.name)

        assert fake_engine.calls == []
        assert fake_engine.by_name(f"{spec.name}-2") is None

    async def test_site_without_volume_is_not_cloned(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        app_config: AppConfig,
        naming: StackNaming,
    ) -> None:
        spec = presets.site_spec(app_config.stack, naming, "blog", OLD_DOMAIN, "pw")
        fake_engine.add_container(spec.model_copy(update={"binds": ["/tmp/html:/var/www/html"]}))

        with pytest.raises(InvalidRequestError):
            await recreation.clone(spec.name)

    async def test_inspect_failure_removes_clone(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        mock_container_api: AsyncMock,
        site: str,
    ) -> None:
        created: list[str] = []
        fake_engine.on_create = lambda payload: created.append(payload["Id"])

        async def lose_new_container(name: str) -> dict | None:
            if created and name == created[0]:
                raise httpx.HTTPError("engine went away")
            return await fake_engine.inspect(name)

        mock_container_api.inspect.side_effect = lose_new_container

        with pytest.raises(DockerError):
            await recreation.clone(site)

        assert fake_engine.by_name("wordpress-blog-2") is None
        assert fake_engine.by_name(site)["State"]["Running"]


class TestChangeUrl:
    async def test_old_removed_before_new_created(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        """The two routing rules are never live together."""
        created = await recreation.change_url(site, NEW_DOMAIN)

        assert container_url(created) == NEW_DOMAIN
        remove_index = fake_engine.calls.index(("remove", site))
        create_index = fake_engine.calls.index(("create", site))
        assert remove_index < create_index
        live = [p for p in fake_engine.containers.values() if p["Name"] == f"/{site}"]
        assert len(live) == 1

    async def test_volumes_preserved(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        binds_before = fake_engine.by_name(site)["HostConfig"]["Binds"]

        await recreation.change_url(site, NEW_DOMAIN)

        assert fake_engine.by_name(site)["HostConfig"]["Binds"] == binds_before

    async def test_invalid_domain(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        with pytest.raises(InvalidRequestError):
            await recreation.change_url(site, 'evil") || Host("x')

        assert fake_engine.calls == []

    async def test_failed_validation_restores_previous(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, site: str
    ) -> None:
        def break_once(payload: dict) -> None:
            payload["Config"]["Labels"] = {}
            fake_engine.on_create = None

        fake_engine.on_create = break_once

        with pytest.raises(ValidationPostConditionError) as exc_info:
            await recreation.change_url(site, NEW_DOMAIN)

        assert exc_info.value.restored is True
        restored = fake_engine.by_name(site)
        assert restored is not None
        assert restored["State"]["Running"]
        assert OLD_DOMAIN in restored["Config"]["Labels"]["traefik.http.routers.blog.rule"]

    async def test_start_failure_restores_previous(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        mock_container_api: AsyncMock,
        site: str,
    ) -> None:
        attempts: list[str] = []

        async def fail_first_start(name: str) -> None:
            attempts.append(name)
            if len(attempts) == 1:
                raise httpx.HTTPError("start failed")
            await fake_engine.start(name)

        mock_container_api.start.side_effect = fail_first_start

        with pytest.raises(DockerError):
            await recreation.change_url(site, NEW_DOMAIN)

        restored = fake_engine.by_name(site)
        assert restored is not None
        assert OLD_DOMAIN in restored["Config"]["Labels"]["traefik.http.routers.blog.rule"]

    async def test_inspect_failure_restores_previous(
        self,
        recreation: RecreationEngine,
        fake_engine: FakeEngine,
        mock_container_api: AsyncMock,
        site: str,
    ) -> None:
        created: list[str] = []
        fake_engine.on_create = lambda payload: created.append(payload["Id"])

        async def lose_new_container(name: str) -> dict | None:
            if created and name == created[0]:
                raise httpx.HTTPError("engine went away")
            return await fake_engine.inspect(name)

        mock_container_api.inspect.side_effect = lose_new_container

        with pytest.raises(DockerError):
            await recreation.change_url(site, NEW_DOMAIN)

        assert created[0] not in fake_engine.containers
        restored = fake_engine.by_name(site)
        assert restored["State"]["Running"]
        assert OLD_DOMAIN in restored["Config"]["Labels"]["traefik.http.routers.blog.rule"]

    async def test_proxy_is_not_rerouted(
        self, recreation: RecreationEngine, fake_engine: FakeEngine, app_config: AppConfig
    ) -> None:
        fake_engine.add_container(presets.proxy_spec(app_config.stack))

        with pytest.raises(InvalidRequestError):
            await recreation.change_url(app_config.stack.proxy_name, NEW_DOMAIN)

        assert fake_engine.calls == []


class TestSingleFlight:
    async def test_rejects_concurrent_recreation(
        self, recreation: RecreationEngine, guard: OperationGuard, site: str
    ) -> None:
        async with guard.hold("setup"):
            with pytest.raises(OperationInProgressError):
                await recreation.change_url(site, NEW_DOMAIN)
