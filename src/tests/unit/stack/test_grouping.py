"""Tests for service grouping."""

from containerflow.stack.grouping import container_url, find_group, group_services
from containerflow.stack.naming import StackNaming
from containerflow.stack.spec import ContainerSpec, LiveContainer


def _site(
    name: str,
    domain: str = "blog.example.com",
    db_name: str = "wp_blog",
    db_user: str = "wp_blog",
) -> LiveContainer:
    return LiveContainer(
        id=f"id-{name}",
        image_id="sha256:wp",
        running=True,
        state="running",
        spec=ContainerSpec(
            name=name,
            image="wordpress:latest",
            env=[f"WORDPRESS_DB_NAME={db_name}", f"WORDPRESS_DB_USER={db_user}"],
            labels={"traefik.http.routers.blog.rule": f'Host("{domain}")'},
        ),
    )


class TestGroupServices:
    """Tests for group_services()."""

    def test_groups_by_project(self, naming: StackNaming) -> None:
        containers = [
            _site("wordpress-blog-1"),
            _site("wordpress-shop-1", domain="shop.example.com", db_name="wp_shop", db_user="wp_shop"),
            _site("wordpress-blog-2"),
        ]

        groups = group_services(containers, naming)

        assert [group.name for group in groups] == ["blog", "shop"]
        assert groups[0].instance_numbers == [1, 2]
        assert groups[0].url == "blog.example.com"
        assert groups[0].db_name == "wp_blog"
        assert groups[0].consistent

    def test_ignores_foreign_containers(self, naming: StackNaming) -> None:
        proxy = LiveContainer(
            id="p",
            image_id="sha256:t",
            running=True,
            state="running",
            spec=ContainerSpec(name="traefik", image="traefik:v2.11"),
        )

        assert group_services([proxy], naming) == []

    def test_instance_numbering_with_gap(self, naming: StackNaming) -> None:
        """Instances -1, -2, -4 give next number 5 and highest -4."""
        containers = [
            _site("wordpress-blog-4"),
            _site("wordpress-blog-1"),
            _site("wordpress-blog-2"),
        ]

        group = group_services(containers, naming)[0]

        assert group.instance_numbers == [1, 2, 4]
        assert group.next_instance_number == 5
        assert group.highest.container.name == "wordpress-blog-4"

    def test_unsuffixed_name_is_instance_one(self, naming: StackNaming) -> None:
        group = group_services([_site("wordpress-blog")], naming)[0]

        assert group.instance_numbers == [1]
        assert group.next_instance_number == 2


class TestGroupConflicts:
    """Disagreements are reported, not resolved."""

    def test_divergent_url(self, naming: StackNaming) -> None:
        containers = [
            _site("wordpress-blog-1", domain="old.example.com"),
            _site("wordpress-blog-2", domain="new.example.com"),
        ]

        group = group_services(containers, naming)[0]

        assert group.conflicts == ["url"]
        assert group.url is None
        assert not group.consistent

    def test_divergent_database(self, naming: StackNaming) -> None:
        containers = [
            _site("wordpress-blog-1"),
            _site("wordpress-blog-2", db_name="wp_other", db_user="wp_other"),
        ]

        group = group_services(containers, naming)[0]

        assert group.conflicts == ["db_name", "db_user"]
        assert group.db_name is None

    def test_duplicate_instance_number(self, naming: StackNaming) -> None:
        """wordpress-blog and wordpress-blog-1 both count as instance 1."""
        containers = [_site("wordpress-blog"), _site("wordpress-blog-1")]

        group = group_services(containers, naming)[0]

        assert "instance_number" in group.conflicts


class TestHelpers:
    def test_container_url(self) -> None:
        assert container_url(_site("wordpress-blog-1", domain="x.example.com")) == "x.example.com"

    def test_container_url_without_router(self) -> None:
        live = LiveContainer(
            id="x",
            image_id="",
            running=False,
            state="exited",
            spec=ContainerSpec(name="wordpress-x-1", image="wordpress:latest"),
        )
        assert container_url(live) is None

    def test_find_group(self, naming: StackNaming) -> None:
        groups = group_services([_site("wordpress-blog-1")], naming)

        assert find_group(groups, "blog") is groups[0]
        assert find_group(groups, "shop") is None
