"""Fixed container specs of the hosting stack."""

from containerflow.config import MySQLConfig, StackConfig
from containerflow.stack.naming import StackNaming, host_rule
from containerflow.stack.spec import ContainerSpec, NetworkSpec

SITE_DOCROOT = "/var/www/html"
SITE_PORT = "80"


def network_spec(stack: StackConfig) -> NetworkSpec:
    return NetworkSpec(name=stack.network, driver="bridge")


def proxy_spec(stack: StackConfig) -> ContainerSpec:
    """Traefik reverse proxy routing by container labels."""
    return ContainerSpec(
        name=stack.proxy_name,
        image=stack.proxy_image,
        cmd=[
            "--entrypoints.web.address=:80",
            "--api.dashboard=true",
            "--providers.docker=true",
            "--providers.docker.exposedByDefault=false",
            f"--providers.docker.network={stack.network}",
        ],
        labels={
            "traefik.enable": "true",
            "traefik.http.routers.traefik.rule": host_rule(stack.proxy_domain),
            "traefik.http.routers.traefik.service": "api@internal",
            "traefik.http.routers.traefik.entrypoints": "web",
        },
        binds=["/var/run/docker.sock:/var/run/docker.sock"],
        exposed_ports={"80/tcp": {}, "8080/tcp": {}},
        port_bindings={
            "80/tcp": [{"HostPort": "80"}],
            "8080/tcp": [{"HostPort": "8080"}],
        },
        restart_policy="always",
        network=stack.network,
    )


def database_spec(stack: StackConfig, mysql: MySQLConfig) -> ContainerSpec:
    """Shared MySQL engine; root may connect from other containers."""
    return ContainerSpec(
        name=stack.database_name,
        image=stack.database_image,
        env=[
            f"MYSQL_ROOT_PASSWORD={mysql.root_password}",
            "MYSQL_ROOT_HOST=%",
        ],
        binds=[f"{stack.database_volume}:/var/lib/mysql"],
        exposed_ports={"3306/tcp": {}},
        port_bindings={"3306/tcp": [{"HostPort": str(mysql.port)}]},
        restart_policy="always",
        network=stack.network,
    )


def site_spec(
    stack: StackConfig,
    naming: StackNaming,
    project: str,
    domain: str,
    db_password: str,
    number: int = 1,
) -> ContainerSpec:
    """First-class WordPress instance of a project."""
    router = naming.router_key(project)
    labels = {
        "traefik.enable": "true",
        f"{router}.rule": host_rule(domain),
        f"{router}.entrypoints": stack.entrypoint,
        f"{naming.service_key(project)}.loadbalancer.server.port": SITE_PORT,
        naming.project_label: project,
        naming.type_label: "wordpress",
    }
    if stack.cert_resolver:
        labels[f"{router}.tls.certresolver"] = stack.cert_resolver

    return ContainerSpec(
        name=naming.instance_name(project, number),
        image=stack.site_image,
        env=[
            f"WORDPRESS_DB_HOST={stack.database_name}:3306",
            f"WORDPRESS_DB_USER={naming.database_user(project)}",
            f"WORDPRESS_DB_PASSWORD={db_password}",
            f"WORDPRESS_DB_NAME={naming.database_name(project)}",
        ],
        labels=labels,
        binds=[f"{naming.volume_name(project)}:{SITE_DOCROOT}"],
        exposed_ports={f"{SITE_PORT}/tcp": {}},
        restart_policy="always",
        network=stack.network,
    )
