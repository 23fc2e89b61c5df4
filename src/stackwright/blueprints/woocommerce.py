"""WooCommerce on containers: network, database, storage, CDN, DNS, alarms.

One parameterised definition reused for every environment.
"""

from __future__ import annotations

from dataclasses import dataclass

from stackwright.model.references import Join
from stackwright.model.resource import RemovalPolicy
from stackwright.model.stack import Stack


@dataclass(frozen=True)
class WooCommerceParams:
    domain_name: str = "customwoocommerce.com"
    max_azs: int = 2
    db_instance_class: str = "burstable2.micro"
    db_allocated_storage: int = 20
    db_max_allocated_storage: int = 100
    task_memory_mib: int = 4096
    task_cpu: int = 2048
    desired_count: int = 2
    image: str = "wordpress:latest"
    alarm_threshold: int = 80


ENVIRONMENT_PARAMS: dict[str, WooCommerceParams] = {
    "dev": WooCommerceParams(desired_count=1),
    "staging": WooCommerceParams(),
    "prod": WooCommerceParams(db_instance_class="burstable3.small", desired_count=4),
}


def build_stack(env: str = "dev", params: WooCommerceParams | None = None) -> Stack:
    """Declare the WooCommerce stack for ``env``."""
    p = params or ENVIRONMENT_PARAMS.get(env, WooCommerceParams())
    stack = Stack(f"woocommerce-{env}", tags={"environment": env, "app": "woocommerce"})

    vpc = stack.declare("network", "vpc", {"max_azs": p.max_azs, "cidr_block": "10.0.0.0/16"})

    cluster = stack.declare(
        "cluster",
        "cluster",
        {"cluster_name": f"woocommerce-{env}", "network": vpc.ref("id")},
    )

    credentials = stack.declare(
        "secret",
        "db-credentials",
        {
            "secret_name": f"woocommerce/{env}/db",
            "generate": {"template": {"username": "admin"}, "key": "password"},
        },
    )

    database = stack.declare(
        "database",
        "database",
        {
            "engine": "mysql",
            "engine_version": "8.0",
            "instance_class": p.db_instance_class,
            "network": vpc.ref("id"),
            "subnets": vpc.ref("private_subnet_ids"),
            "credentials": credentials.ref("secret_arn"),
            "multi_az": False,
            "allocated_storage": p.db_allocated_storage,
            "max_allocated_storage": p.db_max_allocated_storage,
            "database_name": "woocommerce",
        },
        removal_policy=RemovalPolicy.DESTROY,
    )

    bucket = stack.declare(
        "bucket",
        "bucket",
        {"versioned": True, "auto_delete_objects": True},
        removal_policy=RemovalPolicy.DESTROY,
    )

    distribution = stack.declare(
        "distribution",
        "distribution",
        {"origin": {"type": "bucket", "domain": bucket.ref("regional_domain_name")}},
    )

    task = stack.declare(
        "task-definition",
        "task-definition",
        {
            "family": f"woocommerce-{env}",
            "memory_mib": p.task_memory_mib,
            "cpu": p.task_cpu,
            "role_policy": [
                {
                    "actions": ["s3:*"],
                    "resources": [bucket.ref("bucket_arn"), Join(bucket.ref("bucket_arn"), "/*")],
                }
            ],
            "container": {
                "name": "woocommerce",
                "image": p.image,
                "port_mappings": [{"container_port": 80, "protocol": "tcp"}],
                "environment": {
                    "WORDPRESS_DB_HOST": database.ref("endpoint_address"),
                    "WORDPRESS_DB_USER": "admin",
                    "WORDPRESS_DB_NAME": "woocommerce",
                    "S3_BUCKET_NAME": bucket.ref("bucket_name"),
                    "AWS_CLOUDFRONT_DISTRIBUTION": distribution.ref("domain_name"),
                },
                "secrets": {"WORDPRESS_DB_PASSWORD": Join(credentials.ref("secret_arn"), ":password")},
                "logging": {"driver": "awslogs", "stream_prefix": "WooCommerce"},
            },
        },
    )

    service = stack.declare(
        "service",
        "service",
        {
            "cluster": cluster.ref("id"),
            "task_definition": task.ref("arn"),
            "desired_count": p.desired_count,
            "public_load_balancer": True,
        },
    )

    dns = stack.declare(
        "dns-record",
        "alias-record",
        {
            "zone": p.domain_name,
            "record_name": p.domain_name if env == "prod" else f"{env}.{p.domain_name}",
            "record_type": "A",
            "alias_target": distribution.ref("domain_name"),
        },
    )

    for metric in ("cpu", "memory"):
        stack.declare(
            "alarm",
            f"{metric}-alarm",
            {
                "alarm_name": f"woocommerce-{env}-{metric}-utilization",
                "metric": {"name": f"{metric}_utilization", "service": service.ref("service_name")},
                "threshold": p.alarm_threshold,
                "evaluation_periods": 2,
                "datapoints_to_alarm": 2,
                "comparison_operator": "greater_than_or_equal_to_threshold",
            },
        )

    stack.export("LoadBalancerDNS", service.ref("load_balancer_dns"))
    stack.export("CloudFrontDistributionURL", distribution.ref("domain_name"))
    stack.export("Route53DomainName", dns.ref("zone_name"))
    return stack
