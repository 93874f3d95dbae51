class LimitadorResources:
    """Encapsulates the naming scheme used for the resources which the operator manages
    for a Limitador instance."""

    PREFIX = "limitador"

    @classmethod
    def component_name(self, name: str):
        """Returns the name of the deployment for an instance of the given name."""
        return f"{self.PREFIX}-{name}"

    @classmethod
    def deployment_name(self, name: str):
        return self.component_name(name)

    @classmethod
    def service_name(self, name: str):
        """Returns the name of the service fronting an instance of the given name."""
        return self.component_name(name)

    @classmethod
    def qualified_service_name(self, name: str, namespace: str):
        """Returns the cluster-local DNS name of the service."""
        return f"{self.service_name(name)}.{namespace}.svc.cluster.local"

    @classmethod
    def url(self, name: str, namespace: str, port: int):
        """Returns the URL of the limitador HTTP API for an instance of the given name."""
        return f"http://{self.qualified_service_name(name, namespace)}:{port}"

    @classmethod
    def limits_config_map_name(self, name: str):
        return f"{self.PREFIX}-limits-config-{name}"

    @classmethod
    def pod_disruption_budget_name(self, name: str):
        return self.component_name(name)

    @classmethod
    def persistent_volume_claim_name(self, name: str):
        return self.component_name(name)

    @classmethod
    def legacy_deployment_name(self, name: str):
        """Deployment name used before the v0.7.0 naming scheme."""
        return name

    @classmethod
    def legacy_limits_config_map_name(self, name: str):
        """Limits ConfigMap name used before the v0.7.0 naming scheme."""
        return f"limits-config-{name}"
