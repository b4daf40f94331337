class ImmortalDBResources:
    """Encapsulates the naming scheme used for the resources which the ImmortalDB Operator manages
    for an ImmortalDB cluster."""

    #: Label key shared by the Deployment selector and its pods
    SELECTOR_LABEL = "app"

    @classmethod
    def component_name(self, cluster_name: str):
        return cluster_name

    @classmethod
    def deployment_name(self, cluster_name: str):
        """Returns the name of the Deployment for a cluster of the given name."""
        return self.component_name(cluster_name)

    @classmethod
    def container_name(self, cluster_name: str):
        return "postgres"

    @classmethod
    def selector_labels(self, cluster_name: str):
        """Returns the labels that tie pods to the Deployment of a cluster."""
        return {self.SELECTOR_LABEL: cluster_name}
