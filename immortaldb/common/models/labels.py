from typing import Dict

MAX_LABEL_VALUE_LEN = 63


def valid_label_value(value: str) -> str:
    """Trim `value` to a legal label value: at most 63 characters, ending alphanumeric."""
    return (value or "")[:MAX_LABEL_VALUE_LEN].rstrip(".-_")


class Labels:
    """Mutable set of Kubernetes labels."""

    IMMORTALDB_DOMAIN = "db.example.com/"
    IMMORTALDB_KIND_LABEL = IMMORTALDB_DOMAIN + "kind"
    IMMORTALDB_CLUSTER_LABEL = IMMORTALDB_DOMAIN + "cluster"

    KUBERNETES_DOMAIN = "app.kubernetes.io/"
    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"
    KUBERNETES_INSTANCE_LABEL = KUBERNETES_DOMAIN + "instance"
    KUBERNETES_PART_OF_LABEL = KUBERNETES_DOMAIN + "part-of"
    KUBERNETES_COMPONENT_LABEL = KUBERNETES_DOMAIN + "component"
    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    APPLICATION_NAME = "immortaldb"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = dict(labels or {})

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels)
        return self

    def include(self, label: str, value: str) -> "Labels":
        self._labels[label] = value
        return self

    def include_kubernetes_part_of(self, instance_name: str) -> "Labels":
        return self.include(
            self.KUBERNETES_PART_OF_LABEL,
            valid_label_value(f"{self.APPLICATION_NAME}-{instance_name}"),
        )

    def as_dict(self) -> Dict[str, str]:
        return dict(self._labels)

    def as_str(self) -> str:
        """Labels as `k1=v1,k2=v2`, the equality-based label selector syntax."""
        return ",".join(f"{key}={value}" for key, value in self._labels.items())

    def contains(self, other: "Labels") -> bool:
        """True if every label of `other` is present here with the same value."""
        return other.as_dict().items() <= self._labels.items()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Labels):
            return NotImplemented
        return self._labels == other._labels

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def empty(cls) -> "Labels":
        return cls()

    @classmethod
    def generate_default_labels(
        cls,
        resource_name: str,
        resource_kind: str,
        component_type: str,
        managed_by: str,
    ) -> "Labels":
        """Labels put on every object the operator manages for `resource_name`."""
        return (
            cls({
                cls.IMMORTALDB_KIND_LABEL: resource_kind,
                cls.IMMORTALDB_CLUSTER_LABEL: resource_name,
                cls.KUBERNETES_NAME_LABEL: cls.APPLICATION_NAME,
                cls.KUBERNETES_INSTANCE_LABEL: resource_name,
                cls.KUBERNETES_COMPONENT_LABEL: component_type,
            })
            .include_kubernetes_part_of(resource_name)
            .include(cls.KUBERNETES_MANAGED_BY_LABEL, managed_by)
        )
