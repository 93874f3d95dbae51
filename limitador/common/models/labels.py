from typing import Dict


class ResourceLabels:
    LIMITADOR_DOMAIN: str = "limitador.kuadrant.io/"

    APP_LABEL = "app"

    LIMITADOR_RESOURCE_LABEL = "limitador-resource"

    #: Annotation that carries the limits ConfigMap resourceVersion on every pod
    CONFIG_MAP_RESOURCE_VERSION_ANNOTATION = (
        LIMITADOR_DOMAIN + "cm-resource-version"
    )

    #: Annotation that marks a desired object as "must not exist"
    DELETE_ANNOTATION = LIMITADOR_DOMAIN + "delete"


class Labels(ResourceLabels):
    APPLICATION_NAME = "limitador"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def as_str(self):
        """Return labels as comma separated string, usable as a label selector."""
        return ",".join([f"{k}={v}" for k, v in self._labels.items()])

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_app(self) -> "Labels":
        return self.include(self.APP_LABEL, self.APPLICATION_NAME)

    def include_limitador_resource(self, name: str) -> "Labels":
        return self.include(self.LIMITADOR_RESOURCE_LABEL, name)

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(cls, resource_name: str) -> "Labels":
        """Labels put on every object owned by the Limitador of the given name.
        The same set selects the instance pods."""
        return Labels().include_app().include_limitador_resource(resource_name)
