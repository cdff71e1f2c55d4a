import dataclasses
import urllib.parse
from typing import List, Mapping, NewType, Optional

# A specific really existing addressable namespace (at least, the one assumed to be so).
NamespaceName = NewType('NamespaceName', str)

# A namespace reference usable in the API calls. `None` means cluster-wide API calls.
Namespace = Optional[NamespaceName]


@dataclasses.dataclass(frozen=True)
class Resource:
    """
    A reference to a specific built-in or custom resource kind.

    It is used to form the K8s API URLs. K8s API only needs an API group,
    an API version, and a plural name of the resource; the rest is
    for logging and for informational purposes.
    """

    group: str
    """
    The resource's API group; e.g. ``"apps"``, ``"batch"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``, ``"v1beta1"``, etc.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"configmaps"``.
    """

    kind: Optional[str] = None
    """
    The resource's kind (as in YAML files); e.g. ``"ConfigMap"``.
    """

    namespaced: bool = True
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    def __repr__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    def get_url(
            self,
            *,
            server: Optional[str] = None,
            namespace: Namespace = None,
            name: Optional[str] = None,
            params: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        If the name is not set, the URL for the resource list is returned.
        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: List[Optional[str]] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced and namespace is not None else None,
            self.plural,
            name,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


@dataclasses.dataclass(frozen=True)
class Selector:
    """
    What to watch: a resource kind, a namespace, and a label selector.

    The label selector is passed to K8s API as is, unparsed;
    e.g. ``"app=nginx,tier in (frontend)"``.
    """
    resource: Resource
    namespace: Namespace = None
    labels: Optional[str] = None

    def get_url(self, *, params: Optional[Mapping[str, str]] = None) -> str:
        query = {'labelSelector': self.labels} if self.labels else {}
        query.update(params or {})
        return self.resource.get_url(namespace=self.namespace, params=query)

    def __str__(self) -> str:
        where = f'in {self.namespace!r}' if self.namespace is not None else 'cluster-wide'
        which = f' labelled {self.labels!r}' if self.labels else ''
        return f'{self.resource!r} {where}{which}'


CONFIGMAPS = Resource('', 'v1', 'configmaps', kind='ConfigMap', namespaced=True)
