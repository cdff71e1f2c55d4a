"""
All the structures coming from the Kubernetes API.

Everything marked "raw" is plain unwrapped data as JSON-decoded from the API,
as retrieved in the listing or watching API calls. "Input" is a parsed JSON
line as is, while "event" is an "input" with the errors already filtered out.

For strict type-checking, they are detailed to the per-field level
(`TypedDict` instead of just ``Mapping[Any, Any]``) -- as used by the watcher.
Unknown fields are allowed at runtime, but are not type-checked.
"""
from typing import Any, Mapping, Optional, Union

from typing_extensions import Literal, TypedDict

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

RawInputType = Literal['ADDED', 'MODIFIED', 'DELETED', 'ERROR', 'BOOKMARK']
RawEventType = Literal['ADDED', 'MODIFIED', 'DELETED', 'BOOKMARK']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Labels
    annotations: Annotations
    resourceVersion: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    data: Mapping[str, str]  # ConfigMaps only: text values.
    binaryData: Mapping[str, str]  # ConfigMaps only: base64-encoded values.


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: Union[RawBody, RawError]


# As passed to the reconciliation engine after processing the errors and special cases.
class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


def get_name(body: RawBody) -> str:
    """ The identity of an object within the watched namespace & selector. """
    name = body.get('metadata', {}).get('name')
    if not name:
        raise ValueError(f"The object has no name: {body!r}")
    return name


def get_namespace(body: RawBody) -> Optional[str]:
    return body.get('metadata', {}).get('namespace')


def build_object_reference(body: RawBody) -> Mapping[str, Optional[str]]:
    """
    Construct an object reference for the per-object logging.

    Keep in mind that some fields can be absent: e.g. ``kind`` and ``apiVersion``
    are not always populated in the items of the list responses.
    """
    return dict(
        apiVersion=body.get('apiVersion'),
        kind=body.get('kind'),
        name=body.get('metadata', {}).get('name'),
        uid=body.get('metadata', {}).get('uid'),
        namespace=body.get('metadata', {}).get('namespace'),
    )
