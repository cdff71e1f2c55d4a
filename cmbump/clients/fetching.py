from typing import Collection, List, Optional, Tuple

from cmbump.clients import api
from cmbump.structs import bodies, configuration, references
from cmbump.utilities import typedefs


async def list_objs(
        *,
        settings: configuration.OperatorSettings,
        selector: references.Selector,
        logger: typedefs.Logger,
) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
    """
    List the objects of the watched kind, namespace, and labels.

    The list's resource version is returned too: it is the point in time
    from which the watch-stream continues after the listing.
    """
    rsp = await api.get(
        url=selector.get_url(),
        logger=logger,
        settings=settings,
    )

    items: List[bodies.RawBody] = []
    resource_version = rsp.get('metadata', {}).get('resourceVersion', None)
    for item in rsp.get('items', []):
        if 'kind' in rsp:
            item.setdefault('kind', rsp['kind'][:-4] if rsp['kind'][-4:] == 'List' else rsp['kind'])
        if 'apiVersion' in rsp:
            item.setdefault('apiVersion', rsp['apiVersion'])
        items.append(item)

    return items, resource_version
