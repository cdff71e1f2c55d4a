"""
Rudimentary authentication in the K8s API.

The watcher is not a client library, and avoids bringing too much logic
for proper authentication, especially all the complex auth-providers.
It only supports the two cases typical for a sidecar container:
an in-cluster service account, and a kubeconfig file (for development).
"""
import dataclasses
import os
from typing import Any, Dict, Optional

import yaml

from cmbump.structs import credentials
from cmbump.utilities import typedefs

SERVICE_ACCOUNT_TOKEN_PATH = '/var/run/secrets/kubernetes.io/serviceaccount/token'
SERVICE_ACCOUNT_NAMESPACE_PATH = '/var/run/secrets/kubernetes.io/serviceaccount/namespace'
SERVICE_ACCOUNT_CA_PATH = '/var/run/secrets/kubernetes.io/serviceaccount/ca.crt'


def login(
        *,
        logger: typedefs.Logger,
        insecure: Optional[bool] = None,
) -> credentials.ConnectionInfo:
    """
    Retrieve the credentials in the first way that works; fail if none does.

    If ``insecure`` is set, it overrides the TLS verification of the source:
    ``True`` disables it, ``False`` enforces it even if the source disables it.
    """
    info = login_with_service_account(logger=logger) or login_with_kubeconfig(logger=logger)
    if info is None:
        raise credentials.LoginError("Cannot authenticate neither in-cluster, nor via kubeconfig.")
    if insecure is not None:
        info = dataclasses.replace(info, insecure=insecure)
    return info


def login_with_service_account(
        *,
        logger: typedefs.Logger,
        **_: Any,
) -> Optional[credentials.ConnectionInfo]:
    """
    A minimalistic login handler that can get raw data from a service account.

    No parsing or sophisticated multi-step token retrieval is performed.
    """

    # As per https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
    if not os.path.exists(SERVICE_ACCOUNT_TOKEN_PATH):
        return None

    with open(SERVICE_ACCOUNT_TOKEN_PATH, encoding='utf-8') as f:
        token = f.read().strip()

    namespace: Optional[str] = None
    if os.path.exists(SERVICE_ACCOUNT_NAMESPACE_PATH):
        with open(SERVICE_ACCOUNT_NAMESPACE_PATH, encoding='utf-8') as f:
            namespace = f.read().strip()

    # The env vars are injected into all pods; the DNS name is a fallback.
    host = os.environ.get('KUBERNETES_SERVICE_HOST')
    port = os.environ.get('KUBERNETES_SERVICE_PORT', '443')
    server = f'https://{host}:{port}' if host else 'https://kubernetes.default.svc'

    logger.debug("Client is configured in cluster with service account.")
    return credentials.ConnectionInfo(
        server=server,
        ca_path=SERVICE_ACCOUNT_CA_PATH if os.path.exists(SERVICE_ACCOUNT_CA_PATH) else None,
        token=token or None,
        default_namespace=namespace or None,
    )


def login_with_kubeconfig(
        *,
        logger: typedefs.Logger,
        **_: Any,
) -> Optional[credentials.ConnectionInfo]:
    """
    A minimalistic login handler that can get raw data from a kubeconfig file.

    Only the current context is used. Auth-providers and exec-plugins
    are not executed; only their already cached access-tokens are used.
    """

    # As per https://kubernetes.io/docs/concepts/configuration/organize-cluster-access-kubeconfig/
    kubeconfig = os.environ.get('KUBECONFIG')
    if not kubeconfig and os.path.exists(os.path.expanduser('~/.kube/config')):
        kubeconfig = '~/.kube/config'
    if not kubeconfig:
        return None

    paths = [path.strip() for path in kubeconfig.split(os.pathsep)]
    paths = [os.path.expanduser(path) for path in paths if path]

    # As prescribed: if the file is absent or non-deserialisable, then fail. The first value wins.
    current_context: Optional[str] = None
    contexts: Dict[Any, Any] = {}
    clusters: Dict[Any, Any] = {}
    users: Dict[Any, Any] = {}
    origins: Dict[Any, str] = {}
    for path in paths:

        with open(path, encoding='utf-8') as f:
            config = yaml.safe_load(f.read()) or {}

        if current_context is None:
            current_context = config.get('current-context')
        for item in config.get('contexts', []):
            if item['name'] not in contexts:
                contexts[item['name']] = item.get('context') or {}
        for item in config.get('clusters', []):
            if item['name'] not in clusters:
                clusters[item['name']] = item.get('cluster') or {}
                origins['cluster', item['name']] = path
        for item in config.get('users', []):
            if item['name'] not in users:
                users[item['name']] = item.get('user') or {}
                origins['user', item['name']] = path

    # Once fully parsed, use the current context only.
    if current_context is None:
        raise credentials.LoginError('Current context is not set in kubeconfigs.')
    try:
        context = contexts[current_context]
        cluster = clusters[context['cluster']]
        user = users.get(context.get('user'), {})
    except KeyError as e:
        raise credentials.LoginError(f'Kubeconfig is inconsistent: {e} is not found.') from e

    # The file paths are relative to the kubeconfig that refers to them.
    cluster_origin = origins['cluster', context['cluster']]
    user_origin = origins.get(('user', context.get('user')))

    # Unlike full-featured clients, we do not make a fake API request to refresh the token.
    provider_token = user.get('auth-provider', {}).get('config', {}).get('access-token')

    logger.debug(f"Client is configured via kubeconfig file: context {current_context!r}.")
    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=_resolve(cluster.get('certificate-authority'), cluster_origin),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=_resolve(user.get('client-certificate'), user_origin),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=_resolve(user.get('client-key'), user_origin),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token') or provider_token,
        default_namespace=context.get('namespace'),
    )


def _resolve(path: Optional[str], origin: Optional[str]) -> Optional[str]:
    if path is None or origin is None or os.path.isabs(path):
        return path
    return os.path.join(os.path.dirname(origin), path)
