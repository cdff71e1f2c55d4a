"""
A minimalistic K8s API client: just enough to list and watch the ConfigMaps.
"""
