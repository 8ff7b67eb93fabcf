"""
http_client.py
- Thin requests-based transport for the Docker Engine API on manager nodes.
- Exposes only get/post so the Cluster Client can be tested with a fake.
- Every call is bounded by a per-request timeout.
"""

import requests

from swarm_node_manager.core.constants import DEFAULT_REQUEST_TIMEOUT


class HttpClient:
    def __init__(self, timeout=DEFAULT_REQUEST_TIMEOUT, session=None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def get(self, url, params=None):
        """
        Issue a GET request.

        Returns:
            requests.Response

        Raises:
            requests.RequestException: On connection errors and timeouts.
        """
        return self.session.get(url, params=params, timeout=self.timeout)

    def post(self, url, params=None, json=None):
        """Issue a POST request with a JSON body."""
        return self.session.post(url, params=params, json=json, timeout=self.timeout)

    def close(self):
        self.session.close()
