"""
Gateway Client

Calls gateways served over HTTP by another station (api/gateways/[id].py).

Failures come back as the same exception types a local dispatch raises,
with the remote failure payload attached.
"""

import json
from typing import Any, Dict, List, Optional

import requests

from object_gateway.core import errors
from object_gateway.core.errors import GatewayError


def _error_class(name: Optional[str]) -> type:
    cls = getattr(errors, name or '', None)
    if isinstance(cls, type) and issubclass(cls, GatewayError):
        return cls
    return GatewayError


class GatewayClient:
    """HTTP client for a station's gateway API"""

    def __init__(self, base_url: str, timeout: float = 30):
        """
        Args:
            base_url: Station URL, e.g. http://localhost:8001
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'GatewayClient':
        return cls(config.get_url())

    def dispatch(self, gateway_id: str, caller: str, selector: str, *args, value: Any = 0) -> Any:
        """
        Dispatch a call to a remote gateway.

        Returns:
            The call's result

        Raises:
            CallFailed (or another GatewayError): If the call failed remotely
            GatewayError: If the station answered with an HTTP error
            requests.RequestException: If the station couldn't be reached
        """
        response = requests.post(
            f'{self.base_url}/gateways/{gateway_id}',
            json={
                'caller': caller,
                'selector': selector,
                'args': list(args),
                'value': value,
            },
            headers={'Content-Type': 'application/json'},
            timeout=self.timeout,
        )

        data = self._parse(response)

        if data.get('success'):
            return data.get('result')

        raise _error_class(data.get('error_type'))(
            data.get('error', f'Call {selector} failed'),
            payload=data.get('payload'),
        )

    def get_info(self, gateway_id: str) -> Dict[str, Any]:
        response = requests.get(f'{self.base_url}/gateways/{gateway_id}', timeout=self.timeout)
        return self._parse(response)

    def get_events(self, gateway_id: str, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {'events': 'true'}
        if event_type:
            params['event_type'] = event_type

        response = requests.get(
            f'{self.base_url}/gateways/{gateway_id}',
            params=params,
            timeout=self.timeout,
        )
        return self._parse(response).get('events', [])

    def list_gateways(self) -> List[str]:
        response = requests.get(f'{self.base_url}/gateways', timeout=self.timeout)
        return self._parse(response).get('gateways', [])

    def _parse(self, response) -> Dict[str, Any]:
        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise GatewayError(
                f'Invalid JSON response from {self.base_url}',
                payload={'raw_response': response.text},
            ) from e

        if response.status_code >= 400:
            if response.status_code == 404:
                raise errors.GatewayNotFoundError(data.get('error', 'Gateway not found'))
            raise GatewayError(data.get('error', f'HTTP {response.status_code}'))

        return data
