"""
API handler for listing gateways

GET /gateways - List all constructed gateways
"""
import json
from dbbasic_web.responses import json as json_response

from object_gateway.config import get_config
from object_gateway.runtime.gateway_runtime import GatewayRuntime


def GET(request):
    """List all constructed gateways"""
    # Listing reads the state directory, so a fresh runtime sees everything
    runtime = GatewayRuntime.from_config(get_config())
    gateway_ids = runtime.list_gateways()

    return json_response(json.dumps({
        'status': 'ok',
        'gateways': gateway_ids,
        'count': len(gateway_ids),
    }))
