"""
Settlement Service Routes Registry

Defines service metadata and the routes exposed by main.py.
"""

SERVICE_METADATA = {
    "service_name": "settlement_service",
    "version": "1.0.0",
    "tags": ['settlement', 'group-purchase', 'v1'],
    "capabilities": [
        'campaign_management',
        'confidential_orders',
        'disclosure_protocol',
        'refund_ledger',
    ],
}

API_PREFIX = "/api/v1/settlement"

ROUTES = [
    {"path": "/health", "methods": ["GET"], "description": "Health check"},
    {"path": f"{API_PREFIX}/campaigns", "methods": ["POST"], "description": "Create campaign"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}", "methods": ["GET"], "description": "Campaign info"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}/deactivate", "methods": ["POST"], "description": "Deactivate campaign"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}/target", "methods": ["GET"], "description": "Target reached check"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}/processing", "methods": ["POST"], "description": "Begin processing"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}/stats", "methods": ["GET"], "description": "Aggregate statistics"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}/orders", "methods": ["GET"], "description": "Campaign order ids"},
    {"path": f"{API_PREFIX}/campaigns/{{campaign_id}}/participants/{{participant}}", "methods": ["GET"], "description": "Has ordered"},
    {"path": f"{API_PREFIX}/orders", "methods": ["POST"], "description": "Place order"},
    {"path": f"{API_PREFIX}/orders/{{order_id}}", "methods": ["GET"], "description": "Order info"},
    {"path": f"{API_PREFIX}/orders/{{order_id}}/cancel", "methods": ["POST"], "description": "Cancel order"},
    {"path": f"{API_PREFIX}/orders/{{order_id}}/disclosure", "methods": ["POST", "GET"], "description": "Request disclosure / disclosure status"},
    {"path": f"{API_PREFIX}/orders/{{order_id}}/disclosure/timeout", "methods": ["POST"], "description": "Disclosure timeout"},
    {"path": f"{API_PREFIX}/disclosures/callback", "methods": ["POST"], "description": "Oracle callback"},
    {"path": f"{API_PREFIX}/disclosures/sweep", "methods": ["POST"], "description": "Time out expired disclosures"},
    {"path": f"{API_PREFIX}/refunds/{{participant}}", "methods": ["GET"], "description": "Pending refund"},
    {"path": f"{API_PREFIX}/refunds/claim", "methods": ["POST"], "description": "Claim pending refund"},
    {"path": f"{API_PREFIX}/audit", "methods": ["GET"], "description": "Audit trail"},
]


def get_routes_metadata():
    """Route summary published alongside the service metadata"""
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join([r["path"] for r in ROUTES]),
        "api_version": "v1",
        "base_path": API_PREFIX,
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "API_PREFIX", "get_routes_metadata"]
