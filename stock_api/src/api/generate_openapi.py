import json
import os

from src.api.main import app

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Inject non-standard extension with WebSocket endpoint docs
openapi_schema["x-websocket-endpoints"] = [
    {
        "path": "/ws/stock",
        "summary": "Inventory change notifications and dashboard statistics",
        "query": ["token"],
        "messages": {
            "client_to_server": ["ping"],
            "server_to_client": [
                "dashboard.stats",
                "category.*",
                "location.*",
                "product.*",
                "product_attribute.*",
                "stock_movement.created",
                "todo.*",
                "user.*",
                "role.*",
            ],
        },
    },
]

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
