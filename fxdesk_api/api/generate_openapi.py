import json
import os

from fxdesk_api.api.main import WS_SESSIONS_INFO, app

# All REST routes are under /api/v1
openapi_schema = app.openapi()

# WebSocket endpoints are not part of OpenAPI; document them as an extension
openapi_schema["x-websocket-endpoints"] = [WS_SESSIONS_INFO]

output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
