"""
AWS Lambda entrypoint.

API Gateway events are translated to ASGI by Mangum. Lambda has no ASGI
lifespan, and a custom domain mapping or stage prefix configured as
``LAMBDA_BASE_PATH`` is stripped before routing.
"""
from mangum import Mangum

from file_gateway.main import create_app
from file_gateway.settings import Settings, get_settings


def build_handler(settings: Settings) -> Mangum:
    app = create_app(settings)
    return Mangum(app, lifespan="off", api_gateway_base_path=settings.lambda_base_path)


lambda_handler = build_handler(get_settings())
app = lambda_handler.app
