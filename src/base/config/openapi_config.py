from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from src.base.middleware.jwt_middleware import WHITELIST


class OpenAPIConfig:
    """Configuration class for OpenAPI/Swagger setup"""

    def get_swagger_ui_parameters(self) -> dict[str, Any]:
        """Get Swagger UI parameters"""
        return {
            "persistAuthorization": True,
        }

    def create_custom_openapi_schema(self, app: FastAPI) -> dict[str, Any]:
        """Create custom OpenAPI schema with bearer JWT security"""
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        if "components" not in openapi_schema:
            openapi_schema["components"] = {}

        openapi_schema["components"]["securitySchemes"] = {
            "BearerJWT": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Access token from POST /auth/login",
            },
        }

        # Most endpoints need an access token
        openapi_schema["security"] = [{"BearerJWT": []}]

        # Public endpoints are the ones the JWT middleware lets through
        for path, path_info in openapi_schema["paths"].items():
            if path not in WHITELIST:
                continue
            for method, method_info in path_info.items():
                if method.lower() in ["get", "post", "put", "delete", "patch"]:
                    method_info["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema


def setup_openapi(app: FastAPI) -> None:
    """Setup OpenAPI configuration for the FastAPI app"""
    config = OpenAPIConfig()

    def custom_openapi():
        return config.create_custom_openapi_schema(app)

    app.swagger_ui_parameters = config.get_swagger_ui_parameters()
    app.openapi = custom_openapi
