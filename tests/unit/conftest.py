"""Test configuration and fixtures."""

import mcp.types as types
import pytest

from fakes import FakeSessionFactory, make_tool
from mcp_studio.mcp import McpService, ServerConfig


@pytest.fixture
def prices_server() -> ServerConfig:
    return ServerConfig(
        id="prices",
        name="Prices",
        command="python",
        args=["-m", "prices_server"],
    )


@pytest.fixture
def weather_server() -> ServerConfig:
    return ServerConfig(
        id="weather",
        name="Weather",
        connection_kind="streamableHttp",
        base_url="http://localhost:8765/mcp",
    )


@pytest.fixture
def price_tool() -> types.Tool:
    return make_tool(
        "get_price",
        description="Latest price for a ticker symbol",
        properties={
            "symbol": {"type": "string"},
            "currency": {"type": "string"},
        },
        required=["symbol"],
    )


@pytest.fixture
def forecast_tool() -> types.Tool:
    return make_tool(
        "get_forecast",
        description="Forecast for a city",
        properties={"city": {"type": "string"}},
        required=["city"],
    )


@pytest.fixture
def session_factory(
    price_tool: types.Tool, forecast_tool: types.Tool
) -> FakeSessionFactory:
    factory = FakeSessionFactory()
    factory.tools["prices"] = [price_tool]
    factory.tools["weather"] = [forecast_tool]
    return factory


@pytest.fixture
def mcp_service(session_factory: FakeSessionFactory) -> McpService:
    return McpService(session_factory=session_factory)
