"""
FastAPI dependencies shared by the routers.

The aggregator is built once in the application lifespan (one shared
httpx.AsyncClient for every adapter) and read back from `app.state`.
Tests swap it through `app.dependency_overrides[get_aggregator]`.
"""

from __future__ import annotations

from fastapi import Request

from alertwatch.app.aggregation.aggregator import DisasterAggregator


def get_aggregator(request: Request) -> DisasterAggregator:
    return request.app.state.aggregator
