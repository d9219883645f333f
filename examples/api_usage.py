"""
API/Programmatic Usage Example
================================

This example shows how to use restgate programmatically, without the HTTP
server or the CLI.

Topics covered:
- Building a gateway from configuration
- Readiness probing of a named instance
- Forwarding requests and reading responses
- Handling unavailable instances and timeouts
- Load-balanced requests over the instance pool

Prerequisites:
- A PostgREST API listening on http://localhost:3000
- restgate installed: pip install restgate

Usage:
    python examples/api_usage.py
"""

import asyncio
import json

from restgate.config.schema import GatewayConfig
from restgate.instances import (
    ForwardTimeoutError,
    GatewayError,
    InstanceGateway,
    InstanceUnavailableError,
)
from restgate.platform import create_platform


def build_gateway() -> InstanceGateway:
    config = GatewayConfig()
    config.platform.static.base_url = "http://localhost:3000"
    config.probe.attempts = 2
    config.probe.backoff = 1.0
    return InstanceGateway.from_config(config, create_platform(config))


# Example 1: Probe a named instance
async def probe_instance(gateway: InstanceGateway):
    """Wait for an instance to answer before sending traffic."""
    print("\n" + "=" * 70)
    print("Example 1: Readiness Probe")
    print("=" * 70 + "\n")

    try:
        handle = await gateway.acquire_ready("users")
        print(f"Instance {handle.name} is {handle.state}\n")
    except InstanceUnavailableError as e:
        print(f"Unavailable: {e}")
        for attempt in e.attempts:
            print(f"  attempt {attempt.number}: {attempt.error}")
        print()


# Example 2: Forward a request
async def read_users(gateway: InstanceGateway):
    """Fetch all users through the gateway."""
    print("\n" + "=" * 70)
    print("Example 2: Forwarding")
    print("=" * 70 + "\n")

    try:
        response = await gateway.proxy("users", "/users")
    except ForwardTimeoutError as e:
        print(f"Timed out: {e}\n")
        return
    except GatewayError as e:
        print(f"Error: {e}\n")
        return

    print(f"Status: {response.status_code}")
    if response.ok:
        print(json.dumps(json.loads(response.body), indent=2))
    print()


# Example 3: Load-balanced requests
async def pooled_requests(gateway: InstanceGateway):
    """Spread requests across the instance pool."""
    print("\n" + "=" * 70)
    print("Example 3: Load Balancing")
    print("=" * 70 + "\n")

    for _ in range(5):
        try:
            response = await gateway.proxy_pooled("/posts?limit=1")
            print(f"Status: {response.status_code}")
        except GatewayError as e:
            print(f"Error: {e}")

    print(f"\nInstances: {gateway.registry.snapshot()}\n")


async def main():
    gateway = build_gateway()
    try:
        await probe_instance(gateway)
        await read_users(gateway)
        await pooled_requests(gateway)
    finally:
        await gateway.close()


if __name__ == "__main__":
    asyncio.run(main())
