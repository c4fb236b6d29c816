#!/usr/bin/env python3
"""Seed a development tenant with one API key pair.

Usage:
    python scripts/seed_test_tenant.py
"""

import asyncio

from gmbs_portal.common.config import get_settings
from gmbs_portal.deps import ServiceContainer

TEST_TENANT_NAME = "GMBS CRM (Test)"


async def seed_test_tenant() -> None:
    container = ServiceContainer.build(get_settings())
    await container.init()

    try:
        async with container.db.get_session() as session:
            for tenant in await container.tenants.list_tenants(session):
                if tenant.name == TEST_TENANT_NAME:
                    print(f"  [skip] {TEST_TENANT_NAME} already exists ({tenant.id})")
                    return

            tenant, api_key, secret = await container.tenants.create_tenant(
                session,
                name=TEST_TENANT_NAME,
                plan="pro",
                subscription_status="trial",
                allowed_artisans=100,
                actor="seed",
            )
    finally:
        await container.close()

    print("=" * 60)
    print("TEST CREDENTIALS (save these!)")
    print("=" * 60)
    print(f"Tenant ID:   {tenant.id}")
    print(f"Plan:        {tenant.subscription_plan}")
    print(f"API Key ID:  {api_key.key_id}")
    print(f"API Secret:  {secret}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed_test_tenant())
