"""
Request-scoped dependencies.

Authentication is handled upstream; the gateway forwards the acting user and
organization as headers.
"""

from uuid import UUID

from fastapi import Header

from domain.actor import Actor


def get_actor(
    x_actor_id: UUID = Header(..., description="Acting user id"),
    x_org_id: UUID = Header(..., description="Organization of the acting user"),
) -> Actor:
    return Actor(actor_id=x_actor_id, org_id=x_org_id)
