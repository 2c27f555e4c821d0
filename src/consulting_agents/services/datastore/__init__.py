"""Datastore gateway for consulting session records."""

from consulting_agents.services.datastore.broker import SessionChangeBroker, SessionSubscription
from consulting_agents.services.datastore.protocol import UPDATABLE_FIELDS, SessionGateway
from consulting_agents.services.datastore.sql import SqlSessionGateway

__all__ = [
    "SessionChangeBroker",
    "SessionGateway",
    "SessionSubscription",
    "SqlSessionGateway",
    "UPDATABLE_FIELDS",
]
