"""Debugger proxy — relays a debugging protocol between a debugger and a client."""

from hotline.debugger.broker import BrokerState, ConnectionBroker

__all__ = ["BrokerState", "ConnectionBroker"]
