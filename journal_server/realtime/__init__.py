"""
Realtime presence and fan-out core.

Connections register with the ConnectionRegistry, bind an identity through
the AuthBinder, subscribe to topics via the SubscriptionManager, and receive
events from the MessageBroadcaster. The EventDispatcher routes inbound client
events to their handlers.
"""
