"""
Service layer.

Each mutation entry point authorizes the actor, opens the transaction and
drives the hook runner. Modules are imported directly
(``from fleetcore.services.work_orders import add_part``).
"""
