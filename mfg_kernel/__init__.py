"""
mfg_kernel -- core of the unit cost roll-up and container weight engine.

Layers:
    domain/      pure value objects, boundary DTOs, injectable clock
    db/          SQLAlchemy base, engine/session management, append-only guards
    models/      ORM persistence for containers and weight measurements
    services/    flush-only write services (caller owns the transaction)
    selectors/   read-only queries
    utils/       in-process coordination helpers

The kernel never imports from mfg_config or mfg_services.
"""
