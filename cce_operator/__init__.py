"""cce-operator - reconcile CCEClusterConfig records against Huawei Cloud CCE.

Example:

    from cce_operator.controller import Controller, Handler
    from cce_operator.huawei.driver import DriverCache
    from cce_operator.store import InMemoryStore

    store = InMemoryStore()
    handler = Handler(store, store, DriverCache(store))
    await Controller(store, handler).run(stop_event)
"""

__version__ = "0.1.0"
