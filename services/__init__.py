"""
Services Package

Application-level services built on the core engine: the order book subscription
registry, the async event bus and the order impact calculator.
"""
