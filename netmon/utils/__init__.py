# Shared helpers: observer signals and asyncio task utilities.
