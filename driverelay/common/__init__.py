"""Constants shared by the server and its tests."""

__all__ = [
    "TUS_VERSION",
    "TUS_EXTENSIONS",
    "TusHeaders",
    "StateKeys",
]

# Lazy imports to avoid circular dependencies


def __getattr__(name: str) -> object:
    if name in ("TUS_VERSION", "TUS_EXTENSIONS", "TusHeaders", "StateKeys"):
        from driverelay.common.constants import TUS_EXTENSIONS, TUS_VERSION, StateKeys, TusHeaders

        return locals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
