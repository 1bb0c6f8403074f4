"""Hotline — Hot Module Replacement server and debugger proxy.

Keeps a live WebSocket channel to running application instances and
pushes incremental code updates whenever source files change, and relays
a debugging protocol between one debugger and one running instance.

Quick start::

    import hotline

    hotline.dev("my-app/", packager="packager:create")

The packager (resolver + bundler) is supplied by the project; see
``hotline.packager`` for the contract it implements.

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "HotlineConfig",
    "__version__",
    "dev",
    "run",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import hotline`` fast; websockets and watchfiles load on demand.
    """
    if name == "HotlineConfig":
        from hotline.config import HotlineConfig

        return HotlineConfig

    if name == "dev":
        from hotline.app import dev

        return dev

    if name == "run":
        from hotline.app import run

        return run

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
