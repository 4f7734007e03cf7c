from collections.abc import Callable
import importlib

from bulkmigrate.errors import PluginLoadError


def load_callable(reference: str) -> Callable[..., object]:
    """Resolve a ``package.module:attribute`` reference to a callable."""
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise PluginLoadError(f"expected 'module:attribute', got {reference!r}")

    try:
        target: object = importlib.import_module(module_name)
    except ImportError as exc:
        raise PluginLoadError(f"cannot import module {module_name!r}: {exc}") from exc

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise PluginLoadError(f"{module_name!r} has no attribute {attr_path!r}") from exc

    if not callable(target):
        raise PluginLoadError(f"{reference!r} is not callable")
    return target
