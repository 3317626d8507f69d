# payouts_api/models/__init__.py
import importlib
import pkgutil
import pathlib

_SKIP = ("__pycache__",)

def load_all():
    """Import every model module in this package so the metadata is complete
    before create_all() / Alembic autogenerate run."""
    pkg_path = pathlib.Path(__file__).parent
    for mod in pkgutil.iter_modules([str(pkg_path)]):
        if mod.name in _SKIP:
            continue
        importlib.import_module(f"{__name__}.{mod.name}")
